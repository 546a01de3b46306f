"""
Room Lifecycle — Voice Room Creation, Moves, and Teardown

THIS MODULE DEFINES NO COMMANDS.

Responsibilities:
- Create locked confinement rooms for punished users
- Create throwaway abduction rooms with a fallback cleanup timer
- Move members between rooms (best effort)
- Delete abduction rooms once empty, exactly once

Discord failures are translated into KidnapBot errors or logged here;
they never escape as raw discord exceptions.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import discord

from safety.errors import MoveFailed, RoomCreationFailed
from safety.logging import LogContext, log_action, log_error
from state.registry import TransientRoomRegistry
from utils import timers

__all__ = [
    "CONFINEMENT_ROOM_NAME",
    "ABDUCTION_ROOM_NAME",
    "RoomLifecycle",
    "human_occupants",
]

logger = logging.getLogger(__name__)

CONFINEMENT_ROOM_NAME = "punishment-room"
ABDUCTION_ROOM_NAME = "kidnapping-room"


def human_occupants(room: discord.abc.GuildChannel) -> List[discord.Member]:
    return [member for member in getattr(room, "members", []) if not member.bot]


def _current_category(member: discord.Member) -> Optional[discord.CategoryChannel]:
    voice = getattr(member, "voice", None)
    channel = getattr(voice, "channel", None)
    return getattr(channel, "category", None)


def confinement_overwrites(
    guild: discord.Guild,
    target: discord.Member,
) -> dict:
    overwrites = {
        guild.default_role: discord.PermissionOverwrite(connect=False, speak=False),
        target: discord.PermissionOverwrite(connect=True, speak=False),
    }
    if guild.me is not None:
        overwrites[guild.me] = discord.PermissionOverwrite(
            connect=True,
            speak=True,
            move_members=True,
            mute_members=True,
            manage_channels=True,
        )
    return overwrites


class RoomLifecycle:
    def __init__(self, transient_rooms: TransientRoomRegistry) -> None:
        self.transient_rooms = transient_rooms

    async def create_confinement_room(self, target: discord.Member) -> discord.VoiceChannel:
        guild = target.guild
        try:
            room = await guild.create_voice_channel(
                CONFINEMENT_ROOM_NAME,
                overwrites=confinement_overwrites(guild, target),
                category=_current_category(target),
                reason=f"Confinement room for {target.display_name}",
            )
        except discord.HTTPException as exc:
            log_error(
                "Failed to create confinement room",
                context=LogContext(target_id=target.id, guild_id=guild.id),
                error=exc,
            )
            raise RoomCreationFailed(f"Could not create confinement room: {exc}") from exc
        log_action(
            "Created confinement room",
            context=LogContext(target_id=target.id, guild_id=guild.id, room_id=room.id),
            action="create_confinement_room",
        )
        return room

    async def create_transient_room(
        self,
        guild: discord.Guild,
        *,
        category: Optional[discord.CategoryChannel] = None,
    ) -> discord.VoiceChannel:
        try:
            room = await guild.create_voice_channel(
                ABDUCTION_ROOM_NAME,
                category=category,
                reason="Temporary kidnapping room",
            )
        except discord.HTTPException as exc:
            log_error(
                "Failed to create kidnapping room",
                context=LogContext(guild_id=guild.id),
                error=exc,
            )
            raise RoomCreationFailed(f"Could not create kidnapping room: {exc}") from exc

        entry = self.transient_rooms.register(room.id, guild.id)
        timers.schedule_after(
            entry.cleanup_window.remaining(),
            lambda: self.delete_room_if_empty(room),
            name=f"transient-room-cleanup-{room.id}",
        )
        log_action(
            "Created kidnapping room",
            context=LogContext(guild_id=guild.id, room_id=room.id),
            action="create_transient_room",
            cleanup_delay=entry.cleanup_window.duration,
        )
        return room

    async def _move(self, member: discord.Member, room: Optional[discord.abc.Connectable]) -> None:
        room_id = getattr(room, "id", None)
        try:
            await member.move_to(room, reason="KidnapBot move")
        except discord.HTTPException as exc:
            raise MoveFailed(member.id, room_id, str(exc)) from exc

    async def move_member(self, member: discord.Member, room: Optional[discord.abc.Connectable]) -> bool:
        try:
            await self._move(member, room)
        except MoveFailed as exc:
            log_error(
                "Failed to move user",
                context=LogContext(target_id=member.id, room_id=exc.room_id),
                error=exc,
            )
            return False
        log_action(
            "Moved user",
            context=LogContext(target_id=member.id, room_id=getattr(room, "id", None)),
            action="move",
        )
        return True

    async def set_mute(self, member: discord.Member, muted: bool) -> bool:
        """Server-mute or unmute a member. Only works while they are in voice."""
        try:
            await member.edit(mute=muted, reason="KidnapBot punishment")
        except discord.HTTPException as exc:
            log_error(
                "Failed to change mute state",
                context=LogContext(target_id=member.id),
                error=exc,
                muted=muted,
            )
            return False
        return True

    async def delete_room(self, room: discord.abc.GuildChannel) -> bool:
        """Delete a room unconditionally. Returns False if it was already gone."""
        try:
            await room.delete(reason="KidnapBot cleanup")
        except discord.NotFound:
            logger.debug("Room %s already deleted", room.id)
            return False
        except discord.HTTPException as exc:
            log_error(
                "Failed to delete room",
                context=LogContext(room_id=room.id),
                error=exc,
            )
            return False
        log_action("Deleted room", context=LogContext(room_id=room.id), action="delete_room")
        return True

    async def delete_room_if_empty(self, room: discord.abc.GuildChannel) -> bool:
        """Delete a tracked abduction room if nobody (bots aside) is left in it.

        Safe to call from the timer, the membership event path, and the
        post-sequence cleanup at the same time: only the first caller to
        claim the room issues the delete.
        """
        room_id = room.id
        entry = self.transient_rooms.get(room_id)
        if entry is None or not self.transient_rooms.is_live(room_id):
            return False
        if human_occupants(room):
            return False
        if not self.transient_rooms.begin_deletion(room_id):
            return False
        try:
            deleted = await self.delete_room(room)
        finally:
            self.transient_rooms.remove(room_id)
        if deleted:
            log_action(
                "Kidnapping room cleaned up",
                context=LogContext(guild_id=entry.guild_id, room_id=room_id),
                action="cleanup",
                deadline_passed=entry.cleanup_window.expired(),
            )
        return deleted
