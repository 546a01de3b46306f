"""
Event Reactor — Voice Membership Enforcement and Cleanup

THIS MODULE DEFINES BACKGROUND TASKS ONLY.

Voice state updates are queued and processed one at a time by a single
worker task. For each event:
- A punished user seen anywhere but their confinement room is moved back
- A released user who still carries a punishment mute is unmuted on join
- An abduction room that lost its last human is cleaned up
- Any room left with at most one occupant prompts playback to disconnect

No commands are defined here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import discord

from safety.logging import LogContext, log_error, log_punishment
from state.registry import PunishmentRegistry, TransientRoomRegistry
from voice.playback import PlaybackCoordinator
from voice.rooms import RoomLifecycle, human_occupants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipEvent:
    member: discord.Member
    before: Optional[discord.abc.GuildChannel]
    after: Optional[discord.abc.GuildChannel]

    @property
    def moved(self) -> bool:
        before_id = self.before.id if self.before is not None else None
        after_id = self.after.id if self.after is not None else None
        return before_id != after_id

    @classmethod
    def from_voice_states(
        cls,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> "MembershipEvent":
        return cls(member=member, before=before.channel, after=after.channel)


class EventReactor:
    def __init__(
        self,
        punishments: PunishmentRegistry,
        transient_rooms: TransientRoomRegistry,
        rooms: RoomLifecycle,
        playback: PlaybackCoordinator,
    ) -> None:
        self.punishments = punishments
        self.transient_rooms = transient_rooms
        self.rooms = rooms
        self.playback = playback
        self._queue: "asyncio.Queue[MembershipEvent]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, event: MembershipEvent) -> None:
        self._queue.put_nowait(event)

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="event-reactor")

    async def stop(self) -> None:
        worker = self._worker
        self._worker = None
        if worker is None:
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

    async def drain(self) -> None:
        """Wait until every submitted event has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            except Exception as exc:
                log_error(
                    "Failed to handle voice state update",
                    context=LogContext(target_id=event.member.id, guild_id=event.member.guild.id),
                    error=exc,
                )
            finally:
                self._queue.task_done()

    async def handle(self, event: MembershipEvent) -> None:
        if not event.moved:
            return
        await self._enforce_confinement(event)
        if event.after is not None:
            await self._lift_deferred_unmute(event.member)
            self.transient_rooms.mark_occupied(event.after.id)
        if event.before is not None:
            await self._handle_departure(event.before)

    async def _enforce_confinement(self, event: MembershipEvent) -> bool:
        member = event.member
        if event.after is None:
            return False
        room_id = self.punishments.confinement_room_for(member.id, event.after.id)
        if room_id is None:
            return False

        room = member.guild.get_channel(room_id)
        if room is None:
            released = self.punishments.release_room(room_id)
            logger.warning("Confinement room %s is gone; released %s", room_id, released)
            return False

        log_punishment(
            "Dragging punished user back to confinement",
            context=LogContext(target_id=member.id, guild_id=member.guild.id, room_id=room_id),
            punishment="reenforce",
            escaped_to=event.after.id,
        )
        return await self.rooms.move_member(member, room)

    async def _lift_deferred_unmute(self, member: discord.Member) -> bool:
        if not self.punishments.has_deferred_unmute(member.id):
            return False
        if not await self.rooms.set_mute(member, False):
            return False
        self.punishments.clear_deferred_unmute(member.id)
        log_punishment(
            "Lifted mute left over from a punishment",
            context=LogContext(target_id=member.id, guild_id=member.guild.id),
            punishment="unmute",
        )
        return True

    async def _handle_departure(self, room: discord.abc.GuildChannel) -> None:
        if len(room.members) <= 1:
            await self.playback.consider_disconnect(room)
        if room.id in self.transient_rooms and not human_occupants(room):
            self.transient_rooms.mark_vacated(room.id)
            await self.rooms.delete_room_if_empty(room)
