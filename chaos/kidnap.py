"""
Kidnap — Abduction Prank Commands

THIS MODULE DEFINES USER COMMANDS.

Commands in this module:
- kidnap {user}: Abduct a user into a throwaway room while a clip plays
- randomkidnap: Abduct a random member of the caller's voice channel

The abduction sequence:
create room -> move target in -> play clip -> move target back -> clean up

Steps run strictly in that order and are attempted once. A failed move
does not stop the sequence; a failed room creation does. Rooms left
behind are swept by the fallback cleanup timer.

All commands are registered explicitly via `register(bot, session)`.
"""

from __future__ import annotations

import random
from typing import List, Optional

import discord
from discord.ext import commands

from safety import controls
from safety.errors import RoomCreationFailed
from safety.logging import LogContext, log_action
from state.session import BotSession


def kidnap_candidates(channel: discord.abc.GuildChannel) -> List[discord.Member]:
    return [member for member in channel.members if not member.bot]


async def abduct(
    session: BotSession,
    member: discord.Member,
    origin: Optional[discord.abc.GuildChannel],
    *,
    actor_id: Optional[int] = None,
) -> bool:
    """Run one abduction. Returns False if the kidnapping room could not be created."""
    context = LogContext(actor_id=actor_id, target_id=member.id, guild_id=member.guild.id)
    try:
        room = await session.rooms.create_transient_room(
            member.guild,
            category=getattr(origin, "category", None),
        )
    except RoomCreationFailed:
        return False
    context.room_id = room.id

    if await session.rooms.move_member(member, room):
        session.transient_rooms.mark_occupied(room.id)

    finished = await session.playback.play(room)
    await finished

    if origin is not None:
        await session.rooms.move_member(member, origin)

    await session.playback.consider_disconnect(room)
    await session.rooms.delete_room_if_empty(room)
    log_action("Kidnapping finished", context=context, action="kidnap")
    return True


def register(bot: commands.Bot, session: BotSession) -> None:
    @bot.command(name="kidnap")
    @commands.guild_only()
    @controls.can_control_voice()
    async def kidnap_cmd(ctx: commands.Context, *, target: Optional[str] = None) -> None:
        member = await controls.resolve_member(ctx, target)
        if member is None:
            await controls.reply_transient(ctx, "Please mention a user to kidnap!", ttl=session.reply_ttl)
            return
        if member.bot:
            await controls.reply_transient(ctx, "Bots cannot be kidnapped!", ttl=session.reply_ttl)
            return
        voice = member.voice
        if voice is None or voice.channel is None:
            await controls.reply_transient(ctx, "Target user is not in a voice channel!", ttl=session.reply_ttl)
            return
        if session.punishments.is_punished(member.id):
            await controls.reply_transient(ctx, f"{member.display_name} is being punished!", ttl=session.reply_ttl)
            return
        if not await abduct(session, member, voice.channel, actor_id=ctx.author.id):
            await controls.reply_transient(ctx, "Failed to create the kidnapping room!", ttl=session.reply_ttl)

    @bot.command(name="randomkidnap")
    @commands.guild_only()
    @controls.can_control_voice()
    async def randomkidnap_cmd(ctx: commands.Context) -> None:
        voice = getattr(ctx.author, "voice", None)
        if voice is None or voice.channel is None:
            await controls.reply_transient(ctx, "You need to be in a voice channel!", ttl=session.reply_ttl)
            return
        candidates = [
            member
            for member in kidnap_candidates(voice.channel)
            if not session.punishments.is_punished(member.id)
        ]
        if not candidates:
            await controls.reply_transient(ctx, "No one to kidnap!", ttl=session.reply_ttl)
            return
        member = random.choice(candidates)
        if not await abduct(session, member, voice.channel, actor_id=ctx.author.id):
            await controls.reply_transient(ctx, "Failed to create the kidnapping room!", ttl=session.reply_ttl)
