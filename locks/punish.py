"""
Punish — Voice Confinement Lock

THIS MODULE DEFINES USER COMMANDS.

Punishment locks a user in their own room: nobody else may enter, the
user may enter but not speak, and the bot keeps control. While locked,
any move out of the room is undone by the event reactor.

Commands in this module:
- punish {user}: Create a confinement room, mute the user, move them in
- unpunish {user}: Lift the mute and delete the confinement room

Registered explicitly via `register(bot, session)`.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord.ext import commands

from safety import controls
from safety.errors import AlreadyPunished, NotPunished, RoomCreationFailed
from safety.logging import LogContext, log_punishment
from state.session import BotSession


def _is_in_voice(member: discord.Member) -> bool:
    voice = getattr(member, "voice", None)
    return voice is not None and voice.channel is not None


async def punish_member(
    session: BotSession,
    member: discord.Member,
    *,
    actor_id: Optional[int] = None,
) -> discord.VoiceChannel:
    """Confine a member. Raises AlreadyPunished or RoomCreationFailed.

    No registry entry is written unless the room exists.
    """
    current = session.punishments.lookup(member.id)
    if current is not None:
        raise AlreadyPunished(member.id, current)

    room = await session.rooms.create_confinement_room(member)
    try:
        session.punishments.punish(member.id, room.id)
    except AlreadyPunished:
        await session.rooms.delete_room(room)
        raise

    if _is_in_voice(member):
        await session.rooms.move_member(member, room)
        await session.rooms.set_mute(member, True)

    log_punishment(
        "User punished",
        context=LogContext(actor_id=actor_id, target_id=member.id, guild_id=member.guild.id, room_id=room.id),
        punishment="punish",
    )
    return room


async def unpunish_member(
    session: BotSession,
    member: discord.Member,
    *,
    actor_id: Optional[int] = None,
) -> int:
    """Release a member and delete their room. Raises NotPunished.

    A member who is not in voice keeps their server mute until they next
    join; the event reactor lifts it then.
    """
    room_id = session.punishments.unpunish(member.id)

    if not (_is_in_voice(member) and await session.rooms.set_mute(member, False)):
        session.punishments.defer_unmute(member.id)

    room = member.guild.get_channel(room_id)
    if room is not None:
        await session.rooms.delete_room(room)

    log_punishment(
        "User unpunished",
        context=LogContext(actor_id=actor_id, target_id=member.id, guild_id=member.guild.id, room_id=room_id),
        punishment="unpunish",
    )
    return room_id


def register(bot: commands.Bot, session: BotSession) -> None:
    @bot.command(name="punish")
    @commands.guild_only()
    @controls.can_punish()
    async def punish_cmd(ctx: commands.Context, *, target: Optional[str] = None) -> None:
        member = await controls.resolve_member(ctx, target)
        if member is None:
            await controls.reply_transient(ctx, "Please mention a user to punish!", ttl=session.reply_ttl)
            return
        try:
            await punish_member(session, member, actor_id=ctx.author.id)
        except AlreadyPunished:
            await controls.reply_transient(ctx, f"{member.display_name} is already punished!", ttl=session.reply_ttl)
            return
        except RoomCreationFailed:
            await controls.reply_transient(ctx, "Failed to create punishment channel!", ttl=session.reply_ttl)
            return
        await ctx.reply(f"{member.display_name} has been punished!", mention_author=False)

    @bot.command(name="unpunish")
    @commands.guild_only()
    @controls.can_punish()
    async def unpunish_cmd(ctx: commands.Context, *, target: Optional[str] = None) -> None:
        member = await controls.resolve_member(ctx, target)
        if member is None:
            await controls.reply_transient(ctx, "Please mention a user to unpunish!", ttl=session.reply_ttl)
            return
        try:
            await unpunish_member(session, member, actor_id=ctx.author.id)
        except NotPunished:
            await controls.reply_transient(ctx, "This user is not punished!", ttl=session.reply_ttl)
            return
        await ctx.reply(f"{member.display_name} has been unpunished!", mention_author=False)
