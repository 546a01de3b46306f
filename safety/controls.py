"""
Safety Controls — Help, Authorization, and Command Error Handling

THIS MODULE DEFINES THE HELP COMMAND AND THE GLOBAL COMMAND ERROR HANDLER.

Commands:
- help: List every KidnapBot command

Shared helpers:
- Transient (self-deleting) replies for user-facing errors
- Member resolution from mentions or names
- Permission checks for voice-control commands

Unknown commands are ignored without a reply.
"""

from __future__ import annotations

import logging
from typing import Optional

import discord
from discord.ext import commands

from safety.logging import LogContext, log_error
from state.session import BotSession

logger = logging.getLogger(__name__)

DEFAULT_REPLY_TTL_SECONDS = 10.0

HELP_ENTRIES = (
    ("help", "Show this message."),
    ("kidnap @user", "Drag a user into a kidnapping room, play a sound, bring them back."),
    ("randomkidnap", "Kidnap a random member of your voice channel."),
    ("punish @user", "Lock a user in a muted punishment room."),
    ("unpunish @user", "Release a punished user."),
)


def build_help_text(prefix: str) -> str:
    lines = ["**KidnapBot commands**"]
    for usage, description in HELP_ENTRIES:
        lines.append(f"`{prefix}{usage}`: {description}")
    return "\n".join(lines)


def _context_prefix(ctx: commands.Context) -> str:
    prefix = getattr(ctx, "clean_prefix", None) or getattr(ctx, "prefix", None)
    return prefix or "!"


def can_control_voice():
    return commands.has_guild_permissions(move_members=True)


def can_punish():
    return commands.has_guild_permissions(move_members=True, mute_members=True)


async def reply_transient(ctx: commands.Context, content: str, *, ttl: float = DEFAULT_REPLY_TTL_SECONDS) -> None:
    try:
        await ctx.reply(content, delete_after=ttl, mention_author=False)
    except discord.HTTPException as exc:
        log_error(
            "Failed to send reply",
            context=LogContext(actor_id=ctx.author.id, command=getattr(ctx.command, "name", None)),
            error=exc,
        )


async def resolve_member(ctx: commands.Context, target: Optional[str] = None) -> Optional[discord.Member]:
    guild = ctx.guild
    if guild is not None:
        for mentioned in ctx.message.mentions:
            member = guild.get_member(mentioned.id)
            if member is not None:
                return member
    if not target:
        return None
    try:
        return await commands.MemberConverter().convert(ctx, target)
    except commands.BadArgument:
        return None


def register(bot: commands.Bot, session: BotSession) -> None:
    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context) -> None:
        await ctx.reply(build_help_text(_context_prefix(ctx)), mention_author=False)

    @bot.listen("on_command_error")
    async def command_error_listener(ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.NoPrivateMessage):
            await reply_transient(ctx, "This command only works in a server.", ttl=session.reply_ttl)
            return
        if isinstance(error, (commands.MissingPermissions, commands.CheckFailure)):
            await reply_transient(ctx, "You are not allowed to do that.", ttl=session.reply_ttl)
            return
        original = getattr(error, "original", error)
        log_error(
            "Command failed",
            context=LogContext(
                actor_id=ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                command=getattr(ctx.command, "name", None),
            ),
            error=original,
        )
