"""
KidnapBot — Voice Prank and Confinement Discord Bot (Main Entry Point)

This file initializes and runs KidnapBot.

Responsibilities of this file ONLY:
- Create the Discord client/bot instance
- Load configuration and environment variables
- Build the shared BotSession
- Explicitly register command suites from modules
- Forward voice and channel events to the session
- Start the bot

IMPORTANT ARCHITECTURE RULES:
- Modules do NOT self-register.
- All command registration is explicit and occurs here.
- All behavior logic lives in modules, not in this file.

KidnapBot lets authorized members:
- Kidnap someone into a throwaway room while a sound plays, then return them
- Lock someone in a muted punishment room until released
"""

from __future__ import annotations

import logging
import sys

import discord
from discord.ext import commands
from dotenv import load_dotenv

from chaos import kidnap
from locks import punish
from safety import controls as safety_controls
from safety.errors import ConfigurationMissing
from state.session import BotSession
from utils.config import Settings
from voice.reactor import MembershipEvent

logger = logging.getLogger("kidnapbot")


def _build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    intents.voice_states = True
    return intents


def _build_bot(settings: Settings) -> commands.Bot:
    intents = _build_intents()
    return commands.Bot(
        command_prefix=settings.command_prefix,
        intents=intents,
        help_command=None,
        case_insensitive=True,
    )


def _register_modules(bot: commands.Bot, session: BotSession) -> None:
    safety_controls.register(bot, session)
    kidnap.register(bot, session)
    punish.register(bot, session)


def _register_listeners(bot: commands.Bot, session: BotSession) -> None:
    @bot.listen("on_voice_state_update")
    async def voice_state_listener(
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        session.reactor.submit(MembershipEvent.from_voice_states(member, before, after))

    @bot.listen("on_guild_channel_delete")
    async def channel_delete_listener(channel: discord.abc.GuildChannel) -> None:
        session.forget_room(channel.id)


def _start_background_systems(session: BotSession) -> None:
    session.reactor.start()
    clips = session.playback.library.clips()
    logger.info("Found %s playable clips in %s", len(clips), session.playback.library.root)


def main() -> None:
    load_dotenv()

    try:
        settings = Settings.load()
    except ConfigurationMissing as exc:
        logging.basicConfig(level=logging.INFO)
        logger.critical("Failed to start bot: %s", exc)
        sys.exit(1)

    logging.basicConfig(level=settings.log_level)

    bot = _build_bot(settings)
    session = BotSession.build(settings)

    _register_modules(bot, session)
    _register_listeners(bot, session)

    @bot.event
    async def on_ready() -> None:
        logger.info("KidnapBot connected as %s", bot.user)
        _start_background_systems(session)

    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
