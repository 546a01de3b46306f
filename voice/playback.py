"""
Playback — Single-Slot Voice Clip Player

THIS MODULE DEFINES NO COMMANDS.

Responsibilities:
- Discover playable clips in the sounds directory
- Join a room and play one random clip into it
- Hand callers a completion signal that always resolves
- Leave rooms that have emptied out around the bot

There is exactly one playback slot. A new request tears down whatever
is playing; nothing is queued.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import discord

from safety.errors import PlaybackError, PlaybackUnavailable, TransportError, TransportTimeout
from safety.logging import LogContext, log_action, log_error
from utils import timers

__all__ = [
    "SUPPORTED_FORMATS",
    "ClipLibrary",
    "PlaybackCoordinator",
    "PlaybackSession",
]

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = (".mp3", ".wav", ".ogg")
DEFAULT_CONNECT_TIMEOUT_SECONDS = 30.0

SourceFactory = Callable[[str], discord.AudioSource]


class ClipLibrary:
    """Audio files on disk. The directory is re-read on every pick."""

    def __init__(self, root: Path, formats: Sequence[str] = SUPPORTED_FORMATS) -> None:
        self.root = Path(root)
        self.formats = tuple(fmt.lower() for fmt in formats)

    def clips(self) -> List[Path]:
        if not self.root.is_dir():
            logger.error("Sounds directory %s does not exist", self.root)
            return []
        return sorted(
            path
            for path in self.root.iterdir()
            if path.is_file() and path.suffix.lower() in self.formats
        )

    def pick(self) -> Path:
        clips = self.clips()
        if not clips:
            raise PlaybackUnavailable(f"No sound files found in {self.root}")
        return random.choice(clips)


@dataclass
class PlaybackSession:
    room: discord.VoiceChannel
    voice_client: discord.VoiceClient
    clip: Path
    done: asyncio.Future

    def resolve(self) -> None:
        if not self.done.done():
            self.done.set_result(None)


def _resolved_future() -> asyncio.Future:
    done = asyncio.get_running_loop().create_future()
    done.set_result(None)
    return done


class PlaybackCoordinator:
    def __init__(
        self,
        library: ClipLibrary,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        source_factory: Optional[SourceFactory] = None,
    ) -> None:
        self.library = library
        self.connect_timeout = connect_timeout
        self._source_factory = source_factory or discord.FFmpegPCMAudio
        self._session: Optional[PlaybackSession] = None

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    async def play(
        self,
        room: discord.VoiceChannel,
        clip: Optional[Path] = None,
    ) -> asyncio.Future:
        """Start playing into `room` and return a future resolved when it ends.

        Connection timeouts and transport errors also resolve the future;
        they are logged, not raised.
        """
        if clip is None:
            try:
                clip = self.library.pick()
            except PlaybackUnavailable as exc:
                logger.warning("%s", exc)
                return _resolved_future()

        await self._teardown_current()
        await self._disconnect_guild(room.guild)

        context = LogContext(guild_id=room.guild.id, room_id=room.id)
        try:
            voice_client = await self._connect(room)
        except PlaybackError as exc:
            log_error("Voice connection failed", context=context, error=exc)
            return _resolved_future()

        loop = asyncio.get_running_loop()
        session = PlaybackSession(room=room, voice_client=voice_client, clip=clip, done=loop.create_future())
        self._session = session

        def _after(error: Optional[Exception]) -> None:
            # Runs on the audio player thread.
            loop.call_soon_threadsafe(self._on_player_finished, session, error)

        try:
            voice_client.play(self._source_factory(str(clip)), after=_after)
        except discord.ClientException as exc:
            self._on_player_finished(session, exc)
            return session.done

        log_action("Playing clip", context=context, action="play", clip=clip.name)
        return session.done

    async def _connect(self, room: discord.VoiceChannel) -> discord.VoiceClient:
        try:
            return await room.connect(timeout=self.connect_timeout, reconnect=False, self_deaf=False)
        except asyncio.TimeoutError as exc:
            raise TransportTimeout(
                f"Voice connection to {room.id} not ready after {self.connect_timeout}s"
            ) from exc
        except (discord.DiscordException, RuntimeError) as exc:
            raise TransportError(f"Voice connection to {room.id} failed: {exc}") from exc

    def _on_player_finished(self, session: PlaybackSession, error: Optional[Exception]) -> None:
        if error is not None:
            log_error(
                "Playback stopped with an error",
                context=LogContext(guild_id=session.room.guild.id, room_id=session.room.id),
                error=error,
            )
        session.resolve()
        if session is self._session:
            timers.spawn(
                self.consider_disconnect(session.room),
                name=f"playback-disconnect-{session.room.id}",
            )

    async def consider_disconnect(self, room: discord.abc.GuildChannel) -> bool:
        """Leave `room` if the bot is at most keeping itself company there."""
        if len(room.members) > 1:
            return False

        session = self._session
        if session is not None and session.room.id == room.id:
            self._session = None
            session.resolve()
            await self._teardown(session.voice_client)
            return True

        voice_client = getattr(room.guild, "voice_client", None)
        channel = getattr(voice_client, "channel", None)
        if voice_client is not None and channel is not None and channel.id == room.id:
            await self._teardown(voice_client)
            return True
        return False

    async def stop(self) -> None:
        await self._teardown_current()

    async def _teardown_current(self) -> None:
        session = self._session
        self._session = None
        if session is None:
            return
        session.resolve()
        await self._teardown(session.voice_client)

    async def _disconnect_guild(self, guild: discord.Guild) -> None:
        # A client still in its handshake is already registered on the guild
        # but not yet connected. It blocks a new connect all the same.
        voice_client = guild.voice_client
        if voice_client is not None:
            await self._teardown(voice_client)

    async def _teardown(self, voice_client: discord.VoiceClient) -> None:
        if voice_client.is_playing():
            voice_client.stop()
        try:
            await voice_client.disconnect(force=True)
        except discord.DiscordException as exc:
            log_error("Failed to disconnect from voice", error=exc)
