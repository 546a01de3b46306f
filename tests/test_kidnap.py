from __future__ import annotations

import asyncio
from pathlib import Path

from chaos.kidnap import abduct, kidnap_candidates
from fakes import StubGuild, StubMember, StubVoiceChannel, forbidden, wait_until
from state.session import BotSession
from utils.config import Settings


def _session(tmp_path: Path, cleanup_delay: float = 30.0) -> BotSession:
    (tmp_path / "scream.mp3").write_bytes(b"\x00")
    settings = Settings(discord_token="token", sounds_dir=tmp_path, cleanup_delay=cleanup_delay)
    return BotSession.build(settings, source_factory=lambda path: path)


def test_full_kidnapping_returns_user_and_removes_room(tmp_path: Path) -> None:
    async def scenario() -> None:
        session = _session(tmp_path)
        guild = StubGuild()
        origin = StubVoiceChannel(1, guild)
        member = StubMember(10, guild)
        member.place(origin)

        task = asyncio.create_task(abduct(session, member, origin, actor_id=42))
        await wait_until(lambda: guild.voice_client is not None and guild.voice_client.is_playing())

        room = guild.created[0]
        assert member.voice.channel is room
        assert guild.me in room.members

        guild.voice_client.finish()
        assert await asyncio.wait_for(task, timeout=1) is True

        assert member.moves == [room, origin]
        assert member.voice.channel is origin
        assert room.deleted is True
        assert room.delete_calls == 1
        assert room.id not in session.transient_rooms
        assert guild.voice_client is None

    asyncio.run(scenario())


def test_kidnapping_without_clips_still_returns_user(tmp_path: Path) -> None:
    async def scenario() -> None:
        settings = Settings(discord_token="token", sounds_dir=tmp_path / "empty")
        session = BotSession.build(settings, source_factory=lambda path: path)
        guild = StubGuild()
        origin = StubVoiceChannel(1, guild)
        member = StubMember(10, guild)
        member.place(origin)

        assert await asyncio.wait_for(abduct(session, member, origin), timeout=1) is True

        assert member.voice.channel is origin
        assert guild.created[0].deleted is True
        assert guild.connect_calls == 0

    asyncio.run(scenario())


def test_room_creation_failure_aborts_sequence(tmp_path: Path) -> None:
    async def scenario() -> None:
        session = _session(tmp_path)
        guild = StubGuild()
        guild.create_error = forbidden()
        origin = StubVoiceChannel(1, guild)
        member = StubMember(10, guild)
        member.place(origin)

        assert await abduct(session, member, origin) is False
        assert member.moves == []
        assert guild.connect_calls == 0

    asyncio.run(scenario())


def test_failed_return_move_leaves_room_to_timer(tmp_path: Path) -> None:
    async def scenario() -> None:
        session = _session(tmp_path, cleanup_delay=0.05)
        guild = StubGuild()
        origin = StubVoiceChannel(1, guild)
        member = StubMember(10, guild)
        member.place(origin)

        task = asyncio.create_task(abduct(session, member, origin))
        await wait_until(lambda: guild.voice_client is not None and guild.voice_client.is_playing())
        room = guild.created[0]
        member.fail_moves = True
        guild.voice_client.finish()
        await asyncio.wait_for(task, timeout=1)

        # Still inside, so neither the sequence nor the timer may delete it.
        assert member.voice.channel is room
        assert room.deleted is False
        await asyncio.sleep(0.1)
        assert room.deleted is False

        member.place(None)
        await session.rooms.delete_room_if_empty(room)
        assert room.deleted is True

    asyncio.run(scenario())


def test_kidnap_candidates_skip_bots() -> None:
    guild = StubGuild()
    room = StubVoiceChannel(1, guild)
    human = StubMember(10, guild)
    human.place(room)
    guild.me.place(room)

    assert kidnap_candidates(room) == [human]
