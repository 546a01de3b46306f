from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from fakes import StubGuild, StubMember, StubVoiceChannel, wait_until
from safety.errors import PlaybackUnavailable
from voice.playback import ClipLibrary, PlaybackCoordinator


def _library(tmp_path: Path, *names: str) -> ClipLibrary:
    for name in names:
        (tmp_path / name).write_bytes(b"\x00")
    return ClipLibrary(tmp_path)


def _coordinator(library: ClipLibrary) -> PlaybackCoordinator:
    return PlaybackCoordinator(library, connect_timeout=0.5, source_factory=lambda path: f"source:{path}")


def test_library_filters_by_extension(tmp_path: Path) -> None:
    library = _library(tmp_path, "a.mp3", "b.WAV", "c.ogg", "notes.txt", "d.flac")

    assert [path.name for path in library.clips()] == ["a.mp3", "b.WAV", "c.ogg"]


def test_library_rereads_directory(tmp_path: Path) -> None:
    library = _library(tmp_path)
    assert library.clips() == []

    (tmp_path / "late.mp3").write_bytes(b"\x00")

    assert library.pick().name == "late.mp3"


def test_missing_directory_means_no_clips(tmp_path: Path) -> None:
    library = ClipLibrary(tmp_path / "nope")

    assert library.clips() == []
    with pytest.raises(PlaybackUnavailable):
        library.pick()


def test_play_with_empty_library_resolves_without_connecting(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        room = StubVoiceChannel(1, guild)
        done = await _coordinator(_library(tmp_path)).play(room)

        assert done.done()
        assert guild.connect_calls == 0

    asyncio.run(scenario())


def test_play_resolves_when_clip_ends(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        room = StubVoiceChannel(1, guild)
        StubMember(10, guild).place(room)
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))

        done = await coordinator.play(room)
        client = guild.voice_client
        assert client.sources == [f"source:{tmp_path / 'scream.mp3'}"]
        assert not done.done()

        client.finish()
        await asyncio.wait_for(done, timeout=1)

        # Target still in the room, so the bot stays connected.
        assert client.is_connected()

    asyncio.run(scenario())


def test_play_disconnects_when_room_emptied(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        room = StubVoiceChannel(1, guild)
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))

        done = await coordinator.play(room)
        client = guild.voice_client
        client.finish(RuntimeError("decoder died"))
        await asyncio.wait_for(done, timeout=1)
        await wait_until(lambda: not client.is_connected())

        assert coordinator.session is None
        assert guild.voice_client is None

    asyncio.run(scenario())


def test_connection_timeout_counts_as_finished(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        room = StubVoiceChannel(1, guild)
        room.connect_error = asyncio.TimeoutError()
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))

        done = await coordinator.play(room)

        assert done.done()
        assert coordinator.session is None

    asyncio.run(scenario())


def test_newest_request_wins(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        first_room = StubVoiceChannel(1, guild)
        second_room = StubVoiceChannel(2, guild)
        StubMember(10, guild).place(first_room)
        StubMember(11, guild).place(second_room)
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))

        first = await coordinator.play(first_room)
        first_client = guild.voice_client
        second = await coordinator.play(second_room)

        assert first.done()
        assert not second.done()
        assert first_client.is_connected() is False
        assert guild.voice_client is not first_client
        assert coordinator.session.room is second_room

    asyncio.run(scenario())


def test_consider_disconnect_keeps_busy_room(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        room = StubVoiceChannel(1, guild)
        member = StubMember(10, guild)
        member.place(room)
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))
        done = await coordinator.play(room)

        assert await coordinator.consider_disconnect(room) is False

        member.place(None)
        assert await coordinator.consider_disconnect(room) is True
        assert done.done()
        assert guild.voice_client is None

    asyncio.run(scenario())


def test_newest_request_wins_while_first_is_still_connecting(tmp_path: Path) -> None:
    async def scenario() -> None:
        guild = StubGuild()
        first_room = StubVoiceChannel(1, guild)
        second_room = StubVoiceChannel(2, guild)
        StubMember(10, guild).place(first_room)
        StubMember(11, guild).place(second_room)
        first_room.connect_gate = asyncio.Event()
        coordinator = _coordinator(_library(tmp_path, "scream.mp3"))

        first_task = asyncio.create_task(coordinator.play(first_room))
        await wait_until(lambda: guild.voice_client is not None)
        handshaking = guild.voice_client
        assert handshaking.is_connected() is False

        second = await coordinator.play(second_room)

        assert handshaking.disconnect_calls == 1
        assert guild.voice_client.channel is second_room
        assert guild.voice_client.is_playing()
        assert coordinator.session.room is second_room
        assert not second.done()

        first_room.connect_gate.set()
        first = await asyncio.wait_for(first_task, timeout=1)

        assert first.done()
        assert coordinator.session.room is second_room
        assert guild.me in second_room.members

    asyncio.run(scenario())
