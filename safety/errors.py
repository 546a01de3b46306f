"""
KidnapBot Errors — Shared Exception Taxonomy

THIS MODULE DEFINES NO COMMANDS.

Platform failures are translated into these at the call site.
Only ConfigurationMissing is fatal; everything else is logged or
reported back to the requester as a transient reply.
"""

from __future__ import annotations

from typing import Optional


class KidnapBotError(Exception):
    """Base class for every error raised by KidnapBot itself."""


class ConfigurationMissing(KidnapBotError):
    def __init__(self, setting: str) -> None:
        super().__init__(f"{setting} is required in environment variables")
        self.setting = setting


class RoomCreationFailed(KidnapBotError):
    pass


class MoveFailed(KidnapBotError):
    def __init__(self, member_id: int, room_id: Optional[int], reason: str = "") -> None:
        message = f"Failed to move user {member_id} to room {room_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.member_id = member_id
        self.room_id = room_id


class AlreadyPunished(KidnapBotError):
    def __init__(self, user_id: int, room_id: int) -> None:
        super().__init__(f"User {user_id} is already punished in room {room_id}")
        self.user_id = user_id
        self.room_id = room_id


class NotPunished(KidnapBotError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} is not punished")
        self.user_id = user_id


class PlaybackUnavailable(KidnapBotError):
    pass


class PlaybackError(KidnapBotError):
    """Transport failure; callers treat it as end of playback."""


class TransportTimeout(PlaybackError):
    pass


class TransportError(PlaybackError):
    pass
