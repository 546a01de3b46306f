"""
Registries — Punishment and Transient Room Tracking

THIS MODULE DEFINES NO COMMANDS.

This module stores which users are confined and which rooms were created
for one-shot abductions.

- Map punished users to their confinement room
- Track abduction rooms and their lifecycle state
- Tag rooms as confinement, abduction, or untracked

State is process-lifetime only. Nothing here talks to Discord.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set

from safety.errors import AlreadyPunished, NotPunished
from utils.timers import TimedWindow

DEFAULT_CLEANUP_DELAY_SECONDS = 30.0


class RoomKind(str, Enum):
    CONFINEMENT = "confinement"
    ABDUCTION = "abduction"
    NONE = "none"


class RoomState(str, Enum):
    CREATED = "created"
    OCCUPIED = "occupied"
    VACATED = "vacated"
    DELETED = "deleted"


class PunishmentRegistry:
    """Source of truth for "is this user currently punished"."""

    def __init__(self) -> None:
        self._rooms_by_user: Dict[int, int] = {}
        self._pending_unmute: Set[int] = set()

    def punish(self, user_id: int, room_id: int) -> None:
        current = self._rooms_by_user.get(user_id)
        if current is not None:
            raise AlreadyPunished(user_id, current)
        self._rooms_by_user[user_id] = room_id
        self._pending_unmute.discard(user_id)

    def unpunish(self, user_id: int) -> int:
        room_id = self._rooms_by_user.pop(user_id, None)
        if room_id is None:
            raise NotPunished(user_id)
        return room_id

    def lookup(self, user_id: int) -> Optional[int]:
        return self._rooms_by_user.get(user_id)

    def is_punished(self, user_id: int) -> bool:
        return user_id in self._rooms_by_user

    def confinement_room_for(self, user_id: int, current_room_id: Optional[int]) -> Optional[int]:
        """Return the room a user must be dragged back to, or None.

        None means the user is not punished or is already where they belong.
        """
        room_id = self._rooms_by_user.get(user_id)
        if room_id is None or room_id == current_room_id:
            return None
        return room_id

    def is_confinement_room(self, room_id: int) -> bool:
        return room_id in self._rooms_by_user.values()

    def release_room(self, room_id: int) -> List[int]:
        """Drop every entry bound to a room that no longer exists.

        Released users keep their server mute until they next join voice.
        """
        released = [user_id for user_id, bound in self._rooms_by_user.items() if bound == room_id]
        for user_id in released:
            del self._rooms_by_user[user_id]
        self._pending_unmute.update(released)
        return released

    def defer_unmute(self, user_id: int) -> None:
        """Remember a released user whose server mute could not be lifted yet.

        Discord keeps a server mute across disconnects and only lets it be
        changed while the member is in voice.
        """
        self._pending_unmute.add(user_id)

    def has_deferred_unmute(self, user_id: int) -> bool:
        return user_id in self._pending_unmute

    def clear_deferred_unmute(self, user_id: int) -> None:
        self._pending_unmute.discard(user_id)


@dataclass
class TransientRoom:
    room_id: int
    guild_id: int
    cleanup_window: TimedWindow
    state: RoomState = RoomState.CREATED

    def transition(self, new_state: RoomState) -> bool:
        if self.state is RoomState.DELETED or self.state is new_state:
            return False
        self.state = new_state
        return True


class TransientRoomRegistry:
    """Abduction rooms awaiting deletion.

    Deletion is a compare-and-clear: the first trigger to call
    `begin_deletion` wins, every later trigger sees DELETED and backs off.
    """

    def __init__(self, cleanup_delay: float = DEFAULT_CLEANUP_DELAY_SECONDS) -> None:
        self._cleanup_delay = cleanup_delay
        self._rooms: Dict[int, TransientRoom] = {}

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def register(self, room_id: int, guild_id: int) -> TransientRoom:
        entry = TransientRoom(
            room_id=room_id,
            guild_id=guild_id,
            cleanup_window=TimedWindow(duration=self._cleanup_delay),
        )
        self._rooms[room_id] = entry
        return entry

    def get(self, room_id: int) -> Optional[TransientRoom]:
        return self._rooms.get(room_id)

    def is_live(self, room_id: int) -> bool:
        entry = self._rooms.get(room_id)
        return entry is not None and entry.state is not RoomState.DELETED

    def mark_occupied(self, room_id: int) -> bool:
        entry = self._rooms.get(room_id)
        if entry is None:
            return False
        return entry.transition(RoomState.OCCUPIED)

    def mark_vacated(self, room_id: int) -> bool:
        entry = self._rooms.get(room_id)
        if entry is None or entry.state is not RoomState.OCCUPIED:
            return False
        return entry.transition(RoomState.VACATED)

    def begin_deletion(self, room_id: int) -> bool:
        entry = self._rooms.get(room_id)
        if entry is None:
            return False
        return entry.transition(RoomState.DELETED)

    def remove(self, room_id: int) -> bool:
        return self._rooms.pop(room_id, None) is not None


def classify_room(
    room_id: int,
    punishments: PunishmentRegistry,
    transient_rooms: TransientRoomRegistry,
) -> RoomKind:
    if room_id in transient_rooms:
        return RoomKind.ABDUCTION
    if punishments.is_confinement_room(room_id):
        return RoomKind.CONFINEMENT
    return RoomKind.NONE
