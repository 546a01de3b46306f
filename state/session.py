"""
Bot Session — Owner of All Shared Voice State

THIS MODULE DEFINES NO COMMANDS.

One BotSession is built at startup and handed to every command module
through `register(bot, session)`. It owns both registries and the voice
collaborators that mutate them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from state.registry import (
    PunishmentRegistry,
    RoomKind,
    TransientRoomRegistry,
    classify_room,
)
from utils.config import Settings
from voice.playback import ClipLibrary, PlaybackCoordinator, SourceFactory
from voice.reactor import EventReactor
from voice.rooms import RoomLifecycle

logger = logging.getLogger(__name__)


@dataclass
class BotSession:
    punishments: PunishmentRegistry
    transient_rooms: TransientRoomRegistry
    rooms: RoomLifecycle
    playback: PlaybackCoordinator
    reactor: EventReactor
    reply_ttl: float = 10.0

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        source_factory: Optional[SourceFactory] = None,
    ) -> "BotSession":
        punishments = PunishmentRegistry()
        transient_rooms = TransientRoomRegistry(cleanup_delay=settings.cleanup_delay)
        rooms = RoomLifecycle(transient_rooms)
        playback = PlaybackCoordinator(
            ClipLibrary(settings.sounds_dir),
            connect_timeout=settings.connect_timeout,
            source_factory=source_factory,
        )
        reactor = EventReactor(punishments, transient_rooms, rooms, playback)
        return cls(
            punishments=punishments,
            transient_rooms=transient_rooms,
            rooms=rooms,
            playback=playback,
            reactor=reactor,
            reply_ttl=settings.reply_ttl,
        )

    def classify_room(self, room_id: int) -> RoomKind:
        return classify_room(room_id, self.punishments, self.transient_rooms)

    def forget_room(self, room_id: int) -> RoomKind:
        """Drop all tracking for a room that was deleted on the platform."""
        kind = self.classify_room(room_id)
        if kind is RoomKind.CONFINEMENT:
            released = self.punishments.release_room(room_id)
            logger.info("Confinement room %s deleted; released users %s", room_id, released)
        elif kind is RoomKind.ABDUCTION:
            self.transient_rooms.begin_deletion(room_id)
            self.transient_rooms.remove(room_id)
            logger.info("Kidnapping room %s deleted externally", room_id)
        return kind
