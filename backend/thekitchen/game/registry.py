"""
Connection registry: maps an ephemeral Socket.IO sid to the player behind it.

The registry is the single source of truth for "who is this caller". It is
process wide, guards its maps with its own lock, and hands out one lock per
connection so that commands from the same socket never interleave.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from threading import RLock

from ..errors import DuplicateConnection, NameInvalid, NameTaken, RoomFull, RoomNotFound
from . import roster
from .models import Player, Room

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 50
_NAME_RE = re.compile(r"^[A-Za-z0-9 _-]+$")


def validate_name(name: str) -> str:
    """Return the trimmed display name or raise ``NameInvalid``."""
    if not isinstance(name, str):
        raise NameInvalid()
    n = name.strip()
    if not n or len(n) > NAME_MAX_LENGTH:
        raise NameInvalid()
    if not _NAME_RE.fullmatch(n):
        raise NameInvalid()
    return n


@dataclass(frozen=True)
class Binding:
    connection_id: str
    room_code: str
    player_id: str


class ConnectionRegistry:
    def __init__(self, max_players: int = 8):
        self.max_players = max_players
        self._lock = RLock()
        self._bindings: dict[str, Binding] = {}
        self._connection_locks: dict[str, RLock] = {}

    def lock_for(self, connection_id: str) -> RLock:
        with self._lock:
            lock = self._connection_locks.get(connection_id)
            if lock is None:
                lock = RLock()
                self._connection_locks[connection_id] = lock
            return lock

    def forget(self, connection_id: str) -> None:
        """Drop the per-connection lock once the socket is gone."""
        with self._lock:
            self._connection_locks.pop(connection_id, None)

    def bind(
        self,
        connection_id: str,
        name: str,
        room: Room | None,
        now_ms: int = 0,
        room_code: str = "",
        as_host: bool = False,
    ) -> tuple[Player, bool]:
        """
        Attach ``connection_id`` to a player of ``room``.

        Returns ``(player, reconnected)``. A name that matches a disconnected
        player re-associates that player; any other match is ``NameTaken``.
        The room is mutated in place, so callers pass the draft they hold
        inside the room's critical section.
        """
        n = validate_name(name)

        with self._lock:
            if connection_id in self._bindings:
                raise DuplicateConnection()

            if room is None:
                raise RoomNotFound(room_code)

            existing = room.find_player_by_name(n)
            if existing is not None:
                if existing.is_connected:
                    raise NameTaken()
                player = roster.mark_reconnected(room, existing, connection_id)
                reconnected = True
            else:
                if len(room.players) >= self.max_players:
                    raise RoomFull(self.max_players)
                player = roster.join(room, n, connection_id, now_ms=now_ms, is_host=as_host)
                reconnected = False

            self._bindings[connection_id] = Binding(connection_id, room.code, player.id)

        logger.info(
            "Bound %s to player %s (%s) in room %s%s",
            connection_id,
            player.id,
            player.name,
            room.code,
            " (reconnect)" if reconnected else "",
        )
        return player, reconnected

    def resolve(self, connection_id: str) -> Binding | None:
        with self._lock:
            return self._bindings.get(connection_id)

    def unbind(self, connection_id: str) -> Binding | None:
        with self._lock:
            return self._bindings.pop(connection_id, None)

    def restore(self, binding: Binding | None) -> None:
        if binding is None:
            return
        with self._lock:
            self._bindings[binding.connection_id] = binding

    def unbind_room(self, room_code: str) -> list[Binding]:
        with self._lock:
            gone = [b for b in self._bindings.values() if b.room_code == room_code]
            for b in gone:
                del self._bindings[b.connection_id]
            return gone

    def connections_for_room(self, room_code: str) -> list[str]:
        with self._lock:
            return [b.connection_id for b in self._bindings.values() if b.room_code == room_code]

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)
