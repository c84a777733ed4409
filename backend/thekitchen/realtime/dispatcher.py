from __future__ import annotations

import logging
from typing import Any, Callable

from ..game.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    """
    Fans events out to the connections bound to a room.

    ``emit`` has the signature of ``SocketIO.emit`` (``emit(event, data, to=sid)``).
    Only connections currently in the registry receive room broadcasts, so a
    socket that dropped is skipped until it rejoins.
    """

    def __init__(self, emit: Callable[..., Any], registry: ConnectionRegistry):
        self._emit = emit
        self.registry = registry

    def broadcast(self, room_code: str, event: str, payload: dict) -> int:
        targets = self.registry.connections_for_room(room_code)
        for sid in targets:
            self._send(sid, event, payload)
        return len(targets)

    def notify(self, connection_id: str, event: str, payload: dict) -> None:
        self._send(connection_id, event, payload)

    def _send(self, sid: str, event: str, payload: dict) -> None:
        try:
            self._emit(event, payload, to=sid)
        except Exception:
            # A dead socket must not abort the fan-out to everybody else.
            logger.warning("Failed to emit %s to %s", event, sid, exc_info=True)
