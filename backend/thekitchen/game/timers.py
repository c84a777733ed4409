from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PhaseTimers:
    """
    Cancellable one-shot delays keyed by name (e.g. ``"ABCD:phase"``).

    ``spawn`` and ``sleep`` default to the Socket.IO server's
    ``start_background_task`` / ``sleep`` so timers run as green threads under
    eventlet. A timer that was cancelled or replaced while sleeping finds its
    token gone and does nothing; the callback itself still re-checks room
    state, so a late fire can never move a room twice.
    """

    def __init__(self, spawn: Callable[..., Any], sleep: Callable[[float], Any]):
        self._spawn = spawn
        self._sleep = sleep
        self._lock = RLock()
        self._tokens: dict[str, object] = {}

    def schedule(self, key: str, delay_sec: float, callback: Callable[[], Any]) -> None:
        token = object()
        with self._lock:
            self._tokens[key] = token
        logger.debug("Scheduled %s in %.1fs", key, delay_sec)
        self._spawn(self._run, key, token, delay_sec, callback)

    def cancel(self, key: str) -> bool:
        with self._lock:
            return self._tokens.pop(key, None) is not None

    def cancel_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._tokens if k.startswith(prefix)]:
                del self._tokens[key]

    def pending(self, key: str) -> bool:
        with self._lock:
            return key in self._tokens

    def _run(self, key: str, token: object, delay_sec: float, callback: Callable[[], Any]) -> None:
        self._sleep(delay_sec)
        with self._lock:
            if self._tokens.get(key) is not token:
                return
            del self._tokens[key]
        try:
            callback()
        except Exception:
            logger.exception("Timer %s failed", key)
