"""
Room directory: owns the code -> Room map and the per-room locks.

Room codes are 4 uppercase letters so they are easy to read out loud. They
only need to be unique among rooms that are currently alive.
"""
from __future__ import annotations

import logging
import random
import re
import string
from threading import RLock
from typing import Callable

from ..errors import InvalidRoomCode, RoomCodeGenerationFailed
from .models import Room

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase
ROOM_CODE_LENGTH = 4
_CODE_RE = re.compile(r"^[A-Z]{4}$")


def generate_room_code(rng: random.Random | None = None) -> str:
    """Random code; uniqueness is the caller's job."""
    r = rng or random
    return "".join(r.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))


def normalize_room_code(raw) -> str:
    if not isinstance(raw, str):
        raise InvalidRoomCode()
    code = raw.strip().upper()
    if not _CODE_RE.fullmatch(code):
        raise InvalidRoomCode()
    return code


class RoomDirectory:
    def __init__(
        self,
        max_attempts: int = 10,
        code_factory: Callable[[], str] = generate_room_code,
    ):
        self.max_attempts = max_attempts
        self._code_factory = code_factory
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._room_locks: dict[str, RLock] = {}

    def lock_for(self, code: str) -> RLock:
        with self._lock:
            lock = self._room_locks.get(code)
            if lock is None:
                lock = RLock()
                self._room_locks[code] = lock
            return lock

    def allocate(self, build: Callable[[str], Room]) -> Room:
        """
        Reserve a fresh code and register the room ``build(code)`` returns.

        Each candidate is checked against the live map under the directory
        lock, so two creators can never end up with the same code.
        """
        with self._lock:
            for attempt in range(1, self.max_attempts + 1):
                code = self._code_factory()
                if code not in self._rooms:
                    room = build(code)
                    self._rooms[code] = room
                    logger.info("Allocated room code %s after %d attempt(s)", code, attempt)
                    return room
                logger.warning("Room code collision detected on %s, regenerating", code)
        raise RoomCodeGenerationFailed()

    def find_room(self, code: str) -> Room | None:
        with self._lock:
            return self._rooms.get(code)

    def replace(self, room: Room) -> bool:
        """Swap in a committed draft. Returns False if the room was deleted meanwhile."""
        with self._lock:
            if room.code not in self._rooms:
                return False
            self._rooms[room.code] = room
            return True

    def delete_room(self, code: str, force: bool = False) -> bool:
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return False
            if room.players and not force:
                return False
            del self._rooms[code]
            logger.info("Deleted room %s", code)
            return True

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
