"""
Room phase authority.

    lobby --startGame--> submitting --allSubmitted/startVoting/timer--> voting
    voting --allVoted/timer--> results --resetToLobby--> lobby

Callers must hold the room's critical section. ``transition`` checks the
phase at mutation time, so of several triggers racing for the same edge only
the first one moves the room; the others see the new phase and no-op.
"""
from __future__ import annotations

import logging

from ..errors import NotEnoughPlayers, NotHost, WrongPhase
from .models import Player, Room, RoomPhase

logger = logging.getLogger(__name__)

TRANSITIONS: dict[RoomPhase, RoomPhase] = {
    "lobby": "submitting",
    "submitting": "voting",
    "voting": "results",
    "results": "lobby",
}


def is_legal(current: RoomPhase, target: RoomPhase) -> bool:
    return TRANSITIONS.get(current) == target


def require_phase(room: Room, *phases: RoomPhase) -> None:
    if room.phase not in phases:
        raise WrongPhase(room.phase, tuple(phases))


def require_host(player: Player) -> None:
    if not player.is_host:
        raise NotHost()


def transition(room: Room, expected: RoomPhase, target: RoomPhase, now_ms: int = 0) -> bool:
    """Move ``room`` from ``expected`` to ``target``. Returns False if someone got there first."""
    if not is_legal(expected, target):
        raise ValueError(f"Illegal transition {expected} -> {target}")
    if room.phase != expected:
        logger.debug(
            "Ignoring %s -> %s for room %s, already %s", expected, target, room.code, room.phase
        )
        return False

    room.phase = target
    room.phase_started_at_ms = now_ms
    room.version += 1
    logger.info("Room %s: %s -> %s (v%d)", room.code, expected, target, room.version)
    return True


def start_game(room: Room, caller: Player, prompt: str, now_ms: int, min_players: int = 2) -> None:
    require_host(caller)
    require_phase(room, "lobby")
    if len(room.players) < min_players:
        raise NotEnoughPlayers(min_players, len(room.players))

    transition(room, "lobby", "submitting", now_ms)
    room.round += 1
    room.current_prompt = prompt
    room.round_started_at_ms = now_ms
    room.submissions = {}
    room.results = []
    room.previous_prompts.append(prompt)


def reset_to_lobby(room: Room, caller: Player, now_ms: int) -> None:
    require_host(caller)
    require_phase(room, "results")
    transition(room, "results", "lobby", now_ms)
    room.current_prompt = None
    room.round_started_at_ms = None
    room.submissions = {}
    room.results = []


def cooking_deadline_ms(room: Room) -> int | None:
    if room.phase != "submitting" or room.round_started_at_ms is None:
        return None
    return room.round_started_at_ms + room.cooking_time_limit_sec * 1000


def voting_deadline_ms(room: Room) -> int | None:
    if room.phase != "voting" or room.phase_started_at_ms is None:
        return None
    return room.phase_started_at_ms + room.voting_time_limit_sec * 1000


def phase_deadline_ms(room: Room) -> int | None:
    return cooking_deadline_ms(room) or voting_deadline_ms(room)


def remaining_sec(room: Room, now_ms: int) -> int:
    deadline = phase_deadline_ms(room)
    if deadline is None:
        return 0
    return max(0, (deadline - now_ms) // 1000)
