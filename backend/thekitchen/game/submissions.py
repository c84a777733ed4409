"""
Submission aggregator: one dish per player per round.

"Active" players are everybody on the roster, connected or not, so a flaky
connection never stalls the round. Players who left are off the roster and
drop out of the count; what they already submitted stays in play.
"""
from __future__ import annotations

import uuid

from ..errors import AlreadySubmitted, RoundTimeExpired
from .models import Player, Room, Submission
from .state_machine import cooking_deadline_ms, require_phase


def check_can_submit(room: Room, player: Player, now_ms: int) -> None:
    require_phase(room, "submitting")
    deadline = cooking_deadline_ms(room)
    if deadline is not None and now_ms >= deadline:
        raise RoundTimeExpired()
    if room.submission_of(player.id) is not None:
        raise AlreadySubmitted()


def submit(room: Room, player: Player, content_url: str, now_ms: int) -> Submission:
    check_can_submit(room, player, now_ms)
    submission = Submission(
        id=uuid.uuid4().hex,
        player_id=player.id,
        player_name=player.name,
        room_code=room.code,
        round=room.round,
        content_url=content_url,
        created_at_ms=now_ms,
        join_order=player.join_order,
    )
    room.submissions[submission.id] = submission
    room.version += 1
    return submission


def progress(room: Room) -> tuple[int, int]:
    """``(submitted, required)`` counted over the current roster."""
    active_ids = {p.id for p in room.players}
    submitted = sum(1 for s in room.submissions.values() if s.player_id in active_ids)
    return submitted, len(active_ids)


def all_submitted(room: Room) -> bool:
    submitted, required = progress(room)
    return room.phase == "submitting" and required > 0 and submitted >= required
