"""
Vote tally.

Two modes share the same bookkeeping:

- ``single``: each voter picks exactly one dish that is not their own.
- ``rating``: each voter rates every dish that is not their own (1-5 stars).

Self-vote and duplicate checks always go through the submission's owner, so a
client cannot dodge them by sending a player id instead of a submission id.
"""
from __future__ import annotations

from fractions import Fraction
from typing import Callable

from ..config import RATING_RANGE
from ..errors import (
    AlreadyVoted,
    InvalidVoteValue,
    SelfVote,
    TargetNotFound,
    TargetNotInRoom,
)
from .models import Player, Room, Submission, Vote
from .state_machine import require_phase


def resolve_target(
    room: Room,
    target_id: str,
    locate: Callable[[str], str | None] | None = None,
) -> Submission:
    """Find the submission ``target_id`` points at (submission id or owner id)."""
    if not isinstance(target_id, str) or not target_id:
        raise TargetNotFound()

    submission = room.submissions.get(target_id)
    if submission is not None:
        return submission

    submission = room.submission_of(target_id)
    if submission is not None:
        return submission

    if locate is not None:
        owner_room = locate(target_id)
        if owner_room is not None and owner_room != room.code:
            raise TargetNotInRoom()
    raise TargetNotFound()


def normalize_value(room: Room, value) -> int:
    if room.vote_mode == "single":
        return 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidVoteValue()
    low, high = RATING_RANGE
    if value < low or value > high:
        raise InvalidVoteValue(f"Rating must be between {low} and {high}")
    return value


def eligible_targets(room: Room, voter_id: str) -> list[Submission]:
    return [s for s in room.submissions.values() if s.player_id != voter_id]


def votes_cast_by(room: Room, voter_id: str) -> int:
    return sum(1 for s in room.submissions.values() for v in s.votes if v.voter_id == voter_id)


def has_finished(room: Room, voter_id: str) -> bool:
    targets = eligible_targets(room, voter_id)
    if not targets:
        return True
    if room.vote_mode == "single":
        return votes_cast_by(room, voter_id) >= 1
    return all(any(v.voter_id == voter_id for v in s.votes) for s in targets)


def vote(
    room: Room,
    voter: Player,
    target_id: str,
    value=None,
    now_ms: int = 0,
    locate: Callable[[str], str | None] | None = None,
) -> Submission:
    require_phase(room, "voting")
    submission = resolve_target(room, target_id, locate)

    if submission.player_id == voter.id:
        raise SelfVote()

    if room.vote_mode == "single":
        if votes_cast_by(room, voter.id) > 0:
            raise AlreadyVoted()
    elif any(v.voter_id == voter.id for v in submission.votes):
        raise AlreadyVoted("You have already rated this submission")

    score = normalize_value(room, value)
    submission.votes.append(Vote(voter_id=voter.id, value=score, cast_at_ms=now_ms))
    room.version += 1
    return submission


def withdraw_votes(room: Room, voter_id: str) -> int:
    """Drop every vote ``voter_id`` cast this round. Returns how many were removed."""
    removed = 0
    for s in room.submissions.values():
        kept = [v for v in s.votes if v.voter_id != voter_id]
        removed += len(s.votes) - len(kept)
        s.votes = kept
    return removed


def progress(room: Room) -> tuple[int, int]:
    """``(finished voters, eligible voters)`` over the current roster."""
    voters = room.players
    finished = sum(1 for p in voters if has_finished(room, p.id))
    return finished, len(voters)


def all_voted(room: Room) -> bool:
    finished, required = progress(room)
    return room.phase == "voting" and required > 0 and finished >= required


def _score(room: Room, submission: Submission) -> Fraction:
    if room.vote_mode == "single":
        return Fraction(len(submission.votes))
    if not submission.votes:
        return Fraction(0)
    return Fraction(sum(v.value for v in submission.votes), len(submission.votes))


def rank(room: Room) -> list[Submission]:
    """Highest score first; ties go to the earlier dish, then to the earlier joiner."""
    return sorted(
        room.submissions.values(),
        key=lambda s: (-_score(room, s), s.created_at_ms, s.join_order),
    )


def compute_results(room: Room) -> list[dict]:
    results = []
    for position, s in enumerate(rank(room), start=1):
        score = _score(room, s)
        results.append(
            {
                "rank": position,
                "submissionId": s.id,
                "playerId": s.player_id,
                "playerName": s.player_name,
                "contentUrl": s.content_url,
                "submittedAt": s.created_at_ms,
                "voteCount": len(s.votes),
                "ratingTotal": sum(v.value for v in s.votes),
                "score": round(float(score), 2),
                "isWinner": position == 1,
            }
        )
    return results
