import pytest

from thekitchen.errors import (
    AlreadyVoted,
    InvalidVoteValue,
    SelfVote,
    TargetNotFound,
    TargetNotInRoom,
    WrongPhase,
)
from thekitchen.game import roster, state_machine, submissions, votes
from thekitchen.game.models import Room


def _voting_room(*names, mode="single", submit_times=None):
    room = Room(code="ABCD", vote_mode=mode)
    for i, name in enumerate(names):
        roster.join(room, name, f"sid-{i}", is_host=i == 0)
    state_machine.start_game(room, room.players[0], "Soup", now_ms=0)
    times = submit_times or [1000 * (i + 1) for i in range(len(names))]
    for player, t in zip(room.players, times):
        submissions.submit(room, player, f"/uploads/{player.name}.png", now_ms=t)
    state_machine.transition(room, "submitting", "voting", now_ms=10_000)
    return room


def _players(room):
    return {p.name: p for p in room.players}


def test_vote_by_submission_id_or_owner_id():
    room = _voting_room("A", "B", "C")
    p = _players(room)
    b_sub = room.submission_of(p["B"].id)

    assert votes.vote(room, p["A"], b_sub.id).id == b_sub.id
    assert votes.vote(room, p["C"], p["B"].id).id == b_sub.id
    assert len(b_sub.votes) == 2


def test_self_vote_rejected_through_either_id():
    room = _voting_room("A", "B")
    p = _players(room)
    own = room.submission_of(p["A"].id)

    with pytest.raises(SelfVote):
        votes.vote(room, p["A"], own.id)
    with pytest.raises(SelfVote):
        votes.vote(room, p["A"], p["A"].id)
    assert own.votes == []


def test_single_mode_one_vote_per_voter():
    room = _voting_room("A", "B", "C")
    p = _players(room)
    votes.vote(room, p["A"], p["B"].id)
    with pytest.raises(AlreadyVoted):
        votes.vote(room, p["A"], p["C"].id)
    assert votes.votes_cast_by(room, p["A"].id) == 1


def test_unknown_target():
    room = _voting_room("A", "B")
    with pytest.raises(TargetNotFound):
        votes.vote(room, room.players[0], "nope")


def test_target_from_another_room():
    room = _voting_room("A", "B")
    with pytest.raises(TargetNotInRoom):
        votes.vote(room, room.players[0], "elsewhere", locate=lambda _id: "WXYZ")


def test_vote_outside_voting():
    room = _voting_room("A", "B")
    room.phase = "results"
    with pytest.raises(WrongPhase):
        votes.vote(room, room.players[0], room.players[1].id)


def test_rating_mode_requires_every_other_dish():
    room = _voting_room("A", "B", "C", mode="rating")
    p = _players(room)

    votes.vote(room, p["A"], p["B"].id, 4)
    assert not votes.has_finished(room, p["A"].id)

    with pytest.raises(AlreadyVoted):
        votes.vote(room, p["A"], p["B"].id, 5)

    votes.vote(room, p["A"], p["C"].id, 2)
    assert votes.has_finished(room, p["A"].id)
    assert votes.progress(room) == (1, 3)


@pytest.mark.parametrize("value", [0, 6, None, "5", True, 2.5])
def test_rating_value_validated(value):
    room = _voting_room("A", "B", mode="rating")
    with pytest.raises(InvalidVoteValue):
        votes.vote(room, room.players[0], room.players[1].id, value)


def test_single_mode_ignores_value():
    room = _voting_room("A", "B")
    sub = votes.vote(room, room.players[0], room.players[1].id, 99)
    assert sub.votes[0].value == 1


def test_ranking_by_votes():
    room = _voting_room("A", "B", "C")
    p = _players(room)
    votes.vote(room, p["A"], p["C"].id)
    votes.vote(room, p["B"], p["C"].id)
    votes.vote(room, p["C"], p["A"].id)

    results = votes.compute_results(room)

    assert [r["playerName"] for r in results] == ["C", "A", "B"]
    assert results[0]["isWinner"] and results[0]["voteCount"] == 2
    assert [r["rank"] for r in results] == [1, 2, 3]
    assert not any(r["isWinner"] for r in results[1:])


def test_tie_goes_to_earlier_submission():
    room = _voting_room("A", "B", submit_times=[5000, 3000])
    p = _players(room)
    votes.vote(room, p["A"], p["B"].id)
    votes.vote(room, p["B"], p["A"].id)

    assert votes.compute_results(room)[0]["playerName"] == "B"


def test_tie_on_time_goes_to_earlier_joiner():
    room = _voting_room("A", "B", submit_times=[4000, 4000])
    p = _players(room)
    votes.vote(room, p["A"], p["B"].id)
    votes.vote(room, p["B"], p["A"].id)

    assert votes.compute_results(room)[0]["playerName"] == "A"


def test_rating_mode_ranks_by_average():
    room = _voting_room("A", "B", "C", mode="rating")
    p = _players(room)
    votes.vote(room, p["A"], p["B"].id, 5)
    votes.vote(room, p["A"], p["C"].id, 3)
    votes.vote(room, p["B"], p["C"].id, 4)
    votes.vote(room, p["C"], p["B"].id, 4)

    results = votes.compute_results(room)

    assert results[0]["playerName"] == "B"
    assert results[0]["score"] == 4.5
    assert results[0]["ratingTotal"] == 9
    assert results[1]["score"] == 3.5
    assert results[2]["score"] == 0


def test_withdraw_votes():
    room = _voting_room("A", "B", "C")
    p = _players(room)
    votes.vote(room, p["A"], p["B"].id)
    votes.vote(room, p["C"], p["B"].id)

    assert votes.withdraw_votes(room, p["A"].id) == 1
    assert [v.voter_id for v in room.submission_of(p["B"].id).votes] == [p["C"].id]


def test_voter_without_targets_counts_as_finished():
    room = Room(code="ABCD")
    for name in ("A", "B"):
        roster.join(room, name, f"sid-{name}", is_host=name == "A")
    state_machine.start_game(room, room.players[0], "Soup", now_ms=0)
    submissions.submit(room, room.players[0], "/uploads/a.png", now_ms=1)
    state_machine.transition(room, "submitting", "voting")

    a, b = room.players
    assert votes.has_finished(room, a.id)
    assert not votes.has_finished(room, b.id)
    votes.vote(room, b, a.id)
    assert votes.all_voted(room)
