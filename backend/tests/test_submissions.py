import pytest

from thekitchen.errors import AlreadySubmitted, RoundTimeExpired, WrongPhase
from thekitchen.game import roster, state_machine, submissions
from thekitchen.game.models import Room


@pytest.fixture
def room():
    r = Room(code="ABCD", cooking_time_limit_sec=600)
    for name in ("A", "B", "C"):
        roster.join(r, name, f"sid-{name}", is_host=name == "A")
    state_machine.start_game(r, r.players[0], "Soup", now_ms=0)
    return r


def test_submit_records_one_dish(room):
    a = room.players[0]
    s = submissions.submit(room, a, "/uploads/a.png", now_ms=1000)

    assert room.submissions[s.id].player_id == a.id
    assert s.round == 1
    assert s.join_order == a.join_order
    assert submissions.progress(room) == (1, 3)
    assert not submissions.all_submitted(room)


def test_second_submission_rejected(room):
    a = room.players[0]
    submissions.submit(room, a, "/uploads/a.png", now_ms=1000)
    with pytest.raises(AlreadySubmitted):
        submissions.submit(room, a, "/uploads/a2.png", now_ms=2000)
    assert len(room.submissions) == 1


def test_submit_after_deadline_rejected(room):
    with pytest.raises(RoundTimeExpired):
        submissions.submit(room, room.players[0], "/uploads/a.png", now_ms=600_000)


def test_submit_outside_submitting(room):
    room.phase = "voting"
    with pytest.raises(WrongPhase):
        submissions.submit(room, room.players[0], "/uploads/a.png", now_ms=1)


def test_leaver_drops_out_of_the_count(room):
    a, b, c = room.players
    submissions.submit(room, a, "/uploads/a.png", now_ms=1)
    submissions.submit(room, b, "/uploads/b.png", now_ms=2)

    roster.leave(room, c)

    assert submissions.progress(room) == (2, 2)
    assert submissions.all_submitted(room)


def test_disconnected_players_still_count(room):
    a, b, c = room.players
    roster.mark_disconnected(room, c)
    submissions.submit(room, a, "/uploads/a.png", now_ms=1)
    submissions.submit(room, b, "/uploads/b.png", now_ms=2)
    assert not submissions.all_submitted(room)
