from thekitchen.game.timers import PhaseTimers


def test_timer_fires_once(scheduler):
    timers = PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep)
    fired = []
    timers.schedule("ABCD:phase", 10, lambda: fired.append(1))

    assert timers.pending("ABCD:phase")
    scheduler.fire("ABCD:phase")

    assert fired == [1]
    assert not timers.pending("ABCD:phase")


def test_cancelled_timer_does_nothing(scheduler):
    timers = PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep)
    fired = []
    timers.schedule("ABCD:phase", 10, lambda: fired.append(1))

    assert timers.cancel("ABCD:phase") is True
    assert timers.cancel("ABCD:phase") is False
    scheduler.fire("ABCD:phase")

    assert fired == []


def test_rescheduling_supersedes_earlier_timer(scheduler):
    timers = PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep)
    fired = []
    timers.schedule("ABCD:phase", 10, lambda: fired.append("old"))
    timers.schedule("ABCD:phase", 20, lambda: fired.append("new"))

    scheduler.fire("ABCD:phase")
    scheduler.fire("ABCD:phase")

    assert fired == ["new"]


def test_cancel_prefix_only_hits_that_room(scheduler):
    timers = PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep)
    timers.schedule("ABCD:phase", 1, lambda: None)
    timers.schedule("ABCD:abandon", 1, lambda: None)
    timers.schedule("WXYZ:phase", 1, lambda: None)

    timers.cancel_prefix("ABCD:")

    assert not timers.pending("ABCD:phase")
    assert not timers.pending("ABCD:abandon")
    assert timers.pending("WXYZ:phase")


def test_failing_callback_is_contained(scheduler):
    timers = PhaseTimers(spawn=scheduler.spawn, sleep=scheduler.sleep)

    def boom():
        raise RuntimeError("boom")

    timers.schedule("ABCD:phase", 1, boom)
    scheduler.fire("ABCD:phase")
    assert not timers.pending("ABCD:phase")
