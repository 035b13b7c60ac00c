from focus_voyage.services.timers import TimerGroup


def test_timer_fires_once(scheduler):
    fired = []
    group = TimerGroup(scheduler)
    handle = group.call_later(5, lambda: fired.append("x"))
    assert handle.pending
    assert group.pending_count == 1

    scheduler.advance(5)

    assert fired == ["x"]
    assert handle.fired
    assert not handle.pending
    assert group.pending_count == 0

def test_cancelled_handle_never_fires(scheduler):
    fired = []
    group = TimerGroup(scheduler)
    handle = group.call_later(5, lambda: fired.append("x"))
    handle.cancel()
    scheduler.advance(10)
    assert fired == []
    assert group.pending_count == 0

def test_cancel_all_releases_every_handle(scheduler):
    fired = []
    group = TimerGroup(scheduler)
    for delay in (1, 2, 3):
        group.call_later(delay, lambda d=delay: fired.append(d))

    assert group.cancel_all() == 3
    scheduler.advance(5)
    assert fired == []

def test_closed_group_hands_out_dead_handles(scheduler):
    fired = []
    group = TimerGroup(scheduler)
    group.close()
    handle = group.call_later(1, lambda: fired.append("x"))
    scheduler.advance(2)
    assert not handle.pending
    assert fired == []

    group.reopen()
    group.call_later(1, lambda: fired.append("y"))
    scheduler.advance(1)
    assert fired == ["y"]

def test_context_manager_cancels_on_exit(scheduler):
    fired = []
    with TimerGroup(scheduler) as group:
        group.call_later(1, lambda: fired.append("x"))
    scheduler.advance(2)
    assert fired == []
    assert group.closed
