from scheduler import Scheduler


def test_runs_due_tasks_in_order(clock, scheduler):
    ran = []
    scheduler.call_later(2, lambda: ran.append("b"))
    scheduler.call_later(1, lambda: ran.append("a"))
    scheduler.call_later(5, lambda: ran.append("c"))

    clock.advance(2)
    assert scheduler.run_pending() == 2
    assert ran == ["a", "b"]
    assert scheduler.pending == 1


def test_cancelled_task_never_runs(clock, scheduler):
    ran = []
    task = scheduler.call_later(1, lambda: ran.append("x"))
    task.cancel()

    clock.advance(5)
    assert scheduler.run_pending() == 0
    assert ran == []
    assert not task.active


def test_task_scheduled_by_callback_runs_when_due(clock, scheduler):
    ran = []

    def first():
        ran.append("first")
        scheduler.call_later(0, lambda: ran.append("second"))
        scheduler.call_later(10, lambda: ran.append("later"))

    scheduler.call_later(1, first)
    clock.advance(1)
    scheduler.run_pending()

    assert ran == ["first", "second"]


def test_cancel_all(clock, scheduler):
    ran = []
    scheduler.call_later(1, lambda: ran.append(1))
    scheduler.call_later(2, lambda: ran.append(2))
    scheduler.cancel_all()

    clock.advance(3)
    scheduler.run_pending()
    assert ran == []
    assert scheduler.pending == 0


def test_defaults_to_monotonic_clock():
    scheduler = Scheduler()
    task = scheduler.call_later(60, lambda: None)
    assert scheduler.run_pending() == 0
    assert task.active


def test_call_at_uses_absolute_time(clock, scheduler):
    ran = []
    task = scheduler.call_at(clock() + 3, lambda: ran.append("x"))

    clock.advance(2)
    assert scheduler.run_pending() == 0
    clock.advance(1)
    assert scheduler.run_pending() == 1
    assert ran == ["x"]
    assert task.due_at == 1003.0
