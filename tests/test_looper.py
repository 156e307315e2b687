import threading

import pytest

from imonitor.looper import (
    EventLooper,
    LooperManager,
    LooperThread,
    LooperType,
    MainLooper,
    get_manager,
)


class FakeClock:
    def __init__(self):
        self.now = 1000

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager():
    return LooperManager()


@pytest.fixture
def looper(clock, manager):
    return MainLooper(clock=clock, manager=manager)


def test_task_ids_start_at_one(looper):
    assert looper.post_runnable(lambda: None) == 1
    assert looper.post_runnable(lambda: None) == 2


def test_delayed_task_runs_once_when_due(looper, clock):
    calls = []
    looper.post_runnable(lambda: calls.append("x"), 50)
    assert looper.dispatch_tasks() == 0
    assert calls == []
    clock.now += 50
    looper.dispatch_tasks()
    assert calls == ["x"]
    assert len(looper) == 0
    looper.dispatch_tasks()
    assert calls == ["x"]


def test_next_delay_time(looper, clock):
    assert looper.next_delay_time() is None
    looper.post_runnable(lambda: None, 70)
    looper.post_runnable(lambda: None, 30)
    assert looper.next_delay_time() == 30
    clock.now += 100
    assert looper.next_delay_time() == 0


def test_timer_repeats(looper, clock):
    calls = []
    looper.set_timer(lambda: calls.append(clock.now), 20)
    assert looper.next_delay_time() == 20
    clock.now += 20
    looper.dispatch_tasks()
    clock.now += 20
    looper.dispatch_tasks()
    assert calls == [1020, 1040]
    assert len(looper) == 1
    assert looper.next_delay_time() == 20


def test_timer_with_explicit_delay(looper):
    looper.set_timer(lambda: None, 20, 5)
    assert looper.next_delay_time() == 5


def test_reset_timer(looper, clock):
    task = looper.set_timer(lambda: None, 20)
    assert looper.reset_timer(task, 40) is True
    assert looper.next_delay_time() == 40
    assert looper.reset_timer(task, 40, 0) is True
    assert looper.next_delay_time() == 0
    assert looper.reset_timer(task + 100, 10) is False


def test_cancel_and_cancel_all(looper):
    calls = []
    first = looper.post_runnable(lambda: calls.append("first"))
    looper.post_runnable(lambda: calls.append("second"))
    assert looper.cancel(first) is True
    assert looper.cancel(first) is False
    looper.dispatch_tasks()
    assert calls == ["second"]
    looper.post_runnable(lambda: calls.append("third"))
    looper.cancel_all()
    assert len(looper) == 0


def test_terminate_drops_tasks(looper):
    looper.post_runnable(lambda: None)
    assert looper.is_terminated() is False
    looper.terminate()
    looper.terminate()
    assert looper.is_terminated() is True
    assert len(looper) == 0


def test_invalid_arguments(looper):
    with pytest.raises(ValueError):
        looper.post_runnable(lambda: None, -1)
    with pytest.raises(ValueError):
        looper.set_timer(lambda: None, -5)
    with pytest.raises(TypeError):
        looper.post_runnable("not callable")


def test_process_pending_and_wake_event(looper):
    calls = []
    looper.post_runnable(lambda: calls.append("a"))
    assert looper.wake_event.is_set() is True
    looper.process_pending()
    assert calls == ["a"]
    assert looper.wake_event.is_set() is False


def test_run_or_post_on_current_thread_runs_now(looper):
    calls = []
    looper.start()
    assert looper.run_or_post_runnable(lambda: calls.append("now")) == 0
    assert calls == ["now"]
    assert len(looper) == 0


def test_run_or_post_elsewhere_posts(looper):
    calls = []
    task = looper.run_or_post_runnable(lambda: calls.append("later"))
    assert task == 1
    assert calls == []
    looper.process_pending()
    assert calls == ["later"]


def test_manager_current_is_per_thread(manager, looper):
    manager.set_current(looper)
    assert manager.current() is looper
    assert manager.is_current(looper) is True
    seen = []
    worker = threading.Thread(target=lambda: seen.append(manager.current()))
    worker.start()
    worker.join()
    assert seen == [None]
    manager.set_current(None)
    assert manager.is_current(looper) is False


def test_manager_start_creates_main_looper(manager):
    main = manager.start()
    assert manager.main_looper is main
    assert manager.current() is main
    assert main.looper_type is LooperType.UI


def test_get_manager_shares_state(clock):
    shared = get_manager()
    looper = MainLooper(clock=clock, manager=shared)
    shared.set_current(looper)
    try:
        assert get_manager().current() is looper
        assert get_manager().is_current(looper) is True
    finally:
        shared.set_current(None)
    assert get_manager().current() is None


def test_create_looper_unsupported_type(manager):
    with pytest.raises(ValueError):
        manager.create_looper(LooperType.IO, "io")


def test_created_looper_runs_tasks_on_its_thread(manager):
    looper = manager.create_looper(LooperType.UI, "worker")
    done = threading.Event()
    seen = {}

    def task():
        seen["thread"] = threading.current_thread().name
        seen["current"] = manager.current()
        done.set()

    looper.post_runnable(task)
    assert done.wait(5) is True
    assert seen["thread"] == "worker"
    assert seen["current"] is looper
    assert looper.name == "worker"
    looper.thread.stop()
    assert looper.thread.wait() is True
    assert looper.is_terminated() is True


def test_event_looper_timer_fires_repeatedly(manager):
    looper = EventLooper(manager=manager)
    thread = LooperThread(looper)
    calls = []
    enough = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) >= 3:
            enough.set()

    thread.start("timer")
    looper.set_timer(tick, 5)
    assert enough.wait(5) is True
    assert thread.wait(20) is False
    thread.stop()
    assert thread.wait() is True
    assert len(looper) == 0


def test_stop_without_wait_then_wait(manager):
    looper = EventLooper(manager=manager)
    thread = LooperThread(looper)
    thread.start("bg")
    thread.stop(wait=False)
    assert looper.is_terminated() is True
    assert thread.wait(5000) is True


def test_thread_cannot_start_twice(manager):
    thread = LooperThread(EventLooper(manager=manager))
    thread.start("once")
    try:
        with pytest.raises(RuntimeError):
            thread.start("twice")
    finally:
        thread.stop()
    assert thread.wait() is True