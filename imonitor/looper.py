"""Task loopers: queues of delayed and repeating callbacks run on one thread."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

from imonitor.helpers import tick_count
from imonitor.sync import AtomicCounter

Runnable = Callable[[], object]
Clock = Callable[[], int]

DELAY_IMMEDIATE = 0


class LooperType(IntEnum):
    """Kinds of looper."""

    EVENT = 0
    UI = 1
    IO = 2
    ASIO = 3
    UV = 4


@dataclass
class _Task:
    callback: Runnable
    id: int
    interval: int
    next_time: int


def _check_ms(value: int, what: str) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f"{what} must not be negative: {value}")
    return value


class Looper(ABC):
    """A queue of tasks, each due at a time and optionally repeating."""

    looper_type: LooperType = LooperType.EVENT

    def __init__(
        self,
        name: str = "",
        *,
        clock: Clock = tick_count,
        manager: Optional[LooperManager] = None,
    ) -> None:
        self.name = name
        self._clock = clock
        self._manager = manager
        self._lock = threading.RLock()
        self._ids = AtomicCounter()
        self._tasks: list[_Task] = []
        self._terminated = False

    @property
    def manager(self) -> LooperManager:
        return self._manager if self._manager is not None else get_manager()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def _schedule(self, callback: Runnable, interval_ms: int, delay_ms: int) -> int:
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            task = _Task(callback, self._ids.increment(), interval_ms, self._clock() + delay_ms)
            self._tasks.append(task)
            self.wake_up()
            return task.id

    def post_runnable(self, callback: Runnable, delay_ms: int = DELAY_IMMEDIATE) -> int:
        """Run ``callback`` once after ``delay_ms``; return the task id."""
        return self._schedule(callback, 0, _check_ms(delay_ms, "delay"))

    def run_or_post_runnable(self, callback: Runnable) -> int:
        """Run ``callback`` now if on this looper's thread (returning 0), else post it."""
        if self.manager.is_current(self):
            callback()
            return 0
        return self.post_runnable(callback)

    def set_timer(
        self, callback: Runnable, interval_ms: int, delay_ms: Optional[int] = None
    ) -> int:
        """Run ``callback`` every ``interval_ms``, first after ``delay_ms`` (default: the interval)."""
        interval_ms = _check_ms(interval_ms, "interval")
        delay_ms = interval_ms if delay_ms is None else _check_ms(delay_ms, "delay")
        return self._schedule(callback, interval_ms, delay_ms)

    def reset_timer(
        self, task_id: int, interval_ms: int, delay_ms: Optional[int] = None
    ) -> bool:
        """Change a task's interval and next due time; report whether it was found."""
        interval_ms = _check_ms(interval_ms, "interval")
        delay_ms = interval_ms if delay_ms is None else _check_ms(delay_ms, "delay")
        with self._lock:
            for task in self._tasks:
                if task.id == task_id:
                    task.interval = interval_ms
                    task.next_time = self._clock() + delay_ms
                    return True
        return False

    def cancel(self, task_id: int) -> bool:
        """Remove a task; report whether it was found."""
        with self._lock:
            for task in self._tasks:
                if task.id == task_id:
                    self._tasks.remove(task)
                    return True
        return False

    def cancel_all(self) -> None:
        with self._lock:
            self._tasks.clear()

    def terminate(self) -> None:
        """Stop the looper and drop every task."""
        if self._terminated:
            return
        self._terminated = True
        self.wake_up()
        self.cancel_all()

    def is_terminated(self) -> bool:
        return self._terminated

    def next_delay_time(self) -> Optional[int]:
        """Milliseconds until the next task is due, or None when there is none."""
        with self._lock:
            now = self._clock()
            delays = [max(0, task.next_time - now) for task in self._tasks]
        return min(delays, default=None)

    def dispatch_tasks(self) -> int:
        """Run every task that is due; return how many ran."""
        with self._lock:
            now = self._clock()
            due = [task for task in self._tasks if task.next_time <= now]
            for task in due:
                if task.interval == 0:
                    self._tasks.remove(task)
                else:
                    task.next_time = now + task.interval
        for task in due:
            task.callback()
        return len(due)

    def run(self) -> None:
        """Work on the calling thread until terminated."""
        manager = self.manager
        manager.set_current(self)
        try:
            self.on_work()
        finally:
            manager.set_current(None)

    @abstractmethod
    def wake_up(self) -> None:
        """Make the working loop look at the task list again."""

    @abstractmethod
    def on_work(self) -> None:
        """Process tasks until the looper is terminated."""


class EventLooper(Looper):
    """A looper whose working loop sleeps on an event between due tasks."""

    def __init__(
        self,
        name: str = "",
        *,
        clock: Clock = tick_count,
        manager: Optional[LooperManager] = None,
        looper_type: LooperType = LooperType.EVENT,
    ) -> None:
        super().__init__(name, clock=clock, manager=manager)
        self.looper_type = LooperType(looper_type)
        self._wake = threading.Event()
        self.thread: Optional[LooperThread] = None

    def wake_up(self) -> None:
        self._wake.set()

    def on_work(self) -> None:
        while not self._terminated:
            self._wake.clear()
            self.dispatch_tasks()
            if self._terminated:
                break
            delay = self.next_delay_time()
            self._wake.wait(None if delay is None else delay / 1000)


class MainLooper(EventLooper):
    """The looper of a thread that runs its own loop and pumps tasks itself."""

    def __init__(
        self,
        name: str = "main",
        *,
        clock: Clock = tick_count,
        manager: Optional[LooperManager] = None,
    ) -> None:
        super().__init__(name, clock=clock, manager=manager, looper_type=LooperType.UI)
        self._started = False

    @property
    def wake_event(self) -> threading.Event:
        """Set whenever tasks may need processing."""
        return self._wake

    def start(self) -> None:
        """Make this the current looper of the calling thread."""
        self.manager.set_current(self)
        self._started = True

    def process_pending(self) -> int:
        """Run the tasks that are due; return how many ran."""
        self._wake.clear()
        return self.dispatch_tasks()


class LooperThread:
    """Runs a looper on a dedicated thread."""

    def __init__(self, looper: Looper) -> None:
        self.looper = looper
        self._thread: Optional[threading.Thread] = None

    def start(self, name: str = "") -> None:
        if self._thread is not None:
            raise RuntimeError("looper thread already started")
        self.looper.name = name
        self._thread = threading.Thread(target=self.looper.run, name=name or None, daemon=True)
        self._thread.start()

    def stop(self, wait: bool = True) -> None:
        """Terminate the looper and, if ``wait``, join its thread."""
        if self.looper.is_terminated():
            if wait:
                self._join()
            return
        self.looper.terminate()
        if wait:
            self._join()
        self.looper.cancel_all()

    def wait(self, timeout_ms: Optional[int] = None) -> bool:
        """Wait for the thread to end; return whether it has ended."""
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(None if timeout_ms is None else _check_ms(timeout_ms, "timeout") / 1000)
        return not thread.is_alive()

    def _join(self) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()


class LooperManager:
    """Creates loopers and tracks which looper runs on each thread."""

    _SUPPORTED = (LooperType.EVENT, LooperType.UI)

    def __init__(self) -> None:
        self._local = threading.local()
        self.main_looper: Optional[MainLooper] = None

    def start(self) -> MainLooper:
        """Create the main looper for the calling thread."""
        looper = MainLooper(manager=self)
        looper.start()
        self.main_looper = looper
        return looper

    def create_looper(self, looper_type: LooperType, name: str = "") -> EventLooper:
        """Create a looper of ``looper_type`` running on its own thread."""
        looper_type = LooperType(looper_type)
        if looper_type not in self._SUPPORTED:
            raise ValueError(f"unsupported looper type: {looper_type.name}")
        looper = EventLooper(name, manager=self, looper_type=looper_type)
        thread = LooperThread(looper)
        looper.thread = thread
        thread.start(name)
        return looper

    def is_current(self, looper: Optional[Looper]) -> bool:
        return self.current() is looper

    def set_current(self, looper: Optional[Looper]) -> None:
        self._local.looper = looper

    def current(self) -> Optional[Looper]:
        return getattr(self._local, "looper", None)


_manager: Optional[LooperManager] = None
_manager_lock = threading.Lock()


def get_manager() -> LooperManager:
    """Return the process-wide looper manager."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = LooperManager()
        return _manager