"""Cancellable periodic background tasks."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class PeriodicTask:
    """Runs an async callable every ``interval`` seconds until stopped.

    The first run happens one interval after ``start()``. A failing run is
    logged and the loop continues with the next interval.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], Awaitable[object]]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.func = func
        self.runs = 0
        self.failures = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic-{self.name}")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.func()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failures += 1
                logger.exception("periodic_task_failed", task=self.name)
            finally:
                self.runs += 1

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class PeriodicTaskGroup:
    """A set of periodic tasks started and stopped as a unit."""

    def __init__(self) -> None:
        self._tasks: dict[str, PeriodicTask] = {}

    def add(self, name: str, interval: float, func: Callable[[], Awaitable[object]]) -> PeriodicTask:
        if name in self._tasks:
            raise ValueError(f"periodic task {name!r} already registered")
        task = PeriodicTask(name, interval, func)
        self._tasks[name] = task
        return task

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def __getitem__(self, name: str) -> PeriodicTask:
        return self._tasks[name]

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def running(self) -> bool:
        return any(task.running for task in self._tasks.values())

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()
        logger.info("periodic_tasks_started", tasks=sorted(self._tasks))

    async def stop(self) -> None:
        """Cancel every task and wait for all of them to finish."""
        await asyncio.gather(*(task.stop() for task in self._tasks.values()))
        self._tasks.clear()
        logger.info("periodic_tasks_stopped")
