import asyncio
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from croniter import croniter

from custom_logging import BackupLogger
from services.errors import ConfigurationError


def validate_cron_pattern(pattern: str) -> str:
    if not pattern or not croniter.is_valid(pattern):
        raise ConfigurationError(f"Invalid cron pattern '{pattern}'")
    return pattern


class CronTrigger:
    """Calls ``callback`` in a worker thread at every instant matching ``pattern``.

    A slow callback does not delay the next firing and does not block the
    other triggers of the same event loop.
    """

    def __init__(self, pattern: str, callback: Callable[[], object], name: Optional[str] = None,
                 logger: Optional[BackupLogger] = None, clock: Callable[[], datetime] = datetime.now):
        self.pattern = validate_cron_pattern(pattern)
        self.name = name or pattern
        self._callback = callback
        self._logger = logger if logger is not None else BackupLogger(name="backup.scheduler")
        self._clock = clock
        self._in_flight: set = set()

    def next_date(self, after: Optional[datetime] = None) -> datetime:
        return croniter(self.pattern, after or self._clock()).get_next(datetime)

    async def fire(self) -> None:
        try:
            await asyncio.to_thread(self._callback)
        except Exception as e:
            self._logger.exception(f"Scheduled job {self.name} crashed: {e}")

    def fire_now(self) -> asyncio.Task:
        task = asyncio.create_task(self.fire(), name=f"backup:{self.name}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def run(self) -> None:
        schedule = croniter(self.pattern, self._clock())
        next_run = schedule.get_next(datetime)
        while True:
            delay = (next_run - self._clock()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
                continue

            self._logger.info(f"Triggering scheduled backup {self.name}")
            self.fire_now()

            next_run = schedule.get_next(datetime)
            now = self._clock()
            if next_run <= now:
                # fell behind (suspended host, clock jump): skip missed instants
                schedule = croniter(self.pattern, now)
                next_run = schedule.get_next(datetime)

    async def wait_in_flight(self) -> None:
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)


class BackupScheduler:
    def __init__(self, logger: Optional[BackupLogger] = None):
        self._logger = logger if logger is not None else BackupLogger(name="backup.scheduler")
        self._triggers: List[CronTrigger] = []

    @property
    def triggers(self) -> List[CronTrigger]:
        return list(self._triggers)

    def add_job(self, pattern: str, callback: Callable[[], object], name: Optional[str] = None) -> CronTrigger:
        trigger = CronTrigger(pattern, callback, name=name, logger=self._logger)
        self._triggers.append(trigger)
        return trigger

    async def serve(self, run_on_start: bool = False) -> None:
        if run_on_start:
            for trigger in self._triggers:
                trigger.fire_now()
        try:
            await asyncio.gather(*(trigger.run() for trigger in self._triggers))
        finally:
            # running backups are awaited, never abandoned
            for trigger in self._triggers:
                await trigger.wait_in_flight()


async def run_all_once(callbacks: Iterable[Callable[[], bool]]) -> List[bool]:
    """Run every callback concurrently in worker threads and collect the results."""
    return list(await asyncio.gather(*(asyncio.to_thread(callback) for callback in callbacks)))
