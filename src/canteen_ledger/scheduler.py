"""Daily timer that fires the report run at a fixed wall-clock time."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any

import structlog

from canteen_ledger.config import get_settings

logger = structlog.get_logger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle states of the daily timer."""

    IDLE = "idle"           # Not armed (disabled, not started, or stopped)
    ARMED = "armed"         # Waiting for the next fire time
    RUNNING = "running"     # Report run in progress
    COOLDOWN = "cooldown"   # Run finished, re-arming


class DailyScheduler:
    """Fires a report callback once per calendar day.

    Construct one instance at process start. ``start()`` is idempotent: a
    second call while a timer is armed is a no-op, so at most one timer runs
    per instance. Every firing returns to ARMED whatever the outcome; there
    is no retry within the same day.
    """

    def __init__(
        self,
        fire: Callable[[], Awaitable[Any]],
        tz: tzinfo | None = None,
        fire_time: time | None = None,
        enabled: bool | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        settings = get_settings()
        self._fire_callback = fire
        self._tz = tz or settings.tzinfo
        self._fire_time = fire_time or settings.report_time
        self._enabled = settings.scheduler_enabled if enabled is None else enabled
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep or asyncio.sleep

        self._state = SchedulerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._next_fire_at: datetime | None = None
        self._last_run_at: datetime | None = None
        self._run_count = 0

        self._logger = logger.bind(component="scheduler")

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_armed(self) -> bool:
        """Check if a timer task is active."""
        return self._task is not None and not self._task.done()

    @property
    def run_count(self) -> int:
        return self._run_count

    def next_fire_at(self, now: datetime | None = None) -> datetime:
        """Next occurrence of the fire time strictly after ``now``."""
        current = now or self._clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=self._tz)
        local = current.astimezone(self._tz)
        candidate = datetime.combine(local.date(), self._fire_time, tzinfo=self._tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=1), self._fire_time, tzinfo=self._tz
            )
        return candidate

    def start(self) -> bool:
        """Arm the daily timer.

        Must be called from a running event loop.

        Returns:
            True if a new timer was armed, False if scheduling is disabled or
            a timer is already armed.
        """
        if not self._enabled:
            self._logger.info(
                "scheduler_disabled",
                hint="Set ENABLE_SCHEDULER=true to enable outside production",
            )
            return False

        if self.is_armed:
            self._logger.warning("scheduler_already_started")
            return False

        self._task = asyncio.get_running_loop().create_task(self._run_forever())
        self._state = SchedulerState.ARMED
        self._logger.info(
            "scheduler_started",
            fire_time=self._fire_time.strftime("%H:%M"),
            timezone=str(self._tz),
        )
        return True

    def stop(self) -> None:
        """Cancel the timer. Safe to call when not started."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._state = SchedulerState.IDLE
        self._next_fire_at = None
        self._logger.info("scheduler_stopped")

    async def trigger_now(self) -> Any:
        """Run the report callback out of band, independent of the timer.

        Errors from the callback propagate to the caller.
        """
        return await self._fire("manual", raise_errors=True)

    async def _run_forever(self) -> None:
        fire_at: datetime | None = None
        while True:
            now = self._clock()
            # A used fire time is never armed again, whatever the wall clock reads
            reference = now if fire_at is None else max(now, fire_at)
            fire_at = self.next_fire_at(reference)
            self._next_fire_at = fire_at
            self._state = SchedulerState.ARMED
            delay = max((fire_at - now).total_seconds(), 0.0)
            self._logger.info("scheduler_armed", next_fire_at=fire_at.isoformat(), delay=delay)

            await self._sleep(delay)
            await self._fire("timer", raise_errors=False)

    async def _fire(self, trigger: str, raise_errors: bool) -> Any:
        self._state = SchedulerState.RUNNING
        self._last_run_at = self._clock()
        self._logger.info("scheduled_run_starting", trigger=trigger)
        try:
            result = await self._fire_callback()
        except Exception as e:
            self._logger.error("scheduled_run_error", trigger=trigger, error=str(e))
            if raise_errors:
                raise
            result = None
        else:
            self._logger.info("scheduled_run_completed", trigger=trigger)
        finally:
            self._run_count += 1
            self._state = SchedulerState.COOLDOWN
            self._rearm()
        return result

    def _rearm(self) -> None:
        self._state = SchedulerState.ARMED if self.is_armed else SchedulerState.IDLE
        self._logger.debug("scheduler_cooldown_complete", state=self._state.value, runs=self._run_count)

    def get_status(self) -> dict[str, Any]:
        """Get current scheduler status.

        Returns:
            Status dictionary.
        """
        return {
            "state": self._state.value,
            "enabled": self._enabled,
            "timezone": str(self._tz),
            "fire_time": self._fire_time.strftime("%H:%M"),
            "next_fire_at": self._next_fire_at.isoformat() if self._next_fire_at else None,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "run_count": self._run_count,
        }
