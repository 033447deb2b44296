"""IntervalLoop: the two-state timer shared by the agent drivers.

A driver is either IDLE or RUNNING.  ``start()`` and ``stop()`` are the
only transitions.  While RUNNING a timer task spawns one tick every
``interval`` seconds without waiting for the previous tick, so slow ticks
can overlap.  ``stop()`` cancels the timer only; ticks already in flight
run to completion.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from mayhem.api.routers import update_agent_status

logger = logging.getLogger("mayhem.agents")


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class AlreadyRunningError(RuntimeError):
    """Raised by ``start()`` when the loop is already RUNNING."""


class IntervalLoop:
    """Base class for timer-driven agents.

    Subclasses implement :meth:`tick`, returning a result dict shaped like
    ``{"action": ..., "reason": ...}``.

    Args:
        name:     Agent name used for logging and the status API.
        interval: Seconds between ticks.
    """

    kind = "loop"

    def __init__(self, name: str, interval: float) -> None:
        self._name = name
        self._interval = interval
        self._state = LoopState.IDLE
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()
        self._tick_count = 0
        self._last_result: Optional[dict] = None
        update_agent_status(
            self._name, kind=self.kind, interval_seconds=self._interval,
        )

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is LoopState.RUNNING

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def in_flight(self) -> int:
        """Number of ticks currently executing."""
        return len(self._in_flight)

    @property
    def last_result(self) -> Optional[dict]:
        return self._last_result

    # ── Transitions ──────────────────────────────────────────────────────

    async def start(self, run_immediately: bool = True) -> None:
        """IDLE → RUNNING.

        Creates the timer, then (by default) runs and awaits a first tick.

        Raises:
            AlreadyRunningError: the loop is already RUNNING.
        """
        if self._state is LoopState.RUNNING:
            raise AlreadyRunningError(f"Agent '{self._name}' already running")

        self._state = LoopState.RUNNING
        self._timer = asyncio.create_task(self._run_timer())
        update_agent_status(
            self._name,
            state=self._state.value,
            running=True,
            interval_seconds=self._interval,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Agent '%s' started (every %ss).", self._name, self._interval)

        if run_immediately:
            await self._tick_safely()

    def stop(self) -> None:
        """RUNNING → IDLE.  A no-op when already IDLE."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._state is LoopState.IDLE:
            return
        self._state = LoopState.IDLE
        update_agent_status(
            self._name,
            state=self._state.value,
            running=False,
            stopped_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Agent '%s' stopped.", self._name)

    # ── Ticks ────────────────────────────────────────────────────────────

    def fire(self) -> asyncio.Task:
        """Spawn a tick without waiting for it."""
        task = asyncio.create_task(self._tick_safely())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def wait_in_flight(self) -> None:
        """Wait for every tick currently executing."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def tick(self) -> dict:
        raise NotImplementedError

    async def _run_timer(self) -> None:
        while self._state is LoopState.RUNNING:
            await asyncio.sleep(self._interval)
            if self._state is not LoopState.RUNNING:
                break
            self.fire()

    async def _tick_safely(self) -> dict:
        self._tick_count += 1
        tick_no = self._tick_count
        update_agent_status(self._name, in_flight=self.in_flight)
        try:
            result = await self.tick()
            logger.info("Agent '%s' tick %d: %s", self._name, tick_no, result.get("action", "unknown"))
        except Exception as exc:
            logger.error("Agent '%s' tick %d error: %s", self._name, tick_no, exc)
            result = {"action": "error", "reason": str(exc)}

        self._last_result = result
        update_agent_status(
            self._name,
            tick_count=self._tick_count,
            last_tick_at=datetime.now(timezone.utc).isoformat(),
            last_result=result,
        )
        return result

    def get_status(self) -> dict:
        return {
            "name": self._name,
            "kind": self.kind,
            "state": self._state.value,
            "is_running": self.is_running,
            "interval_seconds": self._interval,
            "tick_count": self._tick_count,
            "in_flight": self.in_flight,
            "last_result": self._last_result,
        }
