"""
Poll Scheduler

Drives each polled domain on its own cadence. Each domain gets an independent
timer task; a tick that fires while that domain still has a fetch pending is
skipped rather than queued. Stopping cancels future ticks only: fetches already
in flight still complete and apply, and no snapshot is ever cleared.
"""

import asyncio
from typing import Dict, Optional, Set

from services.domain_state import DomainState
from utils.logging import get_logger, log_system_state_change

logger = get_logger("poll-scheduler")


class PollScheduler:
    """Independent, cancellable repeating timers, one per domain."""

    def __init__(self):
        self._schedules: Dict[str, tuple] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._pending: Set[asyncio.Task] = set()
        self.is_running = False

    def register(self, state: DomainState, interval: float):
        """Poll `state` every `interval` seconds once started."""
        if interval <= 0:
            raise ValueError(f"Poll interval for {state.domain} must be positive")
        self._schedules[state.domain] = (state, interval)
        if self.is_running:
            self._start_timer(state.domain)

    @property
    def domains(self):
        return list(self._schedules)

    def interval(self, domain: str) -> float:
        return self._schedules[domain][1]

    def is_active(self, domain: str) -> bool:
        timer = self._timers.get(domain)
        return timer is not None and not timer.done()

    async def start(self):
        """Start every registered timer. Calling start on a running scheduler is a no-op."""
        if self.is_running:
            logger.warning("Poll scheduler already running")
            return

        self.is_running = True
        for domain in self._schedules:
            self._start_timer(domain)

        log_system_state_change(
            "poll-scheduler",
            "running",
            {"domains": {domain: self.interval(domain) for domain in self._schedules}},
            logger=logger,
        )

    async def stop(self):
        """Cancel every timer. In-flight fetches are left to finish."""
        self.is_running = False
        timers = list(self._timers.values())
        self._timers.clear()

        for timer in timers:
            timer.cancel()
        for timer in timers:
            try:
                await timer
            except asyncio.CancelledError:
                pass

        log_system_state_change(
            "poll-scheduler",
            "stopped",
            {"in_flight": sorted(domain for domain, task in self._in_flight.items() if not task.done())},
            logger=logger,
        )

    def pause(self, domain: str):
        """Stop polling one domain without touching the others."""
        timer = self._timers.pop(domain, None)
        if timer:
            timer.cancel()
            logger.info(f"Paused polling for {domain}")

    def resume(self, domain: str):
        """Restart polling one domain if the scheduler is running."""
        if self.is_running and not self.is_active(domain):
            self._start_timer(domain)
            logger.info(f"Resumed polling for {domain}")

    def _start_timer(self, domain: str):
        _, interval = self._schedules[domain]
        self._timers[domain] = asyncio.create_task(
            self._run(domain, interval), name=f"poll-{domain}"
        )

    async def _run(self, domain: str, interval: float):
        logger.debug(f"Polling {domain} every {interval}s")
        while True:
            await asyncio.sleep(interval)
            self.tick(domain)

    def tick(self, domain: str) -> Optional[asyncio.Task]:
        """
        Fire one poll for `domain` unless a fetch is already pending.

        Returns:
            The spawned fetch task, or None if the tick was coalesced
        """
        state, _ = self._schedules[domain]
        previous = self._in_flight.get(domain)
        if (previous is not None and not previous.done()) or state.loading:
            logger.debug(f"Skipping {domain} poll, previous fetch still pending")
            return None

        task = asyncio.create_task(state.refresh(), name=f"fetch-{domain}")
        self._in_flight[domain] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
