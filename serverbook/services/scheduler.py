"""
Reservation scheduler: a periodic sweep that hands due reservations to the
lifecycle engine.

Runs as a background asyncio task owned by the application lifespan. Each
tick opens its own session; a failing tick is logged and the loop carries on.
"""

import asyncio
import contextlib
import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from serverbook.core.logging import get_logger
from serverbook.core.metrics import scheduler_tick_duration
from serverbook.services.booking_service import BookingService

logger = get_logger(__name__)


class ReservationScheduler:
    def __init__(
        self,
        booking_service: BookingService,
        session_factory: Callable[[], AsyncSession],
        interval: float = 30.0,
    ):
        self.booking_service = booking_service
        self.session_factory = session_factory
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="reservation-scheduler")
        logger.info("scheduler_started", interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("scheduler_stopped")

    async def tick(self) -> int:
        """Run one sweep. Returns the number of reservations claimed."""
        started = time.perf_counter()
        try:
            async with self.session_factory() as db:
                processed = await self.booking_service.process_due_reservations(db)
        finally:
            scheduler_tick_duration.observe(time.perf_counter() - started)

        if processed:
            logger.info("scheduler_tick", processed=processed)
        return processed

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.error("scheduler_tick_failed", error=str(e), exc_info=True)

            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
