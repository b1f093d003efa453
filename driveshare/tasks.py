import asyncio
from datetime import timedelta
from typing import List

from celery.utils.log import get_task_logger

from driveshare.celery_app import celery_app
from driveshare.config import settings
from driveshare.services.reservations import ReservationManager

logger = get_task_logger(__name__)


async def run_sweep(manager: ReservationManager) -> List[int]:
    released = await manager.sweep()
    if released:
        logger.info("Periodic sweep released %d booking(s): %s", len(released), released)
    return released


@celery_app.task(name="driveshare.tasks.sweep_expired_bookings")
def sweep_expired_bookings() -> List[int]:
    """Sweep every trip for lapsed holds nobody has looked at since they expired."""
    from driveshare.db.session import engine, async_session

    manager = ReservationManager(
        async_session,
        payment_window=timedelta(seconds=settings.PAYMENT_WINDOW_SECONDS),
    )

    async def _do():
        try:
            return await run_sweep(manager)
        finally:
            # connections are bound to this run's event loop
            await engine.dispose()

    return asyncio.run(_do())
