"""
Expiry sweeper.

Expiry is reconciled lazily: any operation that reads or mutates seat counts
sweeps first, so no timer is needed. The periodic Celery task in
``driveshare.tasks`` covers trips nobody is looking at.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from driveshare.metrics import SWEEP_RELEASED, TRIPS_COMPLETED
from driveshare.models.enums import BookingStatus
from driveshare.models.models import Booking
from driveshare.services.ledger import InventoryLedger

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, db: AsyncSession, ledger: InventoryLedger):
        self.db = db
        self.ledger = ledger

    async def sweep_expired(self, now: datetime, trip_id: Optional[int] = None) -> List[int]:
        """Cancel pending bookings whose deadline is before ``now`` and release their seats.

        Scoped to one trip when ``trip_id`` is given, otherwise all trips.
        Returns the ids of the bookings this call cancelled; a booking already
        cancelled by a concurrent sweep is skipped.
        """
        stmt = sa_select(Booking.id, Booking.trip_id, Booking.seats_booked).where(
            Booking.status == BookingStatus.PENDING.value,
            Booking.expires_at.is_not(None),
            Booking.expires_at < now,
        )
        if trip_id is not None:
            stmt = stmt.where(Booking.trip_id == trip_id)
        # trips are locked in ascending id order
        res = await self.db.execute(stmt.order_by(Booking.trip_id, Booking.id))
        lapsed = res.all()

        released = []
        for booking_id, booking_trip_id, seats in lapsed:
            await self.ledger.lock_trip(booking_trip_id)
            upd = (
                sa_update(Booking)
                .where(Booking.id == booking_id)
                .where(Booking.status == BookingStatus.PENDING.value)
                .values(status=BookingStatus.CANCELLED.value, expires_at=None)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(upd)
            if result.rowcount == 0:
                continue
            await self.ledger.release_seats(booking_trip_id, seats)
            released.append(booking_id)
            logger.info(
                "Released expired booking",
                extra={"booking_id": booking_id, "trip_id": booking_trip_id, "seats": seats},
            )

        if released:
            SWEEP_RELEASED.inc(len(released))
        return released

    async def complete_past_trips(self, now: datetime, trip_id: Optional[int] = None) -> int:
        completed = await self.ledger.mark_completed(now, trip_id=trip_id)
        if completed:
            TRIPS_COMPLETED.inc(completed)
            logger.info("Completed departed trips", extra={"count": completed, "trip_id": trip_id})
        return completed
