"""
Inventory ledger: the only writer of a trip's seat count and status.

Every adjustment is a single conditional UPDATE checked by its affected row
count, so concurrent reservations can never oversubscribe a trip. The ledger
never commits; it runs inside the caller's transaction.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from driveshare.exceptions import InsufficientSeats, LedgerInvariantError, NotFound, TripUnavailable
from driveshare.models.enums import BOOKABLE_TRIP_STATUSES, TripStatus
from driveshare.models.models import Trip

logger = logging.getLogger(__name__)


class InventoryLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt) -> int:
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    async def get_trip(self, trip_id: int, for_update: bool = False) -> Trip:
        stmt = sa_select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.db.execute(stmt)
        trip = res.scalars().first()
        if trip is None:
            raise NotFound("Trip", trip_id)
        return trip

    async def lock_trip(self, trip_id: int) -> None:
        """Row-lock the trip before any of its bookings.

        Writers that touch both lock the trip row first so they cannot deadlock
        each other.
        """
        await self.db.execute(sa_select(Trip.id).where(Trip.id == trip_id).with_for_update())

    async def reserve_seats(self, trip_id: int, n: int) -> None:
        """Take ``n`` seats off the trip or raise the reason it cannot be done."""
        if n < 1:
            raise ValueError("seat count must be positive")
        upd = (
            sa_update(Trip)
            .where(Trip.id == trip_id)
            .where(Trip.status.in_(BOOKABLE_TRIP_STATUSES))
            .where(Trip.available_seats >= n)
            .values(available_seats=Trip.available_seats - n)
        )
        if await self._execute(upd) == 0:
            # nothing changed: find out why
            trip = await self.get_trip(trip_id)
            if trip.status not in BOOKABLE_TRIP_STATUSES:
                raise TripUnavailable(trip_id, trip.status)
            raise InsufficientSeats(trip_id, requested=n, available=trip.available_seats)
        await self.mark_full(trip_id)

    async def release_seats(self, trip_id: int, n: int) -> None:
        """Give ``n`` seats back to the trip, never beyond its capacity."""
        if n < 1:
            raise ValueError("seat count must be positive")
        upd = (
            sa_update(Trip)
            .where(Trip.id == trip_id)
            .where(Trip.available_seats + n <= Trip.capacity)
            .values(available_seats=Trip.available_seats + n)
        )
        if await self._execute(upd) == 0:
            trip = await self.get_trip(trip_id)
            logger.error(
                "Seat release would exceed capacity",
                extra={"trip_id": trip_id, "seats": n, "available": trip.available_seats, "capacity": trip.capacity},
            )
            raise LedgerInvariantError(
                f"releasing {n} seat(s) on trip {trip_id} exceeds capacity {trip.capacity}"
            )
        await self.mark_open(trip_id)

    async def mark_full(self, trip_id: int) -> bool:
        upd = (
            sa_update(Trip)
            .where(Trip.id == trip_id)
            .where(Trip.status == TripStatus.OPEN.value)
            .where(Trip.available_seats == 0)
            .values(status=TripStatus.FULL.value)
        )
        return await self._execute(upd) > 0

    async def mark_open(self, trip_id: int) -> bool:
        upd = (
            sa_update(Trip)
            .where(Trip.id == trip_id)
            .where(Trip.status == TripStatus.FULL.value)
            .where(Trip.available_seats > 0)
            .values(status=TripStatus.OPEN.value)
        )
        return await self._execute(upd) > 0

    async def mark_cancelled(self, trip_id: int) -> bool:
        upd = (
            sa_update(Trip)
            .where(Trip.id == trip_id)
            .where(Trip.status.in_(BOOKABLE_TRIP_STATUSES))
            .values(status=TripStatus.CANCELLED.value)
        )
        return await self._execute(upd) > 0

    async def mark_completed(self, now: datetime, trip_id: Optional[int] = None) -> int:
        """Complete bookable trips that departed before ``now``. Returns how many changed."""
        upd = (
            sa_update(Trip)
            .where(Trip.status.in_(BOOKABLE_TRIP_STATUSES))
            .where(Trip.departure_time < now)
            .values(status=TripStatus.COMPLETED.value)
        )
        if trip_id is not None:
            upd = upd.where(Trip.id == trip_id)
        return await self._execute(upd)
