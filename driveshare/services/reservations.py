"""
Reservation lifecycle manager.

Orchestrates the booking state machine (pending -> confirmed | cancelled,
confirmed -> cancelled) on top of the inventory ledger. Each public operation
runs in its own transaction on a session from the injected factory, so the
ledger's conditional updates and the booking writes commit or roll back
together.
"""

import logging
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from driveshare.exceptions import (
    AccessDenied,
    BookingExpired,
    DuplicateBooking,
    InvalidState,
    NotFound,
    ReservationError,
)
from driveshare.metrics import CANCELLATIONS, CONFIRMATIONS, RESERVATION_ATTEMPTS, RESERVATION_LATENCY
from driveshare.models.enums import (
    ACTIVE_BOOKING_STATUSES,
    BOOKABLE_TRIP_STATUSES,
    BookingStatus,
    PaymentStatus,
)
from driveshare.models.models import Booking, Payment, Trip
from driveshare.schemas.booking import PaymentDetails
from driveshare.schemas.identity import Identity
from driveshare.services.access import AccessPolicy, can_view_trip, pink_mode_policy
from driveshare.services.ledger import InventoryLedger
from driveshare.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


class ReservationManager:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        payment_window: timedelta = timedelta(seconds=30),
        access_policy: AccessPolicy = pink_mode_policy,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.payment_window = payment_window
        self.access_policy = access_policy
        self.clock = clock

    async def _sweep(self, db: AsyncSession, now: datetime, trip_id: Optional[int] = None) -> List[int]:
        sweeper = ExpirySweeper(db, InventoryLedger(db))
        await sweeper.complete_past_trips(now, trip_id=trip_id)
        return await sweeper.sweep_expired(now, trip_id=trip_id)

    async def _get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        stmt = sa_select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        res = await db.execute(stmt)
        booking = res.scalars().first()
        if booking is None:
            raise NotFound("Booking", booking_id)
        return booking

    async def _cancel_active(self, db: AsyncSession, booking: Booking) -> bool:
        """Move an active booking to cancelled and give its seats back.

        Returns False when another transaction got there first.
        """
        upd = (
            sa_update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .values(status=BookingStatus.CANCELLED.value, expires_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(upd)
        if result.rowcount == 0:
            return False
        await InventoryLedger(db).release_seats(booking.trip_id, booking.seats_booked)
        # refunds are settled by the payment collaborator; we only record the transition
        await db.execute(
            sa_update(Payment)
            .where(Payment.booking_id == booking.id)
            .where(Payment.status == PaymentStatus.COMPLETED.value)
            .values(status=PaymentStatus.REFUNDED.value)
            .execution_options(synchronize_session=False)
        )
        return True

    async def create_booking(self, trip_id: int, rider: Identity, seats: int = 1) -> Booking:
        """Hold ``seats`` on the trip for ``rider`` until the payment deadline."""
        start = time.perf_counter()
        try:
            booking = await self._create_booking(trip_id, rider, seats)
        except ReservationError as exc:
            RESERVATION_ATTEMPTS.labels(result=exc.kind).inc()
            logger.info(
                "Reservation rejected",
                extra={"trip_id": trip_id, "rider_id": rider.id, "seats": seats, "reason": exc.kind},
            )
            raise
        RESERVATION_ATTEMPTS.labels(result="success").inc()
        RESERVATION_LATENCY.observe(time.perf_counter() - start)
        logger.info(
            "Seats held",
            extra={
                "booking_id": booking.id,
                "trip_id": trip_id,
                "rider_id": rider.id,
                "seats": seats,
                "expires_at": booking.expires_at.isoformat(),
            },
        )
        return booking

    async def _create_booking(self, trip_id: int, rider: Identity, seats: int) -> Booking:
        if seats < 1:
            raise InvalidState("At least one seat must be booked", details={"seats": seats})
        now = self.clock()
        # commit the sweep on its own so a rejected reservation cannot undo it
        await self.sweep(trip_id, now=now)
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    ledger = InventoryLedger(db)
                    trip = await ledger.get_trip(trip_id)

                    if await self._has_active_booking(db, trip_id, rider.id):
                        raise DuplicateBooking(trip_id, rider.id)

                    if not self.access_policy(trip, rider):
                        raise AccessDenied(
                            "This is a Pink Mode trip, only female riders can book",
                            details={"trip_id": trip_id},
                        )

                    await ledger.reserve_seats(trip_id, seats)

                    booking = Booking(
                        trip_id=trip_id,
                        rider_id=rider.id,
                        seats_booked=seats,
                        status=BookingStatus.PENDING.value,
                        total_amount=Decimal(trip.price_per_seat) * seats,
                        expires_at=now + self.payment_window,
                    )
                    db.add(booking)
                    await db.flush()
        except IntegrityError:
            # the partial unique index caught a concurrent booking by the same rider;
            # any other constraint failure is a fault and propagates
            async with self.session_factory() as db:
                if await self._has_active_booking(db, trip_id, rider.id):
                    raise DuplicateBooking(trip_id, rider.id)
            raise
        return booking

    async def _has_active_booking(self, db: AsyncSession, trip_id: int, rider_id: int) -> bool:
        stmt = sa_select(Booking.id).where(
            Booking.trip_id == trip_id,
            Booking.rider_id == rider_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return (await db.execute(stmt)).first() is not None

    async def _payment_ref_used(self, db: AsyncSession, provider_ref: str) -> bool:
        stmt = sa_select(Payment.id).where(Payment.provider_ref == provider_ref)
        return (await db.execute(stmt)).first() is not None

    @staticmethod
    def _reused_payment_ref(booking_id: int, provider_ref: str) -> InvalidState:
        CONFIRMATIONS.labels(result="InvalidState").inc()
        logger.warning(
            "Payment reference already recorded",
            extra={"booking_id": booking_id, "provider_ref": provider_ref},
        )
        return InvalidState(
            "Payment reference already used",
            details={"booking_id": booking_id, "provider_ref": provider_ref},
        )

    async def confirm_booking(
        self, booking_id: int, payment: PaymentDetails, rider_id: Optional[int] = None
    ) -> Tuple[Booking, Payment]:
        """Confirm a pending booking on receipt of payment.

        A lapsed booking is swept (and that sweep committed) before
        ``BookingExpired`` is raised, so it never stays pending.
        """
        now = self.clock()
        record = None
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    booking = await self._get_booking(db, booking_id)
                    if rider_id is not None and booking.rider_id != rider_id:
                        raise NotFound("Booking", booking_id)
                    if booking.status != BookingStatus.PENDING.value:
                        CONFIRMATIONS.labels(result="InvalidState").inc()
                        raise InvalidState(
                            f"Booking is {booking.status}, cannot pay",
                            details={"booking_id": booking_id, "status": booking.status},
                        )
                    if payment.provider_ref and await self._payment_ref_used(db, payment.provider_ref):
                        raise self._reused_payment_ref(booking_id, payment.provider_ref)

                    upd = (
                        sa_update(Booking)
                        .where(Booking.id == booking_id)
                        .where(Booking.status == BookingStatus.PENDING.value)
                        .where(Booking.expires_at >= now)
                        .values(status=BookingStatus.CONFIRMED.value, expires_at=None)
                        .execution_options(synchronize_session=False)
                    )
                    result = await db.execute(upd)
                    if result.rowcount == 1:
                        record = Payment(
                            booking_id=booking_id,
                            amount=payment.amount if payment.amount is not None else booking.total_amount,
                            mode=payment.mode.value,
                            provider_ref=payment.provider_ref,
                            status=PaymentStatus.COMPLETED.value,
                        )
                        db.add(record)
                        await db.flush()
                    else:
                        await self._sweep(db, now, trip_id=booking.trip_id)
                    booking = await self._get_booking(db, booking_id)
        except IntegrityError:
            # a concurrent confirmation recorded the same provider reference first
            if payment.provider_ref:
                async with self.session_factory() as db:
                    if await self._payment_ref_used(db, payment.provider_ref):
                        raise self._reused_payment_ref(booking_id, payment.provider_ref)
            raise

        if record is None:
            if booking.status == BookingStatus.CANCELLED.value:
                CONFIRMATIONS.labels(result="BookingExpired").inc()
                logger.info("Confirmation after deadline", extra={"booking_id": booking_id})
                raise BookingExpired(booking_id)
            # a concurrent confirmation won the race
            CONFIRMATIONS.labels(result="InvalidState").inc()
            raise InvalidState(
                f"Booking is {booking.status}, cannot pay",
                details={"booking_id": booking_id, "status": booking.status},
            )

        CONFIRMATIONS.labels(result="success").inc()
        logger.info(
            "Booking confirmed",
            extra={"booking_id": booking_id, "payment_id": record.id, "amount": str(record.amount)},
        )
        return booking, record

    async def cancel_booking(self, booking_id: int, actor: Identity) -> Booking:
        """Cancel a pending or confirmed booking; seats are released immediately."""
        async with self.session_factory() as db:
            async with db.begin():
                booking = await self._get_booking(db, booking_id)
                # trip row before booking row, the order every writer uses
                trip = await InventoryLedger(db).get_trip(booking.trip_id, for_update=True)
                if actor.id == booking.rider_id:
                    actor_kind = "rider"
                elif actor.id == trip.owner_id:
                    actor_kind = "owner"
                else:
                    raise AccessDenied("Only the rider or the trip owner can cancel this booking")
                if booking.status not in ACTIVE_BOOKING_STATUSES or not await self._cancel_active(db, booking):
                    raise InvalidState(
                        "Booking is already cancelled",
                        details={"booking_id": booking_id, "status": booking.status},
                    )
                booking = await self._get_booking(db, booking_id)

        CANCELLATIONS.labels(actor=actor_kind).inc()
        logger.info(
            "Booking cancelled",
            extra={"booking_id": booking_id, "trip_id": booking.trip_id, "actor_id": actor.id, "actor": actor_kind},
        )
        return booking

    async def cancel_trip(self, trip_id: int, actor: Identity) -> Tuple[Trip, int]:
        """Owner cancels the whole trip: every active booking is cancelled and refunded."""
        async with self.session_factory() as db:
            async with db.begin():
                ledger = InventoryLedger(db)
                trip = await ledger.get_trip(trip_id, for_update=True)
                if trip.owner_id != actor.id:
                    raise AccessDenied("Only the trip owner can cancel this trip", details={"trip_id": trip_id})
                # stop accepting bookings before unwinding the existing ones
                if not await ledger.mark_cancelled(trip_id):
                    raise InvalidState(
                        f"Trip is {trip.status}, cannot cancel",
                        details={"trip_id": trip_id, "status": trip.status},
                    )
                stmt = sa_select(Booking).where(
                    Booking.trip_id == trip_id,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
                bookings = (await db.execute(stmt)).scalars().all()
                cancelled = 0
                for booking in bookings:
                    if await self._cancel_active(db, booking):
                        cancelled += 1
                trip = await ledger.get_trip(trip_id)

        CANCELLATIONS.labels(actor="owner").inc(cancelled)
        logger.info("Trip cancelled", extra={"trip_id": trip_id, "cancelled_bookings": cancelled})
        return trip, cancelled

    async def sweep(self, trip_id: Optional[int] = None, now: Optional[datetime] = None) -> List[int]:
        """Run the expiry sweep on its own and commit it."""
        if now is None:
            now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                return await self._sweep(db, now, trip_id=trip_id)

    async def sweep_and_list(
        self,
        viewer: Identity,
        source: Optional[str] = None,
        destination: Optional[str] = None,
        pink_only: bool = False,
    ) -> List[Trip]:
        """Sweep every trip, then list the bookable trips ``viewer`` may see."""
        now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                await self._sweep(db, now)
                stmt = sa_select(Trip).where(Trip.status.in_(BOOKABLE_TRIP_STATUSES))
                if source:
                    stmt = stmt.where(Trip.source.ilike(f"%{source}%"))
                if destination:
                    stmt = stmt.where(Trip.destination.ilike(f"%{destination}%"))
                if pink_only:
                    stmt = stmt.where(Trip.pink_mode.is_(True))
                stmt = stmt.order_by(Trip.departure_time, Trip.id)
                trips = (await db.execute(stmt)).scalars().all()
        return [t for t in trips if can_view_trip(t, viewer)]

    async def get_trip(self, trip_id: int, viewer: Identity) -> Tuple[Trip, List[Booking]]:
        """Sweep one trip and return it with the bookings ``viewer`` may see.

        The owner sees every booking; anyone else only their own.
        """
        now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                await self._sweep(db, now, trip_id=trip_id)
                trip = await InventoryLedger(db).get_trip(trip_id)
                stmt = (
                    sa_select(Booking)
                    .where(Booking.trip_id == trip_id)
                    .options(selectinload(Booking.payments))
                    .order_by(Booking.id)
                )
                if trip.owner_id != viewer.id:
                    stmt = stmt.where(Booking.rider_id == viewer.id)
                bookings = (await db.execute(stmt)).scalars().all()
        if not can_view_trip(trip, viewer):
            raise NotFound("Trip", trip_id)
        return trip, list(bookings)

    async def list_rider_bookings(self, rider_id: int) -> List[Booking]:
        now = self.clock()
        async with self.session_factory() as db:
            async with db.begin():
                await self._sweep(db, now)
                stmt = (
                    sa_select(Booking)
                    .where(Booking.rider_id == rider_id)
                    .options(selectinload(Booking.payments))
                    .order_by(Booking.id.desc())
                )
                return list((await db.execute(stmt)).scalars().all())
