"""
Inventory ledger tests.

The ledger runs inside a caller-owned transaction, so each test opens one.
"""

import pytest

from driveshare.exceptions import InsufficientSeats, LedgerInvariantError, NotFound, TripUnavailable
from driveshare.models.enums import TripStatus
from driveshare.models.models import Trip
from driveshare.services.ledger import InventoryLedger


async def _reserve(session_factory, trip_id, n):
    async with session_factory() as db:
        async with db.begin():
            await InventoryLedger(db).reserve_seats(trip_id, n)


async def _release(session_factory, trip_id, n):
    async with session_factory() as db:
        async with db.begin():
            await InventoryLedger(db).release_seats(trip_id, n)


@pytest.mark.asyncio
async def test_reserve_decrements_and_marks_full(session_factory, make_trip, load):
    trip = await make_trip(capacity=3)

    await _reserve(session_factory, trip.id, 2)
    row = await load(Trip, trip.id)
    assert row.available_seats == 1
    assert row.status == TripStatus.OPEN.value

    await _reserve(session_factory, trip.id, 1)
    row = await load(Trip, trip.id)
    assert row.available_seats == 0
    assert row.status == TripStatus.FULL.value


@pytest.mark.asyncio
async def test_reserve_more_than_available_leaves_trip_untouched(session_factory, make_trip, load):
    trip = await make_trip(capacity=2)

    with pytest.raises(InsufficientSeats) as exc_info:
        await _reserve(session_factory, trip.id, 3)

    assert exc_info.value.details == {"trip_id": trip.id, "requested": 3, "available": 2}
    row = await load(Trip, trip.id)
    assert row.available_seats == 2
    assert row.status == TripStatus.OPEN.value


@pytest.mark.asyncio
@pytest.mark.parametrize("blocked", [TripStatus.CANCELLED, TripStatus.COMPLETED])
async def test_reserve_on_closed_trip_is_unavailable(session_factory, make_trip, load, blocked):
    trip = await make_trip(capacity=3)
    async with session_factory() as db:
        async with db.begin():
            row = await db.get(Trip, trip.id)
            row.status = blocked.value

    with pytest.raises(TripUnavailable):
        await _reserve(session_factory, trip.id, 1)
    assert (await load(Trip, trip.id)).available_seats == 3


@pytest.mark.asyncio
async def test_reserve_unknown_trip(session_factory):
    with pytest.raises(NotFound):
        await _reserve(session_factory, 9999, 1)


@pytest.mark.asyncio
async def test_reserve_rejects_non_positive_counts(session_factory, make_trip):
    trip = await make_trip()
    with pytest.raises(ValueError):
        await _reserve(session_factory, trip.id, 0)


@pytest.mark.asyncio
async def test_release_reopens_full_trip(session_factory, make_trip, load):
    trip = await make_trip(capacity=2)
    await _reserve(session_factory, trip.id, 2)
    assert (await load(Trip, trip.id)).status == TripStatus.FULL.value

    await _release(session_factory, trip.id, 1)

    row = await load(Trip, trip.id)
    assert row.available_seats == 1
    assert row.status == TripStatus.OPEN.value


@pytest.mark.asyncio
async def test_release_never_exceeds_capacity(session_factory, make_trip, load):
    trip = await make_trip(capacity=3)
    await _reserve(session_factory, trip.id, 1)

    with pytest.raises(LedgerInvariantError):
        await _release(session_factory, trip.id, 2)

    assert (await load(Trip, trip.id)).available_seats == 2


@pytest.mark.asyncio
async def test_release_keeps_cancelled_status(session_factory, make_trip, load):
    trip = await make_trip(capacity=1)
    await _reserve(session_factory, trip.id, 1)
    async with session_factory() as db:
        async with db.begin():
            assert await InventoryLedger(db).mark_cancelled(trip.id)

    await _release(session_factory, trip.id, 1)

    row = await load(Trip, trip.id)
    assert row.available_seats == 1
    assert row.status == TripStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_mark_full_and_open_follow_seat_count(session_factory, make_trip):
    trip = await make_trip(capacity=1)
    async with session_factory() as db:
        async with db.begin():
            ledger = InventoryLedger(db)
            # seats left: neither transition applies
            assert await ledger.mark_full(trip.id) is False
            assert await ledger.mark_open(trip.id) is False
