import pytest

from driveshare.celery_app import celery_app
from driveshare.tasks import run_sweep

from conftest import RIDER_A, RIDER_B


def test_sweep_is_scheduled_on_beat():
    entry = celery_app.conf.beat_schedule["sweep-expired-bookings"]
    assert entry["task"] == "driveshare.tasks.sweep_expired_bookings"
    assert "driveshare.tasks.sweep_expired_bookings" in celery_app.tasks


@pytest.mark.asyncio
async def test_run_sweep_releases_lapsed_holds_everywhere(manager, clock, make_trip, assert_ledger_consistent):
    first = await make_trip(capacity=2)
    second = await make_trip(capacity=2)
    a = await manager.create_booking(first.id, RIDER_A, 2)
    b = await manager.create_booking(second.id, RIDER_B, 1)

    assert await run_sweep(manager) == []

    clock.advance(45)
    assert await run_sweep(manager) == [a.id, b.id]
    assert (await assert_ledger_consistent(first.id)).available_seats == 2
    assert (await assert_ledger_consistent(second.id)).available_seats == 2
