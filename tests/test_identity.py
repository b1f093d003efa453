from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from jose import JWTError, jwt

from driveshare.config import settings
from driveshare.models.models import Trip
from driveshare.services.access import can_view_trip, pink_mode_policy
from driveshare.services.identity import create_access_token, decode_identity

from conftest import DRIVER, RIDER_A, RIDER_B


def _trip(pink_mode: bool, owner_id: int = DRIVER.id) -> Trip:
    return Trip(
        id=1,
        owner_id=owner_id,
        source="Pune",
        destination="Mumbai",
        departure_time=datetime(2030, 1, 2),
        capacity=3,
        available_seats=3,
        price_per_seat=Decimal("10"),
        status="Open",
        pink_mode=pink_mode,
    )


def test_token_round_trip_keeps_claims():
    identity = decode_identity(create_access_token(RIDER_B))
    assert identity == RIDER_B


def test_refresh_tokens_are_rejected():
    token = jwt.encode(
        {"sub": "5", "type": "refresh", "exp": int((datetime.utcnow() + timedelta(minutes=5)).timestamp())},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(JWTError):
        decode_identity(token)


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "5", "type": "access"}, "not-the-key", algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_identity(token)


def test_pink_mode_policy():
    assert pink_mode_policy(_trip(False), RIDER_A)
    assert not pink_mode_policy(_trip(True), RIDER_A)
    assert pink_mode_policy(_trip(True), RIDER_B)


def test_owner_can_always_view_own_trip():
    assert can_view_trip(_trip(True, owner_id=DRIVER.id), DRIVER)
    assert not can_view_trip(_trip(True, owner_id=99), DRIVER)
