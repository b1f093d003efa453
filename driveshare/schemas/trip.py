from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict

from driveshare.schemas.booking import BookingState


class TripState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    source: str
    destination: str
    departure_time: datetime
    capacity: int
    available_seats: int
    price_per_seat: Decimal
    status: str
    pink_mode: bool


class TripDetail(TripState):
    bookings: List[BookingState] = []


class TripCancelResponse(BaseModel):
    ok: bool = True
    trip_id: int
    status: str
    cancelled_bookings: int
