from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from driveshare.models.enums import PaymentMode


class ReserveRequest(BaseModel):
    trip_id: int
    seats: int = Field(1, ge=1, description="Seats to hold")


class ReserveResponse(BaseModel):
    booking_id: int
    trip_id: int
    seats_booked: int
    status: str
    deadline: datetime
    total_amount: Decimal


class PaymentDetails(BaseModel):
    """Opaque payment-succeeded event from the payment collaborator."""

    amount: Optional[Decimal] = Field(None, ge=0, description="Defaults to the booking total")
    mode: PaymentMode = PaymentMode.UPI
    provider_ref: Optional[str] = None


class ConfirmResponse(BaseModel):
    ok: bool = True
    booking_id: int
    status: str
    payment_id: int


class CancelResponse(BaseModel):
    ok: bool = True
    booking_id: int
    status: str
    seats_released: int


class PaymentState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Decimal
    mode: str
    status: str
    paid_at: Optional[datetime] = None


class BookingState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trip_id: int
    rider_id: int
    seats_booked: int
    status: str
    total_amount: Decimal
    expires_at: Optional[datetime] = None
    booked_at: Optional[datetime] = None
    payments: List[PaymentState] = []
