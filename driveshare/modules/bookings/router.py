from typing import List

from fastapi import APIRouter, Depends, status

from driveshare.auth.deps import get_current_identity, role_required
from driveshare.dependencies import get_reservation_manager
from driveshare.schemas.booking import (
    BookingState,
    CancelResponse,
    ConfirmResponse,
    PaymentDetails,
    ReserveRequest,
    ReserveResponse,
)
from driveshare.schemas.identity import Identity
from driveshare.services.reservations import ReservationManager

router = APIRouter(tags=["bookings"])


@router.post("/reserve", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
async def reserve(
    req: ReserveRequest,
    rider: Identity = Depends(role_required(["rider"])),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Hold seats on a trip; the response deadline drives the payment countdown."""
    booking = await manager.create_booking(req.trip_id, rider, req.seats)
    return ReserveResponse(
        booking_id=booking.id,
        trip_id=booking.trip_id,
        seats_booked=booking.seats_booked,
        status=booking.status,
        deadline=booking.expires_at,
        total_amount=booking.total_amount,
    )


@router.post("/{booking_id}/confirm", response_model=ConfirmResponse)
async def confirm(
    booking_id: int,
    payment: PaymentDetails,
    rider: Identity = Depends(role_required(["rider"])),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    booking, record = await manager.confirm_booking(booking_id, payment, rider_id=rider.id)
    return ConfirmResponse(booking_id=booking.id, status=booking.status, payment_id=record.id)


@router.post("/{booking_id}/cancel", response_model=CancelResponse)
async def cancel(
    booking_id: int,
    actor: Identity = Depends(get_current_identity),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    booking = await manager.cancel_booking(booking_id, actor)
    return CancelResponse(booking_id=booking.id, status=booking.status, seats_released=booking.seats_booked)


@router.get("/mine", response_model=List[BookingState])
async def my_bookings(
    rider: Identity = Depends(role_required(["rider"])),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    bookings = await manager.list_rider_bookings(rider.id)
    return [BookingState.model_validate(b) for b in bookings]
