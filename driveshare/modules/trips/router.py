from typing import List, Optional

from fastapi import APIRouter, Depends

from driveshare.auth.deps import get_current_identity, role_required
from driveshare.dependencies import get_reservation_manager
from driveshare.schemas.booking import BookingState
from driveshare.schemas.identity import Identity
from driveshare.schemas.trip import TripCancelResponse, TripDetail, TripState
from driveshare.services.reservations import ReservationManager

router = APIRouter(tags=["trips"])


@router.get("/", response_model=List[TripState])
async def list_trips(
    source: Optional[str] = None,
    destination: Optional[str] = None,
    pink_mode: bool = False,
    viewer: Identity = Depends(get_current_identity),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Open and full trips, swept so held seats reflect lapsed payments."""
    trips = await manager.sweep_and_list(viewer, source=source, destination=destination, pink_only=pink_mode)
    return [TripState.model_validate(t) for t in trips]


@router.get("/{trip_id}", response_model=TripDetail)
async def get_trip(
    trip_id: int,
    viewer: Identity = Depends(get_current_identity),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    trip, bookings = await manager.get_trip(trip_id, viewer)
    return TripDetail(
        **TripState.model_validate(trip).model_dump(),
        bookings=[BookingState.model_validate(b) for b in bookings],
    )


@router.post("/{trip_id}/cancel", response_model=TripCancelResponse)
async def cancel_trip(
    trip_id: int,
    owner: Identity = Depends(role_required(["driver"])),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    trip, cancelled = await manager.cancel_trip(trip_id, owner)
    return TripCancelResponse(trip_id=trip.id, status=trip.status, cancelled_bookings=cancelled)
