from typing import Callable

from driveshare.models.models import Trip
from driveshare.schemas.identity import Identity

PINK_MODE_GENDER = "Female"

# (trip, rider) -> may this rider take seats on this trip
AccessPolicy = Callable[[Trip, Identity], bool]


def pink_mode_policy(trip: Trip, rider: Identity) -> bool:
    """Pink-mode trips are reserved for female riders."""
    if not trip.pink_mode:
        return True
    return rider.gender == PINK_MODE_GENDER


def can_view_trip(trip: Trip, viewer: Identity) -> bool:
    # owners always see their own trips
    if trip.owner_id == viewer.id:
        return True
    return pink_mode_policy(trip, viewer)
