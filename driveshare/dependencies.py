from datetime import timedelta

from driveshare.config import settings
from driveshare.db.session import async_session
from driveshare.services.reservations import ReservationManager


def get_reservation_manager() -> ReservationManager:
    return ReservationManager(
        async_session,
        payment_window=timedelta(seconds=settings.PAYMENT_WINDOW_SECONDS),
    )
