from .models import *

__all__ = [
    "Base",
    "Trip",
    "Booking",
    "Payment",
]
