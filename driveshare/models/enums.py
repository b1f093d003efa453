import enum


class TripStatus(str, enum.Enum):
    OPEN = "Open"
    FULL = "Full"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# statuses that still accept bookings
BOOKABLE_TRIP_STATUSES = (TripStatus.OPEN.value, TripStatus.FULL.value)


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# bookings that hold seats on their trip
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class PaymentStatus(str, enum.Enum):
    COMPLETED = "Completed"
    REFUNDED = "Refunded"


class PaymentMode(str, enum.Enum):
    UPI = "UPI"
    CARD = "Card"
    CASH = "Cash"
