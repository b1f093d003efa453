from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from driveshare.db.base import Base
from driveshare.models.enums import BookingStatus, PaymentMode, PaymentStatus, TripStatus


class Trip(Base):
    __tablename__ = "trips"
    id = Column(Integer, primary_key=True)
    # driver who published the trip; identities live in the identity service
    owner_id = Column(Integer, nullable=False, index=True)
    source = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    departure_time = Column(DateTime, nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    price_per_seat = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(32), nullable=False, default=TripStatus.OPEN.value, index=True)
    pink_mode = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    bookings = relationship("Booking", back_populates="trip")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_trip_capacity"),
        CheckConstraint("available_seats >= 0 AND available_seats <= capacity", name="ck_trip_available_seats"),
        CheckConstraint("price_per_seat >= 0", name="ck_trip_price"),
    )


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    rider_id = Column(Integer, nullable=False, index=True)
    seats_booked = Column(Integer, nullable=False, default=1)
    status = Column(String(32), nullable=False, default=BookingStatus.PENDING.value, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    # payment deadline, only set while pending
    expires_at = Column(DateTime, nullable=True, index=True)
    booked_at = Column(DateTime, server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="bookings")
    payments = relationship("Payment", back_populates="booking")

    __table_args__ = (
        CheckConstraint("seats_booked >= 1", name="ck_booking_seats"),
        # one live booking per rider per trip
        Index(
            "uq_booking_active_rider",
            "trip_id",
            "rider_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    mode = Column(String(32), nullable=False, default=PaymentMode.UPI.value)
    provider_ref = Column(String(255), nullable=True, unique=True)
    status = Column(String(32), nullable=False, default=PaymentStatus.COMPLETED.value, index=True)
    paid_at = Column(DateTime, server_default=func.now(), nullable=False)

    booking = relationship("Booking", back_populates="payments")
