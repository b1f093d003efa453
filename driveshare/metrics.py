from prometheus_client import Counter, Histogram

# Reservation metrics
RESERVATION_ATTEMPTS = Counter("driveshare_reservation_attempts_total", "Seat reservation attempts", ["result"])
RESERVATION_LATENCY = Histogram("driveshare_reservation_latency_seconds", "Latency of seat reservation transactions")

# Booking lifecycle metrics
CONFIRMATIONS = Counter("driveshare_booking_confirmations_total", "Booking confirmation attempts", ["result"])
CANCELLATIONS = Counter("driveshare_booking_cancellations_total", "Bookings cancelled explicitly", ["actor"])

# Sweeper metrics
SWEEP_RELEASED = Counter("driveshare_sweep_released_bookings_total", "Pending bookings cancelled after their deadline")
TRIPS_COMPLETED = Counter("driveshare_trips_completed_total", "Trips marked completed after departure")
