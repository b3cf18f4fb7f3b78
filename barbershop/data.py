# barbershop/data.py

from datetime import time

# Minutes an appointment occupies when its service has no duration set
DEFAULT_SERVICE_DURATION = 45

# Statuses that hold a barber's time slot
ACTIVE_STATUSES = ("reserved", "pending")

# Same-day bookings need this much notice
MIN_BOOKING_NOTICE_MINUTES = 25

# Unpaid deposit holds are released after this
PENDING_HOLD_MINUTES = 15
PAYMENT_EXPIRY_HOURS = 72

BOOKABLE_DAYS = 14

SLOT_MINUTES_CHOICES = (30, 45, 60)

shop_defaults = {
    "name": "Mi Barbería",
    "open_time": time(9, 0),
    "close_time": time(20, 0),
    "slot_minutes": 45,
    "closed_weekdays": [6],  # 0=Mon ... 6=Sun
    "deposits_enabled": False,
    "deposit_percentage": 30,
    "deposit_policy": "none",
    "premium_service_ids": [],
    "cancellation_notice_hours": 24,
    "allow_deposit_refund": True,
}

# Demo statistics: outcome weights in percent
STATUS_WEIGHTS = {
    "completed": 60,
    "canceled": 15,
    "reserved": 25,
}

DEMO_SERVICES = {
    "Corte clásico": (8000, 45),
    "Corte y barba": (11000, 60),
    "Perfilado de barba": (5000, 30),
    "Fade": (9000, 45),
}

DEMO_BARBERS = [
    ("Juan", "Pérez", "juan@barbershop.test"),
    ("Lucas", "Gómez", "lucas@barbershop.test"),
    ("Martín", "Díaz", "martin@barbershop.test"),
]

DEMO_CLIENTS = [
    ("Ana", "López", "ana@example.com"),
    ("Pedro", "Sánchez", "pedro@example.com"),
    ("Sofía", "Romero", "sofia@example.com"),
    ("Diego", "Fernández", "diego@example.com"),
    ("Valentina", "Torres", "valentina@example.com"),
]
