# API routers, mounted by main.py
from . import (
    bookings as bookings,
    health as health,
    payments as payments,
    prometheus as prometheus,
)
