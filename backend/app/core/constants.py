"""Application-wide constants for the coaching platform."""

from __future__ import annotations

BRAND_NAME = "ACT Coaching"
API_VERSION = "1.0.0"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Booking requests, coach rates and session payments for the coaching marketplace"

# Session durations a client may request (minutes)
ALLOWED_DURATIONS: tuple[int, ...] = (15, 30, 45, 60, 90, 120)

# Text constraints
MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 500
MAX_TITLE_LENGTH = 200

# Suffix appended to a duplicated rate's title
DUPLICATE_RATE_SUFFIX = " (Copy)"

# Start offset for a confirmed session when the client gave no usable time
DEFAULT_SESSION_LEAD_MINUTES = 60
