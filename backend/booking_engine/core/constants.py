"""Engine-wide constants."""

from __future__ import annotations

MINUTES_PER_DAY = 24 * 60
SECONDS_PER_HOUR = 3600

# Slot generation
DEFAULT_STEP_MINUTES = 30
DEFAULT_SESSION_DURATION_MINUTES = 50

# Calendar month grid (six weeks, Sunday first)
CALENDAR_GRID_DAYS = 42

# Patient form constraints
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 500
MAX_AGE_YEARS = 120

NAME_PATTERN = r"^[a-zA-ZÀ-ÿ\s]+$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^\(\d{2}\) \d{4,5}-\d{4}$"

# Workflow notices
NOTICE_NO_AVAILABLE_SLOTS = "no available slots"
