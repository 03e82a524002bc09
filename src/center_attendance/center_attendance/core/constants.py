"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000
DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_SCAN_COOLDOWN_SECONDS = 60
DEFAULT_MAX_SCAN_SESSIONS_PER_DAY = 2
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_ADMIN_LIST_LIMIT = 200
DEFAULT_REPORT_DAYS = 30
BADGE_PREFIX = "CA-STUDENT:"
