import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "center_attendance"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Local day boundaries for both the geofence and the scan flow.
TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata")
SCAN_COOLDOWN_SECONDS = int(os.getenv("SCAN_COOLDOWN_SECONDS", "60"))
MAX_SCAN_SESSIONS_PER_DAY = int(os.getenv("MAX_SCAN_SESSIONS_PER_DAY", "2"))

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed the demo center, admin and student on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
