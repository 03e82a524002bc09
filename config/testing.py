import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "center_attendance_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

TIMEZONE = "Asia/Kolkata"
SCAN_COOLDOWN_SECONDS = 60
MAX_SCAN_SESSIONS_PER_DAY = 2

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
