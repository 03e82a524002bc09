from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.center_attendance.center_attendance.database.bootstrap import (
    DEMO_ADMIN_EMAIL,
    DEMO_STUDENT_EMAIL,
    ensure_demo_data,
)


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    ensure_demo_data(db_config)
    print(f"OK: seeded demo center, {DEMO_ADMIN_EMAIL} and {DEMO_STUDENT_EMAIL} -> {db_config.get('database')}")


if __name__ == "__main__":
    main()
