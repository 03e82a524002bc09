from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

from .connection import DBConfig

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@center.local"
DEMO_STUDENT_EMAIL = "student@center.local"


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(
        host=target.host,
        port=target.port,
        user=target.user,
        password=target.password,
        use_pure=True,
    )
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql usable regardless of the configured database name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?m)^\s*--.*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Splits on ';' outside of quoted strings.
    buf: list[str] = []
    quote: str | None = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
            continue
        if ch == ";":
            stmt = "".join(buf[:-1]).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))

    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("schema applied from %s", schema_path)


def ensure_demo_data(db_config: dict) -> None:
    """Seed one center with a geofence, an admin and a student (idempotent)."""

    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor(dictionary=True)

        cur.execute("SELECT center_id FROM centers WHERE code=%s", ("MAIN",))
        row = cur.fetchone()
        if row:
            center_id = int(row["center_id"])
        else:
            cur.execute(
                "INSERT INTO centers (name, code, lat, lng, radius_meters) VALUES (%s, %s, %s, %s, %s)",
                ("Main Center", "MAIN", 34.0837, 74.7973, 100.0),
            )
            center_id = int(cur.lastrowid)

        def upsert_user(name: str, email: str, password: str, role: str) -> int:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            existing = cur.fetchone()
            if existing:
                cur.execute(
                    "UPDATE users SET name=%s, password_hash=%s WHERE user_id=%s",
                    (name, password_hash, int(existing["user_id"])),
                )
                return int(existing["user_id"])
            cur.execute(
                "INSERT INTO users (name, email, password_hash, role) VALUES (%s, %s, %s, %s)",
                (name, email, password_hash, role),
            )
            return int(cur.lastrowid)

        upsert_user("Admin Demo", DEMO_ADMIN_EMAIL, "admin123", "admin")
        student_user_id = upsert_user("Student Demo", DEMO_STUDENT_EMAIL, "student123", "student")

        cur.execute("SELECT student_id FROM students WHERE user_id=%s", (student_user_id,))
        if not cur.fetchone():
            cur.execute(
                "INSERT INTO students (user_id, center_id, grade, roll_number) VALUES (%s, %s, %s, %s)",
                (student_user_id, center_id, "10", "1"),
            )

        conn.commit()
    finally:
        conn.close()
    logger.info("demo data ready")


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(DBConfig.from_dict(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
