from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from werkzeug.security import generate_password_hash

from ..common.validators import require_email, require_strong_password
from .connection import DBConfig, DatabaseConnection
from .mysql_base import db_cursor, fetchone

logger = logging.getLogger(__name__)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))


def _iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script on ';' outside of quoted strings."""

    buf: list[str] = []
    quote = None
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\" and quote:
            buf.append(ch)
            escape = True
            continue

        if ch in ("'", '"'):
            if quote is None:
                quote = ch
            elif quote == ch:
                quote = None
            buf.append(ch)
            continue

        if ch == ";" and quote is None:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _connection(db_config: dict) -> DatabaseConnection:
    return DatabaseConnection(DBConfig.from_dict(db_config))


def ensure_database_exists(db_config: dict) -> None:
    factory = _connection(db_config)
    conn = factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{factory.config.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)

    sql = _strip_line_comments(_strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8")))
    with db_cursor(_connection(db_config), dictionary=False) as (_, cur):
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
    logger.info("schema applied from %s", schema_path)


def ensure_admin_user(db_config: dict, *, email: str, password: str, full_name: str = "Administrator") -> bool:
    """Create the bootstrap admin account when it does not exist yet.

    Returns True when a new account was inserted.
    """

    email = require_email(email)
    require_strong_password(password)

    with db_cursor(_connection(db_config)) as (_, cur):
        cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
        if fetchone(cur):
            logger.info("admin account %s already present", email)
            return False
        cur.execute(
            """
            INSERT INTO users(email, full_name, password_hash, role, status, email_verified, face_enrolled)
            VALUES(%s, %s, %s, 'ADMIN', 'ACTIVE', 1, 0)
            """,
            (email, full_name, generate_password_hash(password)),
        )
    logger.info("admin account %s created", email)
    return True


def list_tables(db_config: dict) -> list[str]:
    with db_cursor(_connection(db_config), dictionary=False) as (_, cur):
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
