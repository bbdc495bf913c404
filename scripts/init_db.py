"""Create the database schema and the bootstrap admin account.

    APP_ENV=production ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/init_db.py
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from face_attendance.database.bootstrap import apply_schema, ensure_admin_user, list_tables
from face_attendance.settings import get_settings_module

logger = logging.getLogger("init_db")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    load_dotenv(override=False)

    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    schema_path = Path(__file__).resolve().parents[1] / "database" / "schema.sql"
    apply_schema(db_config, schema_path=schema_path)
    tables = list_tables(db_config)
    logger.info(
        "applied schema.sql -> %s@%s:%s/%s (tables=%d)",
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
        len(tables),
    )

    if not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD not set, skipping admin account")
        return 0
    ensure_admin_user(db_config, email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD)
    return 0


if __name__ == "__main__":
    sys.exit(main())
