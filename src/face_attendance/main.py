from __future__ import annotations

import importlib
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .attendance.controller import register as register_attendance
from .classes.controller import register as register_classes
from .common.web import init_session_auth, register_error_handlers
from .container import Container, build_container
from .core.constants import SESSION_LIFETIME_DAYS
from .database.bootstrap import apply_schema, list_tables
from .faces.controller import register as register_faces
from .logging_config import setup_logging
from .settings import get_settings_module
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "database" / "schema.sql"


def create_app(container: Optional[Container] = None, *, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = settings.SECRET_KEY
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["JSON_SORT_KEYS"] = False
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.permanent_session_lifetime = timedelta(days=SESSION_LIFETIME_DAYS)

    proxy_hops = int(getattr(settings, "TRUSTED_PROXY_HOPS", 0))
    if proxy_hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxy_hops, x_proto=proxy_hops)

    setup_logging(app, settings.LOG_LEVEL, settings.LOG_DIR)

    db_config = settings.DB_CONFIG
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(db_config, schema_path=SCHEMA_PATH)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        container = build_container(settings=settings)

    register_error_handlers(app)
    init_session_auth(app, container.auth_service.load_session_user)
    register_users(app, container)
    register_faces(app, container)
    register_classes(app, container)
    register_attendance(app, container)

    return app
