"""Logging setup for the attendance service."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from flask import Flask

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    app: Flask,
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    *,
    max_log_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure the root logger once per process.

    Console output is always on. When ``log_dir`` is given, rotating
    ``face_attendance.log``, ``errors.log`` and ``security.log`` files are
    written there as well.
    """

    level = getattr(logging, str(log_level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    security_logger = logging.getLogger("security")
    security_logger.setLevel(logging.INFO)
    for handler in security_logger.handlers[:]:
        security_logger.removeHandler(handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        def rotating(name: str, handler_level: int) -> logging.Handler:
            handler = logging.handlers.RotatingFileHandler(
                path / name, maxBytes=max_log_size, backupCount=backup_count, encoding="utf-8"
            )
            handler.setLevel(handler_level)
            handler.setFormatter(formatter)
            return handler

        root_logger.addHandler(rotating("face_attendance.log", level))
        root_logger.addHandler(rotating("errors.log", logging.ERROR))
        security_logger.addHandler(rotating("security.log", logging.INFO))

    # mysql-connector is chatty at DEBUG
    logging.getLogger("mysql.connector").setLevel(max(level, logging.INFO))

    app.logger.setLevel(level)
    app.logger.info("logging ready (level=%s, dir=%s)", logging.getLevelName(level), log_dir or "-")


class SecurityLogger:
    """Audit trail for authentication and admin decisions."""

    def __init__(self):
        self.logger = logging.getLogger("security")

    def log_login(self, email: str, ip_address: Optional[str], success: bool = True) -> None:
        status = "SUCCESS" if success else "FAILED"
        self.logger.info("LOGIN %s - user=%s ip=%s", status, email, ip_address)

    def log_logout(self, user_id: int, ip_address: Optional[str]) -> None:
        self.logger.info("LOGOUT - user_id=%s ip=%s", user_id, ip_address)

    def log_unauthorized_access(self, endpoint: Optional[str], ip_address: Optional[str], user_id=None) -> None:
        self.logger.warning("UNAUTHORIZED ACCESS - endpoint=%s ip=%s user_id=%s", endpoint, ip_address, user_id)

    def log_admin_action(self, admin_id: int, action: str, details: Optional[str] = None) -> None:
        self.logger.info("ADMIN ACTION - admin_id=%s action=%s details=%s", admin_id, action, details or "-")


security_logger = SecurityLogger()
