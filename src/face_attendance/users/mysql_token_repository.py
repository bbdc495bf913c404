from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.enums import TokenPurpose
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import UserToken
from .repository import TokenRepository


class MySQLTokenRepository(TokenRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, *, user_id: int, purpose: TokenPurpose, token: str, expires_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO user_tokens(user_id, purpose, token, expires_at) VALUES(%s, %s, %s, %s)",
                (int(user_id), purpose.value, token, expires_at),
            )
            return int(cur.lastrowid)

    def get(self, token: str, purpose: TokenPurpose) -> Optional[UserToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT token_id, user_id, purpose, token, expires_at, used_at
                FROM user_tokens
                WHERE token=%s AND purpose=%s
                """,
                (token, purpose.value),
            )
            r = fetchone(cur)
            if not r:
                return None
            return UserToken(
                token_id=int(r["token_id"]),
                user_id=int(r["user_id"]),
                purpose=TokenPurpose(r["purpose"]),
                token=r["token"],
                expires_at=r["expires_at"],
                used_at=r.get("used_at"),
            )

    def mark_used(self, token_id: int, used_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE user_tokens SET used_at=%s WHERE token_id=%s AND used_at IS NULL",
                (used_at, int(token_id)),
            )
            return cur.rowcount > 0

    def delete(self, token_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM user_tokens WHERE token_id=%s", (int(token_id),))
            return cur.rowcount > 0

    def delete_for_user(self, user_id: int, purpose: TokenPurpose) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM user_tokens WHERE user_id=%s AND purpose=%s",
                (int(user_id), purpose.value),
            )
            return int(cur.rowcount)
