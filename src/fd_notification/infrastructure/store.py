"""NotificationStore — raw SQL persistence for the notifications table.

Every write runs in its own short session so a notification can never join,
delay, or roll back the order/wallet transaction that triggered it.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.fd_common.database import async_session_factory, independent_transaction

_INSERT_NOTIFICATION_SQL = text("""
    INSERT INTO notifications (user_id, type, title, message, order_id, is_read)
    VALUES (:user_id, :type, :title, :message, :order_id, FALSE)
    RETURNING id, user_id, type, title, message, order_id, is_read, created_at
""")

_UNREAD_COUNT_SQL = text("""
    SELECT COUNT(*) FROM notifications
    WHERE user_id = :user_id AND is_read = FALSE
""")


class NotificationStore:
    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        self._session_factory = session_factory or async_session_factory

    async def insert(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        order_id: int | None,
    ) -> dict[str, Any]:
        async with independent_transaction(self._session_factory) as db:
            row = (
                await db.execute(
                    _INSERT_NOTIFICATION_SQL,
                    {
                        "user_id": user_id,
                        "type": type,
                        "title": title,
                        "message": message,
                        "order_id": order_id,
                    },
                )
            ).fetchone()
        return {
            "id": row.id,
            "user_id": row.user_id,
            "type": row.type,
            "title": row.title,
            "message": row.message,
            "order_id": row.order_id,
            "is_read": row.is_read,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }

    async def unread_count(self, user_id: str) -> int:
        async with self._session_factory() as db:
            return int((await db.execute(_UNREAD_COUNT_SQL, {"user_id": user_id})).scalar_one())
