"""006: create notifications table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notifications (
            id              SERIAL          PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            type            VARCHAR(10)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            message         TEXT            NOT NULL,
            order_id        INT             REFERENCES orders (id) ON DELETE SET NULL,
            is_read         BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_notifications_type CHECK (type IN ('order', 'payment', 'delivery', 'system'))
        );
    """)
    op.execute("CREATE INDEX idx_notifications_user_unread ON notifications (user_id) WHERE is_read = FALSE;")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE;")
