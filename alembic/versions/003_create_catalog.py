"""003: create foods and addresses tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE foods (
            id              SERIAL          PRIMARY KEY,
            name            VARCHAR(200)    NOT NULL,
            description     TEXT,
            price           BIGINT          NOT NULL,
            category_id     INT,
            image           TEXT,
            is_available    BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_foods_price_gt_0 CHECK (price > 0)
        );
    """)
    op.execute("""
        CREATE TABLE addresses (
            id              SERIAL          PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            name            VARCHAR(100)    NOT NULL,
            address         TEXT            NOT NULL,
            is_default      BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_addresses_user_id ON addresses (user_id);")
    op.execute("COMMENT ON COLUMN foods.price IS 'Kobo; copied into order_items.unit_price at order time';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS addresses CASCADE;")
    op.execute("DROP TABLE IF EXISTS foods CASCADE;")
