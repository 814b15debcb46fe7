"""004: create orders and order_items tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id              SERIAL          PRIMARY KEY,
            customer_id     VARCHAR(64)     NOT NULL,
            address_id      INT             NOT NULL REFERENCES addresses (id),
            rider_id        VARCHAR(64),
            total           BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'placed',
            payment_method  VARCHAR(10)     NOT NULL DEFAULT 'wallet',
            payment_status  VARCHAR(10)     NOT NULL DEFAULT 'unpaid',
            delivery_code   VARCHAR(6),
            delivery_time   TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_total_gt_0 CHECK (total > 0),
            CONSTRAINT ck_orders_status CHECK (status IN (
                'placed', 'confirmed', 'preparing', 'ready',
                'picked_up', 'out_for_delivery', 'delivered', 'cancelled'
            )),
            CONSTRAINT ck_orders_payment_method CHECK (payment_method IN ('wallet', 'cash')),
            CONSTRAINT ck_orders_payment_status CHECK (payment_status IN ('unpaid', 'paid', 'refunded')),
            CONSTRAINT ck_orders_delivery_code  CHECK (delivery_code IS NULL OR delivery_code ~ '^[0-9]{6}$'),
            CONSTRAINT ck_orders_delivered_time CHECK (status <> 'delivered' OR delivery_time IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_orders_customer ON orders (customer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_rider ON orders (rider_id, id DESC) WHERE rider_id IS NOT NULL;")
    op.execute("CREATE INDEX idx_orders_status ON orders (status, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE order_items (
            id              SERIAL          PRIMARY KEY,
            order_id        INT             NOT NULL REFERENCES orders (id) ON DELETE CASCADE,
            food_id         INT             NOT NULL REFERENCES foods (id),
            quantity        INT             NOT NULL,
            unit_price      BIGINT          NOT NULL,
            CONSTRAINT ck_order_items_quantity_gt_0 CHECK (quantity > 0),
            CONSTRAINT ck_order_items_price_gt_0    CHECK (unit_price > 0)
        );
    """)
    op.execute("CREATE INDEX idx_order_items_order_id ON order_items (order_id);")
    op.execute("COMMENT ON COLUMN order_items.unit_price IS 'Kobo snapshot of foods.price at order time';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
