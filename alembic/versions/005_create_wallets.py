"""005: create wallets, wallet_transactions and wallet_topups tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id              SERIAL          PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            balance         BIGINT          NOT NULL DEFAULT 0,
            currency        VARCHAR(3)      NOT NULL DEFAULT 'NGN',
            status          VARCHAR(10)     NOT NULL DEFAULT 'active',
            version         BIGINT          NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_wallets_user_id       UNIQUE (user_id),
            CONSTRAINT ck_wallets_balance_gte_0 CHECK (balance >= 0),
            CONSTRAINT ck_wallets_status        CHECK (status IN ('active', 'suspended', 'closed'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE wallet_topups (
            id                  SERIAL          PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            wallet_id           INT             NOT NULL REFERENCES wallets (id),
            amount              BIGINT          NOT NULL,
            payment_reference   VARCHAR(128)    NOT NULL,
            payment_gateway     VARCHAR(20)     NOT NULL,
            gateway_response    TEXT,
            status              VARCHAR(10)     NOT NULL DEFAULT 'pending',
            completed_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_wallet_topups_reference   UNIQUE (payment_reference),
            CONSTRAINT ck_wallet_topups_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_wallet_topups_gateway     CHECK (payment_gateway IN ('paystack', 'stripe', 'flutterwave')),
            CONSTRAINT ck_wallet_topups_status      CHECK (status IN ('pending', 'completed', 'failed')),
            CONSTRAINT ck_wallet_topups_completed   CHECK ((status = 'completed') = (completed_at IS NOT NULL))
        );
    """)
    op.execute("CREATE INDEX idx_wallet_topups_user ON wallet_topups (user_id, id DESC);")

    # Append-only: the application never UPDATEs or DELETEs these rows.
    op.execute("""
        CREATE TABLE wallet_transactions (
            id              BIGSERIAL       PRIMARY KEY,
            wallet_id       INT             NOT NULL REFERENCES wallets (id),
            type            VARCHAR(10)     NOT NULL,
            amount          BIGINT          NOT NULL,
            balance_before  BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference       VARCHAR(128)    NOT NULL,
            description     TEXT            NOT NULL,
            order_id        INT             REFERENCES orders (id),
            topup_id        INT             REFERENCES wallet_topups (id),
            status          VARCHAR(10)     NOT NULL DEFAULT 'completed',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_wallet_transactions_reference UNIQUE (reference),
            CONSTRAINT ck_wallet_transactions_type      CHECK (type IN ('credit', 'debit')),
            CONSTRAINT ck_wallet_transactions_amount    CHECK (amount > 0),
            CONSTRAINT ck_wallet_transactions_status    CHECK (status IN ('pending', 'completed', 'failed')),
            CONSTRAINT ck_wallet_transactions_chain     CHECK (
                balance_after = balance_before
                    + CASE WHEN type = 'credit' THEN amount ELSE -amount END
            )
        );
    """)
    op.execute("CREATE INDEX idx_wallet_transactions_wallet ON wallet_transactions (wallet_id, id DESC);")
    op.execute("CREATE INDEX idx_wallet_transactions_order ON wallet_transactions (order_id) WHERE order_id IS NOT NULL;")
    op.execute("COMMENT ON TABLE wallet_transactions IS 'Append-only wallet ledger; all amounts in kobo';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallet_topups CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
