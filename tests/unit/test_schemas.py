"""Unit tests for request/response schemas and cursor helpers."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.fd_order.application.schemas import (
    ChangeStatusRequest,
    CreateOrderRequest,
    OrderResponse,
)
from src.fd_order.domain.models import Order, OrderItem
from src.fd_wallet.application.schemas import (
    AdminCreditRequest,
    BalanceCheckResponse,
    TopupInitializeRequest,
    TransactionItem,
    cursor_decode,
    cursor_encode,
)
from src.fd_wallet.domain.models import WalletTransaction


class TestCursor:
    def test_round_trip(self) -> None:
        assert cursor_decode(cursor_encode(12345)) == 12345

    @pytest.mark.parametrize("raw", [None, "not-base64!!", "e30="])
    def test_garbage_decodes_to_none(self, raw: str | None) -> None:
        assert cursor_decode(raw) is None


class TestOrderSchemas:
    def test_create_order_defaults_to_wallet(self) -> None:
        req = CreateOrderRequest(address_id=1, items=[{"food_id": 2, "quantity": 3}])
        assert req.payment_method.value == "wallet"

    def test_create_order_needs_items(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(address_id=1, items=[])

    def test_zero_quantity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(address_id=1, items=[{"food_id": 2, "quantity": 0}])

    def test_status_is_free_text(self) -> None:
        assert ChangeStatusRequest(status="teleported").status == "teleported"

    def test_order_response_hides_code(self) -> None:
        order = Order(
            id=7,
            customer_id="c1",
            address_id=1,
            total=6500,
            status="confirmed",
            payment_status="paid",
            rider_id="r1",
            delivery_code="482913",
            created_at=datetime(2026, 10, 19, tzinfo=UTC),
            items=[OrderItem(food_id=1, quantity=2, unit_price=2500),
                   OrderItem(food_id=2, quantity=1, unit_price=1500)],
        )

        dumped = OrderResponse.from_order(order).model_dump()

        assert "482913" not in str(dumped)
        assert dumped["has_delivery_code"] is True
        assert dumped["total_display"] == "₦65.00"
        assert [i["line_total_kobo"] for i in dumped["items"]] == [5000, 1500]


class TestWalletSchemas:
    def test_topup_gateway_must_be_known(self) -> None:
        with pytest.raises(ValidationError):
            TopupInitializeRequest(amount_kobo=10_000, gateway="bitcoin")

    def test_admin_credit_description_stripped(self) -> None:
        req = AdminCreditRequest(target_user_id="u1", amount_kobo=100, description="  goodwill ")
        assert req.description == "goodwill"

    def test_admin_credit_blank_description(self) -> None:
        with pytest.raises(ValidationError):
            AdminCreditRequest(target_user_id="u1", amount_kobo=100, description="   ")

    def test_balance_check_shortfall(self) -> None:
        resp = BalanceCheckResponse.from_check(balance=300, required=1000)
        assert not resp.sufficient
        assert resp.shortfall_kobo == 700

    def test_transaction_item_signs_debits(self) -> None:
        txn = WalletTransaction(
            id=1,
            wallet_id=1,
            type="debit",
            amount=1500,
            balance_before=5000,
            balance_after=3500,
            reference="txn_1",
            description="Payment for Order #9",
            order_id=9,
            created_at=datetime(2026, 10, 19, tzinfo=UTC),
        )
        item = TransactionItem.from_txn(txn, "NGN")
        assert item.amount_kobo == 1500
        assert item.amount_display == "-₦15.00"
