"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Wallet / Topup
  3xxx: Catalog
  4xxx: Order / Delivery
  8xxx: Request (authorization, validation)
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    retryable: bool = False

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired credentials", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1006, f"User not found: {user_id}", 404)


class UserDataIntegrityError(AppError):
    def __init__(self, user_id: str, role: str) -> None:
        super().__init__(1007, f"User {user_id} has unrecognized role {role!r}", 500)


# --- 2xxx: Wallet / Topup ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, balance: int) -> None:
        self.required = required
        self.balance = balance
        self.shortfall = required - balance
        super().__init__(
            2001,
            f"Insufficient balance: required {required} kobo, "
            f"available {balance} kobo, shortfall {self.shortfall} kobo",
            422,
        )


class WalletNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Wallet not found for user {user_id}", 404)


class WalletNotActiveError(AppError):
    def __init__(self, user_id: str, status: str) -> None:
        super().__init__(2003, f"Wallet for user {user_id} is {status}", 422)


class TopupNotFoundError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(2004, f"Topup not found: {reference}", 404)


class TopupAlreadyCompletedError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(2005, f"Topup already completed: {reference}", 409)


class TopupNotPendingError(AppError):
    def __init__(self, reference: str, status: str) -> None:
        super().__init__(2006, f"Topup {reference} is {status}, not pending", 409)


class PaymentGatewayError(AppError):
    """External payment provider failed or timed out. The topup stays pending."""

    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(2007, f"Payment gateway error: {detail}", 502)


class InvalidWebhookSignatureError(AppError):
    def __init__(self) -> None:
        super().__init__(2008, "Invalid webhook signature", 401)


# --- 3xxx: Catalog ---

class FoodNotFoundError(AppError):
    def __init__(self, food_id: int) -> None:
        super().__init__(3001, f"Food item not found: {food_id}", 404)


class AddressNotFoundError(AppError):
    def __init__(self, address_id: int) -> None:
        super().__init__(3002, f"Address not found: {address_id}", 404)


# --- 4xxx: Order / Delivery ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: int) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


class InvalidTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            4006, f"Cannot change order status from {current} to {requested}", 422
        )


class InvalidOrderStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4007, detail, 422)


class RiderNotFoundError(AppError):
    def __init__(self, rider_id: str) -> None:
        super().__init__(4008, f"Rider not found: {rider_id}", 404)


class DeliveryCodeUnavailableError(AppError):
    def __init__(self) -> None:
        super().__init__(
            4009,
            "Delivery code is not available yet. Your order needs to be confirmed "
            "and assigned to a rider first.",
            422,
        )


class DeliveryCodeLockedError(AppError):
    def __init__(self, order_id: int) -> None:
        super().__init__(
            4010, f"Too many failed delivery code attempts for order {order_id}", 429
        )


class OrderDataIntegrityError(AppError):
    def __init__(self, order_id: int, status: str) -> None:
        super().__init__(
            4011, f"Order {order_id} has unrecognized status {status!r}", 500
        )


# --- 8xxx: Request ---

class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(8003, detail, 403)


class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(8004, detail, 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
