from __future__ import annotations

GENERIC_PAYMENT_FAILURE = "Payment could not be processed. Please try again."


class SettlementError(Exception):
    """Base class for payment settlement failures.

    `user_message` is the only text that may reach an end user; anything the
    gateway said stays in the exception for logging.
    """

    user_message = GENERIC_PAYMENT_FAILURE
    retryable = False

    def __init__(self, message: str | None = None, *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class GatewayError(SettlementError):
    """Network or HTTP failure talking to the payment gateway."""

    RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

    def __init__(self, status: int | None, code: str | None = None, detail: str | None = None):
        self.status = status
        self.code = code or "gateway_error"
        self.detail = detail or "Payment gateway request failed"
        super().__init__(f"Gateway error {status}: {self.code} - {self.detail}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status is None or self.status in self.RETRYABLE_STATUSES


class ValidationError(SettlementError):
    """Malformed caller input. The message is safe to show to the user."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, user_message=message)
        self.field = field


class AuthenticationRequiredError(SettlementError):
    """The card could not be charged without further authentication."""

    retryable = True


class ReconciliationError(SettlementError):
    """Untrusted or stale payment notification; dropped without acting on it."""


class PaymentExpiredError(SettlementError):
    """The attempt failed or timed out at the gateway; a new attempt may be started."""

    user_message = "Payment was not completed. Please try again."
    retryable = True


class PartialFailure(SettlementError):
    """The charge or confirmation stands but a follow-up step failed and needs manual follow-up."""


class PaymentInProgressError(SettlementError):
    """An earlier attempt may still complete at the gateway; no new charge is started."""

    user_message = "A previous payment attempt is still in progress. Finish it or check again shortly."
    retryable = True

    def __init__(self, message: str | None = None, *, intent_id: str | None = None):
        super().__init__(message)
        self.intent_id = intent_id
