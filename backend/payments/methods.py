from __future__ import annotations

from django.db import models


class PaymentMethod(models.TextChoices):
    CARD = "card", "Credit/Debit Card"
    GCASH = "gcash", "GCash"
    GRAB_PAY = "grab_pay", "GrabPay"
    PAYMAYA = "paymaya", "Maya"
    BILLEASE = "billease", "BillEase"
    QRPH = "qrph", "QR Ph"
    CASH = "cash", "Cash"


class PaymentFlow(models.TextChoices):
    CARD = "card", "Card"
    REDIRECT = "redirect", "Redirect e-wallet"
    QR = "qr", "QR display"
    OFFLINE = "offline", "Collected in person"


class PaymentType(models.TextChoices):
    CASH = "cash", "Cash"
    CASHLESS = "cashless", "Cashless"


FLOW_BY_METHOD: dict[str, str] = {
    PaymentMethod.CARD: PaymentFlow.CARD,
    PaymentMethod.GCASH: PaymentFlow.REDIRECT,
    PaymentMethod.GRAB_PAY: PaymentFlow.REDIRECT,
    PaymentMethod.PAYMAYA: PaymentFlow.REDIRECT,
    PaymentMethod.BILLEASE: PaymentFlow.REDIRECT,
    PaymentMethod.QRPH: PaymentFlow.QR,
    PaymentMethod.CASH: PaymentFlow.OFFLINE,
}

PAYMENT_TYPE_BY_METHOD: dict[str, str] = {
    PaymentMethod.CARD: PaymentType.CASHLESS,
    PaymentMethod.GCASH: PaymentType.CASHLESS,
    PaymentMethod.GRAB_PAY: PaymentType.CASHLESS,
    PaymentMethod.PAYMAYA: PaymentType.CASHLESS,
    PaymentMethod.BILLEASE: PaymentType.CASHLESS,
    PaymentMethod.QRPH: PaymentType.CASHLESS,
    PaymentMethod.CASH: PaymentType.CASH,
}

# Every method must be classified explicitly; an unclassified method is an
# import-time error rather than a silent default.
_unclassified = set(PaymentMethod.values) ^ set(FLOW_BY_METHOD) | set(PaymentMethod.values) ^ set(
    PAYMENT_TYPE_BY_METHOD
)
if _unclassified:
    raise RuntimeError(f"Payment methods missing a flow or payment type: {sorted(_unclassified)}")


def flow_for(method: str) -> str:
    return FLOW_BY_METHOD[PaymentMethod(method)]


def payment_type_for(method: str) -> str:
    return PAYMENT_TYPE_BY_METHOD[PaymentMethod(method)]


def online_methods() -> list[str]:
    return [method for method, flow in FLOW_BY_METHOD.items() if flow != PaymentFlow.OFFLINE]
