"""
Checkout and commission arithmetic.

Every figure that is stored or shown is rounded to two decimals (half-up)
as soon as it is produced. Conversion to the gateway's integer minor units
happens in the gateway client only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .methods import PaymentMethod

CENT = Decimal("0.01")
SERVICE_FEE_RATE = Decimal("0.05")
CARD_PROCESSING_RATE = Decimal("0.035")
CARD_PROCESSING_FIXED = Decimal("15.00")
WALLET_PROCESSING_RATE = Decimal("0.025")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def rental_days(start_date: date, end_date: date) -> int:
    return max((end_date - start_date).days, 1)


def rental_subtotal(daily_rate, start_date: date, end_date: date) -> Decimal:
    return round2(to_decimal(daily_rate) * rental_days(start_date, end_date))


def service_fee(subtotal) -> Decimal:
    return round2(to_decimal(subtotal) * SERVICE_FEE_RATE)


def booking_total(subtotal) -> Decimal:
    return round2(round2(subtotal) + service_fee(subtotal))


def processing_fee(total_price, method: str) -> Decimal:
    total = to_decimal(total_price)
    method = PaymentMethod(method)
    if method == PaymentMethod.CARD:
        return round2(total * CARD_PROCESSING_RATE + CARD_PROCESSING_FIXED)
    if method == PaymentMethod.CASH:
        return Decimal("0.00")
    return round2(total * WALLET_PROCESSING_RATE)


def amount_charged(total_price, method: str) -> Decimal:
    return round2(to_decimal(total_price) + processing_fee(total_price, method))


def commission_amount(total_price, percentage) -> Decimal:
    return round2(to_decimal(total_price) * to_decimal(percentage) / Decimal("100"))


@dataclass(frozen=True)
class Quote:
    rental_subtotal: Decimal
    service_fee: Decimal
    total_price: Decimal
    processing_fee: Decimal
    amount_charged: Decimal
    method: str

    def as_dict(self) -> dict:
        return {
            "method": str(self.method),
            "rental_subtotal": f"{self.rental_subtotal:.2f}",
            "service_fee": f"{self.service_fee:.2f}",
            "total_price": f"{self.total_price:.2f}",
            "processing_fee": f"{self.processing_fee:.2f}",
            "amount_charged": f"{self.amount_charged:.2f}",
        }


def quote_for_total(subtotal, total_price, method: str) -> Quote:
    """Build a quote for an existing booking without recomputing its stored total."""
    return Quote(
        rental_subtotal=round2(subtotal),
        service_fee=round2(to_decimal(total_price) - round2(subtotal)),
        total_price=round2(total_price),
        processing_fee=processing_fee(total_price, method),
        amount_charged=amount_charged(total_price, method),
        method=PaymentMethod(method).value,
    )


def quote(subtotal, method: str) -> Quote:
    return quote_for_total(subtotal, booking_total(subtotal), method)
