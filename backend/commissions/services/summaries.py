from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List

from commissions.models import Commission
from payments.methods import PaymentType

ZERO = Decimal("0.00")


def commission_summary(commissions: Iterable[Commission]) -> Dict[str, Any]:
    """Totals over a set of commissions. `outstanding_commission` leaves out paid rows."""
    summary: Dict[str, Any] = {
        "total_commission": ZERO,
        "outstanding_commission": ZERO,
        "cashless_commission": ZERO,
        "cash_commission": ZERO,
        "unpaid_count": 0,
        "for_verification_count": 0,
        "paid_count": 0,
        "suspended_count": 0,
    }
    for commission in commissions:
        amount = commission.commission_amount
        summary["total_commission"] += amount
        if commission.status in Commission.OUTSTANDING_STATUSES:
            summary["outstanding_commission"] += amount
        if commission.payment_type == PaymentType.CASHLESS:
            summary["cashless_commission"] += amount
        else:
            summary["cash_commission"] += amount
        summary[f"{commission.status}_count"] += 1
    return summary


def owner_summaries(queryset=None) -> List[Dict[str, Any]]:
    """
    One row per owner with commissions, owners with an outstanding balance first
    and then by outstanding amount (highest first).
    """
    if queryset is None:
        queryset = Commission.objects.all()
    commissions = queryset.select_related("owner").order_by("-created_at")

    rows: Dict[int, Dict[str, Any]] = {}
    for commission in commissions:
        owner = commission.owner
        row = rows.get(owner.pk)
        if row is None:
            row = rows[owner.pk] = {
                "owner_id": owner.pk,
                "owner_name": owner.display_name or owner.get_full_name() or owner.username,
                "owner_email": owner.email,
                "is_suspended": owner.is_suspended,
                "suspension_reason": owner.suspension_reason or None,
                "total_commission": ZERO,
                "paid_commission": ZERO,
                "unpaid_commission": ZERO,
                "transaction_count": 0,
                "has_unpaid": False,
                "latest_transaction_at": commission.created_at,
            }
        row["transaction_count"] += 1
        if commission.status == Commission.PAID:
            row["paid_commission"] += commission.commission_amount
        else:
            row["total_commission"] += commission.commission_amount
            row["unpaid_commission"] += commission.commission_amount
            row["has_unpaid"] = True
        if commission.created_at > row["latest_transaction_at"]:
            row["latest_transaction_at"] = commission.created_at

    return sorted(
        rows.values(),
        key=lambda row: (not row["has_unpaid"], -row["unpaid_commission"]),
    )
