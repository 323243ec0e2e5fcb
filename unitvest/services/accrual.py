"""
Accrual calculator — the single place where return is computed.

Every path that credits return (maturity sweep, manual completion) goes
through :func:`compute_accrual`, so the rate fallback chain and the rounding
point cannot drift apart between call sites.

Rounding: the amount is quantized to cents with ROUND_HALF_EVEN *before* it
is credited, so ``balance`` and ``total_roi`` only ever hold values that were
also written to the ledger.
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional, Tuple

DEFAULT_ROI_PERCENTAGE = Decimal("10")
CENTS = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def resolve_rate(
    roi_rate: Optional[Decimal], fallback_rate: Optional[Decimal]
) -> Decimal:
    """
    Pick the percentage to apply for one cycle.

    The investment's own rate wins, then the owner's profile rate, then
    :data:`DEFAULT_ROI_PERCENTAGE`.  ``None`` means "unset"; an explicit
    ``0`` is a valid rate and is not skipped.
    """
    if roi_rate is not None:
        return Decimal(roi_rate)
    if fallback_rate is not None:
        return Decimal(fallback_rate)
    return DEFAULT_ROI_PERCENTAGE


def compute_accrual(
    principal: Decimal,
    roi_rate: Optional[Decimal],
    fallback_rate: Optional[Decimal],
) -> Decimal:
    """
    Return earned on ``principal`` for one cycle, rounded to cents.

    >>> compute_accrual(Decimal("700"), Decimal("10"), None)
    Decimal('70.00')
    >>> compute_accrual(Decimal("1000"), None, Decimal("12"))
    Decimal('120.00')
    """
    rate = resolve_rate(roi_rate, fallback_rate)
    return quantize_money(Decimal(principal) * rate / Decimal(100))


def cycle_window(now: datetime, cycle_length_days: int) -> Tuple[datetime, datetime]:
    """The ``(cycle_start, cycle_end)`` of a cycle starting at ``now``."""
    return now, now + timedelta(days=cycle_length_days)
