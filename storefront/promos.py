from __future__ import annotations

# =========================================
# promos.py
# Jove Storefront - Promo discount + influencer payout
# =========================================
# - compute_discount(): customer-facing, always clamped to [0, order_total]
# - compute_payout(): internal bookkeeping for influencer codes; unknown
#   payout kinds yield 0 instead of raising
# - check_promo_code(): eligibility rules for a looked-up promo code
# =========================================

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .errors import PromoCodeRejected, ValidationError
from .money import ZERO, optional_money, round_money, to_decimal, to_money

log = logging.getLogger(__name__)

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"
DISCOUNT_KINDS = (PERCENTAGE, FIXED_AMOUNT)

PAYOUT_PERCENTAGE_OF_SALE = "percentage_of_sale"
PAYOUT_FIXED = "fixed"
PAYOUT_NONE = "none"
PAYOUT_KINDS = (PAYOUT_PERCENTAGE_OF_SALE, PAYOUT_FIXED, PAYOUT_NONE)

# Older promo rows store "fixed" for fixed-amount discounts
_DISCOUNT_KIND_ALIASES = {"fixed": FIXED_AMOUNT}


def normalize_payout_kind(kind) -> Optional[str]:
    return (kind or "").strip().lower() or None


@dataclass(frozen=True)
class DiscountSpec:
    kind: str
    value: Decimal
    payout_kind: Optional[str] = None
    payout_value: Optional[Decimal] = None

    def __post_init__(self):
        if self.kind not in DISCOUNT_KINDS:
            raise ValidationError(f"Unknown discount kind {self.kind!r}")

    @classmethod
    def create(cls, kind, value, payout_kind=None, payout_value=None) -> "DiscountSpec":
        kind = (kind or "").strip().lower()
        kind = _DISCOUNT_KIND_ALIASES.get(kind, kind)
        return cls(
            kind=kind,
            value=to_decimal(value if value is not None else 0),
            payout_kind=normalize_payout_kind(payout_kind),
            payout_value=None if payout_value is None else to_decimal(payout_value),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "value": float(self.value),
            "payout_type": self.payout_kind,
            "payout_value": None if self.payout_value is None else float(self.payout_value),
        }


def compute_discount(spec: DiscountSpec, order_total) -> Decimal:
    order_total = to_money(order_total)
    if order_total <= ZERO:
        return ZERO

    if spec.kind == PERCENTAGE:
        amount = order_total * spec.value / 100
    else:
        amount = spec.value

    amount = round_money(amount)
    if amount < ZERO:
        return ZERO
    return min(amount, order_total)


def compute_payout(spec: DiscountSpec, order_total, discount_amount=None) -> Decimal:
    """
    Influencer payout, computed on the gross order total (discount_amount is
    accepted for bookkeeping callers but does not change the figure).
    """
    kind = spec.payout_kind
    if not kind or kind == PAYOUT_NONE or not spec.payout_value:
        return ZERO

    if kind == PAYOUT_PERCENTAGE_OF_SALE:
        return round_money(to_money(order_total) * spec.payout_value / 100)
    if kind == PAYOUT_FIXED:
        return round_money(spec.payout_value)

    log.warning("Unrecognized influencer payout type %r; recording 0", kind)
    return ZERO


# -------------------- Promo code eligibility --------------------
INACTIVE = "inactive"
NOT_YET_VALID = "not_yet_valid"
EXPIRED = "expired"
USAGE_LIMIT = "usage_limit"
CUSTOMER_LIMIT = "customer_limit"
MIN_ORDER_VALUE = "min_order_value"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class PromoCode:
    code: str
    discount: DiscountSpec
    description: str = ""
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    max_uses_per_customer: Optional[int] = None
    min_order_value: Optional[Decimal] = None


def check_promo_code(promo: PromoCode, subtotal, customer_uses: int = 0, now: Optional[datetime] = None) -> DiscountSpec:
    """Raise PromoCodeRejected if the code cannot apply; returns its DiscountSpec otherwise."""
    now = _aware(now) or datetime.now(timezone.utc)

    if not promo.is_active:
        raise PromoCodeRejected(INACTIVE)

    valid_from = _aware(promo.valid_from)
    valid_until = _aware(promo.valid_until)
    if valid_from and valid_from > now:
        raise PromoCodeRejected(NOT_YET_VALID)
    if valid_until and valid_until < now:
        raise PromoCodeRejected(EXPIRED)

    if promo.max_uses and promo.current_uses >= promo.max_uses:
        raise PromoCodeRejected(USAGE_LIMIT)
    if promo.max_uses_per_customer and customer_uses >= promo.max_uses_per_customer:
        raise PromoCodeRejected(CUSTOMER_LIMIT)

    min_value = optional_money(promo.min_order_value)
    if min_value and to_money(subtotal) < min_value:
        raise PromoCodeRejected(MIN_ORDER_VALUE, detail=f"{min_value:.2f}")

    return promo.discount
