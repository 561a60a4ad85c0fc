from __future__ import annotations

# =========================================
# orders.py
# Jove Storefront - Line items + order total assembly
# =========================================
# - make_line_item(): snapshot a selection + its price at add-to-cart time
# - assemble_order(): subtotal + delivery fee - clamped discount
# The assembler trusts each line item's frozen price; re-checking against
# the live catalog is a separate step owned by the caller.
# =========================================

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from .catalog import CustomizationState, JewelryItem
from .errors import InvalidOrderError, ValidationError
from .money import ZERO, round_money, to_money
from .pricing import compute_price, describe_selection
from .promos import DiscountSpec, compute_discount, compute_payout

MAX_QUANTITY = 99


def _check_quantity(quantity) -> int:
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError(f"Quantity must be a whole number, got {quantity!r}")
    if isinstance(quantity, float) and quantity != qty:
        raise ValidationError(f"Quantity must be a whole number, got {quantity!r}")
    if qty < 1 or qty > MAX_QUANTITY:
        raise ValidationError(f"Quantity must be between 1 and {MAX_QUANTITY}")
    return qty


@dataclass(frozen=True)
class OrderLineItem:
    jewelry_type: str
    base_price: Decimal
    total_price: Decimal
    quantity: int = 1
    product_name: str = ""
    customization: Mapping = field(default_factory=dict)
    customization_summary: str = ""

    def __post_init__(self):
        object.__setattr__(self, "quantity", _check_quantity(self.quantity))
        object.__setattr__(self, "base_price", round_money(self.base_price))
        object.__setattr__(self, "total_price", round_money(self.total_price))
        object.__setattr__(self, "customization", MappingProxyType(dict(self.customization)))

    @property
    def subtotal(self) -> Decimal:
        return round_money(self.total_price * self.quantity)

    def with_quantity(self, quantity) -> "OrderLineItem":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        return {
            "jewelry_type": self.jewelry_type,
            "product_name": self.product_name,
            "customization_data": dict(self.customization),
            "customization_summary": self.customization_summary,
            "base_price": float(self.base_price),
            "total_price": float(self.total_price),
            "quantity": self.quantity,
            "subtotal": float(self.subtotal),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "OrderLineItem":
        return cls(
            jewelry_type=data["jewelry_type"],
            product_name=data.get("product_name") or "",
            customization=data.get("customization_data") or {},
            customization_summary=data.get("customization_summary") or "",
            base_price=data["base_price"],
            total_price=data["total_price"],
            quantity=data.get("quantity", 1),
        )


def make_line_item(item: JewelryItem, state, quantity=1) -> OrderLineItem:
    if not isinstance(state, CustomizationState):
        state = CustomizationState.build(item, state)
    breakdown = compute_price(item, state)
    return OrderLineItem(
        jewelry_type=item.jewelry_type,
        product_name=item.name,
        customization=state.snapshot(item),
        customization_summary=describe_selection(item, state),
        base_price=breakdown.base_amount,
        total_price=breakdown.total,
        quantity=quantity,
    )


@dataclass(frozen=True)
class Order:
    line_items: Tuple[OrderLineItem, ...]
    subtotal: Decimal
    delivery_fee: Decimal
    discount_amount: Decimal
    total: Decimal
    discount: Optional[DiscountSpec] = None
    discount_code: Optional[str] = None
    influencer_payout: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "items": [li.to_dict() for li in self.line_items],
            "subtotal": float(self.subtotal),
            "delivery_fee": float(self.delivery_fee),
            "discount_type": self.discount.kind if self.discount else None,
            "discount_value": float(self.discount.value) if self.discount else None,
            "discount_code": self.discount_code,
            "discount_amount": float(self.discount_amount),
            "total": float(self.total),
        }


def assemble_order(
    line_items: Iterable[OrderLineItem],
    delivery_fee=0,
    discount: Optional[DiscountSpec] = None,
    discount_code: Optional[str] = None,
) -> Order:
    items = tuple(line_items)
    if not items:
        raise InvalidOrderError("Order has no line items")

    fee = to_money(delivery_fee)
    if fee < ZERO:
        raise InvalidOrderError(f"Delivery fee cannot be negative ({fee})")

    subtotal = round_money(sum((li.subtotal for li in items), ZERO))
    discount_amount = compute_discount(discount, subtotal) if discount else ZERO
    payout = compute_payout(discount, subtotal, discount_amount) if discount else ZERO

    total = subtotal + fee - discount_amount
    if total < ZERO:
        raise InvalidOrderError(f"Order total would be negative ({total})")

    return Order(
        line_items=items,
        subtotal=subtotal,
        delivery_fee=fee,
        discount_amount=discount_amount,
        total=round_money(total),
        discount=discount,
        discount_code=discount_code if discount else None,
        influencer_payout=payout,
    )


def generate_order_number() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S") + "-" + uuid.uuid4().hex[:6]
