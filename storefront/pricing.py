# Central pricing + calculation shared by the shop API, cart and admin orders

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Tuple, Union

from .catalog import CustomizationState, JewelryItem
from .money import ZERO, round_money

# Which item column supplied the base amount
BASE_PRICE = "base_price"
BASE_PRICE_LAB_GROWN = "base_price_lab_grown"
BLACK_ONYX_BASE_PRICE = "black_onyx_base_price"
BLACK_ONYX_BASE_PRICE_LAB_GROWN = "black_onyx_base_price_lab_grown"


@dataclass(frozen=True)
class PriceLine:
    setting_id: str
    option_id: str
    amount: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    base_source: str
    base_amount: Decimal
    lines: Tuple[PriceLine, ...]
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "base_source": self.base_source,
            "base_amount": float(self.base_amount),
            "line_items": [
                {"setting_id": l.setting_id, "option_id": l.option_id, "amount": float(l.amount)}
                for l in self.lines
            ],
            "total": float(self.total),
        }


def _checked_state(item: JewelryItem, state) -> CustomizationState:
    if isinstance(state, CustomizationState):
        return state.check(item)
    return CustomizationState.build(item, state)


def resolve_base_price(item: JewelryItem, state: CustomizationState) -> Tuple[str, Decimal]:
    """Pick exactly one base price column for this selection."""
    if state.has_black_onyx() and item.black_onyx_base_price is not None:
        if state.is_lab_grown and item.black_onyx_base_price_lab_grown is not None:
            return BLACK_ONYX_BASE_PRICE_LAB_GROWN, item.black_onyx_base_price_lab_grown
        return BLACK_ONYX_BASE_PRICE, item.black_onyx_base_price

    if state.is_lab_grown and item.base_price_lab_grown is not None:
        return BASE_PRICE_LAB_GROWN, item.base_price_lab_grown
    return BASE_PRICE, item.base_price


def compute_price(item: JewelryItem, state: Union[CustomizationState, Mapping, None]) -> PriceBreakdown:
    """
    Itemized USD price for a customized piece.
    `state` may be a raw selection mapping or a CustomizationState; either is
    checked against the item first (ValidationError on missing required steps / unknown options).
    """
    state = _checked_state(item, state)

    base_source, base_amount = resolve_base_price(item, state)

    lines = []
    for setting in item.settings:
        for option_id in state.selected(setting.id):
            option = setting.option(option_id)
            lines.append(PriceLine(setting.id, option.id, option.price_for(state.diamond_type)))

    total = base_amount + sum((l.amount for l in lines), ZERO)
    return PriceBreakdown(
        base_source=base_source,
        base_amount=round_money(base_amount),
        lines=tuple(lines),
        total=round_money(total),
    )


def describe_selection(item: JewelryItem, state: Union[CustomizationState, Mapping, None]) -> str:
    """Human readable summary, e.g. "Metal: Yellow Gold; Stone: Emerald, Sapphire"."""
    state = _checked_state(item, state)

    parts = []
    for setting in item.settings:
        ids = state.selected(setting.id)
        if not ids:
            continue
        names = ", ".join(setting.option(i).name for i in ids)
        parts.append(f"{setting.title}: {names}")
    if state.is_lab_grown:
        parts.append("Diamonds: Lab grown")
    return "; ".join(parts)
