from __future__ import annotations

# =========================================
# catalog.py
# Jove Storefront - Option catalog view + selection state
# =========================================
# Read-only projection of a jewelry item and its customization steps, as
# consumed by the price calculator. Rows come from models.load_catalog_item()
# or from plain dicts (from_dict) for tests/fixtures.
# =========================================

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from .errors import ValidationError
from .money import optional_money, to_money

JEWELRY_TYPES = ("ring", "necklace", "bracelet", "earring")

SINGLE = "single"
MULTIPLE = "multiple"
SELECTION_MODES = (SINGLE, MULTIPLE)

NATURAL = "natural"
LAB_GROWN = "lab_grown"
DIAMOND_TYPES = (NATURAL, LAB_GROWN)

# Reserved keys in the storefront's loose selection mapping
DIAMOND_TYPE_KEYS = ("diamondType", "diamond_type")

# Black onyx is picked as an option of the first-stone step; it switches
# the item onto its black-onyx base price columns.
BLACK_ONYX_SETTING = "first_stone"
BLACK_ONYX_OPTION = "black_onyx"


@dataclass(frozen=True)
class CustomizationOption:
    id: str
    name: str
    price: Decimal = Decimal("0.00")
    price_lab_grown: Optional[Decimal] = None  # None = no lab-grown variant

    def price_for(self, diamond_type: str) -> Decimal:
        if diamond_type == LAB_GROWN and self.price_lab_grown is not None:
            return self.price_lab_grown
        return self.price

    @classmethod
    def from_dict(cls, data: Mapping) -> "CustomizationOption":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            price=to_money(data.get("price")),
            price_lab_grown=optional_money(data.get("price_lab_grown", data.get("priceLabGrown"))),
        )


@dataclass(frozen=True)
class CustomizationSetting:
    id: str
    title: str
    type: str = SINGLE
    required: bool = False
    options: Tuple[CustomizationOption, ...] = ()

    def __post_init__(self):
        if self.type not in SELECTION_MODES:
            raise ValidationError(f"Setting {self.id!r} has unknown selection mode {self.type!r}")

    def option(self, option_id: str) -> CustomizationOption:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        raise ValidationError(f"Unknown option {option_id!r} for setting {self.id!r}")

    @classmethod
    def from_dict(cls, data: Mapping) -> "CustomizationSetting":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or data["id"]),
            type=str(data.get("type") or SINGLE),
            required=bool(data.get("required", False)),
            options=tuple(CustomizationOption.from_dict(o) for o in data.get("options") or []),
        )


@dataclass(frozen=True)
class JewelryItem:
    id: str
    jewelry_type: str
    base_price: Decimal
    name: str = ""
    base_price_lab_grown: Optional[Decimal] = None
    black_onyx_base_price: Optional[Decimal] = None
    black_onyx_base_price_lab_grown: Optional[Decimal] = None
    settings: Tuple[CustomizationSetting, ...] = ()

    def setting(self, setting_id: str) -> CustomizationSetting:
        for s in self.settings:
            if s.id == setting_id:
                return s
        raise ValidationError(f"Unknown setting {setting_id!r} for {self.jewelry_type}")

    def has_setting(self, setting_id: str) -> bool:
        return any(s.id == setting_id for s in self.settings)

    @classmethod
    def from_dict(cls, data: Mapping) -> "JewelryItem":
        return cls(
            id=str(data.get("id") or data["jewelry_type"]),
            jewelry_type=str(data["jewelry_type"]),
            name=str(data.get("name") or ""),
            base_price=to_money(data["base_price"]),
            base_price_lab_grown=optional_money(data.get("base_price_lab_grown")),
            black_onyx_base_price=optional_money(data.get("black_onyx_base_price")),
            black_onyx_base_price_lab_grown=optional_money(data.get("black_onyx_base_price_lab_grown")),
            settings=tuple(CustomizationSetting.from_dict(s) for s in data.get("settings") or []),
        )


def _as_option_ids(raw) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,) if raw.strip() else ()
    if isinstance(raw, (list, tuple, set, frozenset)):
        ids = []
        for v in raw:
            if not isinstance(v, str):
                raise ValidationError(f"Option ids must be strings, got {v!r}")
            if v.strip() and v not in ids:
                ids.append(v)
        return tuple(ids)
    raise ValidationError(f"Unsupported selection value {raw!r}")


@dataclass(frozen=True)
class CustomizationState:
    """Validated selection for one JewelryItem.

    Build it with CustomizationState.build(). A state constructed directly is
    re-checked with check() before it is priced. `selections` maps setting id
    -> option ids in catalog order.
    """

    diamond_type: str = NATURAL
    selections: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, item: JewelryItem, raw: Mapping | None) -> "CustomizationState":
        raw = dict(raw or {})

        diamond_type = NATURAL
        for key in DIAMOND_TYPE_KEYS:
            if raw.get(key):
                diamond_type = raw[key]
        if diamond_type not in DIAMOND_TYPES:
            raise ValidationError(f"Unknown diamond type {diamond_type!r}")

        selections: Dict[str, Tuple[str, ...]] = {}
        for setting in item.settings:
            chosen = _as_option_ids(raw.get(setting.id))
            if not chosen:
                if setting.required:
                    raise ValidationError(f"Missing selection for required setting {setting.id!r}")
                continue

            if setting.type == SINGLE and len(chosen) > 1:
                raise ValidationError(f"Setting {setting.id!r} allows a single option, got {len(chosen)}")

            known = {opt.id for opt in setting.options}
            for option_id in chosen:
                if option_id not in known:
                    raise ValidationError(f"Unknown option {option_id!r} for setting {setting.id!r}")

            # catalog order keeps line items deterministic
            selections[setting.id] = tuple(o.id for o in setting.options if o.id in chosen)

        return cls(diamond_type=diamond_type, selections=MappingProxyType(selections))

    def check(self, item: JewelryItem) -> "CustomizationState":
        """Raise ValidationError unless this state is a complete, known selection for `item`."""
        if self.diamond_type not in DIAMOND_TYPES:
            raise ValidationError(f"Unknown diamond type {self.diamond_type!r}")

        for setting in item.settings:
            chosen = self.selected(setting.id)
            if not chosen:
                if setting.required:
                    raise ValidationError(f"Missing selection for required setting {setting.id!r}")
                continue
            if setting.type == SINGLE and len(chosen) > 1:
                raise ValidationError(f"Setting {setting.id!r} allows a single option, got {len(chosen)}")
            known = {opt.id for opt in setting.options}
            for option_id in chosen:
                if option_id not in known:
                    raise ValidationError(f"Unknown option {option_id!r} for setting {setting.id!r}")
        return self

    @property
    def is_lab_grown(self) -> bool:
        return self.diamond_type == LAB_GROWN

    def selected(self, setting_id: str) -> Tuple[str, ...]:
        return self.selections.get(setting_id, ())

    def has_black_onyx(self) -> bool:
        return BLACK_ONYX_OPTION in self.selected(BLACK_ONYX_SETTING)

    def snapshot(self, item: JewelryItem) -> dict:
        """Plain dict in the storefront's loose shape (single -> str, multiple -> list)."""
        out: dict = {}
        for setting in item.settings:
            ids = self.selected(setting.id)
            if not ids:
                continue
            out[setting.id] = ids[0] if setting.type == SINGLE else list(ids)
        out["diamondType"] = self.diamond_type
        return out
