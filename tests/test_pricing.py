from decimal import Decimal

import pytest

from storefront.catalog import CustomizationState, JewelryItem
from storefront.errors import ValidationError
from storefront.pricing import (
    BASE_PRICE,
    BASE_PRICE_LAB_GROWN,
    BLACK_ONYX_BASE_PRICE,
    BLACK_ONYX_BASE_PRICE_LAB_GROWN,
    compute_price,
    describe_selection,
)

SELECTION = {"metal": "yellow_gold", "stone": ["emerald", "sapphire"]}


def test_natural_total_adds_base_and_every_selected_option(ring):
    result = compute_price(ring, SELECTION)

    assert result.base_source == BASE_PRICE
    assert result.base_amount == Decimal("500.00")
    assert [(l.setting_id, l.option_id, l.amount) for l in result.lines] == [
        ("metal", "yellow_gold", Decimal("50.00")),
        ("stone", "emerald", Decimal("80.00")),
        ("stone", "sapphire", Decimal("60.00")),
    ]
    assert result.total == Decimal("690.00")


def test_lab_grown_uses_variants_only_where_defined(ring):
    result = compute_price(ring, dict(SELECTION, diamondType="lab_grown"))

    assert result.base_source == BASE_PRICE_LAB_GROWN
    # 450 base, gold 50 (no variant), emerald 70, sapphire 60 (no variant)
    assert result.total == Decimal("630.00")


def test_lab_grown_price_of_zero_is_not_treated_as_missing(ring):
    result = compute_price(ring, {"metal": "white_gold", "diamondType": "lab_grown"})
    assert result.lines[0].amount == Decimal("0.00")
    assert result.total == Decimal("450.00")


def test_lab_grown_base_falls_back_when_item_has_no_variant(ring_data):
    ring_data["base_price_lab_grown"] = None
    item = JewelryItem.from_dict(ring_data)

    result = compute_price(item, {"metal": "yellow_gold", "diamond_type": "lab_grown"})
    assert result.base_source == BASE_PRICE
    assert result.total == Decimal("550.00")


def test_black_onyx_switches_base_price_column(ring):
    natural = compute_price(ring, {"metal": "yellow_gold", "first_stone": "black_onyx"})
    lab = compute_price(ring, {"metal": "yellow_gold", "first_stone": "black_onyx", "diamondType": "lab_grown"})

    assert natural.base_source == BLACK_ONYX_BASE_PRICE
    assert natural.total == Decimal("450.00")
    assert lab.base_source == BLACK_ONYX_BASE_PRICE_LAB_GROWN
    assert lab.total == Decimal("430.00")


def test_black_onyx_without_onyx_base_uses_regular_base(ring_data):
    ring_data["black_onyx_base_price"] = None
    item = JewelryItem.from_dict(ring_data)
    result = compute_price(item, {"metal": "yellow_gold", "first_stone": "black_onyx", "diamondType": "lab_grown"})
    assert result.base_source == BASE_PRICE_LAB_GROWN
    assert result.total == Decimal("500.00")


def test_switching_diamond_type_only_moves_lab_grown_fields(ring_data):
    ring_data["base_price_lab_grown"] = None
    item = JewelryItem.from_dict(ring_data)
    selection = {"metal": "yellow_gold", "stone": ["sapphire", "ruby"]}

    natural = compute_price(item, selection)
    lab = compute_price(item, dict(selection, diamondType="lab_grown"))
    assert natural == lab


def test_required_setting_without_selection_is_rejected(ring):
    with pytest.raises(ValidationError):
        compute_price(ring, {"stone": ["emerald"]})
    with pytest.raises(ValidationError):
        compute_price(ring, {"metal": ""})


def test_unknown_option_is_rejected(ring):
    with pytest.raises(ValidationError):
        compute_price(ring, {"metal": "platinum"})
    with pytest.raises(ValidationError):
        compute_price(ring, {"metal": "yellow_gold", "stone": ["emerald", "opal"]})


def test_single_setting_rejects_several_options(ring):
    with pytest.raises(ValidationError):
        compute_price(ring, {"metal": ["yellow_gold", "white_gold"]})


def test_unknown_diamond_type_is_rejected(ring):
    with pytest.raises(ValidationError):
        compute_price(ring, {"metal": "yellow_gold", "diamondType": "moissanite"})


def test_hand_built_state_is_checked_before_pricing(ring):
    with pytest.raises(ValidationError):
        compute_price(ring, CustomizationState(diamond_type="natural", selections={}))
    with pytest.raises(ValidationError):
        compute_price(ring, CustomizationState(diamond_type="LAB", selections={"metal": ("yellow_gold",)}))
    with pytest.raises(ValidationError):
        compute_price(ring, CustomizationState(selections={"metal": ("yellow_gold", "white_gold")}))
    with pytest.raises(ValidationError):
        compute_price(ring, CustomizationState(selections={"metal": ("platinum",)}))


def test_hand_built_complete_state_is_priced(ring):
    state = CustomizationState(selections={"metal": ("yellow_gold",), "stone": ("emerald", "sapphire")})
    assert compute_price(ring, state).total == Decimal("690.00")


def test_unrelated_keys_are_ignored(ring):
    result = compute_price(ring, dict(SELECTION, ring_size="52"))
    assert result.total == Decimal("690.00")


def test_multiple_selection_is_deduplicated_and_kept_in_catalog_order(ring):
    state = CustomizationState.build(ring, {"metal": "yellow_gold", "stone": ["ruby", "emerald", "ruby"]})
    assert state.selected("stone") == ("emerald", "ruby")
    assert compute_price(ring, state).total == Decimal("705.50")


def test_compute_price_is_deterministic(ring):
    selection = {"metal": "white_gold", "stone": ["ruby", "sapphire"], "diamondType": "lab_grown"}
    assert compute_price(ring, selection) == compute_price(ring, dict(selection))


def test_float_prices_do_not_drift():
    item = JewelryItem.from_dict({
        "jewelry_type": "bracelet",
        "base_price": 0.1,
        "settings": [{
            "id": "charms",
            "title": "Charms",
            "type": "multiple",
            "options": [{"id": f"c{i}", "name": f"C{i}", "price": 0.1} for i in range(9)],
        }],
    })
    result = compute_price(item, {"charms": [f"c{i}" for i in range(9)]})
    assert result.total == Decimal("1.00")


def test_describe_selection(ring):
    text = describe_selection(ring, dict(SELECTION, diamondType="lab_grown"))
    assert text == "Metal: Yellow Gold; Stone: Emerald, Sapphire; Diamonds: Lab grown"


def test_breakdown_to_dict(ring):
    out = compute_price(ring, SELECTION).to_dict()
    assert out["total"] == 690.0
    assert out["line_items"][0] == {"setting_id": "metal", "option_id": "yellow_gold", "amount": 50.0}
