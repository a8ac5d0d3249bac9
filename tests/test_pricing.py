"""Price impact rules."""
from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

from app.domain.personalization.pricing import (
    calculate_price_impact,
    image_count_for,
    to_money,
    total_price_impact,
)


def priced(**rule):
    return SimpleNamespace(price_impact=rule)


def test_per_character() -> None:
    config = priced(type="per_character", per_character=0.50)
    assert calculate_price_impact(config, text_value="0123456789") == Decimal("5.00")


def test_per_character_without_text() -> None:
    config = priced(type="per_character", per_character=0.50)
    assert calculate_price_impact(config) == Decimal("0.00")


def test_fixed() -> None:
    assert calculate_price_impact(priced(type="fixed", fixed_amount=3.5)) == Decimal("3.50")


def test_percentage_uses_base_price() -> None:
    config = priced(type="percentage", percentage=10)

    assert calculate_price_impact(config, base_price=40) == Decimal("4.00")
    assert calculate_price_impact(config, base_price="19.99") == Decimal("2.00")


def test_percentage_without_base_price_is_zero() -> None:
    assert calculate_price_impact(priced(type="percentage", percentage=10)) == Decimal("0.00")


def test_per_image() -> None:
    config = priced(type="per_image", per_image=1.25)
    assert calculate_price_impact(config, image_count=2) == Decimal("2.50")


def test_none_rule() -> None:
    assert calculate_price_impact(SimpleNamespace(price_impact=None), text_value="abc") == Decimal("0.00")


def test_preset_modifier_is_added_to_rule() -> None:
    config = priced(type="fixed", fixed_amount=2)
    assert calculate_price_impact(config, preset_modifier=Decimal("1.50")) == Decimal("3.50")


def test_rounds_half_up_to_cents() -> None:
    config = priced(type="per_character", per_character=0.125)
    assert calculate_price_impact(config, text_value="a") == Decimal("0.13")


def test_total_has_no_float_drift() -> None:
    assert total_price_impact([Decimal("2.00"), Decimal("3.50")]) == Decimal("5.50")
    assert total_price_impact([0.1, 0.2]) == Decimal("0.30")
    assert total_price_impact([]) == Decimal("0.00")


def test_image_count() -> None:
    assert image_count_for({"uploaded_url": "https://cdn.example.com/a.png"}) == 1
    assert image_count_for({"preset_id": "p1"}) == 1
    assert image_count_for(None) == 0


def test_to_money() -> None:
    assert to_money(None) == Decimal("0.00")
    assert to_money(1.005) == Decimal("1.01")
