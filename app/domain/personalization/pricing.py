"""Price impact calculation for personalization choices"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from .schemas import PriceImpactRule
from .validators import as_dict

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert a float/str/Decimal amount to a 2-place Decimal"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def image_count_for(image_data: Any) -> int:
    """An uploaded image or a chosen preset both count as one image"""
    data = as_dict(image_data)
    return 1 if data.get("uploaded_url") or data.get("preset_id") else 0


def calculate_price_impact(
    config: Any,
    text_value: Optional[str] = None,
    image_count: int = 0,
    base_price: Optional[Any] = None,
    preset_modifier: Optional[Any] = None,
) -> Decimal:
    """
    Compute the incremental price of one config.

    The base price belongs to the listing and is only read for percentage
    rules; without it a percentage rule contributes nothing. A chosen preset's
    price_modifier is added on top of the rule, never substituted.
    """
    rule = PriceImpactRule.model_validate(as_dict(config.price_impact))

    if rule.type == "fixed":
        impact = Decimal(str(rule.fixed_amount))
    elif rule.type == "percentage":
        if base_price is None:
            impact = ZERO
        else:
            impact = Decimal(str(base_price)) * Decimal(str(rule.percentage)) / Decimal(100)
    elif rule.type == "per_character":
        impact = len(text_value) * Decimal(str(rule.per_character)) if text_value else ZERO
    elif rule.type == "per_image":
        impact = max(image_count, 0) * Decimal(str(rule.per_image))
    else:
        impact = ZERO

    if preset_modifier:
        impact += Decimal(str(preset_modifier))

    return to_money(impact)


def total_price_impact(amounts: Iterable[Any]) -> Decimal:
    """Sum already-rounded impacts without drift"""
    return to_money(sum((to_money(a) for a in amounts), ZERO))
