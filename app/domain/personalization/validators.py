"""
Personalization validation rules

Checks a buyer's submission against the seller's config. Each facet (text,
image, font, color, placement, template) is checked when the config's type
names it or when its sub-config is enabled, so combined configs validate
several facets at once. Errors are user-facing strings and accumulate.
Nothing here touches the database; callers look up palettes and templates
themselves.
"""

import os
import re
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from .schemas import (
    DEFAULT_COLORS,
    ColorConfig,
    FontConfig,
    ImageUploadConfig,
    TextConfig,
    ValidationResult,
)

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
BYTES_PER_MB = 1024 * 1024


def as_dict(value: Any) -> dict:
    """Normalize a JSON column, pydantic model or None to a plain dict"""
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return dict(value)


def parse_sub_config(model: type[BaseModel], value: Any):
    return model.model_validate(as_dict(value))


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def validate_text(text_value: Optional[str], text_config: TextConfig, required: bool) -> list[str]:
    errors = []
    value = text_value or ""

    if required and not value:
        errors.append("This field is required")
    if not value:
        return errors

    if text_config.min_length > 0 and len(value) < text_config.min_length:
        errors.append(f"Text must be at least {text_config.min_length} characters")
    if text_config.max_length > 0 and len(value) > text_config.max_length:
        errors.append(f"Text must be no more than {text_config.max_length} characters")
    if not text_config.multiline and "\n" in value:
        errors.append("Text must be a single line")
    elif text_config.multiline and text_config.max_lines > 0:
        if len(value.splitlines()) > text_config.max_lines:
            errors.append(f"Text must be no more than {text_config.max_lines} lines")
    if text_config.validation_regex and not re.fullmatch(text_config.validation_regex, value):
        errors.append("Text contains invalid characters")
    return errors


def validate_image(image_data: dict, image_config: ImageUploadConfig, required: bool) -> list[str]:
    errors = []

    if required and not image_data.get("uploaded_url") and not image_data.get("preset_id"):
        errors.append("Image is required")

    file_size = image_data.get("file_size")
    if file_size and image_config.max_file_size_mb > 0:
        if file_size > image_config.max_file_size_mb * BYTES_PER_MB:
            errors.append(
                f"Image must be smaller than {_format_number(image_config.max_file_size_mb)}MB"
            )

    dimensions = image_data.get("dimensions")
    minimum = image_config.min_resolution
    if dimensions and minimum:
        if dimensions.get("width", 0) < minimum.width or dimensions.get("height", 0) < minimum.height:
            errors.append(f"Image must be at least {minimum.width}x{minimum.height} pixels")

    filename = image_data.get("original_filename")
    if filename and image_config.allowed_formats and not image_data.get("preset_id"):
        extension = os.path.splitext(filename)[1].lstrip(".").lower()
        allowed = [fmt.lower() for fmt in image_config.allowed_formats]
        if extension not in allowed:
            errors.append(f"Image must be one of: {', '.join(allowed)}")
    return errors


def validate_font(font_data: dict, font_config: FontConfig, required: bool) -> list[str]:
    errors = []
    font_id = font_data.get("font_id")

    if required and not font_id:
        errors.append("Font selection is required")

    if font_id and not font_config.allow_all_system_fonts and font_config.allowed_font_ids:
        if font_id not in font_config.allowed_font_ids:
            errors.append("Selected font is not available for this item")

    font_size = font_data.get("font_size")
    if font_size:
        if font_config.min_size > 0 and font_size < font_config.min_size:
            errors.append(f"Font size must be at least {_format_number(font_config.min_size)}")
        if font_config.max_size > 0 and font_size > font_config.max_size:
            errors.append(f"Font size must be no more than {_format_number(font_config.max_size)}")
    return errors


def validate_color(
    color_data: dict,
    color_config: ColorConfig,
    required: bool,
    palette_colors: Optional[Iterable[dict]] = None,
) -> list[str]:
    errors = []
    hex_value = color_data.get("hex")
    rgba_value = color_data.get("rgba")

    if required and not hex_value and not rgba_value:
        errors.append("Color selection is required")
    if not hex_value:
        # An rgba value without hex is never one of the offered colors
        if rgba_value and not color_config.allow_custom_colors:
            errors.append("Custom colors are not available for this item")
        return errors

    if not HEX_COLOR_RE.match(hex_value):
        errors.append("Color must be a valid hex value (e.g. #FF0000)")
        return errors

    offered = palette_colors if palette_colors is not None else DEFAULT_COLORS
    allowed = {c["hex"].upper() for c in offered if c.get("hex")}
    if hex_value.upper() not in allowed and not color_config.allow_custom_colors:
        errors.append("Custom colors are not available for this item")
    return errors


def validate_template_choice(
    template_id: Optional[str],
    zone_id: Optional[str],
    templates: Iterable[dict],
) -> list[str]:
    """
    A chosen template must be one of the listing's active templates, and a
    chosen zone must belong to that template (or to any of them when no
    template was chosen).
    """
    errors = []
    by_id = {t["id"]: t for t in templates}

    if template_id and template_id not in by_id:
        errors.append("Selected template is not available for this item")
        return errors

    if zone_id:
        candidates = [by_id[template_id]] if template_id else by_id.values()
        zone_ids = {
            zone.get("id")
            for template in candidates
            for zone in template.get("placement_zones") or []
        }
        if zone_id not in zone_ids:
            errors.append("Selected placement zone is not available for this item")
    return errors


def validate_submission(
    submission: Any,
    config: Any,
    palette_colors: Optional[Iterable[dict]] = None,
    templates: Optional[Iterable[dict]] = None,
) -> ValidationResult:
    """
    Validate one submission against its config.

    Args:
        submission: ORM record, parsed payload or any object exposing the facet attributes
        config: ORM config or ConfigResponse
        palette_colors: Colors of the config's palette, if it has one
        templates: The listing's active templates as {id, placement_zones};
            None skips the template and zone lookups

    Returns:
        ValidationResult with valid == (no errors)
    """
    errors: list[str] = []
    ptype = config.personalization_type
    required = bool(config.is_required)

    text_config = parse_sub_config(TextConfig, config.text_config)
    if ptype == "text" or text_config.enabled:
        errors += validate_text(getattr(submission, "text_value", None), text_config, required)

    image_config = parse_sub_config(ImageUploadConfig, config.image_upload_config)
    image_data = as_dict(getattr(submission, "image_data", None))
    if ptype in ("image_upload", "image_selection") or image_config.enabled:
        errors += validate_image(image_data, image_config, required)

    font_config = parse_sub_config(FontConfig, config.font_config)
    if ptype == "font_selection" or font_config.enabled:
        errors += validate_font(as_dict(getattr(submission, "font_data", None)), font_config, required)

    color_config = parse_sub_config(ColorConfig, config.color_config)
    if ptype == "color_selection" or color_config.enabled:
        errors += validate_color(
            as_dict(getattr(submission, "color_data", None)), color_config, required, palette_colors
        )

    placement_data = as_dict(getattr(submission, "placement_data", None))
    template_data = as_dict(getattr(submission, "template_data", None))

    if ptype == "placement_selection" and required and not placement_data.get("zone_id"):
        errors.append("Placement selection is required")

    if ptype == "template_selection" and required and not template_data.get("template_id"):
        errors.append("Template selection is required")

    if templates is not None:
        errors += validate_template_choice(
            template_data.get("template_id"), placement_data.get("zone_id"), templates
        )

    if errors:
        status = "invalid"
    elif image_data.get("uploaded_url") and not image_data.get("dimensions") and image_config.min_resolution:
        # Resolution can't be checked without dimensions
        status = "needs_review"
    else:
        status = "valid"

    return ValidationResult(valid=not errors, errors=errors, status=status)


def unavailable_config_result() -> ValidationResult:
    """Result for a submission whose config was disabled or deleted"""
    return ValidationResult(
        valid=False,
        errors=["This personalization option is no longer available"],
        status="invalid",
    )
