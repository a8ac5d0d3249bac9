"""Validation rules for buyer submissions."""
from __future__ import annotations

from types import SimpleNamespace

from app.domain.personalization.schemas import (
    ColorSelectionSubmission,
    CombinedSubmission,
    FontSelectionSubmission,
    ImageUploadSubmission,
    PlacementSelectionSubmission,
    TextSubmission,
)
from app.domain.personalization.validators import (
    unavailable_config_result,
    validate_submission,
)


def config(personalization_type: str = "text", is_required: bool = False, **sub_configs):
    return SimpleNamespace(
        personalization_type=personalization_type,
        is_required=is_required,
        text_config=sub_configs.get("text_config"),
        image_upload_config=sub_configs.get("image_upload_config"),
        font_config=sub_configs.get("font_config"),
        color_config=sub_configs.get("color_config"),
        price_impact=None,
    )


def text(value):
    return TextSubmission(submission_type="text", text_value=value)


def test_text_within_limit_is_valid() -> None:
    cfg = config("text", True, text_config={"max_length": 20})

    result = validate_submission(text("Happy Birthday!!"), cfg)

    assert result.valid is True
    assert result.errors == []
    assert result.status == "valid"


def test_required_text_empty() -> None:
    cfg = config("text", True, text_config={"max_length": 20})

    result = validate_submission(text(""), cfg)

    assert result.valid is False
    assert result.errors == ["This field is required"]
    assert result.status == "invalid"


def test_optional_text_empty_is_valid() -> None:
    result = validate_submission(text(None), config("text", False, text_config={"max_length": 5}))
    assert result.valid is True


def test_text_length_bounds() -> None:
    cfg = config("text", text_config={"min_length": 3, "max_length": 5})

    assert validate_submission(text("ab"), cfg).errors == ["Text must be at least 3 characters"]
    assert validate_submission(text("abcdef"), cfg).errors == [
        "Text must be no more than 5 characters"
    ]


def test_text_lines() -> None:
    single = config("text", text_config={"multiline": False})
    multi = config("text", text_config={"multiline": True, "max_lines": 2})

    assert validate_submission(text("a\nb"), single).errors == ["Text must be a single line"]
    assert validate_submission(text("a\nb"), multi).valid
    assert validate_submission(text("a\nb\nc"), multi).errors == ["Text must be no more than 2 lines"]


def test_text_regex() -> None:
    cfg = config("text", text_config={"validation_regex": "[A-Z ]+"})

    assert validate_submission(text("HELLO WORLD"), cfg).valid
    assert validate_submission(text("hello"), cfg).errors == ["Text contains invalid characters"]


def test_errors_accumulate() -> None:
    cfg = config("text", text_config={"max_length": 3, "validation_regex": "[a-z]+"})

    result = validate_submission(text("ABCDE"), cfg)

    assert result.errors == [
        "Text must be no more than 3 characters",
        "Text contains invalid characters",
    ]


def test_image_checks() -> None:
    cfg = config(
        "image_upload",
        True,
        image_upload_config={
            "max_file_size_mb": 10,
            "allowed_formats": ["png", "jpg"],
            "min_resolution": {"width": 300, "height": 300},
        },
    )
    submission = ImageUploadSubmission(
        submission_type="image_upload",
        image_data={
            "uploaded_url": "https://cdn.example.com/a.gif",
            "original_filename": "a.gif",
            "file_size": 11 * 1024 * 1024,
            "dimensions": {"width": 200, "height": 400},
        },
    )

    result = validate_submission(submission, cfg)

    assert result.errors == [
        "Image must be smaller than 10MB",
        "Image must be at least 300x300 pixels",
        "Image must be one of: png, jpg",
    ]


def test_required_image_missing() -> None:
    cfg = config("image_upload", True)
    submission = ImageUploadSubmission(submission_type="image_upload")

    assert validate_submission(submission, cfg).errors == ["Image is required"]


def test_image_without_dimensions_needs_review() -> None:
    cfg = config(
        "image_upload",
        True,
        image_upload_config={"min_resolution": {"width": 300, "height": 300}},
    )
    submission = ImageUploadSubmission(
        submission_type="image_upload",
        image_data={"uploaded_url": "https://cdn.example.com/a.png"},
    )

    result = validate_submission(submission, cfg)

    assert result.valid is True
    assert result.status == "needs_review"


def test_font_not_in_allowed_list() -> None:
    cfg = config(
        "font_selection",
        font_config={"allow_all_system_fonts": False, "allowed_font_ids": ["f1"], "max_size": 72},
    )
    submission = FontSelectionSubmission(
        submission_type="font_selection", font_data={"font_id": "f2", "font_size": 100}
    )

    assert validate_submission(submission, cfg).errors == [
        "Selected font is not available for this item",
        "Font size must be no more than 72",
    ]


def test_color_rules() -> None:
    cfg = config("color_selection", True, color_config={"allow_custom_colors": False})

    def color(hex_value):
        return ColorSelectionSubmission(submission_type="color_selection", color_data={"hex": hex_value})

    assert validate_submission(color("#ff0000"), cfg).valid
    assert validate_submission(color("red"), cfg).errors == [
        "Color must be a valid hex value (e.g. #FF0000)"
    ]
    assert validate_submission(color("#123456"), cfg).errors == [
        "Custom colors are not available for this item"
    ]
    assert validate_submission(color("#123456"), cfg, palette_colors=[{"hex": "#123456"}]).valid


def test_rgba_only_color_is_a_custom_color() -> None:
    submission = ColorSelectionSubmission(
        submission_type="color_selection", color_data={"rgba": "rgba(12, 34, 56, 1)"}
    )

    strict = config("color_selection", True, color_config={"allow_custom_colors": False})
    result = validate_submission(submission, strict)
    assert result.valid is False
    assert result.status == "invalid"
    assert result.errors == ["Custom colors are not available for this item"]

    relaxed = config("color_selection", True, color_config={"allow_custom_colors": True})
    assert validate_submission(submission, relaxed).valid


def test_combined_config_checks_enabled_facets() -> None:
    cfg = config(
        "combined",
        True,
        text_config={"enabled": True, "max_length": 10},
        color_config={"enabled": True},
    )
    submission = CombinedSubmission(submission_type="combined", text_value="Hi")

    assert validate_submission(submission, cfg).errors == ["Color selection is required"]


def test_required_placement_zone() -> None:
    cfg = config("placement_selection", True)
    submission = PlacementSelectionSubmission(submission_type="placement_selection")

    assert validate_submission(submission, cfg).errors == ["Placement selection is required"]


def test_unavailable_config_result() -> None:
    result = unavailable_config_result()
    assert result.valid is False
    assert result.errors == ["This personalization option is no longer available"]
