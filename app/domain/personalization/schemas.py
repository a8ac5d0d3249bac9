"""Personalization domain schemas - Pydantic models for validation"""

import re
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

PersonalizationType = Literal[
    "text",
    "image_upload",
    "image_selection",
    "font_selection",
    "color_selection",
    "placement_selection",
    "template_selection",
    "combined",
]
LivePreviewMode = Literal["enabled", "constrained", "downgraded", "disabled"]
LockStage = Literal["add_to_cart", "checkout", "order_received", "proof_approved"]
PriceImpactType = Literal["none", "fixed", "percentage", "per_character", "per_image"]
ValidationStatus = Literal["pending", "valid", "invalid", "needs_review"]

# Lifecycle order, earliest first
LOCK_STAGES: tuple[str, ...] = ("add_to_cart", "checkout", "order_received", "proof_approved")

# Offered when a config has no palette of its own
DEFAULT_COLORS = [
    {"hex": "#000000", "name": "Black"},
    {"hex": "#FFFFFF", "name": "White"},
    {"hex": "#FF0000", "name": "Red"},
    {"hex": "#0000FF", "name": "Blue"},
    {"hex": "#00FF00", "name": "Green"},
    {"hex": "#FFD700", "name": "Gold"},
    {"hex": "#C0C0C0", "name": "Silver"},
    {"hex": "#FFC0CB", "name": "Pink"},
]


# ============================================================================
# SELLER SUB-CONFIGS
# ============================================================================
# Bounds default to 0 / None which means "unbounded". The storage defaults a
# new config starts with live in DEFAULT_SUB_CONFIGS below.


class Resolution(BaseModel):
    width: int = 0
    height: int = 0


class TextConfig(BaseModel):
    """Constraints for free-text personalization"""

    enabled: bool = False
    max_length: int = 0
    min_length: int = 0
    allowed_characters: str = "alphanumeric"
    multiline: bool = False
    max_lines: int = 1
    placeholder: Optional[str] = None
    validation_regex: Optional[str] = None

    @field_validator("validation_regex")
    @classmethod
    def validate_regex(cls, v):
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid validation_regex: {e}")
        return v


class ImageUploadConfig(BaseModel):
    """Constraints for uploaded or preset images"""

    enabled: bool = False
    max_file_size_mb: float = 0
    allowed_formats: list[str] = Field(default_factory=list)
    min_resolution: Optional[Resolution] = None
    max_uploads: int = 1
    require_high_res: bool = False


class FontConfig(BaseModel):
    """Which fonts and sizes a buyer may choose"""

    enabled: bool = False
    allowed_font_ids: list[str] = Field(default_factory=list)
    allow_all_system_fonts: bool = True
    default_font_id: Optional[str] = None
    allow_size_selection: bool = True
    min_size: float = 0
    max_size: float = 0
    default_size: float = 24


class ColorConfig(BaseModel):
    """Palette restrictions for color selection"""

    enabled: bool = False
    palette_id: Optional[str] = None
    allow_custom_colors: bool = False
    default_color: str = "#000000"


class PriceImpactRule(BaseModel):
    """How a config contributes to the item price"""

    type: PriceImpactType = "none"
    fixed_amount: float = 0
    percentage: float = 0  # Percent of the listing base price (10 == 10%)
    per_character: float = 0
    per_image: float = 0


DEFAULT_SUB_CONFIGS: dict[str, dict[str, Any]] = {
    "text_config": {
        "enabled": False,
        "max_length": 50,
        "min_length": 0,
        "allowed_characters": "alphanumeric",
        "multiline": False,
        "max_lines": 1,
        "placeholder": "Enter your text",
        "validation_regex": None,
    },
    "image_upload_config": {
        "enabled": False,
        "max_file_size_mb": 10,
        "allowed_formats": ["jpg", "jpeg", "png", "svg"],
        "min_resolution": {"width": 300, "height": 300},
        "max_uploads": 1,
        "require_high_res": False,
    },
    "font_config": {
        "enabled": False,
        "allowed_font_ids": [],
        "allow_all_system_fonts": True,
        "default_font_id": None,
        "allow_size_selection": True,
        "min_size": 12,
        "max_size": 72,
        "default_size": 24,
    },
    "color_config": {
        "enabled": False,
        "palette_id": None,
        "allow_custom_colors": False,
        "default_color": "#000000",
    },
}


class ConfigCreate(BaseModel):
    """Schema for creating a personalization config on a listing"""

    personalization_type: PersonalizationType
    is_enabled: bool = True
    is_required: bool = False
    custom_option_id: Optional[str] = None
    config_settings: dict[str, Any] = Field(default_factory=dict)
    text_config: Optional[TextConfig] = None
    image_upload_config: Optional[ImageUploadConfig] = None
    font_config: Optional[FontConfig] = None
    color_config: Optional[ColorConfig] = None
    live_preview_mode: LivePreviewMode = "enabled"
    price_impact: PriceImpactRule = Field(default_factory=PriceImpactRule)
    lock_after_stage: LockStage = "order_received"
    display_order: int = 0
    help_text: Optional[str] = None


class ConfigUpdate(BaseModel):
    """Schema for updating an existing config"""

    personalization_type: Optional[PersonalizationType] = None
    is_enabled: Optional[bool] = None
    is_required: Optional[bool] = None
    config_settings: Optional[dict[str, Any]] = None
    text_config: Optional[TextConfig] = None
    image_upload_config: Optional[ImageUploadConfig] = None
    font_config: Optional[FontConfig] = None
    color_config: Optional[ColorConfig] = None
    live_preview_mode: Optional[LivePreviewMode] = None
    price_impact: Optional[PriceImpactRule] = None
    lock_after_stage: Optional[LockStage] = None
    display_order: Optional[int] = None
    help_text: Optional[str] = None


class ConfigResponse(BaseModel):
    """Schema for config response (also the cached shape)"""

    id: str
    listing_id: str
    custom_option_id: Optional[str] = None
    is_enabled: bool
    is_required: bool
    personalization_type: str
    config_settings: dict[str, Any] = Field(default_factory=dict)
    text_config: Optional[dict[str, Any]] = None
    image_upload_config: Optional[dict[str, Any]] = None
    font_config: Optional[dict[str, Any]] = None
    color_config: Optional[dict[str, Any]] = None
    live_preview_mode: str
    price_impact: Optional[dict[str, Any]] = None
    lock_after_stage: str
    display_order: int
    help_text: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# CATALOG: PRESETS, FONTS, PALETTES, TEMPLATES
# ============================================================================


class ImagePresetCreate(BaseModel):
    provider_id: str
    name: str
    image_url: str
    config_id: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    price_modifier: float = Field(default=0, ge=0)
    sort_order: int = 0


class ImagePresetResponse(BaseModel):
    id: str
    listing_id: str
    provider_id: str
    config_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    image_url: str
    thumbnail_url: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    price_modifier: float
    is_active: bool
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class FontCreate(BaseModel):
    name: str
    family: str
    category: Literal["serif", "sans-serif", "display", "handwriting", "monospace"] = "sans-serif"
    preview_url: Optional[str] = None
    font_file_url: Optional[str] = None
    sort_order: int = 0


class FontResponse(BaseModel):
    id: str
    name: str
    family: str
    category: Optional[str] = None
    preview_url: Optional[str] = None
    font_file_url: Optional[str] = None
    is_system_font: bool
    provider_id: Optional[str] = None
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class PaletteColor(BaseModel):
    hex: str
    name: Optional[str] = None
    category: Optional[str] = None


class ColorPaletteCreate(BaseModel):
    name: str
    colors: list[PaletteColor] = Field(default_factory=list)
    is_default: bool = False


class ColorPaletteUpdate(BaseModel):
    name: Optional[str] = None
    colors: Optional[list[PaletteColor]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class ColorPaletteResponse(BaseModel):
    id: str
    provider_id: str
    name: str
    colors: list[PaletteColor]
    is_default: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CanvasConfig(BaseModel):
    width: int = 1000
    height: int = 1000
    background_color: str = "#ffffff"
    background_image_url: Optional[str] = None


class PlacementZone(BaseModel):
    """Editable area of a template; submissions refer to it by id"""

    id: str
    type: str = "text"
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    constraints: dict[str, Any] = Field(default_factory=dict)


class TemplateConstraints(BaseModel):
    allow_zone_resize: bool = False
    allow_zone_move: bool = False
    enforce_safe_area: bool = True
    safe_area_margin: int = 50


class TemplateCreate(BaseModel):
    provider_id: str
    name: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    preview_image_url: Optional[str] = None
    canvas_config: CanvasConfig = Field(default_factory=CanvasConfig)
    placement_zones: list[PlacementZone] = Field(default_factory=list)
    constraints: TemplateConstraints = Field(default_factory=TemplateConstraints)
    is_default: bool = False
    sort_order: int = 0

    @field_validator("placement_zones")
    @classmethod
    def validate_unique_zone_ids(cls, v):
        ids = [zone.id for zone in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Placement zone ids must be unique within a template")
        return v


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    preview_image_url: Optional[str] = None
    canvas_config: Optional[CanvasConfig] = None
    placement_zones: Optional[list[PlacementZone]] = None
    constraints: Optional[TemplateConstraints] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("placement_zones")
    @classmethod
    def validate_unique_zone_ids(cls, v):
        if v is not None:
            ids = [zone.id for zone in v]
            if len(ids) != len(set(ids)):
                raise ValueError("Placement zone ids must be unique within a template")
        return v


class TemplateResponse(BaseModel):
    id: str
    listing_id: str
    provider_id: str
    name: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    preview_image_url: Optional[str] = None
    canvas_config: dict[str, Any]
    placement_zones: list[dict[str, Any]] = Field(default_factory=list)
    constraints: Optional[dict[str, Any]] = None
    is_default: bool
    is_active: bool
    sort_order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# SUBMISSION PAYLOADS
# ============================================================================


class Dimensions(BaseModel):
    width: int
    height: int


class ImageData(BaseModel):
    uploaded_url: Optional[str] = None
    preset_id: Optional[str] = None
    original_filename: Optional[str] = None
    file_size: Optional[int] = None  # bytes
    dimensions: Optional[Dimensions] = None
    permanent_url: Optional[str] = None
    content_hash: Optional[str] = None


class FontData(BaseModel):
    font_id: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[str] = None
    font_style: Optional[str] = None


class ColorData(BaseModel):
    hex: Optional[str] = None
    rgba: Optional[str] = None
    palette_color_id: Optional[str] = None


class PlacementData(BaseModel):
    zone_id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    scale: Optional[float] = None


class TemplateData(BaseModel):
    template_id: Optional[str] = None
    customizations: dict[str, Any] = Field(default_factory=dict)


class _SubmissionContentBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    config_id: Optional[str] = None
    preview_render_url: Optional[str] = None


class TextSubmission(_SubmissionContentBase):
    submission_type: Literal["text"]
    text_value: Optional[str] = None


class ImageUploadSubmission(_SubmissionContentBase):
    submission_type: Literal["image_upload"]
    image_data: ImageData = Field(default_factory=ImageData)


class ImageSelectionSubmission(_SubmissionContentBase):
    submission_type: Literal["image_selection"]
    image_data: ImageData = Field(default_factory=ImageData)


class FontSelectionSubmission(_SubmissionContentBase):
    submission_type: Literal["font_selection"]
    font_data: FontData = Field(default_factory=FontData)


class ColorSelectionSubmission(_SubmissionContentBase):
    submission_type: Literal["color_selection"]
    color_data: ColorData = Field(default_factory=ColorData)


class PlacementSelectionSubmission(_SubmissionContentBase):
    submission_type: Literal["placement_selection"]
    placement_data: PlacementData = Field(default_factory=PlacementData)


class TemplateSelectionSubmission(_SubmissionContentBase):
    submission_type: Literal["template_selection"]
    template_data: TemplateData = Field(default_factory=TemplateData)


class CombinedSubmission(_SubmissionContentBase):
    """Several facets for one combined config"""

    submission_type: Literal["combined"]
    text_value: Optional[str] = None
    image_data: Optional[ImageData] = None
    font_data: Optional[FontData] = None
    color_data: Optional[ColorData] = None
    placement_data: Optional[PlacementData] = None
    template_data: Optional[TemplateData] = None


SubmissionContent = Annotated[
    Union[
        TextSubmission,
        ImageUploadSubmission,
        ImageSelectionSubmission,
        FontSelectionSubmission,
        ColorSelectionSubmission,
        PlacementSelectionSubmission,
        TemplateSelectionSubmission,
        CombinedSubmission,
    ],
    Field(discriminator="submission_type"),
]

submission_content_adapter = TypeAdapter(SubmissionContent)

FACET_FIELDS = (
    "text_value",
    "image_data",
    "font_data",
    "color_data",
    "placement_data",
    "template_data",
)


def parse_submission_content(data: dict[str, Any]):
    """Parse a submission-shaped dict, dropping unset facets first"""
    cleaned = {k: v for k, v in data.items() if v is not None and v != {}}
    return submission_content_adapter.validate_python(cleaned)


def content_to_columns(content) -> dict[str, Any]:
    """Flatten a parsed payload into submission column values"""
    values: dict[str, Any] = {
        "config_id": content.config_id,
        "submission_type": content.submission_type,
        "preview_render_url": content.preview_render_url,
    }
    for field in FACET_FIELDS:
        value = getattr(content, field, None)
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json", exclude_none=True)
        values[field] = value
    return values


class SubmissionCreateRequest(BaseModel):
    """Schema for creating a draft submission"""

    customer_id: str
    listing_id: str
    cart_item_id: Optional[str] = None
    base_price: Optional[float] = None  # Listing base price, only used by percentage rules
    submission: SubmissionContent


class SubmissionPatch(BaseModel):
    """Schema for editing a draft submission"""

    model_config = ConfigDict(extra="forbid")

    text_value: Optional[str] = None
    image_data: Optional[ImageData] = None
    font_data: Optional[FontData] = None
    color_data: Optional[ColorData] = None
    placement_data: Optional[PlacementData] = None
    template_data: Optional[TemplateData] = None
    preview_render_url: Optional[str] = None
    expected_revision: Optional[int] = None
    base_price: Optional[float] = None


class SubmissionResponse(BaseModel):
    id: str
    customer_id: str
    listing_id: str
    config_id: Optional[str] = None
    cart_item_id: Optional[str] = None
    booking_id: Optional[str] = None
    production_order_id: Optional[str] = None
    submission_type: str
    text_value: Optional[str] = None
    image_data: Optional[dict[str, Any]] = None
    font_data: Optional[dict[str, Any]] = None
    color_data: Optional[dict[str, Any]] = None
    placement_data: Optional[dict[str, Any]] = None
    template_data: Optional[dict[str, Any]] = None
    preview_render_url: Optional[str] = None
    calculated_price_impact: float
    validation_status: str
    validation_errors: list[str] = Field(default_factory=list)
    is_locked: bool
    locked_at: Optional[datetime] = None
    locked_reason: Optional[str] = None
    revision: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LinkSubmissionsRequest(BaseModel):
    submission_ids: list[str]


class SubmissionValidateRequest(BaseModel):
    submission: SubmissionContent


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    status: ValidationStatus = "pending"


class PricePreviewRequest(BaseModel):
    text_value: Optional[str] = None
    image_count: int = Field(default=0, ge=0)
    preset_id: Optional[str] = None
    base_price: Optional[float] = None


class PricePreviewResponse(BaseModel):
    config_id: str
    price_impact: float


# ============================================================================
# SNAPSHOTS
# ============================================================================


class SnapshotCreateRequest(BaseModel):
    customer_id: str
    listing_id: str
    provider_id: str
    stage: Optional[LockStage] = None


class SnapshotCreateResponse(BaseModel):
    snapshot_id: str


class TransferRequest(BaseModel):
    booking_id: str
    production_order_id: Optional[str] = None


class TransferResponse(BaseModel):
    success: bool


class LockForOrderRequest(BaseModel):
    stage: LockStage = "order_received"


class SnapshotResponse(BaseModel):
    id: str
    cart_item_id: str
    booking_id: Optional[str] = None
    production_order_id: Optional[str] = None
    customer_id: str
    listing_id: str
    provider_id: str
    snapshot_data: list[dict[str, Any]]
    config_snapshot: list[dict[str, Any]]
    uploaded_images: list[dict[str, Any]] = Field(default_factory=list)
    preview_renders: list[dict[str, Any]] = Field(default_factory=list)
    total_price_impact: float
    snapshot_version: int
    status: str
    lock_stage: str
    created_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# REUSABLE SETUPS
# ============================================================================


class SetupSaveRequest(BaseModel):
    customer_id: str
    listing_id: Optional[str] = None
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    source_snapshot_id: Optional[str] = None
    source_booking_id: Optional[str] = None


class SetupSaveResponse(BaseModel):
    setup_id: str


class SetupApplyRequest(BaseModel):
    cart_item_id: str
    customer_id: str
    listing_id: str
    base_price: Optional[float] = None


class SetupFavoriteRequest(BaseModel):
    customer_id: str
    is_favorite: bool


class SetupResponse(BaseModel):
    id: str
    customer_id: str
    listing_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    setup_data: list[dict[str, Any]]
    source_snapshot_id: Optional[str] = None
    source_booking_id: Optional[str] = None
    use_count: int
    last_used_at: Optional[datetime] = None
    is_favorite: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
