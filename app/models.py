import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp with microsecond resolution"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PersonalizationConfig(Base):
    """One customizable slot on a listing, defined by the seller"""

    __tablename__ = "personalization_configs"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    listing_id = Column(String(36), nullable=False, index=True)
    custom_option_id = Column(String(36), nullable=True)  # Optional link to an existing custom option

    is_enabled = Column(Boolean, default=True, nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)

    # text, image_upload, image_selection, font_selection, color_selection,
    # placement_selection, template_selection, combined
    personalization_type = Column(String(50), nullable=False)

    config_settings = Column(JSON, default=dict, nullable=False)
    text_config = Column(JSON, nullable=True)
    image_upload_config = Column(JSON, nullable=True)
    font_config = Column(JSON, nullable=True)
    color_config = Column(JSON, nullable=True)

    # enabled=full preview, constrained=provider limits, downgraded=simplified, disabled=no preview
    live_preview_mode = Column(String(20), default="enabled", nullable=False)

    price_impact = Column(JSON, nullable=True)  # {type, fixed_amount, percentage, per_character, per_image}

    # When personalization becomes immutable: add_to_cart, checkout, order_received, proof_approved
    lock_after_stage = Column(String(30), default="order_received", nullable=False)

    display_order = Column(Integer, default=0, nullable=False)
    help_text = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    submissions = relationship("PersonalizationSubmission", back_populates="config")
    image_presets = relationship("PersonalizationImagePreset", back_populates="config")


class PersonalizationFont(Base):
    """Font available for text personalization (system-wide or provider-owned)"""

    __tablename__ = "personalization_fonts"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    name = Column(String(100), nullable=False)
    family = Column(String(255), nullable=False)
    category = Column(String(30), default="sans-serif")  # serif, sans-serif, display, handwriting, monospace
    preview_url = Column(Text, nullable=True)
    font_file_url = Column(Text, nullable=True)
    is_system_font = Column(Boolean, default=True, nullable=False)
    provider_id = Column(String(36), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PersonalizationColorPalette(Base):
    """Reusable provider color palette"""

    __tablename__ = "personalization_color_palettes"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    provider_id = Column(String(36), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    colors = Column(JSON, default=list, nullable=False)  # [{hex, name, category}]
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PersonalizationTemplate(Base):
    """Design template for a listing with the zones a buyer can place content in"""

    __tablename__ = "personalization_templates"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    listing_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    preview_image_url = Column(Text, nullable=True)

    canvas_config = Column(JSON, nullable=False)  # {width, height, background_color, background_image_url}
    placement_zones = Column(JSON, default=list, nullable=False)  # [{id, type, x, y, width, height, constraints}]
    constraints = Column(JSON, nullable=True)  # {allow_zone_resize, allow_zone_move, enforce_safe_area, safe_area_margin}

    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class PersonalizationImagePreset(Base):
    """Provider-supplied image a buyer can pick instead of uploading"""

    __tablename__ = "personalization_image_presets"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    listing_id = Column(String(36), nullable=False, index=True)
    provider_id = Column(String(36), nullable=False)
    config_id = Column(
        String(36), ForeignKey("personalization_configs.id", ondelete="CASCADE"), nullable=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    tags = Column(JSON, default=list, nullable=False)

    price_modifier = Column(Numeric(10, 2), default=0, nullable=False)  # Added on top of the config rule
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    config = relationship("PersonalizationConfig", back_populates="image_presets")


class PersonalizationSubmission(Base):
    """One buyer's value for one config"""

    __tablename__ = "personalization_submissions"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    customer_id = Column(String(36), nullable=False, index=True)
    listing_id = Column(String(36), nullable=False, index=True)
    config_id = Column(
        String(36), ForeignKey("personalization_configs.id", ondelete="SET NULL"), nullable=True
    )

    # Set once when attached to a cart line, never reassigned
    cart_item_id = Column(String(36), nullable=True, index=True)
    booking_id = Column(String(36), nullable=True, index=True)
    production_order_id = Column(String(36), nullable=True, index=True)

    submission_type = Column(String(50), nullable=False)

    text_value = Column(Text, nullable=True)
    image_data = Column(JSON, nullable=True)  # {uploaded_url, preset_id, original_filename, file_size, dimensions}
    font_data = Column(JSON, nullable=True)  # {font_id, font_family, font_size, font_weight, font_style}
    color_data = Column(JSON, nullable=True)  # {hex, rgba, palette_color_id}
    placement_data = Column(JSON, nullable=True)  # {zone_id, x, y, width, height, rotation, scale}
    template_data = Column(JSON, nullable=True)  # {template_id, customizations}
    preview_render_url = Column(Text, nullable=True)

    calculated_price_impact = Column(Numeric(10, 2), default=0, nullable=False)

    # pending, valid, invalid, needs_review
    validation_status = Column(String(20), default="pending", nullable=False)
    validation_errors = Column(JSON, default=list, nullable=False)

    is_locked = Column(Boolean, default=False, nullable=False)
    locked_at = Column(DateTime, nullable=True)
    locked_reason = Column(String(30), nullable=True)

    # Bumped on every accepted write; callers may send it back to detect stale edits
    revision = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    config = relationship("PersonalizationConfig", back_populates="submissions")


class PersonalizationSnapshot(Base):
    """Immutable, versioned freeze of a cart item's submissions"""

    __tablename__ = "personalization_snapshots"

    id = Column(String(36), primary_key=True, default=generate_public_id)

    cart_item_id = Column(String(36), nullable=False, index=True)
    booking_id = Column(String(36), nullable=True, index=True)
    production_order_id = Column(String(36), nullable=True, index=True)

    customer_id = Column(String(36), nullable=False, index=True)
    listing_id = Column(String(36), nullable=False)
    provider_id = Column(String(36), nullable=False)

    snapshot_data = Column(JSON, nullable=False)  # Frozen copy of every submission
    config_snapshot = Column(JSON, nullable=False)  # Frozen copy of the configs used
    uploaded_images = Column(JSON, default=list, nullable=False)  # [{submission_id, url, permanent_url, hash}]
    preview_renders = Column(JSON, default=list, nullable=False)  # [{submission_id, render_url}]

    total_price_impact = Column(Numeric(10, 2), default=0, nullable=False)
    snapshot_version = Column(Integer, default=1, nullable=False)

    # active: referenced downstream; superseded: kept for audit only
    status = Column(String(20), default="active", nullable=False)
    lock_stage = Column(String(30), nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    finalized_at = Column(DateTime, nullable=True)
    superseded_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            "uq_personalization_snapshots_active_cart_item",
            "cart_item_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class PersonalizationReusableSetup(Base):
    """Saved bundle of a customer's past submissions for repeat orders"""

    __tablename__ = "personalization_reusable_setups"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    customer_id = Column(String(36), nullable=False, index=True)
    listing_id = Column(String(36), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    setup_data = Column(JSON, nullable=False)  # Submission-shaped records without ids

    source_snapshot_id = Column(
        String(36), ForeignKey("personalization_snapshots.id", ondelete="SET NULL"), nullable=True
    )
    source_booking_id = Column(String(36), nullable=True)

    use_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    is_favorite = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
