"""Personalization router - FastAPI endpoints for personalization operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .config_service import ConfigRegistry
from .exceptions import NotFoundError
from .pricing import calculate_price_impact
from .schemas import (
    ColorPaletteCreate,
    ColorPaletteResponse,
    ColorPaletteUpdate,
    ConfigCreate,
    ConfigResponse,
    ConfigUpdate,
    FontCreate,
    FontResponse,
    ImagePresetCreate,
    ImagePresetResponse,
    LinkSubmissionsRequest,
    LockForOrderRequest,
    PricePreviewRequest,
    PricePreviewResponse,
    SetupApplyRequest,
    SetupFavoriteRequest,
    SetupResponse,
    SetupSaveRequest,
    SetupSaveResponse,
    SnapshotCreateRequest,
    SnapshotCreateResponse,
    SnapshotResponse,
    SubmissionCreateRequest,
    SubmissionPatch,
    SubmissionResponse,
    SubmissionValidateRequest,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
    TransferRequest,
    TransferResponse,
    ValidationResult,
)
from .setup_service import ReusableSetupManager
from .snapshot_service import SnapshotEngine
from .submission_service import SubmissionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/personalization", tags=["Personalization"])


def get_config_registry(db: Session = Depends(get_db)) -> ConfigRegistry:
    """Dependency injection for ConfigRegistry"""
    return ConfigRegistry(db)


def get_submission_store(db: Session = Depends(get_db)) -> SubmissionStore:
    """Dependency injection for SubmissionStore"""
    return SubmissionStore(db)


def get_snapshot_engine(db: Session = Depends(get_db)) -> SnapshotEngine:
    """Dependency injection for SnapshotEngine"""
    return SnapshotEngine(db)


def get_setup_manager(db: Session = Depends(get_db)) -> ReusableSetupManager:
    """Dependency injection for ReusableSetupManager"""
    return ReusableSetupManager(db)


# ============================================================================
# LISTING CONFIGS
# ============================================================================


@router.get("/listings/{listing_id}/configs", response_model=list[ConfigResponse])
async def get_listing_configs(
    listing_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """Enabled personalization configs for a listing, in display order"""
    return registry.get_configs_for_listing(listing_id)


@router.get("/listings/{listing_id}/enabled")
async def get_listing_personalization_enabled(
    listing_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return {"listing_id": listing_id, "enabled": registry.has_personalization_enabled(listing_id)}


@router.post("/listings/{listing_id}/configs", response_model=ConfigResponse, status_code=201)
async def create_config(
    listing_id: str,
    data: ConfigCreate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """Create a personalization config on a listing"""
    return registry.create_config(listing_id, data)


@router.get("/configs/{config_id}", response_model=ConfigResponse)
async def get_config(
    config_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.get_config(config_id)


@router.patch("/configs/{config_id}", response_model=ConfigResponse)
async def update_config(
    config_id: str,
    data: ConfigUpdate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.update_config(config_id, data)


@router.post("/configs/{config_id}/disable", response_model=ConfigResponse)
async def disable_config(
    config_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """Hide a config from buyers without touching existing submissions"""
    return registry.disable_config(config_id)


@router.delete("/configs/{config_id}")
async def delete_config(
    config_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    try:
        registry.delete_config(config_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Config deleted successfully"}


@router.post("/configs/{config_id}/price-preview", response_model=PricePreviewResponse)
async def preview_price_impact(
    config_id: str,
    data: PricePreviewRequest,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """Price a prospective choice without saving anything"""
    config = registry.get_config(config_id)
    image_count = data.image_count
    if data.preset_id and not image_count:
        image_count = 1
    impact = calculate_price_impact(
        config,
        text_value=data.text_value,
        image_count=image_count,
        base_price=data.base_price,
        preset_modifier=registry.get_preset_modifier(data.preset_id, config.listing_id, config.id),
    )
    return PricePreviewResponse(config_id=config_id, price_impact=float(impact))


@router.post("/validate", response_model=ValidationResult)
async def validate_submission_content(
    data: SubmissionValidateRequest,
    store: SubmissionStore = Depends(get_submission_store),
):
    """Validate submission content against its config without saving it"""
    content = data.submission
    config = None
    if content.config_id:
        config = store.registry.get_config(content.config_id)
    result, _ = store.evaluate(content, config)
    return result


# ============================================================================
# CATALOG (presets, fonts, palettes, templates)
# ============================================================================


@router.get("/listings/{listing_id}/presets", response_model=list[ImagePresetResponse])
async def get_image_presets(
    listing_id: str,
    config_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.get_image_presets(listing_id, config_id, category)


@router.post("/listings/{listing_id}/presets", response_model=ImagePresetResponse, status_code=201)
async def create_image_preset(
    listing_id: str,
    data: ImagePresetCreate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.create_image_preset(listing_id, data)


@router.get("/fonts", response_model=list[FontResponse])
async def get_available_fonts(
    provider_id: Optional[str] = Query(None),
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """System fonts, plus the provider's own when provider_id is given"""
    return registry.get_available_fonts(provider_id)


@router.post("/providers/{provider_id}/fonts", response_model=FontResponse, status_code=201)
async def create_provider_font(
    provider_id: str,
    data: FontCreate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.create_provider_font(provider_id, data)


@router.get("/providers/{provider_id}/palettes", response_model=list[ColorPaletteResponse])
async def get_provider_color_palettes(
    provider_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.get_provider_color_palettes(provider_id)


@router.post("/providers/{provider_id}/palettes", response_model=ColorPaletteResponse, status_code=201)
async def create_color_palette(
    provider_id: str,
    data: ColorPaletteCreate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.create_color_palette(provider_id, data)


@router.patch("/palettes/{palette_id}", response_model=ColorPaletteResponse)
async def update_color_palette(
    palette_id: str,
    data: ColorPaletteUpdate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.update_color_palette(palette_id, data)


@router.get("/listings/{listing_id}/templates", response_model=list[TemplateResponse])
async def get_listing_templates(
    listing_id: str,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    """Active design templates for a listing, in sort order"""
    return registry.get_listing_templates(listing_id)


@router.post("/listings/{listing_id}/templates", response_model=TemplateResponse, status_code=201)
async def create_template(
    listing_id: str,
    data: TemplateCreate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.create_template(listing_id, data)


@router.patch("/templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    data: TemplateUpdate,
    registry: ConfigRegistry = Depends(get_config_registry),
):
    return registry.update_template(template_id, data)


# ============================================================================
# SUBMISSIONS
# ============================================================================


@router.post("/submissions", response_model=SubmissionResponse, status_code=201)
async def create_submission(
    data: SubmissionCreateRequest,
    store: SubmissionStore = Depends(get_submission_store),
):
    """Save a draft submission; validation errors are returned on the record"""
    return store.create(
        data.customer_id,
        data.listing_id,
        data.submission,
        cart_item_id=data.cart_item_id,
        base_price=data.base_price,
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: str,
    store: SubmissionStore = Depends(get_submission_store),
):
    return store.get(submission_id)


@router.patch("/submissions/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: str,
    patch: SubmissionPatch,
    store: SubmissionStore = Depends(get_submission_store),
):
    """Edit a draft; locked submissions answer 409"""
    try:
        return store.update(submission_id, patch)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/cart-items/{cart_item_id}/submissions", response_model=list[SubmissionResponse])
async def get_cart_item_submissions(
    cart_item_id: str,
    store: SubmissionStore = Depends(get_submission_store),
):
    return store.get_cart_item_submissions(cart_item_id)


@router.post("/cart-items/{cart_item_id}/submissions", response_model=list[SubmissionResponse])
async def link_submissions_to_cart_item(
    cart_item_id: str,
    data: LinkSubmissionsRequest,
    store: SubmissionStore = Depends(get_submission_store),
):
    """Attach draft submissions to a cart line"""
    try:
        return store.link_to_cart_item(data.submission_ids, cart_item_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/production-orders/{production_order_id}/lock")
async def lock_production_order_submissions(
    production_order_id: str,
    data: LockForOrderRequest,
    store: SubmissionStore = Depends(get_submission_store),
):
    count = store.lock_for_order(production_order_id, data.stage)
    return {"production_order_id": production_order_id, "locked_count": count}


# ============================================================================
# SNAPSHOTS
# ============================================================================


@router.post("/cart-items/{cart_item_id}/snapshot", response_model=SnapshotCreateResponse)
async def create_snapshot(
    cart_item_id: str,
    data: SnapshotCreateRequest,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    """Freeze the cart item's personalization; invalid content answers 422"""
    try:
        snapshot_id = engine.create_snapshot(
            cart_item_id, data.customer_id, data.listing_id, data.provider_id, data.stage
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SnapshotCreateResponse(snapshot_id=snapshot_id)


@router.get("/cart-items/{cart_item_id}/snapshot", response_model=SnapshotResponse)
async def get_active_snapshot(
    cart_item_id: str,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    snapshot = engine.get_active_snapshot(cart_item_id)
    if not snapshot:
        raise NotFoundError(f"No personalization snapshot for cart item {cart_item_id}")
    return snapshot


@router.post("/cart-items/{cart_item_id}/transfer", response_model=TransferResponse)
async def transfer_snapshot_to_order(
    cart_item_id: str,
    data: TransferRequest,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    """Attach the cart item's snapshot to its booking; safe to repeat"""
    success = engine.transfer_to_order(cart_item_id, data.booking_id, data.production_order_id)
    return TransferResponse(success=success)


@router.get("/snapshots/{snapshot_id}", response_model=SnapshotResponse)
async def get_snapshot(
    snapshot_id: str,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    return engine.get_snapshot(snapshot_id)


@router.get("/bookings/{booking_id}/snapshot", response_model=SnapshotResponse)
async def get_booking_snapshot(
    booking_id: str,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    snapshot = engine.get_snapshot_by_booking(booking_id)
    if not snapshot:
        raise NotFoundError(f"No personalization found for booking {booking_id}")
    return snapshot


@router.get("/production-orders/{production_order_id}")
async def get_order_personalization(
    production_order_id: str,
    engine: SnapshotEngine = Depends(get_snapshot_engine),
):
    """Frozen personalization for proofing a production order"""
    personalization = engine.get_order_personalization(production_order_id)
    if personalization is None:
        raise NotFoundError(f"No personalization found for production order {production_order_id}")
    return personalization


# ============================================================================
# REUSABLE SETUPS
# ============================================================================


@router.post("/setups", response_model=SetupSaveResponse, status_code=201)
async def save_setup(
    data: SetupSaveRequest,
    manager: ReusableSetupManager = Depends(get_setup_manager),
):
    try:
        setup_id = manager.save(
            data.customer_id,
            data.listing_id,
            data.name,
            source_snapshot_id=data.source_snapshot_id,
            source_booking_id=data.source_booking_id,
            description=data.description,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SetupSaveResponse(setup_id=setup_id)


@router.get("/setups", response_model=list[SetupResponse])
async def list_setups(
    customer_id: str = Query(...),
    listing_id: Optional[str] = Query(None),
    manager: ReusableSetupManager = Depends(get_setup_manager),
):
    return manager.list_setups(customer_id, listing_id)


@router.post("/setups/{setup_id}/apply", response_model=list[SubmissionResponse])
async def apply_setup(
    setup_id: str,
    data: SetupApplyRequest,
    manager: ReusableSetupManager = Depends(get_setup_manager),
):
    """Create fresh submissions on a cart item from a saved setup"""
    try:
        return manager.apply(
            setup_id, data.cart_item_id, data.customer_id, data.listing_id, data.base_price
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/setups/{setup_id}/favorite", response_model=SetupResponse)
async def set_setup_favorite(
    setup_id: str,
    data: SetupFavoriteRequest,
    manager: ReusableSetupManager = Depends(get_setup_manager),
):
    return manager.set_favorite(setup_id, data.customer_id, data.is_favorite)
