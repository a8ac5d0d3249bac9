"""Config registry - Seller-defined personalization configs and catalog"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import build_listing_configs_key, cache, invalidate_listing_configs_cache
from ...config import PERSONALIZATION_CONFIG_CACHE_TTL
from ...models import (
    PersonalizationColorPalette,
    PersonalizationConfig,
    PersonalizationFont,
    PersonalizationImagePreset,
    PersonalizationTemplate,
)
from ...utils.sanitization import sanitize_string
from .exceptions import NotFoundError
from .repository import PersonalizationRepository
from .schemas import (
    DEFAULT_SUB_CONFIGS,
    ColorPaletteCreate,
    ColorPaletteUpdate,
    ConfigCreate,
    ConfigResponse,
    ConfigUpdate,
    FontCreate,
    ImagePresetCreate,
    TemplateCreate,
    TemplateUpdate,
)

logger = logging.getLogger(__name__)

SUB_CONFIG_FIELDS = ("text_config", "image_upload_config", "font_config", "color_config")


class ConfigRegistry:
    """Service layer for listing personalization configs"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PersonalizationRepository()

    def get_configs_for_listing(self, listing_id: str) -> list[ConfigResponse]:
        """
        Enabled configs for a listing in display order.
        A listing without personalization returns an empty list.
        """
        cache_key = build_listing_configs_key(listing_id)
        cached = cache.get(cache_key)
        if cached is not None:
            return [ConfigResponse.model_validate(item) for item in cached]

        configs = [
            ConfigResponse.model_validate(c)
            for c in self.repo.get_enabled_configs_for_listing(self.db, listing_id)
        ]
        cache.set(
            cache_key,
            [c.model_dump(mode="json") for c in configs],
            PERSONALIZATION_CONFIG_CACHE_TTL,
        )
        return configs

    def has_personalization_enabled(self, listing_id: str) -> bool:
        return self.repo.listing_has_enabled_configs(self.db, listing_id)

    def get_config(self, config_id: str) -> PersonalizationConfig:
        config = self.repo.get_config(self.db, config_id)
        if not config:
            raise NotFoundError(f"Personalization config {config_id} not found")
        return config

    def create_config(self, listing_id: str, data: ConfigCreate) -> PersonalizationConfig:
        """Create a config; omitted sub-configs start from the storage defaults"""
        values = data.model_dump(exclude=set(SUB_CONFIG_FIELDS) | {"price_impact"})
        for field in SUB_CONFIG_FIELDS:
            sub_config = getattr(data, field)
            values[field] = (
                sub_config.model_dump(mode="json") if sub_config else dict(DEFAULT_SUB_CONFIGS[field])
            )
        values["price_impact"] = data.price_impact.model_dump(mode="json")
        values["help_text"] = sanitize_string(data.help_text)

        config = self.repo.create_config(self.db, listing_id, **values)
        invalidate_listing_configs_cache(listing_id)
        logger.info(
            f"🧩 Created {config.personalization_type} personalization config {config.id} "
            f"for listing {listing_id}"
        )
        return config

    def update_config(self, config_id: str, data: ConfigUpdate) -> PersonalizationConfig:
        config = self.get_config(config_id)

        updates = {}
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None and key not in ("help_text",):
                continue
            if key in SUB_CONFIG_FIELDS or key == "price_impact":
                value = getattr(data, key).model_dump(mode="json")
            elif key == "help_text":
                value = sanitize_string(value)
            updates[key] = value

        config = self.repo.update_config(self.db, config, **updates)
        invalidate_listing_configs_cache(config.listing_id)
        return config

    def disable_config(self, config_id: str) -> PersonalizationConfig:
        """Soft-delete: hides the config from buyers, keeps it for existing submissions"""
        config = self.get_config(config_id)
        config = self.repo.update_config(self.db, config, is_enabled=False)
        invalidate_listing_configs_cache(config.listing_id)
        logger.info(f"Disabled personalization config {config_id}")
        return config

    def delete_config(self, config_id: str) -> None:
        """Hard delete, refused while any submission references the config"""
        config = self.get_config(config_id)
        references = self.repo.count_submissions_for_config(self.db, config_id)
        if references:
            raise ValueError(
                f"Config is referenced by {references} submission(s); disable it instead"
            )
        listing_id = config.listing_id
        self.repo.delete_config(self.db, config)
        invalidate_listing_configs_cache(listing_id)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def create_image_preset(self, listing_id: str, data: ImagePresetCreate) -> PersonalizationImagePreset:
        if data.config_id and self.get_config(data.config_id).listing_id != listing_id:
            raise NotFoundError(
                f"Personalization config {data.config_id} not found on listing {listing_id}"
            )
        values = data.model_dump()
        values["name"] = sanitize_string(data.name)
        return self.repo.create_image_preset(self.db, listing_id, **values)

    def get_image_presets(
        self, listing_id: str, config_id: Optional[str] = None, category: Optional[str] = None
    ) -> list[PersonalizationImagePreset]:
        return self.repo.get_image_presets(self.db, listing_id, config_id, category)

    def get_preset_modifier(
        self,
        preset_id: Optional[str],
        listing_id: Optional[str] = None,
        config_id: Optional[str] = None,
    ):
        """
        Price modifier of an active preset, or None. With listing_id (and
        config_id) given, presets offered elsewhere count as unknown.
        """
        if not preset_id:
            return None
        preset = self.repo.get_image_preset(self.db, preset_id)
        if not preset or not preset.is_active:
            return None
        if listing_id and preset.listing_id != listing_id:
            return None
        if config_id and preset.config_id and preset.config_id != config_id:
            return None
        return preset.price_modifier

    def get_available_fonts(self, provider_id: Optional[str] = None) -> list[PersonalizationFont]:
        return self.repo.get_available_fonts(self.db, provider_id)

    def create_provider_font(self, provider_id: str, data: FontCreate) -> PersonalizationFont:
        return self.repo.create_font(
            self.db, provider_id=provider_id, is_system_font=False, **data.model_dump()
        )

    def get_provider_color_palettes(self, provider_id: str) -> list[PersonalizationColorPalette]:
        return self.repo.get_provider_color_palettes(self.db, provider_id)

    def create_color_palette(
        self, provider_id: str, data: ColorPaletteCreate
    ) -> PersonalizationColorPalette:
        return self.repo.create_color_palette(self.db, provider_id, **data.model_dump(mode="json"))

    def update_color_palette(
        self, palette_id: str, data: ColorPaletteUpdate
    ) -> PersonalizationColorPalette:
        palette = self.repo.get_color_palette(self.db, palette_id)
        if not palette:
            raise NotFoundError(f"Color palette {palette_id} not found")
        updates = {
            key: value
            for key, value in data.model_dump(mode="json", exclude_unset=True).items()
            if value is not None
        }
        return self.repo.update_color_palette(self.db, palette, **updates)

    def get_listing_templates(self, listing_id: str) -> list[PersonalizationTemplate]:
        return self.repo.get_listing_templates(self.db, listing_id)

    def get_template(self, template_id: str) -> PersonalizationTemplate:
        template = self.repo.get_template(self.db, template_id)
        if not template:
            raise NotFoundError(f"Personalization template {template_id} not found")
        return template

    def create_template(self, listing_id: str, data: TemplateCreate) -> PersonalizationTemplate:
        values = data.model_dump(mode="json", exclude={"provider_id"})
        values["name"] = sanitize_string(data.name, max_length=255)
        values["description"] = sanitize_string(data.description)
        template = self.repo.create_template(self.db, listing_id, data.provider_id, **values)
        logger.info(
            f"🧩 Created template {template.id} with {len(template.placement_zones)} zone(s) "
            f"for listing {listing_id}"
        )
        return template

    def update_template(self, template_id: str, data: TemplateUpdate) -> PersonalizationTemplate:
        template = self.get_template(template_id)
        updates = {}
        for key, value in data.model_dump(mode="json", exclude_unset=True).items():
            if value is None and key != "description":
                continue
            if key in ("name", "description"):
                value = sanitize_string(value, max_length=255 if key == "name" else None)
            updates[key] = value
        return self.repo.update_template(self.db, template, **updates)

    def get_template_catalog(self, listing_id: str) -> list[dict]:
        """Active templates of a listing reduced to what validation needs"""
        return [
            {"id": t.id, "placement_zones": t.placement_zones or []}
            for t in self.repo.get_listing_templates(self.db, listing_id)
        ]

    def get_palette_colors(self, config) -> Optional[list[dict]]:
        """Colors offered by the config's palette; None means the built-in set"""
        color_config = config.color_config or {}
        palette_id = color_config.get("palette_id")
        if not palette_id:
            return None
        palette = self.repo.get_color_palette(self.db, palette_id)
        if not palette or not palette.is_active:
            return None
        return palette.colors or []
