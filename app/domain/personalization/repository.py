"""Personalization repository - Database operations for personalization"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from ...models import (
    PersonalizationColorPalette,
    PersonalizationConfig,
    PersonalizationFont,
    PersonalizationImagePreset,
    PersonalizationReusableSetup,
    PersonalizationSnapshot,
    PersonalizationSubmission,
    PersonalizationTemplate,
    utcnow,
)


class PersonalizationRepository:
    """
    Repository for personalization database operations.

    Simple CRUD helpers commit. Helpers used inside the snapshot freeze only
    flush, so the caller owns the transaction and can roll it back.
    """

    # ------------------------------------------------------------------
    # Configs
    # ------------------------------------------------------------------

    @staticmethod
    def get_config(db: Session, config_id: str) -> Optional[PersonalizationConfig]:
        """Get a config by ID"""
        return db.query(PersonalizationConfig).filter(PersonalizationConfig.id == config_id).first()

    @staticmethod
    def get_enabled_configs_for_listing(db: Session, listing_id: str) -> list[PersonalizationConfig]:
        """Get enabled configs in seller-defined display order"""
        return (
            db.query(PersonalizationConfig)
            .filter(
                PersonalizationConfig.listing_id == listing_id,
                PersonalizationConfig.is_enabled.is_(True),
            )
            .order_by(PersonalizationConfig.display_order.asc(), PersonalizationConfig.created_at.asc())
            .all()
        )

    @staticmethod
    def listing_has_enabled_configs(db: Session, listing_id: str) -> bool:
        return (
            db.query(PersonalizationConfig.id)
            .filter(
                PersonalizationConfig.listing_id == listing_id,
                PersonalizationConfig.is_enabled.is_(True),
            )
            .first()
            is not None
        )

    @staticmethod
    def create_config(db: Session, listing_id: str, **config_data) -> PersonalizationConfig:
        """Create a new config"""
        config = PersonalizationConfig(listing_id=listing_id, **config_data)
        db.add(config)
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def update_config(db: Session, config: PersonalizationConfig, **updates) -> PersonalizationConfig:
        """Update a config with provided fields"""
        for key, value in updates.items():
            if hasattr(config, key):
                setattr(config, key, value)
        config.updated_at = utcnow()
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def delete_config(db: Session, config: PersonalizationConfig) -> None:
        db.delete(config)
        db.commit()

    @staticmethod
    def count_submissions_for_config(db: Session, config_id: str) -> int:
        return (
            db.query(func.count(PersonalizationSubmission.id))
            .filter(PersonalizationSubmission.config_id == config_id)
            .scalar()
        )

    # ------------------------------------------------------------------
    # Presets, fonts, palettes
    # ------------------------------------------------------------------

    @staticmethod
    def create_image_preset(db: Session, listing_id: str, **preset_data) -> PersonalizationImagePreset:
        preset = PersonalizationImagePreset(listing_id=listing_id, **preset_data)
        db.add(preset)
        db.commit()
        db.refresh(preset)
        return preset

    @staticmethod
    def get_image_preset(db: Session, preset_id: str) -> Optional[PersonalizationImagePreset]:
        return (
            db.query(PersonalizationImagePreset)
            .filter(PersonalizationImagePreset.id == preset_id)
            .first()
        )

    @staticmethod
    def get_image_presets(
        db: Session,
        listing_id: str,
        config_id: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[PersonalizationImagePreset]:
        """Get active presets for a listing with optional filters"""
        query = db.query(PersonalizationImagePreset).filter(
            PersonalizationImagePreset.listing_id == listing_id,
            PersonalizationImagePreset.is_active.is_(True),
        )
        if config_id:
            query = query.filter(PersonalizationImagePreset.config_id == config_id)
        if category:
            query = query.filter(PersonalizationImagePreset.category == category)
        return query.order_by(PersonalizationImagePreset.sort_order.asc()).all()

    @staticmethod
    def get_available_fonts(db: Session, provider_id: Optional[str] = None) -> list[PersonalizationFont]:
        """System fonts, plus the provider's own fonts when a provider is given"""
        query = db.query(PersonalizationFont).filter(PersonalizationFont.is_active.is_(True))
        if provider_id:
            query = query.filter(
                or_(
                    PersonalizationFont.is_system_font.is_(True),
                    PersonalizationFont.provider_id == provider_id,
                )
            )
        else:
            query = query.filter(PersonalizationFont.is_system_font.is_(True))
        return query.order_by(PersonalizationFont.sort_order.asc()).all()

    @staticmethod
    def create_font(db: Session, **font_data) -> PersonalizationFont:
        font = PersonalizationFont(**font_data)
        db.add(font)
        db.commit()
        db.refresh(font)
        return font

    @staticmethod
    def get_color_palette(db: Session, palette_id: str) -> Optional[PersonalizationColorPalette]:
        return (
            db.query(PersonalizationColorPalette)
            .filter(PersonalizationColorPalette.id == palette_id)
            .first()
        )

    @staticmethod
    def get_provider_color_palettes(db: Session, provider_id: str) -> list[PersonalizationColorPalette]:
        return (
            db.query(PersonalizationColorPalette)
            .filter(
                PersonalizationColorPalette.provider_id == provider_id,
                PersonalizationColorPalette.is_active.is_(True),
            )
            .order_by(PersonalizationColorPalette.created_at.desc())
            .all()
        )

    @staticmethod
    def create_color_palette(db: Session, provider_id: str, **palette_data) -> PersonalizationColorPalette:
        palette = PersonalizationColorPalette(provider_id=provider_id, **palette_data)
        db.add(palette)
        db.commit()
        db.refresh(palette)
        return palette

    @staticmethod
    def update_color_palette(
        db: Session, palette: PersonalizationColorPalette, **updates
    ) -> PersonalizationColorPalette:
        for key, value in updates.items():
            if hasattr(palette, key):
                setattr(palette, key, value)
        palette.updated_at = utcnow()
        db.commit()
        db.refresh(palette)
        return palette

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    @staticmethod
    def get_template(db: Session, template_id: str) -> Optional[PersonalizationTemplate]:
        return (
            db.query(PersonalizationTemplate)
            .filter(PersonalizationTemplate.id == template_id)
            .first()
        )

    @staticmethod
    def get_listing_templates(db: Session, listing_id: str) -> list[PersonalizationTemplate]:
        """Active templates for a listing by sort_order"""
        return (
            db.query(PersonalizationTemplate)
            .filter(
                PersonalizationTemplate.listing_id == listing_id,
                PersonalizationTemplate.is_active.is_(True),
            )
            .order_by(PersonalizationTemplate.sort_order.asc(), PersonalizationTemplate.created_at.asc())
            .all()
        )

    @staticmethod
    def create_template(
        db: Session, listing_id: str, provider_id: str, **template_data
    ) -> PersonalizationTemplate:
        template = PersonalizationTemplate(
            listing_id=listing_id, provider_id=provider_id, **template_data
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def update_template(
        db: Session, template: PersonalizationTemplate, **updates
    ) -> PersonalizationTemplate:
        for key, value in updates.items():
            if hasattr(template, key):
                setattr(template, key, value)
        template.updated_at = utcnow()
        db.commit()
        db.refresh(template)
        return template

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    @staticmethod
    def get_submission(db: Session, submission_id: str) -> Optional[PersonalizationSubmission]:
        return (
            db.query(PersonalizationSubmission)
            .filter(PersonalizationSubmission.id == submission_id)
            .first()
        )

    @staticmethod
    def get_submissions(db: Session, submission_ids: list[str]) -> list[PersonalizationSubmission]:
        return (
            db.query(PersonalizationSubmission)
            .filter(PersonalizationSubmission.id.in_(submission_ids))
            .all()
        )

    @staticmethod
    def create_submission(db: Session, submission: PersonalizationSubmission) -> PersonalizationSubmission:
        db.add(submission)
        db.commit()
        db.refresh(submission)
        return submission

    @staticmethod
    def update_submission_if_unlocked(
        db: Session,
        submission_id: str,
        values: dict,
        expected_revision: Optional[int] = None,
    ) -> int:
        """
        Single conditional UPDATE guarded by is_locked = false (and the revision
        when given). Returns the number of rows written; 0 means refused.
        Does not commit.
        """
        stmt = update(PersonalizationSubmission).where(
            PersonalizationSubmission.id == submission_id,
            PersonalizationSubmission.is_locked.is_(False),
        )
        if expected_revision is not None:
            stmt = stmt.where(PersonalizationSubmission.revision == expected_revision)
        stmt = stmt.values(
            **values,
            revision=PersonalizationSubmission.revision + 1,
            updated_at=utcnow(),
        ).execution_options(synchronize_session=False)
        return db.execute(stmt).rowcount

    @staticmethod
    def attach_to_cart_item(db: Session, submission_ids: list[str], cart_item_id: str) -> int:
        """Attach unlocked, unattached (or already same-cart) submissions. Does not commit."""
        stmt = (
            update(PersonalizationSubmission)
            .where(
                PersonalizationSubmission.id.in_(submission_ids),
                PersonalizationSubmission.is_locked.is_(False),
                or_(
                    PersonalizationSubmission.cart_item_id.is_(None),
                    PersonalizationSubmission.cart_item_id == cart_item_id,
                ),
            )
            .values(cart_item_id=cart_item_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    @staticmethod
    def get_cart_item_submissions(
        db: Session, cart_item_id: str, customer_id: Optional[str] = None
    ) -> list[PersonalizationSubmission]:
        """Submissions linked to a cart item in creation order"""
        query = db.query(PersonalizationSubmission).filter(
            PersonalizationSubmission.cart_item_id == cart_item_id
        )
        if customer_id:
            query = query.filter(PersonalizationSubmission.customer_id == customer_id)
        return query.order_by(PersonalizationSubmission.created_at.asc()).all()

    @staticmethod
    def lock_submissions(
        db: Session, revisions: dict[str, int], reason: str, locked_at: datetime
    ) -> int:
        """
        Lock submissions still unlocked and still at the revision that was read
        (submission id -> revision). Does not commit.
        """
        if not revisions:
            return 0
        stmt = (
            update(PersonalizationSubmission)
            .where(
                PersonalizationSubmission.is_locked.is_(False),
                or_(
                    *[
                        and_(
                            PersonalizationSubmission.id == submission_id,
                            PersonalizationSubmission.revision == revision,
                        )
                        for submission_id, revision in revisions.items()
                    ]
                ),
            )
            .values(is_locked=True, locked_at=locked_at, locked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    @staticmethod
    def lock_production_order_submissions(
        db: Session, production_order_id: str, reason: str
    ) -> int:
        """Lock whatever is still unlocked for a production order"""
        stmt = (
            update(PersonalizationSubmission)
            .where(
                PersonalizationSubmission.production_order_id == production_order_id,
                PersonalizationSubmission.is_locked.is_(False),
            )
            .values(is_locked=True, locked_at=utcnow(), locked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        count = db.execute(stmt).rowcount
        db.commit()
        return count

    @staticmethod
    def assign_order_to_submissions(
        db: Session,
        submission_ids: list[str],
        booking_id: str,
        production_order_id: Optional[str],
    ) -> int:
        """Record the order a frozen submission ended up in. Does not commit."""
        if not submission_ids:
            return 0
        stmt = (
            update(PersonalizationSubmission)
            .where(PersonalizationSubmission.id.in_(submission_ids))
            .values(booking_id=booking_id, production_order_id=production_order_id)
            .execution_options(synchronize_session=False)
        )
        return db.execute(stmt).rowcount

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @staticmethod
    def get_snapshot(db: Session, snapshot_id: str) -> Optional[PersonalizationSnapshot]:
        return db.query(PersonalizationSnapshot).filter(PersonalizationSnapshot.id == snapshot_id).first()

    @staticmethod
    def get_active_snapshot(db: Session, cart_item_id: str) -> Optional[PersonalizationSnapshot]:
        return (
            db.query(PersonalizationSnapshot)
            .filter(
                PersonalizationSnapshot.cart_item_id == cart_item_id,
                PersonalizationSnapshot.status == "active",
            )
            .first()
        )

    @staticmethod
    def get_latest_snapshot_version(db: Session, cart_item_id: str) -> int:
        return (
            db.query(func.max(PersonalizationSnapshot.snapshot_version))
            .filter(PersonalizationSnapshot.cart_item_id == cart_item_id)
            .scalar()
            or 0
        )

    @staticmethod
    def get_snapshot_by_booking(
        db: Session, booking_id: str, customer_id: Optional[str] = None
    ) -> Optional[PersonalizationSnapshot]:
        query = db.query(PersonalizationSnapshot).filter(
            PersonalizationSnapshot.booking_id == booking_id,
            PersonalizationSnapshot.status == "active",
        )
        if customer_id:
            query = query.filter(PersonalizationSnapshot.customer_id == customer_id)
        return query.first()

    @staticmethod
    def get_snapshot_by_production_order(
        db: Session, production_order_id: str
    ) -> Optional[PersonalizationSnapshot]:
        return (
            db.query(PersonalizationSnapshot)
            .filter(
                PersonalizationSnapshot.production_order_id == production_order_id,
                PersonalizationSnapshot.status == "active",
            )
            .first()
        )

    # ------------------------------------------------------------------
    # Reusable setups
    # ------------------------------------------------------------------

    @staticmethod
    def create_setup(db: Session, **setup_data) -> PersonalizationReusableSetup:
        setup = PersonalizationReusableSetup(**setup_data)
        db.add(setup)
        db.commit()
        db.refresh(setup)
        return setup

    @staticmethod
    def get_setup(
        db: Session, setup_id: str, customer_id: str
    ) -> Optional[PersonalizationReusableSetup]:
        """Get a setup owned by the customer"""
        return (
            db.query(PersonalizationReusableSetup)
            .filter(
                PersonalizationReusableSetup.id == setup_id,
                PersonalizationReusableSetup.customer_id == customer_id,
            )
            .first()
        )

    @staticmethod
    def list_setups(
        db: Session, customer_id: str, listing_id: Optional[str] = None
    ) -> list[PersonalizationReusableSetup]:
        """Most recently used first, never-used setups last"""
        query = db.query(PersonalizationReusableSetup).filter(
            PersonalizationReusableSetup.customer_id == customer_id
        )
        if listing_id:
            query = query.filter(
                or_(
                    PersonalizationReusableSetup.listing_id == listing_id,
                    PersonalizationReusableSetup.listing_id.is_(None),
                )
            )
        return query.order_by(
            PersonalizationReusableSetup.last_used_at.is_(None),
            PersonalizationReusableSetup.last_used_at.desc(),
            PersonalizationReusableSetup.created_at.desc(),
        ).all()

    @staticmethod
    def record_setup_use(db: Session, setup_id: str, used_at: datetime) -> None:
        """Increment use_count in SQL. Does not commit."""
        stmt = (
            update(PersonalizationReusableSetup)
            .where(PersonalizationReusableSetup.id == setup_id)
            .values(
                use_count=PersonalizationReusableSetup.use_count + 1,
                last_used_at=used_at,
                updated_at=used_at,
            )
            .execution_options(synchronize_session=False)
        )
        db.execute(stmt)

    @staticmethod
    def update_setup(
        db: Session, setup: PersonalizationReusableSetup, **updates
    ) -> PersonalizationReusableSetup:
        for key, value in updates.items():
            if hasattr(setup, key):
                setattr(setup, key, value)
        db.commit()
        db.refresh(setup)
        return setup
