"""Submission store - Buyer personalization values and the lock invariant"""

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import PersonalizationConfig, PersonalizationSubmission
from .config_service import ConfigRegistry
from .exceptions import LockedSubmissionError, NotFoundError, RevisionConflictError
from .pricing import calculate_price_impact, image_count_for
from .repository import PersonalizationRepository
from .schemas import (
    FACET_FIELDS,
    LOCK_STAGES,
    SubmissionPatch,
    ValidationResult,
    content_to_columns,
    parse_submission_content,
)
from .validators import as_dict, unavailable_config_result, validate_submission

logger = logging.getLogger(__name__)


class SubmissionStore:
    """
    Service layer for personalization submissions.

    draft (unlocked, no cart item) -> attached (unlocked, cart item set)
    -> locked (frozen into a snapshot). Nothing leaves the locked state.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = PersonalizationRepository()
        self.registry = ConfigRegistry(db)

    def get(self, submission_id: str) -> PersonalizationSubmission:
        submission = self.repo.get_submission(self.db, submission_id)
        if not submission:
            raise NotFoundError(f"Personalization submission {submission_id} not found")
        return submission

    def get_cart_item_submissions(self, cart_item_id: str) -> list[PersonalizationSubmission]:
        return self.repo.get_cart_item_submissions(self.db, cart_item_id)

    def config_for_listing(
        self, config_id: Optional[str], listing_id: str
    ) -> Optional[PersonalizationConfig]:
        """The config if it exists and belongs to the listing, else None"""
        if not config_id:
            return None
        config = self.repo.get_config(self.db, config_id)
        if config is None or config.listing_id != listing_id:
            return None
        return config

    def evaluate(
        self,
        values: Any,
        config: Optional[PersonalizationConfig],
        base_price: Optional[Any] = None,
        listing_id: Optional[str] = None,
    ) -> tuple[ValidationResult, Decimal]:
        """
        Validate and price submission values against a live config. A config
        that is disabled, missing or (with listing_id given) offered on
        another listing is unavailable.
        """
        if config is None or not config.is_enabled:
            return unavailable_config_result(), Decimal("0.00")
        if listing_id and config.listing_id != listing_id:
            return unavailable_config_result(), Decimal("0.00")

        image_data = as_dict(getattr(values, "image_data", None))
        template_id = as_dict(getattr(values, "template_data", None)).get("template_id")
        zone_id = as_dict(getattr(values, "placement_data", None)).get("zone_id")
        templates = None
        if template_id or zone_id:
            templates = self.registry.get_template_catalog(config.listing_id)

        result = validate_submission(
            values, config, self.registry.get_palette_colors(config), templates
        )
        price = calculate_price_impact(
            config,
            text_value=getattr(values, "text_value", None),
            image_count=image_count_for(image_data),
            base_price=base_price,
            preset_modifier=self.registry.get_preset_modifier(
                image_data.get("preset_id"), config.listing_id, config.id
            ),
        )
        return result, price

    def build(
        self,
        customer_id: str,
        listing_id: str,
        content,
        cart_item_id: Optional[str] = None,
        base_price: Optional[Any] = None,
        strict_config: bool = True,
    ) -> PersonalizationSubmission:
        """
        Build (but do not persist) a validated, priced submission.

        A config must belong to the listing. With strict_config=False a
        missing or foreign config does not raise; the submission is kept
        without a config and marked invalid so the buyer is prompted to
        correct it.
        """
        config = self.config_for_listing(content.config_id, listing_id)
        if content.config_id and config is None and strict_config:
            raise NotFoundError(
                f"Personalization config {content.config_id} not found on listing {listing_id}"
            )

        columns = content_to_columns(content)
        if config is None:
            columns["config_id"] = None
        result, price = self.evaluate(content, config, base_price, listing_id)

        return PersonalizationSubmission(
            customer_id=customer_id,
            listing_id=listing_id,
            cart_item_id=cart_item_id,
            calculated_price_impact=price,
            validation_status=result.status,
            validation_errors=result.errors,
            **columns,
        )

    def create(
        self,
        customer_id: str,
        listing_id: str,
        content,
        cart_item_id: Optional[str] = None,
        base_price: Optional[Any] = None,
    ) -> PersonalizationSubmission:
        """Save a draft; invalid content is stored with its errors, never refused"""
        submission = self.build(customer_id, listing_id, content, cart_item_id, base_price)
        submission = self.repo.create_submission(self.db, submission)
        logger.info(
            f"✏️ Created {submission.submission_type} submission {submission.id} "
            f"for customer {customer_id} ({submission.validation_status})"
        )
        return submission

    def update(self, submission_id: str, patch: SubmissionPatch) -> PersonalizationSubmission:
        """
        Apply an edit to an unlocked submission and re-run validation and pricing.

        Raises:
            LockedSubmissionError: the submission is locked
            RevisionConflictError: expected_revision is stale
            NotFoundError: no such submission
        """
        existing = self.get(submission_id)
        if existing.is_locked:
            logger.warning(f"🔒 Refused update to locked submission {submission_id}")
            raise LockedSubmissionError(submission_id)

        merged = {
            "submission_type": existing.submission_type,
            "config_id": existing.config_id,
            "preview_render_url": existing.preview_render_url,
        }
        for field in FACET_FIELDS:
            merged[field] = getattr(existing, field)
        merged.update(patch.model_dump(exclude_unset=True, exclude={"expected_revision", "base_price"}))
        content = parse_submission_content(merged)

        config = self.repo.get_config(self.db, existing.config_id) if existing.config_id else None
        result, price = self.evaluate(content, config, patch.base_price, existing.listing_id)

        values = content_to_columns(content)
        values.pop("config_id")
        values.pop("submission_type")
        values.update(
            calculated_price_impact=price,
            validation_status=result.status,
            validation_errors=result.errors,
        )

        written = self.repo.update_submission_if_unlocked(
            self.db, submission_id, values, patch.expected_revision
        )
        if not written:
            self.db.rollback()
            current = self.get(submission_id)
            if current.is_locked:
                logger.warning(f"🔒 Submission {submission_id} was locked before the update landed")
                raise LockedSubmissionError(submission_id)
            raise RevisionConflictError(submission_id, patch.expected_revision, current.revision)

        self.db.commit()
        return self.get(submission_id)

    def link_to_cart_item(self, submission_ids: list[str], cart_item_id: str) -> list[PersonalizationSubmission]:
        """Attach drafts to a cart line; a submission's cart item is never reassigned"""
        ids = list(dict.fromkeys(submission_ids))
        if not ids:
            return []

        submissions = {s.id: s for s in self.repo.get_submissions(self.db, ids)}
        for submission_id in ids:
            submission = submissions.get(submission_id)
            if submission is None:
                raise NotFoundError(f"Personalization submission {submission_id} not found")
            if submission.cart_item_id and submission.cart_item_id != cart_item_id:
                raise ValueError(
                    f"Submission {submission_id} is already attached to another cart item"
                )
            if submission.is_locked:
                raise LockedSubmissionError(submission_id)

        try:
            linked = self.repo.attach_to_cart_item(self.db, ids, cart_item_id)
        except Exception:
            self.db.rollback()
            raise
        if linked != len(ids):
            # Another request locked or attached one of them in between
            self.db.rollback()
            for submission in self.repo.get_submissions(self.db, ids):
                if submission.is_locked:
                    raise LockedSubmissionError(submission.id)
            raise ValueError("Submissions changed while being attached; please retry")
        self.db.commit()

        logger.info(f"🛒 Linked {len(ids)} submission(s) to cart item {cart_item_id}")
        self.db.expire_all()
        return self.repo.get_cart_item_submissions(self.db, cart_item_id)

    def lock_for_order(self, production_order_id: str, stage: str = "order_received") -> int:
        """Lock any submission of a production order that is still unlocked"""
        if stage not in LOCK_STAGES:
            raise ValueError(f"Unknown lock stage: {stage}")
        count = self.repo.lock_production_order_submissions(self.db, production_order_id, stage)
        logger.info(f"🔒 Locked {count} submission(s) for production order {production_order_id} ({stage})")
        return count
