"""Reusable setups - Saved personalization bundles a customer can replay"""

import copy
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import PersonalizationReusableSetup, PersonalizationSubmission, utcnow
from ...utils.sanitization import sanitize_string
from .exceptions import NotFoundError
from .repository import PersonalizationRepository
from .schemas import parse_submission_content
from .submission_service import SubmissionStore

logger = logging.getLogger(__name__)

# Identity and pricing are recomputed on every apply
DROPPED_ITEM_KEYS = ("submission_id", "calculated_price_impact")


def to_setup_item(entry: dict) -> dict:
    item = copy.deepcopy(entry)
    for key in DROPPED_ITEM_KEYS:
        item.pop(key, None)
    return item


class ReusableSetupManager:
    """Service layer for customer reusable setups"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PersonalizationRepository()
        self.store = SubmissionStore(db)

    def get_setup(self, setup_id: str, customer_id: str) -> PersonalizationReusableSetup:
        setup = self.repo.get_setup(self.db, setup_id, customer_id)
        if not setup:
            raise NotFoundError(f"Reusable setup {setup_id} not found")
        return setup

    def save(
        self,
        customer_id: str,
        listing_id: Optional[str],
        name: str,
        source_snapshot_id: Optional[str] = None,
        source_booking_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """
        Save the content of a snapshot (given directly or through its booking)
        as a named setup. The stored items are deep copies, so later changes to
        the source never reach the setup.

        Returns:
            The new setup id
        """
        if source_snapshot_id:
            snapshot = self.repo.get_snapshot(self.db, source_snapshot_id)
            if snapshot and snapshot.customer_id != customer_id:
                snapshot = None
            if not snapshot:
                raise NotFoundError(f"Personalization snapshot {source_snapshot_id} not found")
        elif source_booking_id:
            snapshot = self.repo.get_snapshot_by_booking(self.db, source_booking_id, customer_id)
            if not snapshot:
                raise NotFoundError(f"No personalization found for booking {source_booking_id}")
        else:
            raise ValueError("A source snapshot or booking is required to save a setup")

        setup = self.repo.create_setup(
            self.db,
            customer_id=customer_id,
            listing_id=listing_id,
            name=sanitize_string(name, max_length=255),
            description=sanitize_string(description),
            setup_data=[to_setup_item(entry) for entry in snapshot.snapshot_data or []],
            source_snapshot_id=snapshot.id,
            source_booking_id=source_booking_id or snapshot.booking_id,
        )
        logger.info(f"💾 Saved reusable setup {setup.id} '{setup.name}' for customer {customer_id}")
        return setup.id

    def list_setups(
        self, customer_id: str, listing_id: Optional[str] = None
    ) -> list[PersonalizationReusableSetup]:
        return self.repo.list_setups(self.db, customer_id, listing_id)

    def apply(
        self,
        setup_id: str,
        cart_item_id: str,
        customer_id: str,
        listing_id: str,
        base_price=None,
    ) -> list[PersonalizationSubmission]:
        """
        Replay a setup onto a cart item.

        Every stored item becomes a brand-new submission, validated and priced
        against the listing's live configs. Items whose config is gone or
        belongs to another listing are still created and come back invalid
        for the buyer to correct.
        """
        setup = self.get_setup(setup_id, customer_id)

        created = []
        try:
            for item in setup.setup_data or []:
                content = parse_submission_content(to_setup_item(item))
                submission = self.store.build(
                    customer_id,
                    listing_id,
                    content,
                    cart_item_id=cart_item_id,
                    base_price=base_price,
                    strict_config=False,
                )
                self.db.add(submission)
                created.append(submission)
            self.repo.record_setup_use(self.db, setup.id, utcnow())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for submission in created:
            self.db.refresh(submission)
        self.db.refresh(setup)

        logger.info(
            f"♻️ Applied setup {setup_id} to cart item {cart_item_id}: "
            f"{len(created)} submission(s) created"
        )
        return created

    def set_favorite(self, setup_id: str, customer_id: str, is_favorite: bool) -> PersonalizationReusableSetup:
        setup = self.get_setup(setup_id, customer_id)
        return self.repo.update_setup(self.db, setup, is_favorite=is_favorite, updated_at=utcnow())
