"""
Snapshot engine - Freezes a cart item's personalization into an immutable,
versioned snapshot and hands it to the resulting booking / production order.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_LOCK_STAGE
from ...models import PersonalizationSnapshot, PersonalizationSubmission, utcnow
from .exceptions import FreezeIntegrityError, NotFoundError
from .pricing import to_money, total_price_impact
from .repository import PersonalizationRepository
from .schemas import LOCK_STAGES
from .submission_service import SubmissionStore

logger = logging.getLogger(__name__)

CONFIG_SNAPSHOT_FIELDS = (
    "personalization_type",
    "is_required",
    "text_config",
    "image_upload_config",
    "font_config",
    "color_config",
    "price_impact",
    "lock_after_stage",
    "live_preview_mode",
    "display_order",
    "help_text",
)


def serialize_submission(submission: PersonalizationSubmission) -> dict:
    """Frozen, JSON-safe copy of a submission's content"""
    return {
        "submission_id": submission.id,
        "config_id": submission.config_id,
        "submission_type": submission.submission_type,
        "text_value": submission.text_value,
        "image_data": submission.image_data,
        "font_data": submission.font_data,
        "color_data": submission.color_data,
        "placement_data": submission.placement_data,
        "template_data": submission.template_data,
        "preview_render_url": submission.preview_render_url,
        "calculated_price_impact": str(to_money(submission.calculated_price_impact)),
    }


def serialize_config(config) -> dict:
    data = {"config_id": config.id}
    for field in CONFIG_SNAPSHOT_FIELDS:
        data[field] = getattr(config, field)
    return data


def select_current_submissions(
    submissions: list[PersonalizationSubmission],
) -> list[PersonalizationSubmission]:
    """
    One submission per config for a cart item. A newer unlocked submission
    replaces a previously frozen one for the same config; otherwise the
    latest wins. Submissions without a config are all kept.
    """
    chosen: dict[str, PersonalizationSubmission] = {}
    loose = []
    for submission in submissions:  # oldest first
        if submission.config_id is None:
            loose.append(submission)
            continue
        current = chosen.get(submission.config_id)
        if current is None or not submission.is_locked or current.is_locked:
            chosen[submission.config_id] = submission
    kept = {s.id for s in chosen.values()} | {s.id for s in loose}
    return [s for s in submissions if s.id in kept]


class SnapshotEngine:
    """Service layer for personalization snapshots"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PersonalizationRepository()
        self.store = SubmissionStore(db)

    def get_snapshot(self, snapshot_id: str) -> PersonalizationSnapshot:
        snapshot = self.repo.get_snapshot(self.db, snapshot_id)
        if not snapshot:
            raise NotFoundError(f"Personalization snapshot {snapshot_id} not found")
        return snapshot

    def get_active_snapshot(self, cart_item_id: str) -> Optional[PersonalizationSnapshot]:
        return self.repo.get_active_snapshot(self.db, cart_item_id)

    def get_snapshot_by_booking(self, booking_id: str) -> Optional[PersonalizationSnapshot]:
        return self.repo.get_snapshot_by_booking(self.db, booking_id)

    def get_snapshot_by_production_order(self, production_order_id: str) -> Optional[PersonalizationSnapshot]:
        return self.repo.get_snapshot_by_production_order(self.db, production_order_id)

    def get_order_personalization(self, production_order_id: str) -> Optional[dict]:
        """Everything the proofing step needs for a production order"""
        snapshot = self.get_snapshot_by_production_order(production_order_id)
        if not snapshot:
            return None
        return {
            "snapshot_id": snapshot.id,
            "snapshot": snapshot.snapshot_data,
            "config": snapshot.config_snapshot,
            "uploaded_images": snapshot.uploaded_images,
            "preview_renders": snapshot.preview_renders,
            "total_price_impact": float(snapshot.total_price_impact),
            "snapshot_version": snapshot.snapshot_version,
            "created_at": snapshot.created_at.isoformat() if snapshot.created_at else None,
            "finalized_at": snapshot.finalized_at.isoformat() if snapshot.finalized_at else None,
        }

    def _revalidate(
        self, listing_id: str, submissions: list[PersonalizationSubmission]
    ) -> tuple[list[str], list]:
        """Freeze-time check of every submission against the live configs"""
        errors: list[str] = []
        configs = {c.id: c for c in self.repo.get_enabled_configs_for_listing(self.db, listing_id)}
        used_configs = {}

        for submission in submissions:
            config = configs.get(submission.config_id) if submission.config_id else None
            if config is None and submission.config_id:
                config = self.store.config_for_listing(submission.config_id, listing_id)
            result, _ = self.store.evaluate(submission, config, listing_id=listing_id)
            label = config.personalization_type if config else submission.submission_type
            errors += [f"{label}: {error}" for error in result.errors]
            if config is not None:
                used_configs[config.id] = config

        answered = {s.config_id for s in submissions if s.config_id}
        for config in configs.values():
            if config.is_required and config.id not in answered:
                errors.append(f"{config.personalization_type}: A required personalization is missing")

        return errors, list(used_configs.values())

    def create_snapshot(
        self,
        cart_item_id: str,
        customer_id: str,
        listing_id: str,
        provider_id: str,
        stage: Optional[str] = None,
    ) -> str:
        """
        Freeze every submission linked to a cart item.

        All-or-nothing: submissions are re-validated first, then locked with a
        conditional update guarded by the revision that was read. If
        validation fails or any submission was edited or locked concurrently,
        the transaction is rolled back and FreezeIntegrityError is raised. A
        previous active snapshot for the cart item is superseded and kept for
        audit.

        Returns:
            The id of the active snapshot
        """
        stage = stage or DEFAULT_LOCK_STAGE
        if stage not in LOCK_STAGES:
            raise ValueError(f"Unknown lock stage: {stage}")

        try:
            current = self.repo.get_active_snapshot(self.db, cart_item_id)
            if current and current.finalized_at:
                raise FreezeIntegrityError(
                    f"Personalization for cart item {cart_item_id} was already transferred to an order"
                )

            linked = self.repo.get_cart_item_submissions(self.db, cart_item_id, customer_id)
            if not linked:
                raise FreezeIntegrityError(
                    f"No personalization is attached to cart item {cart_item_id}"
                )
            submissions = select_current_submissions(linked)
            # Locked only if untouched since this read
            to_lock = {s.id: s.revision for s in submissions if not s.is_locked}

            if current and not to_lock:
                # Nothing was edited since the last freeze
                return current.id

            errors, configs = self._revalidate(listing_id, submissions)
            if errors:
                raise FreezeIntegrityError("Personalization cannot be finalized", errors)

            snapshot_data = [serialize_submission(s) for s in submissions]
            uploaded_images = [
                {
                    "submission_id": s.id,
                    "url": s.image_data.get("uploaded_url"),
                    "permanent_url": s.image_data.get("permanent_url"),
                    "hash": s.image_data.get("content_hash"),
                }
                for s in submissions
                if s.image_data and s.image_data.get("uploaded_url") and not s.image_data.get("preset_id")
            ]
            preview_renders = [
                {"submission_id": s.id, "render_url": s.preview_render_url}
                for s in submissions
                if s.preview_render_url
            ]
            total = total_price_impact(s.calculated_price_impact for s in submissions)

            now = utcnow()
            locked = self.repo.lock_submissions(self.db, to_lock, stage, now)
            if locked != len(to_lock):
                raise FreezeIntegrityError(
                    "Personalization changed while it was being finalized; please try again"
                )

            version = self.repo.get_latest_snapshot_version(self.db, cart_item_id) + 1
            if current:
                current.status = "superseded"
                current.superseded_at = now
                self.db.flush()

            snapshot = PersonalizationSnapshot(
                cart_item_id=cart_item_id,
                customer_id=customer_id,
                listing_id=listing_id,
                provider_id=provider_id,
                snapshot_data=snapshot_data,
                config_snapshot=[serialize_config(c) for c in configs],
                uploaded_images=uploaded_images,
                preview_renders=preview_renders,
                total_price_impact=total,
                snapshot_version=version,
                status="active",
                lock_stage=stage,
                created_at=now,
            )
            self.db.add(snapshot)
            self.db.commit()
        except FreezeIntegrityError as e:
            self.db.rollback()
            logger.warning(f"❌ Snapshot freeze failed for cart item {cart_item_id}: {e.message} {e.errors}")
            raise
        except Exception:
            self.db.rollback()
            raise

        if current:
            logger.info(
                f"📸 Snapshot {snapshot.id} v{version} supersedes {current.id} for cart item {cart_item_id}"
            )
        else:
            logger.info(
                f"📸 Created snapshot {snapshot.id} for cart item {cart_item_id} "
                f"({len(snapshot_data)} submission(s), total {total}, locked at {stage})"
            )
        return snapshot.id

    def transfer_to_order(
        self, cart_item_id: str, booking_id: str, production_order_id: Optional[str] = None
    ) -> bool:
        """
        Attach the active snapshot of a cart item to its booking / production order.

        Idempotent: repeating the same transfer is a no-op that returns True.
        Returns False when the cart item has no snapshot.
        """
        snapshot = self.repo.get_active_snapshot(self.db, cart_item_id)
        if not snapshot:
            logger.info(f"No personalization snapshot to transfer for cart item {cart_item_id}")
            return False

        if snapshot.finalized_at:
            same_order = snapshot.booking_id == booking_id and (
                production_order_id is None or snapshot.production_order_id == production_order_id
            )
            if same_order:
                return True
            raise FreezeIntegrityError(
                f"Snapshot {snapshot.id} is already attached to booking {snapshot.booking_id}"
            )

        submission_ids = [entry["submission_id"] for entry in snapshot.snapshot_data]
        try:
            snapshot.booking_id = booking_id
            snapshot.production_order_id = production_order_id
            snapshot.finalized_at = utcnow()
            self.repo.assign_order_to_submissions(
                self.db, submission_ids, booking_id, production_order_id
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"📦 Transferred snapshot {snapshot.id} to booking {booking_id}"
            + (f" / production order {production_order_id}" if production_order_id else "")
        )
        return True
