"""Submission drafts, edits, cart links and the lock."""
from __future__ import annotations

from decimal import Decimal

import pytest

from app.domain.personalization.exceptions import (
    LockedSubmissionError,
    NotFoundError,
    RevisionConflictError,
)
from app.domain.personalization.repository import PersonalizationRepository
from app.domain.personalization.schemas import (
    CombinedSubmission,
    FontSelectionSubmission,
    PlacementSelectionSubmission,
    SubmissionPatch,
    TemplateCreate,
    TemplateSelectionSubmission,
    TemplateUpdate,
    TextSubmission,
)
from app.models import utcnow

from conftest import CUSTOMER_ID, LISTING_ID, PROVIDER_ID


def text_submission(config_id, value):
    return TextSubmission(submission_type="text", config_id=config_id, text_value=value)


def lock(db, submission):
    PersonalizationRepository.lock_submissions(
        db, {submission.id: submission.revision}, "checkout", utcnow()
    )
    db.commit()


@pytest.fixture
def name_config(make_config):
    return make_config(
        is_required=True,
        text_config={"max_length": 20},
        price_impact={"type": "per_character", "per_character": 0.5},
    )


def test_create_validates_and_prices(store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "0123456789"))

    assert submission.validation_status == "valid"
    assert submission.validation_errors == []
    assert submission.calculated_price_impact == Decimal("5.00")
    assert submission.is_locked is False
    assert submission.revision == 1


def test_invalid_draft_is_saved_with_errors(store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, ""))

    assert submission.id
    assert submission.validation_status == "invalid"
    assert submission.validation_errors == ["This field is required"]


def test_create_with_unknown_config(store) -> None:
    with pytest.raises(NotFoundError):
        store.create(CUSTOMER_ID, LISTING_ID, text_submission("missing", "x"))


def test_update_revalidates_and_bumps_revision(store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, ""))

    updated = store.update(submission.id, SubmissionPatch(text_value="Hello"))

    assert updated.text_value == "Hello"
    assert updated.validation_status == "valid"
    assert updated.calculated_price_impact == Decimal("2.50")
    assert updated.revision == 2


def test_update_locked_submission_is_refused(db, store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "Original"))
    lock(db, submission)

    with pytest.raises(LockedSubmissionError):
        store.update(submission.id, SubmissionPatch(text_value="x"))

    db.expire_all()
    stored = store.get(submission.id)
    assert stored.text_value == "Original"
    assert stored.revision == 1


def test_stale_revision_is_refused(store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))
    store.update(submission.id, SubmissionPatch(text_value="Two", expected_revision=1))

    with pytest.raises(RevisionConflictError):
        store.update(submission.id, SubmissionPatch(text_value="Three", expected_revision=1))

    assert store.get(submission.id).text_value == "Two"


def test_update_with_facet_of_another_type(store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))

    with pytest.raises(ValueError):
        store.update(submission.id, SubmissionPatch(font_data={"font_id": "f1"}))


def test_update_after_config_disabled(store, registry, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))
    registry.disable_config(name_config.id)

    updated = store.update(submission.id, SubmissionPatch(text_value="Two"))

    assert updated.validation_errors == ["This personalization option is no longer available"]
    assert updated.calculated_price_impact == Decimal("0.00")


def test_combined_submission(store, make_config) -> None:
    config = make_config(
        personalization_type="combined",
        text_config={"enabled": True, "max_length": 10},
        font_config={"enabled": True},
    )

    submission = store.create(
        CUSTOMER_ID,
        LISTING_ID,
        CombinedSubmission(
            submission_type="combined",
            config_id=config.id,
            text_value="Hi",
            font_data={"font_id": "f1", "font_size": 24},
        ),
    )

    assert submission.validation_status == "valid"
    assert submission.font_data == {"font_id": "f1", "font_size": 24.0}


def test_link_to_cart_item(store, name_config) -> None:
    first = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))
    second = store.create(
        CUSTOMER_ID,
        LISTING_ID,
        FontSelectionSubmission(submission_type="font_selection", font_data={"font_id": "f1"}),
    )

    linked = store.link_to_cart_item([first.id, second.id], "cart-1")

    assert [s.id for s in linked] == [first.id, second.id]
    assert all(s.cart_item_id == "cart-1" for s in linked)
    # Linking again to the same cart item is harmless
    assert len(store.link_to_cart_item([first.id], "cart-1")) == 2


def test_cart_item_is_never_reassigned(store, name_config) -> None:
    submission = store.create(
        CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"), cart_item_id="cart-1"
    )

    with pytest.raises(ValueError):
        store.link_to_cart_item([submission.id], "cart-2")
    assert store.get(submission.id).cart_item_id == "cart-1"


def test_link_locked_submission(db, store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))
    lock(db, submission)

    with pytest.raises(LockedSubmissionError):
        store.link_to_cart_item([submission.id], "cart-1")


def test_link_missing_submission(store) -> None:
    with pytest.raises(NotFoundError):
        store.link_to_cart_item(["missing"], "cart-1")


def test_lock_for_order(db, store, name_config) -> None:
    submission = store.create(CUSTOMER_ID, LISTING_ID, text_submission(name_config.id, "One"))
    submission.production_order_id = "po-1"
    db.commit()

    assert store.lock_for_order("po-1") == 1
    assert store.lock_for_order("po-1") == 0

    db.expire_all()
    locked = store.get(submission.id)
    assert locked.is_locked is True
    assert locked.locked_reason == "order_received"
    assert locked.locked_at is not None

    with pytest.raises(ValueError):
        store.lock_for_order("po-1", stage="shipped")


def test_config_of_another_listing_is_refused(store, make_config) -> None:
    foreign = make_config(
        listing_id="other-listing",
        price_impact={"type": "fixed", "fixed_amount": 9.00},
    )

    with pytest.raises(NotFoundError):
        store.create(CUSTOMER_ID, LISTING_ID, text_submission(foreign.id, "Hello"))

    result, price = store.evaluate(text_submission(foreign.id, "Hello"), foreign, listing_id=LISTING_ID)
    assert result.errors == ["This personalization option is no longer available"]
    assert price == Decimal("0.00")


def test_update_can_clear_a_facet(store, make_config) -> None:
    config = make_config(
        personalization_type="combined",
        text_config={"enabled": True, "max_length": 10},
    )
    submission = store.create(
        CUSTOMER_ID,
        LISTING_ID,
        CombinedSubmission(
            submission_type="combined",
            config_id=config.id,
            text_value="Hi",
            font_data={"font_id": "f1"},
        ),
    )
    assert submission.font_data == {"font_id": "f1"}

    updated = store.update(submission.id, SubmissionPatch(font_data=None, text_value=None))

    assert updated.font_data is None
    assert updated.text_value is None
    assert updated.validation_status == "valid"


@pytest.fixture
def templates(registry):
    front = registry.create_template(
        LISTING_ID,
        TemplateCreate(
            provider_id=PROVIDER_ID,
            name="Front",
            placement_zones=[{"id": "front-center"}, {"id": "front-left"}],
            sort_order=1,
        ),
    )
    back = registry.create_template(
        LISTING_ID,
        TemplateCreate(
            provider_id=PROVIDER_ID,
            name="Back",
            placement_zones=[{"id": "back-center"}],
            sort_order=2,
        ),
    )
    return front, back


def test_placement_zone_must_exist_on_listing(store, make_config, templates) -> None:
    config = make_config(personalization_type="placement_selection", is_required=True)

    def place(zone_id):
        return store.create(
            CUSTOMER_ID,
            LISTING_ID,
            PlacementSelectionSubmission(
                submission_type="placement_selection",
                config_id=config.id,
                placement_data={"zone_id": zone_id, "x": 10, "y": 20},
            ),
        )

    assert place("front-center").validation_status == "valid"
    assert place("back-center").validation_status == "valid"
    assert place("nowhere").validation_errors == [
        "Selected placement zone is not available for this item"
    ]


def test_template_must_be_active_on_listing(store, registry, make_config, templates) -> None:
    front, back = templates
    config = make_config(personalization_type="template_selection", is_required=True)

    def choose(template_id):
        return store.create(
            CUSTOMER_ID,
            LISTING_ID,
            TemplateSelectionSubmission(
                submission_type="template_selection",
                config_id=config.id,
                template_data={"template_id": template_id},
            ),
        )

    assert choose(back.id).validation_status == "valid"
    assert choose("missing").validation_errors == [
        "Selected template is not available for this item"
    ]

    registry.update_template(back.id, TemplateUpdate(is_active=False))
    assert choose(back.id).validation_errors == [
        "Selected template is not available for this item"
    ]


def test_zone_must_belong_to_chosen_template(store, make_config, templates) -> None:
    front, _ = templates
    config = make_config(personalization_type="combined")

    submission = store.create(
        CUSTOMER_ID,
        LISTING_ID,
        CombinedSubmission(
            submission_type="combined",
            config_id=config.id,
            template_data={"template_id": front.id},
            placement_data={"zone_id": "back-center"},
        ),
    )

    assert submission.validation_errors == [
        "Selected placement zone is not available for this item"
    ]
