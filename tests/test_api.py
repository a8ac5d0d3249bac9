"""HTTP endpoints."""
from __future__ import annotations

from conftest import CUSTOMER_ID, LISTING_ID, PROVIDER_ID

BASE = "/personalization"


def create_text_config(client, **overrides):
    payload = {
        "personalization_type": "text",
        "is_required": True,
        "text_config": {"max_length": 20},
        "price_impact": {"type": "per_character", "per_character": 0.5},
    }
    payload.update(overrides)
    response = client.post(f"{BASE}/listings/{LISTING_ID}/configs", json=payload)
    assert response.status_code == 201
    return response.json()


def create_text_submission(client, config_id, value, cart_item_id=None):
    response = client.post(
        f"{BASE}/submissions",
        json={
            "customer_id": CUSTOMER_ID,
            "listing_id": LISTING_ID,
            "cart_item_id": cart_item_id,
            "submission": {"submission_type": "text", "config_id": config_id, "text_value": value},
        },
    )
    assert response.status_code == 201
    return response.json()


def freeze(client, cart_item_id="cart-1"):
    return client.post(
        f"{BASE}/cart-items/{cart_item_id}/snapshot",
        json={"customer_id": CUSTOMER_ID, "listing_id": LISTING_ID, "provider_id": PROVIDER_ID},
    )


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_listing_configs(client) -> None:
    config = create_text_config(client)

    response = client.get(f"{BASE}/listings/{LISTING_ID}/configs")

    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [config["id"]]
    assert client.get(f"{BASE}/listings/{LISTING_ID}/enabled").json()["enabled"] is True
    assert client.get(f"{BASE}/listings/unknown/configs").json() == []


def test_unknown_config_is_404(client) -> None:
    response = client.get(f"{BASE}/configs/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Personalization config missing not found"


def test_submission_carries_validation(client) -> None:
    config = create_text_config(client)

    body = create_text_submission(client, config["id"], "")

    assert body["validation_status"] == "invalid"
    assert body["validation_errors"] == ["This field is required"]
    assert client.get(f"{BASE}/submissions/{body['id']}").json()["id"] == body["id"]


def test_submission_rejects_facets_of_other_types(client) -> None:
    response = client.post(
        f"{BASE}/submissions",
        json={
            "customer_id": CUSTOMER_ID,
            "listing_id": LISTING_ID,
            "submission": {"submission_type": "text", "font_data": {"font_id": "f1"}},
        },
    )
    assert response.status_code == 422


def test_validate_without_saving(client) -> None:
    config = create_text_config(client)

    response = client.post(
        f"{BASE}/validate",
        json={"submission": {"submission_type": "text", "config_id": config["id"], "text_value": "Happy Birthday!!"}},
    )

    assert response.status_code == 200
    assert response.json() == {"valid": True, "errors": [], "status": "valid"}


def test_price_preview(client) -> None:
    config = create_text_config(client)

    response = client.post(
        f"{BASE}/configs/{config['id']}/price-preview", json={"text_value": "0123456789"}
    )

    assert response.json() == {"config_id": config["id"], "price_impact": 5.0}


def test_full_order_flow(client) -> None:
    config = create_text_config(client)
    submission = create_text_submission(client, config["id"], "Hello")

    linked = client.post(
        f"{BASE}/cart-items/cart-1/submissions", json={"submission_ids": [submission["id"]]}
    )
    assert linked.status_code == 200
    assert linked.json()[0]["cart_item_id"] == "cart-1"

    response = freeze(client)
    assert response.status_code == 200
    snapshot_id = response.json()["snapshot_id"]

    locked = client.patch(f"{BASE}/submissions/{submission['id']}", json={"text_value": "x"})
    assert locked.status_code == 409
    assert "locked" in locked.json()["detail"]
    assert client.get(f"{BASE}/submissions/{submission['id']}").json()["text_value"] == "Hello"

    transfer = {"booking_id": "booking-1", "production_order_id": "po-1"}
    assert client.post(f"{BASE}/cart-items/cart-1/transfer", json=transfer).json() == {"success": True}
    assert client.post(f"{BASE}/cart-items/cart-1/transfer", json=transfer).json() == {"success": True}

    snapshot = client.get(f"{BASE}/bookings/booking-1/snapshot").json()
    assert snapshot["id"] == snapshot_id
    assert snapshot["total_price_impact"] == 2.5
    assert client.get(f"{BASE}/production-orders/po-1").json()["snapshot_id"] == snapshot_id

    saved = client.post(
        f"{BASE}/setups",
        json={"customer_id": CUSTOMER_ID, "listing_id": LISTING_ID, "name": "Hello", "source_booking_id": "booking-1"},
    )
    assert saved.status_code == 201
    setup_id = saved.json()["setup_id"]

    applied = client.post(
        f"{BASE}/setups/{setup_id}/apply",
        json={"cart_item_id": "cart-2", "customer_id": CUSTOMER_ID, "listing_id": LISTING_ID},
    )
    assert applied.status_code == 200
    assert applied.json()[0]["text_value"] == "Hello"
    assert applied.json()[0]["id"] != submission["id"]

    setups = client.get(f"{BASE}/setups", params={"customer_id": CUSTOMER_ID}).json()
    assert setups[0]["use_count"] == 1


def test_invalid_freeze_is_422_with_errors(client) -> None:
    config = create_text_config(client)
    create_text_submission(client, config["id"], "", cart_item_id="cart-1")

    response = freeze(client)

    assert response.status_code == 422
    assert response.json()["errors"] == ["text: This field is required"]


def test_transfer_without_snapshot(client) -> None:
    response = client.post(f"{BASE}/cart-items/cart-9/transfer", json={"booking_id": "booking-1"})
    assert response.json() == {"success": False}


def test_delete_referenced_config_is_400(client) -> None:
    config = create_text_config(client)
    create_text_submission(client, config["id"], "Hello")

    response = client.delete(f"{BASE}/configs/{config['id']}")

    assert response.status_code == 400


def test_setup_without_source_is_400(client) -> None:
    response = client.post(f"{BASE}/setups", json={"customer_id": CUSTOMER_ID, "name": "Nothing"})
    assert response.status_code == 400


def test_templates_and_zone_validation(client) -> None:
    response = client.post(
        f"{BASE}/listings/{LISTING_ID}/templates",
        json={
            "provider_id": PROVIDER_ID,
            "name": "Front",
            "placement_zones": [{"id": "chest", "type": "text", "x": 100, "y": 120}],
        },
    )
    assert response.status_code == 201
    template = response.json()
    assert template["canvas_config"]["width"] == 1000

    listed = client.get(f"{BASE}/listings/{LISTING_ID}/templates").json()
    assert [t["id"] for t in listed] == [template["id"]]

    config = client.post(
        f"{BASE}/listings/{LISTING_ID}/configs",
        json={"personalization_type": "placement_selection", "is_required": True},
    ).json()

    def validate(zone_id):
        return client.post(
            f"{BASE}/validate",
            json={
                "submission": {
                    "submission_type": "placement_selection",
                    "config_id": config["id"],
                    "placement_data": {"zone_id": zone_id},
                }
            },
        ).json()

    assert validate("chest")["valid"] is True
    assert validate("sleeve")["errors"] == ["Selected placement zone is not available for this item"]

    response = client.patch(
        f"{BASE}/templates/{template['id']}",
        json={"placement_zones": [{"id": "chest"}, {"id": "sleeve"}]},
    )
    assert response.status_code == 200
    assert validate("sleeve")["valid"] is True

    assert client.patch(f"{BASE}/templates/missing", json={"name": "x"}).status_code == 404


def test_update_palette(client) -> None:
    palette = client.post(
        f"{BASE}/providers/{PROVIDER_ID}/palettes",
        json={"name": "Brand", "colors": [{"hex": "#123456"}]},
    ).json()

    response = client.patch(f"{BASE}/palettes/{palette['id']}", json={"name": "Renamed"})

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["colors"][0]["hex"] == "#123456"
