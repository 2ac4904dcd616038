"""
Tests for the land matching HTTP API

Tests cover:
- Health endpoint
- Conditions get / replace / edit, including 422 on inconsistent input
- Document ingestion per source
- Property CRUD
- Single match and batch run
- Alert follow-up and 404s
"""

from typing import Optional, get_type_hints

import pytest
from fastapi.testclient import TestClient

from core.land import LandRepository
from utils.config import Config
from web.app import create_app
from web.land_routes import get_repository


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def repo():
    return LandRepository()


@pytest.fixture
def client(repo):
    app = create_app(Config(allowed_origins=[]))
    app.dependency_overrides[get_repository] = lambda: repo
    return TestClient(app)


@pytest.fixture
def property_payload():
    def _payload(property_id: str = "prop-1", **overrides):
        data = {
            "id": property_id,
            "name": "豊中市xx町 土地",
            "address": "大阪府豊中市xx町1-2-3",
            "area": "豊中市xx",
            "landArea": 52,
            "price": 2300,
            "stationDistance": 10,
            "listedAt": "2026-04-01T09:00:00Z",
        }
        data.update(overrides)
        return data
    return _payload


@pytest.fixture
def scored_client(client, property_payload):
    """Client with cust-1 conditions and two listings."""
    client.put("/api/land/customers/cust-1/conditions", json={
        "desiredAreas": ["豊中市"],
        "maxPrice": 2500,
        "preferredLandArea": 50,
        "stationDistance": 15,
        "priorities": {"area": 5, "price": 5, "size": 5, "access": 5, "environment": 5},
    })
    client.post("/api/land/properties", json=[
        property_payload("prop-good"),
        property_payload("prop-far", area="箕面市", address="大阪府箕面市", price=4000),
    ])
    return client


# =============================================================================
# Test: Health
# =============================================================================


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_app_defaults_to_environment_config(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "")

    app = create_app()

    assert get_type_hints(create_app)["config"] == Optional[Config]
    assert TestClient(app).get("/health").status_code == 200


# =============================================================================
# Test: Conditions
# =============================================================================


class TestConditionsEndpoints:

    def test_get_creates_defaults(self, client):
        response = client.get("/api/land/customers/cust-1/conditions")

        assert response.status_code == 200
        data = response.json()
        assert data["customerId"] == "cust-1"
        assert data["desiredAreas"] == []
        assert data["priorities"]["environment"] == 3
        assert data["lastUpdatedFrom"] == "manual"

    def test_put_replaces_record(self, client):
        original = client.get("/api/land/customers/cust-1/conditions").json()

        response = client.put("/api/land/customers/cust-1/conditions", json={
            "desiredAreas": ["吹田市"],
            "maxPrice": 3000,
            "cornerLot": True,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == original["id"]
        assert data["createdAt"] == original["createdAt"]
        assert data["desiredAreas"] == ["吹田市"]
        assert data["cornerLot"] is True
        assert data["maxLandArea"] is None

    def test_put_inconsistent_range_is_422(self, client):
        response = client.put("/api/land/customers/cust-1/conditions", json={
            "minLandArea": 60,
            "maxLandArea": 40,
        })

        assert response.status_code == 422
        assert "min_land_area must not exceed max_land_area" in response.json()["detail"]

    def test_put_bad_priority_is_422(self, client):
        response = client.put("/api/land/customers/cust-1/conditions", json={
            "priorities": {"area": 9},
        })

        assert response.status_code == 422

    def test_patch_edits_single_field(self, client):
        client.put("/api/land/customers/cust-1/conditions", json={"maxPrice": 3000})

        response = client.patch("/api/land/customers/cust-1/conditions", json={"stationDistance": 12})

        assert response.status_code == 200
        data = response.json()
        assert data["maxPrice"] == 3000
        assert data["stationDistance"] == 12

    def test_patch_unknown_field_is_422(self, client):
        response = client.patch("/api/land/customers/cust-1/conditions", json={"colour": "blue"})

        assert response.status_code == 422


class TestDocumentEndpoints:

    def test_reception_document(self, client):
        client.patch("/api/land/customers/cust-1/conditions", json={"notes": "初回"})
        # Let an automated source own the record first
        client.post("/api/land/customers/cust-1/documents/negotiation", json={"content": "角地"})

        response = client.post(
            "/api/land/customers/cust-1/documents/reception",
            json={"address": "大阪府豊中市xx町", "notes": "予算：3000万"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["desiredAreas"] == ["豊中"]
        assert data["maxPrice"] == 3000
        assert data["cornerLot"] is True
        assert data["lastUpdatedFrom"] == "reception"

    def test_first_document_fills_new_customer(self, client):
        response = client.post(
            "/api/land/customers/cust-new/documents/hearing_sheet",
            json={"desiredArea": "豊中市", "budget": 50_000_000},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["desiredAreas"] == ["豊中市"]
        assert data["maxPrice"] == 2000
        assert data["lastUpdatedFrom"] == "hearing_sheet"

    def test_manual_source_rejected(self, client):
        response = client.post("/api/land/customers/cust-1/documents/manual", json={})

        assert response.status_code == 422

    def test_unknown_source_rejected(self, client):
        response = client.post("/api/land/customers/cust-1/documents/email", json={})

        assert response.status_code == 422


# =============================================================================
# Test: Properties
# =============================================================================


class TestPropertyEndpoints:

    def test_add_and_get(self, client, property_payload):
        response = client.post("/api/land/properties", json=[property_payload("p-1"), property_payload("p-1")])

        assert response.status_code == 201
        assert response.json() == {"added": ["p-1"], "skipped": 1}

        land = client.get("/api/land/properties/p-1").json()
        assert land["landArea"] == 52
        assert land["pricePerTsubo"] == 44.2

    def test_add_invalid_is_422(self, client):
        response = client.post("/api/land/properties", json=[{"id": "p-1", "name": "x"}])

        assert response.status_code == 422

    def test_list_by_status(self, client, property_payload):
        client.post("/api/land/properties", json=[
            property_payload("p-1"),
            property_payload("p-2", status="sold"),
        ])

        response = client.get("/api/land/properties", params={"status": "sold"})

        assert [p["id"] for p in response.json()] == ["p-2"]

    def test_patch_property(self, client, property_payload):
        client.post("/api/land/properties", json=[property_payload("p-1")])

        response = client.patch("/api/land/properties/p-1", json={"status": "negotiating", "id": "ignored"})

        assert response.status_code == 200
        assert response.json()["status"] == "negotiating"
        assert response.json()["id"] == "p-1"

    def test_missing_property_is_404(self, client):
        assert client.get("/api/land/properties/nope").status_code == 404
        assert client.patch("/api/land/properties/nope", json={"price": 1}).status_code == 404
        assert client.delete("/api/land/properties/nope").status_code == 404

    def test_delete_property(self, client, property_payload):
        client.post("/api/land/properties", json=[property_payload("p-1")])

        assert client.delete("/api/land/properties/p-1").status_code == 204
        assert client.get("/api/land/properties/p-1").status_code == 404


# =============================================================================
# Test: Matching and Alerts
# =============================================================================


class TestMatchingEndpoints:

    def test_single_match(self, scored_client):
        response = scored_client.get("/api/land/customers/cust-1/properties/prop-good/match")

        assert response.status_code == 200
        data = response.json()
        assert data["matchScore"] == 97
        assert data["alertLevel"] == "high"
        assert [d["category"] for d in data["matchDetails"]] == ["area", "price", "size", "access"]

    def test_single_match_missing_conditions(self, client, property_payload):
        client.post("/api/land/properties", json=[property_payload("p-1")])

        response = client.get("/api/land/customers/nobody/properties/p-1/match")

        assert response.status_code == 404

    def test_run_matching(self, scored_client):
        response = scored_client.post("/api/land/match/run", json={"customerNames": {"cust-1": "山田 太郎"}})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["results"][0]["propertyId"] == "prop-good"
        assert data["lastMatchedAt"] is not None

        matches = scored_client.get("/api/land/customers/cust-1/matches").json()
        assert [m["propertyId"] for m in matches] == ["prop-good"]
        assert scored_client.get("/api/land/properties/prop-far/matches").json() == []

    def test_run_matching_without_body(self, scored_client):
        assert scored_client.post("/api/land/match/run").status_code == 200

    def test_alert_workflow(self, scored_client):
        scored_client.post("/api/land/match/run", json={"customerNames": {"cust-1": "山田 太郎"}})

        alerts = scored_client.get("/api/land/alerts", params={"status": "new"}).json()
        assert len(alerts) == 1
        assert alerts[0]["customerName"] == "山田 太郎"
        alert_id = alerts[0]["id"]

        notified = scored_client.post(f"/api/land/alerts/{alert_id}/notify").json()
        assert notified["status"] == "notified"

        contacted = scored_client.post(
            f"/api/land/alerts/{alert_id}/contact",
            json={"contactedBy": "staff-1", "notes": "電話済み"},
        ).json()
        assert contacted["status"] == "contacted"
        assert contacted["matchResult"]["assignedTo"] == "staff-1"

        by_customer = scored_client.get("/api/land/alerts", params={"customerId": "cust-1"}).json()
        assert [a["id"] for a in by_customer] == [alert_id]

        assert scored_client.post(f"/api/land/alerts/{alert_id}/dismiss").json()["status"] == "dismissed"
        assert scored_client.delete("/api/land/alerts").status_code == 204
        assert scored_client.get("/api/land/alerts").json() == []

    def test_alert_shows_property_after_delisting(self, scored_client):
        scored_client.post("/api/land/match/run")
        scored_client.delete("/api/land/properties/prop-good")

        alert = scored_client.get("/api/land/alerts").json()[0]

        assert alert["propertyId"] == "prop-good"
        assert alert["property"]["name"] == "豊中市xx町 土地"
        assert alert["conditions"]["maxPrice"] == 2500

    def test_contact_requires_staff(self, scored_client):
        scored_client.post("/api/land/match/run")
        alert_id = scored_client.get("/api/land/alerts").json()[0]["id"]

        response = scored_client.post(f"/api/land/alerts/{alert_id}/contact", json={})

        assert response.status_code == 422

    def test_unknown_alert_is_404(self, client):
        assert client.post("/api/land/alerts/nope/notify").status_code == 404
        assert client.post("/api/land/alerts/nope/dismiss").status_code == 404
        response = client.post("/api/land/alerts/nope/contact", json={"contactedBy": "staff-1"})
        assert response.status_code == 404
