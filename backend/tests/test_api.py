"""Tests for the FastAPI application against a seeded in-memory database."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from micaa.api.app import create_app
from micaa.db.store import PricingStore
from micaa.exceptions import PersistenceError
from micaa.factory import load_seed_data

USER = {"X-User-Id": "7"}
ADMIN = {"X-User-Id": "1", "X-User-Role": "admin"}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Iterator[TestClient]:
    with session_factory() as session:
        load_seed_data(PricingStore(session))
    with TestClient(create_app(session_factory=session_factory)) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Compositions and prices
# ---------------------------------------------------------------------------


class TestCompositionEndpoints:
    def test_get_composition(self, client: TestClient) -> None:
        resp = client.get("/api/activities/2/composition")
        assert resp.status_code == 200
        data = resp.json()
        assert data["activity"]["name"] == "CIMIENTO DE LADRILLO ADOBITO"
        kinds = [c["kind"] for c in data["components"]]
        assert kinds.count("equipment") == 1
        assert kinds.count("material") == 4

    def test_replace_requires_user(self, client: TestClient) -> None:
        resp = client.put("/api/activities/1/composition", json=[])
        assert resp.status_code == 401

    def test_replace_composition(self, client: TestClient) -> None:
        body = [
            {"kind": "labor", "activity_id": 1, "description": "Peón", "unit": "hr",
             "quantity": "2", "unit_cost": "10"},
            {"kind": "equipment", "activity_id": 1, "percentage": "5"},
        ]
        resp = client.put("/api/activities/1/composition", json=body, headers=USER)
        assert resp.status_code == 200
        assert resp.json()["saved"] == 2

        components = client.get("/api/activities/1/composition").json()["components"]
        assert [c["kind"] for c in components] == ["labor", "equipment"]

    def test_component_for_other_activity_is_422(self, client: TestClient) -> None:
        body = [{"kind": "labor", "activity_id": 2, "quantity": "1", "unit_cost": "1"}]
        resp = client.put("/api/activities/1/composition", json=body, headers=USER)
        assert resp.status_code == 422

    def test_unknown_kind_is_422(self, client: TestClient) -> None:
        body = [{"kind": "subcontract", "activity_id": 1, "quantity": "1", "unit_cost": "1"}]
        resp = client.put("/api/activities/1/composition", json=body, headers=USER)
        assert resp.status_code == 422


class TestPriceEndpoints:
    def test_price(self, client: TestClient) -> None:
        resp = client.get("/api/activities/2/price")
        assert resp.status_code == 200
        data = resp.json()
        assert data["breakdown"]["total_unit_price"] == "883.27"
        assert data["summary_dict"]["total_unit_price_formatted"] == "Bs 883.27"
        assert data["summary_dict"]["needs_review"] is False

    def test_price_for_city(self, client: TestClient) -> None:
        resp = client.get("/api/activities/1/price", params={"city": "Santa Cruz"})
        assert resp.status_code == 200
        breakdown = resp.json()["breakdown"]
        assert breakdown["total_unit_price"] == "46.05"
        assert breakdown["city_adjustment"]["applied"] is True

    def test_price_uses_callers_override(self, client: TestClient) -> None:
        client.post(
            "/api/user-material-prices",
            json={"material_name": "Cemento portland IP-30", "unit": "kg", "price": "1.50"},
            headers=USER,
        )
        mine = client.get("/api/activities/2/price", headers=USER).json()
        anonymous = client.get("/api/activities/2/price").json()
        assert mine["breakdown"]["total_unit_price"] == "907.47"
        assert anonymous["breakdown"]["total_unit_price"] == "883.27"

    def test_unknown_activity_is_404(self, client: TestClient) -> None:
        resp = client.get("/api/activities/99/price")
        assert resp.status_code == 404

    def test_recompute(self, client: TestClient) -> None:
        resp = client.post("/api/activities/2/recompute", headers=USER)
        assert resp.status_code == 200
        assert resp.json() == {"activity_id": 2, "unit_price": "883.27"}
        activity = client.get("/api/activities/2/composition").json()["activity"]
        assert activity["unit_price"] == "883.27"

    def test_recompute_all_requires_admin(self, client: TestClient) -> None:
        assert client.post("/api/activities/recompute-all", headers=USER).status_code == 403
        resp = client.post("/api/activities/recompute-all", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json() == {"recomputed": 2}


# ---------------------------------------------------------------------------
# Materials and settings
# ---------------------------------------------------------------------------


class TestMaterialEndpoints:
    def test_search(self, client: TestClient) -> None:
        resp = client.get("/api/materials/search", params={"q": "ladrillo"})
        assert resp.status_code == 200
        assert [m["name"] for m in resp.json()] == ["Ladrillo adobito"]

    def test_override_requires_user(self, client: TestClient) -> None:
        resp = client.post(
            "/api/user-material-prices",
            json={"material_name": "Agua", "unit": "lt", "price": "0.10"},
        )
        assert resp.status_code == 401

    def test_override_must_be_positive(self, client: TestClient) -> None:
        resp = client.post(
            "/api/user-material-prices",
            json={"material_name": "Agua", "unit": "lt", "price": "0"},
            headers=USER,
        )
        assert resp.status_code == 422

    def test_override_rounding_to_zero_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/user-material-prices",
            json={"material_name": "Agua", "unit": "lt", "price": "0.004"},
            headers=USER,
        )
        assert resp.status_code == 422
        assert client.get("/api/activities/2/price", headers=USER).status_code == 200

    def test_override_echoes_stored_price(self, client: TestClient) -> None:
        resp = client.post(
            "/api/user-material-prices",
            json={"material_name": "Agua", "unit": "lt", "price": "0.125"},
            headers=USER,
        )
        assert resp.status_code == 200
        assert resp.json()["price"] == "0.13"


class TestPriceSettingsEndpoints:
    def test_read_settings(self, client: TestClient) -> None:
        resp = client.get("/api/price-settings", headers=USER)
        assert resp.status_code == 200
        assert resp.json()["usd_exchange_rate"] == "6.9600"

    def test_update_requires_admin(self, client: TestClient) -> None:
        resp = client.put("/api/price-settings", json={"usd_exchange_rate": "7"}, headers=USER)
        assert resp.status_code == 403

    def test_update_settings(self, client: TestClient) -> None:
        resp = client.put("/api/price-settings", json={"usd_exchange_rate": "7"}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["updated_by"] == "user:1"

    def test_factor_rounding_to_zero_is_422(self, client: TestClient) -> None:
        resp = client.put(
            "/api/price-settings", json={"inflation_factor": "0.00001"}, headers=ADMIN
        )
        assert resp.status_code == 422
        assert client.get("/api/activities/2/price").status_code == 200

    def test_store_failure_is_503(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(self: PricingStore) -> None:
            raise PersistenceError("database unavailable")

        monkeypatch.setattr(PricingStore, "get_price_settings", broken)
        resp = client.get("/api/price-settings", headers=USER)
        assert resp.status_code == 503


class TestPriceAdjustmentEndpoint:
    def test_requires_admin(self, client: TestClient) -> None:
        resp = client.post("/api/apply-price-adjustment", json={"factor": "1.05"}, headers=USER)
        assert resp.status_code == 403

    def test_requires_identity(self, client: TestClient) -> None:
        resp = client.post("/api/apply-price-adjustment", json={"factor": "1.05"})
        assert resp.status_code == 401

    def test_apply(self, client: TestClient) -> None:
        resp = client.post("/api/apply-price-adjustment", json={"factor": "1.05"}, headers=ADMIN)
        assert resp.status_code == 200
        data = resp.json()
        assert data["affected_materials"] == 8
        assert data["applied_by"] == "user:1"
        cement = client.get("/api/materials/search", params={"q": "cemento"}).json()[0]
        assert cement["price"] == "1.26"

    def test_non_positive_factor_is_422(self, client: TestClient) -> None:
        resp = client.post("/api/apply-price-adjustment", json={"factor": "0"}, headers=ADMIN)
        assert resp.status_code == 422

    def test_factor_rounding_to_zero_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/apply-price-adjustment", json={"factor": "0.00001"}, headers=ADMIN
        )
        assert resp.status_code == 422
        assert client.get("/api/activities/2/price").json()["breakdown"][
            "total_unit_price"
        ] == "883.27"


# ---------------------------------------------------------------------------
# City factors and budgets
# ---------------------------------------------------------------------------


class TestCityFactorEndpoint:
    def test_configured_city(self, client: TestClient) -> None:
        data = client.get("/api/city-factors/Bolivia/Santa Cruz").json()
        assert data["configured"] is True
        assert data["factor"]["materials_factor"] == "1.0500"

    def test_unconfigured_city_reports_identity(self, client: TestClient) -> None:
        data = client.get("/api/city-factors/Peru/Lima").json()
        assert data["configured"] is False
        assert data["factor"]["labor_factor"] == "1.0000"


class TestBudgetEndpoint:
    def test_estimate(self, client: TestClient) -> None:
        resp = client.post(
            "/api/budgets/estimate",
            json={"lines": [
                {"activity_id": 1, "quantity": "10"},
                {"activity_id": 2, "quantity": "2.5"},
            ]},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["budget"]["total"] == "2628.28"
        assert data["summary_dict"]["total_formatted"] == "Bs 2,628.28"

    def test_empty_budget_is_422(self, client: TestClient) -> None:
        resp = client.post("/api/budgets/estimate", json={"lines": []})
        assert resp.status_code == 422
