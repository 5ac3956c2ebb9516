import pytest
from fastapi.testclient import TestClient

from print_pricing.api import state
from print_pricing.api.main import app


@pytest.fixture
def client(settings):
    state.configure(settings)
    return TestClient(app)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "online"
    assert "X-Correlation-ID" in response.headers


def test_correlation_id_is_echoed(client):
    response = client.get("/", headers={"X-Correlation-ID": "abc123"})
    assert response.headers["X-Correlation-ID"] == "abc123"


def test_derive(client):
    response = client.get("/pricing/print-prices/derive", params={
        "technology_code": "laser_prof", "width_mm": 90, "height_mm": 50,
        "color_mode": "color", "sides_mode": "single",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["items_per_sheet"] == 24
    assert body["derived_tiers"][0]["unit_price"] == 0.5


@pytest.mark.parametrize("params,status", [
    ({"technology_code": "laser_prof", "height_mm": 50}, 400),
    ({"technology_code": "laser_prof", "width_mm": 0, "height_mm": 50}, 400),
    ({"width_mm": 90, "height_mm": 50}, 400),
    ({"technology_code": "letterpress", "width_mm": 90, "height_mm": 50}, 404),
])
def test_derive_errors(client, params, status):
    response = client.get("/pricing/print-prices/derive", params=params)
    assert response.status_code == status
    assert "error" in response.json()


def test_print_price_by_id(client):
    assert client.get("/pricing/print-prices/1").json()["technology_code"] == "laser_prof"
    assert client.get("/pricing/print-prices/999").status_code == 404


def test_multipage_calculate(client):
    response = client.post("/pricing/multipage/calculate", json={
        "pages": 20, "quantity": 100, "printType": "laser_bw", "bindingType": "staple",
        "paperType": "office_premium", "paperDensity": 80,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["totalCost"] == 700.0
    assert body["pricePerItem"] == 7.0
    assert body["sheets"] == 10
    assert body["warnings"] == []


def test_multipage_too_few_pages(client):
    response = client.post("/pricing/multipage/calculate", json={
        "pages": 2, "quantity": 1, "printType": "laser_bw", "bindingType": "staple",
        "paperType": "office_premium",
    })
    assert response.status_code == 400
    assert response.json()["field"] == "pages"


def test_tier_crud(client):
    response = client.post("/pricing/services/1/tiers", json={"min_quantity": 100, "rate": 1.2})
    assert response.status_code == 400

    response = client.post("/pricing/services/1/tiers", json={"min_quantity": 3000, "rate": 0.7})
    assert response.status_code == 201
    tier_id = response.json()["id"]

    thresholds = [t["min_quantity"] for t in client.get("/pricing/services/1/tiers").json()]
    assert thresholds == [100, 500, 1000, 3000]

    assert client.delete(f"/pricing/services/1/tiers/{tier_id}").json()["is_active"] is False
    assert client.get("/pricing/services/404/tiers").status_code == 404


def test_variant_tiers(client):
    assert len(client.get("/pricing/services/1/variants/2/tiers").json()) == 2
    assert client.get("/pricing/services/1/variants/9/tiers").status_code == 404


def test_quote(client):
    response = client.post("/pricing/services/1/quote", json={"quantity": 500})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 522.5
    assert body["tier_id"] == 2
    assert body["trace"]


def test_service_soft_delete(client):
    assert client.delete("/pricing/services/6").status_code == 200
    assert client.get("/pricing/services/6").json()["is_active"] is False
    active = client.get("/pricing/services", params={"include_inactive": False}).json()
    assert 6 not in [s["id"] for s in active]


def test_quantity_discounts(client):
    assert len(client.get("/pricing/quantity-discounts").json()) == 3
    body = client.get("/pricing/quantity-discounts", params={"quantity": 600}).json()
    assert body["discount"]["discount_percent"] == 10


def test_layout(client):
    body = client.get("/pricing/layout", params={
        "width_mm": 90, "height_mm": 50, "sheet_width_mm": 320, "sheet_height_mm": 450,
        "product_type": "business_cards",
    }).json()
    assert body["items_per_sheet"] == 24
    assert body["size_check"]["is_valid"] is True


def test_product_types(client):
    keys = [p["key"] for p in client.get("/pricing/product-types").json()]
    assert keys == ["flyers", "business_cards", "booklets"]
    assert client.get("/pricing/product-types/calendars/schema").status_code == 404


def test_markup_settings(client):
    names = [m["setting_name"] for m in client.get("/pricing/markup-settings").json()]
    assert "operation_price_multiplier" in names


def test_system_status(client):
    body = client.get("/system/status").json()
    assert body["engine_active"] is True
    assert body["stats"]["services"] == 9


def test_missing_body_field_is_a_400(client):
    response = client.post("/pricing/multipage/calculate", json={
        "pages": 20, "quantity": 100, "bindingType": "staple", "paperType": "office_premium",
    })
    assert response.status_code == 400
    body = response.json()
    assert body["field"] == "printType"
    assert body["error"]
    assert "X-Correlation-ID" in response.headers


def test_non_numeric_query_is_a_400(client):
    response = client.get("/pricing/print-prices/derive", params={
        "technology_code": "laser_prof", "width_mm": "wide", "height_mm": 50,
    })
    assert response.status_code == 400
    assert response.json()["field"] == "width_mm"


def test_unexpected_error_hides_details(settings, monkeypatch):
    state.configure(settings)

    def explode(*args, **kwargs):
        raise RuntimeError("secret detail")

    monkeypatch.setattr(state.get_engine(), "derive_print_prices", explode)
    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/pricing/print-prices/derive", params={
        "technology_code": "laser_prof", "width_mm": 90, "height_mm": 50,
    }, headers={"X-Correlation-ID": "trace-500"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal server error"
    assert body["correlation_id"] == "trace-500"
    assert "secret detail" not in response.text


def test_null_update_does_not_reactivate(client):
    client.delete("/pricing/services/6")
    response = client.put("/pricing/services/6", json={"is_active": None})
    assert response.status_code == 200
    assert response.json()["is_active"] is False
