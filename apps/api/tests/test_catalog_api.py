from __future__ import annotations

import uuid
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app import audit, events
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def current_user() -> dict[str, AuthUser]:
    return {"user": AuthUser(sub="admin-1", roles=["superadmin"])}


@pytest.fixture()
def client(db_session: Session, current_user: dict[str, AuthUser]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return current_user["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _product_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": "Classic Tee",
        "description": "Heavyweight cotton tee",
        "category_id": "apparel",
        "subcategory_ids": ["T-Shirt"],
        "product_type_code": "TSHIRT",
        "base_price": "10.00",
        "design": {"views": [{"key": "front", "mockup_image_url": "https://cdn.example.com/front.png"}]},
        "shipping": {
            "package_length_cm": 30,
            "package_width_cm": 25,
            "package_height_cm": 3,
            "package_weight_grams": 200,
        },
        "gallery_images": [{"id": "g1", "url": "https://cdn.example.com/tee.png", "is_primary": True}],
    }
    body.update(overrides)
    return body


def _create_product(client: TestClient, **overrides: Any) -> dict[str, Any]:
    response = client.post("/api/catalog-products", json=_product_body(**overrides))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    return body["data"]


def test_create_and_read_catalog_product(client: TestClient) -> None:
    created = _create_product(
        client,
        variants=[{"size": "M", "color": "Black"}, {"size": "L", "color": "Black", "base_price": "12.00"}],
    )

    assert [variant["sku"] for variant in created["variants"]] == ["TSHIRT-L-Black", "TSHIRT-M-Black"]
    assert created["available_sizes"] == ["L", "M"]

    fetched = client.get(f"/api/catalog-products/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["variants"][0]["price"] == "12.00"

    listed = client.get("/api/catalog-products", params={"category_id": "apparel"})
    assert [item["id"] for item in listed.json()["data"]] == [created["id"]]


def test_invalid_product_returns_error_envelope(client: TestClient) -> None:
    response = client.post(
        "/api/catalog-products",
        json=_product_body(category_id="furniture"),
        headers={"X-Correlation-Id": "catalog-corr-1"},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "validation_error"
    assert body["error"]["details"][0]["field"] == "category_id"
    assert "trace" not in body["error"]
    assert body["correlation_id"] == "catalog-corr-1"


def test_malformed_body_returns_field_details(client: TestClient) -> None:
    body = _product_body()
    del body["name"]

    response = client.post("/api/catalog-products", json=body)

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["kind"] == "validation_error"
    assert any(item["field"] == "name" for item in error["details"])


def test_merchant_cannot_create_catalog_product(client: TestClient, current_user: dict[str, AuthUser]) -> None:
    current_user["user"] = AuthUser(sub="merchant-1", roles=["merchant"])

    response = client.post("/api/catalog-products", json=_product_body())

    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "unauthorized"


def test_unpublished_product_is_not_found_for_merchants(client: TestClient, current_user: dict[str, AuthUser]) -> None:
    created = _create_product(client, is_published=False)
    current_user["user"] = AuthUser(sub="merchant-1", roles=["merchant"])

    response = client.get(f"/api/catalog-products/{created['id']}")

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_duplicate_variant_returns_conflict(client: TestClient) -> None:
    created = _create_product(client)
    first = client.post(f"/api/catalog-products/{created['id']}/variants", json={"size": "M", "color": "Black"})
    assert first.status_code == 201

    second = client.post(
        f"/api/catalog-products/{created['id']}/variants",
        json={"size": "M", "color": "Black", "sku": "ELSE"},
    )

    assert second.status_code == 409
    assert second.json()["error"]["kind"] == "conflict"
    assert second.json()["error"]["details"]["sku"] == "ELSE"


def test_bulk_variants_report_conflicts(client: TestClient) -> None:
    created = _create_product(client, variants=[{"size": "M", "color": "Black"}])

    response = client.post(
        f"/api/catalog-products/{created['id']}/variants/bulk",
        json={"variants": [{"size": "M", "color": "Black"}, {"size": "S", "color": "Black"}]},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["size"] for item in data["created"]] == ["S"]
    assert data["conflicts"] == [
        {"size": "M", "color": "Black", "sku": "TSHIRT-M-Black", "reason": "duplicate size and color"}
    ]


def test_variant_lifecycle_endpoints(client: TestClient) -> None:
    created = _create_product(client, variants=[{"size": "M", "color": "Black"}])
    variant_id = created["variants"][0]["id"]

    patched = client.patch(f"/api/catalog-variants/{variant_id}", json={"color_hex": "#111111"})
    assert patched.status_code == 200
    assert patched.json()["data"]["color_hex"] == "#111111"

    deactivated = client.post(f"/api/catalog-variants/{variant_id}/deactivate")
    assert deactivated.json()["data"]["is_active"] is False

    deleted = client.delete(f"/api/catalog-variants/{variant_id}")
    assert deleted.json()["data"] == {"id": variant_id}

    missing = client.delete(f"/api/catalog-variants/{variant_id}")
    assert missing.status_code == 404


def test_publish_gst_and_delete(client: TestClient) -> None:
    created = _create_product(client, is_published=False)

    published = client.post(f"/api/catalog-products/{created['id']}/publish")
    assert published.json()["data"]["is_published"] is True

    gst = client.patch(f"/api/catalog-products/{created['id']}/gst", json={"slab": 12, "hsn": "6109"})
    assert gst.json()["data"]["gst_slab"] == 12

    bad_gst = client.patch(f"/api/catalog-products/{created['id']}/gst", json={"slab": 7})
    assert bad_gst.status_code == 422

    deleted = client.delete(f"/api/catalog-products/{created['id']}", params={"force": "true"})
    assert deleted.status_code == 200
    assert deleted.json()["data"]["outcome"] == "deleted"


def test_variant_options_endpoints(client: TestClient) -> None:
    created = client.post(
        "/api/variant-options",
        json={"category_id": "apparel", "option_type": "size", "value": "XL"},
    )
    assert created.status_code == 201
    option_id = created.json()["data"]["id"]

    listed = client.get("/api/variant-options", params={"category_id": "apparel", "option_type": "size"})
    assert [item["value"] for item in listed.json()["data"]] == ["XL"]

    bumped = client.post(f"/api/variant-options/{option_id}/usage", json={"by": 2})
    assert bumped.json()["data"]["usage_count"] == 2

    negative = client.post(f"/api/variant-options/{option_id}/usage", json={"by": -3})
    assert negative.status_code == 409

    unknown = client.post(f"/api/variant-options/{uuid.uuid4()}/usage", json={"by": 1})
    assert unknown.status_code == 404
