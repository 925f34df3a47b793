from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.context import reset_correlation_id, set_correlation_id
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.logging import JsonLogFormatter
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
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="merchant-1", roles=["merchant"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _catalog_product(db_session: Session) -> CatalogProduct:
    product = CatalogProduct(
        name="Classic Tee",
        description="Cotton tee",
        category_id="apparel",
        product_type_code="TSHIRT",
        base_price=Decimal("10.00"),
        is_published=True,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add(CatalogProductVariant(catalog_product_id=product.id, size="M", color="Black", sku_template="TSHIRT-M-Black"))
    db_session.commit()
    return product


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    listing_id = uuid.uuid4()
    path = f"/api/store-products/{listing_id}"
    response = client.get(path, headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/store-products/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_listing_write_logs_carry_listing_context(
    client: TestClient,
    db_session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG)
    product = _catalog_product(db_session)
    assert client.post("/api/stores", json={"name": "Log Store", "slug": "log-store"}).status_code == 201

    response = client.post(
        "/api/store-products",
        json={"catalog_product_id": str(product.id), "selling_price": "20.00"},
        headers={"X-Correlation-Id": "log-corr-1"},
    )
    assert response.status_code == 200
    listing_id = response.json()["data"]["id"]

    created = [record for record in caplog.records if record.getMessage() == "storefront.listing.created"]
    assert created
    assert getattr(created[-1], "listing_id", None) == listing_id
    assert getattr(created[-1], "correlation_id", None) == "log-corr-1"
    assert getattr(created[-1], "variant_count", None) == 1

    synced = [record for record in caplog.records if record.name == "app.storefront.projection"]
    assert any(
        getattr(record, "listing_id", None) == listing_id and getattr(record, "mode", None) == "fallback"
        for record in synced
    )


def test_json_formatter_keeps_known_fields_and_correlation() -> None:
    token = set_correlation_id("fmt-corr-1")
    try:
        record = logging.getLogger("app.catalog").makeRecord(
            "app.catalog",
            logging.INFO,
            __file__,
            1,
            "catalog.product.created",
            (),
            None,
            extra={"catalog_product_id": "p-1", "variant_count": 2},
        )
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        reset_correlation_id(token)

    assert payload["msg"] == "catalog.product.created"
    assert payload["logger"] == "app.catalog"
    assert payload["correlation_id"] == "fmt-corr-1"
    assert payload["fields"]["catalog_product_id"] == "p-1"
    assert payload["fields"]["variant_count"] == 2
