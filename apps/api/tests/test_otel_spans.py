from __future__ import annotations

import os
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

import app.models  # noqa: F401
from app.business.catalog.models import CatalogProduct, CatalogProductVariant
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.otel import setup_inmemory_otel


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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


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
        name="OTel Tee",
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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/stores",
        json={"name": "OTel Store", "slug": "otel-store"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_listing_write_emits_sync_and_resolution_spans(
    client: TestClient,
    db_session: Session,
    span_exporter: InMemorySpanExporter,
) -> None:
    product = _catalog_product(db_session)
    assert client.post("/api/stores", json={"name": "OTel Store", "slug": "otel-store"}).status_code == 201

    response = client.post(
        "/api/store-products",
        json={"catalog_product_id": str(product.id), "selling_price": "20.00"},
        headers={"X-Correlation-Id": "otel-sync-1"},
    )
    assert response.status_code == 200
    listing_id = response.json()["data"]["id"]

    spans = span_exporter.get_finished_spans()
    sync_spans = [span for span in spans if span.name == "storefront.sync_variants_summary"]
    resolve_spans = [span for span in spans if span.name == "storefront.resolve_variants"]
    assert any(
        span.attributes.get("listing_id") == listing_id and span.attributes.get("trigger") == "listing_write"
        for span in sync_spans
    )
    assert any(
        span.attributes.get("resolution_mode") == "fallback" and span.attributes.get("variant_count") == 1
        for span in resolve_spans
    )
