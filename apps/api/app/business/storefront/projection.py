from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.storefront.models import StoreProduct
from app.business.storefront.resolution import VariantResolution, resolve_variants
from app.metrics import observe_projection_sync
from app.platform.errors import NotFound

logger = logging.getLogger("app.storefront.projection")
tracer = trace.get_tracer("app.storefront.projection")


class ListingLockRegistry:
    """Re-entrant lock per listing id, dropped once no thread holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, list] = {}

    @contextmanager
    def hold(self, listing_id: uuid.UUID | str) -> Iterator[None]:
        key = str(listing_id)
        with self._guard:
            entry = self._entries.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        lock: threading.RLock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)

    def active_keys(self) -> list[str]:
        with self._guard:
            return list(self._entries)


lock_registry = ListingLockRegistry()


def listing_lock(listing_id: uuid.UUID | str):
    return lock_registry.hold(listing_id)


@contextmanager
def listing_locks(listing_ids: Iterable[uuid.UUID]) -> Iterator[None]:
    # fixed acquisition order keeps two multi-listing writers from deadlocking
    with ExitStack() as stack:
        for key in sorted({str(item) for item in listing_ids}):
            stack.enter_context(lock_registry.hold(key))
        yield


def listing_ids_for_catalog_product(session: Session, catalog_product_id: uuid.UUID) -> list[uuid.UUID]:
    return list(
        session.scalars(
            select(StoreProduct.id)
            .where(StoreProduct.catalog_product_id == catalog_product_id)
            .order_by(StoreProduct.id)
        ).all()
    )


def locked_listing(session: Session, listing_id: uuid.UUID) -> StoreProduct | None:
    """Load a listing under a row lock, refreshing any stale copy in the identity map."""

    session.flush()
    return session.scalar(
        select(StoreProduct)
        .where(StoreProduct.id == listing_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def sync_variants_summary(session: Session, listing_id: uuid.UUID, *, trigger: str = "listing_write") -> VariantResolution:
    """Rebuild ``variants_summary`` of one listing from the source tables.

    Runs inside the caller's transaction; the caller commits.
    """

    with lock_registry.hold(listing_id), tracer.start_as_current_span("storefront.sync_variants_summary") as span:
        span.set_attribute("listing_id", str(listing_id))
        span.set_attribute("trigger", trigger)

        listing = locked_listing(session, listing_id)
        if listing is None:
            raise NotFound("listing", listing_id)

        resolution = resolve_variants(session, listing)
        listing.variants_summary = resolution.summary()
        session.flush()

    observe_projection_sync(trigger)
    logger.debug(
        "projection.synced",
        extra={
            "listing_id": str(listing_id),
            "mode": resolution.mode,
            "variant_count": len(resolution.variants),
        },
    )
    return resolution


def resync_listings(session: Session, listing_ids: Iterable[uuid.UUID], *, trigger: str) -> int:
    count = 0
    for listing_id in listing_ids:
        sync_variants_summary(session, listing_id, trigger=trigger)
        count += 1
    return count


def resync_catalog_product(session: Session, catalog_product_id: uuid.UUID, *, trigger: str = "catalog_write") -> int:
    listing_ids = listing_ids_for_catalog_product(session, catalog_product_id)
    with listing_locks(listing_ids):
        return resync_listings(session, listing_ids, trigger=trigger)
