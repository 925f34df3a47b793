from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

variant_resolutions_total = Counter(
    "variant_resolutions_total",
    "Variant resolutions by mode",
    ["mode"],
)

variant_resolution_duration_seconds = Histogram(
    "variant_resolution_duration_seconds",
    "Variant resolution duration in seconds",
)

dangling_references_total = Counter(
    "dangling_references_total",
    "Listings resolved against a missing catalog product",
)

projection_syncs_total = Counter(
    "projection_syncs_total",
    "Variant summary projection rebuilds by trigger",
    ["trigger"],
)

projection_lazy_repairs_total = Counter(
    "projection_lazy_repairs_total",
    "Empty variant summaries repaired on a storefront read",
)

bulk_variant_conflicts_total = Counter(
    "bulk_variant_conflicts_total",
    "Catalog variants skipped during bulk insert because of a unique key collision",
)

migration_entities_total = Counter(
    "migration_entities_total",
    "Legacy migration entities by step and outcome",
    ["step", "outcome"],
)

rls_denied_writes_count = Counter(
    "rls_denied_writes_count",
    "Total denied writes by store ownership scope",
    ["resource"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_variant_resolution(mode: str, duration: float) -> None:
    variant_resolutions_total.labels(mode=mode).inc()
    variant_resolution_duration_seconds.observe(duration)


def observe_dangling_reference() -> None:
    dangling_references_total.inc()


def observe_projection_sync(trigger: str) -> None:
    projection_syncs_total.labels(trigger=trigger).inc()


def observe_lazy_repair() -> None:
    projection_lazy_repairs_total.inc()


def observe_bulk_variant_conflicts(count: int) -> None:
    if count > 0:
        bulk_variant_conflicts_total.inc(count)


def observe_migration_entity(step: str, outcome: str, count: int = 1) -> None:
    if count > 0:
        migration_entities_total.labels(step=step, outcome=outcome).inc(count)


def observe_rls_denied_write(resource: str) -> None:
    rls_denied_writes_count.labels(resource=resource).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
