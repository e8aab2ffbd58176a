from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import time

# Metrics definitions
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

REDIRECT_TOTAL = Counter("redirect_total", "Total redirects")
REDIRECT_404_TOTAL = Counter("redirect_404_total", "Total failed redirects (404)")
VISITS_RECORDED_TOTAL = Counter("visits_recorded_total", "Visits counted by the background recorder")
VISITS_DROPPED_TOTAL = Counter("visits_dropped_total", "Visits rejected because the queue was full or closed")
VISIT_QUEUE_DEPTH = Gauge("visit_queue_depth", "Visits waiting for a recorder worker")
GEO_LOOKUP_FAILURES_TOTAL = Counter("geo_lookup_failures_total", "Failed or timed out geolocation lookups")
GEO_CACHE_HITS = Counter("geo_cache_hits_total", "Geolocation cache hits")
GEO_CACHE_MISSES = Counter("geo_cache_misses_total", "Geolocation cache misses")

STATIC_PATHS = {"/", "/links", "/links-by-id", "/sync", "/metrics", "/health"}


def normalize_path(path: str) -> str:
    # Short codes in paths would make label cardinality unbounded
    if path in STATIC_PATHS:
        return path
    if path.startswith("/stats/"):
        return "/stats/{code}"
    if len(path) > 1 and "/" not in path[1:]:
        return "/{code}"
    return "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time

        status_code = str(response.status_code)
        method = request.method
        metric_path = normalize_path(request.url.path)

        HTTP_REQUESTS_TOTAL.labels(method=method, path=metric_path, status=status_code).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=metric_path).observe(process_time)

        return response

def metrics_endpoint(request: Request):
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
