from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

# Domain metrics
questions_created = Counter(
    "overflow_questions_created_total",
    "Total questions created",
)

answers_created = Counter(
    "overflow_answers_created_total",
    "Total answers created",
)

votes_cast = Counter(
    "overflow_votes_cast_total",
    "Votes applied to questions and answers",
    ["target", "direction", "transition"],  # transition: add | retract | swap
)

page_cache_events = Counter(
    "overflow_page_cache_events_total",
    "Rendered page cache activity",
    ["event"],  # hit | miss | revalidate
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "overflow_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "overflow_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
