from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match
from prometheus_client import Counter, Histogram, Gauge
import time
from typing import Callable

REQUEST_COUNT = Counter(
    'taskboard_requests_total',
    'Task board API requests',
    ['method', 'route', 'status']
)

REQUEST_DURATION = Histogram(
    'taskboard_request_duration_seconds',
    'Task board API request duration',
    ['method', 'route']
)

ACTIVE_REQUESTS = Gauge(
    'taskboard_requests_active',
    'Task board API requests in flight'
)


def route_template(request: Request) -> str:
    """Full route path (e.g. /api/tasks/{task_id}), keeping IDs out of labels"""
    partial = None
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return route.path
        if match == Match.PARTIAL and partial is None:
            partial = route.path
    return partial or "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Prometheus request metrics, labelled by route template
    """

    async def dispatch(self, request: Request, call_next: Callable):
        method = request.method
        ACTIVE_REQUESTS.inc()
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = route_template(request)
            REQUEST_COUNT.labels(method=method, route=route, status=status_code).inc()
            REQUEST_DURATION.labels(method=method, route=route).observe(time.time() - start_time)
            ACTIVE_REQUESTS.dec()
