"""
Contains custom FastAPI middleware for the rvc-claim daemon.

Middleware functions in this module intercept HTTP requests to record
Prometheus request counts and latencies.
"""

import time

from fastapi import Request

from claim_daemon.metrics import HTTP_LATENCY, HTTP_REQUESTS


async def prometheus_http_middleware(request: Request, call_next):
    """
    Records request count and latency for every HTTP request.

    Counts are labeled by method, path and status code; latency by method and path.
    """
    start = time.perf_counter()
    response = await call_next(request)
    latency = time.perf_counter() - start

    path = request.url.path
    HTTP_REQUESTS.labels(
        method=request.method, endpoint=path, status_code=response.status_code
    ).inc()
    HTTP_LATENCY.labels(method=request.method, endpoint=path).observe(latency)
    return response
