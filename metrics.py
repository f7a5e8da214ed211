"""
metrics.py - Application metrics for monitoring
"""
from prometheus_client import Counter, Histogram, Gauge
from functools import wraps
import time

request_count = Counter(
    'annotation_server_requests_total',
    'Total requests',
    ['method', 'endpoint', 'status']
)

request_duration = Histogram(
    'annotation_server_request_duration_seconds',
    'Request duration',
    ['method', 'endpoint']
)

annotation_duration = Histogram(
    'annotation_server_annotation_duration_seconds',
    'Time spent running annotation pipelines'
)

pipeline_cache_hits = Counter(
    'annotation_server_pipeline_cache_hits_total',
    'Pipeline cache hit count'
)

pipeline_cache_misses = Counter(
    'annotation_server_pipeline_cache_misses_total',
    'Pipeline cache miss count'
)

pipeline_builds = Counter(
    'annotation_server_pipeline_builds_total',
    'Pipelines constructed',
    ['outcome']  # 'success' or 'failure'
)

pipeline_cache_size = Gauge(
    'annotation_server_pipeline_cache_size',
    'Number of pipelines currently cached'
)


def track_request(endpoint: str):
    """Decorator to track request metrics, labelled by the request's HTTP method"""
    def decorator(func):
        @wraps(func)
        async def wrapper(request, *args, **kwargs):
            method = request.method
            start = time.time()
            status = 200
            try:
                result = await func(request, *args, **kwargs)
                status = getattr(result, "status_code", 200)
                return result
            except Exception as e:
                status = getattr(e, "status_code", 500)
                raise
            finally:
                duration = time.time() - start
                request_count.labels(method, endpoint, status).inc()
                request_duration.labels(method, endpoint).observe(duration)
        return wrapper
    return decorator
