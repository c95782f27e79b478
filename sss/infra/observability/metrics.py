import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: the operation name, never a key or upload id.
STORE_REQUESTS = Counter(
    "sss_store_requests_total",
    "Total object store requests",
    ["operation", "status"],
)

STORE_LATENCY = Histogram(
    "sss_store_request_duration_seconds",
    "Object store request latency in seconds",
    ["operation"],
)

UPLOADED_BYTES = Counter(
    "sss_uploaded_bytes_total",
    "Bytes acknowledged by the object store through part uploads",
)


@contextmanager
def observe(operation: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception:
        STORE_REQUESTS.labels(operation, "error").inc()
        raise
    finally:
        STORE_LATENCY.labels(operation).observe(time.perf_counter() - start)
    STORE_REQUESTS.labels(operation, "ok").inc()
