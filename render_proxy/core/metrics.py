from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Request counters
# ---------------------------------------------------------------------------
render_requests_total = Counter(
    "render_requests_total",
    "Total number of render requests",
    ["mode", "status"],
)
submit_requests_total = Counter(
    "submit_requests_total",
    "Total number of submit requests",
    ["status"],
)
challenge_detected_total = Counter(
    "challenge_detected_total",
    "Rendered pages still behind an anti-bot challenge after all retries",
)
admission_timeouts_total = Counter(
    "admission_timeouts_total",
    "Requests rejected because no admission slot freed up in time",
)

# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------
render_duration_seconds = Histogram(
    "render_duration_seconds",
    "Time spent rendering a single URL, admission wait included",
    ["mode"],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60],
)
submit_duration_seconds = Histogram(
    "submit_duration_seconds",
    "Time spent on a single submit, admission wait included",
    buckets=[0.5, 1, 2, 5, 10, 30, 60],
)

# ---------------------------------------------------------------------------
# Gauges
# ---------------------------------------------------------------------------
admission_active = Gauge(
    "admission_active",
    "Requests currently holding an admission slot",
)
admission_waiting = Gauge(
    "admission_waiting",
    "Requests queued for an admission slot",
)


def observe_gate(gate) -> None:
    """Copy the gate's counters into the gauges."""
    admission_active.set(gate.active)
    admission_waiting.set(gate.waiting)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
