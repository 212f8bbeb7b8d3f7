"""Prometheus metrics for scoring runs, anomaly scans, and external services"""

from prometheus_client import Counter, Histogram

# Scoring metrics
scoring_run_counter = Counter(
    "creditchain_scoring_runs_total",
    "Total scoring runs",
    ["outcome"],  # anchored | unanchored | failed
)

credit_score_band_counter = Counter(
    "creditchain_credit_score_bucket",
    "Credit scores issued by band",
    ["band"],  # <550, 550-649, 650-749, 750+
)

# Anomaly scan metrics
anomaly_skip_counter = Counter(
    "anomaly_scan_skips_total",
    "Transactions omitted from an anomaly scan after a failed model call",
)

anomaly_detected_counter = Counter(
    "anomalies_detected_total",
    "Transactions flagged as anomalous",
)

# Anchoring metrics
anchoring_failure_counter = Counter(
    "anchoring_failures_total",
    "Best-effort anchoring steps that failed",
    ["target"],  # content | ledger | reconcile
)

# External service metrics
external_latency_histogram = Histogram(
    "external_call_latency_seconds",
    "External service response time",
    ["service"],  # model | ledger | content
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

external_failure_counter = Counter(
    "external_call_failures_total",
    "Failed external service calls",
    ["service"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_scoring_run(outcome: str, credit_score: int | None = None) -> None:
    """Record run outcome and, when scored, the band of the issued score"""
    scoring_run_counter.labels(outcome=outcome).inc()

    if credit_score is None:
        return

    if credit_score < 550:
        band = "<550"
    elif credit_score < 650:
        band = "550-649"
    elif credit_score < 750:
        band = "650-749"
    else:
        band = "750+"

    credit_score_band_counter.labels(band=band).inc()
