"""
Prometheus metrics for the import pipeline.

Exposed at /metrics when METRICS_ENABLED is set. Only business counters live
here; HTTP latency is left to the ingress.
"""

from fastapi import FastAPI
from prometheus_client import Counter, Histogram, make_asgi_app

from app.config import settings


csv_import_uploads_total = Counter(
    "csv_import_uploads_total",
    "CSV uploads by outcome",
    ["outcome"],  # accepted, parse_error, empty
)

csv_import_classifications_total = Counter(
    "csv_import_classifications_total",
    "Files classified, by classification source and detected data type",
    ["source", "data_type"],
)

csv_import_rows_total = Counter(
    "csv_import_rows_total",
    "Rows processed by the import executor",
    ["data_type", "outcome"],  # imported, failed, duplicate
)

csv_import_execution_seconds = Histogram(
    "csv_import_execution_seconds",
    "Wall time of a full import execution",
    ["data_type"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)


def setup_metrics(app: FastAPI) -> None:
    """Mount the Prometheus exposition endpoint."""
    if settings.METRICS_ENABLED:
        app.mount("/metrics", make_asgi_app())
