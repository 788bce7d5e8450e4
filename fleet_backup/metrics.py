from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, push_to_gateway

from .logger import get_logger

logger = get_logger(__name__)

REGISTRY = CollectorRegistry()

ITEMS_TOTAL = Counter(
    "fleet_backup_items_total",
    "Total number of databases processed, by operation and outcome.",
    ["operation", "status"],
    registry=REGISTRY,
)

ITEM_DURATION_SECONDS = Histogram(
    "fleet_backup_item_duration_seconds",
    "Duration of a single database backup or restore in seconds.",
    ["operation"],
    registry=REGISTRY,
)

ARTIFACT_SIZE_BYTES = Gauge(
    "fleet_backup_artifact_size_bytes",
    "Size of the last uploaded archive in bytes.",
    ["database_name"],
    registry=REGISTRY,
)

LAST_RUN_TIMESTAMP_SECONDS = Gauge(
    "fleet_backup_last_run_timestamp_seconds",
    "Completion time of the last run.",
    ["operation"],
    registry=REGISTRY,
)

LAST_RUN_FAILED_ITEMS = Gauge(
    "fleet_backup_last_run_failed_items",
    "Number of failed items in the last run.",
    ["operation"],
    registry=REGISTRY,
)


def push_metrics(gateway: str, job: str) -> bool:
    """Pushes the registry to a Prometheus Pushgateway. Failures are logged only."""
    try:
        push_to_gateway(gateway, job=job, registry=REGISTRY)
    except OSError as e:
        logger.error(f"Failed to push metrics to {gateway}: {e}")
        return False
    logger.debug(f"Pushed metrics to {gateway} as job {job}")
    return True
