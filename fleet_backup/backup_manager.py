import os
import time
from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import quote

from . import naming
from .database import list_databases
from .exceptions import DumpError, StorageError
from .executor import dump_database
from .logger import get_logger
from .metrics import (
    ITEMS_TOTAL, ITEM_DURATION_SECONDS, ARTIFACT_SIZE_BYTES,
    LAST_RUN_TIMESTAMP_SECONDS, LAST_RUN_FAILED_ITEMS
)
from .schemas import BackupArtifact, BatchResult, ItemOutcome, Settings
from .storage import StorageProvider
from .utils import new_run_prefix, resolve_work_dir, scoped_file

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backup_one(
    db_name: str,
    settings: Settings,
    storage: StorageProvider,
    prefix: str,
    work_dir: str,
    now: Callable[[], datetime] = _utcnow,
) -> ItemOutcome:
    """
    Dumps one database and uploads the archive under prefix. Never raises for
    per-item failures; the local archive is removed before returning.
    """
    start_time = time.time()
    captured_at = now()
    artifact = BackupArtifact(
        database_name=db_name,
        captured_at=captured_at,
        local_path=os.path.join(work_dir, naming.encode(db_name, captured_at)),
    )
    outcome = ItemOutcome(name=db_name, stage="dump")

    with scoped_file(artifact.local_path):
        try:
            dump_database(db_name, settings.server, artifact.local_path)
            outcome.size_bytes = os.path.getsize(artifact.local_path)

            outcome.stage = "upload"
            artifact.remote_key = storage.upload(
                artifact.local_path,
                prefix,
                metadata={
                    "database-name": quote(db_name, safe=""),
                    "captured-at": captured_at.isoformat(),
                },
            )
            outcome.remote_key = artifact.remote_key
            outcome.stage = "done"
            outcome.status = "completed"
        except DumpError as e:
            logger.error(f"Failed to backup database {db_name}: {e}")
            outcome.reason = str(e)
            outcome.error_summary = e.summary
        except (StorageError, OSError) as e:
            logger.error(f"Failed to {outcome.stage} backup for database {db_name}: {e}")
            outcome.reason = str(e)

    outcome.duration_seconds = time.time() - start_time
    ITEMS_TOTAL.labels(operation="backup", status=outcome.status).inc()
    ITEM_DURATION_SECONDS.labels(operation="backup").observe(outcome.duration_seconds)
    if outcome.status == "completed":
        ARTIFACT_SIZE_BYTES.labels(database_name=db_name).set(outcome.size_bytes or 0)
        logger.info(
            f"Backup successful: {db_name} uploaded to {storage.location}/{outcome.remote_key} "
            f"({outcome.size_bytes} bytes, {outcome.duration_seconds:.2f}s)"
        )
    return outcome


def run_backup_all(
    settings: Settings,
    storage: StorageProvider,
    prefix: Optional[str] = None,
    now: Callable[[], datetime] = _utcnow,
) -> BatchResult:
    """
    Backs up every non-template database on the configured server, one at a time.

    Raises FatalEnumerationError when the catalog cannot be read. Failures of a
    single dump or upload are recorded in the returned BatchResult and the run
    continues with the next database.
    """
    prefix = prefix or new_run_prefix()
    work_dir = resolve_work_dir(settings.work_dir)
    result = BatchResult(operation="backup", prefix=prefix, started_at=now())
    logger.info(f"Starting backup run {prefix} to {storage.location}")

    databases = list_databases(settings.server)

    for db_name in databases:
        logger.info(f"Backing up database: {db_name}")
        result.items.append(backup_one(db_name, settings, storage, prefix, work_dir, now=now))

    result.finished_at = now()
    LAST_RUN_TIMESTAMP_SECONDS.labels(operation="backup").set(result.finished_at.timestamp())
    LAST_RUN_FAILED_ITEMS.labels(operation="backup").set(len(result.failed))
    logger.info(f"Backup run finished. {result.summary()}")
    return result
