import os
import time
from datetime import datetime, timezone
from typing import Iterable, Optional
from urllib.parse import unquote

from . import naming
from .exceptions import ArtifactNameError, FatalListingError, RestoreError, StorageError
from .executor import restore_database
from .logger import get_logger
from .metrics import ITEMS_TOTAL, ITEM_DURATION_SECONDS, LAST_RUN_TIMESTAMP_SECONDS, LAST_RUN_FAILED_ITEMS
from .schemas import BatchResult, ItemOutcome, Settings
from .storage import StorageProvider
from .utils import resolve_work_dir, scoped_file

logger = get_logger(__name__)


def resolve_database_name(key: str, storage: StorageProvider) -> str:
    """
    Database name for a stored archive: decoded from the key's filename, or read
    from the object metadata when the filename does not decode.
    """
    try:
        return naming.decode(os.path.basename(key))
    except ArtifactNameError:
        metadata = storage.get_metadata(key)
        # metadata values are percent-quoted, S3 only accepts ASCII there
        db_name = unquote(metadata.get("database-name", ""))
        if not db_name:
            raise
        logger.warning(f"Key {key} has no backup suffix, using database name '{db_name}' from object metadata")
        return db_name


def restore_one(
    key: str,
    settings: Settings,
    storage: StorageProvider,
    work_dir: str,
    databases: Optional[Iterable[str]] = None,
) -> ItemOutcome:
    start_time = time.time()
    outcome = ItemOutcome(name=key, stage="decode", remote_key=key)
    local_path = os.path.join(work_dir, os.path.basename(key))

    with scoped_file(local_path):
        try:
            db_name = resolve_database_name(key, storage)
            outcome.name = db_name

            if databases is not None and db_name not in databases:
                logger.info(f"Skipping {key}: database {db_name} not selected")
                outcome.status = "skipped"
                return outcome

            outcome.stage = "download"
            storage.download(key, local_path)
            outcome.size_bytes = os.path.getsize(local_path)

            outcome.stage = "restore"
            restore_database(db_name, settings.server, local_path)
            outcome.stage = "done"
            outcome.status = "completed"
        except (StorageError, OSError) as e:
            logger.error(f"Failed to {outcome.stage} backup file {key}: {e}")
            outcome.reason = str(e)
        except ArtifactNameError as e:
            logger.error(f"Failed to determine database name for {key}: {e}")
            outcome.reason = str(e)
        except RestoreError as e:
            logger.error(f"Failed to restore database {outcome.name}: {e}")
            outcome.reason = str(e)
            outcome.error_summary = e.summary
        finally:
            outcome.duration_seconds = time.time() - start_time

    if outcome.status != "skipped":
        ITEMS_TOTAL.labels(operation="restore", status=outcome.status).inc()
        ITEM_DURATION_SECONDS.labels(operation="restore").observe(outcome.duration_seconds)
    return outcome


def run_restore_all(
    settings: Settings,
    storage: StorageProvider,
    prefix: str,
    databases: Optional[Iterable[str]] = None,
) -> BatchResult:
    """
    Restores every archive stored under the run prefix into the database it was taken from.

    Raises FatalListingError when the prefix cannot be listed. Download, decode
    and restore failures are isolated to their key.
    """
    if not prefix:
        raise ValueError("A run prefix is required for restore")

    work_dir = resolve_work_dir(settings.work_dir)
    selected = set(databases) if databases else None
    result = BatchResult(operation="restore", prefix=prefix, started_at=datetime.now(timezone.utc))
    list_prefix = prefix.rstrip("/") + "/"
    logger.info(f"Starting restore of run {prefix} from {storage.location}")

    try:
        keys = storage.list_keys(list_prefix)
    except StorageError as e:
        logger.error(f"Failed to list backups under {list_prefix}: {e}")
        raise FatalListingError(
            f"Failed to list backups under {list_prefix}", details={"prefix": prefix, "error": str(e)}
        ) from e

    logger.info(f"Found {len(keys)} backup files under {list_prefix}")
    for key in keys:
        if key.endswith("/"):
            continue
        logger.info(f"Processing backup file: {key}")
        result.items.append(restore_one(key, settings, storage, work_dir, selected))

    result.finished_at = datetime.now(timezone.utc)
    LAST_RUN_TIMESTAMP_SECONDS.labels(operation="restore").set(result.finished_at.timestamp())
    LAST_RUN_FAILED_ITEMS.labels(operation="restore").set(len(result.failed))
    logger.info(f"Restore run finished. {result.summary()}")
    return result
