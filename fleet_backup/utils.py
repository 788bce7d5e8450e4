import os
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from .logger import get_logger

logger = get_logger(__name__)


def new_run_prefix() -> str:
    """Unix epoch seconds, used as the object key namespace of one backup run."""
    return str(int(time.time()))


def resolve_work_dir(work_dir: Optional[str]) -> str:
    work_dir = work_dir or tempfile.gettempdir()
    os.makedirs(work_dir, exist_ok=True)
    return work_dir


@contextmanager
def scoped_file(path: str) -> Iterator[str]:
    """
    Yields path and removes the file on exit, whether the block succeeded or raised.
    """
    try:
        yield path
    finally:
        if os.path.exists(path):
            logger.debug(f"Removing temporary file: {path}")
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(f"Failed to remove temporary file {path}: {e}")
