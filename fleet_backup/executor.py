import logging
import os
import subprocess
from typing import Dict, List

from .error_parser import parse_backup_error
from .exceptions import DumpError, RestoreError
from .logger import get_logger
from .schemas import ServerSettings

logger = get_logger(__name__)


def build_env(server: ServerSettings) -> Dict[str, str]:
    """Environment for one pg_dump / pg_restore invocation. os.environ is never modified."""
    env = os.environ.copy()
    env["PGPASSWORD"] = server.password
    return env


def dump_command(database_name: str, server: ServerSettings, output_path: str) -> List[str]:
    return [
        "pg_dump", "-h", server.host, "-p", str(server.port), "-U", server.username,
        "-F", "c", "-f", output_path, database_name,
    ]


def restore_command(database_name: str, server: ServerSettings, input_path: str) -> List[str]:
    return [
        "pg_restore", "-h", server.host, "-p", str(server.port), "-U", server.username,
        "-d", database_name, "--clean", "--if-exists", "-F", "c", input_path,
    ]


def _run(cmd: List[str], env: Dict[str, str]) -> subprocess.CompletedProcess:
    logger.debug(f"Executing command: {' '.join(cmd)}")
    result = subprocess.run(cmd, env=env, stderr=subprocess.PIPE, text=True)
    # diagnostics of a failed run must survive LOG_LEVEL=WARNING
    level = logging.INFO if result.returncode == 0 else logging.ERROR
    for line in (result.stderr or "").splitlines():
        if line.strip():
            logger.log(level, f"[{cmd[0]}] {line}")
    return result


def dump_database(database_name: str, server: ServerSettings, output_path: str) -> str:
    """
    Runs pg_dump for one database into output_path (custom archive format).

    Partial output is left in place on failure; removing it is the caller's job.
    """
    try:
        result = _run(dump_command(database_name, server, output_path), build_env(server))
    except OSError as e:
        raise DumpError(
            f"Failed to start pg_dump for database {database_name}: {e}",
            details={"database": database_name},
            summary=parse_backup_error(str(e)),
        ) from e

    if result.returncode != 0:
        raise DumpError(
            f"pg_dump failed with exit code {result.returncode} for database {database_name}",
            details={"database": database_name, "returncode": result.returncode},
            summary=parse_backup_error(result.stderr),
        )
    return output_path


def restore_database(database_name: str, server: ServerSettings, input_path: str) -> None:
    """
    Runs pg_restore with --clean so that objects already present are dropped first.
    Restoring the same archive twice leaves the database in the same state.
    """
    try:
        result = _run(restore_command(database_name, server, input_path), build_env(server))
    except OSError as e:
        raise RestoreError(
            f"Failed to start pg_restore for database {database_name}: {e}",
            details={"database": database_name},
            summary=parse_backup_error(str(e)),
        ) from e

    if result.returncode != 0:
        raise RestoreError(
            f"pg_restore failed with exit code {result.returncode} for database {database_name}",
            details={"database": database_name, "returncode": result.returncode},
            summary=parse_backup_error(result.stderr),
        )
    logger.info(f"Database {database_name} restored successfully from {input_path}")
