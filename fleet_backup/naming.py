"""
Artifact naming: maps a database name and capture time to a backup filename and back.

Filenames look like ``<database>_backup_<YYYYMMDD_HHMMSS>.sql``. The suffix after the
database name always has the same width, so a name is recovered by matching the
suffix at the end of the filename and keeping what precedes it. Characters that
cannot appear in a filename ("/", "\\") and "%" itself are percent-escaped in the
name part.
"""
import re
from datetime import datetime
from typing import Tuple
from urllib.parse import unquote

from .exceptions import ArtifactNameError

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
SUFFIX_MARKER = "_backup_"
EXTENSION = ".sql"
# "_backup_" + "YYYYMMDD_HHMMSS" + ".sql"
SUFFIX_LENGTH = 27

_SUFFIX_RE = re.compile(r"_backup_(\d{8}_\d{6})\.sql$")
# "%" first, so that the escapes below stay reversible
_ESCAPES = [("%", "%25"), ("/", "%2F"), ("\\", "%5C")]


def _escape(database_name: str) -> str:
    for char, escaped in _ESCAPES:
        database_name = database_name.replace(char, escaped)
    return database_name


def encode(database_name: str, captured_at: datetime) -> str:
    if not database_name:
        raise ArtifactNameError("Database name must not be empty")
    return f"{_escape(database_name)}{SUFFIX_MARKER}{captured_at.strftime(TIMESTAMP_FORMAT)}{EXTENSION}"


def parse(filename: str) -> Tuple[str, datetime]:
    """
    Splits a backup filename into its database name and capture time. The filename
    must not carry a directory part; pass the basename of an object key.

    Raises ArtifactNameError when the filename does not end in a well-formed suffix.
    """
    match = _SUFFIX_RE.search(filename)
    if not match or len(filename) <= SUFFIX_LENGTH:
        raise ArtifactNameError(f"Not a backup artifact name: {filename!r}", details={"filename": filename})

    try:
        captured_at = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    except ValueError as e:
        raise ArtifactNameError(f"Invalid timestamp in artifact name: {filename!r}", details={"filename": filename}) from e

    return unquote(filename[:-SUFFIX_LENGTH]), captured_at


def decode(filename: str) -> str:
    return parse(filename)[0]
