import pytest

from fleet_backup.error_parser import parse_backup_error


@pytest.mark.parametrize(
    "stderr, expected",
    [
        ('FATAL:  password authentication failed for user "postgres"', "Authentication error"),
        ('FATAL:  database "ghost" does not exist', "Database error"),
        ("could not connect to server: Connection refused", "Connection error"),
        ('could not translate host name "nope" to address', "Connection error"),
        ("ERROR:  permission denied for table secrets", "Permission error"),
        ("pg_restore: error: input file does not appear to be a valid archive", "Archive error"),
        ("something unexpected", "Unknown error"),
        (None, "Unknown error"),
    ],
)
def test_summaries(stderr, expected):
    assert parse_backup_error(stderr).startswith(expected)
