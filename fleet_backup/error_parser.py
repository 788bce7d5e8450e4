# fleet_backup/error_parser.py

def parse_backup_error(stderr: str) -> str:
    """
    Parses the stderr output from pg_dump / pg_restore and returns a human-readable summary.
    """
    stderr = (stderr or "").lower()

    if "password authentication failed" in stderr:
        return "Authentication error: the supplied password was rejected."
    if "authentication failed" in stderr:
        return "Authentication error: the user or password is incorrect."
    if "does not exist" in stderr and "database" in stderr:
        return "Database error: the requested database does not exist."
    if "connection refused" in stderr:
        return "Connection error: could not reach the database server. Check host and port."
    if "could not translate host name" in stderr:
        return "Connection error: the host name could not be resolved."
    if "timeout expired" in stderr:
        return "Connection error: timed out while connecting to the server."
    if "permission denied" in stderr:
        return "Permission error: the user lacks the privileges required for this operation."
    if "input file does not appear to be a valid archive" in stderr:
        return "Archive error: the input file is not a pg_dump custom-format archive."
    if "no such file or directory" in stderr:
        return "File error: the dump tool or the archive file could not be found."

    return "Unknown error: the command failed for an unidentified reason. Check the full log for details."
