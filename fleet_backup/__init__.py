"""fleet-backup: back up every database on a PostgreSQL server to object storage, and restore it."""

__version__ = "0.1.0"
