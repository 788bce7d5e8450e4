# fleet_backup/exceptions.py


class FleetBackupError(Exception):
    """Base exception for all fleet_backup errors."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(FleetBackupError):
    """Raised when config.yaml or its environment overrides are invalid."""


class FatalEnumerationError(FleetBackupError):
    """The server catalog could not be queried. Aborts the whole backup run."""


class FatalListingError(FleetBackupError):
    """The remote prefix could not be listed. Aborts the whole restore run."""


class StorageError(FleetBackupError):
    """Raised when an object store operation fails."""


class ArtifactNameError(FleetBackupError):
    """Raised when a filename does not carry a well-formed backup suffix."""


class ItemError(FleetBackupError):
    """Failure isolated to a single database or key."""

    def __init__(self, message: str, details: dict = None, summary: str = None):
        super().__init__(message, details)
        self.summary = summary


class DumpError(ItemError):
    pass


class RestoreError(ItemError):
    pass
