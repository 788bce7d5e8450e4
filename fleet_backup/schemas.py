from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


# --- Configuration ---

class ServerSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: str = Field(default="postgres", repr=False)


class S3Settings(BaseModel):
    bucket: str = "kmf-db"
    region: str = "ap-south-1"
    endpoint_url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = Field(default=None, repr=False)


class LocalStorageSettings(BaseModel):
    base_path: str = "data"


class StorageSettings(BaseModel):
    type: Literal["s3", "local"] = "s3"
    s3: S3Settings = Field(default_factory=S3Settings)
    local: LocalStorageSettings = Field(default_factory=LocalStorageSettings)


class MetricsSettings(BaseModel):
    pushgateway: Optional[str] = None
    job: str = "fleet_backup"


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    work_dir: Optional[str] = None
    fail_on_item_error: bool = False
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)


# --- Run data ---

class BackupArtifact(BaseModel):
    database_name: str
    captured_at: datetime
    local_path: str
    remote_key: Optional[str] = None


class ItemOutcome(BaseModel):
    name: str
    stage: str
    status: Literal["completed", "failed", "skipped"] = "failed"
    reason: Optional[str] = None
    error_summary: Optional[str] = None
    remote_key: Optional[str] = None
    size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None


class BatchResult(BaseModel):
    operation: Literal["backup", "restore"]
    prefix: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    items: List[ItemOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [item for item in self.items if item.status == "completed"]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [item for item in self.items if item.status == "failed"]

    @property
    def ok(self) -> bool:
        """True when no item failed. Skipped items do not count as failures."""
        return not self.failed

    def summary(self) -> str:
        line = (
            f"{self.operation} run {self.prefix}: {len(self.succeeded)} succeeded, "
            f"{len(self.failed)} failed, {len(self.items)} total"
        )
        if self.failed:
            reasons = "; ".join(f"{item.name} ({item.stage}): {item.reason}" for item in self.failed)
            line += f" [{reasons}]"
        return line
