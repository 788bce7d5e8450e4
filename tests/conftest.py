"""
Shared fixtures: settings with a temporary work dir, local and mocked S3 storage,
and stand-ins for pg_dump / pg_restore.
"""
from datetime import datetime, timezone
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from fleet_backup.schemas import Settings, StorageSettings, LocalStorageSettings, S3Settings
from fleet_backup.storage import LocalStorage, S3Storage

CAPTURED_AT = datetime(2023, 11, 14, 12, 0, 0, tzinfo=timezone.utc)
RUN_PREFIX = "1700000000"
BUCKET = "kmf-db"
REGION = "ap-south-1"


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, work_dir: Path) -> Settings:
    return Settings(
        work_dir=str(work_dir),
        storage=StorageSettings(type="local", local=LocalStorageSettings(base_path=str(tmp_path / "store"))),
    )


@pytest.fixture
def local_storage(settings: Settings) -> LocalStorage:
    return LocalStorage(settings.storage.local.base_path)


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def s3_storage(aws_credentials):
    with mock_aws():
        client = boto3.client("s3", region_name=REGION)
        client.create_bucket(Bucket=BUCKET, CreateBucketConfiguration={"LocationConstraint": REGION})
        yield S3Storage(**S3Settings(bucket=BUCKET, region=REGION).model_dump())


@pytest.fixture
def fixed_now():
    return lambda: CAPTURED_AT


class FakeDump:
    """Records pg_dump calls and writes a small archive, or raises for selected databases."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    def __call__(self, database_name, server, output_path):
        from fleet_backup.exceptions import DumpError

        self.calls.append((database_name, output_path))
        if database_name in self.fail_for:
            Path(output_path).write_bytes(b"partial")
            raise DumpError(f"pg_dump failed with exit code 1 for database {database_name}", summary="boom")
        Path(output_path).write_bytes(f"PGDMP {database_name}".encode())
        return output_path


class FakeRestore:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    def __call__(self, database_name, server, input_path):
        from fleet_backup.exceptions import RestoreError

        self.calls.append((database_name, Path(input_path).read_bytes()))
        if database_name in self.fail_for:
            raise RestoreError(f"pg_restore failed with exit code 1 for database {database_name}", summary="boom")


@pytest.fixture
def make_fake_dump():
    return FakeDump


@pytest.fixture
def make_fake_restore():
    return FakeRestore
