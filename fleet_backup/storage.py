# fleet_backup/storage.py
import abc
import json
import os
import shutil
from typing import Dict, List, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StorageError
from .logger import get_logger
from .schemas import StorageSettings

logger = get_logger(__name__)


def build_key(key_prefix: str, local_path: str) -> str:
    return f"{key_prefix}/{os.path.basename(local_path)}"


class StorageProvider(abc.ABC):
    @abc.abstractmethod
    def upload(self, local_path: str, key_prefix: str, metadata: Optional[Dict[str, str]] = None) -> str:
        pass

    @abc.abstractmethod
    def list_keys(self, key_prefix: str) -> List[str]:
        pass

    @abc.abstractmethod
    def download(self, key: str, destination_path: str) -> None:
        pass

    @abc.abstractmethod
    def get_metadata(self, key: str) -> Dict[str, str]:
        pass

    @property
    @abc.abstractmethod
    def location(self) -> str:
        pass


class LocalStorage(StorageProvider):
    METADATA_SUFFIX = ".meta.json"

    def __init__(self, base_path: str):
        self.base_path = base_path
        os.makedirs(self.base_path, exist_ok=True)

    @property
    def location(self) -> str:
        return f"file://{os.path.abspath(self.base_path)}"

    def upload(self, local_path: str, key_prefix: str, metadata: Optional[Dict[str, str]] = None) -> str:
        key = build_key(key_prefix, local_path)
        final_destination = os.path.join(self.base_path, key)
        try:
            os.makedirs(os.path.dirname(final_destination), exist_ok=True)
            shutil.copyfile(local_path, final_destination)
            with open(final_destination + self.METADATA_SUFFIX, "w") as f:
                json.dump(metadata or {}, f)
        except OSError as e:
            raise StorageError(f"Failed to store {local_path}: {e}", details={"key": key}) from e
        return key

    def list_keys(self, key_prefix: str) -> List[str]:
        keys = []
        for root, _dirs, files in os.walk(self.base_path):
            for name in files:
                if name.endswith(self.METADATA_SUFFIX):
                    continue
                key = os.path.relpath(os.path.join(root, name), self.base_path).replace(os.sep, "/")
                if key.startswith(key_prefix):
                    keys.append(key)
        return sorted(keys)

    def download(self, key: str, destination_path: str) -> None:
        source = os.path.join(self.base_path, key)
        try:
            shutil.copyfile(source, destination_path)
        except OSError as e:
            raise StorageError(f"Failed to fetch {key}: {e}", details={"key": key}) from e

    def get_metadata(self, key: str) -> Dict[str, str]:
        try:
            with open(os.path.join(self.base_path, key) + self.METADATA_SUFFIX) as f:
                return json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read metadata for {key}: {e}", details={"key": key}) from e


class S3Storage(StorageProvider):
    def __init__(self, bucket: str, region: str, endpoint_url: str = None,
                 access_key: str = None, secret_key: str = None):
        self.bucket = bucket
        self.region = region
        # Without explicit keys boto3 falls back to its default credential chain
        self.s3_client = boto3.client(
            's3',
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version='s3v4')
        )

    @property
    def location(self) -> str:
        return f"s3://{self.bucket}"

    def upload(self, local_path: str, key_prefix: str, metadata: Optional[Dict[str, str]] = None) -> str:
        key = build_key(key_prefix, local_path)
        extra_args = {"ACL": "private"}
        if metadata:
            extra_args["Metadata"] = metadata
        try:
            self.s3_client.upload_file(local_path, self.bucket, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as e:
            raise StorageError(f"Failed to upload to S3: {e}", details={"bucket": self.bucket, "key": key}) from e
        logger.info(f"Uploaded {os.path.basename(local_path)} to s3://{self.bucket}/{key}")
        return key

    def list_keys(self, key_prefix: str) -> List[str]:
        """
        Returns the keys under key_prefix from a single ListObjectsV2 page.
        """
        try:
            response = self.s3_client.list_objects_v2(Bucket=self.bucket, Prefix=key_prefix)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to list objects in S3 bucket: {e}",
                details={"bucket": self.bucket, "prefix": key_prefix},
            ) from e

        if response.get("IsTruncated"):
            logger.warning(
                f"Listing of s3://{self.bucket}/{key_prefix} is truncated; "
                f"only the first {response.get('KeyCount', 0)} keys are returned."
            )
        return [obj["Key"] for obj in response.get("Contents", [])]

    def download(self, key: str, destination_path: str) -> None:
        try:
            self.s3_client.download_file(self.bucket, key, destination_path)
        except (ClientError, BotoCoreError, OSError) as e:
            raise StorageError(
                f"Failed to download file from S3: {e}", details={"bucket": self.bucket, "key": key}
            ) from e
        logger.info(f"Downloaded backup from s3://{self.bucket}/{key} to {destination_path}")

    def get_metadata(self, key: str) -> Dict[str, str]:
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to read object metadata: {e}", details={"bucket": self.bucket, "key": key}
            ) from e
        return response.get("Metadata", {})


def get_storage_provider(storage_config: StorageSettings) -> StorageProvider:
    if storage_config.type == "s3":
        return S3Storage(**storage_config.s3.model_dump())
    return LocalStorage(base_path=storage_config.local.base_path)
