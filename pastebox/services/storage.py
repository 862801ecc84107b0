from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pastebox.errors import (
    CodecError,
    StorageNotFoundError,
    StorageUnavailableError,
)
from pastebox.logger import get_logger
from pastebox.services.locator import S3_PREFIX, object_key

log = get_logger("storage")

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class LocalStorage:
    """Attachments on disk under ``<root>/<slug>/<name>``. Never encrypts."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _slug_dir(self, slug: str) -> Path:
        directory = self.root / slug
        if directory.resolve().parent != self.root.resolve():
            raise CodecError(f"Unsafe slug {slug!r}")
        return directory

    def _file_path(self, slug: str, name: str) -> Path:
        directory = self._slug_dir(slug)
        path = directory / name
        if path.resolve().parent != directory.resolve():
            raise CodecError(f"Unsafe file name {name!r}")
        return path

    def save(self, slug: str, name: str, data: bytes) -> None:
        path = self._file_path(slug, name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            # no partial file or empty slug directory survives a failed write
            with contextlib.suppress(OSError):
                path.unlink()
            with contextlib.suppress(OSError):
                path.parent.rmdir()
            raise StorageUnavailableError(str(path), f"Failed to write file: {e}") from e

    def get(self, slug: str, name: str) -> bytes:
        path = self._file_path(slug, name)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageNotFoundError(str(path), "No such file") from e
        except OSError as e:
            raise StorageUnavailableError(str(path), f"Failed to read file: {e}") from e

    def delete(self, slug: str, name: str) -> None:
        path = self._file_path(slug, name)
        try:
            path.unlink()
        except FileNotFoundError:
            log.debug("File %s already gone", path)
        except OSError as e:
            raise StorageUnavailableError(str(path), f"Failed to delete file: {e}") from e
        # the slug directory only goes away once it is empty
        with contextlib.suppress(OSError):
            path.parent.rmdir()


class S3Storage:
    """Attachments in an existing S3-compatible bucket, path-style addressing."""

    def __init__(self, bucket: str, client):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> "S3Storage":
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            config=Config(s3={"addressing_style": "path"}),
        )
        return cls(settings.s3_bucket, client)

    def _translate(self, key: str, action: str, error: Exception):
        if isinstance(error, ClientError):
            code = str(error.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return StorageNotFoundError(key, "No such object")
        return StorageUnavailableError(key, f"Failed to {action} S3: {error}")

    def save(self, key: str, data: bytes) -> None:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(key, "upload to", e) from e
        log.info("Uploaded file to S3: %s", key)

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise self._translate(key, "get file from", e) from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(key, "delete from", e) from e
        log.info("Deleted file from S3: %s", key)


class Storage:
    """Routes ``s3://`` paths to the bucket and everything else to disk."""

    def __init__(self, local: LocalStorage, s3: Optional[S3Storage] = None):
        self.local = local
        self.s3 = s3

    @classmethod
    def from_settings(cls, settings) -> "Storage":
        s3 = S3Storage.from_settings(settings) if settings.s3_enabled else None
        return cls(LocalStorage(settings.attachments_dir), s3)

    def _bucket(self, path: str) -> S3Storage:
        if self.s3 is None:
            raise StorageUnavailableError(path, "Object storage is not configured")
        return self.s3

    def save(self, slug: str, path: str, data: bytes) -> None:
        if path.startswith(S3_PREFIX):
            self._bucket(path).save(object_key(path), data)
        else:
            self.local.save(slug, path, data)

    def get(self, slug: str, path: str) -> bytes:
        if path.startswith(S3_PREFIX):
            return self._bucket(path).get(object_key(path))
        return self.local.get(slug, path)

    def delete(self, slug: str, path: str) -> None:
        if path.startswith(S3_PREFIX):
            self._bucket(path).delete(object_key(path))
        else:
            self.local.delete(slug, path)
