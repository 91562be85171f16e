# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import os
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

import aiofiles  # type: ignore[import-untyped]
import anyio
import boto3
from botocore.exceptions import ClientError
from loguru import logger

from career_relay.errors import StorageWriteFailed
from career_relay.models.fields import FieldName, filename_stems

CACHE_CONTROL = "public, max-age=31536000, immutable"

_DATED_REMAINDER = re.compile(r"^(\d{4}-\d{2}-\d{2})_")


class DurableStorage(Protocol):
    """Protocol for the permanent file store (local directory or object storage)."""

    public_base_url: str

    def public_url(self, filename: str) -> str:
        """Return the permanent URL for a stored filename."""
        ...

    async def write(self, filename: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``filename`` and return its public URL.

        Raises:
            StorageWriteFailed: If the backend rejects the write.
        """
        ...

    async def exists(self, filename: str) -> bool:
        """Check whether ``filename`` is already stored."""
        ...

    async def list_files(self, prefix: str) -> dict[str, datetime]:
        """Map stored filenames starting with ``prefix`` to their last modification time (UTC)."""
        ...


def _check_filename(filename: str) -> None:
    if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
        raise ValueError(f"Invalid storage filename: {filename!r}")


class LocalFileStorage:
    """Stores files in a local directory served statically under ``public_base_url``."""

    def __init__(self, directory: Path, public_base_url: str):
        """Initializes the LocalFileStorage.

        Args:
            directory: Directory holding the files. Created on first write.
            public_base_url: URL prefix the directory is served under.
        """
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, filename: str) -> str:
        return f"{self.public_base_url}/{filename}"

    async def write(self, filename: str, data: bytes, content_type: str) -> str:
        _check_filename(filename)
        target = self.directory / filename
        partial = self.directory / f".{filename}.part"
        try:
            await anyio.to_thread.run_sync(lambda: self.directory.mkdir(parents=True, exist_ok=True))
            async with aiofiles.open(partial, "wb") as f:
                await f.write(data)
            await anyio.to_thread.run_sync(os.replace, partial, target)
        except OSError as e:
            logger.error(f"Failed to write {filename} to {self.directory}: {e}")
            raise StorageWriteFailed(f"Local write failed: {e}", reference=filename) from e

        logger.info(f"Stored {filename} ({len(data)} bytes, {content_type})")
        return self.public_url(filename)

    async def exists(self, filename: str) -> bool:
        _check_filename(filename)
        return await anyio.to_thread.run_sync((self.directory / filename).is_file)

    async def list_files(self, prefix: str) -> dict[str, datetime]:
        def _list() -> dict[str, datetime]:
            if not self.directory.is_dir():
                return {}
            return {
                entry.name: datetime.fromtimestamp(entry.stat().st_mtime, timezone.utc)
                for entry in self.directory.iterdir()
                if entry.is_file() and entry.name.startswith(prefix)
            }

        return await anyio.to_thread.run_sync(_list)


class S3Storage:
    """S3 implementation of the DurableStorage protocol.

    Objects are served publicly under ``public_base_url`` (bucket website,
    CDN or public-read policy); no signed URLs are issued since they expire.
    """

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        key_prefix: str = "",
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        endpoint_url: str | None = None,
    ):
        """Initializes the S3Storage backend.

        Args:
            bucket: The S3 bucket name.
            public_base_url: URL prefix objects are publicly served under.
            key_prefix: Optional key prefix for every object.
            region: Optional AWS region name.
            access_key: Optional AWS access key ID.
            secret_key: Optional AWS secret access key.
            endpoint_url: Optional endpoint URL for S3-compatible services (e.g., MinIO).
        """
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.key_prefix = key_prefix
        self.client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            endpoint_url=endpoint_url,
        )

    def public_url(self, filename: str) -> str:
        return f"{self.public_base_url}/{filename}"

    async def write(self, filename: str, data: bytes, content_type: str) -> str:
        _check_filename(filename)
        key = f"{self.key_prefix}{filename}"
        logger.info(f"Uploading {filename} to s3://{self.bucket}/{key}")

        def _put() -> None:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
            )

        try:
            await anyio.to_thread.run_sync(_put)
        except ClientError as e:
            logger.error(f"Failed to upload file to S3: {e}")
            raise StorageWriteFailed(f"S3 upload failed: {e}", reference=filename) from e
        return self.public_url(filename)

    async def exists(self, filename: str) -> bool:
        _check_filename(filename)

        def _head() -> bool:
            try:
                self.client.head_object(Bucket=self.bucket, Key=f"{self.key_prefix}{filename}")
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                    return False
                raise
            return True

        return await anyio.to_thread.run_sync(_head)

    async def list_files(self, prefix: str) -> dict[str, datetime]:
        def _list() -> dict[str, datetime]:
            files: dict[str, datetime] = {}
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{self.key_prefix}{prefix}"):
                for obj in page.get("Contents", []):
                    files[obj["Key"][len(self.key_prefix) :]] = obj["LastModified"]
            return files

        return await anyio.to_thread.run_sync(_list)


def _relay_date(remainder: str, modified: datetime) -> date:
    match = _DATED_REMAINDER.match(remainder)
    if match:
        return date.fromisoformat(match.group(1))
    return modified.date()


async def find_owner_file(storage: DurableStorage, owner_id: str, field_name: FieldName) -> str | None:
    """Find the newest stored file relayed for ``owner_id`` and ``field_name``.

    Dated names are ordered by the relay date they embed. Content-addressed
    names carry no date, so their modification date stands in for it; the
    modification time breaks ties between files of the same day.

    Returns:
        The filename, or None when nothing was stored for that owner and field.
    """
    candidates: list[tuple[date, datetime, str]] = []
    for stem in filename_stems(field_name):
        prefix = f"contact-{owner_id}_{stem}_"
        for name, modified in (await storage.list_files(prefix)).items():
            candidates.append((_relay_date(name[len(prefix) :], modified), modified, name))
    if not candidates:
        return None
    return max(candidates)[2]
