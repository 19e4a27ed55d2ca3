from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import boto3
import jwt
from botocore.exceptions import ClientError

from klevr.config import Settings, get_settings

logger = logging.getLogger(__name__)

_TOKEN_AUDIENCE = "klevr:download"


class StorageError(Exception):
    pass


class InvalidDownloadToken(StorageError):
    pass


class ObjectStorage(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str: ...

    def generate_download_url(self, key: str, ttl_seconds: int) -> str: ...

    def delete(self, key: str) -> None: ...


def document_key(application_id: str, kind: str, timestamp: int | None = None) -> str:
    ts = timestamp if timestamp is not None else int(datetime.now(UTC).timestamp() * 1000)
    return f"documents/{application_id}/{kind}-{ts}.md"


class LocalObjectStorage:
    """Objects on disk under ``storage_dir``, served by the signed ``/files`` route."""

    def __init__(self, settings: Settings | None = None, root: Path | None = None):
        self.settings = settings or get_settings()
        self.root = Path(root or self.settings.storage_dir)

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith("/") or ".." in Path(key).parts:
            raise StorageError(f"Invalid object key: {key!r}")
        return self.root / key

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored object key=%s bytes=%s content_type=%s", key, len(data), content_type)
        return key

    def read(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()

    def generate_download_url(self, key: str, ttl_seconds: int) -> str:
        self._path_for(key)
        expires = datetime.now(UTC) + timedelta(seconds=ttl_seconds)
        token = jwt.encode(
            {"key": key, "aud": _TOKEN_AUDIENCE, "exp": expires},
            self.settings.secret_key,
            algorithm="HS256",
        )
        base = self.settings.app_base_url.rstrip("/")
        return f"{base}/files/{quote(key)}?token={token}"

    def verify_download_token(self, key: str, token: str) -> None:
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=["HS256"],
                audience=_TOKEN_AUDIENCE,
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidDownloadToken(str(exc)) from exc
        if payload.get("key") != key:
            raise InvalidDownloadToken("token does not match object key")


class S3ObjectStorage:
    """Objects in an S3 bucket, downloaded through presigned ``get_object`` URLs."""

    def __init__(self, settings: Settings | None = None, client: Any = None):
        self.settings = settings or get_settings()
        if not self.settings.s3_bucket_name:
            raise StorageError("S3_BUCKET_NAME is not configured")
        self.bucket = self.settings.s3_bucket_name
        self.client = client or boto3.client(
            "s3",
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
            region_name=self.settings.aws_region,
            endpoint_url=self.settings.s3_endpoint_url,
        )

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except ClientError as exc:
            raise StorageError(f"Failed to upload {key} to S3: {exc}") from exc
        logger.info("Uploaded object bucket=%s key=%s bytes=%s", self.bucket, key, len(data))
        return key

    def generate_download_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except ClientError as exc:
            raise StorageError(f"Failed to presign {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            raise StorageError(f"Failed to delete {key} from S3: {exc}") from exc


def create_storage(settings: Settings | None = None) -> ObjectStorage:
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        return S3ObjectStorage(settings)
    return LocalObjectStorage(settings)
