from __future__ import annotations

from datetime import datetime
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest
from botocore.stub import Stubber

from klevr.config import get_settings
from klevr.core.documents import default_display_name, normalize_display_name, render_cover_letter_markdown
from klevr.core.storage import (
    InvalidDownloadToken,
    LocalObjectStorage,
    S3ObjectStorage,
    StorageError,
    create_storage,
    document_key,
)
from klevr.types import PersonalInfo


def test_document_key_layout() -> None:
    assert document_key("app_1", "resume", 1700000000000) == "documents/app_1/resume-1700000000000.md"


def test_put_read_and_signed_url(tmp_path: Path) -> None:
    storage = LocalObjectStorage(get_settings(), root=tmp_path)
    key = storage.put("documents/app_1/resume-1.md", b"# Resume\n", "text/markdown")

    assert storage.read(key) == b"# Resume\n"

    url = urlparse(storage.generate_download_url(key, 900))
    assert url.path == "/files/documents/app_1/resume-1.md"
    token = parse_qs(url.query)["token"][0]

    storage.verify_download_token(key, token)
    with pytest.raises(InvalidDownloadToken):
        storage.verify_download_token("documents/app_2/resume-1.md", token)


def test_expired_token_is_rejected(tmp_path: Path) -> None:
    storage = LocalObjectStorage(get_settings(), root=tmp_path)
    url = storage.generate_download_url("documents/a/resume-1.md", -10)
    token = parse_qs(urlparse(url).query)["token"][0]

    with pytest.raises(InvalidDownloadToken):
        storage.verify_download_token("documents/a/resume-1.md", token)


def test_keys_cannot_escape_the_root(tmp_path: Path) -> None:
    storage = LocalObjectStorage(get_settings(), root=tmp_path)
    with pytest.raises(StorageError):
        storage.put("../outside.md", b"x", "text/markdown")
    with pytest.raises(StorageError):
        storage.read("/etc/passwd")


def test_delete_is_idempotent(tmp_path: Path) -> None:
    storage = LocalObjectStorage(get_settings(), root=tmp_path)
    storage.put("documents/a/cover-letter-1.md", b"x", "text/markdown")
    storage.delete("documents/a/cover-letter-1.md")
    storage.delete("documents/a/cover-letter-1.md")
    assert storage.exists("documents/a/cover-letter-1.md") is False


def test_display_names_and_rendering() -> None:
    when = datetime(2026, 10, 19)
    assert default_display_name("RESUME", "Alex Rivera", "Data Analyst", "Globex", when) == (
        "Alex Rivera Data Analyst Globex Oct 2026"
    )
    assert default_display_name("COVER_LETTER", None, "Data Analyst", "Globex", when).startswith("Cover Letter")
    assert normalize_display_name("  My resume  ") == "My resume"
    with pytest.raises(ValueError):
        normalize_display_name("   ")
    with pytest.raises(ValueError):
        normalize_display_name("x" * 201)

    letter = render_cover_letter_markdown("Dear team,\n\nHello.", PersonalInfo(name="Alex"), "Analyst", "Globex")
    assert letter.startswith("# Alex\n")
    assert "**Re:** Analyst at Globex" in letter


def _s3_settings(**overrides):
    values = {
        "storage_backend": "s3",
        "s3_bucket_name": "klevr-docs",
        "aws_region": "us-east-1",
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        **overrides,
    }
    return get_settings().model_copy(update=values)


def test_s3_put_and_delete_target_the_bucket() -> None:
    storage = S3ObjectStorage(_s3_settings())
    key = "documents/app_1/resume-1.md"

    with Stubber(storage.client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            {"Bucket": "klevr-docs", "Key": key, "Body": b"# Resume\n", "ContentType": "text/markdown"},
        )
        stubber.add_response("delete_object", {}, {"Bucket": "klevr-docs", "Key": key})

        assert storage.put(key, b"# Resume\n", "text/markdown") == key
        storage.delete(key)
        stubber.assert_no_pending_responses()


def test_s3_client_errors_become_storage_errors() -> None:
    storage = S3ObjectStorage(_s3_settings())

    with Stubber(storage.client) as stubber:
        stubber.add_client_error("put_object", service_error_code="NoSuchBucket", http_status_code=404)
        with pytest.raises(StorageError):
            storage.put("documents/app_1/resume-1.md", b"x", "text/markdown")


def test_s3_download_url_is_presigned_for_the_object() -> None:
    storage = S3ObjectStorage(_s3_settings())

    url = storage.generate_download_url("documents/app_1/resume-1.md", 900)

    parsed = urlparse(url)
    assert "klevr-docs" in url
    assert parsed.path.endswith("/documents/app_1/resume-1.md")
    assert "Signature" in parsed.query


def test_storage_backend_is_selected_from_settings() -> None:
    assert isinstance(create_storage(_s3_settings()), S3ObjectStorage)
    assert isinstance(create_storage(_s3_settings(storage_backend="local")), LocalObjectStorage)
    with pytest.raises(StorageError):
        create_storage(_s3_settings(s3_bucket_name=""))
