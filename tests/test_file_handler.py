# backend/tests/test_file_handler.py
# Tests for base64 decoding and upload checks

import base64

import pytest

from app.exceptions import ServerError, ValidationFailedError
from app.utils import file_handler
from app.utils.validators import validate_document_type, validate_image_type


def test_decode_data_uri():
    payload = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4").decode()
    content, content_type = file_handler.decode_base64_file(payload)
    assert content == b"%PDF-1.4"
    assert content_type == "application/pdf"


def test_decode_plain_base64_uses_default_type():
    content, content_type = file_handler.decode_base64_file(base64.b64encode(b"png").decode(), "image/png")
    assert content == b"png"
    assert content_type == "image/png"


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        file_handler.decode_base64_file("***not base64***")


def test_store_upload_rejects_wrong_type(monkeypatch):
    monkeypatch.setattr(file_handler, "upload_file", lambda *args: "https://bucket/key")

    with pytest.raises(ValidationFailedError) as excinfo:
        file_handler.store_upload(
            "businessLogo", b"%PDF", "application/pdf", "logos", 1024, validate_image_type, "Logo must be an image"
        )

    assert excinfo.value.extra["errors"] == [{"field": "businessLogo", "message": "Logo must be an image"}]


def test_store_upload_rejects_oversized_file(monkeypatch):
    monkeypatch.setattr(file_handler, "upload_file", lambda *args: "https://bucket/key")

    with pytest.raises(ValidationFailedError):
        file_handler.store_upload(
            "proofOfAddress", b"x" * 2048, "application/pdf", "proofs", 1024, validate_document_type, "bad type"
        )


def test_store_upload_reports_storage_failure(monkeypatch):
    monkeypatch.setattr(file_handler, "upload_file", lambda *args: None)

    with pytest.raises(ServerError) as excinfo:
        file_handler.store_upload(
            "proofOfAddress", b"%PDF", "application/pdf", "proofs", 1024, validate_document_type, "bad type"
        )
    assert excinfo.value.detail == "File upload failed"


def test_store_upload_returns_url(monkeypatch):
    calls = []
    monkeypatch.setattr(file_handler, "upload_file", lambda *args: calls.append(args) or "https://bucket/key")

    url = file_handler.store_upload(
        "proofOfAddress", b"%PDF", "application/pdf", "proofs", 1024, validate_document_type, "bad type"
    )

    assert url == "https://bucket/key"
    assert calls == [(b"%PDF", "proofs", "application/pdf")]
