# backend/tests/test_email_and_storage.py
# Tests for SMTP delivery and S3 uploads with the network clients mocked out

from unittest.mock import MagicMock

from app.config import Settings
from app.services import email_service, s3_service


def test_send_email_without_smtp_host(monkeypatch):
    monkeypatch.setattr(email_service, "get_settings", lambda: Settings(_env_file=None, SMTP_HOST=None))
    assert email_service.send_email("ada@example.com", "Hi", "<p>Hi</p>") is False


def test_send_password_reset_email(monkeypatch):
    smtp = MagicMock()
    monkeypatch.setattr(
        email_service,
        "get_settings",
        lambda: Settings(_env_file=None, SMTP_HOST="smtp.test", EMAIL_SENDER="no-reply@sharperly.ng"),
    )
    monkeypatch.setattr(email_service.smtplib, "SMTP", smtp)

    assert email_service.send_password_reset_email("ada@example.com", "123456") is True

    message = smtp.return_value.__enter__.return_value.send_message.call_args[0][0]
    assert message["To"] == "ada@example.com"
    assert "123456" in message.get_body(("html",)).get_content()


def test_send_email_failure_returns_false(monkeypatch):
    monkeypatch.setattr(email_service, "get_settings", lambda: Settings(_env_file=None, SMTP_HOST="smtp.test"))
    monkeypatch.setattr(email_service.smtplib, "SMTP", MagicMock(side_effect=OSError("refused")))
    assert email_service.send_email("ada@example.com", "Hi", "<p>Hi</p>") is False


def test_generate_otp():
    code = email_service.generate_otp()
    assert len(code) == 6 and code.isdigit()


def test_upload_file(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(s3_service, "get_s3_client", lambda: client)
    monkeypatch.setattr(
        s3_service,
        "get_settings",
        lambda: Settings(_env_file=None, S3_BUCKET_NAME="sharperly-docs", AWS_REGION="eu-west-1"),
    )

    url = s3_service.upload_file(b"%PDF", "proofs", "application/pdf")

    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "sharperly-docs"
    assert kwargs["Key"].startswith("proofs/") and kwargs["Key"].endswith(".pdf")
    assert url == f"https://sharperly-docs.s3.eu-west-1.amazonaws.com/{kwargs['Key']}"


def test_upload_without_client(monkeypatch):
    monkeypatch.setattr(s3_service, "get_s3_client", lambda: None)
    assert s3_service.upload_file(b"x", "proofs", "image/png") is None
