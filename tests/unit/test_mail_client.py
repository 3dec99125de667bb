"""Tests for the SMTP transport."""

import smtplib

import pytest

from vocabmail import mail_client
from vocabmail.mail_client import MailDeliveryError, build_message, send_email


class FakeSMTP:
    instances = []
    failures = 0

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.messages = []
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        if FakeSMTP.failures > 0:
            FakeSMTP.failures -= 1
            raise smtplib.SMTPServerDisconnected("gone")
        self.messages.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.failures = 0
    monkeypatch.setattr(mail_client.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(mail_client._send.retry, "sleep", lambda seconds: None)
    return FakeSMTP


def test_build_message_attaches_existing_audio(tmp_path):
    audio = tmp_path / "day.mp3"
    audio.write_bytes(b"ID3data")

    msg = build_message("me@x.com", "you@x.com", "Subject", "<p>Hi</p>", str(audio))

    attachments = list(msg.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "day.mp3"
    assert attachments[0].get_content_type() == "audio/mpeg"
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hi</p>"


def test_build_message_skips_missing_audio(tmp_path):
    msg = build_message("me@x.com", "you@x.com", "S", "<p>Hi</p>", str(tmp_path / "missing.mp3"))
    assert list(msg.iter_attachments()) == []


def test_send_email_logs_in_and_sends(fake_smtp):
    send_email("smtp.test", 587, "me@x.com", "pw", "you@x.com", "Subject", "<p>Hi</p>")

    smtp = fake_smtp.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.test", 587)
    assert smtp.logged_in == ("me@x.com", "pw")
    assert smtp.messages[0]["To"] == "you@x.com"


def test_send_email_retries_transient_failures(fake_smtp):
    fake_smtp.failures = 2
    send_email("smtp.test", 587, "me@x.com", "pw", "you@x.com", "S", "<p>Hi</p>")
    assert len(fake_smtp.instances) == 3


def test_send_email_raises_after_retries(fake_smtp):
    fake_smtp.failures = 100
    with pytest.raises(MailDeliveryError):
        send_email("smtp.test", 587, "me@x.com", "pw", "you@x.com", "S", "<p>Hi</p>")
