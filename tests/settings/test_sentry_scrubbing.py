"""Sentry events must not carry credentials or biometric payloads."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from django.core.exceptions import ImproperlyConfigured

from payroll_portal.settings import sentry


def _event():
    return {
        "request": {
            "headers": {
                "authorization": "Bearer secret",
                "cookie": "sessionid=abc",
                "user-agent": "kiosk",
            }
        },
        "extra": {"embedding": [0.1] * 128, "snapshot": b"\xff\xd8", "employee_id": "emp-1"},
        "user": {"id": 7},
    }


def test_before_send_filters_headers_and_biometrics() -> None:
    event = sentry.before_send(_event(), None)

    headers = event["request"]["headers"]
    assert headers["authorization"] == "[Filtered]"
    assert headers["cookie"] == "[Filtered]"
    assert headers["user-agent"] == "kiosk"
    assert event["extra"]["embedding"] == "[Filtered]"
    assert event["extra"]["snapshot"] == "[Filtered]"
    assert event["extra"]["employee_id"] == "emp-1"
    assert "user" not in event


def test_before_send_keeps_user_when_pii_is_allowed() -> None:
    event = sentry.before_send(_event(), None, send_default_pii=True)

    assert event["user"] == {"id": 7}


def test_sentry_is_not_initialised_without_dsn(monkeypatch) -> None:
    monkeypatch.delenv("SENTRY_DSN", raising=False)

    with patch.object(sentry.sentry_sdk, "init") as init:
        sentry.initialize_sentry()

    init.assert_not_called()


def test_sentry_init_uses_scrubbing_hook(monkeypatch) -> None:
    monkeypatch.setenv("SENTRY_DSN", "https://public@example.ingest.sentry.io/1")
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "0.25")

    with patch.object(sentry.sentry_sdk, "init") as init:
        sentry.initialize_sentry()

    kwargs = init.call_args.kwargs
    assert kwargs["traces_sample_rate"] == 0.25
    assert kwargs["send_default_pii"] is False
    scrubbed = kwargs["before_send"](_event(), None)
    assert scrubbed["extra"]["embedding"] == "[Filtered]"


def test_invalid_sample_rate_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("SENTRY_DSN", "https://public@example.ingest.sentry.io/1")
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "2")

    with patch.object(sentry.sentry_sdk, "init"):
        with pytest.raises(ImproperlyConfigured):
            sentry.initialize_sentry()
