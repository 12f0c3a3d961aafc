"""Regression coverage for development face data key handling."""

from __future__ import annotations

import importlib
import json
import sys

import pytest
from cryptography.fernet import Fernet


def _reload_base_settings():
    sys.modules.pop("payroll_portal.settings.base", None)
    return importlib.import_module("payroll_portal.settings.base")


@pytest.fixture(autouse=True)
def _reset_environment(monkeypatch, tmp_path):
    """Ensure key-specific environment variables do not leak between tests."""

    monkeypatch.delenv("FACE_DATA_ENCRYPTION_KEY", raising=False)
    monkeypatch.setenv("DJANGO_DEBUG", "1")
    monkeypatch.setenv("DEV_ENCRYPTION_KEY_FILE", str(tmp_path / "dev_keys.json"))
    monkeypatch.setenv("LOCAL_ENV_PATH", str(tmp_path / ".env"))
    yield
    sys.modules.pop("payroll_portal.settings.base", None)


def test_dev_key_is_persisted_and_reused(tmp_path):
    settings_base = _reload_base_settings()
    first_key = settings_base.FACE_DATA_ENCRYPTION_KEY
    token = Fernet(first_key).encrypt(b"[0.1, 0.2]")

    cache = json.loads((tmp_path / "dev_keys.json").read_text())
    assert cache["FACE_DATA_ENCRYPTION_KEY"] == first_key.decode()

    settings_base = _reload_base_settings()

    assert settings_base.FACE_DATA_ENCRYPTION_KEY == first_key
    assert Fernet(settings_base.FACE_DATA_ENCRYPTION_KEY).decrypt(token) == b"[0.1, 0.2]"


def test_local_env_file_takes_precedence(tmp_path):
    key = Fernet.generate_key().decode()
    (tmp_path / ".env").write_text(f"# local overrides\nFACE_DATA_ENCRYPTION_KEY='{key}'\n")

    settings_base = _reload_base_settings()

    assert settings_base.FACE_DATA_ENCRYPTION_KEY == key.encode()
    assert not (tmp_path / "dev_keys.json").exists()


def test_corrupt_cache_is_replaced(tmp_path):
    (tmp_path / "dev_keys.json").write_text("{not json")

    with pytest.warns(UserWarning):
        settings_base = _reload_base_settings()

    Fernet(settings_base.FACE_DATA_ENCRYPTION_KEY)
    cache = json.loads((tmp_path / "dev_keys.json").read_text())
    assert cache["FACE_DATA_ENCRYPTION_KEY"] == settings_base.FACE_DATA_ENCRYPTION_KEY.decode()
