"""Smoke tests for the production settings module."""

from __future__ import annotations

import importlib
import sys

import pytest
from cryptography.fernet import Fernet
from django.core.exceptions import ImproperlyConfigured


def _reload_production_settings():
    """Force a reload of the production settings module for isolation."""

    for module in [
        "payroll_portal.settings.production",
        "payroll_portal.settings.sentry",
        "payroll_portal.settings.base",
    ]:
        sys.modules.pop(module, None)
    return importlib.import_module("payroll_portal.settings.production")


@pytest.fixture
def production_env(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.setenv("DJANGO_DEBUG", "0")
    monkeypatch.setenv("DJANGO_SECRET_KEY", "ci-secret-key")
    monkeypatch.setenv("DJANGO_ALLOWED_HOSTS", "kiosk.example.com, admin.example.com")
    monkeypatch.setenv("FACE_DATA_ENCRYPTION_KEY", Fernet.generate_key().decode())
    yield monkeypatch
    for module in ["payroll_portal.settings.production", "payroll_portal.settings.base"]:
        sys.modules.pop(module, None)


def test_production_database_configuration(production_env):
    production_env.setenv("DB_NAME", "ci_db")
    production_env.setenv("DB_USER", "ci_user")
    production_env.setenv("DB_PASSWORD", "ci_password")
    production_env.setenv("DB_HOST", "postgres")
    production_env.setenv("DB_PORT", "6543")
    production_env.setenv("DB_CONN_MAX_AGE", "120")

    settings = _reload_production_settings()

    database = settings.DATABASES["default"]
    assert database["ENGINE"] == "django.db.backends.postgresql"
    assert database["NAME"] == "ci_db"
    assert database["USER"] == "ci_user"
    assert database["PASSWORD"] == "ci_password"
    assert database["HOST"] == "postgres"
    assert database["PORT"] == "6543"
    assert database["CONN_MAX_AGE"] == 120
    assert database["OPTIONS"]["sslmode"] == "require"


def test_production_enforces_secure_defaults(production_env):
    settings = _reload_production_settings()

    assert settings.DEBUG is False
    assert settings.ALLOWED_HOSTS == ["kiosk.example.com", "admin.example.com"]
    assert settings.SECURE_SSL_REDIRECT is True
    assert settings.SESSION_COOKIE_SECURE is True
    assert settings.CSRF_COOKIE_SECURE is True


def test_invalid_threshold_override_is_rejected(production_env):
    production_env.setenv("RECOGNITION_FACE_MAX_WIDTH_RATIO", "1.5")

    with pytest.raises(ImproperlyConfigured):
        _reload_production_settings()


def test_invalid_face_data_key_is_rejected(production_env):
    production_env.setenv("FACE_DATA_ENCRYPTION_KEY", "not-a-fernet-key")

    with pytest.raises(ImproperlyConfigured):
        _reload_production_settings()


def test_face_data_key_must_come_from_the_environment(production_env, tmp_path):
    production_env.delenv("FACE_DATA_ENCRYPTION_KEY")
    production_env.setenv("DEV_ENCRYPTION_KEY_FILE", str(tmp_path / "dev_keys.json"))
    production_env.setenv("LOCAL_ENV_PATH", str(tmp_path / ".env"))
    (tmp_path / ".env").write_text(f"FACE_DATA_ENCRYPTION_KEY={Fernet.generate_key().decode()}\n")

    with pytest.raises(ImproperlyConfigured, match="FACE_DATA_ENCRYPTION_KEY"):
        _reload_production_settings()


def test_default_secret_key_is_rejected(production_env):
    production_env.delenv("DJANGO_SECRET_KEY")

    with pytest.raises(ImproperlyConfigured, match="DJANGO_SECRET_KEY"):
        _reload_production_settings()


def test_sqlite_url_falls_back_to_postgres_variables(production_env, tmp_path):
    production_env.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'kiosk.sqlite3'}")

    settings = _reload_production_settings()

    assert settings.DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql"


def test_mysql_database_is_rejected(production_env):
    production_env.setenv("DATABASE_URL", "mysql://kiosk:secret@db:3306/attendance")

    with pytest.raises(ImproperlyConfigured, match="PostgreSQL"):
        _reload_production_settings()


def test_hsts_and_proxy_header(production_env):
    production_env.setenv("DJANGO_BEHIND_PROXY", "1")

    settings = _reload_production_settings()

    assert settings.SECURE_HSTS_SECONDS == 31536000
    assert settings.SECURE_HSTS_INCLUDE_SUBDOMAINS is True
    assert settings.SECURE_PROXY_SSL_HEADER == ("HTTP_X_FORWARDED_PROTO", "https")
