"""Settings for kiosk and admin deployments.

Development fallbacks from ``base`` (the ``.env`` file, the cached development
key, SQLite, the default secret) are refused here: every secret must come from
the process environment and attendance data must live in PostgreSQL.
"""

from __future__ import annotations

import os

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F401,F403
from .base import (
    DATABASES,
    DEFAULT_SECRET_KEY,
    SECRET_KEY,
    _get_bool_env,
    _parse_int_env,
    _validate_fernet_key,
    build_postgres_database_config,
    configure_environment,
)
from .sentry import initialize_sentry

DEBUG = False

if SECRET_KEY == DEFAULT_SECRET_KEY:
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set for production deployments.")

_face_key = os.environ.get("FACE_DATA_ENCRYPTION_KEY")
if not _face_key:
    raise ImproperlyConfigured(
        "FACE_DATA_ENCRYPTION_KEY must be provided through the environment in production."
    )
FACE_DATA_ENCRYPTION_KEY = _validate_fernet_key(_face_key, "FACE_DATA_ENCRYPTION_KEY")

if DATABASES["default"].get("ENGINE") == "django.db.backends.sqlite3":
    DATABASES["default"] = build_postgres_database_config()

if DATABASES["default"].get("ENGINE") != "django.db.backends.postgresql":
    raise ImproperlyConfigured(
        "Attendance records require PostgreSQL; set DATABASE_URL or the DB_* variables."
    )

configure_environment(
    secure_defaults=True,
    default_allowed_hosts=(),
    require_allowed_hosts=True,
)
# configure_environment rebinds these on the base module.
from .base import (  # noqa: E402
    ALLOWED_HOSTS,
    CSRF_COOKIE_SECURE,
    SECURE_SSL_REDIRECT,
    SESSION_COOKIE_SECURE,
)

SECURE_HSTS_SECONDS = _parse_int_env("DJANGO_SECURE_HSTS_SECONDS", 31536000, minimum=0)
SECURE_HSTS_INCLUDE_SUBDOMAINS = _get_bool_env("DJANGO_SECURE_HSTS_INCLUDE_SUBDOMAINS", True)
SECURE_CONTENT_TYPE_NOSNIFF = True

# Set when TLS terminates at a reverse proxy.
if _get_bool_env("DJANGO_BEHIND_PROXY", default=False):
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

initialize_sentry()
