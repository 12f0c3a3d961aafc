"""
Django settings for the payroll portal attendance kiosk.

This file contains the configuration for the Django project, including database settings,
installed applications, logging, and the face-verification tunables. It is configured to
read sensitive values and thresholds from environment variables.
"""

import json
import os
import sys
import warnings
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from django.core.exceptions import ImproperlyConfigured

import dj_database_url
from cryptography.fernet import Fernet

# `BASE_DIR` points to the root of the Django project.
BASE_DIR = Path(__file__).resolve().parent.parent.parent
LOCAL_ENV_PATH = Path(os.environ.get("LOCAL_ENV_PATH", BASE_DIR / ".env"))
DEV_KEY_CACHE_PATH = Path(
    os.environ.get("DEV_ENCRYPTION_KEY_FILE", BASE_DIR / ".dev_encryption_keys.json")
)


# --- Environment helpers ---


def _get_bool_env(var_name: str, default: bool = False) -> bool:
    """Return a boolean from an environment variable."""

    raw_value = os.environ.get(var_name)
    if raw_value is None:
        return default
    return raw_value.lower() in {"1", "true", "yes", "on"}


def _parse_int_env(var_name: str, default: int, *, minimum: int | None = None) -> int:
    """Return an integer from the environment, enforcing an optional minimum."""

    raw_value = os.environ.get(var_name)
    if raw_value is None:
        return default

    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ImproperlyConfigured(f"{var_name} must be an integer if provided.") from exc

    if minimum is not None and value < minimum:
        raise ImproperlyConfigured(f"{var_name} must be >= {minimum} if provided.")

    return value


def _get_float_env(
    var_name: str,
    default: float,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """Return a float from the environment with optional bound enforcement."""

    raw_value = os.environ.get(var_name)
    if raw_value is None:
        return default

    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ImproperlyConfigured(f"{var_name} must be a float if provided.") from exc

    if minimum is not None and value < minimum:
        raise ImproperlyConfigured(f"{var_name} must be >= {minimum} if provided.")
    if maximum is not None and value > maximum:
        raise ImproperlyConfigured(f"{var_name} must be <= {maximum} if provided.")

    return value


# Detect if we're running tests
TESTING = "test" in sys.argv or (len(sys.argv) > 0 and "pytest" in sys.argv[0])

DEFAULT_SECRET_KEY = "a-secure-default-key-for-development-only"

# Never run with debug mode turned on in a production environment.
# Automatically enable DEBUG mode when running tests.
DEBUG = _get_bool_env("DJANGO_DEBUG", default=not TESTING)

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", DEFAULT_SECRET_KEY)
if SECRET_KEY == DEFAULT_SECRET_KEY and not DEBUG and not TESTING:
    raise ImproperlyConfigured(
        "DJANGO_SECRET_KEY must be set to a secure value when DJANGO_DEBUG is not enabled."
    )


# --- Biometric data encryption ---


def _validate_fernet_key(key: str | bytes, setting_name: str) -> bytes:
    """Ensure the provided key material is a valid Fernet key."""

    key_bytes = key.encode() if isinstance(key, str) else key
    try:
        Fernet(key_bytes)
    except (ValueError, TypeError) as exc:
        raise ImproperlyConfigured(
            f"{setting_name} must be a valid 32-byte base64-encoded Fernet key."
        ) from exc
    return key_bytes


def _read_local_env_value(var_name: str) -> str | None:
    """Return a value from a local ``.env`` file if present."""

    if not LOCAL_ENV_PATH.exists():
        return None

    try:
        for raw_line in LOCAL_ENV_PATH.read_text().splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            if key.strip() != var_name:
                continue
            return value.strip().strip("\"").strip("'")
    except OSError as exc:
        warnings.warn(f"Unable to read {LOCAL_ENV_PATH}: {exc}")

    return None


def _load_cached_dev_key(var_name: str) -> bytes | None:
    """Load a previously generated development key from disk."""

    if not DEV_KEY_CACHE_PATH.exists():
        return None

    try:
        cache = json.loads(DEV_KEY_CACHE_PATH.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        warnings.warn(f"Ignoring invalid dev key cache file: {exc}")
        return None

    cached_value = cache.get(var_name)
    if not cached_value:
        return None

    try:
        return _validate_fernet_key(cached_value, var_name)
    except ImproperlyConfigured:
        warnings.warn(f"Ignoring invalid cached {var_name}; regenerating.")
        return None


def _persist_dev_key(var_name: str, key: bytes) -> None:
    """Persist generated development keys so encrypted descriptors survive restarts."""

    try:
        existing = (
            json.loads(DEV_KEY_CACHE_PATH.read_text()) if DEV_KEY_CACHE_PATH.exists() else {}
        )
    except (OSError, json.JSONDecodeError):
        existing = {}

    existing[var_name] = key.decode()

    try:
        DEV_KEY_CACHE_PATH.write_text(json.dumps(existing, indent=2))
    except OSError as exc:
        warnings.warn(f"Unable to persist dev encryption key cache: {exc}")


def _load_face_data_encryption_key() -> bytes:
    """Load the Fernet key used to encrypt stored face descriptors."""

    key = os.environ.get("FACE_DATA_ENCRYPTION_KEY")
    if not key and (DEBUG or TESTING):
        key = _read_local_env_value("FACE_DATA_ENCRYPTION_KEY")
    if key:
        return _validate_fernet_key(key, "FACE_DATA_ENCRYPTION_KEY")

    if DEBUG or TESTING:
        cached_key = _load_cached_dev_key("FACE_DATA_ENCRYPTION_KEY")
        if cached_key:
            return cached_key
        generated = Fernet.generate_key()
        _persist_dev_key("FACE_DATA_ENCRYPTION_KEY", generated)
        return generated

    raise ImproperlyConfigured(
        "FACE_DATA_ENCRYPTION_KEY environment variable must be set in production environments."
    )


FACE_DATA_ENCRYPTION_KEY = _load_face_data_encryption_key()


# --- Hosts & cookies ---

LOCALHOST_ALIASES: tuple[str, ...] = ("localhost", "127.0.0.1", "[::1]")


def _resolve_allowed_hosts(
    *,
    default_allowed_hosts: Sequence[str],
    require_explicit_hosts: bool,
) -> list[str]:
    """Return the allowed host list based on deployment defaults."""

    allowed_hosts_env = os.environ.get("DJANGO_ALLOWED_HOSTS")
    if allowed_hosts_env:
        return [host.strip() for host in allowed_hosts_env.split(",") if host.strip()]

    if require_explicit_hosts:
        raise ImproperlyConfigured(
            "DJANGO_ALLOWED_HOSTS must be provided (comma separated) when secure defaults are enforced."
        )

    return list(default_allowed_hosts)


def configure_environment(
    *,
    secure_defaults: bool,
    default_allowed_hosts: Sequence[str],
    require_allowed_hosts: bool,
) -> None:
    """Populate security-sensitive settings for the active environment."""

    global ALLOWED_HOSTS
    global SECURE_SSL_REDIRECT
    global SESSION_COOKIE_SECURE
    global CSRF_COOKIE_SECURE

    ALLOWED_HOSTS = _resolve_allowed_hosts(
        default_allowed_hosts=default_allowed_hosts,
        require_explicit_hosts=require_allowed_hosts,
    )
    SECURE_SSL_REDIRECT = _get_bool_env("DJANGO_SECURE_SSL_REDIRECT", default=secure_defaults)
    SESSION_COOKIE_SECURE = _get_bool_env("DJANGO_SESSION_COOKIE_SECURE", default=secure_defaults)
    CSRF_COOKIE_SECURE = _get_bool_env("DJANGO_CSRF_COOKIE_SECURE", default=secure_defaults)

    db_options = DATABASES["default"].setdefault("OPTIONS", {})
    if _get_bool_env("DATABASE_SSL_REQUIRE", default=secure_defaults):
        db_options["sslmode"] = os.environ.get("DATABASE_SSLMODE", "require")
    else:
        db_options.pop("sslmode", None)


# --- Application Configuration ---

INSTALLED_APPS = [
    # Custom applications for this project
    "timekeeping.apps.TimekeepingConfig",
    "biometrics.apps.BiometricsConfig",
    # Core Django applications
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "payroll_portal.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "payroll_portal.wsgi.application"


# --- Database Configuration ---

default_db_url = os.environ.get("DATABASE_URL", f"sqlite:///{(BASE_DIR / 'db.sqlite3').as_posix()}")

DATABASES = {
    "default": dj_database_url.parse(
        default_db_url,
        conn_max_age=_parse_int_env("DATABASE_CONN_MAX_AGE", 0, minimum=0),
    ),
}


def build_postgres_database_config() -> dict[str, Any]:
    """Return a PostgreSQL configuration derived from discrete environment variables."""

    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "payroll"),
        "USER": os.environ.get("DB_USER", "payroll"),
        "PASSWORD": os.environ.get("DB_PASSWORD", "payroll"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "CONN_MAX_AGE": _parse_int_env("DB_CONN_MAX_AGE", 600, minimum=0),
    }


configure_environment(
    secure_defaults=not (DEBUG or TESTING),
    default_allowed_hosts=LOCALHOST_ALIASES,
    require_allowed_hosts=not (DEBUG or TESTING),
)


# --- Internationalization ---

LANGUAGE_CODE = "en-us"
# Shift windows are evaluated in this zone, so it should match the site clocks.
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "Asia/Kolkata")
USE_I18N = True
USE_TZ = True


# --- Static Files ---

STATIC_URL = "/static/"
STATIC_ROOT = Path(os.environ.get("DJANGO_STATIC_ROOT", BASE_DIR / "staticfiles"))

LOGIN_URL = "admin:login"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# --- Logging ---

LOG_LEVEL = os.environ.get("DJANGO_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "biometrics": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "timekeeping": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}


# --- Face verification settings ---

# Maximum Euclidean distance for a 1:N or 1:1 match. Lower values mean stricter matching.
RECOGNITION_MATCH_THRESHOLD = _get_float_env(
    "RECOGNITION_MATCH_THRESHOLD", default=0.45, minimum=0.0
)
RECOGNITION_DESCRIPTOR_LENGTH = _parse_int_env(
    "RECOGNITION_DESCRIPTOR_LENGTH", default=128, minimum=1
)

# Face width relative to frame width.
RECOGNITION_FACE_MAX_WIDTH_RATIO = _get_float_env(
    "RECOGNITION_FACE_MAX_WIDTH_RATIO", default=0.55, minimum=0.0, maximum=1.0
)
RECOGNITION_FACE_MIN_WIDTH_RATIO = _get_float_env(
    "RECOGNITION_FACE_MIN_WIDTH_RATIO", default=0.15, minimum=0.0, maximum=1.0
)

RECOGNITION_LIVENESS_ITERATIONS = _parse_int_env(
    "RECOGNITION_LIVENESS_ITERATIONS", default=15, minimum=2
)
RECOGNITION_LIVENESS_INTERVAL_SECONDS = _get_float_env(
    "RECOGNITION_LIVENESS_INTERVAL_SECONDS", default=0.1, minimum=0.0
)
RECOGNITION_EAR_OPEN_THRESHOLD = _get_float_env(
    "RECOGNITION_EAR_OPEN_THRESHOLD", default=0.25, minimum=0.0
)
RECOGNITION_EAR_CLOSED_THRESHOLD = _get_float_env(
    "RECOGNITION_EAR_CLOSED_THRESHOLD", default=0.18, minimum=0.0
)
# Accumulated yaw (radians) required across the liveness window.
RECOGNITION_YAW_MOVEMENT_THRESHOLD = _get_float_env(
    "RECOGNITION_YAW_MOVEMENT_THRESHOLD", default=0.15, minimum=0.0
)

RECOGNITION_ENROLLMENT_ATTEMPTS = _parse_int_env(
    "RECOGNITION_ENROLLMENT_ATTEMPTS", default=5, minimum=1
)
RECOGNITION_ENROLLMENT_MIN_CAPTURES = _parse_int_env(
    "RECOGNITION_ENROLLMENT_MIN_CAPTURES", default=3, minimum=1
)
RECOGNITION_ENROLLMENT_INTERVAL_SECONDS = _get_float_env(
    "RECOGNITION_ENROLLMENT_INTERVAL_SECONDS", default=0.4, minimum=0.0
)

RECOGNITION_FACE_LOST_FRAMES = _parse_int_env(
    "RECOGNITION_FACE_LOST_FRAMES", default=15, minimum=1
)
RECOGNITION_VISITOR_MATCH_THRESHOLD = _get_float_env(
    "RECOGNITION_VISITOR_MATCH_THRESHOLD", default=0.45, minimum=0.0
)
# Consecutive liveness failures before the kiosk asks for a manual override.
RECOGNITION_LIVENESS_OVERRIDE_AFTER = _parse_int_env(
    "RECOGNITION_LIVENESS_OVERRIDE_AFTER", default=3, minimum=1
)
# Pause between kiosk loop cycles; keeps the face-lost debounce tied to frames.
RECOGNITION_CYCLE_INTERVAL_SECONDS = _get_float_env(
    "RECOGNITION_CYCLE_INTERVAL_SECONDS", default=0.05, minimum=0.0, maximum=5.0
)

RECOGNITION_DEEPFACE_MODEL = os.environ.get("RECOGNITION_DEEPFACE_MODEL", "Facenet")
RECOGNITION_DEEPFACE_DETECTOR = os.environ.get("RECOGNITION_DEEPFACE_DETECTOR", "opencv")
RECOGNITION_MIN_FACE_CONFIDENCE = _get_float_env(
    "RECOGNITION_MIN_FACE_CONFIDENCE", default=0.5, minimum=0.0, maximum=1.0
)
RECOGNITION_FACE_LANDMARKER_MODEL = os.environ.get(
    "RECOGNITION_FACE_LANDMARKER_MODEL", str(BASE_DIR / "models" / "face_landmarker.task")
)
RECOGNITION_CAMERA_SOURCE = _parse_int_env("RECOGNITION_CAMERA_SOURCE", default=0, minimum=0)
RECOGNITION_CAMERA_WARMUP_SECONDS = _get_float_env(
    "RECOGNITION_CAMERA_WARMUP_SECONDS", default=2.0, minimum=0.0
)

# --- Monitoring thresholds ---

RECOGNITION_CAMERA_START_ALERT_SECONDS = _get_float_env(
    "RECOGNITION_CAMERA_START_ALERT_SECONDS", default=3.0, minimum=0.0
)
RECOGNITION_FRAME_DELAY_ALERT_SECONDS = _get_float_env(
    "RECOGNITION_FRAME_DELAY_ALERT_SECONDS", default=0.75, minimum=0.0
)
RECOGNITION_LOOP_ALERT_SECONDS = _get_float_env(
    "RECOGNITION_LOOP_ALERT_SECONDS", default=2.5, minimum=0.0
)
RECOGNITION_HEALTH_ALERT_HISTORY = _parse_int_env(
    "RECOGNITION_HEALTH_ALERT_HISTORY", default=50, minimum=1
)

# --- Attendance summary ---

# Minutes after shift start before a first clock-in counts as late.
ATTENDANCE_LATE_GRACE_MINUTES = _parse_int_env(
    "ATTENDANCE_LATE_GRACE_MINUTES", default=10, minimum=0
)
