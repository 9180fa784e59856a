"""
Django settings for certmint_backend project.

- DRF + JWT (SimpleJWT)
- CORS Headers
- PostgreSQL via environment variables with a SQLite fallback for development
- Custom user model in `users.User`
"""

from datetime import timedelta
from pathlib import Path
import os

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "DJANGO_SECRET_KEY",
    "django-insecure-certmint-dev-only-5q!v@x3k#r8m2w7z0p$e1n6d9j4h",
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = _env_bool("DJANGO_DEBUG", True)

ALLOWED_HOSTS = (
    os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")
    if os.getenv("DJANGO_ALLOWED_HOSTS")
    else (["*"] if DEBUG else [])
)


INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "corsheaders",
    "django_filters",

    # Local apps
    "core",
    "users",
    "institutions",
    "certificates",
    "notifications",
    "backoffice",
    "audit",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # CORS must sit as high as possible, right after SecurityMiddleware
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "certmint_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "certmint_backend.wsgi.application"


# Database
if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER", "postgres"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": 60,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }


AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 6},
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


LANGUAGE_CODE = "en-us"

TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")

USE_I18N = True

USE_TZ = True


STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Onboarding documents and issuer logos
MEDIA_URL = "/media/"
MEDIA_ROOT = Path(os.getenv("DJANGO_MEDIA_ROOT", str(BASE_DIR / "media")))

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "certmint_backend.authentication.CertmintJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "EXCEPTION_HANDLER": "core.exception_handler.service_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "login_ip": os.getenv("LOGIN_IP_THROTTLE_RATE_DEFAULT", "30/min"),
        "login_email": os.getenv("LOGIN_EMAIL_THROTTLE_RATE_DEFAULT", "10/min"),
        "signup_ip": os.getenv("SIGNUP_IP_THROTTLE_RATE_DEFAULT", "30/hour"),
        "public_certificate": os.getenv("PUBLIC_CERTIFICATE_THROTTLE_RATE_DEFAULT", "120/min"),
    },
}

# Explicit overrides read by the throttle classes
LOGIN_IP_THROTTLE_RATE = os.getenv("LOGIN_IP_THROTTLE_RATE", "")
LOGIN_EMAIL_THROTTLE_RATE = os.getenv("LOGIN_EMAIL_THROTTLE_RATE", "")
SIGNUP_IP_THROTTLE_RATE = os.getenv("SIGNUP_IP_THROTTLE_RATE", "")
PUBLIC_CERTIFICATE_THROTTLE_RATE = os.getenv("PUBLIC_CERTIFICATE_THROTTLE_RATE", "")

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "60"))
    ),
    "REFRESH_TOKEN_LIFETIME": timedelta(
        days=int(os.getenv("JWT_REFRESH_TOKEN_DAYS", "7"))
    ),
}

# CORS
CORS_ALLOWED_ORIGINS = [
    origin
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]

if DEBUG and not CORS_ALLOWED_ORIGINS:
    CORS_ALLOW_ALL_ORIGINS = True

AUTH_USER_MODEL = "users.User"


# Attestation service
ATTESTATION_SERVICE_URL = os.getenv("ATTESTATION_SERVICE_URL", "")
ATTESTATION_BACKEND = os.getenv(
    "ATTESTATION_BACKEND",
    "certificates.attestation.HttpAttestationBackend"
    if ATTESTATION_SERVICE_URL
    else "certificates.attestation.LocalAttestationBackend",
)
ATTESTATION_SERVICE_TOKEN = os.getenv("ATTESTATION_SERVICE_TOKEN", "")
ATTESTATION_TIMEOUT_SECONDS = float(os.getenv("ATTESTATION_TIMEOUT_SECONDS", "10"))

# Default admin created by `manage.py seed_admin`
CERTMINT_ADMIN_EMAIL = os.getenv("CERTMINT_ADMIN_EMAIL", "")
CERTMINT_ADMIN_PASSWORD = os.getenv("CERTMINT_ADMIN_PASSWORD", "")

# Approved institutions log in with their email as initial password. When
# enabled, they must change it before using any other endpoint.
ONBOARDING_FORCE_PASSWORD_CHANGE = _env_bool("ONBOARDING_FORCE_PASSWORD_CHANGE", False)

NOTIFICATIONS_MAX_LIMIT = int(os.getenv("NOTIFICATIONS_MAX_LIMIT", "200"))


# Logging
CERTMINT_LOG_LEVEL = os.getenv("CERTMINT_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        app: {
            "handlers": ["console"],
            "level": CERTMINT_LOG_LEVEL,
            "propagate": False,
        }
        for app in ("users", "institutions", "certificates", "notifications", "backoffice", "audit", "core")
    },
}
