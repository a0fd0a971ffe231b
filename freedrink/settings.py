"""
Django settings for freedrink project.
"""

from pathlib import Path
import os

from dotenv import load_dotenv
import dj_database_url

# -------------------------------------------------------------------
# BASE + ENV LOADING
# -------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# Local development: values come from .env.
# Deployed: plain environment variables win.
load_dotenv(BASE_DIR / ".env")

# -------------------------------------------------------------------
# CORE SECURITY / DEBUG
# -------------------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-prod")

DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# e.g. ALLOWED_HOSTS=freedrink.example.com,localhost,127.0.0.1
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

_csrf_env = os.getenv("CSRF_TRUSTED_ORIGINS", "")
if _csrf_env:
    CSRF_TRUSTED_ORIGINS = [
        x.strip() for x in _csrf_env.split(",") if x.strip()
    ]
else:
    CSRF_TRUSTED_ORIGINS = []


# -------------------------------------------------------------------
# DJANGO APPS / MIDDLEWARE
# -------------------------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "claims.apps.ClaimsConfig",
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

ROOT_URLCONF = "freedrink.urls"

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

WSGI_APPLICATION = "freedrink.wsgi.application"


# -------------------------------------------------------------------
# DATABASE (SQLite for local, Postgres/other for deploy)
# -------------------------------------------------------------------
# DATABASE_URL env set chesthe adhi use avuthundi.
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

# SQLite has no row locks: BEGIN IMMEDIATE serializes writers so that
# redeem / claim transactions queue on the busy timeout instead of failing.
if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    DATABASES["default"].setdefault("OPTIONS", {}).update(
        {"transaction_mode": "IMMEDIATE", "timeout": 20}
    )


# -------------------------------------------------------------------
# AUTH / PASSWORDS
# -------------------------------------------------------------------
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# -------------------------------------------------------------------
# I18N / TIMEZONE
# -------------------------------------------------------------------
# "Local day" for per-day dedup, the `today` stats window and hour buckets
# all follow TIME_ZONE.
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True


# -------------------------------------------------------------------
# STATIC FILES
# -------------------------------------------------------------------
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# -------------------------------------------------------------------
# CLAIMS / REDEMPTION
# -------------------------------------------------------------------
CLAIM_LEGAL_AGE = int(os.getenv("CLAIM_LEGAL_AGE", "18"))
CLAIM_TOKEN_TTL_HOURS = int(os.getenv("CLAIM_TOKEN_TTL_HOURS", "6"))
CLAIM_RECENT_LIMIT = int(os.getenv("CLAIM_RECENT_LIMIT", "50"))
CLAIM_DEFAULT_SOURCE = os.getenv("CLAIM_DEFAULT_SOURCE", "poster")
CLAIM_DEFAULT_STAFF_ID = os.getenv("CLAIM_DEFAULT_STAFF_ID", "staff")


# -------------------------------------------------------------------
# LOGGING
# -------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "claims": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}


# -------------------------------------------------------------------
# SECURITY / PROXY
# -------------------------------------------------------------------
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

if DEBUG:
    CSRF_COOKIE_SECURE = False
    SESSION_COOKIE_SECURE = False
else:
    CSRF_COOKIE_SECURE = True
    SESSION_COOKIE_SECURE = True
