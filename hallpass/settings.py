"""Django settings for the Hall Pass project.

Values that differ between environments are read from the environment so the
same module serves development, tests and production.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name, default=""):
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "django-insecure-hallpass-dev-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "accounts.apps.AccountsConfig",
    "core.apps.CoreConfig",
    "classrooms.apps.ClassroomsConfig",
    "students.apps.StudentsConfig",
    "messaging.apps.MessagingConfig",
    "points.apps.PointsConfig",
    "stories.apps.StoriesConfig",
    "dashboard.apps.DashboardConfig",
    "reports.apps.ReportsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "accounts.middleware.SessionUserMiddleware",
    "accounts.middleware.AccountGateMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "hallpass.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                "classrooms.context_processors.classroom_context",
            ],
        },
    },
]

WSGI_APPLICATION = "hallpass.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("HALLPASS_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

AUTH_USER_MODEL = "accounts.CustomUser"

AUTHENTICATION_BACKENDS = [
    "accounts.backends.EmailOrUsernameModelBackend",
]

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 6},
    },
]

LOGIN_URL = "accounts:signin"
LOGIN_REDIRECT_URL = "dashboard:dashboard"
LOGOUT_REDIRECT_URL = "accounts:signin"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("HALLPASS_TIME_ZONE", "America/Chicago")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Email
EMAIL_BACKEND = os.environ.get(
    "DJANGO_EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend"
)
EMAIL_HOST = os.environ.get("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "587"))
EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = _env_bool("EMAIL_USE_TLS", True)
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "Hall Pass <noreply@hallpassedu.com>")

# Hall Pass
HALLPASS_PUBLIC_URL = os.environ.get("HALLPASS_PUBLIC_URL", "https://hallpassedu.com")
HALLPASS_SESSION_COOKIE_MARKERS = _env_list(
    "HALLPASS_SESSION_COOKIE_MARKERS", "sessionid,sb-,hallpass"
)
HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN = os.environ.get(
    "HALLPASS_ADMIN_WITHOUT_LEVEL_SCREEN", "admin"
)
HALLPASS_MESSAGE_EMAILS = _env_bool("HALLPASS_MESSAGE_EMAILS", True)
HALLPASS_POINT_MILESTONES = {
    25: "Rising Star",
    50: "Super Star",
    100: "Classroom Champion",
}
HALLPASS_SESSION_RETRY_ATTEMPTS = int(os.environ.get("HALLPASS_SESSION_RETRY_ATTEMPTS", "3"))
HALLPASS_SESSION_RETRY_BACKOFF = float(os.environ.get("HALLPASS_SESSION_RETRY_BACKOFF", "0.1"))
EMAIL_CONFIRM_MAX_AGE_DAYS = 7
HALLPASS_REQUIRE_EMAIL_CONFIRMATION = _env_bool("HALLPASS_REQUIRE_EMAIL_CONFIRMATION", False)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "hallpass": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "hallpass",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        name: {
            "handlers": ["console"],
            "level": os.environ.get("HALLPASS_LOG_LEVEL", "INFO"),
            "propagate": False,
        }
        for name in (
            "accounts",
            "core",
            "classrooms",
            "students",
            "messaging",
            "points",
            "stories",
            "dashboard",
            "reports",
        )
    },
}
