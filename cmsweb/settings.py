""" Django settings for cmsweb project."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Security -------------------------------------------------------------------
SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY",
    "django-insecure-please-change-me",
)
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

_default_allowed_hosts = "localhost 127.0.0.1 [::1] testserver"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", _default_allowed_hosts).split()

_csrf_origins = os.environ.get("DJANGO_CSRF_TRUSTED_ORIGINS", "")
if _csrf_origins:
    CSRF_TRUSTED_ORIGINS = [origin.strip() for origin in _csrf_origins.split(",") if origin.strip()]
else:
    CSRF_TRUSTED_ORIGINS: list[str] = []

# Fernet key protecting the stored two-factor configuration. When unset a
# throwaway key is generated, so stored configs do not survive a restart.
OTP_ENCRYPTION_KEY = os.environ.get("OTP_ENCRYPTION_KEY", "")
OTP_ENCRYPTION_KEY_CONFIGURED = bool(OTP_ENCRYPTION_KEY)
if not OTP_ENCRYPTION_KEY:
    from cryptography.fernet import Fernet

    OTP_ENCRYPTION_KEY = Fernet.generate_key().decode()

SITE_NAME = os.environ.get("SITE_NAME", "CMS Administrator")

# Application definition -----------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_otp",
    "django_otp.plugins.otp_static",
    "django_otp.plugins.otp_totp",
    "widget_tweaks",
    "cmsweb.core",
    "cmsweb.accounts",
    "cmsweb.admin_portal",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django_otp.middleware.OTPMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "cmsweb.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "cmsweb" / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                "django.template.context_processors.static",
            ],
        },
    }
]

WSGI_APPLICATION = "cmsweb.wsgi.application"

# Database -------------------------------------------------------------------

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}


# Password validation --------------------------------------------------------

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

# Internationalization -------------------------------------------------------
LANGUAGE_CODE = "en-gb"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

LANGUAGES = [
    ("en-gb", "English (United Kingdom)"),
    ("de-de", "Deutsch (Deutschland)"),
    ("fr-fr", "Français (France)"),
    ("nl-nl", "Nederlands (Nederland)"),
]

# Static files ---------------------------------------------------------------
STATIC_URL = "/statics/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": (
            "django.contrib.staticfiles.storage.StaticFilesStorage"
            if DEBUG
            else "whitenoise.storage.CompressedManifestStaticFilesStorage"
        ),
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Authentication -------------------------------------------------------------
LOGIN_URL = "/admin/login/"
LOGIN_REDIRECT_URL = "/profile/"

# Component parameters -------------------------------------------------------
# Defaults for ``cmsweb.core.config.ComponentParams``; ``ComponentSetting`` rows
# saved through the Django admin take precedence.
COMPONENT_PARAMS = {
    "com_users": {
        "change_login_name": os.environ.get("CMS_CHANGE_LOGIN_NAME", "0") == "1",
    },
    "system": {
        "multilanguage": os.environ.get("CMS_MULTILANGUAGE", "0") == "1",
        "content_languages": ["en-gb", "de-de"],
    },
}

# Two-factor authentication ---------------------------------------------------
OTP_TOTP_ISSUER = SITE_NAME
TWO_FACTOR_PROVIDERS = [
    "cmsweb.accounts.twofactor.TOTPProvider",
]
TWO_FACTOR_EMERGENCY_CODES = 10
