from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "menu",
    "orders",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "kuring.middleware.ApiErrorMiddleware",
]

ROOT_URLCONF = "kuring.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
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

WSGI_APPLICATION = "kuring.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "id"
TIME_ZONE = "Asia/Jakarta"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "/media/"
MEDIA_ROOT = Path(os.getenv("MEDIA_ROOT", str(BASE_DIR / "media")))

# Email
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "25"))
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = os.getenv("EMAIL_USE_TLS", "false").lower() in ("1", "true", "yes")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "noreply@kuring.cafe")
EMAIL_FAIL_SILENTLY = True
PAYMENTS_ADMIN_EMAILS = os.getenv("PAYMENTS_ADMIN_EMAILS", "")

# Staff (cashier / kitchen) bearer tokens
STAFF_JWT_SECRET = os.getenv("STAFF_JWT_SECRET", SECRET_KEY)

# Order pricing
ORDER_TAX_RATE = float(os.getenv("ORDER_TAX_RATE", "0.10"))
ORDER_SERVICE_FEE_RATE = float(os.getenv("ORDER_SERVICE_FEE_RATE", "0.05"))
ORDER_MINIMUM_TOTAL = int(os.getenv("ORDER_MINIMUM_TOTAL", "1000"))

# Payment instructions
PAYMENT_MERCHANT_NAME = os.getenv("PAYMENT_MERCHANT_NAME", "Cirebon Kuring Cafe")
PAYMENT_QRIS_PAYLOAD = os.getenv(
    "PAYMENT_QRIS_PAYLOAD",
    "00020101021126580011ID.LINKAJA.WWW01189360050300000898240214540123456789"
    "015303360540485000.005802ID5912Cirebon Kuring6010Kuningan9062070703A0163041C6B",
)
PAYMENT_QRIS_EXPIRY_MINUTES = int(os.getenv("PAYMENT_QRIS_EXPIRY_MINUTES", "15"))
PAYMENT_TRANSFER_EXPIRY_HOURS = int(os.getenv("PAYMENT_TRANSFER_EXPIRY_HOURS", "24"))
PAYMENT_CASH_EXPIRY_MINUTES = int(os.getenv("PAYMENT_CASH_EXPIRY_MINUTES", "60"))
PAYMENT_BANK_ACCOUNTS = [
    {
        "bank_code": "BCA",
        "bank_name": "Bank Central Asia (BCA)",
        "account_number": os.getenv("PAYMENT_BCA_ACCOUNT", "1234567890"),
        "account_name": PAYMENT_MERCHANT_NAME,
    },
    {
        "bank_code": "MANDIRI",
        "bank_name": "Bank Mandiri",
        "account_number": os.getenv("PAYMENT_MANDIRI_ACCOUNT", "0987654321"),
        "account_name": PAYMENT_MERCHANT_NAME,
    },
    {
        "bank_code": "BNI",
        "bank_name": "Bank Negara Indonesia (BNI)",
        "account_number": os.getenv("PAYMENT_BNI_ACCOUNT", "5555666677"),
        "account_name": PAYMENT_MERCHANT_NAME,
    },
]

# Payment proof uploads
PAYMENT_PROOF_UPLOAD_DIR = "payment-proofs"
PAYMENT_PROOF_MAX_BYTES = 5 * 1024 * 1024
PAYMENT_PROOF_ALLOWED_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]
FILE_UPLOAD_MAX_MEMORY_SIZE = PAYMENT_PROOF_MAX_BYTES

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "kuring": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "orders": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "payments": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "tableside": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
