"""
Test settings: SQLite, in-memory cache and mail, eager Celery.
Set DATABASE_URL to a postgres URL to run the concurrency tests.
"""
import os

os.environ.setdefault("DEBUG", "True")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from .settings import *  # noqa: E402,F401,F403
from decouple import config  # noqa: E402
import dj_database_url  # noqa: E402

DATABASES = {
    "default": dj_database_url.parse(config("DATABASE_URL", default="sqlite://:memory:")),
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
DEFAULT_FROM_EMAIL = "noreply@racephoto.test"

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.InMemoryStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

MIDTRANS_SERVER_KEY = "SB-Mid-server-test"
MIDTRANS_CLIENT_KEY = "SB-Mid-client-test"
MIDTRANS_IS_PRODUCTION = False
MIDTRANS_ORDER_PREFIX = "RACEPHOTO"
MIDTRANS_VERIFY_STATUS_WITH_API = False

WITHDRAWAL_MINIMUM_AMOUNT = 50000

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "CRITICAL"},
}
