# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CAREFLOW_DATA_MODE = "db"
CAREFLOW_RECOMMENDER = {
    "ENDPOINT": "",
    "TIMEOUT_SECONDS": 25,
    "API_TOKEN": "",
}
