"""
Settings for the test run: in-memory SQLite, fast hashing, quiet logs.
"""
from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

SCORING = {**SCORING, 'PROPAGATE_SITE_METRICS': True}  # noqa: F405

LOGGING['root']['level'] = 'CRITICAL'  # noqa: F405
