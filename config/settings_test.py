"""
Settings for the test suite.

Supplies defaults for the required environment so tests run without a .env
file, then swaps external services for in-process ones.
"""
import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')
os.environ.setdefault('DATABASE_URL', 'sqlite://:memory:')
os.environ.setdefault('REDIS_URL', 'redis://localhost:6379/0')
os.environ.setdefault('CELERY_BROKER_URL', 'memory://')
os.environ.setdefault('CELERY_RESULT_BACKEND', 'cache+memory://')
os.environ.setdefault('JWT_SECRET_KEY', 'tEsT-jwt-KEY-0123456789-abcdefghijklmnopqrstuv')
os.environ.setdefault('APP_ENVIRONMENT', 'development')
os.environ.setdefault('DEBUG', 'False')

from config.settings import *  # noqa: E402,F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'oblivion-tests',
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

SECURE_SSL_REDIRECT = False
SENTRY_DSN = None

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
