"""
Test settings for meeting_scheduler project.
"""
from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'meeting-scheduler-test',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

# Run tasks inline
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []

ZOOM_CLIENT_ID = 'zoom-client-id'
ZOOM_CLIENT_SECRET = 'zoom-client-secret'
GOOGLE_OAUTH_CLIENT_ID = 'google-client-id'
GOOGLE_OAUTH_CLIENT_SECRET = 'google-client-secret'

# Console logging only
LOGGING['root']['handlers'] = ['console']
LOGGING['loggers']['django']['handlers'] = ['console']
LOGGING['loggers']['celery']['handlers'] = ['console']
LOGGING['loggers']['apps']['handlers'] = ['console']
LOGGING['handlers'].pop('file')
LOGGING['handlers']['console']['level'] = 'WARNING'
