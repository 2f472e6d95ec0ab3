import tempfile

from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'
STAFF_JWT_SECRET = 'test-staff-secret'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
PAYMENTS_ADMIN_EMAILS = 'cashier@kuring.test'

MEDIA_ROOT = tempfile.mkdtemp(prefix='kuring-media-')
