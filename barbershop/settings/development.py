from .base import *

DEBUG = True

INTERNAL_IPS = ['127.0.0.1']

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Relax axes in dev
AXES_ENABLED = False

SITE_URL = 'http://127.0.0.1:8000'

LOGGING['loggers']['apps']['level'] = 'DEBUG'
