"""Development settings for the reservation engine.

This module extends the base settings with development specific
configuration, such as enabling debug and allowing all hosts. With
DEBUG on the Kaspi gateway runs in emulation mode. Do not use these
settings in production!
"""

from .base import *  # noqa: F401,F403

# Enable debug mode for development
DEBUG = True

# Allow all hosts in development
ALLOWED_HOSTS = ['*']

# Browsable API for local debugging
REST_FRAMEWORK['DEFAULT_AUTHENTICATION_CLASSES'] = [  # noqa: F405
    'rest_framework_simplejwt.authentication.JWTAuthentication',
    'rest_framework.authentication.SessionAuthentication',
]
