"""
Environment Configuration for the Task Manager backend

Centralized access to environment variables for:
- Flask / MongoDB settings
- JWT and auth cookie settings
- Password reset and SMTP email settings
- Rate limiting and seed admin credentials
"""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Flask / MongoDB
SECRET_KEY = os.environ.get('SECRET_KEY', 'task-manager-secret-key-change-me')
MONGO_URI = os.environ.get('MONGO_URI', 'mongodb://localhost:27017/task_manager')
ENVIRONMENT = os.environ.get('FLASK_ENV', 'development')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# JWT / auth cookie
JWT_SECRET = os.environ.get('JWT_SECRET', SECRET_KEY)
JWT_ALGORITHM = 'HS256'
JWT_EXPIRATION_DELTA = timedelta(days=1)
JWT_REMEMBER_ME_DELTA = timedelta(days=30)
AUTH_COOKIE_NAME = os.environ.get('AUTH_COOKIE_NAME', 'tm_session')
COOKIE_SECURE = _env_flag('COOKIE_SECURE', ENVIRONMENT == 'production')

# Password reset
RESET_PASSWORD_EXP_MINUTES = int(os.environ.get('RESET_PASSWORD_EXP_MINUTES', '10'))
RESET_PAGE_BASE_URL = os.environ.get('RESET_PAGE_BASE_URL', 'http://localhost:5173/reset-password')

# CORS
CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(',') if o.strip()]

# SMTP
SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
SMTP_PORT = int(os.environ.get('SMTP_PORT', '465'))
SMTP_USER = os.environ.get('SMTP_USER', '')
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
SMTP_SENDER = os.environ.get('SMTP_SENDER', SMTP_USER or 'no-reply@taskmanager.local')

# Rate limiting
RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', True)
RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

# Seed admin
SEED_ADMIN_EMAIL = os.environ.get('SEED_ADMIN_EMAIL', 'admin@tm.com')
SEED_ADMIN_PASSWORD = os.environ.get('SEED_ADMIN_PASSWORD', 'Admin@123')


def as_flask_config():
    """Mapping loaded into app.config by the application factory."""
    return {
        'SECRET_KEY': SECRET_KEY,
        'MONGO_URI': MONGO_URI,
        'ENVIRONMENT': ENVIRONMENT,
        'LOG_LEVEL': LOG_LEVEL,
        'JWT_SECRET': JWT_SECRET,
        'JWT_ALGORITHM': JWT_ALGORITHM,
        'JWT_EXPIRATION_DELTA': JWT_EXPIRATION_DELTA,
        'JWT_REMEMBER_ME_DELTA': JWT_REMEMBER_ME_DELTA,
        'AUTH_COOKIE_NAME': AUTH_COOKIE_NAME,
        'COOKIE_SECURE': COOKIE_SECURE,
        'RESET_PASSWORD_EXP_MINUTES': RESET_PASSWORD_EXP_MINUTES,
        'RESET_PAGE_BASE_URL': RESET_PAGE_BASE_URL,
        'CORS_ORIGINS': CORS_ORIGINS,
        'SMTP_HOST': SMTP_HOST,
        'SMTP_PORT': SMTP_PORT,
        'SMTP_USER': SMTP_USER,
        'SMTP_PASSWORD': SMTP_PASSWORD,
        'SMTP_SENDER': SMTP_SENDER,
        'RATELIMIT_ENABLED': RATELIMIT_ENABLED,
        'RATELIMIT_STORAGE_URI': RATELIMIT_STORAGE_URI,
        'SEED_ADMIN_EMAIL': SEED_ADMIN_EMAIL,
        'SEED_ADMIN_PASSWORD': SEED_ADMIN_PASSWORD,
    }
