"""
Django settings for the Canvassing Monitor backend.

Uses PostgreSQL as the database and django-rest-framework for the API layer.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')

DEBUG = os.environ.get('DEBUG', 'True').lower() in ('true', '1', 'yes')

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',
    'rest_framework',
    'corsheaders',
    'canvassing',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

# Don't redirect to add trailing slashes; API clients send exact URLs
APPEND_SLASH = False

ROOT_URLCONF = 'canvassing_monitor.urls'

WSGI_APPLICATION = 'canvassing_monitor.wsgi.application'

# Database: PostgreSQL in production, SQLite for local dev
DB_ENGINE = os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3')

if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', 'canvassing_monitor'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', 'postgres'),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }

STATIC_URL = '/static/'

# Uploaded screenshots live under MEDIA_ROOT/<SCREENSHOT_DIR>/
MEDIA_ROOT = Path(os.environ.get('MEDIA_ROOT', BASE_DIR / 'media'))
MEDIA_URL = '/media/'

# CORS
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = [
    'http://localhost:5173',
    'http://localhost:3000',
    'http://127.0.0.1:5173',
]

# DRF
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PAGINATION_CLASS': None,
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
}

# OCR configuration
OCR_PROVIDER = os.environ.get('OCR_PROVIDER', 'ocr_space')  # "ocr_space" or "mock"
OCR_SPACE_API_KEY = os.environ.get('OCR_SPACE_API_KEY', '')
OCR_SPACE_URL = os.environ.get('OCR_SPACE_URL', 'https://api.ocr.space/parse/image')
OCR_LANGUAGE = os.environ.get('OCR_LANGUAGE', 'eng')  # works well for mixed Indonesian/English text
OCR_ENGINE = int(os.environ.get('OCR_ENGINE', '2'))
OCR_TIMEOUT_SECONDS = int(os.environ.get('OCR_TIMEOUT_SECONDS', '30'))
OCR_MOCK_TEXT = os.environ.get('OCR_MOCK_TEXT', '')

# Upload policy
SCREENSHOT_DIR = os.environ.get('SCREENSHOT_DIR', 'screenshots')
MAX_SCREENSHOT_MB = int(os.environ.get('MAX_SCREENSHOT_MB', '10'))
CANVASSING_CATEGORIES = os.environ.get(
    'CANVASSING_CATEGORIES', 'umkm_fb,coffee_shop,restoran'
).split(',')
DAILY_UPLOAD_TARGET = int(os.environ.get('DAILY_UPLOAD_TARGET', '50'))

# Follow-up days are counted in the field team's local calendar
USE_TZ = True
TIME_ZONE = os.environ.get('TIME_ZONE', 'Asia/Jakarta')

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
}
