from pathlib import Path
import os
import environ
from datetime import timedelta
from decimal import Decimal

BASE_DIR = Path(__file__).resolve().parent.parent
env = environ.Env()
environ.Env.read_env(os.path.join(BASE_DIR.parent, '.env'))

SECRET_KEY = env('DJANGO_SECRET_KEY', default='dev-secret')
DEBUG = env.bool('DJANGO_DEBUG', default=True)
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['*'])

INSTALLED_APPS = [
    'django.contrib.admin','django.contrib.auth','django.contrib.contenttypes',
    'django.contrib.sessions','django.contrib.messages','django.contrib.staticfiles',
    'rest_framework','corsheaders','django_filters',
    'core','accounts','vehicles','bookings','payments','commissions',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'
WSGI_APPLICATION = 'config.wsgi.application'

TEMPLATES = [{
    'BACKEND': 'django.template.backends.django.DjangoTemplates',
    'DIRS': [],
    'APP_DIRS': True,
    'OPTIONS': {
        'context_processors': [
            'django.template.context_processors.debug',
            'django.template.context_processors.request',
            'django.contrib.auth.context_processors.auth',
            'django.contrib.messages.context_processors.messages',
        ],
    },
}]

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

AUTH_USER_MODEL = 'accounts.User'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.OrderingFilter',
    ),
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=30),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'AUTH_HEADER_TYPES': ('Bearer',),
}

CORS_ALLOW_ALL_ORIGINS = env.bool('CORS_ALLOW_ALL_ORIGINS', default=True)
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[])

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
TIME_ZONE = env('TIME_ZONE', default='Asia/Manila')
USE_TZ = True

FRONTEND_URL = env('FRONTEND_URL', default='http://localhost:3000')
EMAIL_BACKEND = env('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')
DEFAULT_FROM_EMAIL = env('DEFAULT_FROM_EMAIL', default='JuanRide <notifications@juanride.app>')

# Payment gateway (PayMongo). The secret key is only read by the gateway
# client and the webhook verifier.
PAYMONGO_SECRET_KEY = env('PAYMONGO_SECRET_KEY', default='')
PAYMONGO_API_BASE = env('PAYMONGO_API_BASE', default='https://api.paymongo.com/v1')
PAYMONGO_API_VERSION = env('PAYMONGO_API_VERSION', default='2024-03-15')
PAYMONGO_TIMEOUT_SECONDS = env.float('PAYMONGO_TIMEOUT_SECONDS', default=15.0)
PAYMONGO_RETRY_BACKOFF_SECONDS = env.float('PAYMONGO_RETRY_BACKOFF_SECONDS', default=0.3)
PAYMONGO_WEBHOOK_TOLERANCE_SECONDS = env.int('PAYMONGO_WEBHOOK_TOLERANCE_SECONDS', default=300)

PAYMENT_CURRENCY = env('PAYMENT_CURRENCY', default='PHP')
PAYMENT_STATEMENT_DESCRIPTOR = env('PAYMENT_STATEMENT_DESCRIPTOR', default='JuanRide Rental')
PAYMENT_RETURN_URL = env('PAYMENT_RETURN_URL', default=f"{FRONTEND_URL.rstrip('/')}/payment")
QR_PAYMENT_TIMEOUT_MINUTES = env.int('QR_PAYMENT_TIMEOUT_MINUTES', default=10)

DEFAULT_COMMISSION_PERCENTAGE = Decimal(env('DEFAULT_COMMISSION_PERCENTAGE', default='10.00'))
