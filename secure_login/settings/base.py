"""
Base settings for secure_login project.
This file contains settings common to all environments.
"""

from pathlib import Path
from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config('SECRET_KEY', default='django-insecure-change-me-in-production')

DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config(
    'ALLOWED_HOSTS',
    default='localhost,127.0.0.1',
    cast=lambda v: [s.strip() for s in v.split(',')]
)

# Application definition
DJANGO_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
]

THIRD_PARTY_APPS = [
    'rest_framework',
    'corsheaders',
]

LOCAL_APPS = [
    'secure_login.core.apps.CoreConfig',
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'secure_login.core.utils.correlation.CorrelationIDMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'secure_login.urls'

WSGI_APPLICATION = 'secure_login.wsgi.application'

TEMPLATES = [
    {
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
    },
]

# Database
# Every store call is bounded by the connect and statement timeouts below.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='secure_login'),
        'USER': config('DB_USER', default='postgres'),
        'PASSWORD': config('DB_PASSWORD', default='postgres'),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'OPTIONS': {
            'connect_timeout': config('DB_CONNECT_TIMEOUT', default=5, cast=int),
            'options': '-c default_transaction_isolation=read_committed '
                       '-c statement_timeout={}'.format(config('DB_STATEMENT_TIMEOUT_MS', default=5000, cast=int)),
            'sslmode': config('DB_SSL_MODE', default='prefer'),
            'application_name': 'secure_login',
        },
        'CONN_MAX_AGE': config('DB_CONN_MAX_AGE', default=300, cast=int),
        'CONN_HEALTH_CHECKS': True,
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Redis cache; holds the code attempt counters.
CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': config('REDIS_URL', default='redis://localhost:6379/1'),
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            'CONNECTION_POOL_KWARGS': {
                'max_connections': 100,
                'retry_on_timeout': True,
                'health_check_interval': 30,
                'socket_timeout': 5,
                'socket_connect_timeout': 5,
            },
            # Limiter must fail closed when Redis is down.
            'IGNORE_EXCEPTIONS': False,
        },
        'KEY_PREFIX': 'secure_login',
        'TIMEOUT': 300,
    },
}

AUTH_USER_MODEL = 'core.Account'

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 12,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.Argon2PasswordHasher',
    'django.contrib.auth.hashers.PBKDF2PasswordHasher',
    'django.contrib.auth.hashers.PBKDF2SHA1PasswordHasher',
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='UTC')
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'secure_login.core.authentication.SessionTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.FormParser',
    ],
    'DEFAULT_THROTTLE_RATES': {
        'anon': config('API_ANON_THROTTLE_RATE', default='100/hour'),
    },
}

# CORS settings
CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:3000,http://127.0.0.1:3000',
    cast=lambda v: [s.strip() for s in v.split(',')]
)

CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'authorization',
    'content-type',
    'x-correlation-id',
    'x-request-id',
]

# Security settings
SECURE_BROWSER_XSS_FILTER = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# Secure Login: TOTP
SECURE_LOGIN_TOTP_ISSUER = config('SECURE_LOGIN_TOTP_ISSUER', default='CompanySecureLogin')
SECURE_LOGIN_TOTP_DIGITS = config('SECURE_LOGIN_TOTP_DIGITS', default=6, cast=int)
SECURE_LOGIN_TOTP_INTERVAL = config('SECURE_LOGIN_TOTP_INTERVAL', default=30, cast=int)
SECURE_LOGIN_TOTP_VALID_WINDOW = config('SECURE_LOGIN_TOTP_VALID_WINDOW', default=1, cast=int)

# Secure Login: code lockout
SECURE_LOGIN_CODE_MAX_FAILURES = config('SECURE_LOGIN_CODE_MAX_FAILURES', default=5, cast=int)
SECURE_LOGIN_CODE_FAILURE_WINDOW = config('SECURE_LOGIN_CODE_FAILURE_WINDOW', default=600, cast=int)  # 10 minutes

# Secure Login: login attempts and sessions
SECURE_LOGIN_LOGIN_ATTEMPT_TTL = config('SECURE_LOGIN_LOGIN_ATTEMPT_TTL', default=300, cast=int)  # 5 minutes
SECURE_LOGIN_SESSION_LIFETIME = config('SECURE_LOGIN_SESSION_LIFETIME', default=28800, cast=int)  # 8 hours

# Secure Login: biometric capture
SECURE_LOGIN_BIOMETRIC_GATEWAY = config(
    'SECURE_LOGIN_BIOMETRIC_GATEWAY',
    default='secure_login.core.services.biometric_gateway.PassThroughBiometricGateway'
)
SECURE_LOGIN_BIOMETRIC_CAPTURE_TIMEOUT = config('SECURE_LOGIN_BIOMETRIC_CAPTURE_TIMEOUT', default=30, cast=int)
SECURE_LOGIN_BIOMETRIC_MAX_PAYLOAD = config('SECURE_LOGIN_BIOMETRIC_MAX_PAYLOAD', default=5 * 1024 * 1024, cast=int)

# Secure Login: encryption of secrets at rest
SECURE_LOGIN_ENCRYPTION_ITERATIONS = config('SECURE_LOGIN_ENCRYPTION_ITERATIONS', default=100000, cast=int)

# Logging configuration with correlation ID support
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} [{correlation_id}] {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} [{correlation_id}] {message}',
            'style': '{',
        },
    },
    'filters': {
        'correlation_id': {
            '()': 'secure_login.core.utils.correlation.CorrelationIDFilter',
        },
    },
    'handlers': {
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
            'filters': ['correlation_id'],
        },
        'security': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
            'filters': ['correlation_id'],
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'secure_login': {
            'handlers': ['console'],
            'level': config('SECURE_LOGIN_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'secure_login.security': {
            'handlers': ['security'],
            'level': 'INFO',
            'propagate': False,
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
}
