"""
B-Sphere - Configuration
Application configuration management
"""
import os
import logging
import tempfile
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

# Monorepo layout: <repo>/apps/bsphere/config.py -> BASE_DIR=<repo>
_THIS_DIR = Path(__file__).parent.resolve()
_MONOREPO_ROOT = _THIS_DIR.parent.parent
if (_MONOREPO_ROOT / 'apps' / 'bsphere').exists():
    BASE_DIR = _MONOREPO_ROOT.resolve()
else:
    BASE_DIR = _THIS_DIR


def _require_env(name: str, default: str = None, allow_default_in_dev: bool = True) -> str:
    """
    Get environment variable, failing loudly in production if not set.

    Args:
        name: Environment variable name
        default: Default value (only used in development)
        allow_default_in_dev: Whether to allow default in development mode

    Returns:
        The environment variable value

    Raises:
        RuntimeError: If variable is not set in production
    """
    value = os.getenv(name)
    is_production = os.getenv('FLASK_ENV', 'development') == 'production'

    if value:
        return value

    if is_production:
        if default is None or name in ('SECRET_KEY', 'JWT_SECRET_KEY'):
            raise RuntimeError(
                f"SECURITY ERROR: {name} environment variable is required in production."
            )
        logging.warning("Using default value for %s in production - consider setting explicitly", name)
        return default

    if default is not None and allow_default_in_dev:
        logging.debug("Using default value for %s in development", name)
        return default

    raise RuntimeError(f"{name} environment variable is required")


def get_database_url():
    """
    Get and process the database URL.
    - Converts postgres:// to postgresql:// (SQLAlchemy requirement)
    - Forces sslmode=require for PostgreSQL
    - Falls back to a local SQLite file when DATABASE_URL is unset
    """
    url = os.getenv('DATABASE_URL')

    if not url:
        fallback = f"sqlite:///{BASE_DIR / 'bsphere.db'}"
        logging.warning("DATABASE_URL not set; using fallback %s", fallback)
        return fallback

    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)

    if url.startswith('postgresql://'):
        try:
            parsed = urlparse(url)
            query_params = parse_qs(parsed.query)
            if 'sslmode' not in query_params:
                query_params['sslmode'] = ['require']
            new_query = urlencode(query_params, doseq=True)
            url = urlunparse((
                parsed.scheme,
                parsed.netloc,
                parsed.path,
                parsed.params,
                new_query,
                parsed.fragment
            ))
        except ValueError as e:
            # Special characters in the password can break urlparse
            logging.warning("Could not parse DATABASE_URL: %s", e)
            if 'sslmode=' not in url:
                separator = '&' if '?' in url else '?'
                url = f"{url}{separator}sslmode=require"

    return url


def get_engine_options():
    """SQLAlchemy engine options based on the database type."""
    db_url = get_database_url()

    options = {
        'pool_pre_ping': True,
    }

    if db_url.startswith('postgresql://'):
        options.update({
            'pool_recycle': 300,
            'pool_timeout': 20,
            'pool_size': 5,
            'max_overflow': 5,
            'connect_args': {
                'connect_timeout': 20,
                'application_name': 'bsphere-api',
            }
        })

    if db_url.startswith('sqlite://'):
        from sqlalchemy.pool import NullPool
        options = {'poolclass': NullPool}

    return options


class Config:
    """Base configuration"""

    # Flask - SECRET_KEY is REQUIRED in production
    SECRET_KEY = _require_env('SECRET_KEY', 'dev-secret-key-for-local-development-only')
    DEBUG = os.getenv('DEBUG', 'False') == 'True'
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    # Database
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options()

    # Supabase Storage (REST API; local filesystem is used when not configured)
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_SERVICE_KEY = os.getenv('SUPABASE_SERVICE_KEY', '')
    SUPABASE_STORAGE_BUCKET = os.getenv('SUPABASE_STORAGE_BUCKET', 'bsphere-files')
    FORCE_SUPABASE_STORAGE = os.getenv('FORCE_SUPABASE_STORAGE', 'false')

    # JWT - JWT_SECRET_KEY is REQUIRED in production
    JWT_SECRET_KEY = _require_env('JWT_SECRET_KEY', 'jwt-dev-secret-for-local-development-only')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        seconds=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))
    )
    JWT_ALGORITHM = 'HS256'
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_ACCESS_COOKIE_NAME = 'token'
    JWT_ACCESS_COOKIE_PATH = '/'
    JWT_COOKIE_SECURE = (os.getenv('JWT_COOKIE_SECURE', 'False' if DEBUG else 'True') == 'True')
    JWT_COOKIE_SAMESITE = os.getenv('JWT_COOKIE_SAMESITE', 'Lax')
    JWT_COOKIE_CSRF_PROTECT = (os.getenv('JWT_COOKIE_CSRF_PROTECT', 'False') == 'True')

    # Rate Limiting
    RATELIMIT_ENABLED = os.getenv('RATELIMIT_ENABLED', 'True') == 'True'
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '1000 per day, 300 per hour')
    RATELIMIT_HEADERS_ENABLED = True

    # File Uploads
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_FILE_SIZE', 10 * 1024 * 1024))  # 10MB request cap
    RESIDENT_FILE_MAX_MB = int(os.getenv('RESIDENT_FILE_MAX_MB', 5))
    UPLOAD_FOLDER = BASE_DIR / os.getenv('UPLOAD_FOLDER', 'uploads')

    # Email Configuration
    # SendGrid API (production), SMTP (development)
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY', '')
    SMTP_SERVER = os.getenv('SMTP_SERVER', '')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME', '')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD', '')
    FROM_EMAIL = os.getenv('FROM_EMAIL', '')

    # One-time passwords
    ADMIN_OTP_TTL_MINUTES = int(os.getenv('ADMIN_OTP_TTL_MINUTES', 5))
    ADMIN_OTP_MAX_ATTEMPTS = int(os.getenv('ADMIN_OTP_MAX_ATTEMPTS', 5))
    SIGNUP_OTP_TTL_MINUTES = int(os.getenv('SIGNUP_OTP_TTL_MINUTES', 10))
    SIGNUP_OTP_MAX_ATTEMPTS = int(os.getenv('SIGNUP_OTP_MAX_ATTEMPTS', 3))

    # Password Reset
    PASSWORD_RESET_TOKEN_TTL_MINUTES = int(os.getenv('PASSWORD_RESET_TOKEN_TTL_MINUTES', 30))

    # Application
    APP_NAME = os.getenv('APP_NAME', 'B-Sphere')
    BARANGAY_NAME = os.getenv('BARANGAY_NAME', 'San Francisco')
    MUNICIPALITY_NAME = os.getenv('MUNICIPALITY_NAME', 'Mabalacat')
    PROVINCE_NAME = os.getenv('PROVINCE_NAME', 'Pampanga')

    # Signatories printed on issued documents
    BARANGAY_CHAIRMAN = os.getenv('BARANGAY_CHAIRMAN', 'Hon. CARTER P. MANZANO')
    BARANGAY_SECRETARY = os.getenv('BARANGAY_SECRETARY', 'ROXANNE A. PADILLA')
    BARANGAY_TREASURER = os.getenv('BARANGAY_TREASURER', 'LYDIA E. AQUINO')
    BUSINESS_PERMIT_FEE = os.getenv('BUSINESS_PERMIT_FEE', 'PHP 500.00')

    # Frontend URLs (CORS and emailed links)
    WEB_URL = os.getenv('WEB_URL', 'http://localhost:3000')
    ADMIN_URL = os.getenv('ADMIN_URL', 'http://localhost:3000')
    CORS_ALLOWED_ORIGINS = os.getenv('CORS_ALLOWED_ORIGINS', '')

    @staticmethod
    def init_app(app):
        """Create the upload directory, falling back to /tmp when not writable."""
        configured_upload = app.config.get('UPLOAD_FOLDER', Config.UPLOAD_FOLDER)
        upload_dir = Path(configured_upload)
        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            fallback_dir = Path(tempfile.gettempdir()) / 'bsphere_uploads'
            fallback_dir.mkdir(parents=True, exist_ok=True)
            app.logger.warning(
                "UPLOAD_FOLDER '%s' is not writable (%s); using fallback '%s'",
                configured_upload,
                exc,
                fallback_dir,
            )
            upload_dir = fallback_dir
        app.config['UPLOAD_FOLDER'] = upload_dir


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True
    JWT_COOKIE_SECURE = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
