"""
Configuration for CUBIS Academy
All settings come from environment variables (a local .env is loaded by app.py)
"""
import logging
import os

logger = logging.getLogger(__name__)


def get_database_uri():
    """Get database URI with PostgreSQL support"""
    db_url = os.environ.get("DATABASE_URL")

    if db_url:
        if db_url.startswith("postgres://"):
            db_url = db_url.replace("postgres://", "postgresql://", 1)
        return db_url

    return "sqlite:///cubis_academy.db"


def get_redis_url():
    """
    Resolve the Redis connection URL.

    REDIS_URL wins. Otherwise the Upstash REST URL is turned into the TLS
    Redis endpoint Upstash exposes on the same host, authenticated with
    UPSTASH_REDIS_PASSWORD. The REST token is only a fallback password and
    is not guaranteed to be accepted over the Redis protocol.
    """
    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        return redis_url

    rest_url = os.environ.get("UPSTASH_REDIS_REST_URL")
    if not rest_url:
        return None

    password = os.environ.get("UPSTASH_REDIS_PASSWORD")
    if not password:
        password = os.environ.get("UPSTASH_REDIS_REST_TOKEN")
        if not password:
            logger.warning("[Config] UPSTASH_REDIS_REST_URL is set without a password; "
                           "caching is disabled")
            return None
        logger.warning("[Config] Using UPSTASH_REDIS_REST_TOKEN as the Redis password; "
                       "if cache calls fail, set REDIS_URL or UPSTASH_REDIS_PASSWORD")

    host = rest_url.split("://", 1)[-1].rstrip("/")
    return f"rediss://default:{password}@{host}:6379"


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # ============ CORE ============
    SECRET_KEY = os.environ.get('SECRET_KEY', 'cubis-academy-dev-key-change-me')
    DEBUG = os.environ.get('FLASK_ENV') == 'development'
    TESTING = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG' if DEBUG else 'INFO')
    APP_URL = os.environ.get('APP_URL', 'http://localhost:3000')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')

    # ============ DATABASE ============
    SQLALCHEMY_DATABASE_URI = get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    # ============ UPLOADS ============
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB

    # ============ STORAGE ============
    STORAGE_PROVIDER = os.environ.get('STORAGE_PROVIDER', 'local')
    UPLOAD_DIR = os.environ.get('UPLOAD_DIR', 'public/uploads')
    UPLOAD_PUBLIC_PATH = os.environ.get('UPLOAD_PUBLIC_PATH', '/uploads')
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
    AWS_S3_BUCKET = os.environ.get('AWS_S3_BUCKET')
    AWS_S3_PUBLIC_URL = os.environ.get('AWS_S3_PUBLIC_URL')
    R2_ACCESS_KEY_ID = os.environ.get('R2_ACCESS_KEY_ID')
    R2_SECRET_ACCESS_KEY = os.environ.get('R2_SECRET_ACCESS_KEY')
    R2_ENDPOINT = os.environ.get('R2_ENDPOINT')
    R2_BUCKET = os.environ.get('R2_BUCKET')
    R2_PUBLIC_URL = os.environ.get('R2_PUBLIC_URL')

    # ============ AUTH ============
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS', 30))
    VERIFICATION_CODE_TTL_MINUTES = int(os.environ.get('VERIFICATION_CODE_TTL_MINUTES', 24 * 60))

    # ============ CACHE ============
    REDIS_URL = get_redis_url()

    # ============ SEARCH ============
    SEARCH_FULL_TEXT = _env_bool('SEARCH_FULL_TEXT', True)

    # ============ EMAIL ============
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY')
    RESEND_API_URL = os.environ.get('RESEND_API_URL', 'https://api.resend.com/emails')
    EMAIL_FROM = os.environ.get('EMAIL_FROM', 'noreply@cubisacademy.com')


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    LOG_LEVEL = 'WARNING'
    SECRET_KEY = 'cubis-academy-test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REDIS_URL = None
    STORAGE_PROVIDER = 'local'
    RESEND_API_KEY = None
    SEARCH_FULL_TEXT = False
