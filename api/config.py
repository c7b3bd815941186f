"""
Environment-aware configuration.
Token lifetimes, cookie scoping and the database URL all live here;
the services read them through current_app.config.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_JWT_SECRET = "dev-secret-change-me"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth-sessions.db")

    JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "auth-session-api")
    # The access token is short-lived; the session row and both cookies
    # carry the longer window.
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    SESSION_EXPIRES = timedelta(seconds=int(os.getenv("SESSION_EXPIRES_SECONDS", "604800")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))

    SESSION_COOKIE = os.getenv("SESSION_COOKIE", "session")
    REFRESH_COOKIE = os.getenv("REFRESH_COOKIE", "refresh_token")
    REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/api/v1/auth/refresh")
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "false")

    # Every role a user may hold; roles_required only accepts these
    ALLOWED_ROLES = [r.strip() for r in os.getenv("ALLOWED_ROLES", "admin,doctor,patient").split(",") if r.strip()]
    DEFAULT_ROLE = os.getenv("DEFAULT_ROLE", "patient")

    # Single-use password reset links
    PASSWORD_RESET_EXPIRES = timedelta(seconds=int(os.getenv("PASSWORD_RESET_EXPIRES_SECONDS", "3600")))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET = "test-secret-with-enough-length-for-hs256"


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "true")


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
