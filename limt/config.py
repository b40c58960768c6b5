"""
Limt Backend Configuration.

Configuration for PyDAL, JWT session decoding, DNS verification and
related services.
"""

from __future__ import annotations

import os
from datetime import timedelta


class Config:
    """Base configuration."""

    # Application
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    DEBUG = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    TESTING = False

    # JWT Configuration (sessions are issued elsewhere, we only decode them)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "30"))
    )

    # Database - PyDAL compatible
    DB_TYPE = os.getenv("DB_TYPE", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "limt")
    DB_USER = os.getenv("DB_USER", "limt")
    DB_PASS = os.getenv("DB_PASS", "limt")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_FOLDER = os.getenv("DB_FOLDER")  # PyDAL migration files, None for cwd

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # DNS verification
    DNS_TIMEOUT_SECONDS = float(os.getenv("DNS_TIMEOUT_SECONDS", "5"))
    DNS_CNAME_TARGET = os.getenv("DNS_CNAME_TARGET", "cname.limt.app")

    # Manual "verify domain" attempts per domain per window
    VERIFY_RATE_LIMIT = int(os.getenv("VERIFY_RATE_LIMIT", "10"))
    VERIFY_RATE_WINDOW = int(os.getenv("VERIFY_RATE_WINDOW", "60"))  # seconds

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Monitoring
    PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

    @classmethod
    def get_db_uri(cls) -> str:
        """Build PyDAL-compatible database URI."""
        db_type = cls.DB_TYPE

        # Map common aliases to PyDAL format
        type_map = {
            "postgresql": "postgres",
            "mysql": "mysql",
            "sqlite": "sqlite",
            "mariadb": "mysql",  # MariaDB uses MySQL driver
        }
        db_type = type_map.get(db_type, db_type)

        if db_type == "sqlite":
            if cls.DB_NAME == ":memory:":
                return "sqlite:memory"
            return f"sqlite://{cls.DB_NAME}.db"

        return (
            f"{db_type}://{cls.DB_USER}:{cls.DB_PASS}@"
            f"{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}"
        )


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    LOG_LEVEL = "INFO"

    SECRET_KEY = os.getenv("SECRET_KEY")  # Required
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", os.getenv("SECRET_KEY"))

    @classmethod
    def validate(cls) -> None:
        """Validate production configuration."""
        if (
            not cls.SECRET_KEY
            or cls.SECRET_KEY == "dev-secret-key-change-in-production"
        ):
            raise ValueError("SECRET_KEY must be set in production")
        if not cls.JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY must be set in production")


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = True
    DB_TYPE = "sqlite"
    DB_NAME = ":memory:"
    SECRET_KEY = "testing-secret-key"
    JWT_SECRET_KEY = "testing-jwt-secret-key-0123456789abcdef"

    # One connection per in-memory database
    DB_POOL_SIZE = 0

    # Disable Prometheus in tests to avoid mounting the metrics app
    PROMETHEUS_ENABLED = False

    # Tight window so rate limiting is observable in tests
    VERIFY_RATE_LIMIT = 3
    VERIFY_RATE_WINDOW = 60

    CORS_ORIGINS = "http://localhost:3000"


def get_config() -> type[Config]:
    """Get configuration based on environment."""
    env = os.getenv("FLASK_ENV", "development").lower()
    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }
    return config_map.get(env, DevelopmentConfig)
