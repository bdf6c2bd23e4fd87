import os
from datetime import timedelta

from dotenv import load_dotenv


def _normalize_db_url(url: str) -> str:
    """
    Normalize postgres:// to postgresql+psycopg2:// for SQLAlchemy.
    """
    if not url:
        return url
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


class Config:
    # Load .env if present
    load_dotenv()

    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-key-change-me")

    # Database config
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///anime_app.db")
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(DATABASE_URL)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Annict (GraphQL metadata provider)
    ANNICT_ACCESS_TOKEN = os.getenv("ANNICT_ACCESS_TOKEN", "")
    ANNICT_API_URL = os.getenv("ANNICT_API_URL", "https://api.annict.com/graphql")
    ANNICT_TIMEOUT = float(os.getenv("ANNICT_TIMEOUT", "10"))

    # Signed bearer tokens
    AUTH_TOKEN_TTL = timedelta(hours=72)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG = True
    ENV = "development"


class ProductionConfig(Config):
    DEBUG = False
    ENV = "production"


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ANNICT_ACCESS_TOKEN = "test-token"
    LOG_LEVEL = "DEBUG"


def get_config():
    env = os.getenv("FLASK_ENV", "development").lower()
    if env == "production":
        return ProductionConfig
    return DevelopmentConfig
