import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _default_sqlite_uri() -> str:
    instance_path = BASE_DIR / "instance"
    instance_path.mkdir(exist_ok=True)
    return f"sqlite:///{instance_path / 'inkwell.db'}"


class Config:
    """Base configuration shared across environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # Provider credentials are stored encrypted with the first 32 characters of this value.
    ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY", "")

    OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

    STRUCTURED_OUTPUT_MAX_ATTEMPTS = int(os.environ.get("STRUCTURED_OUTPUT_MAX_ATTEMPTS", "3"))
    GEMINI_PRICING_TTL_SECONDS = int(os.environ.get("GEMINI_PRICING_TTL_SECONDS", str(24 * 60 * 60)))

    # Header set by an authenticating reverse proxy; disabled when empty.
    TRUSTED_AUTH_HEADER = os.environ.get("TRUSTED_AUTH_HEADER", "")
    TRUSTED_AUTH_PROVIDER = os.environ.get("TRUSTED_AUTH_PROVIDER", "external")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"
    TRUSTED_AUTH_HEADER = ""
