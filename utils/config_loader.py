"""Configuration loader that reads from .env and validates with Pydantic."""

import os
import sys
from functools import lru_cache
from pathlib import Path
from dotenv import load_dotenv
from pydantic import ValidationError

from models.config_models import Config, OAuthConfig


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Reads from .env file in the project root and validates the OAuth
    credentials and settings using Pydantic models. Missing OAuth values
    are allowed here; the authorize endpoint fails closed on them.

    Returns:
        Config: Validated configuration object

    Raises:
        SystemExit: If configuration is present but invalid
    """
    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    kwargs = {}
    cors_origins = os.getenv("CORS_ORIGINS")
    if cors_origins:
        kwargs["cors_origins"] = _split_origins(cors_origins)

    try:
        config = Config(
            oauth=OAuthConfig(
                github_client_id=os.getenv("GITHUB_CLIENT_ID"),
                github_client_secret=os.getenv("GITHUB_CLIENT_SECRET"),
                github_callback_url=os.getenv("GITHUB_CALLBACK_URL"),
                session_secret=os.getenv("SESSION_SECRET"),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            storage_path=os.getenv("TRACKER_STORAGE_PATH"),
            **kwargs,
        )

        return config

    except ValidationError as e:
        print("❌ Configuration validation failed:", file=sys.stderr)
        print("\nPlease check your .env file. Invalid fields:", file=sys.stderr)

        for error in e.errors():
            field_path = " → ".join(str(x) for x in error["loc"])
            message = error["msg"]
            print(f"  • {field_path}: {message}", file=sys.stderr)

        print("\nHint: Copy .env.example to .env and fill in your credentials.", file=sys.stderr)
        sys.exit(1)


@lru_cache(maxsize=None)
def get_config() -> Config:
    """
    FastAPI dependency returning the configuration loaded at startup.

    The environment is read once per process; requests never re-read .env.
    """
    return load_config()
