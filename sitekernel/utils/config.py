import json
import os
from pathlib import Path

from dotenv import load_dotenv

from sitekernel.models.config import AppConfig


_config: AppConfig | None = None


def get_project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent.parent


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Overlay deployment settings that live in the environment."""
    if base_url := os.getenv("OPENAI_API_URL"):
        config.completion.base_url = base_url
    if model := os.getenv("OPENAI_MODEL"):
        config.defaults.model = model
    if port := os.getenv("APP_PORT"):
        config.server.port = int(port)
    if level := os.getenv("LOG_LEVEL"):
        config.logging.level = level

    config.hub.oauth_client_id = os.getenv("OAUTH_CLIENT_ID", config.hub.oauth_client_id)
    config.hub.oauth_client_secret = os.getenv("OAUTH_CLIENT_SECRET", config.hub.oauth_client_secret)

    redirect_uri = os.getenv("REDIRECT_URI", config.hub.redirect_uri)
    if not redirect_uri:
        redirect_uri = f"http://localhost:{config.server.port}/auth/login"
    config.hub.redirect_uri = redirect_uri

    return config


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from JSON file and environment variables."""
    global _config

    if config_path is None:
        config_path = get_project_root() / "config.json"

    # Load .env file
    env_path = get_project_root() / ".env"
    load_dotenv(env_path)

    # Load config.json
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = AppConfig.model_validate(data)
    else:
        config = AppConfig()

    _config = _apply_env_overrides(config)
    return _config


def get_config() -> AppConfig:
    """Get current configuration. Loads from file if not already loaded."""
    if _config is None:
        return load_config()
    return _config


def get_api_key() -> str:
    """Get completion provider API key from environment."""
    key = os.getenv("OPENAI_API_KEY", "")
    if not key:
        raise ValueError("OPENAI_API_KEY environment variable is not set")
    return key


def get_server_hub_token() -> str | None:
    """Token configured for single-user local deployments, overrides cookies."""
    return os.getenv("HF_TOKEN") or None


def get_default_hub_token() -> str | None:
    """Fallback token for anonymous read access to the Hub."""
    return os.getenv("DEFAULT_HF_TOKEN") or None
