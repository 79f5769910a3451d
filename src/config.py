"""Configuration management for mmdesk."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

ENV_OVERRIDES = {
    "MMDESK_LOG_LEVEL": "log_level",
    "MMDESK_USERS_PER_PAGE": "users_per_page",
    "MMDESK_FIXTURE": "fixture",
}


class ClientConfig(BaseModel):
    users_per_page: int = Field(100, ge=1, description="User directory page size")
    users_max_pages: int = Field(10, ge=1, description="Upper bound on directory pages")
    log_level: str = "INFO"
    fixture: str | None = Field(None, description="Replay fixture used by the CLI")


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = get_project_root() / "config" / "config.yaml"

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)
            return config_data if isinstance(config_data, dict) else {}
    except FileNotFoundError:
        logger.warning(f"Config file not found at {config_path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML config: {e}")
        return {}


def load_client_config(config_path: str | Path | None = None) -> ClientConfig:
    """Build the client config from the ``client:`` section plus environment."""
    load_dotenv()
    section = load_config(config_path).get("client") or {}
    if not isinstance(section, dict):
        logger.warning("Ignoring malformed 'client' section in config")
        section = {}

    values = dict(section)
    for env_name, field_name in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value:
            values[field_name] = env_value
    return ClientConfig(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
