"""
Configuration Management for mcp-server-grok-chat

Loads the xAI API key from the per-user TOML config file.
"""

import os
import sys
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

import tomli

import structlog

logger = structlog.get_logger(__name__)

APP_DIR_NAME = "mcp-server-grok-chat"
CONFIG_FILE_NAME = "config.toml"
CONFIG_PATH_ENV = "GROK_CHAT_CONFIG"

EXAMPLE_CONFIG = 'api_key = "xai-..."'


class ConfigError(Exception):
    """Configuration missing or invalid"""
    pass


@dataclass(frozen=True)
class Config:
    """Runtime configuration"""
    api_key: str = field(repr=False)
    path: Optional[Path] = None


def _user_config_dir() -> Path:
    """Platform config directory"""
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"

    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def config_path() -> Path:
    """Get the configuration file path, honouring the GROK_CHAT_CONFIG override"""
    override = os.getenv(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()

    return _user_config_dir() / APP_DIR_NAME / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load and validate the config file.

    Raises ConfigError if the file is missing, unreadable, not valid TOML,
    or lacks a non-empty string ``api_key``.
    """
    path = Path(path) if path else config_path()

    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except FileNotFoundError:
        raise ConfigError(
            f"Config file not found: {path}\n"
            f"Create it with your xAI API key.\n"
            f"Example:\n\n    {EXAMPLE_CONFIG}"
        )
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}")
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse {path}: {e}")

    api_key = data.get("api_key")
    if api_key is None:
        raise ConfigError(
            f"api_key is missing from {path}\n"
            f"Example:\n\n    {EXAMPLE_CONFIG}"
        )
    if not isinstance(api_key, str):
        raise ConfigError(f"api_key in {path} must be a string")
    if not api_key.strip():
        raise ConfigError(f"api_key in {path} is empty, set it to your xAI API key")

    logger.info("Configuration loaded", config_path=str(path))
    return Config(api_key=api_key.strip(), path=path)
