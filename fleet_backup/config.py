import os
from typing import Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError
from .logger import get_logger
from .schemas import Settings

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "FLEET_BACKUP_CONFIG"


def _resolve_credentials(server_conf: dict) -> dict:
    # Load credentials from environment variables or directly from config
    username_var = server_conf.pop("username_var", None)
    password_var = server_conf.pop("password_var", None)

    if "username" not in server_conf and username_var:
        value = os.getenv(username_var)
        if value is None:
            logger.warning(f"Environment variable '{username_var}' is not set, using the default username.")
        else:
            server_conf["username"] = value
    if "password" not in server_conf and password_var:
        value = os.getenv(password_var)
        if value is None:
            logger.warning(f"Environment variable '{password_var}' is not set, using the default password.")
        else:
            server_conf["password"] = value
    return server_conf


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Loads settings from a YAML file. A missing file yields the built-in defaults.
    """
    config_path = config_path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)

    if not os.path.exists(config_path):
        logger.info(f"No config file found at {config_path}, using built-in defaults.")
        return Settings()

    with open(config_path, "r") as f:
        try:
            config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing {config_path}: {e}")
            raise ConfigurationError(f"Invalid YAML in {config_path}", details={"error": str(e)})

    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Top level of {config_path} must be a mapping")

    if isinstance(config_data.get("server"), dict):
        config_data["server"] = _resolve_credentials(dict(config_data["server"]))

    try:
        settings = Settings.model_validate(config_data)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Invalid configuration in {config_path}", details={"error": str(e)})

    logger.debug(
        f"Loaded configuration from {config_path}: server={settings.server.host}:{settings.server.port}, "
        f"storage={settings.storage.type}"
    )
    return settings
