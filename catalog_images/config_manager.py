"""Configuration management system with JSON schema validation and environment overrides."""

import copy
import json
import os
from typing import Any, Dict, List
import logging
from dotenv import load_dotenv

from .utils.exceptions import ConfigurationError
from .utils.validation import validate_extraction_config

logger = logging.getLogger(__name__)

DEFAULT_EXTRACTION_SETTINGS: Dict[str, Any] = {
    "media_directory": "xl/media",
    "supplier_suffix": "_supplier",
    "image_target_marker": "image",
    "max_workers": 1,
    "strict": False,
    # None: keep payloads unless an on_image callback consumes them
    "retain_payloads": None,
}


class ConfigManager:
    """Manages application configuration with validation and environment support."""

    def __init__(self, config_dir: str = "config") -> None:
        """Initialize configuration manager."""
        self.config_dir = config_dir
        self._config_cache: Dict[str, Dict[str, Any]] = {}
        self._load_environment()

    def _load_environment(self) -> None:
        """Load environment variables from .env files."""
        try:
            env_file = os.path.join(os.getcwd(), ".env")
            if os.path.exists(env_file):
                load_dotenv(env_file)
                logger.debug("Loaded environment from .env file")

            env = os.getenv("ENVIRONMENT", "development")
            env_specific_file = os.path.join(self.config_dir, f"{env}.env")

            if os.path.exists(env_specific_file):
                load_dotenv(env_specific_file)
                logger.debug(f"Loaded environment from {env_specific_file}")

        except Exception as e:
            logger.warning(f"Failed to load environment configuration: {e}")

    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration for catalog image extraction."""
        return {
            "version": "1.0",
            "extraction": copy.deepcopy(DEFAULT_EXTRACTION_SETTINGS),
            "output": {
                "directory": "extracted_images",
                "write_manifest": True,
                "manifest_name": "manifest.csv",
            },
        }

    def load_config(self, config_name: str = "default_config") -> Dict[str, Any]:
        """Load configuration from file with caching."""
        if config_name in self._config_cache:
            return self._config_cache[config_name]

        try:
            config_file = os.path.join(self.config_dir, f"{config_name}.json")

            if not os.path.exists(config_file):
                if config_name == "default_config":
                    config = self._apply_environment_overrides(
                        self.get_default_config()
                    )
                    self._config_cache[config_name] = config
                    return config
                else:
                    raise ConfigurationError(
                        f"Configuration file not found: {config_file}"
                    )

            with open(config_file, "r", encoding="utf-8") as file:
                config = json.load(file)

            validate_extraction_config(config)

            # Fill settings the file leaves out
            extraction = copy.deepcopy(DEFAULT_EXTRACTION_SETTINGS)
            extraction.update(config.get("extraction", {}))
            config["extraction"] = extraction

            config = self._apply_environment_overrides(config)

            self._config_cache[config_name] = config

            logger.info(f"Loaded configuration: {config_name}")
            return config

        except ConfigurationError:
            raise
        except (json.JSONDecodeError, FileNotFoundError) as e:
            raise ConfigurationError(
                f"Failed to load configuration '{config_name}': {e}"
            )
        except Exception as e:
            raise ConfigurationError(f"Configuration error for '{config_name}': {e}")

    def save_config(self, config: Dict[str, Any], config_name: str) -> None:
        """Save configuration to file."""
        try:
            validate_extraction_config(config)

            os.makedirs(self.config_dir, exist_ok=True)

            config_file = os.path.join(self.config_dir, f"{config_name}.json")

            with open(config_file, "w", encoding="utf-8") as file:
                json.dump(config, file, indent=2, ensure_ascii=False)

            self._config_cache[config_name] = config

            logger.info(f"Saved configuration: {config_name}")

        except Exception as e:
            raise ConfigurationError(
                f"Failed to save configuration '{config_name}': {e}"
            )

    def clear_cache(self) -> None:
        """Clear configuration cache."""
        self._config_cache.clear()
        logger.debug("Configuration cache cleared")

    def get_extraction_settings(
        self, config_name: str = "default_config"
    ) -> Dict[str, Any]:
        """Extraction settings ready to pass to ImageExtractor."""
        return dict(self.load_config(config_name)["extraction"])

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        try:
            extraction = config.get("extraction", {})

            extraction["max_workers"] = max(
                1,
                self._get_env_int(
                    "EXTRACTION_MAX_WORKERS", extraction.get("max_workers", 1)
                ),
            )
            extraction["strict"] = self._get_env_bool(
                "EXTRACTION_STRICT", extraction.get("strict", False)
            )
            extraction["supplier_suffix"] = self._get_env_str(
                "SUPPLIER_SUFFIX", extraction.get("supplier_suffix", "_supplier")
            )
            extraction["media_directory"] = self._get_env_str(
                "MEDIA_DIRECTORY", extraction.get("media_directory", "xl/media")
            )

            if "output" in config:
                config["output"]["directory"] = self._get_env_str(
                    "OUTPUT_DIRECTORY", config["output"].get("directory", "")
                )

            return config

        except Exception as e:
            logger.warning(f"Failed to apply environment overrides: {e}")
            return config

    def _get_env_bool(self, key: str, default: bool) -> bool:
        """Get boolean value from environment variable."""
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes", "on")

    def _get_env_int(self, key: str, default: int) -> int:
        """Get integer value from environment variable."""
        try:
            return int(os.getenv(key, str(default)))
        except (ValueError, TypeError):
            return default

    def _get_env_str(self, key: str, default: str) -> str:
        """Get string value from environment variable."""
        return os.getenv(key, default)

    def _get_env_list(
        self, key: str, default: List[str], separator: str = ","
    ) -> List[str]:
        """Get list value from environment variable."""
        value = os.getenv(key)
        if value:
            return [item.strip() for item in value.split(separator) if item.strip()]
        return default

    def get_app_config(self) -> Dict[str, Any]:
        """Get application-wide configuration settings."""
        return {
            "development_mode": self._get_env_bool("DEVELOPMENT_MODE", False),
            "log_level": self._get_env_str("LOG_LEVEL", "INFO"),
            "api_key": self._get_env_str("API_KEY", ""),
            "max_file_size_mb": self._get_env_int("MAX_FILE_SIZE_MB", 50),
            "allowed_extensions": self._get_env_list(
                "ALLOWED_EXTENSIONS", ["xlsx", "xlsm"]
            ),
            "flask_config": {
                "host": self._get_env_str("FLASK_HOST", "0.0.0.0"),
                "port": self._get_env_int("FLASK_PORT", 5000),
                "debug": self._get_env_bool("FLASK_DEBUG", False),
            },
        }
