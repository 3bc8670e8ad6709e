"""Handles loading configuration from YAML files."""

import copy
import yaml
import os
import logging
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError
from .models import TranscriptionProvider

logger = logging.getLogger(__name__)

API_KEY_ENV_TEMPLATE = "ECHOFLOW_{provider}_API_KEY"

DEFAULT_CONFIG: Dict[str, Any] = {
    'temp_dir': None,
    'ffmpeg_path': None,
    'ffprobe_path': None,
    'log_dir': 'logs',
    'log_file': 'echoflow.log',
    'provider': 'openai',
    'transcription_model': 'whisper-1',
    'transcription_language': 'en',
    'api_keys': {'openai': '', 'gemini': '', 'grok': ''},
    'request_timeout_seconds': 300,
    'openai_base_url': None,
    'gemini_base_url': None,
    'grok_base_url': None,
    'poll_interval_seconds': 2.0,
    'poll_max_attempts': 30,
    'drift_tolerance': 0.02,
    'audio_extensions': ['.mp3'],
}


class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Values from the file override DEFAULT_CONFIG; an empty file yields
        the defaults.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        config = merge_config(DEFAULT_CONFIG, loaded)
        TranscriptionProvider.from_id(config['provider'])
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config


def merge_config(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlays ``overrides`` on a copy of ``defaults``."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_api_key(config: Dict[str, Any], provider) -> str:
    """
    Returns the API key for ``provider`` from the config, else the environment.

    The environment variable is ``ECHOFLOW_<PROVIDER>_API_KEY``. Returns an
    empty string when neither is set; the transcription service reports that.
    """
    provider = TranscriptionProvider.from_id(provider)
    keys = config.get('api_keys') or {}
    key: Optional[str] = keys.get(provider.value) if isinstance(keys, dict) else None
    if key:
        return str(key).strip()
    return os.environ.get(API_KEY_ENV_TEMPLATE.format(provider=provider.value.upper()), "").strip()
