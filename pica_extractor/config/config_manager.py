"""
Centralized configuration management for the PICA+ extraction system.

This module provides the ConfigManager class that serves as the single source of truth
for SRU endpoints, webcat store access and processing parameters. Values are layered:
built-in defaults, then an optional JSON or YAML configuration file, then environment
variables.
"""

import os
import json
import logging

import yaml

from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass

from ..exceptions import ConfigurationError
from .processing_defaults import ProcessingDefaults


CONFIG_PATH_VARIABLE = 'PICA_EXTRACTOR_CONFIG'


def _lookup(values: Dict[str, Any], key: str, variable: str, default: Any) -> Any:
    """Environment variable first, then config file value, then default."""
    if variable in os.environ:
        return os.environ[variable]
    return values.get(key, default)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _as_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Configuration value '{name}' must be an integer, got {value!r}")


@dataclass
class SRUConfig:
    """SRU endpoint configuration with environment variable support."""
    base_url: Optional[str] = None
    record_schema: str = ProcessingDefaults.SRU_RECORD_SCHEMA
    version: str = ProcessingDefaults.SRU_VERSION
    page_size: int = ProcessingDefaults.SRU_PAGE_SIZE
    timeout: int = ProcessingDefaults.REQUEST_TIMEOUT

    @classmethod
    def from_environment(cls, values: Optional[Dict[str, Any]] = None) -> 'SRUConfig':
        """Create SRU configuration from config file values and environment variables."""
        values = values or {}
        return cls(
            base_url=_lookup(values, 'base_url', 'PICA_EXTRACTOR_SRU_URL', cls.base_url),
            record_schema=_lookup(values, 'record_schema', 'PICA_EXTRACTOR_SRU_SCHEMA', cls.record_schema),
            version=str(_lookup(values, 'version', 'PICA_EXTRACTOR_SRU_VERSION', cls.version)),
            page_size=_as_int(_lookup(values, 'page_size', 'PICA_EXTRACTOR_SRU_PAGE_SIZE', cls.page_size),
                              'page_size'),
            timeout=_as_int(_lookup(values, 'timeout', 'PICA_EXTRACTOR_TIMEOUT', cls.timeout), 'timeout'),
        )


@dataclass
class WebcatConfig:
    """Webcat (SOAP record store) access configuration."""
    webcat_url: Optional[str] = None
    userkey: str = ""
    password: str = ""
    dbsid: str = ""
    language: str = "en"
    timeout: int = ProcessingDefaults.REQUEST_TIMEOUT

    @classmethod
    def from_environment(cls, values: Optional[Dict[str, Any]] = None) -> 'WebcatConfig':
        """Create webcat configuration from config file values and environment variables."""
        values = values or {}
        return cls(
            webcat_url=_lookup(values, 'webcat', 'PICA_EXTRACTOR_WEBCAT_URL', cls.webcat_url),
            userkey=_lookup(values, 'userkey', 'PICA_EXTRACTOR_WEBCAT_USERKEY', cls.userkey),
            password=_lookup(values, 'password', 'PICA_EXTRACTOR_WEBCAT_PASSWORD', cls.password),
            dbsid=str(_lookup(values, 'dbsid', 'PICA_EXTRACTOR_WEBCAT_DBSID', cls.dbsid)),
            language=_lookup(values, 'language', 'PICA_EXTRACTOR_WEBCAT_LANGUAGE', cls.language),
            timeout=_as_int(_lookup(values, 'timeout', 'PICA_EXTRACTOR_TIMEOUT', cls.timeout), 'timeout'),
        )


@dataclass
class ProcessingParameters:
    """Processing parameters with environment variable support."""
    limit: Optional[int] = None
    offset: int = 0
    chunk_size: int = ProcessingDefaults.CHUNK_SIZE
    input_format: str = ProcessingDefaults.INPUT_FORMAT
    output_format: str = ProcessingDefaults.OUTPUT_FORMAT
    pretty: bool = False
    log_level: str = ProcessingDefaults.LOG_LEVEL

    @classmethod
    def from_environment(cls, values: Optional[Dict[str, Any]] = None) -> 'ProcessingParameters':
        """Create processing parameters from config file values and environment variables."""
        values = values or {}
        return cls(
            limit=_as_int(_lookup(values, 'limit', 'PICA_EXTRACTOR_LIMIT', cls.limit), 'limit'),
            offset=_as_int(_lookup(values, 'offset', 'PICA_EXTRACTOR_OFFSET', cls.offset), 'offset') or 0,
            chunk_size=_as_int(_lookup(values, 'chunk_size', 'PICA_EXTRACTOR_CHUNK_SIZE', cls.chunk_size),
                               'chunk_size'),
            input_format=_lookup(values, 'input_format', 'PICA_EXTRACTOR_INPUT_FORMAT', cls.input_format),
            output_format=_lookup(values, 'output_format', 'PICA_EXTRACTOR_OUTPUT_FORMAT', cls.output_format),
            pretty=_as_bool(_lookup(values, 'pretty', 'PICA_EXTRACTOR_PRETTY', cls.pretty)),
            log_level=_lookup(values, 'log_level', 'PICA_EXTRACTOR_LOG_LEVEL', cls.log_level),
        )


class ConfigManager:
    """
    Centralized configuration manager serving as single source of truth.

    This class consolidates:
    - SRU endpoint configuration
    - Webcat store access parameters
    - Processing parameters
    - Config file and environment variable handling
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional JSON or YAML configuration file. If None, the
                PICA_EXTRACTOR_CONFIG environment variable is consulted.
        """
        self.logger = logging.getLogger(__name__)

        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_VARIABLE)
        self.config_path = Path(config_path) if config_path else None

        file_values = self._load_config_file(self.config_path) if self.config_path else {}

        self.sru_config = SRUConfig.from_environment(file_values.get('sru'))
        self.webcat_config = WebcatConfig.from_environment(file_values.get('webcat'))
        self.processing_params = ProcessingParameters.from_environment(file_values.get('processing'))

        self.logger.info(f"ConfigManager initialized (config file: {self.config_path or 'none'})")

    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """
        Read a configuration file with 'sru', 'webcat' and 'processing' sections.

        Raises:
            ConfigurationError: If the file is missing, unreadable or malformed
        """
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as file:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(file)
                elif path.suffix.lower() == '.json':
                    data = json.load(file)
                else:
                    raise ConfigurationError(f"Unsupported configuration file format: {path.suffix}")
        except ConfigurationError:
            raise
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to parse configuration file {path}: {e}")
        except Exception as e:
            raise ConfigurationError(f"Failed to read configuration file {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        self.logger.debug(f"Loaded configuration sections: {sorted(data)}")
        return data

    def validate_configuration(self) -> bool:
        """
        Validate the loaded configuration.

        Returns:
            True if all values are usable, False otherwise (problems are logged)
        """
        is_valid = True
        if self.processing_params.chunk_size is None or self.processing_params.chunk_size <= 0:
            self.logger.error("chunk_size must be positive")
            is_valid = False
        if self.processing_params.offset < 0:
            self.logger.error("offset must not be negative")
            is_valid = False
        if self.sru_config.page_size is None or self.sru_config.page_size <= 0:
            self.logger.error("SRU page_size must be positive")
            is_valid = False
        return is_valid

    def get_configuration_summary(self) -> Dict[str, Any]:
        """
        Get a summary of all configuration settings (secrets omitted).

        Returns:
            Dictionary containing configuration summary
        """
        return {
            'sru': {
                'base_url': self.sru_config.base_url,
                'record_schema': self.sru_config.record_schema,
                'page_size': self.sru_config.page_size,
                'timeout': self.sru_config.timeout
            },
            'webcat': {
                'webcat_url': self.webcat_config.webcat_url,
                'dbsid': self.webcat_config.dbsid,
                'language': self.webcat_config.language
            },
            'processing': {
                'limit': self.processing_params.limit,
                'offset': self.processing_params.offset,
                'chunk_size': self.processing_params.chunk_size,
                'input_format': self.processing_params.input_format,
                'output_format': self.processing_params.output_format,
                'log_level': self.processing_params.log_level
            }
        }


# Global configuration manager instance
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        config_path: Configuration file path. Only used on first call.

    Returns:
        Global ConfigManager instance
    """
    global _global_config_manager

    if _global_config_manager is None:
        _global_config_manager = ConfigManager(config_path)

    return _global_config_manager


def reset_config_manager() -> None:
    """Reset the global configuration manager instance."""
    global _global_config_manager
    _global_config_manager = None
