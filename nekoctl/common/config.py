"""Configuration file loading and management"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from nekoctl.common.types import DEFAULT_DISPLAY_NAME


@dataclass
class ClientReconnectConfig:
    """Client reconnection settings"""
    enabled: bool = True
    max_attempts: int = 5
    delay_seconds: float = 2.0


@dataclass
class ClientConfig:
    """Client configuration settings"""
    server_address: Optional[str]
    password: Optional[str] = None
    display_name: str = DEFAULT_DISPLAY_NAME
    request_control: bool = False
    reconnect: ClientReconnectConfig = field(default_factory=ClientReconnectConfig)


@dataclass
class SessionTuningConfig:
    """Session timing settings"""
    connect_timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Complete application configuration"""
    client: ClientConfig
    session: SessionTuningConfig
    logging: LoggingConfig


class ConfigLoader:
    """Loads and parses configuration from YAML files"""

    DEFAULT_CONFIG_PATHS = [
        "config.yml",
        "~/.config/nekoctl/config.yml",
        "/etc/nekoctl/config.yml",
    ]

    @staticmethod
    def configFile_find() -> Optional[Path]:
        """
        Find configuration file in standard locations

        Returns:
            Path to config file, or None if not found
        """
        for config_path in ConfigLoader.DEFAULT_CONFIG_PATHS:
            path = Path(config_path).expanduser().resolve()
            if path.exists() and path.is_file():
                return path
        return None

    @staticmethod
    def yaml_load(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML configuration file

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If file does not exist
            yaml.YAMLError: If file is not valid YAML
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Config file {file_path} must contain a YAML dictionary")

        return data

    @staticmethod
    def config_parse(data: Dict[str, Any]) -> Config:
        """
        Parse configuration dictionary into Config object

        Every section is optional; missing keys take dataclass defaults.

        Args:
            data: Raw configuration dictionary

        Returns:
            Parsed Config object

        Raises:
            ValueError: If a section is not a mapping
        """
        client_data = ConfigLoader.section_get(data, "client")
        reconnect_data = ConfigLoader.section_get(client_data, "reconnect")
        reconnect_defaults = ClientReconnectConfig()
        reconnect = ClientReconnectConfig(
            enabled=bool(reconnect_data.get("enabled", reconnect_defaults.enabled)),
            max_attempts=int(reconnect_data.get("max_attempts", reconnect_defaults.max_attempts)),
            delay_seconds=float(
                reconnect_data.get("delay_seconds", reconnect_defaults.delay_seconds)
            ),
        )
        client = ClientConfig(
            server_address=client_data.get("server_address"),
            password=client_data.get("password"),
            display_name=client_data.get("display_name") or DEFAULT_DISPLAY_NAME,
            request_control=bool(client_data.get("request_control", False)),
            reconnect=reconnect,
        )

        session_data = ConfigLoader.section_get(data, "session")
        session = SessionTuningConfig(
            connect_timeout=float(
                session_data.get("connect_timeout", SessionTuningConfig.connect_timeout)
            ),
        )

        logging_data = ConfigLoader.section_get(data, "logging")
        logging_defaults = LoggingConfig()
        logging = LoggingConfig(
            level=logging_data.get("level", logging_defaults.level),
            file=logging_data.get("file"),
            format=logging_data.get("format", logging_defaults.format),
        )

        return Config(client=client, session=session, logging=logging)

    @staticmethod
    def section_get(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        """
        Get an optional mapping section.

        Args:
            data: Parent mapping
            name: Section key

        Returns:
            Section mapping, empty when absent
        """
        section = data.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        return section

    @staticmethod
    def config_load(file_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file

        Args:
            file_path: Optional path to config file. If None, searches standard locations.

        Returns:
            Parsed Config object

        Raises:
            FileNotFoundError: If config file not found
            ValueError: If config file is invalid
        """
        if file_path is None:
            file_path = ConfigLoader.configFile_find()
            if file_path is None:
                raise FileNotFoundError(
                    f"Config file not found in standard locations: "
                    f"{ConfigLoader.DEFAULT_CONFIG_PATHS}"
                )

        data = ConfigLoader.yaml_load(file_path)
        return ConfigLoader.config_parse(data)

    @staticmethod
    def configWithOverrides_load(
        file_path: Optional[Path] = None,
        **overrides: Any
    ) -> Config:
        """
        Load configuration and apply command-line overrides

        Without an explicit path and with no config file in the standard
        locations, defaults are used so a bare `--server` invocation works.

        Args:
            file_path: Optional path to config file
            **overrides: Key-value pairs to override config values

        Returns:
            Config object with overrides applied

        Example:
            config = ConfigLoader.configWithOverrides_load(
                server_address="neko.example.com",
                password="secret"
            )
        """
        if file_path is None and ConfigLoader.configFile_find() is None:
            config = ConfigLoader.config_parse({})
        else:
            config = ConfigLoader.config_load(file_path)

        for key in ("server_address", "password", "display_name"):
            if overrides.get(key) is not None:
                setattr(config.client, key, overrides[key])
        if overrides.get("request_control"):
            config.client.request_control = True

        return config
