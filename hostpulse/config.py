"""
Agent configuration and the per-process context handed to every step.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import yaml

OUTPUTS = ('firestore', 'postgres', 'file')
WRITE_MODES = ('create', 'upsert')

DEFAULT_IP_ECHO_URL = 'https://api.ipify.org'
DEFAULT_RENDEZVOUS_HOST = '8.8.8.8'
DEFAULT_RENDEZVOUS_PORT = 80


class ConfigError(Exception):
    """Configuration validation error"""
    pass


@dataclass
class AgentConfig:
    """Settings for one agent process"""
    project_id: str = ''
    key_path: str = ''
    interval_hours: int = 6
    hostname: Optional[str] = None

    # Addressing and write semantics
    history: bool = True
    refresh_hostname: bool = False
    write_mode: str = 'create'

    # Store backend
    output: str = 'firestore'
    postgres_url: Optional[str] = None
    output_dir: Optional[str] = None

    # Seconds allowed for the HTTP lookup and the document write
    timeout: float = 30.0

    ip_echo_url: str = DEFAULT_IP_ECHO_URL
    rendezvous_host: str = DEFAULT_RENDEZVOUS_HOST
    rendezvous_port: int = DEFAULT_RENDEZVOUS_PORT

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values"""
        if not isinstance(self.interval_hours, int) or self.interval_hours <= 0:
            raise ConfigError("interval_hours must be a positive integer")

        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")

        if self.output not in OUTPUTS:
            raise ConfigError(f"Invalid output: {self.output}. Must be one of {list(OUTPUTS)}")

        if self.write_mode not in WRITE_MODES:
            raise ConfigError(f"Invalid write_mode: {self.write_mode}. Must be one of {list(WRITE_MODES)}")

        if self.output == 'postgres' and not self.postgres_url:
            raise ConfigError("postgres_url not configured for postgres output")

        if self.output == 'file' and not self.output_dir:
            raise ConfigError("output_dir not configured for file output")

        if not 0 < self.rendezvous_port < 65536:
            raise ConfigError("rendezvous_port must be between 1 and 65535")

    @property
    def interval_seconds(self) -> int:
        return self.interval_hours * 3600

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AgentConfig':
        """Create config from a mapping, rejecting unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        config_data = dict(data)
        for key in ('key_path', 'postgres_url', 'output_dir'):
            if config_data.get(key):
                config_data[key] = os.path.expandvars(config_data[key])

        return cls(**config_data)


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Read the `agent` section of a YAML config file.

    Args:
        config_path: Path to config.yml

    Returns:
        dict: Raw settings, empty if the section is absent

    Raises:
        ConfigError: If the file is missing or not valid YAML
    """
    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}")

    if not isinstance(config_data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    section = config_data.get('agent') or {}
    if not isinstance(section, dict):
        raise ConfigError("'agent' section must be a mapping")

    return section


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> AgentConfig:
    """Defaults, then the config file, then command-line overrides"""
    settings: Dict[str, Any] = {}
    if config_path:
        settings.update(load_config_file(config_path))
    if overrides:
        settings.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return AgentConfig.from_dict(settings)
    except TypeError as e:
        raise ConfigError(str(e))


@dataclass
class AgentContext:
    """Built once at startup and passed to the sampler, resolvers and agent"""
    config: AgentConfig
    logger: logging.Logger
    hostname: str
