"""
OPC UA input configuration loader.

This module provides the configuration model for the connector and
loads it from the JSON file handed over by the host pipeline.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from asyncua import ua

from .errors import ConfigurationError
from .logging import log_info
from .types import AuthMode
from .utils import parse_node_ids

DEFAULT_RECONNECT_BACKOFF = (0.5, 1.0, 2.0, 3.0, 5.0)


@dataclass
class OpcuaInputConfig:
    """OPC UA input connector configuration."""
    endpoint: str
    node_ids: list[ua.NodeId]
    username: str = ""
    password: str = ""
    poll_interval_ms: int = 1000
    max_age_ms: int = 2000
    request_timeout_s: float = 10.0
    operation_timeout_s: Optional[float] = None
    skip_visited_nodes: bool = False
    application_name: str = "opcua-input"
    reconnect_backoff_s: tuple[float, ...] = field(default=DEFAULT_RECONNECT_BACKOFF)

    @property
    def auth_mode(self) -> AuthMode:
        return AuthMode.from_credentials(self.username, self.password)

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'OpcuaInputConfig':
        """
        Creates an OpcuaInputConfig instance from a dictionary.

        Raises:
            ConfigurationError: If a required field is missing or invalid
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be an object, got {type(data).__name__}")

        try:
            endpoint = data["endpoint"]
            node_id_strings = data["nodeIDs"] if "nodeIDs" in data else data["node_ids"]
        except KeyError as e:
            raise ConfigurationError(f"Missing required field in OPC UA input config: {e}")

        if not isinstance(endpoint, str) or not endpoint.strip():
            raise ConfigurationError("endpoint must be a non-empty string")
        if not isinstance(node_id_strings, list):
            raise ConfigurationError("node_ids must be a list of node id strings")

        node_ids = parse_node_ids(node_id_strings)

        username = data.get("username") or ""
        password = data.get("password") or ""
        if not isinstance(username, str) or not isinstance(password, str):
            raise ConfigurationError("username and password must be strings")

        backoff = data.get("reconnect_backoff_s", DEFAULT_RECONNECT_BACKOFF)
        if not isinstance(backoff, (list, tuple)) or not backoff:
            raise ConfigurationError("reconnect_backoff_s must contain at least one delay")

        skip_visited = data.get("skip_visited_nodes", False)
        if not isinstance(skip_visited, bool):
            raise ConfigurationError(f"skip_visited_nodes must be true or false, got {skip_visited!r}")

        operation_timeout = data.get("operation_timeout_s")

        return cls(
            endpoint=endpoint.strip(),
            node_ids=node_ids,
            username=username,
            password=password,
            poll_interval_ms=_non_negative_int(data, "poll_interval_ms", 1000),
            max_age_ms=_non_negative_int(data, "max_age_ms", 2000),
            request_timeout_s=_positive(data, "request_timeout_s", 10.0),
            operation_timeout_s=None if operation_timeout is None else _positive(data, "operation_timeout_s", None),
            skip_visited_nodes=skip_visited,
            application_name=str(data.get("application_name") or "opcua-input"),
            reconnect_backoff_s=tuple(_as_float(v, "reconnect_backoff_s") for v in backoff),
        )


def load_config(config_path: str) -> OpcuaInputConfig:
    """
    Load OPC UA input configuration from JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file is missing, not JSON or invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"Configuration file is not UTF-8 text: {config_path}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e

    config = OpcuaInputConfig.from_dict(_normalize_config(raw_config))
    log_info(f"Configuration loaded from {config_path}")
    return config


def _normalize_config(raw_config: Any) -> Any:
    """
    Normalize configuration to a single connector object.

    Handles:
    - Plugin list format: list of plugin configurations
    - Wrapper format: {"config": {...}}
    - Bare connector object
    """
    if isinstance(raw_config, list):
        if not raw_config:
            return {}

        first_plugin = raw_config[0]
        if isinstance(first_plugin, dict) and "config" in first_plugin:
            return first_plugin["config"]
        return first_plugin

    if isinstance(raw_config, dict) and "config" in raw_config:
        return raw_config["config"]

    return raw_config


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _positive(data: dict, name: str, default: Optional[float]) -> Optional[float]:
    value = _as_float(data.get(name, default), name)
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero, got {value}")
    return value


def _non_negative_int(data: dict, name: str, default: int) -> int:
    value = _as_float(data.get(name, default), name)
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return int(value)
