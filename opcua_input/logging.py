"""
Logging for the OPC UA input connector.

Messages go to the host runtime's logging accessor once one is bound;
until then, or when the host lacks a level, they are written as JSON
lines through the standard library logger ``opcua_input``.
"""

from typing import Callable, Optional
import logging
import sys

from .formatter import JsonFormatter

LOGGER_NAME = "opcua_input"

# Accessor method consulted for each standard logging level
HOST_METHODS = {
    logging.DEBUG: "log_debug",
    logging.INFO: "log_info",
    logging.WARNING: "log_warn",
    logging.ERROR: "log_error",
}


def _fallback_logger() -> logging.Logger:
    fallback = logging.getLogger(LOGGER_NAME)
    if not fallback.handlers:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(JsonFormatter())
        fallback.addHandler(stream)
        fallback.setLevel(logging.INFO)
        fallback.propagate = False
    return fallback


class OpcuaLogger:
    """Process-wide logger shared by every connector component."""

    _instance: Optional["OpcuaLogger"] = None

    def __init__(self):
        self._host: dict[int, Callable[[str], None]] = {}
        self._fallback = _fallback_logger()

    @classmethod
    def get_instance(cls) -> "OpcuaLogger":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the bound host accessor (used by tests)."""
        cls._instance = None

    @property
    def bound(self) -> bool:
        return bool(self._host)

    def initialize(self, logging_accessor) -> bool:
        """
        Route messages to a host logging accessor.

        The accessor may expose any of ``log_debug``, ``log_info``,
        ``log_warn`` and ``log_error``; levels it lacks keep using the
        fallback logger. An accessor whose ``is_valid`` attribute is
        false is refused.

        Args:
            logging_accessor: Host-provided logging object

        Returns:
            True if at least one level is now routed to the host
        """
        if logging_accessor is None or not getattr(logging_accessor, "is_valid", True):
            return False

        host = {}
        for level, method in HOST_METHODS.items():
            fn = getattr(logging_accessor, method, None)
            if callable(fn):
                host[level] = fn
        self._host = host
        return self.bound

    def set_level(self, level: int) -> None:
        """Set the threshold of the fallback logger."""
        self._fallback.setLevel(level)

    def log(self, level: int, message: str) -> None:
        fn = self._host.get(level)
        if fn is not None:
            try:
                fn(message)
                return
            except Exception as e:
                self._fallback.warning(f"Host logger failed, using fallback: {e}")
        self._fallback.log(level, message)

    def debug(self, message: str) -> None:
        self.log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(logging.INFO, message)

    def warn(self, message: str) -> None:
        self.log(logging.WARNING, message)

    def error(self, message: str) -> None:
        self.log(logging.ERROR, message)


def get_logger() -> OpcuaLogger:
    return OpcuaLogger.get_instance()


def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    get_logger().info(message)


def log_warn(message: str) -> None:
    get_logger().warn(message)


def log_error(message: str) -> None:
    get_logger().error(message)
