"""
OPC UA input connector.

Connects to an OPC UA server, browses the configured root nodes for
variables and streams their current values as text payloads tagged
with the sanitized node id.
"""

from .config import OpcuaInputConfig, load_config
from .connector import OpcuaInput
from .errors import (
    OpcuaInputError,
    SetupError,
    ConfigurationError,
    CertificateError,
    NoSuitableEndpointError,
    ConnectError,
    BrowseError,
    ReadError,
    NotConnectedError,
    OperationCancelled,
)
from .types import TagDefinition, TagReading

__version__ = "0.1.0"

__all__ = [
    'OpcuaInput',
    'OpcuaInputConfig',
    'load_config',
    'TagDefinition',
    'TagReading',
    'OpcuaInputError',
    'SetupError',
    'ConfigurationError',
    'CertificateError',
    'NoSuitableEndpointError',
    'ConnectError',
    'BrowseError',
    'ReadError',
    'NotConnectedError',
    'OperationCancelled',
]
