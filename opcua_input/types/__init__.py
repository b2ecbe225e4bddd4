"""
OPC UA input type definitions and converters.

This package provides:
- OPC UA DataType naming and value rendering
- Data models for discovered tags, readings and the client identity
"""

from .type_converter import TypeConverter
from .models import (
    AuthMode,
    SessionState,
    ConnectStep,
    ClientIdentity,
    NodeAttributes,
    TagDefinition,
    TagReading,
    PollResult,
)

__all__ = [
    'TypeConverter',
    'AuthMode',
    'SessionState',
    'ConnectStep',
    'ClientIdentity',
    'NodeAttributes',
    'TagDefinition',
    'TagReading',
    'PollResult',
]
