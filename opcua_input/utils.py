"""OPC UA input utility functions."""

import asyncio
import re
from typing import Any, Awaitable, Iterable, Optional, TypeVar, Union

from asyncua import ua
from asyncua.ua import status_codes

from .errors import ConfigurationError, OperationCancelled

T = TypeVar("T")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_node_id(node_id: Union[ua.NodeId, str]) -> str:
    """Render a node id as text with every unsafe character replaced by '_'."""
    text = node_id.to_string() if isinstance(node_id, ua.NodeId) else str(node_id)
    return _UNSAFE_CHARS.sub("_", text)


def join_path(parent: str, name: str) -> str:
    """Append a browse name to a dotted path."""
    if not parent:
        return name
    return f"{parent}.{name}"


def parse_node_ids(node_id_strings: Iterable[Any]) -> list[ua.NodeId]:
    """
    Parse configured node id strings.

    Args:
        node_id_strings: Node ids in OPC UA text form, e.g. "ns=2;s=Line1"

    Returns:
        Parsed node ids, in configuration order

    Raises:
        ConfigurationError: If the list is empty or any entry is malformed
    """
    strings = list(node_id_strings or [])
    if not strings:
        raise ConfigurationError("No node_ids provided, at least one root node id is required")

    parsed = []
    for i, text in enumerate(strings):
        if not isinstance(text, str) or not text.strip():
            raise ConfigurationError(f"node_ids[{i}] must be a non-empty string, got {text!r}")
        try:
            parsed.append(ua.NodeId.from_string(text.strip()))
        except (ua.UaError, ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid node id {text!r}: {e}") from e
    return parsed


async def with_deadline(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
) -> T:
    """
    Await an operation under an optional caller deadline.

    Expiry of the deadline raises OperationCancelled. A TimeoutError
    raised by the protocol library itself is propagated unchanged so
    that it is not mistaken for a cancellation.
    """
    if timeout is None:
        return await awaitable

    try:
        async with asyncio.timeout(timeout) as deadline:
            return await awaitable
    except TimeoutError:
        if deadline.expired():
            raise OperationCancelled(operation, timeout) from None
        raise


def status_name(status: Any) -> str:
    """Symbolic name of a StatusCode (or raw status value)."""
    value = getattr(status, "value", status)
    try:
        return status_codes.get_name_and_doc(value)[0]
    except (KeyError, TypeError, ValueError):
        return f"0x{value:08X}" if isinstance(value, int) else str(value)
