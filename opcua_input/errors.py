"""
Exception hierarchy for the OPC UA input connector.

Errors fall into four groups:
- Setup errors (configuration, certificate, endpoint selection): fatal,
  never retried.
- Session errors: a read failed with a status that invalidates the session;
  the caller must reconnect and browse again.
- Node-level errors: a single subtree or reading could not be processed.
- Cancellation: an operation ran past the deadline supplied by the caller.
"""

from typing import Any, Optional

from asyncua import ua


class OpcuaInputError(Exception):
    """Base class for all connector errors."""


class SetupError(OpcuaInputError):
    """Configuration or setup problem that retrying will not fix."""


class ConfigurationError(SetupError, ValueError):
    """Invalid or incomplete connector configuration."""


class CertificateError(SetupError):
    """Client key or certificate could not be generated or encoded."""


class NoSuitableEndpointError(SetupError):
    """No server endpoint supports the requested authentication mode."""

    def __init__(self, auth_mode: Any, endpoint_count: int):
        self.auth_mode = auth_mode
        self.endpoint_count = endpoint_count
        super().__init__(
            f"None of {endpoint_count} endpoint(s) supports authentication mode {auth_mode}"
        )


class ConnectError(OpcuaInputError):
    """
    Session establishment failed.

    Attributes:
        step: The connect step that failed
        cause: The underlying exception
    """

    def __init__(self, step: Any, cause: BaseException):
        self.step = step
        self.cause = cause
        step_name = getattr(step, "value", step)
        super().__init__(f"Connect failed at step '{step_name}': {cause}")

    @property
    def retryable(self) -> bool:
        """Setup errors cannot be fixed by connecting again."""
        return not isinstance(self.cause, SetupError)


class BrowseError(OpcuaInputError):
    """Browsing a node or its references failed."""

    def __init__(
        self,
        node_id: Any,
        message: str,
        status: Optional[ua.StatusCode] = None,
    ):
        self.node_id = node_id
        self.status = status
        node_text = node_id.to_string() if hasattr(node_id, "to_string") else str(node_id)
        super().__init__(f"Browse of {node_text} failed: {message}")


class ReadError(OpcuaInputError):
    """A batched read request failed as a whole."""

    def __init__(self, message: str, fatal: bool = False, status_code: Optional[int] = None):
        self.fatal = fatal
        self.status_code = status_code
        super().__init__(message)


class NotConnectedError(OpcuaInputError):
    """No live session; connect (and browse) before polling again."""


class OperationCancelled(OpcuaInputError):
    """An operation was aborted because its deadline expired."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} cancelled after {timeout:g}s deadline")
