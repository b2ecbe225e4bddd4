"""
Data models for the OPC UA input connector.

This module defines the internal data structures used to describe
the client identity, discovered nodes and the readings produced
for the host pipeline.
"""

from dataclasses import dataclass, field
from typing import Optional, Any
from enum import Enum

from asyncua import ua
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


# AccessLevel bit for "current value may be written"
ACCESS_LEVEL_CURRENT_WRITE = 0x02


class AuthMode(Enum):
    """User authentication mode requested from the server."""
    ANONYMOUS = "anonymous"
    USERNAME_PASSWORD = "username_password"

    @classmethod
    def from_credentials(cls, username: Optional[str], password: Optional[str]) -> 'AuthMode':
        """Both username and password must be set for username authentication."""
        if username and password:
            return cls.USERNAME_PASSWORD
        return cls.ANONYMOUS

    @property
    def token_type(self) -> ua.UserTokenType:
        """User identity token type advertised by endpoints for this mode."""
        if self is AuthMode.USERNAME_PASSWORD:
            return ua.UserTokenType.UserName
        return ua.UserTokenType.Anonymous


class SessionState(Enum):
    """Lifecycle state of the client session."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectStep(Enum):
    """Steps of session establishment, reported on failure."""
    DISCOVER = "discover_endpoints"
    SELECT_ENDPOINT = "select_endpoint"
    PROVISION_IDENTITY = "provision_identity"
    CONFIGURE = "configure_client"
    OPEN_SESSION = "open_session"


@dataclass(frozen=True)
class ClientIdentity:
    """
    In-memory client certificate and private key.

    Generated fresh for every connection attempt and never persisted.
    """
    application_uri: str
    certificate: x509.Certificate
    private_key: RSAPrivateKey

    @property
    def certificate_der(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.DER)

    @property
    def certificate_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def private_key_der(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @property
    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


@dataclass
class NodeAttributes:
    """
    Attribute snapshot of a single node.

    Optional fields are None when the server reports the attribute
    as not applicable for the node.
    """
    node_class: ua.NodeClass
    browse_name: str
    description: Optional[str] = None
    access_level: Optional[int] = None
    data_type: Optional[ua.NodeId] = None

    @property
    def is_variable(self) -> bool:
        return self.node_class == ua.NodeClass.Variable

    @property
    def writable(self) -> bool:
        """Check the CurrentWrite bit; False when AccessLevel is absent."""
        if self.access_level is None:
            return False
        return bool(self.access_level & ACCESS_LEVEL_CURRENT_WRITE)


@dataclass(frozen=True)
class TagDefinition:
    """
    A readable leaf discovered while browsing.

    The path is the dot-joined chain of browse names from the
    configured root down to this node.
    """
    node_id: ua.NodeId
    path: str
    data_type: str
    writable: bool = False
    description: str = ""

    def to_dict(self) -> dict:
        """Create a JSON-friendly dictionary."""
        return {
            "node_id": self.node_id.to_string(),
            "path": self.path,
            "data_type": self.data_type,
            "writable": self.writable,
            "description": self.description,
        }


@dataclass(frozen=True)
class TagReading:
    """One rendered value ready for the host pipeline."""
    payload: bytes
    opcua_path: str
    tag: Optional[TagDefinition] = None

    @property
    def metadata(self) -> dict[str, str]:
        return {"opcua_path": self.opcua_path}

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.payload.decode("utf-8", errors="replace"),
            "metadata": self.metadata,
        }


@dataclass
class PollResult:
    """Outcome of a single poll cycle."""
    readings: list[TagReading] = field(default_factory=list)
    reconnect_required: bool = False
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
