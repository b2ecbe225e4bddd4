"""
Client certificate provisioning for the OPC UA input connector.

This module handles:
- Ephemeral RSA key generation
- Self-signed client application certificate generation
- The identity provider seam used by the session manager
"""

import secrets
import socket
import string

from asyncua.crypto.cert_gen import generate_private_key, generate_self_signed_app_certificate
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID

from ..errors import CertificateError
from ..logging import log_info, log_debug
from ..types import ClientIdentity


class IdentityProvider:
    """
    Source of the client identity used to secure the channel.

    Subclasses may return a persisted or pinned identity; the session
    manager only relies on ``provision``.
    """

    def provision(self, name_hint: str) -> ClientIdentity:
        """
        Produce a client identity.

        Args:
            name_hint: Application name used to build the application URI

        Raises:
            CertificateError: If the identity cannot be produced
        """
        raise NotImplementedError


class CertificateProvisioner(IdentityProvider):
    """
    Generates a fresh self-signed identity in memory for each connection.

    The application URI gets a random suffix so that several client
    instances connecting to the same server do not collide.
    """

    MIN_KEY_SIZE = 2048
    VALID_DAYS = 3650
    SUFFIX_LENGTH = 8
    SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

    def __init__(
        self,
        key_size: int = 2048,
        valid_days: int = VALID_DAYS,
        organization: str = "opcua-input",
    ):
        """
        Initialize certificate provisioner.

        Args:
            key_size: RSA key size in bits, at least 2048
            valid_days: Certificate validity period
            organization: Organization name in the certificate subject
        """
        if key_size < self.MIN_KEY_SIZE:
            raise ValueError(f"RSA key size must be at least {self.MIN_KEY_SIZE} bits, got {key_size}")
        self.key_size = key_size
        self.valid_days = valid_days
        self.organization = organization

    def provision(self, name_hint: str) -> ClientIdentity:
        """Generate a new RSA key and self-signed certificate."""
        application_uri = self._application_uri(name_hint)
        hostname = socket.gethostname() or "localhost"

        try:
            private_key = generate_private_key(self.key_size)
            certificate = self._build_certificate(private_key, application_uri, name_hint, hostname)
            identity = ClientIdentity(
                application_uri=application_uri,
                certificate=certificate,
                private_key=private_key,
            )
            certificate_bytes = len(identity.certificate_der)
            key_bytes = len(identity.private_key_der)
        except CertificateError:
            raise
        except Exception as e:
            raise CertificateError(f"Failed to generate client certificate for {application_uri}: {e}") from e

        log_info(f"Generated ephemeral client certificate for {application_uri}")
        log_debug(
            f"Client certificate serial={certificate.serial_number:x} "
            f"({certificate_bytes} bytes DER, key {key_bytes} bytes) valid until {certificate.not_valid_after_utc.isoformat()}"
        )
        return identity

    def _application_uri(self, name_hint: str) -> str:
        suffix = "".join(secrets.choice(self.SUFFIX_ALPHABET) for _ in range(self.SUFFIX_LENGTH))
        hint = (name_hint or "opcua-input").strip().replace(" ", "-")
        return f"urn:{hint}:client-{suffix}"

    def _build_certificate(
        self,
        private_key: rsa.RSAPrivateKey,
        application_uri: str,
        common_name: str,
        hostname: str,
    ) -> x509.Certificate:
        return generate_self_signed_app_certificate(
            private_key=private_key,
            common_name=common_name or "opcua-input",
            names={"organizationName": self.organization},
            subject_alt_names=[
                x509.UniformResourceIdentifier(application_uri),
                x509.DNSName(hostname),
            ],
            extended=[ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH],
            days=self.valid_days,
        )
