"""
Endpoint selection for the OPC UA input connector.

Chooses the most secure server endpoint that supports the requested
user authentication mode, and logs what the server advertised.
"""

from typing import Iterable, Optional

from asyncua import ua
from asyncua.crypto.security_policies import (
    SecurityPolicyBasic256Sha256,
    SecurityPolicyAes128Sha256RsaOaep,
    SecurityPolicyAes256Sha256RsaPss,
)
from cryptography import x509

from ..logging import log_info, log_warn
from ..types import AuthMode

SECURITY_POLICY_NONE_URI = "http://opcfoundation.org/UA/SecurityPolicy#None"

# Mapping from advertised policy URIs to opcua-asyncio security policies
SECURITY_POLICY_MAPPING = {
    SECURITY_POLICY_NONE_URI: None,
    SecurityPolicyBasic256Sha256.URI: SecurityPolicyBasic256Sha256,
    SecurityPolicyAes128Sha256RsaOaep.URI: SecurityPolicyAes128Sha256RsaOaep,
    SecurityPolicyAes256Sha256RsaPss.URI: SecurityPolicyAes256Sha256RsaPss,
}


def select_endpoint(
    endpoints: Iterable[ua.EndpointDescription],
    auth_mode: AuthMode,
    supported_policy_uris: Optional[Iterable[str]] = None,
) -> Optional[ua.EndpointDescription]:
    """
    Pick the endpoint to connect to.

    Only endpoints advertising a user identity token of the requested
    mode are considered. Among those, the highest SecurityLevel wins;
    on a tie the endpoint listed first is kept.

    Args:
        endpoints: Endpoints returned by discovery
        auth_mode: Desired authentication mode
        supported_policy_uris: If given, also restrict to these security policies

    Returns:
        The selected endpoint, or None if no endpoint qualifies
    """
    token_type = auth_mode.token_type
    allowed_policies = set(supported_policy_uris) if supported_policy_uris is not None else None

    selected = None
    for endpoint in endpoints:
        tokens = endpoint.UserIdentityTokens or []
        if not any(token.TokenType == token_type for token in tokens):
            continue
        if allowed_policies is not None and endpoint.SecurityPolicyUri not in allowed_policies:
            continue
        if selected is None or endpoint.SecurityLevel > selected.SecurityLevel:
            selected = endpoint

    return selected


def describe_endpoint(index: int, endpoint: ua.EndpointDescription) -> None:
    """Log everything a server advertises for one endpoint."""
    log_info(f"Endpoint {index}:")
    log_info(f"  EndpointUrl: {endpoint.EndpointUrl}")
    log_info(f"  SecurityMode: {_enum_name(endpoint.SecurityMode)}")
    log_info(f"  SecurityPolicyUri: {endpoint.SecurityPolicyUri}")
    log_info(f"  TransportProfileUri: {endpoint.TransportProfileUri}")
    log_info(f"  SecurityLevel: {endpoint.SecurityLevel}")

    server = endpoint.Server
    if server is not None:
        application_name = getattr(server.ApplicationName, "Text", None)
        log_info(f"  Server ApplicationUri: {server.ApplicationUri}")
        log_info(f"  Server ProductUri: {server.ProductUri}")
        log_info(f"  Server ApplicationName: {application_name}")
        log_info(f"  Server ApplicationType: {_enum_name(server.ApplicationType)}")
        log_info(f"  Server GatewayServerUri: {server.GatewayServerUri}")
        log_info(f"  Server DiscoveryProfileUri: {server.DiscoveryProfileUri}")
        log_info(f"  Server DiscoveryUrls: {server.DiscoveryUrls}")

    if endpoint.ServerCertificate:
        _describe_certificate(endpoint.ServerCertificate)

    for j, token in enumerate(endpoint.UserIdentityTokens or [], start=1):
        log_info(f"  UserIdentityToken {j}:")
        log_info(f"    PolicyId: {token.PolicyId}")
        log_info(f"    TokenType: {_enum_name(token.TokenType)}")
        log_info(f"    IssuedTokenType: {token.IssuedTokenType}")
        log_info(f"    IssuerEndpointUrl: {token.IssuerEndpointUrl}")


def _describe_certificate(der_data: bytes) -> None:
    """Log validity and subject alternative names of a server certificate."""
    log_info("  Server certificate:")
    try:
        cert = x509.load_der_x509_certificate(der_data)
    except ValueError as e:
        log_warn(f"    Failed to parse server certificate: {e}")
        return

    log_info(f"    Not Before: {cert.not_valid_before_utc.isoformat()}")
    log_info(f"    Not After: {cert.not_valid_after_utc.isoformat()}")

    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        log_warn("    Certificate missing Subject Alternative Name extension")
        return

    dns_names = san.get_values_for_type(x509.DNSName)
    ip_addresses = [ip.compressed for ip in san.get_values_for_type(x509.IPAddress)]
    uris = san.get_values_for_type(x509.UniformResourceIdentifier)
    log_info(f"    DNS Names: {dns_names}")
    log_info(f"    IP Addresses: {ip_addresses}")
    log_info(f"    URIs: {uris}")


def _enum_name(value) -> str:
    return getattr(value, "name", str(value))
