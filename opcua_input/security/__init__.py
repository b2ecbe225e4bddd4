"""
OPC UA input security components.

This package provides:
- Ephemeral client certificate provisioning
- Endpoint selection by authentication mode and security level
"""

from .certificate_manager import IdentityProvider, CertificateProvisioner
from .endpoint_selector import (
    SECURITY_POLICY_MAPPING,
    SECURITY_POLICY_NONE_URI,
    select_endpoint,
    describe_endpoint,
)

__all__ = [
    'IdentityProvider',
    'CertificateProvisioner',
    'SECURITY_POLICY_MAPPING',
    'SECURITY_POLICY_NONE_URI',
    'select_endpoint',
    'describe_endpoint',
]
