"""
OPC UA Session Manager.

This module owns the client session: endpoint discovery, endpoint
selection, client identity provisioning, secure channel and session
establishment, and teardown.
"""

import asyncio
from typing import Callable, Optional

from asyncua import Client, ua

from ..config import OpcuaInputConfig
from ..errors import (
    ConnectError,
    NoSuitableEndpointError,
    NotConnectedError,
    OperationCancelled,
)
from ..logging import log_info, log_warn, log_error
from ..security import (
    CertificateProvisioner,
    IdentityProvider,
    SECURITY_POLICY_MAPPING,
    describe_endpoint,
    select_endpoint,
)
from ..types import AuthMode, ClientIdentity, ConnectStep, SessionState
from ..utils import with_deadline


class SessionManager:
    """
    Manages the OPC UA client session lifecycle.

    State machine: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED.
    The client reference is only swapped while holding the manager's
    lock; browse and poll components borrow it through ``client`` but
    never replace it.
    """

    def __init__(
        self,
        config: OpcuaInputConfig,
        identity_provider: Optional[IdentityProvider] = None,
        client_factory: Optional[Callable[..., Client]] = None,
    ):
        """
        Initialize session manager.

        Args:
            config: Connector configuration
            identity_provider: Source of the client certificate, ephemeral by default
            client_factory: Callable building a client for a URL, asyncua Client by default
        """
        self.config = config
        self.identity_provider = identity_provider or CertificateProvisioner()
        self._client_factory = client_factory or Client

        self._client: Optional[Client] = None
        self._state = SessionState.DISCONNECTED
        self._lock = asyncio.Lock()

        self.selected_endpoint: Optional[ua.EndpointDescription] = None
        self.identity: Optional[ClientIdentity] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def auth_mode(self) -> AuthMode:
        return self.config.auth_mode

    @property
    def client(self) -> Client:
        """The live client; raises NotConnectedError when there is none."""
        if self._client is None:
            raise NotConnectedError("No active OPC UA session")
        return self._client

    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED and self._client is not None

    async def connect(self) -> None:
        """
        Establish the session unless one is already live.

        Raises:
            ConnectError: If any connect step fails
            OperationCancelled: If a step exceeds the configured deadline
        """
        async with self._lock:
            if self._client is not None:
                return

            self._state = SessionState.CONNECTING
            try:
                client = await self._establish()
            except BaseException:
                self._state = SessionState.DISCONNECTED
                raise

            self._client = client
            self._state = SessionState.CONNECTED

    async def close(self) -> None:
        """Tear down the session if present. Safe to call when disconnected."""
        async with self._lock:
            client, self._client = self._client, None
            self._state = SessionState.DISCONNECTED
            self.identity = None

            if client is None:
                return

            # Teardown must finish even if the caller is cancelled meanwhile
            await asyncio.shield(self._disconnect(client))

    async def _establish(self) -> Client:
        """Run connect steps 1 to 6 and return the connected client."""
        # Step 1: Discover endpoints
        endpoints = await self._discover_endpoints()

        # Step 2: Determine the authentication method
        auth_mode = self.config.auth_mode
        log_info(f"Selected authentication mode: {auth_mode.value}")

        # Step 3: Select an endpoint supporting that method
        endpoint = select_endpoint(endpoints, auth_mode, SECURITY_POLICY_MAPPING.keys())
        if endpoint is None:
            log_error("Could not select a suitable endpoint")
            raise ConnectError(
                ConnectStep.SELECT_ENDPOINT,
                NoSuitableEndpointError(auth_mode, len(endpoints)),
            )
        self.selected_endpoint = endpoint
        log_info(
            f"Selected endpoint {endpoint.EndpointUrl} "
            f"({endpoint.SecurityPolicyUri}, {getattr(endpoint.SecurityMode, 'name', endpoint.SecurityMode)}, "
            f"level {endpoint.SecurityLevel})"
        )

        # Step 4: Generate the client identity
        identity = self._provision_identity()

        # Step 5: Build the client with security and authentication options
        client = await self._configure_client(endpoint, auth_mode, identity)

        # Step 6: Open secure channel and session
        await self._open_session(client, endpoint)
        self.identity = identity
        return client

    async def _discover_endpoints(self) -> list[ua.EndpointDescription]:
        try:
            discovery_client = self._client_factory(
                url=self.config.endpoint,
                timeout=self.config.request_timeout_s,
            )
            endpoints = await with_deadline(
                discovery_client.connect_and_get_server_endpoints(),
                self.config.operation_timeout_s,
                "endpoint discovery",
            )
        except OperationCancelled:
            raise
        except Exception as e:
            log_error(f"Failed to discover endpoints at {self.config.endpoint}: {e}")
            raise ConnectError(ConnectStep.DISCOVER, e) from e

        endpoints = list(endpoints or [])
        log_info(f"Discovered {len(endpoints)} endpoint(s) at {self.config.endpoint}")
        for i, endpoint in enumerate(endpoints, start=1):
            describe_endpoint(i, endpoint)
        return endpoints

    def _provision_identity(self) -> ClientIdentity:
        try:
            return self.identity_provider.provision(self.config.application_name)
        except Exception as e:
            log_error(f"Failed to generate certificate: {e}")
            raise ConnectError(ConnectStep.PROVISION_IDENTITY, e) from e

    async def _configure_client(
        self,
        endpoint: ua.EndpointDescription,
        auth_mode: AuthMode,
        identity: ClientIdentity,
    ) -> Client:
        try:
            client = self._client_factory(
                url=endpoint.EndpointUrl,
                timeout=self.config.request_timeout_s,
            )
            client.application_uri = identity.application_uri

            if auth_mode is AuthMode.USERNAME_PASSWORD:
                log_info("Using username/password login")
                client.set_user(self.config.username)
                client.set_password(self.config.password)
            else:
                log_info("Using anonymous login")

            policy = SECURITY_POLICY_MAPPING[endpoint.SecurityPolicyUri]
            if policy is not None:
                await with_deadline(
                    client.set_security(
                        policy,
                        certificate=identity.certificate_der,
                        private_key=identity.private_key_der,
                        server_certificate=endpoint.ServerCertificate or None,
                        mode=endpoint.SecurityMode,
                    ),
                    self.config.operation_timeout_s,
                    "security setup",
                )
            return client
        except OperationCancelled:
            raise
        except Exception as e:
            log_error(f"Failed to create a new client: {e}")
            raise ConnectError(ConnectStep.CONFIGURE, e) from e

    async def _open_session(self, client: Client, endpoint: ua.EndpointDescription) -> None:
        try:
            await with_deadline(client.connect(), self.config.operation_timeout_s, "connect")
        except BaseException as e:
            # asyncua only cleans up its socket on ordinary exceptions
            self._drop_socket(client)
            if isinstance(e, OperationCancelled) or not isinstance(e, Exception):
                raise
            log_error(f"Failed to connect to {endpoint.EndpointUrl}: {e}")
            raise ConnectError(ConnectStep.OPEN_SESSION, e) from e

        log_info(f"Connected to {endpoint.EndpointUrl}")
        log_info("Browsing large node trees can take a long time")

    @staticmethod
    def _drop_socket(client: Client) -> None:
        disconnect_socket = getattr(client, "disconnect_socket", None)
        if disconnect_socket is None:
            return
        try:
            disconnect_socket()
        except Exception as e:
            log_warn(f"Error while dropping OPC UA socket: {e}")

    async def _disconnect(self, client: Client) -> None:
        try:
            await with_deadline(
                client.disconnect(),
                self.config.operation_timeout_s or self.config.request_timeout_s,
                "disconnect",
            )
            log_info("OPC UA session closed")
        except Exception as e:
            log_warn(f"Error while closing OPC UA session: {e}")
