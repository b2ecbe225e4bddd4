import unittest

from asyncua import ua
from asyncua.crypto.security_policies import SecurityPolicyBasic256Sha256

from opcua_input.client import SessionManager
from opcua_input.errors import (
    ConnectError,
    NoSuitableEndpointError,
    NotConnectedError,
    OperationCancelled,
)
from opcua_input.security import CertificateProvisioner
from opcua_input.types import ConnectStep, SessionState

from tests.fakes import FakeServer, StaticIdentityProvider, make_config, make_endpoint


class SessionManagerTests(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls):
        cls.identity = CertificateProvisioner().provision("session-test")

    def make_session(self, server, **config):
        provider = StaticIdentityProvider(self.identity)
        session = SessionManager(
            make_config(**config),
            identity_provider=provider,
            client_factory=server.client_factory,
        )
        return session, provider

    async def test_anonymous_connect_without_security(self):
        server = FakeServer(endpoints=[make_endpoint(url="opc.tcp://10.0.0.5:4840")])
        session, provider = self.make_session(server)

        await session.connect()

        self.assertEqual(session.state, SessionState.CONNECTED)
        self.assertTrue(session.is_connected())
        self.assertEqual(provider.calls, 1)
        # discovery client plus session client
        self.assertEqual(len(server.clients), 2)
        client = session.client
        self.assertEqual(client.url, "opc.tcp://10.0.0.5:4840")
        self.assertEqual(client.application_uri, self.identity.application_uri)
        self.assertIsNone(client.security)
        self.assertIsNone(client.user)

    async def test_username_connect_with_security(self):
        secured = make_endpoint(
            policy_uri=SecurityPolicyBasic256Sha256.URI,
            mode=ua.MessageSecurityMode.SignAndEncrypt,
            level=100,
            token_types=(ua.UserTokenType.Anonymous, ua.UserTokenType.UserName),
        )
        server = FakeServer(endpoints=[make_endpoint(), secured])
        session, _ = self.make_session(server, username="operator", password="secret")

        await session.connect()

        client = session.client
        self.assertIs(session.selected_endpoint, secured)
        self.assertEqual(client.user, "operator")
        self.assertEqual(client.password, "secret")
        self.assertIs(client.security["policy"], SecurityPolicyBasic256Sha256)
        self.assertEqual(client.security["certificate"], self.identity.certificate_der)
        self.assertEqual(client.security["mode"], ua.MessageSecurityMode.SignAndEncrypt)

    async def test_no_suitable_endpoint_is_not_retryable(self):
        server = FakeServer(endpoints=[make_endpoint(token_types=(ua.UserTokenType.UserName,))])
        session, provider = self.make_session(server)

        with self.assertRaises(ConnectError) as ctx:
            await session.connect()

        self.assertEqual(ctx.exception.step, ConnectStep.SELECT_ENDPOINT)
        self.assertIsInstance(ctx.exception.cause, NoSuitableEndpointError)
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(provider.calls, 0)
        self.assertEqual(session.state, SessionState.DISCONNECTED)

    async def test_discovery_failure_is_retryable(self):
        server = FakeServer()
        server.discovery_error = ConnectionRefusedError("connection refused")
        session, _ = self.make_session(server)

        with self.assertRaises(ConnectError) as ctx:
            await session.connect()

        self.assertEqual(ctx.exception.step, ConnectStep.DISCOVER)
        self.assertTrue(ctx.exception.retryable)
        with self.assertRaises(NotConnectedError):
            session.client

    async def test_open_session_failure_drops_socket(self):
        server = FakeServer()
        server.connect_error = ua.UaStatusCodeError(ua.StatusCodes.BadIdentityTokenRejected)
        session, _ = self.make_session(server)

        with self.assertRaises(ConnectError) as ctx:
            await session.connect()

        self.assertEqual(ctx.exception.step, ConnectStep.OPEN_SESSION)
        self.assertTrue(server.session_clients[0].socket_dropped)
        self.assertFalse(session.is_connected())

    async def test_deadline_expiry_is_not_wrapped(self):
        server = FakeServer()
        server.discovery_delay = 1
        session, _ = self.make_session(server, operation_timeout_s=0.01)

        with self.assertRaises(OperationCancelled):
            await session.connect()
        self.assertEqual(session.state, SessionState.DISCONNECTED)

    async def test_connect_is_idempotent(self):
        server = FakeServer()
        session, provider = self.make_session(server)

        await session.connect()
        await session.connect()

        self.assertEqual(provider.calls, 1)
        self.assertEqual(len(server.session_clients), 1)

    async def test_close(self):
        server = FakeServer()
        session, _ = self.make_session(server)
        await session.connect()
        client = session.client

        await session.close()
        await session.close()

        self.assertEqual(client.disconnect_calls, 1)
        self.assertEqual(session.state, SessionState.DISCONNECTED)
        with self.assertRaises(NotConnectedError):
            session.client


if __name__ == "__main__":
    unittest.main()
