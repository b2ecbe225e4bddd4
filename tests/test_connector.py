import unittest
from unittest.mock import AsyncMock, patch

from asyncua import ua
from asyncua.ua import uaerrors

from opcua_input.client import SessionManager
from opcua_input.connector import OpcuaInput
from opcua_input.errors import BrowseError, NotConnectedError, ReadError
from opcua_input.security import CertificateProvisioner

from tests.fakes import PLANT_ROOT, StaticIdentityProvider, bad, build_plant, make_config


class OpcuaInputTests(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls):
        cls.identity = CertificateProvisioner().provision("connector-test")

    def make_input(self, server, **config_overrides):
        config = make_config(node_ids=[ua.NodeId.from_string(PLANT_ROOT)], **config_overrides)
        session = SessionManager(
            config,
            identity_provider=StaticIdentityProvider(self.identity),
            client_factory=server.client_factory,
        )
        connector = OpcuaInput(config, session=session)
        self.addAsyncCleanup(connector.close)
        return connector

    async def test_connect_and_read(self):
        server = build_plant()
        connector = self.make_input(server)

        await connector.connect()
        readings = await connector.read_batch()

        self.assertEqual([tag.path for tag in connector.tags], ["Root.A", "Root.B.C"])
        self.assertEqual(
            [(r.payload, r.metadata["opcua_path"]) for r in readings],
            [(b"42", "ns_2_s_A"), (b"true", "ns_2_s_C")],
        )

    async def test_read_before_connect(self):
        connector = self.make_input(build_plant())

        with self.assertRaises(NotConnectedError):
            await connector.read_batch()

    async def test_connect_is_idempotent(self):
        server = build_plant()
        connector = self.make_input(server)

        await connector.connect()
        reads = len(server.attribute_reads)
        await connector.connect()

        self.assertEqual(len(server.attribute_reads), reads)
        self.assertEqual(len(server.session_clients), 1)

    async def test_fatal_read_requires_reconnect(self):
        server = build_plant()
        connector = self.make_input(server)
        await connector.connect()
        first_client = connector.session.client

        server.read_error = uaerrors.BadSessionIdInvalid()
        with self.assertRaises(NotConnectedError) as ctx:
            await connector.read_batch()

        self.assertIsInstance(ctx.exception.__cause__, ReadError)
        self.assertEqual(connector.tags, [])
        self.assertFalse(connector.is_connected())
        self.assertEqual(first_client.disconnect_calls, 1)

        server.read_error = None
        await connector.connect()
        readings = await connector.read_batch()

        self.assertEqual(len(readings), 2)
        self.assertIsNot(connector.session.client, first_client)

    async def test_non_fatal_read_error_keeps_session(self):
        server = build_plant()
        connector = self.make_input(server)
        await connector.connect()

        server.read_error = uaerrors.BadTooManyOperations()
        with self.assertRaises(ReadError):
            await connector.read_batch()

        self.assertTrue(connector.is_connected())
        self.assertEqual(len(connector.tags), 2)

    async def test_browse_failure_closes_session(self):
        server = build_plant()
        server.set_attribute("ns=2;s=C", ua.AttributeIds.NodeClass, bad(ua.StatusCodes.BadNodeIdUnknown))
        connector = self.make_input(server)

        with self.assertRaises(BrowseError):
            await connector.connect()

        self.assertFalse(connector.is_connected())
        self.assertEqual(server.session_clients[0].disconnect_calls, 1)

    async def test_waits_poll_interval_after_read(self):
        connector = self.make_input(build_plant(), poll_interval_ms=250)
        await connector.connect()

        with patch("opcua_input.connector.asyncio.sleep", new=AsyncMock()) as sleep:
            await connector.read_batch()

        sleep.assert_awaited_once_with(0.25)

    async def test_close(self):
        server = build_plant()
        connector = self.make_input(server)
        await connector.connect()

        await connector.close()

        self.assertEqual(connector.tags, [])
        self.assertFalse(connector.is_connected())
        with self.assertRaises(NotConnectedError):
            await connector.read_batch()


if __name__ == "__main__":
    unittest.main()
