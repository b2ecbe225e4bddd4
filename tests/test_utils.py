import asyncio
import unittest

from asyncua import ua

from opcua_input.errors import OperationCancelled
from opcua_input.utils import join_path, sanitize_node_id, status_name, with_deadline


class SanitizeTests(unittest.TestCase):
    def test_replaces_unsafe_characters(self):
        self.assertEqual(sanitize_node_id(ua.NodeId.from_string("ns=2;s=Temp#1")), "ns_2_s_Temp_1")
        self.assertEqual(sanitize_node_id("ns=3;s=Line-1_ok"), "ns_3_s_Line-1_ok")

    def test_join_path(self):
        self.assertEqual(join_path("", "Root"), "Root")
        self.assertEqual(join_path("Root.A", "B"), "Root.A.B")

    def test_status_name(self):
        self.assertEqual(status_name(ua.StatusCode(ua.StatusCodes.BadTimeout)), "BadTimeout")
        self.assertEqual(status_name(ua.StatusCodes.BadSessionIdInvalid), "BadSessionIdInvalid")


class DeadlineTests(unittest.IsolatedAsyncioTestCase):
    async def test_no_deadline(self):
        async def work():
            return 7

        self.assertEqual(await with_deadline(work(), None, "work"), 7)

    async def test_expired_deadline_raises_cancelled(self):
        with self.assertRaises(OperationCancelled) as ctx:
            await with_deadline(asyncio.sleep(1), 0.01, "read")
        self.assertEqual(ctx.exception.operation, "read")

    async def test_library_timeout_is_not_a_cancellation(self):
        async def request():
            raise TimeoutError("request timed out")

        with self.assertRaises(TimeoutError) as ctx:
            await with_deadline(request(), 5, "read")
        self.assertNotIsInstance(ctx.exception, OperationCancelled)


if __name__ == "__main__":
    unittest.main()
