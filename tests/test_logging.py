import json
import logging
import unittest

from opcua_input.formatter import JsonFormatter
from opcua_input.logging import OpcuaLogger, get_logger, log_info, log_warn


class RecordingAccessor:
    def __init__(self):
        self.messages = []

    def log_info(self, message):
        self.messages.append(("info", message))

    def log_warn(self, message):
        self.messages.append(("warn", message))

    def log_error(self, message):
        self.messages.append(("error", message))


class LoggerTests(unittest.TestCase):
    def setUp(self):
        OpcuaLogger.reset()
        self.addCleanup(OpcuaLogger.reset)

    def test_routes_to_host_accessor(self):
        accessor = RecordingAccessor()
        self.assertTrue(get_logger().initialize(accessor))

        log_info("connected")
        log_warn("slow response")

        self.assertEqual(accessor.messages, [("info", "connected"), ("warn", "slow response")])

    def test_rejects_invalid_accessor(self):
        accessor = RecordingAccessor()
        accessor.is_valid = False

        self.assertFalse(get_logger().initialize(accessor))
        self.assertFalse(get_logger().initialize(None))

    def test_falls_back_to_standard_logging(self):
        with self.assertLogs("opcua_input", level="INFO") as captured:
            log_info("no host logger")

        self.assertEqual(captured.records[0].getMessage(), "no host logger")

    def test_missing_debug_function_uses_fallback(self):
        accessor = RecordingAccessor()
        get_logger().initialize(accessor)
        get_logger().set_level(logging.DEBUG)
        self.addCleanup(get_logger().set_level, logging.INFO)

        with self.assertLogs("opcua_input", level="DEBUG") as captured:
            get_logger().debug("browse trace")

        self.assertEqual(accessor.messages, [])
        self.assertEqual(captured.records[0].levelno, logging.DEBUG)


class JsonFormatterTests(unittest.TestCase):
    def make_record(self, message, level=logging.INFO):
        return logging.LogRecord("opcua_input", level, __file__, 1, message, None, None)

    def test_plain_message(self):
        formatter = JsonFormatter()

        first = json.loads(formatter.format(self.make_record("hello")))
        second = json.loads(formatter.format(self.make_record("again", logging.ERROR)))

        self.assertEqual(first["message"], "hello")
        self.assertEqual(first["level"], "INFO")
        self.assertEqual(first["logger"], "opcua_input")
        self.assertIn("timestamp", first)
        self.assertEqual(second["id"], first["id"] + 1)
        self.assertEqual(second["level"], "ERROR")

    def test_json_message_is_merged(self):
        entry = json.loads(JsonFormatter().format(self.make_record('{"tags": 3}')))

        self.assertEqual(entry["tags"], 3)
        self.assertEqual(entry["level"], "INFO")
        self.assertNotIn("message", entry)


if __name__ == "__main__":
    unittest.main()
