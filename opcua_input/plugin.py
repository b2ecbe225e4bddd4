"""
OPC UA Input Plugin Entry Point.

This module provides the plugin interface driven by the host runtime:
- init(config_path, sink, logging_accessor): Initialize the plugin
- start_loop(): Start polling in a background thread
- stop_loop(): Stop polling
- cleanup(): Clean up resources

Each batch of readings is handed to the ``sink`` callable supplied at
init time.
"""

import asyncio
import threading
from typing import Callable, Optional

from .config import OpcuaInputConfig, load_config
from .connector import OpcuaInput
from .errors import (
    BrowseError,
    ConnectError,
    NotConnectedError,
    OperationCancelled,
    ReadError,
    SetupError,
)
from .logging import get_logger, log_info, log_warn, log_error
from .types import TagReading

Sink = Callable[[list[TagReading]], None]

# Plugin state
_config: Optional[OpcuaInputConfig] = None
_sink: Optional[Sink] = None
_loop_thread: Optional[threading.Thread] = None
_stop_event = threading.Event()


def init(
    config_path: str,
    sink: Optional[Sink] = None,
    logging_accessor=None,
) -> bool:
    """
    Initialize the OPC UA input plugin.

    Called once when the plugin is loaded by the runtime.

    Args:
        config_path: Path to the JSON configuration file
        sink: Callable receiving each non-empty batch of readings
        logging_accessor: Host logging object, standard logging if None

    Returns:
        True if initialization successful, False otherwise
    """
    global _config, _sink

    if logging_accessor is not None and get_logger().initialize(logging_accessor):
        log_info("Logging initialized with runtime accessor")

    log_info("OPC UA input plugin initializing...")

    try:
        _config = load_config(config_path)
    except SetupError as e:
        log_error(f"Failed to load configuration: {e}")
        return False
    except Exception as e:
        log_error(f"Initialization error: {e}")
        return False

    _sink = sink
    log_info("OPC UA input plugin initialized successfully")
    return True


def start_loop() -> bool:
    """
    Start polling.

    Called after successful initialization.

    Returns:
        True if the polling thread started, False otherwise
    """
    global _loop_thread

    log_info("Starting OPC UA input...")

    if _config is None:
        log_error("Plugin not initialized")
        return False
    if _loop_thread is not None and _loop_thread.is_alive():
        log_warn("OPC UA input already running")
        return True

    _stop_event.clear()
    _loop_thread = threading.Thread(
        target=_run_loop_thread,
        args=(_config, _sink),
        daemon=True,
        name="opcua-input",
    )
    _loop_thread.start()

    log_info("OPC UA input thread started")
    return True


def stop_loop() -> bool:
    """
    Stop polling.

    Returns:
        True if the polling thread stopped, False if it is still running
    """
    global _loop_thread

    log_info("Stopping OPC UA input...")
    _stop_event.set()

    stopped = True
    if _loop_thread is not None and _loop_thread.is_alive():
        _loop_thread.join(timeout=5.0)
        if _loop_thread.is_alive():
            log_warn("Input thread did not stop within timeout")
            stopped = False
        else:
            log_info("Input thread stopped")

    if stopped:
        _loop_thread = None
    return stopped


def cleanup() -> bool:
    """
    Clean up plugin resources.

    Called when the plugin is being unloaded.
    """
    global _config, _sink

    log_info("Cleaning up OPC UA input plugin...")
    stopped = stop_loop()

    _config = None
    _sink = None
    log_info("Cleanup completed")
    return stopped


async def run_input(
    config: OpcuaInputConfig,
    sink: Optional[Sink],
    stop_event: threading.Event,
    connector: Optional[OpcuaInput] = None,
) -> None:
    """
    Connect, poll and reconnect until stopped.

    Retryable connect failures back off through
    ``config.reconnect_backoff_s``, holding the last delay once the list
    is exhausted. Setup failures end the loop.

    Args:
        config: Connector configuration
        sink: Callable receiving each non-empty batch of readings
        stop_event: Set by another thread to end the loop
        connector: Connector to drive, built from config if None
    """
    connector = connector or OpcuaInput(config)
    attempt = 0

    try:
        while not stop_event.is_set():
            if not connector.is_connected():
                try:
                    await connector.connect()
                    attempt = 0
                except ConnectError as e:
                    if not e.retryable:
                        log_error(f"Giving up: {e}")
                        return
                    delay = config.reconnect_backoff_s[min(attempt, len(config.reconnect_backoff_s) - 1)]
                    attempt += 1
                    log_warn(f"{e}; retrying in {delay:g}s")
                    await _sleep_unless_stopped(delay, stop_event)
                    continue
                except SetupError as e:
                    log_error(f"Giving up: {e}")
                    return
                except (BrowseError, OperationCancelled) as e:
                    log_warn(f"{e}; reconnecting")
                    await _sleep_unless_stopped(config.reconnect_backoff_s[0], stop_event)
                    continue

            try:
                readings = await connector.read_batch()
            except NotConnectedError as e:
                log_warn(f"{e}; reconnecting")
                continue
            except (ReadError, OperationCancelled) as e:
                log_error(f"Read failed: {e}")
                await _sleep_unless_stopped(config.poll_interval_seconds, stop_event)
                continue

            if readings and sink is not None:
                try:
                    sink(readings)
                except Exception as e:
                    log_error(f"Sink failed to accept {len(readings)} reading(s): {e}")
    finally:
        await connector.close()


async def _sleep_unless_stopped(delay: float, stop_event: threading.Event) -> None:
    """Sleep in short steps so a stop request is noticed promptly."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + delay
    while not stop_event.is_set():
        remaining = deadline - loop.time()
        if remaining <= 0:
            return
        await asyncio.sleep(min(remaining, 0.1))


def _run_loop_thread(config: OpcuaInputConfig, sink: Optional[Sink]) -> None:
    """
    Input thread main function.

    Runs the async input loop in a new event loop.
    """
    try:
        asyncio.run(run_input(config, sink, _stop_event))
    except Exception as e:
        log_error(f"Input thread error: {e}")


__all__ = ['init', 'start_loop', 'stop_loop', 'cleanup', 'run_input']
