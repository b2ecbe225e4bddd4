"""
OPC UA input connector.

This module ties the session manager, node browser and poll loop
together behind the narrow interface the host pipeline drives:
connect, read_batch and close.
"""

import asyncio
from typing import Optional

from .client import NodeTreeBrowser, PollLoop, SessionManager
from .config import OpcuaInputConfig
from .errors import BrowseError, NotConnectedError
from .logging import log_info, log_warn, log_error
from .types import TagDefinition, TagReading


class OpcuaInput:
    """
    Polling input that streams OPC UA tag values.

    Connecting opens a session and browses the configured roots into the
    working set of tags. Each batch reads every tag once. When the
    session is lost the working set is discarded and the caller is told
    to connect again.
    """

    def __init__(
        self,
        config: OpcuaInputConfig,
        session: Optional[SessionManager] = None,
        browser: Optional[NodeTreeBrowser] = None,
        poll_loop: Optional[PollLoop] = None,
    ):
        self.config = config
        self.session = session or SessionManager(config)
        self.browser = browser or NodeTreeBrowser(
            skip_visited=config.skip_visited_nodes,
            operation_timeout=config.operation_timeout_s,
        )
        self.poll_loop = poll_loop or PollLoop(
            max_age_ms=config.max_age_ms,
            operation_timeout=config.operation_timeout_s,
        )

        self._tags: list[TagDefinition] = []
        self._lock = asyncio.Lock()

    @property
    def tags(self) -> list[TagDefinition]:
        """Current working set of tags, empty while disconnected."""
        return list(self._tags)

    def is_connected(self) -> bool:
        return self.session.is_connected()

    async def connect(self) -> None:
        """
        Open the session and browse the configured roots.

        Does nothing when a session is already live.

        Raises:
            ConnectError: If the session could not be established
            BrowseError: If browsing failed; the session is closed again
            OperationCancelled: If a step exceeds the configured deadline
        """
        async with self._lock:
            if self.session.is_connected():
                return

            await self.session.connect()

            try:
                tags = await self.browser.browse(self.session, self.config.node_ids)
            except BaseException as e:
                if isinstance(e, BrowseError):
                    log_error(f"Browse failed: {e}")
                await self.session.close()
                raise

            self._tags = tags
            if not tags:
                log_warn("No readable variables found below the configured node ids")
            log_info(f"Connected with {len(tags)} tag(s)")

    async def read_batch(self) -> list[TagReading]:
        """
        Read every tag once.

        Returns after ``poll_interval_ms`` has elapsed following a
        successful read.

        Returns:
            Readings for all tags whose values could be rendered

        Raises:
            NotConnectedError: If there is no session, or it was just lost
            ReadError: If the read failed but the session is still usable
            OperationCancelled: If the read exceeds the configured deadline
        """
        async with self._lock:
            if not self.session.is_connected():
                raise NotConnectedError("Not connected, call connect() first")

            result = await self.poll_loop.poll_once(self.session, self._tags)

            if result.reconnect_required:
                self._tags = []
                raise NotConnectedError("OPC UA session lost") from result.error
            if result.error is not None:
                raise result.error

        if self.config.poll_interval_ms:
            await asyncio.sleep(self.config.poll_interval_seconds)
        return result.readings

    async def close(self) -> None:
        """Close the session and drop the working set."""
        async with self._lock:
            self._tags = []
            await self.session.close()
