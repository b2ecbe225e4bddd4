"""
Poll loop for the OPC UA input connector.

This module reads the current value of every discovered tag in one
batched request and turns the results into readings for the host
pipeline.
"""

from typing import Any, Optional, Sequence

from asyncua import ua

from ..errors import OperationCancelled, ReadError
from ..logging import log_debug, log_warn, log_error
from ..types import PollResult, TagDefinition, TagReading, TypeConverter
from ..utils import sanitize_node_id, status_name, with_deadline

# Read failures after which the session can no longer be used
FATAL_STATUS_CODES = frozenset({
    ua.StatusCodes.BadSessionIdInvalid,
    ua.StatusCodes.BadCommunicationError,
    ua.StatusCodes.BadConnectionClosed,
    ua.StatusCodes.BadTimeout,
    ua.StatusCodes.BadConnectionRejected,
})


def status_code_of(exc: BaseException) -> Optional[int]:
    """
    Map a read failure to an OPC UA status code.

    asyncua reports a lost socket as ConnectionError and an expired
    request as TimeoutError; both are mapped to their status codes.
    """
    if isinstance(exc, ua.UaStatusCodeError):
        return exc.code
    if isinstance(exc, ConnectionError):
        return ua.StatusCodes.BadConnectionClosed
    if isinstance(exc, TimeoutError):
        return ua.StatusCodes.BadTimeout
    return None


def is_fatal(exc: BaseException) -> bool:
    """Check whether a read failure invalidates the session."""
    return status_code_of(exc) in FATAL_STATUS_CODES


class PollLoop:
    """
    Reads all tags in a single request per cycle.

    Results are matched to tags by position. A fatal failure closes the
    session and asks the caller to reconnect; any other failure leaves
    the session alone.
    """

    def __init__(self, max_age_ms: int = 2000, operation_timeout: Optional[float] = None):
        """
        Initialize poll loop.

        Args:
            max_age_ms: Maximum acceptable age of cached server values
            operation_timeout: Deadline in seconds for the read request
        """
        self.max_age_ms = max_age_ms
        self.operation_timeout = operation_timeout

    def build_request(self, tags: Sequence[TagDefinition]) -> ua.ReadParameters:
        """Create the read parameters for the Value attribute of every tag."""
        params = ua.ReadParameters()
        params.MaxAge = self.max_age_ms
        params.TimestampsToReturn = ua.TimestampsToReturn.Both
        params.NodesToRead = [
            ua.ReadValueId(NodeId=tag.node_id, AttributeId=ua.AttributeIds.Value)
            for tag in tags
        ]
        return params

    async def poll_once(self, session: Any, tags: Sequence[TagDefinition]) -> PollResult:
        """
        Run one poll cycle.

        Args:
            session: SessionManager owning the client
            tags: Working set produced by the browser

        Returns:
            PollResult with the readings, or with the error and whether
            a reconnect is required

        Raises:
            NotConnectedError: If the session has no live client
            OperationCancelled: If the read exceeds the deadline
        """
        if not tags:
            return PollResult()

        client = session.client
        params = self.build_request(tags)

        try:
            results = await with_deadline(
                client.uaclient.read(params),
                self.operation_timeout,
                "read",
            )
        except OperationCancelled:
            raise
        except Exception as e:
            return await self._handle_failure(session, e)

        if len(results) != len(tags):
            message = f"Read returned {len(results)} result(s) for {len(tags)} tag(s)"
            log_error(message)
            return PollResult(error=ReadError(message))

        readings = []
        for tag, data_value in zip(tags, results):
            reading = self._to_reading(tag, data_value)
            if reading is not None:
                readings.append(reading)

        log_debug(f"Poll produced {len(readings)} reading(s) from {len(tags)} tag(s)")
        return PollResult(readings=readings)

    async def _handle_failure(self, session: Any, exc: Exception) -> PollResult:
        code = status_code_of(exc)
        log_error(f"Read failed: {exc}")

        if code in FATAL_STATUS_CODES:
            log_warn(f"Session lost ({status_name(code)}), reconnect required")
            await session.close()
            error = ReadError(f"Read failed: {status_name(code)}", fatal=True, status_code=code)
            error.__cause__ = exc
            return PollResult(reconnect_required=True, error=error)

        error = ReadError(f"Read failed: {exc}", status_code=code)
        error.__cause__ = exc
        return PollResult(error=error)

    @staticmethod
    def _to_reading(tag: TagDefinition, data_value: ua.DataValue) -> Optional[TagReading]:
        status = data_value.StatusCode
        if status is not None and not status.is_good():
            log_warn(f"Status not OK for {tag.path}: {status_name(status)}")

        payload = TypeConverter.render_value(data_value.Value)
        if payload is None:
            variant = data_value.Value
            type_name = variant.VariantType.name if variant is not None else "None"
            log_error(f"Unknown type {type_name} for {tag.path}, skipping")
            return None

        return TagReading(
            payload=payload,
            opcua_path=sanitize_node_id(tag.node_id),
            tag=tag,
        )
