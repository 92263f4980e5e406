"""Base transport class for converse servers."""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple, Union

from common.logging import get_logger
from ..dispatcher import Dispatcher
from ..handlers import RequestContext
from ..jsonrpc import (
    INVALID_REQUEST,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MCPMethods,
    RequestId,
)

logger = get_logger(__name__)

Response = Union[JSONRPCResponse, JSONRPCErrorResponse]


class Transport(ABC):
    """
    Abstract base class for server transports.

    Tracks in-flight requests so a ``notifications/cancelled`` message can
    signal the matching handler and stop its task.
    """

    def __init__(self):
        """Initialize the transport."""
        self.dispatcher: Optional[Dispatcher] = None
        self._in_flight: Dict[RequestId, Tuple[asyncio.Task, RequestContext]] = {}

    @abstractmethod
    async def serve(self, dispatcher: Dispatcher) -> None:
        """Serve requests with ``dispatcher`` until the transport stops."""
        pass

    async def run_request(self, request: JSONRPCRequest) -> Optional[Response]:
        """
        Dispatch one request in its own task.

        Returns None when the request was cancelled, since cancelled requests
        get no response. A request reusing the id of one still in flight
        is answered with INVALID_REQUEST.
        """
        if request.id in self._in_flight:
            logger.warning(event="duplicate_request_id", request_id=request.id)
            return JSONRPCHandler.create_error_response(
                request.id, INVALID_REQUEST, f"Request id '{request.id}' is already in flight"
            )

        context = self.dispatcher.create_context(request)
        task = asyncio.create_task(self.dispatcher.handle_request(request, context))
        self._in_flight[request.id] = (task, context)
        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._in_flight.pop(request.id, None)

        if task.cancelled():
            return None
        return task.result()

    async def run_notification(self, notification: JSONRPCNotification) -> None:
        """Handle cancellation here; pass every other notification to the dispatcher."""
        if notification.method == MCPMethods.CANCEL:
            params = notification.params if isinstance(notification.params, dict) else {}
            self.cancel(params.get("requestId"), params.get("reason"))
            return
        await self.dispatcher.handle_notification(notification)

    async def run_batch(
        self, batch: List[Union[JSONRPCRequest, JSONRPCNotification]]
    ) -> List[Response]:
        """Run a batch concurrently; notifications contribute no response."""
        requests = [m for m in batch if isinstance(m, JSONRPCRequest)]
        for message in batch:
            if isinstance(message, JSONRPCNotification):
                await self.run_notification(message)

        results = await asyncio.gather(*(self.run_request(r) for r in requests))
        return [r for r in results if r is not None]

    def cancel(self, request_id: Optional[RequestId], reason: Optional[str] = None) -> bool:
        """Cancel an in-flight request. Unknown or finished ids are ignored."""
        entry = self._in_flight.get(request_id) if request_id is not None else None
        if entry is None:
            logger.debug(event="cancel_ignored", request_id=request_id)
            return False

        task, context = entry
        context.cancel()
        task.cancel()
        logger.info(event="request_cancel_requested", request_id=request_id, reason=reason)
        return True

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
