"""
Request dispatcher.

``Dispatcher.dispatch`` resolves a request through the method table and
returns the matched handler's result, raising a ``DispatchError`` for
protocol-level failures and letting handler exceptions through unchanged.

``handle_request`` is the transport-facing wrapper: it turns every outcome
into a JSON-RPC response, so a failing request never takes the serving loop
down with it.
"""

import asyncio
from typing import Any, Optional, Union

from common.logging import TimedLogger, get_logger
from .errors import DispatchError
from .handlers import RequestContext
from .jsonrpc import (
    INTERNAL_ERROR,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MCPMethods,
)
from .method_table import MethodTable, Request

logger = get_logger(__name__)


class Dispatcher:
    """Routes decoded requests to the handlers compiled into a method table."""

    def __init__(self, method_table: MethodTable):
        self.method_table = method_table

    async def dispatch(self, request: Request, context: RequestContext) -> Any:
        """
        Resolve and run one request.

        Raises:
            MethodNotFoundError: If the method is not in the table
            ParamDecodeError: If the params do not match the method
            NameNotFoundError: If no capability is registered under the name
            Exception: Whatever the invoked handler raises
        """
        handle = self.method_table.resolve(request.method)
        return await handle(request, context)

    def create_context(self, request: JSONRPCRequest) -> RequestContext:
        """Create the context for one request, with a logger bound to it."""
        return RequestContext(
            request_id=request.id,
            method=request.method,
            logger=get_logger("converse.handler").bind(
                method=request.method, request_id=request.id
            ),
        )

    async def handle_request(
        self, request: JSONRPCRequest, context: Optional[RequestContext] = None
    ) -> Union[JSONRPCResponse, JSONRPCErrorResponse]:
        """
        Dispatch a JSON-RPC request and wrap the outcome in a response.

        Cancellation is not converted; ``asyncio.CancelledError`` propagates
        so the transport can drop the response.
        """
        if context is None:
            context = self.create_context(request)

        logger.debug(event="jsonrpc_request", method=request.method, id=request.id)

        try:
            with TimedLogger(logger, "request_dispatched", method=request.method, id=request.id):
                result = await self.dispatch(request, context)
            return JSONRPCHandler.create_response(request.id, result)

        except asyncio.CancelledError:
            logger.info(event="request_cancelled", method=request.method, id=request.id)
            raise

        except DispatchError as e:
            logger.warning(
                event="request_failed",
                method=request.method,
                id=request.id,
                code=e.code,
                error=e.message,
            )
            error = e.to_jsonrpc_error()
            return JSONRPCHandler.create_error_response(
                request.id, error.code, error.message, error.data
            )

        except Exception as e:
            logger.error(
                event="request_handler_error",
                method=request.method,
                id=request.id,
                error=str(e),
                exc_info=True,
            )
            return JSONRPCHandler.create_error_response(
                request.id, INTERNAL_ERROR, f"Internal error: {str(e)}"
            )

    async def handle_notification(self, notification: JSONRPCNotification) -> None:
        """Handle a JSON-RPC notification. Cancellation is handled by the transport."""
        logger.debug(event="jsonrpc_notification", method=notification.method)

        if notification.method == MCPMethods.INITIALIZED:
            logger.info(event="client_ready", message="Client has completed initialization")
        else:
            logger.warning(event="unknown_notification", method=notification.method)
