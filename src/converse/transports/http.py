"""
HTTP transport using FastAPI.

Exposes the dispatcher on a single JSON-RPC endpoint that accepts both single
messages and batches, plus a health check. Served with uvicorn.
"""

import json
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from common.logging import get_logger
from ..dispatcher import Dispatcher
from ..jsonrpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
)
from ..method_table import MCP_PROTOCOL_VERSION
from .base import Transport

logger = get_logger(__name__)


class HttpTransport(Transport):
    """Serves the dispatcher over HTTP with uvicorn."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8000):
        """Initialize the HTTP transport."""
        super().__init__()
        self.host = host
        self.port = port

    async def serve(self, dispatcher: Dispatcher) -> None:
        """Run uvicorn until it is shut down."""
        app = create_app(dispatcher, self)
        config = uvicorn.Config(app, host=self.host, port=self.port, log_config=None)
        server = uvicorn.Server(config)

        logger.info(event="http_transport_started", host=self.host, port=self.port)
        await server.serve()
        logger.info(event="http_transport_stopped")


def create_router(transport: Transport) -> APIRouter:
    """Create the JSON-RPC routes for ``transport``'s dispatcher."""
    router = APIRouter(prefix="/mcp", tags=["MCP"])

    @router.post("/jsonrpc")
    async def handle_jsonrpc(request: Request) -> Response:
        """
        Main JSON-RPC endpoint.

        Handles both single requests and batch requests according to the
        JSON-RPC 2.0 specification. Notifications are acknowledged with 202
        and no body.
        """
        try:
            body = json.loads(await request.body())
        except ValueError as e:
            error_response = JSONRPCHandler.create_error_response(
                None, PARSE_ERROR, f"Parse error: {str(e)}"
            )
            return JSONResponse(content=error_response.model_dump(), status_code=400)

        try:
            if JSONRPCHandler.is_batch(body):
                batch = JSONRPCHandler.validate_batch(body)
                responses = await transport.run_batch(batch)
                if not responses:
                    return Response(status_code=202)
                return JSONResponse(content=[r.model_dump() for r in responses])

            message = JSONRPCHandler.parse_message(body)

            if isinstance(message, JSONRPCRequest):
                response = await transport.run_request(message)
                if response is None:
                    return Response(status_code=202)
                return JSONResponse(content=response.model_dump())

            if isinstance(message, JSONRPCNotification):
                await transport.run_notification(message)
                return Response(status_code=202)

            error_response = JSONRPCHandler.create_error_response(
                None, INVALID_REQUEST, "Invalid JSON-RPC message type"
            )
            return JSONResponse(content=error_response.model_dump(), status_code=400)

        except ValueError as e:
            error_response = JSONRPCHandler.create_error_response(
                None, INVALID_REQUEST, f"Invalid request: {str(e)}"
            )
            return JSONResponse(content=error_response.model_dump(), status_code=400)
        except Exception as e:
            logger.error(event="jsonrpc_handler_error", error=str(e), exc_info=True)
            error_response = JSONRPCHandler.create_error_response(
                None, INTERNAL_ERROR, "Internal server error"
            )
            return JSONResponse(content=error_response.model_dump(), status_code=500)

    @router.get("/health")
    async def health_check() -> dict:
        """Report the protocol version and the methods the server answers."""
        return {
            "status": "healthy",
            "protocol_version": MCP_PROTOCOL_VERSION,
            "methods": sorted(transport.dispatcher.method_table),
            "in_flight": transport.in_flight,
        }

    return router


def create_app(dispatcher: Dispatcher, transport: Optional[Transport] = None) -> FastAPI:
    """Create a FastAPI app serving ``dispatcher``."""
    if transport is None:
        transport = HttpTransport()
    transport.dispatcher = dispatcher

    app = FastAPI(title="converse MCP server", version=MCP_PROTOCOL_VERSION)
    app.include_router(create_router(transport))
    return app
