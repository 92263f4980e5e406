"""
Standard I/O Transport for MCP

Newline-delimited JSON-RPC over stdin/stdout, the transport MCP clients use
when they spawn a server as a subprocess. Each request is dispatched in its
own task, so a slow handler does not hold up the ones behind it; responses are
written as they complete.

Reference: https://modelcontextprotocol.io/specification/2025-03-26/basic/transports
"""

import asyncio
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Set, TextIO

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
from .base import Transport

logger = get_logger(__name__)


class StdioTransport(Transport):
    """
    Standard I/O transport for MCP communication.

    ``reader`` and ``writer`` default to the process's stdin and stdout; any
    text streams work, which is how the tests drive it.
    """

    def __init__(self, reader: Optional[TextIO] = None, writer: Optional[TextIO] = None):
        """Initialize stdio transport."""
        super().__init__()
        self.reader = reader if reader is not None else sys.stdin
        self.writer = writer if writer is not None else sys.stdout
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stdio")
        self.running = False
        self._tasks: Set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()

    async def serve(self, dispatcher: Dispatcher) -> None:
        """Read messages until EOF, then wait for in-flight requests to finish."""
        self.dispatcher = dispatcher
        self.running = True
        logger.info(event="stdio_transport_started", message="MCP stdio transport started")

        try:
            await self._read_loop()
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            self.running = False
            self.executor.shutdown(wait=False)
            logger.info(event="stdio_transport_stopped")

    def stop(self) -> None:
        """Stop reading after the current line."""
        self.running = False

    async def _read_loop(self) -> None:
        loop = asyncio.get_running_loop()

        while self.running:
            line = await loop.run_in_executor(self.executor, self.reader.readline)

            if not line:  # EOF
                logger.info(event="stdin_eof")
                break

            line = line.strip()
            if not line:
                continue

            task = asyncio.create_task(self._handle_message(line))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _handle_message(self, message: str) -> None:
        """Handle one line: a request, a notification or a batch."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError as e:
            error_response = JSONRPCHandler.create_error_response(
                None, PARSE_ERROR, f"Parse error: {str(e)}"
            )
            await self._write(error_response.model_dump())
            return

        try:
            if JSONRPCHandler.is_batch(data):
                batch = JSONRPCHandler.validate_batch(data)
                responses = await self.run_batch(batch)
                if responses:
                    await self._write([r.model_dump() for r in responses])
                return

            rpc_message = JSONRPCHandler.parse_message(data)

            if isinstance(rpc_message, JSONRPCRequest):
                response = await self.run_request(rpc_message)
                if response is not None:
                    await self._write(response.model_dump())

            elif isinstance(rpc_message, JSONRPCNotification):
                await self.run_notification(rpc_message)

            else:
                # Responses from the client are not expected on this channel
                logger.warning(event="unexpected_message", message_type=type(rpc_message).__name__)

        except ValueError as e:
            error_response = JSONRPCHandler.create_error_response(
                _request_id(data), INVALID_REQUEST, f"Invalid request: {str(e)}"
            )
            await self._write(error_response.model_dump())

        except Exception as e:
            logger.error(event="message_handle_error", error=str(e), exc_info=True)
            error_response = JSONRPCHandler.create_error_response(
                _request_id(data), INTERNAL_ERROR, f"Internal error: {str(e)}"
            )
            await self._write(error_response.model_dump())

    async def _write(self, data: Any) -> None:
        """Write one JSON-RPC message (or batch) as a single line."""
        message = json.dumps(data, separators=(",", ":"))
        async with self._write_lock:
            self.writer.write(message + "\n")
            self.writer.flush()


def _request_id(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("id"), (str, int)):
        return data["id"]
    return None
