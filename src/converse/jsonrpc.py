"""
JSON-RPC 2.0 Protocol Implementation for MCP

This module implements the JSON-RPC 2.0 message envelope the transports
speak. The dispatch core only relies on a request exposing ``method`` and
``unmarshal_params``; everything else here belongs to the transport side.

Reference: https://www.jsonrpc.org/specification
MCP Spec: https://spec.modelcontextprotocol.io/specification/2025-03-26/basic/
"""

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel

# JSON-RPC version constant
JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP-specific error codes
MCP_SERVER_ERROR = -32000
MCP_NOT_FOUND = -32002

RequestId = Union[str, int]

# Params are by name (object) or by position (array)
Params = Union[Dict[str, Any], List[Any]]

ParamsT = TypeVar("ParamsT", bound=BaseModel)


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCRequest(BaseModel):
    """JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    method: str
    params: Optional[Params] = None

    def unmarshal_params(self, target: Type[ParamsT]) -> ParamsT:
        """
        Decode the raw params into ``target``.

        Absent params decode as an empty object, so models with required
        fields fail validation instead of silently passing. Positional
        (array) params never match a model and fail validation.

        Raises:
            pydantic.ValidationError: If the params do not match ``target``
        """
        return target.model_validate({} if self.params is None else self.params)


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response message (success)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    result: Any


class JSONRPCErrorResponse(BaseModel):
    """JSON-RPC 2.0 response message (error)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[str, int, None]
    error: JSONRPCError


class JSONRPCNotification(BaseModel):
    """JSON-RPC 2.0 notification message (no response expected)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Optional[Params] = None


# Union type for all JSON-RPC messages
JSONRPCMessage = Union[JSONRPCRequest, JSONRPCResponse, JSONRPCErrorResponse, JSONRPCNotification]

# Batch support (array of JSON-RPC messages)
JSONRPCBatch = List[Union[JSONRPCRequest, JSONRPCNotification]]


class MCPMethods:
    """Standard MCP method names."""

    # Core protocol
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"

    # Prompts
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"

    # Resources
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"

    # Tools
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    # Cancellation
    CANCEL = "notifications/cancelled"


def to_jsonable(value: Any) -> Any:
    """Convert a handler result into plain JSON-compatible data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


class JSONRPCHandler:
    """Handler for JSON-RPC message processing."""

    @staticmethod
    def create_request(
        id: RequestId, method: str, params: Optional[Params] = None
    ) -> JSONRPCRequest:
        """Create a JSON-RPC request."""
        return JSONRPCRequest(id=id, method=method, params=params)

    @staticmethod
    def create_response(id: RequestId, result: Any) -> JSONRPCResponse:
        """Create a JSON-RPC success response."""
        return JSONRPCResponse(id=id, result=to_jsonable(result))

    @staticmethod
    def create_error_response(
        id: Union[str, int, None], code: int, message: str, data: Optional[Any] = None
    ) -> JSONRPCErrorResponse:
        """Create a JSON-RPC error response."""
        error = JSONRPCError(code=code, message=message, data=data)
        return JSONRPCErrorResponse(id=id, error=error)

    @staticmethod
    def parse_message(data: Dict[str, Any]) -> JSONRPCMessage:
        """Parse a raw JSON object into a JSON-RPC message."""
        if not isinstance(data, dict):
            raise ValueError(f"Invalid JSON-RPC message: {data}")

        if "id" in data:
            if "method" in data:
                return JSONRPCRequest.model_validate(data)
            elif "result" in data:
                return JSONRPCResponse.model_validate(data)
            elif "error" in data:
                return JSONRPCErrorResponse.model_validate(data)
        elif "method" in data:
            return JSONRPCNotification.model_validate(data)

        raise ValueError(f"Invalid JSON-RPC message: {data}")

    @staticmethod
    def is_batch(data: Any) -> bool:
        """Check if the data represents a JSON-RPC batch."""
        return isinstance(data, list)

    @staticmethod
    def validate_batch(data: List[Any]) -> JSONRPCBatch:
        """Validate and parse a JSON-RPC batch."""
        if not data:
            raise ValueError("Empty JSON-RPC batch")

        batch = []
        for item in data:
            if isinstance(item, dict):
                message = JSONRPCHandler.parse_message(item)
                if isinstance(message, (JSONRPCRequest, JSONRPCNotification)):
                    batch.append(message)
                else:
                    raise ValueError(f"Invalid message in batch: {item}")
            else:
                raise ValueError(f"Invalid batch item: {item}")
        return batch
