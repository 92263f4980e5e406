"""Exceptions raised while building and dispatching."""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from .jsonrpc import (
    INVALID_PARAMS,
    JSONRPCError,
    MCP_NOT_FOUND,
    MCP_SERVER_ERROR,
    METHOD_NOT_FOUND,
)


class ConverseError(Exception):
    """Base exception for converse errors."""
    pass


class RegistrationError(ConverseError):
    """Raised when the registered capabilities cannot be assembled."""
    pass


class DuplicateNameError(RegistrationError):
    """Raised when two bindings of the same kind share a lookup key."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' is registered more than once")


class DispatchError(ConverseError):
    """
    A failure surfaced to the client as a JSON-RPC error.

    Handlers may raise any subclass (or this class with an explicit code) to
    control the error the client receives.
    """

    code: int = MCP_SERVER_ERROR

    def __init__(self, message: str, code: Optional[int] = None, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.data = data

    def to_jsonrpc_error(self) -> JSONRPCError:
        return JSONRPCError(code=self.code, message=self.message, data=self.data)


class MethodNotFoundError(DispatchError):
    """Raised when no method table entry matches the request method."""

    code = METHOD_NOT_FOUND

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Method '{method}' not found", data={"method": method})


class ParamDecodeError(DispatchError):
    """Raised when request params do not match the shape the method expects."""

    code = INVALID_PARAMS

    def __init__(self, method: str, cause: Exception):
        self.method = method
        self.cause = cause
        if isinstance(cause, ValidationError):
            errors: Any = cause.errors(include_url=False, include_context=False)
            summary = "; ".join(_format_error(error) for error in errors)
        else:
            errors = str(cause)
            summary = errors
        super().__init__(
            f"error while unmarshalling '{method}' request parameters: {summary}",
            data={"method": method, "errors": errors},
        )


def _format_error(error: Dict[str, Any]) -> str:
    """Render one pydantic error as ``loc: msg`` (just ``msg`` at the top level)."""
    loc = ".".join(str(part) for part in error.get("loc", ()))
    return f"{loc}: {error['msg']}" if loc else error["msg"]


class NameNotFoundError(DispatchError):
    """Raised when no binding of a kind is registered under the requested key."""

    code = MCP_NOT_FOUND

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' does not exist", data={"kind": kind, "name": name})


class HandlerError(DispatchError):
    """Convenience error for handlers that want to fail with a server error."""
    pass
