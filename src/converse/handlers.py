"""
Handler bindings for prompts, resources and tools.

Each capability kind has its own handler interface. A handler owns one
descriptor and an ``invoke(context, params)`` coroutine; the dispatcher hands
it a ``RequestContext`` and the decoded, kind-specific params.

Handlers can subclass the interfaces directly, or wrap a plain function with
``PromptBinding``, ``ResourceBinding`` or ``ToolBinding``. Wrapped functions
may be sync or async.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Generic, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel

from common.logging import get_logger
from .jsonrpc import MCPMethods, RequestId
from .types import (
    CallToolRequestParams,
    Descriptor,
    GetPromptRequestParams,
    Prompt,
    ReadResourceRequestParams,
    Resource,
    Tool,
)


class CapabilityKind(str, Enum):
    """The three kinds of capability a server exposes."""

    PROMPT = "prompt"
    RESOURCE = "resource"
    TOOL = "tool"

    @property
    def list_method(self) -> str:
        return _LIST_METHODS[self]

    @property
    def invoke_method(self) -> str:
        return _INVOKE_METHODS[self]


_LIST_METHODS = {
    CapabilityKind.PROMPT: MCPMethods.PROMPTS_LIST,
    CapabilityKind.RESOURCE: MCPMethods.RESOURCES_LIST,
    CapabilityKind.TOOL: MCPMethods.TOOLS_LIST,
}

_INVOKE_METHODS = {
    CapabilityKind.PROMPT: MCPMethods.PROMPTS_GET,
    CapabilityKind.RESOURCE: MCPMethods.RESOURCES_READ,
    CapabilityKind.TOOL: MCPMethods.TOOLS_CALL,
}


@dataclass
class RequestContext:
    """
    Per-request context passed to every handler invocation.

    ``cancel_event`` is set when the client cancels the request; long-running
    handlers should check ``cancelled`` or await ``wait_cancelled()``.
    """

    request_id: Optional[RequestId] = None
    method: str = ""
    logger: structlog.BoundLogger = field(default_factory=lambda: get_logger("converse.handler"))
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    async def wait_cancelled(self) -> None:
        await self.cancel_event.wait()


D = TypeVar("D", bound=Descriptor)
P = TypeVar("P", bound=BaseModel)

HandleFunc = Callable[[RequestContext, P], Union[Any, Awaitable[Any]]]


class CapabilityHandler(ABC, Generic[D, P]):
    """Base interface shared by the three handler kinds."""

    kind: ClassVar[CapabilityKind]
    params_model: ClassVar[Type[BaseModel]]

    @property
    @abstractmethod
    def descriptor(self) -> D:
        """The immutable metadata listed for this capability."""

    @abstractmethod
    async def invoke(self, context: RequestContext, params: P) -> Any:
        """Run the capability for one request."""

    @property
    def key(self) -> str:
        """The value requests use to address this capability."""
        return self.descriptor.name

    @staticmethod
    def request_key(params: Any) -> str:
        """Extract the lookup key from decoded request params."""
        return params.name


class PromptHandler(CapabilityHandler[Prompt, GetPromptRequestParams]):
    """Handles prompts/get for one prompt."""

    kind = CapabilityKind.PROMPT
    params_model = GetPromptRequestParams


class ResourceHandler(CapabilityHandler[Resource, ReadResourceRequestParams]):
    """Handles resources/read for one resource. Resources are addressed by URI."""

    kind = CapabilityKind.RESOURCE
    params_model = ReadResourceRequestParams

    @property
    def key(self) -> str:
        return self.descriptor.uri

    @staticmethod
    def request_key(params: Any) -> str:
        return params.uri


class ToolHandler(CapabilityHandler[Tool, CallToolRequestParams]):
    """Handles tools/call for one tool."""

    kind = CapabilityKind.TOOL
    params_model = CallToolRequestParams


class _FunctionBinding:
    """Mixin pairing a descriptor with a plain (sync or async) function."""

    def __init__(self, descriptor, handle: HandleFunc):
        self._descriptor = descriptor
        self._handle = handle

    @property
    def descriptor(self):
        return self._descriptor

    async def invoke(self, context: RequestContext, params: Any) -> Any:
        result = self._handle(context, params)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


class PromptBinding(_FunctionBinding, PromptHandler):
    pass


class ResourceBinding(_FunctionBinding, ResourceHandler):
    pass


class ToolBinding(_FunctionBinding, ToolHandler):
    pass
