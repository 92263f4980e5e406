"""
Method table construction.

Compiles a frozen ``Registry`` into a read-only mapping from protocol method
name to a dispatch function. Every lookup structure is built here, once; the
per-request closures only read them.
"""

from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterator, Mapping, Protocol, Sequence, Type

from pydantic import BaseModel, ValidationError

from .builder import Registry
from .errors import MethodNotFoundError, NameNotFoundError, ParamDecodeError
from .handlers import (
    CapabilityHandler,
    CapabilityKind,
    PromptHandler,
    RequestContext,
    ResourceHandler,
    ToolHandler,
)
from .jsonrpc import MCPMethods
from .types import (
    InitializeResult,
    ListPromptsResult,
    ListResourcesResult,
    ListToolsResult,
)

# The single protocol revision this server declares; no negotiation
MCP_PROTOCOL_VERSION = "2025-03-26"


class Request(Protocol):
    """What a dispatch function needs from a decoded request."""

    method: str

    def unmarshal_params(self, target: Type[Any]) -> Any: ...


MethodFunc = Callable[[Request, RequestContext], Awaitable[Any]]

_LIST_RESULTS: Dict[CapabilityKind, Callable[[list], BaseModel]] = {
    CapabilityKind.PROMPT: lambda items: ListPromptsResult(prompts=items),
    CapabilityKind.RESOURCE: lambda items: ListResourcesResult(resources=items),
    CapabilityKind.TOOL: lambda items: ListToolsResult(tools=items),
}

_INTERFACES: Dict[CapabilityKind, Type[CapabilityHandler]] = {
    CapabilityKind.PROMPT: PromptHandler,
    CapabilityKind.RESOURCE: ResourceHandler,
    CapabilityKind.TOOL: ToolHandler,
}


class MethodTable(Mapping[str, MethodFunc]):
    """Immutable mapping from method name to dispatch function."""

    def __init__(self, entries: Dict[str, MethodFunc]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, method: str) -> MethodFunc:
        return self._entries[method]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, method: str) -> MethodFunc:
        """
        Return the dispatch function for ``method``.

        Raises:
            MethodNotFoundError: If no entry matches
        """
        try:
            return self._entries[method]
        except KeyError:
            raise MethodNotFoundError(method) from None


def build_method_table(registry: Registry) -> MethodTable:
    """Compile ``registry`` into the server's method table."""
    entries: Dict[str, MethodFunc] = {
        MCPMethods.INITIALIZE: initialize(registry),
        MCPMethods.PING: ping(),
    }
    for kind in CapabilityKind:
        handlers = registry.handlers(kind)
        entries[kind.list_method] = list_capabilities(kind, handlers)
        entries[kind.invoke_method] = invoke_capability(kind, handlers)
    return MethodTable(entries)


def initialize(registry: Registry) -> MethodFunc:
    result = InitializeResult(
        protocolVersion=MCP_PROTOCOL_VERSION,
        capabilities=registry.capabilities,
        serverInfo=registry.server_info,
        instructions=registry.instructions,
    )

    async def handle(_request: Request, _context: RequestContext) -> InitializeResult:
        return result

    return handle


def ping() -> MethodFunc:
    async def handle(_request: Request, _context: RequestContext) -> Dict[str, Any]:
        return {}

    return handle


def list_capabilities(kind: CapabilityKind, handlers: Sequence[CapabilityHandler]) -> MethodFunc:
    """Precompute the ordered descriptor listing for ``kind``."""
    result = _LIST_RESULTS[kind]([h.descriptor for h in handlers])

    async def handle(_request: Request, _context: RequestContext) -> BaseModel:
        return result

    return handle


def invoke_capability(kind: CapabilityKind, handlers: Sequence[CapabilityHandler]) -> MethodFunc:
    """
    Index ``handlers`` by key and return the get/read/call dispatch function.

    Per request the function decodes the kind's params, looks the key up
    (exact, case-sensitive) and passes the handler's result or exception
    through untouched.
    """
    index = {h.key: h for h in handlers}
    interface = _INTERFACES[kind]

    async def handle(request: Request, context: RequestContext) -> Any:
        try:
            params = request.unmarshal_params(interface.params_model)
        except ValidationError as e:
            raise ParamDecodeError(request.method, e) from e

        name = interface.request_key(params)
        handler = index.get(name)
        if handler is None:
            raise NameNotFoundError(kind.value, name)
        return await handler.invoke(context, params)

    return handle
