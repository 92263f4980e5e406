"""
Registry builder.

``ServerBuilder`` accumulates handler bindings for prompts, resources and
tools, in registration order, and freezes them into a ``Registry`` once the
server is about to start. Registration is purely structural and meant to run
single-threaded at startup.

    builder = ServerBuilder("notes", "1.0.0", with_tools())
    builder.tool(Tool(name="echo"), echo)
    await builder.start(StdioTransport())
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from common.logging import get_logger
from .capabilities import ServerCapability, apply_capabilities
from .errors import DuplicateNameError, RegistrationError
from .handlers import (
    CapabilityHandler,
    CapabilityKind,
    HandleFunc,
    PromptBinding,
    PromptHandler,
    ResourceBinding,
    ResourceHandler,
    ToolBinding,
    ToolHandler,
)
from .types import (
    Implementation,
    Prompt,
    PromptsCapability,
    Resource,
    ResourcesCapability,
    ServerCapabilities,
    Tool,
    ToolsCapability,
)

if TYPE_CHECKING:
    from .dispatcher import Dispatcher
    from .transports.base import Transport

logger = get_logger(__name__)


@dataclass(frozen=True)
class Registry:
    """Frozen build-time state: identity, capabilities and all bindings."""

    server_info: Implementation
    capabilities: ServerCapabilities
    prompts: Tuple[PromptHandler, ...]
    resources: Tuple[ResourceHandler, ...]
    tools: Tuple[ToolHandler, ...]
    instructions: Optional[str] = None

    def handlers(self, kind: CapabilityKind) -> Tuple[CapabilityHandler, ...]:
        """Return the bindings registered for ``kind``, in registration order."""
        if kind is CapabilityKind.PROMPT:
            return self.prompts
        if kind is CapabilityKind.RESOURCE:
            return self.resources
        return self.tools


class ServerBuilder:
    """Accumulates capability bindings and server identity."""

    def __init__(
        self,
        name: str,
        version: str,
        *capabilities: ServerCapability,
        instructions: Optional[str] = None,
    ):
        self.server_info = Implementation(name=name, version=version)
        self.capabilities = apply_capabilities(capabilities)
        self.instructions = instructions
        self._prompts: List[PromptHandler] = []
        self._resources: List[ResourceHandler] = []
        self._tools: List[ToolHandler] = []

    def prompt(self, prompt: Prompt, handle: HandleFunc) -> "ServerBuilder":
        """Register a prompt and the function that renders it."""
        self._prompts.append(PromptBinding(prompt, handle))
        return self

    def resource(self, resource: Resource, handle: HandleFunc) -> "ServerBuilder":
        """Register a resource and the function that reads it."""
        self._resources.append(ResourceBinding(resource, handle))
        return self

    def tool(self, tool: Tool, handle: HandleFunc) -> "ServerBuilder":
        """Register a tool and the function that runs it."""
        self._tools.append(ToolBinding(tool, handle))
        return self

    def tools(self, *handlers: ToolHandler) -> "ServerBuilder":
        """Replace every registered tool with ``handlers``."""
        for handler in handlers:
            if not isinstance(handler, ToolHandler):
                raise RegistrationError(f"Expected a ToolHandler, got {type(handler).__name__}")
        self._tools = list(handlers)
        return self

    def add_handler(self, handler: CapabilityHandler) -> "ServerBuilder":
        """Register a prebuilt handler of any kind."""
        if isinstance(handler, PromptHandler):
            self._prompts.append(handler)
        elif isinstance(handler, ResourceHandler):
            self._resources.append(handler)
        elif isinstance(handler, ToolHandler):
            self._tools.append(handler)
        else:
            raise RegistrationError(f"Unsupported handler type {type(handler).__name__}")
        return self

    def freeze(self) -> Registry:
        """
        Snapshot the registrations into an immutable ``Registry``.

        Kinds with registrations but no explicit capability flag get a default
        flag so clients know to ask for them.

        Raises:
            DuplicateNameError: If a kind has two bindings with the same key
        """
        for handlers in (self._prompts, self._resources, self._tools):
            _check_unique(handlers)

        capabilities = self.capabilities.model_copy(deep=True)
        if self._prompts and capabilities.prompts is None:
            capabilities.prompts = PromptsCapability()
        if self._resources and capabilities.resources is None:
            capabilities.resources = ResourcesCapability()
        if self._tools and capabilities.tools is None:
            capabilities.tools = ToolsCapability()

        registry = Registry(
            server_info=self.server_info,
            capabilities=capabilities,
            prompts=tuple(self._prompts),
            resources=tuple(self._resources),
            tools=tuple(self._tools),
            instructions=self.instructions,
        )

        logger.info(
            event="registry_frozen",
            server=self.server_info.name,
            prompts=len(registry.prompts),
            resources=len(registry.resources),
            tools=len(registry.tools),
        )
        return registry

    def build(self) -> "Dispatcher":
        """Freeze the registrations and compile them into a dispatcher."""
        from .dispatcher import Dispatcher
        from .method_table import build_method_table

        return Dispatcher(build_method_table(self.freeze()))

    async def start(self, transport: "Transport") -> None:
        """Build the dispatcher and serve it on ``transport`` until it stops."""
        await transport.serve(self.build())


def _check_unique(handlers: Sequence[CapabilityHandler]) -> None:
    seen: Dict[str, CapabilityHandler] = {}
    for handler in handlers:
        if handler.key in seen:
            raise DuplicateNameError(handler.kind.value, handler.key)
        seen[handler.key] = handler
