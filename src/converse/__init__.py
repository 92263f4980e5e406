"""
converse: a Model Context Protocol server core.

Register prompts, resources and tools on a ``ServerBuilder``; the builder
compiles them into an immutable method table served by a ``Dispatcher`` over
a stdio or HTTP transport.
"""

from .builder import Registry, ServerBuilder
from .capabilities import (
    with_experimental,
    with_logging,
    with_prompts,
    with_resources,
    with_tools,
)
from .dispatcher import Dispatcher
from .errors import (
    ConverseError,
    DispatchError,
    DuplicateNameError,
    HandlerError,
    MethodNotFoundError,
    NameNotFoundError,
    ParamDecodeError,
    RegistrationError,
)
from .handlers import (
    CapabilityKind,
    PromptBinding,
    PromptHandler,
    RequestContext,
    ResourceBinding,
    ResourceHandler,
    ToolBinding,
    ToolHandler,
)
from .method_table import MCP_PROTOCOL_VERSION, MethodTable, build_method_table

__all__ = [
    "MCP_PROTOCOL_VERSION",
    "CapabilityKind",
    "ConverseError",
    "DispatchError",
    "Dispatcher",
    "DuplicateNameError",
    "HandlerError",
    "MethodNotFoundError",
    "MethodTable",
    "NameNotFoundError",
    "ParamDecodeError",
    "PromptBinding",
    "PromptHandler",
    "Registry",
    "RegistrationError",
    "RequestContext",
    "ResourceBinding",
    "ResourceHandler",
    "ServerBuilder",
    "ToolBinding",
    "ToolHandler",
    "build_method_table",
    "with_experimental",
    "with_logging",
    "with_prompts",
    "with_resources",
    "with_tools",
]
