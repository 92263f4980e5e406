"""
Server capability options.

A ``ServerCapability`` is a callable that adjusts a ``ServerCapabilities``
in place. ``ServerBuilder`` applies them, in order, to a fresh copy of the
defaults.
"""

from typing import Any, Callable, Dict, Iterable, Optional

from .types import (
    PromptsCapability,
    ResourcesCapability,
    ServerCapabilities,
    ToolsCapability,
)

ServerCapability = Callable[[ServerCapabilities], None]


def default_capabilities() -> ServerCapabilities:
    """Return the capabilities every server starts from."""
    return ServerCapabilities()


def with_prompts(list_changed: Optional[bool] = None) -> ServerCapability:
    """Declare the prompts capability."""

    def apply(capabilities: ServerCapabilities) -> None:
        capabilities.prompts = PromptsCapability(listChanged=list_changed)

    return apply


def with_resources(
    subscribe: Optional[bool] = None, list_changed: Optional[bool] = None
) -> ServerCapability:
    """Declare the resources capability."""

    def apply(capabilities: ServerCapabilities) -> None:
        capabilities.resources = ResourcesCapability(subscribe=subscribe, listChanged=list_changed)

    return apply


def with_tools(list_changed: Optional[bool] = None) -> ServerCapability:
    """Declare the tools capability."""

    def apply(capabilities: ServerCapabilities) -> None:
        capabilities.tools = ToolsCapability(listChanged=list_changed)

    return apply


def with_logging() -> ServerCapability:
    """Declare that the server can emit log messages to the client."""

    def apply(capabilities: ServerCapabilities) -> None:
        capabilities.logging = {}

    return apply


def with_experimental(features: Dict[str, Any]) -> ServerCapability:
    """Declare non-standard, experimental capabilities."""

    def apply(capabilities: ServerCapabilities) -> None:
        capabilities.experimental = dict(features)

    return apply


def apply_capabilities(options: Iterable[ServerCapability]) -> ServerCapabilities:
    """Build capabilities from the defaults and the given options."""
    capabilities = default_capabilities()
    for apply in options:
        apply(capabilities)
    return capabilities
