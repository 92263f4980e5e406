"""
MCP protocol models.

Capability descriptors (Prompt, Resource, Tool), the per-method request
parameter shapes, and the result and content types handlers return.
Descriptors are frozen once constructed and accept extra fields, so servers
can attach metadata the protocol does not name.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Implementation(BaseModel):
    """Name and version of an MCP implementation."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str


# Capability descriptors


class Descriptor(BaseModel):
    """Base for the immutable metadata of a registered capability."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    description: Optional[str] = None


class PromptArgument(BaseModel):
    """An argument a prompt template accepts."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    required: Optional[bool] = None


class Prompt(Descriptor):
    """A prompt or prompt template the server offers."""

    arguments: Optional[List[PromptArgument]] = None


class Resource(Descriptor):
    """A readable resource, addressed by its URI."""

    uri: str
    mimeType: Optional[str] = None


class Tool(Descriptor):
    """A tool the client can call."""

    inputSchema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    annotations: Optional[Dict[str, Any]] = None


# Capability flags


class PromptsCapability(BaseModel):
    listChanged: Optional[bool] = None


class ResourcesCapability(BaseModel):
    subscribe: Optional[bool] = None
    listChanged: Optional[bool] = None


class ToolsCapability(BaseModel):
    listChanged: Optional[bool] = None


class ServerCapabilities(BaseModel):
    """Capabilities a server declares during initialization."""

    experimental: Optional[Dict[str, Any]] = None
    logging: Optional[Dict[str, Any]] = None
    prompts: Optional[PromptsCapability] = None
    resources: Optional[ResourcesCapability] = None
    tools: Optional[ToolsCapability] = None


# Request parameters


class GetPromptRequestParams(BaseModel):
    """Parameters for prompts/get."""

    name: str
    arguments: Optional[Dict[str, str]] = None


class ReadResourceRequestParams(BaseModel):
    """Parameters for resources/read."""

    uri: str


class CallToolRequestParams(BaseModel):
    """Parameters for tools/call."""

    name: str
    arguments: Optional[Dict[str, Any]] = None


# Content


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    type: Literal["image"] = "image"
    data: str  # base64 encoded
    mimeType: str


class AudioContent(BaseModel):
    type: Literal["audio"] = "audio"
    data: str  # base64 encoded
    mimeType: str


class TextResourceContents(BaseModel):
    uri: str
    mimeType: Optional[str] = None
    text: str


class BlobResourceContents(BaseModel):
    uri: str
    mimeType: Optional[str] = None
    blob: str  # base64 encoded


ResourceContents = Union[TextResourceContents, BlobResourceContents]


class EmbeddedResource(BaseModel):
    type: Literal["resource"] = "resource"
    resource: ResourceContents


class ResourceLink(BaseModel):
    type: Literal["resource_link"] = "resource_link"
    uri: str
    name: Optional[str] = None
    description: Optional[str] = None
    mimeType: Optional[str] = None


Content = Union[TextContent, ImageContent, AudioContent, EmbeddedResource, ResourceLink]


# Results


class InitializeResult(BaseModel):
    """Result for initialize."""

    protocolVersion: str
    capabilities: ServerCapabilities
    serverInfo: Implementation
    instructions: Optional[str] = None


class ListPromptsResult(BaseModel):
    prompts: List[Prompt]


class ListResourcesResult(BaseModel):
    resources: List[Resource]


class ListToolsResult(BaseModel):
    tools: List[Tool]


class PromptMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: Content = Field(discriminator="type")


class GetPromptResult(BaseModel):
    """Result for prompts/get."""

    description: Optional[str] = None
    messages: List[PromptMessage]


class ReadResourceResult(BaseModel):
    """Result for resources/read."""

    contents: List[ResourceContents]


class CallToolResult(BaseModel):
    """Result for tools/call."""

    content: List[Content] = Field(default_factory=list)
    isError: bool = False
    structuredContent: Optional[Dict[str, Any]] = None
