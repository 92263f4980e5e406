"""
Demo MCP server.

Registers a small set of capabilities and serves them over stdio or HTTP:

- tools: ``echo`` returns its arguments, ``add`` sums two numbers
- prompts: ``greeting`` renders a greeting for a name
- resources: ``converse://about`` describes the server

Usage:
    converse-demo --transport stdio
    converse-demo --transport http --port 8000
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from common.config import Config, load_config
from common.logging import get_logger, log_startup_message, setup_logging
from .builder import ServerBuilder
from .capabilities import with_logging, with_prompts, with_resources, with_tools
from .errors import HandlerError
from .handlers import RequestContext
from .jsonrpc import INVALID_PARAMS
from .transports import TRANSPORT_CLASSES, Transport
from .types import (
    CallToolRequestParams,
    CallToolResult,
    GetPromptRequestParams,
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    ReadResourceRequestParams,
    ReadResourceResult,
    Resource,
    TextContent,
    TextResourceContents,
    Tool,
)

logger = get_logger(__name__)

ABOUT_URI = "converse://about"

ECHO_TOOL = Tool(
    name="echo",
    description="Return the given arguments unchanged.",
    inputSchema={"type": "object", "additionalProperties": True},
)

ADD_TOOL = Tool(
    name="add",
    description="Add two numbers.",
    inputSchema={
        "type": "object",
        "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
        "required": ["a", "b"],
    },
)

GREETING_PROMPT = Prompt(
    name="greeting",
    description="Greet someone by name.",
    arguments=[PromptArgument(name="name", description="Who to greet", required=True)],
)

ABOUT_RESOURCE = Resource(
    uri=ABOUT_URI,
    name="about",
    description="What this server is.",
    mimeType="application/json",
)


def echo(context: RequestContext, params: CallToolRequestParams) -> CallToolResult:
    arguments = params.arguments or {}
    context.logger.debug(event="echo_called", argument_count=len(arguments))
    return CallToolResult(
        content=[TextContent(text=json.dumps(arguments))],
        structuredContent=arguments,
    )


def add(context: RequestContext, params: CallToolRequestParams) -> CallToolResult:
    arguments = params.arguments or {}
    try:
        total = float(arguments["a"]) + float(arguments["b"])
    except (KeyError, TypeError, ValueError) as e:
        raise HandlerError(f"add expects numeric 'a' and 'b': {e}", code=INVALID_PARAMS) from e
    return CallToolResult(content=[TextContent(text=str(total))], structuredContent={"sum": total})


def greeting(context: RequestContext, params: GetPromptRequestParams) -> GetPromptResult:
    name = (params.arguments or {}).get("name", "there")
    return GetPromptResult(
        description=GREETING_PROMPT.description,
        messages=[PromptMessage(role="user", content=TextContent(text=f"Say hello to {name}."))],
    )


def build_demo_server(config: Optional[Config] = None) -> ServerBuilder:
    """Create a builder with the demo capabilities registered."""
    config = config or Config()

    def about(context: RequestContext, params: ReadResourceRequestParams) -> ReadResourceResult:
        info: Dict[str, Any] = {
            "name": config.server.name,
            "version": config.server.version,
            "transport": config.transport.type,
        }
        return ReadResourceResult(
            contents=[
                TextResourceContents(
                    uri=params.uri, mimeType=ABOUT_RESOURCE.mimeType, text=json.dumps(info)
                )
            ]
        )

    return (
        ServerBuilder(
            config.server.name,
            config.server.version,
            with_prompts(),
            with_resources(),
            with_tools(),
            with_logging(),
            instructions=config.server.instructions,
        )
        .tool(ECHO_TOOL, echo)
        .tool(ADD_TOOL, add)
        .prompt(GREETING_PROMPT, greeting)
        .resource(ABOUT_RESOURCE, about)
    )


def create_transport(config: Config) -> Transport:
    """Create the transport named in the configuration."""
    transport_cls = TRANSPORT_CLASSES[config.transport.type]
    if config.transport.type == "http":
        return transport_cls(host=config.transport.host, port=config.transport.port)
    return transport_cls()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Run the converse demo MCP server.")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config.yaml")
    parser.add_argument(
        "--transport", choices=sorted(TRANSPORT_CLASSES), help="Override the transport type"
    )
    parser.add_argument("--host", type=str, help="Override the HTTP host")
    parser.add_argument("--port", type=int, help="Override the HTTP port")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the logging level",
    )
    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command line overrides on top of the loaded configuration."""
    if args.transport:
        config.transport.type = args.transport
    if args.host:
        config.transport.host = args.host
    if args.port:
        config.transport.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    return config


def main(argv=None) -> None:
    """Main entry point for the demo server."""
    args = parse_args(argv)
    config = apply_overrides(load_config(args.config), args)
    setup_logging(config)

    log_startup_message(
        "converse demo server starting",
        server=config.server.name,
        version=config.server.version,
        transport=config.transport.type,
    )

    try:
        asyncio.run(build_demo_server(config).start(create_transport(config)))
    except KeyboardInterrupt:
        logger.info(event="server_interrupted")
    except Exception as e:
        logger.critical(event="server_error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
