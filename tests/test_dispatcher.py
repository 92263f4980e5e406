"""
Tests for the dispatcher.

Covers routing, listing order, not-found and parameter-decode failures,
handler error pass-through, and the JSON-RPC wrapping done by
handle_request.
"""

import asyncio

import pytest

from converse.builder import ServerBuilder
from converse.errors import (
    HandlerError,
    MethodNotFoundError,
    NameNotFoundError,
    ParamDecodeError,
)
from converse.handlers import RequestContext, ToolHandler
from converse.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCResponse,
    MCP_NOT_FOUND,
    MCP_SERVER_ERROR,
    METHOD_NOT_FOUND,
    MCPMethods,
)
from converse.method_table import MCP_PROTOCOL_VERSION
from converse.types import (
    CallToolResult,
    GetPromptResult,
    Prompt,
    PromptMessage,
    ReadResourceResult,
    Resource,
    TextContent,
    TextResourceContents,
    Tool,
)


def echo(context, params):
    return params.arguments


class RecordingTool(ToolHandler):
    """Tool handler that records every invocation."""

    def __init__(self, name: str):
        self._descriptor = Tool(name=name)
        self.calls = []

    @property
    def descriptor(self) -> Tool:
        return self._descriptor

    async def invoke(self, context, params):
        self.calls.append(params)
        return CallToolResult(content=[TextContent(text=self._descriptor.name)])


def request(method, params=None, id="1"):
    return JSONRPCHandler.create_request(id=id, method=method, params=params)


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(request_id="1")


@pytest.fixture
def echo_server():
    """Dispatcher with a single pass-through 'echo' tool."""
    return ServerBuilder("test-server", "1.0.0").tool(Tool(name="echo"), echo).build()


class TestEchoScenario:
    """The canonical register-list-call scenario."""

    @pytest.mark.asyncio
    async def test_list_returns_echo_descriptor(self, echo_server, context):
        """tools/list returns the one registered descriptor."""
        result = await echo_server.dispatch(request(MCPMethods.TOOLS_LIST), context)

        assert [tool.name for tool in result.tools] == ["echo"]

    @pytest.mark.asyncio
    async def test_call_passes_result_through(self, echo_server, context):
        """tools/call returns exactly what the handler returned."""
        result = await echo_server.dispatch(
            request(MCPMethods.TOOLS_CALL, {"name": "echo", "arguments": {"x": 1}}), context
        )

        assert result == {"x": 1}

    @pytest.mark.asyncio
    async def test_call_missing_tool(self, echo_server, context):
        """Calling an unregistered tool fails with a not-found error naming it."""
        with pytest.raises(NameNotFoundError) as exc_info:
            await echo_server.dispatch(
                request(MCPMethods.TOOLS_CALL, {"name": "missing"}), context
            )

        assert "missing" in str(exc_info.value)
        assert exc_info.value.message == "tool 'missing' does not exist"
        assert exc_info.value.code == MCP_NOT_FOUND


class TestRouting:
    """Requests reach exactly the handler registered under the name."""

    @pytest.mark.asyncio
    async def test_routes_to_matching_handler_once(self, context):
        """Each registered tool is invoked exactly once for its own name."""
        handlers = [RecordingTool(name) for name in ("alpha", "beta", "gamma")]
        dispatcher = ServerBuilder("s", "1").tools(*handlers).build()

        result = await dispatcher.dispatch(
            request(MCPMethods.TOOLS_CALL, {"name": "beta"}), context
        )

        assert result.content[0].text == "beta"
        assert [len(h.calls) for h in handlers] == [0, 1, 0]

    @pytest.mark.asyncio
    async def test_lookup_is_case_sensitive(self, echo_server, context):
        """Names match exactly; a differently cased name is not found."""
        with pytest.raises(NameNotFoundError):
            await echo_server.dispatch(request(MCPMethods.TOOLS_CALL, {"name": "ECHO"}), context)

    @pytest.mark.asyncio
    async def test_same_name_in_different_kinds(self, context):
        """Each kind has its own namespace."""
        dispatcher = (
            ServerBuilder("s", "1")
            .tool(Tool(name="shared"), lambda ctx, p: "tool")
            .prompt(Prompt(name="shared"), lambda ctx, p: "prompt")
            .build()
        )

        tool_result = await dispatcher.dispatch(
            request(MCPMethods.TOOLS_CALL, {"name": "shared"}), context
        )
        prompt_result = await dispatcher.dispatch(
            request(MCPMethods.PROMPTS_GET, {"name": "shared"}), context
        )

        assert tool_result == "tool"
        assert prompt_result == "prompt"

    @pytest.mark.asyncio
    async def test_prompt_get(self, context):
        """prompts/get hands the decoded arguments to the prompt handler."""

        def render(ctx, params):
            return GetPromptResult(
                messages=[
                    PromptMessage(
                        role="user", content=TextContent(text=f"hi {params.arguments['who']}")
                    )
                ]
            )

        dispatcher = ServerBuilder("s", "1").prompt(Prompt(name="hello"), render).build()

        result = await dispatcher.dispatch(
            request(MCPMethods.PROMPTS_GET, {"name": "hello", "arguments": {"who": "bob"}}),
            context,
        )

        assert result.messages[0].content.text == "hi bob"

    @pytest.mark.asyncio
    async def test_resource_read_by_uri(self, context):
        """resources/read looks resources up by URI."""

        async def read(ctx, params):
            return ReadResourceResult(contents=[TextResourceContents(uri=params.uri, text="body")])

        dispatcher = (
            ServerBuilder("s", "1")
            .resource(Resource(uri="file:///notes.txt", name="notes"), read)
            .build()
        )

        result = await dispatcher.dispatch(
            request(MCPMethods.RESOURCES_READ, {"uri": "file:///notes.txt"}), context
        )

        assert result.contents[0].text == "body"

        with pytest.raises(NameNotFoundError) as exc_info:
            await dispatcher.dispatch(
                request(MCPMethods.RESOURCES_READ, {"uri": "file:///other.txt"}), context
            )
        assert "resource 'file:///other.txt' does not exist" == exc_info.value.message

    @pytest.mark.asyncio
    async def test_handler_receives_context(self, context):
        """The context passed to dispatch is the one the handler sees."""
        seen = []
        dispatcher = (
            ServerBuilder("s", "1")
            .tool(Tool(name="ctx"), lambda ctx, p: seen.append(ctx))
            .build()
        )

        await dispatcher.dispatch(request(MCPMethods.TOOLS_CALL, {"name": "ctx"}), context)

        assert seen == [context]


class TestListing:
    """list methods return descriptors in registration order."""

    @pytest.mark.asyncio
    async def test_order_preserved(self, context):
        """Descriptors come back in exactly the order they were registered."""
        names = ["zeta", "alpha", "mid", "beta"]
        builder = ServerBuilder("s", "1")
        for name in names:
            builder.tool(Tool(name=name), echo)
            builder.prompt(Prompt(name=name), echo)
            builder.resource(Resource(uri=f"mem://{name}", name=name), echo)
        dispatcher = builder.build()

        tools = await dispatcher.dispatch(request(MCPMethods.TOOLS_LIST), context)
        prompts = await dispatcher.dispatch(request(MCPMethods.PROMPTS_LIST), context)
        resources = await dispatcher.dispatch(request(MCPMethods.RESOURCES_LIST), context)

        assert [t.name for t in tools.tools] == names
        assert [p.name for p in prompts.prompts] == names
        assert [r.uri for r in resources.resources] == [f"mem://{n}" for n in names]

    @pytest.mark.asyncio
    async def test_empty_kinds(self, context):
        """A kind with nothing registered lists empty and rejects every invocation."""
        dispatcher = ServerBuilder("s", "1").build()

        prompts = await dispatcher.dispatch(request(MCPMethods.PROMPTS_LIST), context)
        assert prompts.prompts == []

        with pytest.raises(NameNotFoundError):
            await dispatcher.dispatch(request(MCPMethods.PROMPTS_GET, {"name": "any"}), context)

    @pytest.mark.asyncio
    async def test_list_ignores_params(self, echo_server, context):
        """List methods do not decode params, so junk params are harmless."""
        result = await echo_server.dispatch(
            request(MCPMethods.TOOLS_LIST, {"cursor": 42, "junk": True}), context
        )

        assert len(result.tools) == 1


class TestInitialize:
    """initialize is a pure function of build-time state."""

    @pytest.mark.asyncio
    async def test_initialize_result(self, context):
        """initialize reports the protocol version, identity and capabilities."""
        dispatcher = (
            ServerBuilder("test-server", "2.0.0", instructions="be nice")
            .tool(Tool(name="echo"), echo)
            .build()
        )

        result = await dispatcher.dispatch(request(MCPMethods.INITIALIZE), context)

        assert result.protocolVersion == MCP_PROTOCOL_VERSION == "2025-03-26"
        assert result.serverInfo.name == "test-server"
        assert result.serverInfo.version == "2.0.0"
        assert result.capabilities.tools is not None
        assert result.capabilities.prompts is None
        assert result.instructions == "be nice"

    @pytest.mark.asyncio
    async def test_initialize_idempotent(self, echo_server, context):
        """Repeated initialize calls return identical results, whatever the params."""
        first = await echo_server.dispatch(request(MCPMethods.INITIALIZE), context)
        second = await echo_server.dispatch(
            request(MCPMethods.INITIALIZE, {"protocolVersion": "1999-01-01"}), context
        )

        assert first.model_dump() == second.model_dump()

    @pytest.mark.asyncio
    async def test_ping(self, echo_server, context):
        """ping answers with an empty result."""
        assert await echo_server.dispatch(request(MCPMethods.PING), context) == {}


class TestFailures:
    """Protocol-level failures and handler errors."""

    @pytest.mark.asyncio
    async def test_unknown_method(self, echo_server, context):
        """An unknown method fails with MethodNotFoundError."""
        with pytest.raises(MethodNotFoundError) as exc_info:
            await echo_server.dispatch(request("tools/delete"), context)

        assert exc_info.value.code == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_name_is_decode_error(self, context):
        """Params without a name fail to decode and no handler runs."""
        handler = RecordingTool("echo")
        dispatcher = ServerBuilder("s", "1").tools(handler).build()

        for params in (None, {}, {"arguments": {"x": 1}}, {"name": 5}):
            with pytest.raises(ParamDecodeError) as exc_info:
                await dispatcher.dispatch(request(MCPMethods.TOOLS_CALL, params), context)

            assert exc_info.value.code == INVALID_PARAMS
            assert exc_info.value.method == MCPMethods.TOOLS_CALL
            assert "tools/call" in exc_info.value.message

        assert handler.calls == []

    @pytest.mark.asyncio
    async def test_positional_params_are_decode_error(self, context):
        """Array params reach the dispatcher and fail to decode as invalid params."""
        handler = RecordingTool("echo")
        dispatcher = ServerBuilder("s", "1").tools(handler).build()

        with pytest.raises(ParamDecodeError) as exc_info:
            await dispatcher.dispatch(request(MCPMethods.TOOLS_CALL, ["echo"]), context)

        assert exc_info.value.code == INVALID_PARAMS
        assert exc_info.value.method == MCPMethods.TOOLS_CALL
        assert handler.calls == []

    @pytest.mark.asyncio
    async def test_decode_error_message_lists_fields(self, context):
        """The message names each failing field without pydantic's help links."""
        dispatcher = ServerBuilder("s", "1").tools(RecordingTool("echo")).build()

        with pytest.raises(ParamDecodeError) as exc_info:
            await dispatcher.dispatch(request(MCPMethods.TOOLS_CALL, {}), context)

        assert exc_info.value.message == (
            "error while unmarshalling 'tools/call' request parameters: name: Field required"
        )
        assert "errors.pydantic.dev" not in exc_info.value.message
        assert exc_info.value.data["errors"][0]["loc"] == ("name",)

    @pytest.mark.asyncio
    async def test_prompt_and_resource_decode_errors(self, context):
        """prompts/get and resources/read reject params missing their key."""
        calls = []

        def record(ctx, params):
            calls.append(params)

        dispatcher = (
            ServerBuilder("s", "1")
            .prompt(Prompt(name="x"), record)
            .resource(Resource(uri="mem://x", name="x"), record)
            .build()
        )

        for method, params in (
            (MCPMethods.PROMPTS_GET, {}),
            (MCPMethods.RESOURCES_READ, {"name": "x"}),
        ):
            with pytest.raises(ParamDecodeError) as exc_info:
                await dispatcher.dispatch(request(method, params), context)

            assert exc_info.value.method == method
            assert method in exc_info.value.message

        assert calls == []

    @pytest.mark.asyncio
    async def test_list_and_initialize_ignore_positional_params(self, echo_server, context):
        """Methods without params accept array params and still succeed."""
        listing = await echo_server.dispatch(request(MCPMethods.TOOLS_LIST, []), context)
        init = await echo_server.dispatch(request(MCPMethods.INITIALIZE, ["x"]), context)

        assert [t.name for t in listing.tools] == ["echo"]
        assert init.protocolVersion == MCP_PROTOCOL_VERSION

    @pytest.mark.asyncio
    async def test_handler_error_passes_through(self, context):
        """Exceptions raised by a handler reach the caller unchanged."""
        boom = RuntimeError("disk on fire")

        def fail(ctx, params):
            raise boom

        dispatcher = ServerBuilder("s", "1").tool(Tool(name="fail"), fail).build()

        with pytest.raises(RuntimeError) as exc_info:
            await dispatcher.dispatch(request(MCPMethods.TOOLS_CALL, {"name": "fail"}), context)

        assert exc_info.value is boom


class TestHandleRequest:
    """handle_request wraps every outcome in a JSON-RPC response."""

    @pytest.mark.asyncio
    async def test_success_response(self, echo_server):
        """A successful call becomes a JSONRPCResponse with a JSON result."""
        response = await echo_server.handle_request(
            request(MCPMethods.TOOLS_CALL, {"name": "echo", "arguments": {"x": 1}}, id=7)
        )

        assert isinstance(response, JSONRPCResponse)
        assert response.id == 7
        assert response.result == {"x": 1}

    @pytest.mark.asyncio
    async def test_results_are_serialized(self, echo_server):
        """Model results are dumped without unset optional fields."""
        response = await echo_server.handle_request(request(MCPMethods.TOOLS_LIST))

        assert response.result == {
            "tools": [{"name": "echo", "inputSchema": {"type": "object", "properties": {}}}]
        }

    @pytest.mark.asyncio
    async def test_error_codes(self, echo_server):
        """Dispatch failures map onto their JSON-RPC error codes."""
        cases = [
            (request("nope"), METHOD_NOT_FOUND),
            (request(MCPMethods.TOOLS_CALL, {}), INVALID_PARAMS),
            (request(MCPMethods.TOOLS_CALL, {"name": "missing"}), MCP_NOT_FOUND),
        ]

        for rpc_request, code in cases:
            response = await echo_server.handle_request(rpc_request)
            assert isinstance(response, JSONRPCErrorResponse)
            assert response.error.code == code

    @pytest.mark.asyncio
    async def test_not_found_message(self, echo_server):
        """The not-found error message names the missing tool."""
        response = await echo_server.handle_request(
            request(MCPMethods.TOOLS_CALL, {"name": "missing"})
        )

        assert "missing" in response.error.message

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_internal_error(self):
        """Unexpected handler exceptions become internal errors, not crashes."""

        def fail(ctx, params):
            raise ValueError("bad state")

        dispatcher = (
            ServerBuilder("s", "1")
            .tool(Tool(name="fail"), fail)
            .tool(Tool(name="echo"), echo)
            .build()
        )

        failed = await dispatcher.handle_request(request(MCPMethods.TOOLS_CALL, {"name": "fail"}))
        after = await dispatcher.handle_request(
            request(MCPMethods.TOOLS_CALL, {"name": "echo", "arguments": {"ok": True}})
        )

        assert failed.error.code == INTERNAL_ERROR
        assert "bad state" in failed.error.message
        assert after.result == {"ok": True}

    @pytest.mark.asyncio
    async def test_handler_dispatch_error_keeps_code(self):
        """Handlers raising DispatchError subclasses choose the error code."""

        def fail(ctx, params):
            raise HandlerError("quota exceeded", data={"limit": 3})

        dispatcher = ServerBuilder("s", "1").tool(Tool(name="fail"), fail).build()

        response = await dispatcher.handle_request(
            request(MCPMethods.TOOLS_CALL, {"name": "fail"})
        )

        assert response.error.code == MCP_SERVER_ERROR
        assert response.error.message == "quota exceeded"
        assert response.error.data == {"limit": 3}

    @pytest.mark.asyncio
    async def test_concurrent_requests(self):
        """Concurrent requests are independent of each other."""

        async def slow_echo(ctx, params):
            await asyncio.sleep(0.01)
            return params.arguments

        dispatcher = ServerBuilder("s", "1").tool(Tool(name="echo"), slow_echo).build()

        responses = await asyncio.gather(
            *(
                dispatcher.handle_request(
                    request(MCPMethods.TOOLS_CALL, {"name": "echo", "arguments": {"i": i}}, id=i)
                )
                for i in range(10)
            )
        )

        assert [r.result["i"] for r in responses] == list(range(10))
        assert [r.id for r in responses] == list(range(10))


class TestRequestContext:
    """Cancellation signalling on the per-request context."""

    @pytest.mark.asyncio
    async def test_wait_cancelled(self):
        """wait_cancelled() blocks until cancel() is called."""
        ctx = RequestContext(request_id="slow")
        waiter = asyncio.create_task(ctx.wait_cancelled())

        await asyncio.sleep(0)
        assert not waiter.done()
        assert ctx.cancelled is False

        ctx.cancel()
        await asyncio.wait_for(waiter, timeout=1)

        assert ctx.cancelled is True
