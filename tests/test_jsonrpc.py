"""
Tests for the JSON-RPC envelope and the MCP result types it carries.
"""

import pytest
from pydantic import ValidationError

from converse.jsonrpc import (
    INVALID_PARAMS,
    JSONRPCErrorResponse,
    JSONRPCHandler,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    to_jsonable,
)
from converse.types import (
    CallToolRequestParams,
    CallToolResult,
    EmbeddedResource,
    GetPromptResult,
    ImageContent,
    PromptMessage,
    ReadResourceRequestParams,
    TextContent,
    TextResourceContents,
)


class TestJSONRPCProtocol:
    """JSON-RPC 2.0 message construction and parsing."""

    def test_request_round_trip(self):
        """A request built by the handler parses back to the same request."""
        request = JSONRPCHandler.create_request(id=7, method="tools/call", params={"name": "x"})

        parsed = JSONRPCHandler.parse_message(request.model_dump())

        assert isinstance(parsed, JSONRPCRequest)
        assert parsed == request

    def test_error_response(self):
        """Error responses carry code, message and optional data."""
        response = JSONRPCHandler.create_error_response(
            id="r1", code=INVALID_PARAMS, message="bad", data={"field": "name"}
        )

        assert response.error.code == INVALID_PARAMS
        assert response.error.data == {"field": "name"}
        assert response.model_dump()["id"] == "r1"

    def test_parse_each_message_kind(self):
        """Requests, notifications, responses and errors are told apart by their keys."""
        assert isinstance(
            JSONRPCHandler.parse_message({"jsonrpc": "2.0", "method": "ping"}),
            JSONRPCNotification,
        )
        assert isinstance(
            JSONRPCHandler.parse_message({"jsonrpc": "2.0", "id": 1, "result": {}}),
            JSONRPCResponse,
        )
        assert isinstance(
            JSONRPCHandler.parse_message(
                {"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": "x"}}
            ),
            JSONRPCErrorResponse,
        )

    @pytest.mark.parametrize(
        "data",
        [
            "not an object",
            {"jsonrpc": "2.0"},
            {"jsonrpc": "2.0", "id": 1},
            {"jsonrpc": "1.0", "id": 1, "method": "ping"},
        ],
    )
    def test_parse_invalid_message(self, data):
        """Anything that is not a JSON-RPC 2.0 message raises ValueError."""
        with pytest.raises(ValueError):
            JSONRPCHandler.parse_message(data)

    def test_batch_validation(self):
        """Batches hold requests and notifications only and may not be empty."""
        batch = JSONRPCHandler.validate_batch(
            [
                {"jsonrpc": "2.0", "id": 1, "method": "ping"},
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
            ]
        )

        assert [type(m) for m in batch] == [JSONRPCRequest, JSONRPCNotification]
        assert JSONRPCHandler.is_batch([]) is True
        assert JSONRPCHandler.is_batch({}) is False

        with pytest.raises(ValueError):
            JSONRPCHandler.validate_batch([])
        with pytest.raises(ValueError):
            JSONRPCHandler.validate_batch([{"jsonrpc": "2.0", "id": 1, "result": {}}])
        with pytest.raises(ValueError):
            JSONRPCHandler.validate_batch([42])


class TestUnmarshalParams:
    """Decoding request params into method-specific models."""

    def test_decodes_into_target(self):
        """Params are validated into the target model."""
        request = JSONRPCHandler.create_request(
            id=1, method="tools/call", params={"name": "echo", "arguments": {"a": 1}}
        )

        params = request.unmarshal_params(CallToolRequestParams)

        assert params.name == "echo"
        assert params.arguments == {"a": 1}

    def test_missing_params_fail_required_fields(self):
        """Absent params decode as an empty object."""
        request = JSONRPCHandler.create_request(id=1, method="resources/read")

        with pytest.raises(ValidationError):
            request.unmarshal_params(ReadResourceRequestParams)

    def test_wrong_type_fails(self):
        """Type mismatches are validation errors."""
        request = JSONRPCHandler.create_request(id=1, method="tools/call", params={"name": 5})

        with pytest.raises(ValidationError):
            request.unmarshal_params(CallToolRequestParams)


class TestResultSerialization:
    """Handler results become plain JSON data."""

    def test_models_drop_unset_optionals(self):
        """Models are dumped in JSON mode without None fields."""
        result = CallToolResult(content=[TextContent(text="hi")])

        assert to_jsonable(result) == {
            "content": [{"type": "text", "text": "hi"}],
            "isError": False,
        }

    def test_nested_containers(self):
        """Models inside lists and dicts are converted too."""
        value = {"items": [TextContent(text="a"), 1, None], "n": 2}

        assert to_jsonable(value) == {"items": [{"type": "text", "text": "a"}, 1, None], "n": 2}

    def test_content_variants(self):
        """Each content type is tagged with its discriminator."""
        result = CallToolResult(
            content=[
                ImageContent(data="aGk=", mimeType="image/png"),
                EmbeddedResource(
                    resource=TextResourceContents(uri="mem://x", text="body", mimeType="text/plain")
                ),
            ]
        )

        content = to_jsonable(result)["content"]
        assert [c["type"] for c in content] == ["image", "resource"]
        assert content[1]["resource"]["uri"] == "mem://x"

    def test_prompt_message_content_parsed_by_type(self):
        """Prompt message content is validated by its type tag."""
        prompt = GetPromptResult.model_validate(
            {"messages": [{"role": "assistant", "content": {"type": "text", "text": "ok"}}]}
        )

        assert isinstance(prompt.messages[0], PromptMessage)
        assert isinstance(prompt.messages[0].content, TextContent)

    def test_create_response_serializes_result(self):
        """Responses hold the JSON form of the result."""
        response = JSONRPCHandler.create_response(id=3, result=CallToolResult(content=[]))

        assert response.result == {"content": [], "isError": False}
