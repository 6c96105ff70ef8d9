"""Tests for flux_sync.mcp.server: dispatch, accessors and CLI parsing."""

from unittest.mock import MagicMock

import mcp.types as types
import pytest

from flux_sync.core.errors import TransportError
from flux_sync.mcp import server as server_mod


@pytest.fixture
def installed(engine):
    """Install the fake engine and a full registry as the server globals."""
    server_mod.set_engine(engine)
    server_mod.set_registry(server_mod.build_registry())
    yield engine
    server_mod.set_engine(None)
    server_mod.set_registry(None)


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestAccessors:
    def test_engine_not_initialized(self):
        server_mod.set_engine(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            server_mod.get_engine()

    def test_registry_not_initialized(self):
        server_mod.set_registry(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            server_mod.get_registry()

    def test_set_and_get(self, installed):
        assert server_mod.get_engine() is installed


class TestBuildRegistry:
    def test_full(self):
        names = [t.name for t in server_mod.build_registry().list_tools()]
        assert names == [
            "ping",
            "flux_pull",
            "flux_push",
            "flux_sync",
            "flux_status",
        ]

    def test_read_only(self):
        registry = server_mod.build_registry(read_only=True)
        assert [t.name for t in registry.list_tools()] == [
            "ping",
            "flux_status",
        ]


class TestHandlers:
    async def test_list_tools(self, installed):
        tools = await server_mod.handle_list_tools()
        assert len(tools) == 5

    async def test_call_tool_dispatch(self, installed):
        result = await server_mod.handle_call_tool("flux_status", {})
        assert "Flux sync status" in _text(result)

    async def test_unknown_tool(self, installed):
        result = await server_mod.handle_call_tool("flux_merge", {})
        assert result.isError is True
        assert _text(result).startswith("Error (unknown_tool): ")


class TestPing:
    async def test_reachable(self, engine):
        result = await server_mod._handle_ping(engine, {})
        assert not result.isError
        assert _text(result) == (
            "Flux server reachable at http://localhost:8080. Health: ok"
        )

    async def test_unreachable(self, engine):
        engine.client = MagicMock()
        engine.client.validate_connection.side_effect = TransportError(
            None, "connection refused"
        )
        result = await server_mod._handle_ping(engine, {})
        assert result.isError is True
        assert "connection refused" in _text(result)


class TestParser:
    def test_defaults(self):
        args = server_mod.build_parser().parse_args([])
        assert args.vault is None
        assert args.enable is False
        assert args.read_only is False

    def test_options(self):
        args = server_mod.build_parser().parse_args(
            [
                "--vault",
                "/notes",
                "--endpoint",
                "localhost:8080",
                "--folder",
                "Flux",
                "--interval",
                "10",
                "--enable",
                "--read-only",
            ]
        )
        assert args.vault == "/notes"
        assert args.endpoint == "localhost:8080"
        assert args.folder == "Flux"
        assert args.interval == 10
        assert args.enable is True
        assert args.read_only is True
