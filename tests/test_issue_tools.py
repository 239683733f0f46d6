import signal
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from mcp.server.fastmcp import FastMCP

import main
from mcp_tools import mcp_server
from mcp_tools.mcp_server import check_startup, create_mcp_server, register_issue_tools
from mcp_tools.tools.issue_tools import (
    ConfigError,
    InvalidKey,
    NotFound,
    Ok,
    RequestFailed,
    format_timestamp,
    read_comments_impl,
    read_description_impl,
    render_result,
)
from mcp_tools.tools.jira_client import JiraClient
from utils.config_loader import JiraSettings, ToolServerConfig


def _client(jira_settings, handler):
    return JiraClient(jira_settings, transport=httpx.MockTransport(handler))


def test_render_result_variants():
    assert render_result(Ok("hello")) == "hello"
    assert render_result(ConfigError("JIRA_HOST environment variable is not set")) == (
        "Configuration error: JIRA_HOST environment variable is not set\n\n"
    )
    assert render_result(NotFound("ABC-1")) == "Issue ABC-1 not found"
    assert render_result(RequestFailed("issue ABC-1", "boom")) == "Failed to retrieve issue ABC-1: boom"
    assert "PROJECT-123" in render_result(InvalidKey("abc"))


@pytest.mark.asyncio
async def test_read_description_formats_issue(tool_config, jira_settings):
    payload = {
        "key": "ABC-1",
        "fields": {
            "summary": "Login fails",
            "description": "Steps to reproduce...",
            "status": {"name": "Open"},
            "issuetype": {"name": "Bug"},
        },
    }
    client = _client(jira_settings, lambda request: httpx.Response(200, json=payload))

    text = render_result(await read_description_impl(tool_config, "ABC-1", client))

    assert text == (
        "Issue: ABC-1\nSummary: Login fails\nType: Bug\nStatus: Open\n"
        "\nDescription:\nSteps to reproduce..."
    )


@pytest.mark.asyncio
async def test_read_description_defaults_for_empty_fields(tool_config, jira_settings):
    client = _client(jira_settings, lambda request: httpx.Response(200, json={"key": "ABC-1", "fields": {}}))
    text = render_result(await read_description_impl(tool_config, "ABC-1", client))
    assert "Summary: No summary available" in text
    assert "Type: Unknown type" in text
    assert "Status: Unknown status" in text
    assert text.endswith("No description available")


@pytest.mark.asyncio
async def test_read_description_not_found(tool_config, jira_settings):
    client = _client(jira_settings, lambda request: httpx.Response(404, text="Issue Does Not Exist"))
    result = await read_description_impl(tool_config, "ABC-404", client)
    assert render_result(result) == "Issue ABC-404 not found"


@pytest.mark.asyncio
async def test_read_description_request_failure_is_text(tool_config, jira_settings):
    client = _client(jira_settings, lambda request: httpx.Response(500, text="server exploded"))
    text = render_result(await read_description_impl(tool_config, "ABC-1", client))
    assert text.startswith("Failed to retrieve issue ABC-1: ")
    assert "server exploded" in text


@pytest.mark.asyncio
async def test_config_error_short_circuits_without_network():
    config = ToolServerConfig(jira=JiraSettings(), config_error="JIRA_USERNAME environment variable is not set")
    client = MagicMock()
    client.fetch_issue = AsyncMock()
    client.fetch_comments = AsyncMock()

    description = render_result(await read_description_impl(config, "ABC-1", client))
    comments = render_result(await read_comments_impl(config, "ABC-1", client))

    assert "Configuration error" in description
    assert "Configuration error" in comments
    client.fetch_issue.assert_not_awaited()
    client.fetch_comments.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_key_is_rejected(tool_config):
    client = MagicMock()
    client.fetch_issue = AsyncMock()
    result = await read_description_impl(tool_config, "abc-1", client)
    assert isinstance(result, InvalidKey)
    client.fetch_issue.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_comments_none(tool_config, jira_settings):
    client = _client(jira_settings, lambda request: httpx.Response(200, json={"comments": []}))
    text = render_result(await read_comments_impl(tool_config, "ABC-1", client))
    assert text == "No comments found for issue ABC-1"


@pytest.mark.asyncio
async def test_read_comments_keeps_source_order(tool_config, jira_settings):
    comments = {
        "comments": [
            {"author": {"displayName": "Alice"}, "created": "2024-03-01T10:00:00.000+0000", "body": "First"},
            {"author": None, "created": None, "body": ""},
        ]
    }
    client = _client(jira_settings, lambda request: httpx.Response(200, json=comments))

    text = render_result(await read_comments_impl(tool_config, "ABC-1", client))

    local = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    assert text == (
        "Comments for ABC-1:\n\n"
        f"Author: Alice\nDate: {local}\nComment:\nFirst\n---\n"
        "Author: Unknown\nDate: Unknown date\nComment:\nNo content\n---"
    )


@pytest.mark.asyncio
async def test_read_comments_never_raises(tool_config):
    client = MagicMock()
    client.fetch_comments = AsyncMock(side_effect=RuntimeError("socket closed"))
    text = render_result(await read_comments_impl(tool_config, "ABC-1", client))
    assert text == "Failed to retrieve comments for issue ABC-1: socket closed"


def test_format_timestamp_passes_through_unknown_formats():
    assert format_timestamp("yesterday") == "yesterday"


@pytest.mark.asyncio
async def test_server_exposes_both_tools_with_issue_key(tool_config):
    mcp = create_mcp_server(tool_config)
    tools = {tool.name: tool for tool in await mcp.list_tools()}

    assert set(tools) == {"read-description", "read-comments"}
    for tool in tools.values():
        assert tool.inputSchema["required"] == ["issueKey"]
        assert tool.inputSchema["properties"]["issueKey"]["type"] == "string"


@pytest.mark.asyncio
async def test_registered_tool_returns_text_for_config_error():
    config = ToolServerConfig(jira=JiraSettings(), config_error="JIRA_HOST environment variable is not set")
    tools = register_issue_tools(FastMCP("test"), config)
    text = await tools["read-description"]("ABC-1")
    assert text.startswith("Configuration error: JIRA_HOST")


def test_check_startup_limited_mode_on_bad_config():
    config = ToolServerConfig(jira=JiraSettings(), config_error="JIRA_HOST environment variable is not set")
    client = MagicMock()
    assert check_startup(config, client) is False
    client.test_connection.assert_not_called()


def test_check_startup_probes_authentication(tool_config):
    client = MagicMock()
    client.test_connection.return_value = False
    assert check_startup(tool_config, client) is False
    client.test_connection.return_value = True
    assert check_startup(tool_config, client) is True


def test_serve_returns_1_when_startup_fails(monkeypatch, tool_config):
    monkeypatch.setattr(mcp_server, "install_signal_handlers", lambda: None)

    def broken(config, client=None):
        raise RuntimeError("probe blew up")

    monkeypatch.setattr(mcp_server, "check_startup", broken)
    assert mcp_server.serve(tool_config) == 1


def test_serve_runs_stdio_and_returns_0(monkeypatch, tool_config):
    monkeypatch.setattr(mcp_server, "install_signal_handlers", lambda: None)
    monkeypatch.setattr(mcp_server, "check_startup", lambda config, client=None: False)
    server = MagicMock()
    monkeypatch.setattr(mcp_server, "create_mcp_server", lambda config: server)

    assert mcp_server.serve(tool_config) == 0
    server.run.assert_called_once_with(transport="stdio")


def test_serve_treats_interrupt_as_clean_exit(monkeypatch, tool_config):
    monkeypatch.setattr(mcp_server, "install_signal_handlers", lambda: None)
    monkeypatch.setattr(mcp_server, "check_startup", lambda config, client=None: True)
    server = MagicMock()
    server.run.side_effect = KeyboardInterrupt
    monkeypatch.setattr(mcp_server, "create_mcp_server", lambda config: server)

    assert mcp_server.serve(tool_config) == 0


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_shutdown_signal_exits_0(signum):
    with pytest.raises(SystemExit) as exc:
        mcp_server._handle_shutdown(signum, None)
    assert exc.value.code == 0


def test_signal_handlers_cover_sigint_and_sigterm(monkeypatch):
    installed = {}
    monkeypatch.setattr(mcp_server.signal, "signal", lambda signum, handler: installed.__setitem__(signum, handler))

    mcp_server.install_signal_handlers()

    assert installed == {
        signal.SIGINT: mcp_server._handle_shutdown,
        signal.SIGTERM: mcp_server._handle_shutdown,
    }


def test_main_loads_env_file_then_serves(monkeypatch):
    loaded = []
    monkeypatch.setattr(main, "load_environment", loaded.append)
    monkeypatch.setattr(main, "serve", lambda: 1)

    assert main.main(["--env-file", "custom.env"]) == 1
    assert loaded == ["custom.env"]
