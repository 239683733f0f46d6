"""
MCP Server for Jira issue reading

Registers the read-description and read-comments tools with FastMCP and
handles server startup (configuration check, authentication probe) and
shutdown signals.
"""

import sys
import signal
import logging
from typing import Optional, Dict, Callable, Awaitable, Annotated

from pydantic import Field
from mcp.server.fastmcp import FastMCP

from utils.config_loader import ToolServerConfig, load_tool_server_config
from .tools.jira_client import JiraClient
from .tools.issue_tools import (
    read_description_impl,
    read_comments_impl,
    render_result,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "jira"

IssueKey = Annotated[str, Field(description="The Jira issue key (e.g., PROJECT-123)")]


def register_issue_tools(mcp: FastMCP, config: ToolServerConfig) -> Dict[str, Callable[..., Awaitable[str]]]:
    """
    Register the issue tools with the MCP server.

    Returns:
        Mapping of tool name to its coroutine, as registered
    """
    logger.info("📝 Registering Jira tools...")

    @mcp.tool(name="read-description", description="Get the description of a Jira issue")
    async def read_description(issueKey: IssueKey) -> str:
        return render_result(await read_description_impl(config, issueKey))

    @mcp.tool(name="read-comments", description="Get the comments for a Jira issue")
    async def read_comments(issueKey: IssueKey) -> str:
        return render_result(await read_comments_impl(config, issueKey))

    logger.info("✅ Jira tools registered")
    return {
        "read-description": read_description,
        "read-comments": read_comments,
    }


def create_mcp_server(config: ToolServerConfig) -> FastMCP:
    """Build the FastMCP server instance for the given configuration."""
    mcp = FastMCP(SERVER_NAME)
    register_issue_tools(mcp, config)
    return mcp


def check_startup(config: ToolServerConfig, client: Optional[JiraClient] = None) -> bool:
    """
    Validate configuration and probe authentication once.

    Never fatal: the server starts in limited mode when either check fails.

    Returns:
        True if the server is fully operational
    """
    if not config.is_valid:
        logger.error(f"Jira configuration error: {config.config_error}")
        logger.error("Please configure the required environment variables.")
        logger.error("Starting server in limited mode (tools will return configuration instructions)")
        return False

    logger.info("Testing Jira authentication...")
    client = client or JiraClient(config.jira)
    if not client.test_connection():
        logger.error("Jira authentication error. Please check your credentials.")
        logger.error("Starting server in limited mode (tools will return authentication error messages)")
        return False

    logger.info("Jira authentication successful!")
    return True


def _handle_shutdown(signum, frame):
    logger.info(f"Received {signal.Signals(signum).name} signal, shutting down...")
    sys.exit(0)


def install_signal_handlers() -> None:
    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)


def serve(config: Optional[ToolServerConfig] = None) -> int:
    """
    Run the MCP server on stdio until the host disconnects or a signal arrives.

    Returns:
        Process exit status
    """
    install_signal_handlers()
    try:
        config = config or load_tool_server_config()
        check_startup(config)
        mcp = create_mcp_server(config)
        logger.info("🚀 Jira MCP Server running on stdio")
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
        return 0
    except Exception as e:
        logger.error(f"❌ Error in Jira MCP server: {e}", exc_info=True)
        return 1
    return 0
