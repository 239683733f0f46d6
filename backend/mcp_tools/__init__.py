"""MCP (Model Context Protocol) integration layer for Jira issue reading."""

from .tools.jira_client import JiraClient, Issue, IssueSource
from .mcp_server import create_mcp_server, serve

__all__ = ["JiraClient", "Issue", "IssueSource", "create_mcp_server", "serve"]
