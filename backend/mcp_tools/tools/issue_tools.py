"""Implementations behind the read-description and read-comments tools.

Each implementation returns a ToolResult variant; render_result() is the only
place a variant becomes text for the MCP host.
"""

import re
import logging
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, Any, Optional, Union

from utils.config_loader import ToolServerConfig
from .jira_client import JiraClient, TrackerRequestError

logger = logging.getLogger(__name__)

ISSUE_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*-\d+$")


# ============================================================================
# Result variants
# ============================================================================

@dataclass(frozen=True)
class Ok:
    text: str


@dataclass(frozen=True)
class ConfigError:
    detail: str


@dataclass(frozen=True)
class NotFound:
    issue_key: str


@dataclass(frozen=True)
class InvalidKey:
    issue_key: str


@dataclass(frozen=True)
class RequestFailed:
    action: str
    detail: str


ToolResult = Union[Ok, ConfigError, NotFound, InvalidKey, RequestFailed]


def render_result(result: ToolResult) -> str:
    """Turn any tool result into the text returned across the protocol."""
    if isinstance(result, Ok):
        return result.text
    if isinstance(result, ConfigError):
        return f"Configuration error: {result.detail}\n\n"
    if isinstance(result, NotFound):
        return f"Issue {result.issue_key} not found"
    if isinstance(result, InvalidKey):
        return (
            f"Invalid issue key '{result.issue_key}'. "
            "Expected the PROJECT-NUMBER form, e.g. PROJECT-123"
        )
    return f"Failed to retrieve {result.action}: {result.detail}"


# ============================================================================
# Formatting
# ============================================================================

def format_timestamp(value: Optional[str]) -> str:
    """Render a tracker timestamp in the local timezone."""
    if not value:
        return "Unknown date"
    for pattern in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            parsed = datetime.strptime(value, pattern)
        except ValueError:
            continue
        return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
    return value


def format_description(issue_key: str, issue: Dict[str, Any]) -> str:
    fields = issue.get("fields") or {}
    description = fields.get("description") or "No description available"
    summary = fields.get("summary") or "No summary available"
    status = (fields.get("status") or {}).get("name") or "Unknown status"
    issue_type = (fields.get("issuetype") or {}).get("name") or "Unknown type"

    return "\n".join([
        f"Issue: {issue_key}",
        f"Summary: {summary}",
        f"Type: {issue_type}",
        f"Status: {status}",
        f"\nDescription:\n{description}",
    ])


def format_comment(comment: Dict[str, Any]) -> str:
    author = (comment.get("author") or {}).get("displayName") or "Unknown"
    created = format_timestamp(comment.get("created"))
    body = comment.get("body") or "No content"
    return "\n".join([
        f"Author: {author}",
        f"Date: {created}",
        f"Comment:\n{body}",
        "---",
    ])


# ============================================================================
# Tool Implementation Functions - Called by MCP Server
# ============================================================================

def _precheck(config: ToolServerConfig, issue_key: str) -> Optional[ToolResult]:
    if not config.is_valid:
        return ConfigError(config.config_error)
    if not ISSUE_KEY_PATTERN.match(issue_key or ""):
        return InvalidKey(issue_key)
    return None


async def read_description_impl(
    config: ToolServerConfig,
    issue_key: str,
    client: Optional[JiraClient] = None,
) -> ToolResult:
    """Implementation for reading an issue's description."""
    early = _precheck(config, issue_key)
    if early is not None:
        return early

    try:
        client = client or JiraClient(config.jira)
        issue = await client.fetch_issue(issue_key)
    except TrackerRequestError as e:
        if e.status == 404:
            return NotFound(issue_key)
        logger.error(f"Error fetching Jira issue {issue_key}: {e}")
        return RequestFailed(f"issue {issue_key}", str(e))
    except Exception as e:
        logger.error(f"Error fetching Jira issue {issue_key}: {e}", exc_info=True)
        return RequestFailed(f"issue {issue_key}", str(e))

    if not issue:
        return NotFound(issue_key)
    return Ok(format_description(issue_key, issue))


async def read_comments_impl(
    config: ToolServerConfig,
    issue_key: str,
    client: Optional[JiraClient] = None,
) -> ToolResult:
    """Implementation for reading an issue's comments."""
    early = _precheck(config, issue_key)
    if early is not None:
        return early

    action = f"comments for issue {issue_key}"
    try:
        client = client or JiraClient(config.jira)
        comments = await client.fetch_comments(issue_key)
    except TrackerRequestError as e:
        logger.error(f"Error fetching Jira comments for {issue_key}: {e}")
        return RequestFailed(action, str(e))
    except Exception as e:
        logger.error(f"Error fetching Jira comments for {issue_key}: {e}", exc_info=True)
        return RequestFailed(action, str(e))

    if not comments:
        return Ok(f"No comments found for issue {issue_key}")

    formatted = "\n".join(format_comment(comment) for comment in comments)
    return Ok(f"Comments for {issue_key}:\n\n{formatted}")
