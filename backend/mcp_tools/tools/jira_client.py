"""Jira client for the sprint reporter and MCP tools.

This module provides:
- The Issue snapshot type and the IssueSource capability shared by every
  issue provider
- Mapping from raw tracker payloads to Issue
- A Jira REST client (plain API + agile API) with one error type for
  every failed request
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Protocol

import httpx
import requests

from utils.config_loader import JiraSettings

logger = logging.getLogger(__name__)

ISSUE_FIELDS = "key,summary,status,assignee,issuetype,priority"
MAX_RESULTS = 100


# ============================================================================
# Data Classes
# ============================================================================

class TrackerRequestError(RuntimeError):
    """Raised when a tracker request does not complete with a 2xx response."""

    def __init__(self, status: Optional[int], body: str, url: str = ""):
        self.status = status
        self.body = body
        self.url = url
        label = f"HTTP {status}" if status is not None else "request failed"
        super().__init__(f"Jira API {label}: {body}")


@dataclass(frozen=True)
class Issue:
    """Snapshot of a tracker issue as used by reports."""
    key: str
    summary: str
    status: str
    assignee: str = "Unassigned"
    issue_type: str = "Unknown"
    priority: str = "Medium"


class IssueSource(Protocol):
    """Anything that can list a board's issues."""

    def get_active_sprint_issues(self, board_id: str) -> List[Issue]:
        ...

    def get_board_issues(self, board_id: str) -> List[Issue]:
        ...


def issue_from_api(raw: Dict[str, Any]) -> Issue:
    """Map a raw tracker issue to an Issue, applying field defaults."""
    fields = raw.get("fields") or {}
    assignee = fields.get("assignee") or {}
    priority = fields.get("priority") or {}
    issue_type = fields.get("issuetype") or {}
    status = fields.get("status") or {}
    return Issue(
        key=raw.get("key", ""),
        summary=fields.get("summary") or "",
        status=status.get("name") or "Unknown",
        assignee=assignee.get("displayName") or "Unassigned",
        issue_type=issue_type.get("name") or "Unknown",
        priority=priority.get("name") or "Medium",
    )


def build_auth_header(username: str, token: str) -> str:
    """
    Build a Basic authorization header from username and token.

    A token that is already base64 of "user:token" is passed through as-is.
    """
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8", errors="ignore")
        if ":" in decoded:
            return f"Basic {token}"
    except (binascii.Error, ValueError):
        pass

    credentials = f"{username}:{token}".encode("utf-8")
    return f"Basic {base64.b64encode(credentials).decode('ascii')}"


def collect_sprint_issues(source: IssueSource, board_id: str) -> List[Issue]:
    """Active-sprint issues, falling back to the whole board when there are none."""
    issues = source.get_active_sprint_issues(board_id)
    if issues:
        return issues
    logger.info(f"⚠️ No active sprint issues for board {board_id}, falling back to board issues")
    return source.get_board_issues(board_id)


# ============================================================================
# Jira Client Class
# ============================================================================

class JiraClient:
    """Thin wrapper around the Jira REST and agile APIs."""

    def __init__(
        self,
        config: JiraSettings,
        *,
        session: Optional[requests.Session] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.auth_header = build_auth_header(config.username or "", config.password or "")
        self.session = session or requests.Session()
        self._transport = transport

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": self.auth_header,
        }

    def _request(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                headers=self._headers,
                timeout=self.config.request_timeout,
                verify=self.config.verify_ssl,
            )
        except requests.RequestException as e:
            raise TrackerRequestError(None, str(e), url) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"❌ HTTP Status: {response.status_code} for {url}")
            raise TrackerRequestError(response.status_code, response.text, url)
        return response.json() if response.text else {}

    async def _make_request(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Async GET used by the MCP tools."""
        async with httpx.AsyncClient(
            transport=self._transport,
            verify=self.config.verify_ssl,
            timeout=self.config.request_timeout,
        ) as client:
            try:
                response = await client.get(url, params=params, headers=self._headers)
            except httpx.HTTPError as e:
                raise TrackerRequestError(None, str(e), url) from e

        if not response.is_success:
            raise TrackerRequestError(response.status_code, response.text, url)
        return response.json() if response.text else {}

    def _agile(self, path: str) -> str:
        return f"{self.config.agile_url}{path}"

    def _api(self, path: str) -> str:
        return f"{self.config.api_url}{path}"

    def test_connection(self) -> bool:
        """Return True iff the authenticated identity lookup succeeds."""
        logger.info("🔧 Testing Jira API connection...")
        try:
            me = self._request(self._api("/myself"))
        except TrackerRequestError as e:
            logger.error(f"❌ Jira connection test failed: {e}")
            return False
        logger.info(f"✅ Connected to Jira as: {me.get('displayName')} ({me.get('emailAddress')})")
        return True

    def get_active_sprint_issues(self, board_id: str) -> List[Issue]:
        logger.info(f"🔍 Fetching active sprint issues for board {board_id}...")
        sprints = self._request(
            self._agile(f"/board/{board_id}/sprint"),
            params={"state": "active"},
        ).get("values") or []
        if not sprints:
            logger.info("⚠️ No active sprints found for this board")
            return []

        sprint = sprints[0]
        logger.info(f"📋 Found active sprint: {sprint.get('name')} (ID: {sprint.get('id')})")
        raw_issues = self._request(
            self._agile(f"/sprint/{sprint['id']}/issue"),
            params={"maxResults": MAX_RESULTS, "fields": ISSUE_FIELDS},
        ).get("issues") or []
        logger.info(f"✅ Found {len(raw_issues)} issues in active sprint")
        return [issue_from_api(raw) for raw in raw_issues]

    def get_board_issues(self, board_id: str) -> List[Issue]:
        logger.info(f"🔍 Fetching all issues for board {board_id}...")
        raw_issues = self._request(
            self._agile(f"/board/{board_id}/issue"),
            params={"maxResults": MAX_RESULTS, "fields": ISSUE_FIELDS},
        ).get("issues") or []
        logger.info(f"✅ Found {len(raw_issues)} issues on board")
        return [issue_from_api(raw) for raw in raw_issues]

    def get_board_info(self, board_id: str) -> Dict[str, Any]:
        data = self._request(self._agile(f"/board/{board_id}"))
        logger.info(f"📋 Board: {data.get('name')}")
        return data

    async def fetch_issue(self, issue_key: str) -> Dict[str, Any]:
        return await self._make_request(self._api(f"/issue/{issue_key}"))

    async def fetch_comments(self, issue_key: str) -> List[Dict[str, Any]]:
        data = await self._make_request(self._api(f"/issue/{issue_key}/comment"))
        return data.get("comments") or []
