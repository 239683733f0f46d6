import json

import pytest
import requests

from utils.config_loader import (
    JiraSettings,
    MailSettings,
    ReportSettings,
    ReportConfig,
    ToolServerConfig,
)

ENV_KEYS = [
    "JIRA_PROTOCOL", "JIRA_HOST", "JIRA_USERNAME", "JIRA_PASSWORD", "JIRA_API_VERSION",
    "JIRA_STRICT_SSL", "JIRA_BASE_URL", "JIRA_AGILE_BASE_URL", "JIRA_SESSION_COOKIE",
    "JIRA_TIMEOUT", "SMTP_SERVER", "SMTP_PORT", "SENDER_EMAIL", "SENDER_NAME",
    "smtp_username", "EMAIL_PASSWORD", "USE_SSL", "JIRA_RAPID_VIEW", "Doc_Email1",
    "Doc_Email2", "Doc_Email3", "REPORT_SUBJECT", "REPORT_CRON", "REPORT_TIMEZONE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Settings read the process environment; start every test from a blank slate."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(key.upper(), raising=False)
        monkeypatch.delenv(key.lower(), raising=False)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is not None:
            self.text = text
        else:
            self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session; routes by URL suffix and records calls."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []
        self.headers = {}

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for suffix, response in self.routes.items():
            if url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, text="Not Found")

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


@pytest.fixture
def jira_settings():
    return JiraSettings(host="jira.test", username="bot@test", password="token")


@pytest.fixture
def tool_config(jira_settings):
    return ToolServerConfig(jira=jira_settings)


@pytest.fixture
def report_config(jira_settings):
    return ReportConfig(
        jira=jira_settings,
        mail=MailSettings(
            host="smtp.test",
            port=587,
            sender_email="bot@test",
            sender_name="Sprint Bot",
            username="bot",
            password="secret",
        ),
        report=ReportSettings(
            board_id="42",
            recipient_1="lead@test",
            recipient_2="  ",
            recipient_3="qa@test",
        ),
    )


def raw_issue(key, summary="Do something", status="Open", assignee="Alice", priority="High", issue_type="Task"):
    return {
        "key": key,
        "fields": {
            "summary": summary,
            "status": {"name": status},
            "assignee": {"displayName": assignee} if assignee else None,
            "priority": {"name": priority} if priority else None,
            "issuetype": {"name": issue_type},
        },
    }
