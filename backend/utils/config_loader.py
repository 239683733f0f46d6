"""Configuration management for the Jira reporter and MCP server."""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class ConfigError(RuntimeError):
    """Raised when configuration values are present but unusable."""


class MissingConfig(ConfigError):
    """Raised when required configuration values are missing."""

    def __init__(self, names: List[str]):
        self.names = list(names)
        super().__init__(
            "Missing required environment variables: "
            + ", ".join(self.names)
            + ". Please provide them via environment variables or a .env file."
        )


def load_environment(env_file: Optional[str] = None) -> Optional[str]:
    """
    Load a .env file into the process environment, overriding existing values.

    Search order: explicit path, <project>/.env, then python-dotenv's default
    lookup from the working directory.

    Returns:
        Path of the loaded file, or None if nothing was found
    """
    candidates = [env_file, str(PROJECT_ROOT / ".env")]
    for candidate in candidates:
        if candidate and os.path.isfile(candidate):
            load_dotenv(candidate, override=True)
            logger.info(f"📁 Loaded environment from {candidate}")
            return candidate

    if load_dotenv(override=True):
        logger.info("📁 Loaded environment from default .env lookup")
        return ".env"

    logger.info("⚠️ No .env file found, using process environment")
    return None


class _EnvSettings(BaseSettings):
    """Shared settings behaviour: blank env values count as unset."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing(self, required: List[str]) -> List[str]:
        """Return env names of required fields that resolved to None."""
        names = []
        for name in required:
            if getattr(self, name) is None:
                names.append(type(self).model_fields[name].alias or name)
        return names


class JiraSettings(_EnvSettings):
    """Tracker connection settings."""
    protocol: Optional[str] = Field(default="https", alias="JIRA_PROTOCOL")
    host: Optional[str] = Field(default="jira.example.com", alias="JIRA_HOST")
    username: Optional[str] = Field(default=None, alias="JIRA_USERNAME")
    password: Optional[str] = Field(default=None, alias="JIRA_PASSWORD")
    api_version: Optional[str] = Field(default="2", alias="JIRA_API_VERSION")
    strict_ssl: Optional[bool] = Field(default=True, alias="JIRA_STRICT_SSL")
    base_url: Optional[str] = Field(default=None, alias="JIRA_BASE_URL")
    agile_base_url: Optional[str] = Field(default=None, alias="JIRA_AGILE_BASE_URL")
    session_cookie: Optional[str] = Field(default=None, alias="JIRA_SESSION_COOKIE")
    timeout: Optional[float] = Field(default=30.0, alias="JIRA_TIMEOUT")

    @property
    def site_url(self) -> str:
        return f"{self.protocol or 'https'}://{(self.host or '').rstrip('/')}"

    @property
    def api_url(self) -> str:
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"{self.site_url}/rest/api/{self.api_version or '2'}"

    @property
    def agile_url(self) -> str:
        if self.agile_base_url:
            return self.agile_base_url.rstrip("/")
        return f"{self.site_url}/rest/agile/1.0"

    @property
    def browse_url(self) -> str:
        return f"{self.site_url}/browse"

    @property
    def verify_ssl(self) -> bool:
        return self.strict_ssl is not False

    @property
    def request_timeout(self) -> float:
        return self.timeout or 30.0


class MailSettings(_EnvSettings):
    """SMTP delivery settings."""
    host: Optional[str] = Field(default=None, alias="SMTP_SERVER")
    port: Optional[int] = Field(default=None, alias="SMTP_PORT")
    sender_email: Optional[str] = Field(default=None, alias="SENDER_EMAIL")
    sender_name: Optional[str] = Field(default=None, alias="SENDER_NAME")
    username: Optional[str] = Field(default=None, alias="smtp_username")
    password: Optional[str] = Field(default=None, alias="EMAIL_PASSWORD")
    use_ssl: Optional[bool] = Field(default=False, alias="USE_SSL")


class ReportSettings(_EnvSettings):
    """Sprint report settings."""
    board_id: Optional[str] = Field(default=None, alias="JIRA_RAPID_VIEW")
    recipient_1: Optional[str] = Field(default=None, alias="Doc_Email1")
    recipient_2: Optional[str] = Field(default=None, alias="Doc_Email2")
    recipient_3: Optional[str] = Field(default=None, alias="Doc_Email3")
    subject: Optional[str] = Field(default="Sprint Update", alias="REPORT_SUBJECT")
    cron: Optional[str] = Field(default="0 9 * * 1-5", alias="REPORT_CRON")
    timezone: Optional[str] = Field(default="UTC", alias="REPORT_TIMEZONE")

    @property
    def recipients(self) -> List[str]:
        candidates = [self.recipient_1, self.recipient_2, self.recipient_3]
        return [email.strip() for email in candidates if email and email.strip()]


@dataclass(frozen=True)
class ReportConfig:
    """Everything the batch reporter needs, resolved once at startup."""
    jira: JiraSettings
    mail: MailSettings
    report: ReportSettings

    @property
    def recipients(self) -> List[str]:
        return self.report.recipients

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary (excluding sensitive data).

        Returns:
            Dictionary with configuration
        """
        return {
            "jira_site": self.jira.site_url,
            "jira_username": self.jira.username,
            "jira_password": "set" if self.jira.password else "not set",
            "smtp_server": self.mail.host,
            "smtp_port": self.mail.port,
            "smtp_username": self.mail.username,
            "email_password": "set" if self.mail.password else "not set",
            "sender": self.mail.sender_email,
            "use_ssl": self.mail.use_ssl,
            "board_id": self.report.board_id,
            "recipients": self.recipients,
        }


@dataclass(frozen=True)
class ToolServerConfig:
    """Tracker settings for the MCP server plus the first validation problem, if any."""
    jira: JiraSettings
    config_error: Optional[str] = field(default=None)

    @property
    def is_valid(self) -> bool:
        return self.config_error is None


def _build(settings_class):
    try:
        return settings_class()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e


def load_report_config() -> ReportConfig:
    """
    Load and validate configuration for the sprint reporter.

    Returns:
        ReportConfig instance

    Raises:
        MissingConfig: naming every absent required key
        ConfigError: when a value cannot be parsed
    """
    jira = _build(JiraSettings)
    mail = _build(MailSettings)
    report = _build(ReportSettings)

    missing = (
        mail.missing(["host", "port", "sender_email", "sender_name", "username", "password"])
        + jira.missing(["username", "password"])
        + report.missing(["board_id"])
    )
    if missing:
        raise MissingConfig(missing)

    return ReportConfig(jira=jira, mail=mail, report=report)


def load_tool_server_config() -> ToolServerConfig:
    """
    Load configuration for the MCP server.

    Never raises for missing values: the problem is recorded so every tool
    call can answer with a configuration error instead.
    """
    try:
        jira = _build(JiraSettings)
    except ConfigError as e:
        return ToolServerConfig(jira=JiraSettings.model_construct(), config_error=str(e))

    config_error = None
    for name in ("host", "username", "password"):
        if getattr(jira, name) is None:
            alias = JiraSettings.model_fields[name].alias
            config_error = f"{alias} environment variable is not set"
            break

    return ToolServerConfig(jira=jira, config_error=config_error)
