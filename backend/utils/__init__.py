"""Utility modules for the Jira reporter."""

from .config_loader import (
    ConfigError,
    MissingConfig,
    load_environment,
    load_report_config,
    load_tool_server_config,
)

__all__ = [
    "ConfigError",
    "MissingConfig",
    "load_environment",
    "load_report_config",
    "load_tool_server_config",
]
