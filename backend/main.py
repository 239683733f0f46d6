"""
Jira MCP server entry point.

Usage:
    python main.py [--env-file PATH]

Speaks MCP over stdio; all logging goes to stderr.
"""

import os
import sys
import argparse
import logging

from utils.config_loader import load_environment
from mcp_tools.mcp_server import serve


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Jira MCP server (read-description, read-comments)")
    parser.add_argument("--env-file", help="Path to a .env file overriding the process environment")
    args = parser.parse_args(argv)

    # stdout carries the protocol
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    load_environment(args.env_file)
    return serve()


if __name__ == "__main__":
    sys.exit(main())
