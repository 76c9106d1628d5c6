# ============================================================================
# CHANGELOG (recent first, max 5 entries)
# 10/12/2026 - Contacts database path override via IMESSAGE_CONTACTS_DB
# 10/05/2026 - Logging setup moved into setup_logging(), .env support
# ============================================================================
"""
Configuration module for the iMessage MCP server.

Handles path resolution, logging setup, and configuration loading.
All paths are resolved relative to PROJECT_ROOT so the server works
regardless of the working directory it's started from.
"""

import copy
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# MCP servers can be started from arbitrary working directories
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config" / "mcp_server.json"

load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_CONFIG = {
    "server_name": "imessage",
    "version": "2.0.0",
    "paths": {
        "messages_db": "~/Library/Messages/chat.db",
        "address_book_dir": "~/Library/Application Support/AddressBook",
        "contacts_db": None,
        "log_dir": "logs",
    },
}


def load_config(path: Path = CONFIG_PATH) -> dict:
    """
    Load server configuration, filling in defaults for missing keys.

    Args:
        path: JSON configuration file

    Returns:
        Configuration dict
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path.exists():
        with open(path) as f:
            data = json.load(f)
        paths = data.pop("paths", {})
        config.update(data)
        config["paths"].update(paths)

    contacts_override = os.getenv("IMESSAGE_CONTACTS_DB")
    if contacts_override:
        config["paths"]["contacts_db"] = contacts_override

    return config


CONFIG = load_config()


def is_debug() -> bool:
    """DEBUG=true in the environment."""
    return os.getenv("DEBUG", "").lower() == "true"


def resolve_path(path_str: str) -> str:
    """
    Resolve a config path relative to PROJECT_ROOT or expand ~.

    Args:
        path_str: Path string from configuration

    Returns:
        Resolved absolute path as string
    """
    path = Path(path_str)
    if path_str.startswith("~"):
        return str(path.expanduser())
    elif path.is_absolute():
        return str(path)
    else:
        return str(PROJECT_ROOT / path)


def setup_logging() -> None:
    """
    Log to logs/mcp_server.log and stderr.

    stdout carries the MCP stdio transport, so nothing may log there.
    """
    log_dir = Path(resolve_path(CONFIG["paths"]["log_dir"]))
    log_dir.mkdir(parents=True, exist_ok=True)

    level_name = "DEBUG" if is_debug() else os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / 'mcp_server.log'),
            logging.StreamHandler(sys.stderr)
        ]
    )
