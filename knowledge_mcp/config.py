"""Configuration for the knowledge store server.

Paths and server settings come from environment variables; the store path is
resolved when first used so it can be pointed elsewhere per process.
"""

import os
from pathlib import Path

DEFAULT_KNOWLEDGE_BASE_PATH = Path.home() / ".gemini" / "antigravity" / "knowledge"

KNOWLEDGE_CONFIG = {
    "index_content_chars": 200,
    "preview_chars": 300,
    "default_limit": 10,
}

SERVER_CONFIG = {
    "transport": os.getenv("KNOWLEDGE_MCP_TRANSPORT", "stdio"),
    "host": os.getenv("KNOWLEDGE_MCP_HOST", "0.0.0.0"),
    "port": int(os.getenv("KNOWLEDGE_MCP_PORT", "8080")),
    "log_level": os.getenv("KNOWLEDGE_LOG_LEVEL", "WARNING").upper(),
}


def get_knowledge_base_path() -> Path:
    """Directory holding index.json, one <id>.json per item, and audit.log."""
    override = os.getenv("KNOWLEDGE_BASE_PATH")
    if override:
        return Path(override).expanduser()
    return DEFAULT_KNOWLEDGE_BASE_PATH
