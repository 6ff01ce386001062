"""Identifier and hashing helpers for knowledge items."""

import hashlib
import secrets
from datetime import datetime, timezone


def generate_item_id() -> str:
    """Generate a unique knowledge item ID from 128 random bits."""
    return secrets.token_hex(16)


def generate_content_hash(content: str) -> str:
    """Generate hash of content for change detection."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def project_hash(project_path: str) -> str:
    """Short hash of a project path, used to label project-scoped entries."""
    return hashlib.sha256(project_path.encode("utf-8")).hexdigest()[:8]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
