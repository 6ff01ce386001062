"""File-backed knowledge repository.

Layout under the store root::

    index.json      id -> IndexEntry (content cut to a 200 char prefix)
    <id>.json       full KnowledgeItem record, one per id

A save writes the full record first and the index second, so every indexed
id has a record. If the index write fails the record is left unindexed;
nothing rolls it back. Reads never raise: an index that is missing or not
valid JSON is an empty index, index entries that fail validation are skipped
one by one, and a missing or unparseable record is reported as None.
"""

import asyncio
import json
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .ids import generate_content_hash, generate_item_id, now_iso
from .models import INDEX_FORMAT_VERSION, IndexEntry, KnowledgeIndex, KnowledgeItem

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"

_VALID_ID = re.compile(r"^[A-Za-z0-9_-]+$")

# Serializes index read-modify-write per store root
index_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)


def _document_version(document: Dict[str, Any]) -> int:
    """Format version of a raw index document; unversioned documents are version 1."""
    version = document.get("version", INDEX_FORMAT_VERSION)
    if isinstance(version, bool) or not isinstance(version, int):
        logger.warning("Ignoring non-integer index version %r", version)
        return INDEX_FORMAT_VERSION
    return version


class KnowledgeRepository:
    """Owns the index document and per-item records under one root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()
        self.index_path = self.root / INDEX_FILENAME

    def record_path(self, item_id: str) -> Path:
        return self.root / f"{item_id}.json"

    @property
    def _lock(self) -> asyncio.Lock:
        return index_locks[str(self.root.resolve())]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _ensure_root(self) -> None:
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Failed to create knowledge directory {self.root}: {e}") from e

    async def _write_json(self, path: Path, payload: str) -> None:
        """Write via a temp file and atomic replace."""
        temp_file = path.with_suffix(".tmp")
        try:
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(temp_file, path)
        except OSError as e:
            raise RuntimeError(f"Failed to write {path}: {e}") from e

    async def _check_index_version(self) -> None:
        version = _document_version(await self._read_index_document())
        if version > INDEX_FORMAT_VERSION:
            raise RuntimeError(
                f"Knowledge index {self.index_path} has format version {version}; "
                f"this store writes version {INDEX_FORMAT_VERSION}"
            )

    async def save(
        self,
        title: str,
        content: str,
        tags: Optional[Sequence[str]] = None,
        scope: str = "global",
        project_path: Optional[str] = None,
    ) -> KnowledgeItem:
        """Persist a new knowledge item and add it to the index.

        Duplicate titles are allowed; identity is the generated id only.
        Existing index entries are carried over as stored, including ones
        that fail validation, so a bad entry never drops its neighbours.

        Raises:
            ValueError: If title is empty or a project item has no project_path.
            RuntimeError: If the index was written by a newer format version,
                or the record or the index cannot be written.
        """
        if not title:
            raise ValueError("title must not be empty")
        if scope == "project":
            if not project_path:
                raise ValueError("project_path is required for project-scoped knowledge")
        else:
            project_path = None

        timestamp = now_iso()
        item = KnowledgeItem(
            id=generate_item_id(),
            title=title,
            content=content,
            tags=list(tags or []),
            scope=scope,
            project_path=project_path,
            created_at=timestamp,
            updated_at=timestamp,
            content_hash=generate_content_hash(content),
        )

        await self._check_index_version()
        await self._ensure_root()
        await self._write_json(self.record_path(item.id), item.to_json())

        async with self._lock:
            document = await self._read_index_document()
            raw_items = document.get("items")
            if not isinstance(raw_items, dict):
                raw_items = {}
            raw_items[item.id] = IndexEntry.from_item(item).to_document()
            document.update(items=raw_items, lastUpdated=timestamp, version=INDEX_FORMAT_VERSION)
            await self._write_json(self.index_path, json.dumps(document, indent=2))

        logger.info("Saved knowledge item %s (%s)", item.id, item.scope)
        return item

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_index_document(self) -> Dict[str, Any]:
        """Raw index JSON object, or an empty dict if absent or unparseable."""
        try:
            async with aiofiles.open(self.index_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read knowledge index %s: %s", self.index_path, e)
            return {}

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Corrupted knowledge index %s, treating as empty: %s", self.index_path, e)
            return {}
        if not isinstance(document, dict):
            logger.warning("Knowledge index %s is not a JSON object, treating as empty", self.index_path)
            return {}
        return document

    async def load_index(self) -> KnowledgeIndex:
        """Load the index, validating each entry on its own.

        Entries that fail validation are logged and left out. An index from a
        newer format version is read best-effort.
        """
        document = await self._read_index_document()
        version = _document_version(document)
        if version > INDEX_FORMAT_VERSION:
            logger.warning(
                "Knowledge index %s has newer format version %d, reading known fields only",
                self.index_path, version,
            )

        raw_items = document.get("items")
        if not isinstance(raw_items, dict):
            if raw_items is not None:
                logger.warning("Knowledge index %s has malformed items, ignoring them", self.index_path)
            raw_items = {}

        items: Dict[str, IndexEntry] = {}
        for item_id, raw in raw_items.items():
            try:
                items[item_id] = IndexEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning("Skipping invalid index entry %s: %s", item_id, e)

        last_updated = document.get("lastUpdated")
        return KnowledgeIndex(
            items=items,
            last_updated=last_updated if isinstance(last_updated, str) else None,
            version=version,
        )

    async def list_indexed(self) -> List[IndexEntry]:
        """All valid index entries, unfiltered and in index order."""
        index = await self.load_index()
        return list(index.items.values())

    async def list_indexed_ids(self) -> List[str]:
        """Every id in the index, including ids whose entry fails validation."""
        raw_items = (await self._read_index_document()).get("items")
        if not isinstance(raw_items, dict):
            return []
        return list(raw_items)

    async def load_full(self, item_id: str) -> Optional[KnowledgeItem]:
        """Load the full record for an id, or None if missing or unreadable."""
        if not _VALID_ID.match(item_id):
            logger.warning("Ignoring malformed knowledge id %r", item_id)
            return None

        path = self.record_path(item_id)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            logger.debug("Knowledge record %s is indexed but missing", item_id)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read knowledge record %s: %s", path, e)
            return None

        try:
            item = KnowledgeItem.model_validate_json(content)
        except ValidationError as e:
            logger.warning("Corrupted knowledge record %s, skipping: %s", path, e)
            return None

        if item.id != item_id:
            logger.warning("Knowledge record %s holds id %s, skipping", path, item.id)
            return None
        return item
