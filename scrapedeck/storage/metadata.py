"""Metadata store for artifact records."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Protocol

from loguru import logger

from scrapedeck.storage.models import ArtifactType, FileRecord

_RECORD_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


class MetadataStore(Protocol):
    async def insert(self, record: FileRecord) -> None: ...

    async def select_by_id(self, record_id: str) -> FileRecord | None: ...

    async def select_page(
        self, type: ArtifactType | None = None, limit: int = 20, offset: int = 0
    ) -> list[FileRecord]: ...

    async def delete_by_id(self, record_id: str) -> bool: ...


class JsonFileMetadataStore:
    """Store one JSON document per record under a directory."""

    def __init__(self, directory: Path):
        self._dir = directory.expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    async def insert(self, record: FileRecord) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record.id)
        if path.exists():
            raise ValueError(f"record already exists: {record.id}")
        path.write_text(
            json.dumps(record.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    async def select_by_id(self, record_id: str) -> FileRecord | None:
        if not _RECORD_ID_RE.fullmatch(record_id or ""):
            return None
        path = self.path_for(record_id)
        if not path.is_file():
            return None
        return self._read(path)

    async def select_page(
        self, type: ArtifactType | None = None, limit: int = 20, offset: int = 0
    ) -> list[FileRecord]:
        if not self._dir.exists():
            return []

        records: list[FileRecord] = []
        for path in self._dir.glob("*.json"):
            record = self._read(path)
            if record is None:
                continue
            if type is not None and record.type != type:
                continue
            records.append(record)

        records.sort(key=lambda item: item.created_at, reverse=True)
        start = max(0, offset)
        return records[start : start + max(1, limit)]

    async def delete_by_id(self, record_id: str) -> bool:
        if not _RECORD_ID_RE.fullmatch(record_id or ""):
            return False
        path = self.path_for(record_id)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def path_for(self, record_id: str) -> Path:
        return self._dir / f"{record_id.strip()}.json"

    @staticmethod
    def _read(path: Path) -> FileRecord | None:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                return None
            return FileRecord.from_dict(raw)
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Skipping unreadable file record {}: {}", path.name, e)
            return None
