"""Permanent storage for screenshots and PDFs."""

from __future__ import annotations

import hashlib
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from loguru import logger

from scrapedeck.errors import StorageUnavailable
from scrapedeck.storage.metadata import JsonFileMetadataStore, MetadataStore
from scrapedeck.storage.models import ArtifactType, FileRecord, StoredArtifact
from scrapedeck.storage.objects import LocalObjectStorage, ObjectStorage

if TYPE_CHECKING:
    from scrapedeck.config.schema import StorageConfig

_HOST_UNSAFE_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def user_hash(user_id: str, salt: str = "") -> str:
    return hashlib.sha256(f"user_{user_id}_{salt}".encode("utf-8")).hexdigest()[:16]


def artifact_filename(url: str, type: ArtifactType, at_ms: int, format: str | None = None) -> str:
    """Build ``<host>_<ms>.<ext>`` with non-alphanumerics in the host replaced by underscores."""
    host = urlparse(url).hostname or "unknown"
    ext = "pdf" if type == "pdf" else (format or "png")
    return f"{_HOST_UNSAFE_RE.sub('_', host)}_{at_ms}.{ext}"


def storage_key(type: ArtifactType, owner_hash: str, filename: str, at: datetime) -> str:
    return f"{type}s/{owner_hash}/{at.strftime('%Y-%m-%d')}/{filename}"


def file_id_for(user_id: str, type: ArtifactType, url: str, at_ms: int) -> str:
    return hashlib.sha256(f"{user_id}_{type}_{url}_{at_ms}".encode("utf-8")).hexdigest()[:12]


def content_type_for(type: ArtifactType, format: str | None = None) -> str:
    if type == "pdf":
        return "application/pdf"
    return f"image/{format or 'png'}"


class ArtifactStore:
    """Write artifacts to object storage and keep a metadata record per file."""

    def __init__(
        self,
        objects: ObjectStorage,
        metadata: MetadataStore,
        *,
        public_base_url: str,
        salt: str = "",
    ):
        self.objects = objects
        self.metadata = metadata
        self.public_base_url = public_base_url.rstrip("/")
        self.salt = salt

    @classmethod
    def from_config(cls, config: "StorageConfig") -> "ArtifactStore":
        root = Path(config.root_dir).expanduser()
        return cls(
            LocalObjectStorage(root / "objects"),
            JsonFileMetadataStore(root / "records"),
            public_base_url=config.public_base_url,
            salt=config.salt,
        )

    async def store(
        self,
        data: bytes,
        *,
        url: str,
        type: ArtifactType,
        user_id: str = "anonymous",
        format: str | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> StoredArtifact:
        at = now or datetime.now(timezone.utc)
        at_ms = int(at.timestamp() * 1000)
        created_at = at.isoformat(timespec="milliseconds").replace("+00:00", "Z")

        filename = artifact_filename(url, type, at_ms, format)
        key = storage_key(type, user_hash(user_id, self.salt), filename, at)
        file_id = file_id_for(user_id, type, url, at_ms)

        try:
            stored = await self.objects.put(
                key,
                data,
                content_type_for(type, format),
                {
                    "originalUrl": url,
                    "userId": user_id,
                    "type": type,
                    "createdAt": created_at,
                },
            )
        except (OSError, ValueError) as e:
            raise StorageUnavailable(f"Failed to store {type}: {e}") from e

        public_url = f"{self.public_base_url}/{key}"
        record = FileRecord(
            id=file_id,
            type=type,
            url=url,
            filename=filename,
            storage_key=key,
            public_url=public_url,
            metadata_json=json.dumps({**(metadata or {}), "size": stored.size}, ensure_ascii=False),
            created_at=created_at,
        )
        try:
            await self.metadata.insert(record)
        except (OSError, ValueError) as e:
            await self.objects.delete(key)
            raise StorageUnavailable(f"Failed to record {type}: {e}") from e

        logger.info("Stored {} {} as {} ({} bytes)", type, file_id, key, stored.size)
        return StoredArtifact(
            file_id=file_id,
            permanent_url=public_url,
            storage_key=key,
            filename=filename,
        )

    async def list_files(
        self, type: ArtifactType | None = None, limit: int = 20, offset: int = 0
    ) -> list[FileRecord]:
        return await self.metadata.select_page(type, limit, offset)

    async def get_file(self, file_id: str) -> FileRecord | None:
        return await self.metadata.select_by_id(file_id)

    async def delete_file(self, file_id: str, *, delete_object: bool = False) -> dict[str, Any]:
        """Delete the metadata record and optionally the stored object behind it."""
        record = await self.metadata.select_by_id(file_id)
        if record is None:
            return {"deleted": False, "deletedFromStorage": False}

        deleted_from_storage = False
        if delete_object:
            await self.objects.delete(record.storage_key)
            deleted_from_storage = True

        deleted = await self.metadata.delete_by_id(file_id)
        return {"deleted": deleted, "deletedFromStorage": deleted_from_storage}
