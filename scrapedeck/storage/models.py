"""Data models for stored artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ArtifactType = Literal["screenshot", "pdf"]


@dataclass(slots=True)
class StoredObject:
    """Result of an object storage write."""

    key: str
    size: int


@dataclass(slots=True)
class FileRecord:
    """Metadata row for a permanently stored screenshot or PDF."""

    id: str
    type: ArtifactType
    url: str
    filename: str
    storage_key: str
    public_url: str
    metadata_json: str
    created_at: str
    expires_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "url": self.url,
            "filename": self.filename,
            "storageKey": self.storage_key,
            "publicUrl": self.public_url,
            "metadataJson": self.metadata_json,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileRecord":
        return cls(
            id=str(data["id"]),
            type=data.get("type", "screenshot"),
            url=str(data.get("url", "")),
            filename=str(data.get("filename", "")),
            storage_key=str(data.get("storageKey", "")),
            public_url=str(data.get("publicUrl", "")),
            metadata_json=str(data.get("metadataJson") or "{}"),
            created_at=str(data.get("createdAt", "")),
            expires_at=data.get("expiresAt"),
        )


@dataclass(slots=True)
class StoredArtifact:
    """Identifiers handed back to callers after storing an artifact."""

    file_id: str
    permanent_url: str
    storage_key: str
    filename: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileId": self.file_id,
            "permanentUrl": self.permanent_url,
            "storageKey": self.storage_key,
            "filename": self.filename,
        }
