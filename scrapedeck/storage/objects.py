"""Object storage for binary artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from scrapedeck.storage.models import StoredObject


class ObjectStorage(Protocol):
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        custom_metadata: dict[str, str] | None = None,
    ) -> StoredObject: ...

    async def get(self, key: str) -> bytes | None: ...

    async def delete(self, key: str) -> None: ...


def resolve_key(root: Path, key: str) -> Path:
    """Resolve a storage key and ensure it stays inside root."""
    if not key.strip():
        raise ValueError("storage key must not be empty")

    target = (root / key).resolve()
    root_resolved = root.resolve()
    if root_resolved not in target.parents:
        raise ValueError("storage key must stay within the storage root")
    return target


class LocalObjectStorage:
    """Store objects as files under a root directory with a JSON sidecar for metadata."""

    def __init__(self, root: Path):
        self.root = root.expanduser()

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        custom_metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        path = resolve_key(self.root, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self._sidecar(path).write_text(
            json.dumps(
                {"contentType": content_type, "customMetadata": dict(custom_metadata or {})},
                ensure_ascii=False,
                indent=2,
            ),
            encoding="utf-8",
        )
        return StoredObject(key=key, size=len(data))

    async def get(self, key: str) -> bytes | None:
        path = resolve_key(self.root, key)
        if not path.is_file():
            return None
        return path.read_bytes()

    async def head(self, key: str) -> dict[str, object] | None:
        sidecar = self._sidecar(resolve_key(self.root, key))
        if not sidecar.is_file():
            return None
        return json.loads(sidecar.read_text(encoding="utf-8"))

    async def delete(self, key: str) -> None:
        path = resolve_key(self.root, key)
        path.unlink(missing_ok=True)
        self._sidecar(path).unlink(missing_ok=True)

    @staticmethod
    def _sidecar(path: Path) -> Path:
        return path.with_name(f"{path.name}.meta.json")
