"""Artifact storage."""

from scrapedeck.storage.artifacts import ArtifactStore
from scrapedeck.storage.metadata import JsonFileMetadataStore, MetadataStore
from scrapedeck.storage.models import FileRecord, StoredArtifact, StoredObject
from scrapedeck.storage.objects import LocalObjectStorage, ObjectStorage

__all__ = [
    "ArtifactStore",
    "FileRecord",
    "JsonFileMetadataStore",
    "LocalObjectStorage",
    "MetadataStore",
    "ObjectStorage",
    "StoredArtifact",
    "StoredObject",
]
