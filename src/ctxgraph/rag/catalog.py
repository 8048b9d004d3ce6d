"""Document catalog: which files are indexed and under which labels.

The catalog is the source of truth for what is indexed. Each entry owns
the labels of its chunks in the vector index; re-indexing a file replaces
its entry as a unit.
"""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .errors import DuplicateLabelError, IndexLoadError

SCHEMA_VERSION = "1.0"

# Config keys that must match for a persisted index to be reused
COMPATIBILITY_KEYS = ("embedding_dim", "embedding_model", "chunk_size", "chunk_overlap")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Chunk:
    """One embedded window of a document."""

    text: str
    ordinal: int  # Position of the chunk within its file
    label: int  # Vector index label

    def __post_init__(self):
        if not self.text or not self.text.strip():
            raise ValueError("Chunk text must not be empty")
        if self.ordinal < 0:
            raise ValueError("Chunk ordinal must not be negative")
        if self.label < 0:
            raise ValueError("Chunk label must not be negative")

    def to_dict(self) -> dict:
        return {"text": self.text, "index": self.ordinal, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "Chunk":
        return cls(text=data["text"], ordinal=int(data["index"]), label=int(data["label"]))


@dataclass
class DocumentEntry:
    """Indexed state of one workspace file."""

    file_id: str  # Workspace-relative path, forward slashes
    absolute_path: str
    chunks: list[Chunk] = field(default_factory=list)
    indexed_at: str = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.file_id:
            raise ValueError("DocumentEntry file_id must not be empty")
        labels = [chunk.label for chunk in self.chunks]
        if len(labels) != len(set(labels)):
            raise DuplicateLabelError(f"Duplicate chunk labels in {self.file_id}")

    @property
    def labels(self) -> list[int]:
        return [chunk.label for chunk in self.chunks]

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "path": self.absolute_path,
            "relative_path": self.file_id,
            "chunks": [chunk.to_dict() for chunk in self.chunks],
            "indexed": self.indexed_at,
        }

    @classmethod
    def from_dict(cls, file_id: str, data: dict) -> "DocumentEntry":
        """Deserialize from dictionary."""
        return cls(
            file_id=data.get("relative_path", file_id),
            absolute_path=data["path"],
            chunks=[Chunk.from_dict(c) for c in data.get("chunks", [])],
            indexed_at=data.get("indexed", _utcnow()),
        )


class DocumentCatalog:
    """Mapping from file id to :class:`DocumentEntry`, with a label reverse map.

    Not thread-safe. The indexing manager never mutates a catalog it has
    published to readers: writers work on a :meth:`copy` and swap it in.
    """

    def __init__(self, entries: Optional[list[DocumentEntry]] = None):
        self._entries: dict[str, DocumentEntry] = {}
        self._owners: dict[int, str] = {}
        self._chunk_count = 0
        for entry in entries or []:
            self.upsert(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: str) -> bool:
        return file_id in self._entries

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    def get(self, file_id: str) -> Optional[DocumentEntry]:
        return self._entries.get(file_id)

    def all(self) -> Iterator[DocumentEntry]:
        return iter(list(self._entries.values()))

    def labels(self) -> set[int]:
        return set(self._owners)

    def upsert(self, entry: DocumentEntry) -> Optional[DocumentEntry]:
        """Insert or replace the entry for ``entry.file_id``.

        The previous chunk set of the file is dropped as a whole. Returns the
        replaced entry, if any.

        Raises:
            DuplicateLabelError: A label of ``entry`` belongs to another file.
        """
        for label in entry.labels:
            owner = self._owners.get(label)
            if owner is not None and owner != entry.file_id:
                raise DuplicateLabelError(
                    f"Label {label} of {entry.file_id} already belongs to {owner}"
                )

        previous = self._entries.pop(entry.file_id, None)
        if previous is not None:
            for label in previous.labels:
                self._owners.pop(label, None)
            self._chunk_count -= len(previous.chunks)

        self._entries[entry.file_id] = entry
        self._chunk_count += len(entry.chunks)
        for label in entry.labels:
            self._owners[label] = entry.file_id
        return previous

    def remove(self, file_id: str) -> Optional[DocumentEntry]:
        """Remove and return the entry for ``file_id`` (None if absent)."""
        entry = self._entries.pop(file_id, None)
        if entry is not None:
            for label in entry.labels:
                self._owners.pop(label, None)
            self._chunk_count -= len(entry.chunks)
        return entry

    def locate(self, label: int) -> Optional[tuple[DocumentEntry, Chunk]]:
        """Find the entry and chunk for a vector label (None for orphans)."""
        file_id = self._owners.get(int(label))
        entry = self._entries.get(file_id) if file_id is not None else None
        if entry is None:
            return None
        for chunk in entry.chunks:
            if chunk.label == label:
                return entry, chunk
        return None

    def clear(self) -> None:
        self._entries.clear()
        self._owners.clear()
        self._chunk_count = 0

    def copy(self) -> "DocumentCatalog":
        """Independent catalog sharing the (immutable) entries."""
        clone = DocumentCatalog()
        clone._entries = dict(self._entries)
        clone._owners = dict(self._owners)
        clone._chunk_count = self._chunk_count
        return clone

    def serialize(self) -> dict:
        return {file_id: entry.to_dict() for file_id, entry in self._entries.items()}

    @classmethod
    def deserialize(cls, data: dict) -> "DocumentCatalog":
        return cls([DocumentEntry.from_dict(file_id, raw) for file_id, raw in data.items()])


@dataclass
class IndexMetadata:
    """Configuration and bookkeeping persisted next to the binary index."""

    config: dict
    version: str = SCHEMA_VERSION
    last_updated: str = field(default_factory=_utcnow)
    next_label: int = 0

    def to_dict(self, catalog: DocumentCatalog) -> dict:
        """Serialize, with ``catalog`` as the ``documents`` section."""
        return {
            "version": self.version,
            "documents": catalog.serialize(),
            "config": self.config,
            "last_updated": self.last_updated,
            "next_label": self.next_label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IndexMetadata":
        """Deserialize; the ``documents`` section is read by :meth:`DocumentCatalog.deserialize`."""
        return cls(
            config=dict(data.get("config", {})),
            version=str(data.get("version", "")),
            last_updated=data.get("last_updated", ""),
            next_label=int(data.get("next_label", 0)),
        )

    def is_compatible(self, current_config: dict) -> bool:
        """True when an index built with this metadata can serve ``current_config``."""
        if self.version != SCHEMA_VERSION:
            return False
        return all(self.config.get(key) == current_config.get(key) for key in COMPATIBILITY_KEYS)


def write_metadata(path: Path | str, catalog: DocumentCatalog, metadata: IndexMetadata) -> None:
    """Write ``metadata.json`` atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = metadata.to_dict(catalog)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    os.replace(tmp_path, path)


def read_metadata(path: Path | str) -> tuple[DocumentCatalog, IndexMetadata]:
    """Read ``metadata.json``.

    Raises:
        IndexLoadError: The file is missing, not valid JSON, or malformed.
    """
    path = Path(path)
    if not path.is_file():
        raise IndexLoadError(f"Metadata file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        catalog = DocumentCatalog.deserialize(data.get("documents", {}))
        metadata = IndexMetadata.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError, AttributeError, DuplicateLabelError) as e:
        raise IndexLoadError(f"Invalid metadata file {path}: {e}") from e
    return catalog, metadata
