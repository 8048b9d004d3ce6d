"""Unit tests for the document catalog and metadata persistence."""

import json

import pytest

from ctxgraph.rag.catalog import (
    SCHEMA_VERSION,
    Chunk,
    DocumentCatalog,
    DocumentEntry,
    IndexMetadata,
    read_metadata,
    write_metadata,
)
from ctxgraph.rag.errors import DuplicateLabelError, IndexLoadError


def entry(file_id, labels):
    return DocumentEntry(
        file_id=file_id,
        absolute_path=f"/ws/{file_id}",
        chunks=[Chunk(text=f"chunk {i} of {file_id}", ordinal=i, label=label) for i, label in enumerate(labels)],
    )


class TestChunk:
    """Test Chunk validation."""

    @pytest.mark.parametrize(
        "text,ordinal,label",
        [("", 0, 0), ("   ", 0, 0), ("x", -1, 0), ("x", 0, -1)],
    )
    def test_invalid_chunk(self, text, ordinal, label):
        with pytest.raises(ValueError):
            Chunk(text=text, ordinal=ordinal, label=label)

    def test_to_dict_uses_index_key(self):
        assert Chunk("x", 2, 7).to_dict() == {"text": "x", "index": 2, "label": 7}


class TestDocumentEntry:
    """Test DocumentEntry contract."""

    def test_duplicate_labels_in_entry_rejected(self):
        with pytest.raises(DuplicateLabelError):
            entry("a.py", [1, 1])

    def test_empty_file_id_rejected(self):
        with pytest.raises(ValueError):
            entry("", [1])

    def test_zero_chunks_allowed(self):
        assert entry("empty.py", []).labels == []

    def test_dict_round_trip(self):
        original = entry("src/a.py", [3, 4])
        restored = DocumentEntry.from_dict("src/a.py", original.to_dict())
        assert restored == original


class TestDocumentCatalog:
    """Test DocumentCatalog contract."""

    def test_upsert_and_locate(self):
        catalog = DocumentCatalog()
        catalog.upsert(entry("a.py", [0, 1]))

        found_entry, chunk = catalog.locate(1)

        assert found_entry.file_id == "a.py"
        assert chunk.ordinal == 1
        assert catalog.chunk_count == 2
        assert "a.py" in catalog

    def test_upsert_replaces_whole_entry(self):
        catalog = DocumentCatalog()
        catalog.upsert(entry("a.py", [0, 1, 2]))
        previous = catalog.upsert(entry("a.py", [3]))

        assert previous.labels == [0, 1, 2]
        assert catalog.labels() == {3}
        assert catalog.locate(0) is None
        assert len(catalog) == 1

    def test_label_owned_by_other_file_rejected(self):
        catalog = DocumentCatalog()
        catalog.upsert(entry("a.py", [0]))
        with pytest.raises(DuplicateLabelError):
            catalog.upsert(entry("b.py", [0]))
        assert "b.py" not in catalog

    def test_remove(self):
        catalog = DocumentCatalog()
        catalog.upsert(entry("a.py", [0, 1]))

        removed = catalog.remove("a.py")

        assert removed.file_id == "a.py"
        assert catalog.remove("a.py") is None
        assert catalog.locate(0) is None
        assert catalog.chunk_count == 0

    def test_all_is_a_snapshot(self):
        catalog = DocumentCatalog([entry("a.py", [0]), entry("b.py", [1])])
        for item in catalog.all():
            catalog.remove(item.file_id)
        assert len(catalog) == 0

    def test_chunk_count_follows_replacements(self):
        catalog = DocumentCatalog([entry("a.py", [0, 1, 2]), entry("b.py", [3])])
        catalog.upsert(entry("a.py", [4]))
        assert catalog.chunk_count == 2
        catalog.clear()
        assert catalog.chunk_count == 0

    def test_copy_is_independent(self):
        original = DocumentCatalog([entry("a.py", [0, 1])])
        clone = original.copy()

        clone.remove("a.py")
        clone.upsert(entry("b.py", [2]))

        assert "a.py" in original and "b.py" not in original
        assert original.chunk_count == 2
        assert original.locate(2) is None
        assert clone.chunk_count == 1
        assert clone.labels() == {2}

    def test_serialize_round_trip(self):
        catalog = DocumentCatalog([entry("a.py", [0]), entry("dir/b.md", [1, 2])])
        restored = DocumentCatalog.deserialize(catalog.serialize())
        assert restored.labels() == {0, 1, 2}
        assert restored.get("dir/b.md") == catalog.get("dir/b.md")


class TestMetadata:
    """Test metadata.json persistence and compatibility."""

    CONFIG = {"embedding_dim": 64, "embedding_model": "m", "chunk_size": 512, "chunk_overlap": 50}

    def test_compatible_when_keys_match(self):
        metadata = IndexMetadata(config=dict(self.CONFIG, ef_search=10))
        assert metadata.is_compatible(dict(self.CONFIG, ef_search=200))

    @pytest.mark.parametrize("key,value", [("embedding_dim", 384), ("embedding_model", "other"), ("chunk_size", 256), ("chunk_overlap", 0)])
    def test_incompatible_when_key_differs(self, key, value):
        metadata = IndexMetadata(config=dict(self.CONFIG))
        assert not metadata.is_compatible(dict(self.CONFIG, **{key: value}))

    def test_incompatible_version(self):
        metadata = IndexMetadata(config=dict(self.CONFIG), version="0.1")
        assert not metadata.is_compatible(dict(self.CONFIG))

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "metadata.json"
        catalog = DocumentCatalog([entry("a.py", [0, 1])])
        write_metadata(path, catalog, IndexMetadata(config=dict(self.CONFIG), next_label=2))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"version", "documents", "config", "last_updated", "next_label"}
        assert data["version"] == SCHEMA_VERSION
        assert data["documents"]["a.py"]["relative_path"] == "a.py"

        restored, metadata = read_metadata(path)
        assert restored.labels() == {0, 1}
        assert metadata.next_label == 2
        assert metadata.config == self.CONFIG

    def test_missing_file(self, tmp_path):
        with pytest.raises(IndexLoadError):
            read_metadata(tmp_path / "metadata.json")

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            '{"documents": {"a.py": {"chunks": []}}}',
            '{"documents": {"a.py": {"path": "/a", "chunks": [{"text": "x", "index": 0}]}}}',
            '{"documents": []}',
        ],
    )
    def test_malformed_file(self, tmp_path, content):
        path = tmp_path / "metadata.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(IndexLoadError):
            read_metadata(path)
