"""Unit tests for line-based chunking."""

import pytest

from ctxgraph.rag.chunker import chunk_text


class TestChunkText:
    """Test chunk_text contract."""

    def test_empty_text_yields_no_chunks(self):
        assert chunk_text("") == []

    def test_whitespace_only_yields_no_chunks(self):
        assert chunk_text("\n\n   \n") == []

    def test_short_text_is_one_trimmed_chunk(self):
        assert chunk_text("\n  def f():\n      return 1\n\n") == ["def f():\n      return 1"]

    def test_three_lines_produce_three_overlapping_chunks(self):
        a, b, c = "a" * 499, "b" * 499, "c" * 500
        chunks = chunk_text(f"{a}\n{b}\n{c}", 512, 50)

        assert len(chunks) == 3
        assert chunks[0] == a
        assert chunks[1] == "a" * 50 + b
        assert chunks[2] == "b" * 50 + c

    def test_each_chunk_starts_with_tail_of_previous(self):
        text = "\n".join(f"line number {i} with some words" for i in range(200))
        chunks = chunk_text(text, 200, 30)

        assert len(chunks) > 1
        for previous, current in zip(chunks, chunks[1:]):
            assert current.startswith(previous[-30:])

    def test_every_line_is_covered(self):
        lines = [f"value_{i} = {i}" for i in range(100)]
        chunks = chunk_text("\n".join(lines), 120, 20)

        joined = "\n".join(chunks)
        for line in lines:
            assert line in joined

    def test_chunks_respect_soft_cap_for_short_lines(self):
        text = "\n".join("x" * 40 for _ in range(100))
        for chunk in chunk_text(text, 200, 20):
            # Overlap seed plus accumulated lines never exceeds the cap by more than a line
            assert len(chunk) <= 200 + 41

    def test_oversized_line_is_kept_whole(self):
        long_line = "z" * 2000
        chunks = chunk_text(f"short\n{long_line}\nend", 512, 50)

        assert any(long_line in chunk for chunk in chunks)
        assert chunks[0] == "short"

    def test_zero_overlap(self):
        chunks = chunk_text("a" * 300 + "\n" + "b" * 300, 512, 0)
        assert chunks == ["a" * 300, "b" * 300]

    def test_overlap_only_buffer_is_not_emitted(self):
        chunks = chunk_text("a" * 300 + "\n" + " " * 300 + "\n\n", 512, 50)
        assert chunks == ["a" * 300]

    def test_no_chunk_is_empty(self):
        text = "x\n\n\n" * 200
        assert all(chunk.strip() for chunk in chunk_text(text, 64, 8))

    @pytest.mark.parametrize(
        "size,overlap",
        [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)],
    )
    def test_invalid_parameters_raise(self, size, overlap):
        with pytest.raises(ValueError):
            chunk_text("text", size, overlap)
