"""Line-based sliding-window chunking of document text."""


def _tail(text: str, size: int) -> str:
    if size <= 0:
        return ""
    return text[-size:]


def chunk_text(text: str, max_chunk_size: int = 512, overlap_size: int = 50) -> list[str]:
    """Split text into overlapping chunks suitable for embedding.

    Lines are accumulated into a buffer. When appending the next line would
    push the buffer past ``max_chunk_size``, the buffer is emitted (trimmed)
    and the next buffer is seeded with the last ``overlap_size`` characters
    of the emitted chunk before the triggering line is appended.

    A single line longer than ``max_chunk_size`` is never split; it ends up
    as its own oversized chunk (plus any overlap seed).

    Args:
        text: Document text
        max_chunk_size: Soft cap on chunk length in characters
        overlap_size: Characters carried over from the previous chunk

    Returns:
        Ordered list of chunk strings. Empty input yields an empty list.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap_size < 0:
        raise ValueError("overlap_size must not be negative")
    if overlap_size >= max_chunk_size:
        raise ValueError("overlap_size must be smaller than max_chunk_size")

    if not text:
        return []

    chunks: list[str] = []
    buffer = ""
    # Content appended since the buffer was last seeded
    fresh = ""
    seeded = False

    for line in text.split("\n"):
        if fresh.strip() and len(buffer) + len(line) > max_chunk_size:
            chunk = buffer.rstrip() if seeded else buffer.strip()
            chunks.append(chunk)
            buffer = _tail(chunk, overlap_size)
            seeded = bool(buffer)
            fresh = ""

        buffer += line + "\n"
        fresh += line + "\n"

    if fresh.strip():
        chunks.append(buffer.rstrip() if seeded else buffer.strip())

    return chunks
