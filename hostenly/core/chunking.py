"""Text chunking for property documents."""

from typing import Any


def chunk_text(
    text: str,
    max_chars: int = 1000,
    overlap: int = 100,
) -> list[dict[str, Any]]:
    """
    Split text into overlapping chunks, preferring paragraph or word boundaries.

    A chunk ends at the last blank line, else the last whitespace, found in
    the second half of its window; with neither it is cut at `max_chars`.

    Args:
        text: Text to chunk
        max_chars: Maximum characters per chunk
        overlap: Characters shared between consecutive chunks

    Returns:
        List of chunk dicts with:
            - chunk_index: int (0-based)
            - content: str (stripped)
            - start_char: int
            - end_char: int

    Raises:
        ValueError: If max_chars <= overlap
    """
    if max_chars <= overlap:
        raise ValueError(f"max_chars ({max_chars}) must be greater than overlap ({overlap})")

    if not text or not text.strip():
        return []

    chunks = []
    chunk_index = 0
    start = 0
    text_length = len(text)

    while start < text_length:
        end = min(start + max_chars, text_length)

        if end < text_length:
            floor = start + max_chars // 2
            boundary = text.rfind("\n\n", floor, end)
            if boundary == -1:
                boundary = max(text.rfind(" ", floor, end), text.rfind("\n", floor, end))
            if boundary > start:
                end = boundary

        content = text[start:end].strip()
        if content:
            chunks.append(
                {
                    "chunk_index": chunk_index,
                    "content": content,
                    "start_char": start,
                    "end_char": end,
                }
            )
            chunk_index += 1

        if end >= text_length:
            break

        start = max(end - overlap, start + 1)

    return chunks
