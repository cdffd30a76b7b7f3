"""Document chunker - line-preserving split under a character budget."""

DEFAULT_CHUNK_BUDGET = 15000


def split_text(text: str, budget: int = DEFAULT_CHUNK_BUDGET) -> list[str]:
    """Split text into chunks of at most `budget` characters.

    Pure function with no I/O. The budget is a character-count proxy for
    tokens (1 token ~ 1 character).

    Args:
        text: Extracted document text, page markers included
        budget: Maximum characters per chunk

    Returns:
        Non-empty list of chunks. `"".join(chunks) == text` always holds:
        - text no longer than the budget comes back unchanged as one chunk
        - lines are never split; a line is carried to the next chunk when
          appending it would overflow a non-empty buffer
        - a single line longer than the budget is emitted whole
        - the final partial buffer is always flushed

    Raises:
        ValueError: If budget is not positive
    """
    if budget < 1:
        raise ValueError(f"budget must be positive, got {budget}")

    if len(text) <= budget:
        return [text]

    chunks: list[str] = []
    buffer: list[str] = []
    buffer_len = 0

    for line in text.splitlines(keepends=True):
        if buffer and buffer_len + len(line) > budget:
            chunks.append("".join(buffer))
            buffer = []
            buffer_len = 0

        buffer.append(line)
        buffer_len += len(line)

    if buffer:
        chunks.append("".join(buffer))

    return chunks
