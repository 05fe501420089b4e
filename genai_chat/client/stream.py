"""Newline-delimited JSON stream parsing."""

from collections.abc import AsyncIterator

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import McpStreamError
from ..models import StreamingChunk


class LineBuffer:
    """Split incrementally decoded text into complete lines.

    The trailing partial line stays buffered until more text arrives or
    the stream ends.
    """

    def __init__(self) -> None:
        self.buffer = ""

    def feed(self, text: str) -> list[str]:
        self.buffer += text
        *lines, self.buffer = self.buffer.split("\n")
        return [line for line in lines if line.strip()]

    def flush(self) -> list[str]:
        rest, self.buffer = self.buffer, ""
        return [rest] if rest.strip() else []


def parse_chunk(line: str) -> StreamingChunk:
    try:
        return StreamingChunk.model_validate_json(line)
    except PydanticValidationError as e:
        raise McpStreamError(f"Malformed stream chunk: {line[:100]!r}") from e


async def iter_chunks(body: AsyncIterator[str]) -> AsyncIterator[StreamingChunk]:
    """Yield chunks from decoded text, one per non-blank line.

    Only a line feed ends a line. ``body`` is typically
    ``response.aiter_text()``.
    """
    lines = LineBuffer()

    async for text in body:
        for line in lines.feed(text):
            yield parse_chunk(line)

    for line in lines.flush():
        yield parse_chunk(line)
