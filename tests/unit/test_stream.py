"""Test newline-delimited JSON stream parsing."""

from collections.abc import AsyncIterator

import pytest

from genai_chat.client.stream import LineBuffer, iter_chunks, parse_chunk
from genai_chat.exceptions import McpStreamError


async def _body(*parts: str) -> AsyncIterator[str]:
    for part in parts:
        yield part


async def _collect(*parts: str) -> list:
    return [chunk async for chunk in iter_chunks(_body(*parts))]


class TestLineBuffer:
    """Line splitting across reads."""

    def test_partial_line_is_buffered(self) -> None:
        buffer = LineBuffer()

        assert buffer.feed('{"text": "he') == []
        assert buffer.feed('llo"}\n{"te') == ['{"text": "hello"}']
        assert buffer.buffer == '{"te'

    def test_blank_lines_are_skipped(self) -> None:
        buffer = LineBuffer()

        assert buffer.feed("a\n\n  \nb\n") == ["a", "b"]

    def test_flush_returns_trailing_line(self) -> None:
        buffer = LineBuffer()
        buffer.feed("a\nrest")

        assert buffer.flush() == ["rest"]
        assert buffer.flush() == []


def test_parse_chunk_defaults() -> None:
    chunk = parse_chunk('{"trace": "tool call"}')

    assert chunk.text == ""
    assert chunk.trace == "tool call"


def test_parse_chunk_rejects_malformed_line() -> None:
    with pytest.raises(McpStreamError):
        parse_chunk("not json")


@pytest.mark.asyncio
async def test_iter_chunks_yields_one_chunk_per_line() -> None:
    chunks = await _collect('{"text": "Hel"}\n{"text": "lo"}\n')

    assert [c.text for c in chunks] == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_iter_chunks_parses_unterminated_last_line() -> None:
    chunks = await _collect('{"text": "a"}\n{"text": "b"}')

    assert [c.text for c in chunks] == ["a", "b"]


@pytest.mark.asyncio
async def test_iter_chunks_raises_on_malformed_line() -> None:
    with pytest.raises(McpStreamError):
        await _collect('{"text": "a"}\n{broken\n')


@pytest.mark.asyncio
async def test_iter_chunks_joins_lines_split_across_reads() -> None:
    chunks = await _collect('{"text": "こん', 'にちは"}\n{"te', 'xt": "!"}')

    assert [c.text for c in chunks] == ["こんにちは", "!"]
