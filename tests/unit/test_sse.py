"""
Unit tests for SSE re-formatting.
"""

import json
import pytest

from jaydus.services.ai.providers import Provider
from jaydus.services.ai.sse import SSEReformatter, DONE_EVENT, extract_token, reformat_stream, sse_event


def content_event(text: str) -> str:
    return sse_event({"content": text})


def openai_line(content: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]}, ensure_ascii=False)}\n\n".encode("utf-8")


class TestExtractToken:

    def test_openai_delta(self):
        event = {"choices": [{"index": 0, "delta": {"content": "hi"}}]}
        assert extract_token(Provider.OPENAI, event) == "hi"

    def test_openai_role_only_delta(self):
        event = {"choices": [{"index": 0, "delta": {"role": "assistant"}}]}
        assert extract_token(Provider.OPENROUTER, event) is None

    def test_openai_no_choices(self):
        assert extract_token(Provider.OPENAI, {"choices": []}) is None

    def test_anthropic_delta(self):
        event = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "yo"}}
        assert extract_token(Provider.ANTHROPIC, event) == "yo"

    def test_anthropic_other_events(self):
        assert extract_token(Provider.ANTHROPIC, {"type": "message_start", "message": {}}) is None
        assert extract_token(Provider.ANTHROPIC, {"type": "ping"}) is None


class TestSSEReformatter:
    """Chunk boundaries never change the emitted events."""

    def test_line_split_across_chunks(self):
        reformatter = SSEReformatter(Provider.OPENAI)
        data = openai_line("Hello")

        first = reformatter.feed(data[:10])
        second = reformatter.feed(data[10:])

        assert first == []
        assert second == [content_event("Hello")]

    def test_multibyte_character_split(self):
        reformatter = SSEReformatter(Provider.OPENAI)
        data = openai_line("café ☕")
        # Split inside the three-byte encoding of the cup
        split_at = data.index("☕".encode("utf-8")) + 1

        events = reformatter.feed(data[:split_at]) + reformatter.feed(data[split_at:])

        assert events == [content_event("café ☕")]
        assert "☕" in events[0]

    def test_byte_by_byte(self):
        reformatter = SSEReformatter(Provider.OPENAI)
        data = openai_line("a") + openai_line("b") + b"data: [DONE]\n\n"

        events = []
        for i in range(len(data)):
            events.extend(reformatter.feed(data[i:i + 1]))
        events.extend(reformatter.finish())

        assert events == [content_event("a"), content_event("b"), DONE_EVENT]

    def test_done_emitted_once(self):
        reformatter = SSEReformatter(Provider.OPENAI)

        events = reformatter.feed(openai_line("x") + b"data: [DONE]\n\n" + openai_line("ignored"))
        events += reformatter.feed(b"data: [DONE]\n\n")
        events += reformatter.finish()

        assert events == [content_event("x"), DONE_EVENT]
        assert reformatter.done

    def test_finish_adds_done(self):
        reformatter = SSEReformatter(Provider.OPENAI)
        reformatter.feed(openai_line("x"))

        assert reformatter.finish() == [DONE_EVENT]
        assert reformatter.finish() == []

    def test_finish_flushes_unterminated_line(self):
        reformatter = SSEReformatter(Provider.OPENAI)
        reformatter.feed(openai_line("x").rstrip(b"\n"))

        assert reformatter.finish() == [content_event("x"), DONE_EVENT]

    def test_malformed_json_skipped(self):
        reformatter = SSEReformatter(Provider.OPENAI)

        events = reformatter.feed(b"data: {not json\n\n" + openai_line("ok"))

        assert events == [content_event("ok")]

    def test_non_data_lines_ignored(self):
        reformatter = SSEReformatter(Provider.ANTHROPIC)
        body = (
            b": keep-alive\n"
            b"event: content_block_delta\n"
            b'data: {"type": "content_block_delta", "delta": {"text": "hi"}}\n\n'
            b"retry: 1000\n"
        )

        assert reformatter.feed(body) == [content_event("hi")]

    def test_crlf_line_endings(self):
        reformatter = SSEReformatter(Provider.OPENAI)

        events = reformatter.feed(openai_line("x").replace(b"\n", b"\r\n"))

        assert events == [content_event("x")]

    def test_empty_content_dropped(self):
        reformatter = SSEReformatter(Provider.OPENAI)

        assert reformatter.feed(openai_line("")) == []


class TestReformatStream:

    @staticmethod
    async def chunks(*parts: bytes):
        for part in parts:
            yield part

    async def test_stream_ends_with_single_done(self):
        events = [event async for event in reformat_stream(
            Provider.OPENAI,
            self.chunks(openai_line("a")[:5], openai_line("a")[5:], b"data: [DONE]\n\n"),
        )]

        assert events == [content_event("a"), DONE_EVENT]

    async def test_stops_reading_after_done(self):
        consumed = []

        async def source():
            for part in (b"data: [DONE]\n\n", openai_line("late")):
                consumed.append(part)
                yield part

        events = [event async for event in reformat_stream(Provider.OPENAI, source())]

        assert events == [DONE_EVENT]
        assert len(consumed) == 1

    @pytest.mark.parametrize("provider", [Provider.OPENAI, Provider.ANTHROPIC, Provider.OPENROUTER])
    async def test_empty_upstream(self, provider):
        events = [event async for event in reformat_stream(provider, self.chunks())]

        assert events == [DONE_EVENT]
