"""
Server-sent event re-formatting.

Vendor streams (OpenAI/OpenRouter `choices[0].delta.content`, Anthropic
`content_block_delta` events) are rewritten into one client format: a
`data: {"content": "<token>"}` event per token, then a single `data: [DONE]`.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import codecs
import json
import structlog

from jaydus.services.ai.providers import Provider

logger = structlog.get_logger(__name__)

DONE_EVENT = "data: [DONE]\n\n"


def sse_event(payload: Dict[str, Any]) -> str:
    return "data: " + json.dumps(payload, ensure_ascii=False) + "\n\n"


def extract_token(provider: Provider, event: Dict[str, Any]) -> Optional[str]:
    """Pull the incremental text out of one parsed vendor event."""
    if provider == Provider.ANTHROPIC:
        if event.get("type") != "content_block_delta":
            return None
        delta = event.get("delta") or {}
        return delta.get("text")

    choices = event.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content")


class SSEReformatter:
    """
    Incremental parser for one upstream stream.

    Bytes are decoded incrementally so multi-byte characters split across
    chunks survive, and a trailing partial line is held until the next chunk.
    """

    def __init__(self, provider: Provider):
        self.provider = provider
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> List[str]:
        """Consume a raw chunk and return the normalized events it completes."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._process_lines(lines)

    def finish(self) -> List[str]:
        """Flush the remaining partial line and close the stream with [DONE]."""
        events = []
        if not self.done:
            tail = self._buffer + self._decoder.decode(b"", final=True)
            self._buffer = ""
            events = self._process_lines([tail])
        if not self.done:
            self.done = True
            events.append(DONE_EVENT)
        return events

    def _process_lines(self, lines: List[str]) -> List[str]:
        events = []
        for line in lines:
            line = line.strip()
            if not line.startswith("data:"):
                continue

            data = line[len("data:"):].strip()
            if data == "[DONE]":
                self.done = True
                events.append(DONE_EVENT)
                break

            try:
                parsed = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Failed to parse upstream event", provider=self.provider.value, data=data[:200])
                continue
            if not isinstance(parsed, dict):
                continue

            token = extract_token(self.provider, parsed)
            if token:
                events.append(sse_event({"content": token}))
        return events


async def reformat_stream(provider: Provider, chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    """Re-emit an upstream byte stream as normalized SSE events ending in one [DONE]."""
    reformatter = SSEReformatter(provider)
    async for chunk in chunks:
        for event in reformatter.feed(chunk):
            yield event
        if reformatter.done:
            return
    for event in reformatter.finish():
        yield event
