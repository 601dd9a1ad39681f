# [[LUMEN]]/apps/computer-service/src/intelligence/composer.py
# Purpose: Combines media results and model output into one tagged text stream
# Architecture: Intelligence Layer, consumed by the /api/computer route
# Dependencies: asyncio, json

import asyncio
import json
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, List, Optional
from core.config import logger
from domain.protocol import MediaResultSet, StreamEvent, StreamEventKind

# ============================================================================
# Wire Frames
# ============================================================================

MEDIA_START = "__MEDIA_START__"
MEDIA_END = "__MEDIA_END__"
THOUGHT_START = "__THOUGHT_START__"
THOUGHT_END = "__THOUGHT_END__"
JSON_START = "__JSON_START__"
JSON_END = "__JSON_END__"


def _compact_json(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def encode_media_frame(media: MediaResultSet) -> str:
    payload = media.model_dump(mode="json", by_alias=True, exclude_none=True)
    return f"{MEDIA_START}\n{_compact_json(payload)}\n{MEDIA_END}\n\n"


def encode_event(event: StreamEvent) -> str:
    if event.kind is StreamEventKind.THOUGHT:
        return f"{THOUGHT_START}{event.text}{THOUGHT_END}"
    if event.kind is StreamEventKind.GROUNDING:
        return f"\n\n{JSON_START}\n{_compact_json({'sources': event.sources})}\n{JSON_END}"
    return event.text


def encode_error_frame(error: BaseException) -> str:
    message = str(error) or error.__class__.__name__
    return f"\n\n[SYSTEM ERROR: Stream interrupted - {message}]"

# ============================================================================
# Composer
# ============================================================================

class StreamState(str, Enum):
    INIT = "init"
    AWAIT_BOTH = "await_both"
    # Both sources resolved, response not yet committed
    READY = "ready"
    EMIT_MEDIA = "emit_media"
    DRAIN_CHUNKS = "drain_chunks"
    ERROR_TAIL = "error_tail"
    CLOSED = "closed"


class StreamComposer:
    """
    Two-phase stream assembly.

    `prepare()` runs before the HTTP response is committed: it lets the media
    search run while waiting for the model's first chunk, so a rejected
    generation request can still be reported with a status code.
    `frames()` then yields the wire text. Any failure from that point on is
    reported in-band as a single error frame.
    """
    def __init__(
        self,
        media: Awaitable[MediaResultSet],
        chunks: AsyncIterator[List[StreamEvent]],
    ):
        self._media_source = media
        self._chunks = chunks
        self._first: Optional[List[StreamEvent]] = None
        self.media = MediaResultSet()
        self.state = StreamState.INIT

    def _transition(self, state: StreamState) -> None:
        logger.debug(f"Stream state {self.state.value} -> {state.value}")
        self.state = state

    async def _prime(self) -> Optional[List[StreamEvent]]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    async def prepare(self) -> None:
        """Raises whatever the model raises before its first chunk."""
        self._transition(StreamState.AWAIT_BOTH)
        media_task = asyncio.ensure_future(self._media_source)
        try:
            self._first = await self._prime()
        except Exception:
            media_task.cancel()
            await self._close_chunks()
            raise
        self.media = await media_task
        self._transition(StreamState.READY)

    async def frames(self) -> AsyncIterator[str]:
        if self.state is not StreamState.READY:
            raise RuntimeError(f"Stream not prepared (state={self.state.value})")

        self._transition(StreamState.EMIT_MEDIA)
        if not self.media.is_empty:
            yield encode_media_frame(self.media)

        self._transition(StreamState.DRAIN_CHUNKS)
        try:
            if self._first is not None:
                for event in self._first:
                    yield encode_event(event)
                self._first = None
            async for chunk in self._chunks:
                for event in chunk:
                    yield encode_event(event)
        except Exception as e:
            self._transition(StreamState.ERROR_TAIL)
            logger.error(f"Stream processing error: {e}", exc_info=True)
            yield encode_error_frame(e)
        finally:
            await self._close_chunks()
            self._transition(StreamState.CLOSED)

    async def _close_chunks(self) -> None:
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()
