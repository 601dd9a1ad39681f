# [[LUMEN]]/apps/computer-service/src/core/llm.py
# Purpose: GenAI streaming wrapper with multimodal input and chunk normalization
# Architecture: Core Layer
# Dependencies: google.genai, base64

from typing import Dict, Any, List, Optional, AsyncIterator
import base64
from google import genai
from google.genai import types
from core.config import logger
from domain.protocol import ImageInput, StreamEvent, StreamEventKind
from intelligence.modes import ModeConfig
from intelligence.prompts import render_user_query

# Tool names used in ModeConfig -> provider tool declarations
TOOL_REGISTRY = {
    "google_search": lambda: types.Tool(google_search=types.GoogleSearch()),
}

# ============================================================================
# Request Preparation
# ============================================================================

def build_user_parts(
    mode: ModeConfig,
    query: Optional[str],
    images: Optional[List[ImageInput]] = None,
) -> List[types.Part]:
    """
    Current-turn parts: one text part first, then one inline part per image.
    Gemini rejects empty text parts, so image-only turns get the mode's
    analysis prompt instead.
    """
    text_prompt = render_user_query(query) if query else mode.image_only_prompt
    parts = [types.Part(text=text_prompt)]

    for img in images or []:
        if not img.is_complete:
            continue
        parts.append(types.Part.from_bytes(
            data=base64.b64decode(img.data),
            mime_type=img.mime_type,
        ))
    return parts


def build_contents(
    history: List[Dict[str, Any]],
    user_parts: List[types.Part],
) -> List[types.Content]:
    contents = [types.Content.model_validate(turn) for turn in history]
    contents.append(types.Content(role="user", parts=user_parts))
    return contents


def build_generation_config(mode: ModeConfig) -> types.GenerateContentConfig:
    """Call-scoped config; the stored ModeConfig is never modified."""
    tools = [TOOL_REGISTRY[name]() for name in mode.tools if name in TOOL_REGISTRY]
    return types.GenerateContentConfig(
        system_instruction=mode.system_instruction,
        temperature=mode.temperature,
        tools=tools or None,
        thinking_config=types.ThinkingConfig(
            include_thoughts=True,
            thinking_level=types.ThinkingLevel.HIGH,
        ),
    )

# ============================================================================
# Chunk Normalization
# ============================================================================

def normalize_chunk(chunk: types.GenerateContentResponse) -> List[StreamEvent]:
    """
    Flattens one provider chunk into ordered events: text parts first
    (thought or answer), then grounding sources if the chunk carries any.
    """
    if not chunk.candidates:
        return []

    candidate = chunk.candidates[0]
    events: List[StreamEvent] = []

    if candidate.content and candidate.content.parts:
        for part in candidate.content.parts:
            if not part.text:
                continue
            kind = StreamEventKind.THOUGHT if part.thought else StreamEventKind.ANSWER
            events.append(StreamEvent(kind=kind, text=part.text))

    if candidate.grounding_metadata:
        sources = [
            gc.model_dump(mode="json", by_alias=True, exclude_none=True)
            for gc in candidate.grounding_metadata.grounding_chunks or []
        ]
        events.append(StreamEvent(kind=StreamEventKind.GROUNDING, sources=sources))

    return events

# ============================================================================
# Streaming Support
# ============================================================================

async def stream_generation(
    client: genai.Client,
    mode: ModeConfig,
    history: List[Dict[str, Any]],
    query: Optional[str],
    images: Optional[List[ImageInput]] = None,
) -> AsyncIterator[List[StreamEvent]]:
    """
    Single-pass stream with one list of normalized events per provider chunk.
    A chunk without text or grounding yields an empty list.
    The provider request is issued on the first iteration.
    """
    user_parts = build_user_parts(mode, query, images)
    contents = build_contents(history, user_parts)

    logger.info(
        f"Generation: mode={mode.mode.value} model={mode.model_name} "
        f"history={len(history)} images={len(user_parts) - 1}"
    )

    # Use the Async client for streaming to avoid blocking the event loop
    stream = await client.aio.models.generate_content_stream(
        model=mode.model_name,
        contents=contents,
        config=build_generation_config(mode),
    )

    async for chunk in stream:
        yield normalize_chunk(chunk)
