# [[LUMEN]]/apps/computer-service/src/domain/protocol.py
# Purpose: Shared request, media and stream data contracts
# Architecture: Domain Layer (no I/O)
# Dependencies: pydantic

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Inbound Request
# ============================================================================

class ImageInput(BaseModel):
    """Inline image as sent by the web client"""
    model_config = ConfigDict(populate_by_name=True)

    data: Optional[str] = Field(default=None, alias="base64")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    @property
    def is_complete(self) -> bool:
        return bool(self.data and self.mime_type)


class ComputerRequest(BaseModel):
    """Body of POST /api/computer"""
    query: Optional[str] = None
    mode: Optional[str] = None
    image: Optional[ImageInput] = None
    images: Optional[List[ImageInput]] = None
    history: List[Dict[str, Any]] = []

    def attached_images(self) -> List[ImageInput]:
        """
        Returns the images of the current turn. The multi-image form wins over
        the legacy single 'image' field; incomplete entries are dropped.
        """
        if self.images:
            candidates = self.images
        elif self.image:
            candidates = [self.image]
        else:
            candidates = []
        return [img for img in candidates if img.is_complete]


# ============================================================================
# Media Result Set
# ============================================================================

class MediaImage(BaseModel):
    title: Optional[str] = None
    link: Optional[str] = None  # context page
    src: str
    thumbnail: str


class MediaVideo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    link: str
    thumbnail: str
    video_id: str = Field(alias="videoId")


class MediaResultSet(BaseModel):
    images: List[MediaImage] = []
    videos: List[MediaVideo] = []

    @property
    def is_empty(self) -> bool:
        return not self.images and not self.videos


# ============================================================================
# Normalized Generation Stream
# ============================================================================

class StreamEventKind(str, Enum):
    THOUGHT = "thought"
    ANSWER = "answer"
    GROUNDING = "grounding"


class StreamEvent(BaseModel):
    """
    One normalized unit of model output.
    THOUGHT/ANSWER carry `text`; GROUNDING carries `sources`.
    """
    kind: StreamEventKind
    text: str = ""
    sources: List[Dict[str, Any]] = []


# ============================================================================
# Usage Gate
# ============================================================================

class UsageDecision(BaseModel):
    allowed: bool
    remaining: int
    error: Optional[str] = None
