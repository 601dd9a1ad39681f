# [[LUMEN]]/apps/computer-service/src/intelligence/modes.py
# Purpose: Closed set of tutor modes and their generation/search configuration
# Architecture: Intelligence Layer
# Dependencies: pydantic

from enum import Enum
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, ConfigDict
from core.config import Settings
from intelligence.prompts import (
    ISC_COMPUTER_SYSTEM_INSTRUCTION,
    ISC_COMPUTER_IMAGE_ONLY_PROMPT,
    ISC_COMPUTER_MEDIA_FALLBACK_QUERY,
)


class Mode(str, Enum):
    ISC_COMPUTER = "isc_computer"


DEFAULT_MODE = Mode.ISC_COMPUTER


class ModeConfig(BaseModel):
    """Immutable per-mode configuration."""
    model_config = ConfigDict(frozen=True)

    mode: Mode
    model_name: str
    temperature: float
    system_instruction: str
    tools: Tuple[str, ...] = ()
    search_scope_id: str = ""
    image_only_prompt: str
    media_fallback_query: str


def build_mode_table(config: Settings) -> Dict[Mode, ModeConfig]:
    return {
        Mode.ISC_COMPUTER: ModeConfig(
            mode=Mode.ISC_COMPUTER,
            model_name="gemini-3-pro-preview",
            temperature=0.1,
            system_instruction=ISC_COMPUTER_SYSTEM_INSTRUCTION,
            tools=("google_search",),
            search_scope_id=config.GOOGLE_SEARCH_CX_ID_ISC_COMPUTER or "",
            image_only_prompt=ISC_COMPUTER_IMAGE_ONLY_PROMPT,
            media_fallback_query=ISC_COMPUTER_MEDIA_FALLBACK_QUERY,
        ),
    }


def parse_mode(key: Optional[str]) -> Mode:
    """Unknown or missing keys map to the default mode."""
    try:
        return Mode(key)
    except ValueError:
        return DEFAULT_MODE


def resolve_mode(key: Optional[str], table: Dict[Mode, ModeConfig]) -> ModeConfig:
    return table[parse_mode(key)]
