"""
LUMEN Computer Service - FastAPI front for the ISC Computer Science tutor
Streams Gemini answers interleaved with thoughts, citations and media results
"""

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from typing import Any, Awaitable, Callable, Dict, Optional
from dotenv import load_dotenv
from google import genai

load_dotenv()

from core.config import Settings, settings, get_settings, logger, get_gemini_client, get_redis_client
from core.credentials import ensure_credentials
from core.auth import get_session, extract_session_token
from core.usage import UsageGate
from core.llm import stream_generation
from domain.protocol import ComputerRequest, MediaResultSet
from intelligence.media import search_media
from intelligence.modes import Mode, ModeConfig, build_mode_table, resolve_mode
from intelligence.composer import StreamComposer

app = FastAPI(
    title="LUMEN Computer Service",
    description="Streaming ISC Computer Science tutor backed by Gemini",
    version="0.1.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Anonymous callers share one usage bucket
GUEST_IDENTITY = "guest_user"
USAGE_CATEGORY = "academic"
USAGE_FEATURE = "computer"

MediaSearcher = Callable[..., Awaitable[MediaResultSet]]

# ============================================================================
# Process-wide State
# ============================================================================

mode_table = build_mode_table(settings)
usage_gate = UsageGate(
    get_redis_client(settings),
    settings.DAILY_LIMITS,
    settings.DEFAULT_DAILY_LIMIT,
)

# ============================================================================
# Dependencies
# ============================================================================

def get_mode_table() -> Dict[Mode, ModeConfig]:
    return mode_table


def get_usage_gate() -> UsageGate:
    return usage_gate


def get_media_searcher() -> MediaSearcher:
    return search_media


def get_client_provider(
    config: Settings = Depends(get_settings),
) -> Callable[[], genai.Client]:
    """Credentials are staged lazily, right before the client is first needed."""
    def provide() -> genai.Client:
        ensure_credentials(config)
        return get_gemini_client(config)
    return provide

# ============================================================================
# Routes
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "LUMEN Computer Service",
        "version": "0.1.0"
    }


@app.get("/api/auth/token")
async def auth_token(
    request: Request,
    session: Optional[Dict[str, Any]] = Depends(get_session),
):
    """Hands the raw session token to clients that call other backends directly."""
    if not session:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    token = extract_session_token(request.cookies)
    if not token:
        return JSONResponse({"error": "Token not found"}, status_code=404)

    return {"token": token}


@app.post("/api/computer")
async def computer(
    request: ComputerRequest,
    config: Settings = Depends(get_settings),
    modes: Dict[Mode, ModeConfig] = Depends(get_mode_table),
    gate: UsageGate = Depends(get_usage_gate),
    client_provider: Callable[[], genai.Client] = Depends(get_client_provider),
    media_searcher: MediaSearcher = Depends(get_media_searcher),
):
    """
    Streams the tutor's answer as tagged plain text.

    Args:
        request: ComputerRequest with query, mode, image(s) and prior history

    Returns:
        200 text/plain stream, or a JSON error (429 usage limit, 500 setup failure)
    """
    mode = resolve_mode(request.mode, modes)

    decision = await gate.check(GUEST_IDENTITY, USAGE_CATEGORY, USAGE_FEATURE)
    if not decision.allowed:
        return JSONResponse(
            {
                "error": decision.error or "Daily limit exceeded for Academic (Computer Science).",
                "remaining": 0,
            },
            status_code=429,
        )
    await gate.increment(GUEST_IDENTITY, USAGE_CATEGORY, USAGE_FEATURE)

    if not config.GOOGLE_CLOUD_PROJECT or not config.GOOGLE_SEARCH_API_KEY:
        logger.warning("Missing GCP Project ID or Search API Key")

    images = request.attached_images()
    if images:
        logger.info(f"Processing multimodal request with {len(images)} image(s) in mode: {mode.mode.value}")

    try:
        client = client_provider()
        composer = StreamComposer(
            media_searcher(
                request.query or mode.media_fallback_query,
                config.GOOGLE_SEARCH_API_KEY,
                mode.search_scope_id,
                search_url=config.GOOGLE_SEARCH_URL,
            ),
            stream_generation(client, mode, request.history, request.query, images),
        )
        await composer.prepare()
    except Exception as e:
        logger.error(f"General API Error: {e}", exc_info=True)
        return JSONResponse({"error": str(e)}, status_code=500)

    return StreamingResponse(composer.frames(), media_type="text/plain; charset=utf-8")


# ============================================================================
# Root endpoint
# ============================================================================

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "LUMEN Computer Service",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "token": "GET /api/auth/token",
            "computer": "POST /api/computer"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
