# [[LUMEN]]/apps/computer-service/src/core/config.py
# Purpose: Centralized Configuration & Client Management
# Architecture: Core Layer providing singleton access to the GenAI and Redis clients.
# Dependencies: pydantic-settings, google-genai, redis

import logging
from typing import Optional, Dict, List
from pydantic_settings import BaseSettings
from google import genai
import redis

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Defaults are provided for local development.
    """
    # === VERTEX AI ===
    GOOGLE_CLOUD_PROJECT: Optional[str] = None
    GOOGLE_CLOUD_LOCATION: str = "global"

    # Service account staging. GCP_CREDENTIALS_JSON may be raw JSON or base64.
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None
    GCP_CREDENTIALS_JSON: Optional[str] = None
    CREDENTIALS_FILENAME: str = "google-credentials.json"

    # === MEDIA SEARCH ===
    GOOGLE_SEARCH_API_KEY: Optional[str] = None
    GOOGLE_SEARCH_URL: str = "https://www.googleapis.com/customsearch/v1"
    # One search scope (CSE cx) per mode
    GOOGLE_SEARCH_CX_ID_ISC_COMPUTER: Optional[str] = None

    # === USAGE GATE ===
    REDIS_URL: Optional[str] = None
    DAILY_LIMITS: Dict[str, int] = {
        "academic:computer": 25,
    }
    DEFAULT_DAILY_LIMIT: int = 25

    # === AUTH ===
    # Identity provider session endpoint (e.g. https://host/api/auth/session)
    AUTH_SESSION_URL: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

# Initialize Settings
settings = Settings()

# Configure Logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("lumen.computer")


def get_settings() -> Settings:
    """FastAPI dependency; overridden in tests."""
    return settings


def create_gemini_client(config: Settings) -> genai.Client:
    """
    Builds a Vertex AI backed GenAI client.
    Credentials must be staged (see core.credentials) before this is called,
    since the client resolves Application Default Credentials from the environment.
    """
    if not config.GOOGLE_CLOUD_PROJECT:
        logger.warning("GOOGLE_CLOUD_PROJECT is missing. Generation calls will likely fail.")
    return genai.Client(
        vertexai=True,
        project=config.GOOGLE_CLOUD_PROJECT,
        location=config.GOOGLE_CLOUD_LOCATION,
    )


_gemini_client: Optional[genai.Client] = None

def get_gemini_client(config: Settings) -> genai.Client:
    """Returns the process-wide GenAI client, constructing it on first use."""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = create_gemini_client(config)
    return _gemini_client


def get_redis_client(config: Settings) -> Optional[redis.Redis]:
    """
    Initializes and validates the Redis connection.
    Returns None when Redis is not configured or unreachable.
    """
    if not config.REDIS_URL:
        logger.info("REDIS_URL not set. Usage counters will be kept in-process.")
        return None
    try:
        r = redis.from_url(config.REDIS_URL, decode_responses=True)
        r.ping()
        logger.info(f"Connected to Redis at {config.REDIS_URL}")
        return r
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Usage counters will be kept in-process.")
        return None

# Integration: Imported by src/main.py and every core/intelligence module for `logger`.
# Notes: Missing project/search keys are tolerated; failures surface per request.
