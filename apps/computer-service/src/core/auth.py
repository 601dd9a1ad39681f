# [[LUMEN]]/apps/computer-service/src/core/auth.py
# Purpose: Session lookup against the identity provider and cookie token extraction
# Architecture: Core Layer
# Dependencies: httpx, fastapi

from typing import Optional, Dict, Any, Mapping
import httpx
from fastapi import Depends, Request
from core.config import Settings, get_settings, logger

SESSION_COOKIE_NAMES = (
    "authjs.session-token",
    "__Secure-authjs.session-token",
)


def extract_session_token(cookies: Mapping[str, str]) -> Optional[str]:
    for name in SESSION_COOKIE_NAMES:
        value = cookies.get(name)
        if value:
            return value
    return None


async def get_session(
    request: Request,
    config: Settings = Depends(get_settings),
) -> Optional[Dict[str, Any]]:
    """
    Resolves the caller's session by forwarding their cookies to the identity
    provider. Returns None when there is no session or no provider configured.
    """
    if not config.AUTH_SESSION_URL:
        return None

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                config.AUTH_SESSION_URL,
                cookies=dict(request.cookies),
                timeout=5.0,
            )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Session lookup failed: {e}")
        return None

    if isinstance(data, dict) and data.get("user"):
        return data
    return None
