# [[LUMEN]]/apps/computer-service/src/core/credentials.py
# Purpose: Service-account credential staging for Vertex AI
# Architecture: Core Layer, one-time environment preparation
# Dependencies: os, tempfile, base64

import os
import json
import base64
import tempfile
from typing import Optional
from core.config import Settings, logger

CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"


def _decode_payload(payload: str) -> str:
    """Raw JSON passes through; anything else is treated as base64-encoded JSON."""
    try:
        json.loads(payload)
        return payload
    except ValueError:
        return base64.b64decode(payload).decode("utf-8")


def ensure_credentials(config: Settings, tmp_dir: Optional[str] = None) -> Optional[str]:
    """
    Makes sure a credential file is available to Application Default Credentials.

    Returns the active credential path, or None when nothing could be staged.
    Never raises: a missing or broken payload only means generation calls will
    later fail with an auth error.
    """
    existing = os.environ.get(CREDENTIALS_ENV) or config.GOOGLE_APPLICATION_CREDENTIALS
    if existing:
        if not os.environ.get(CREDENTIALS_ENV):
            os.environ[CREDENTIALS_ENV] = existing
        return existing

    if not config.GCP_CREDENTIALS_JSON:
        return None

    file_path = os.path.join(tmp_dir or tempfile.gettempdir(), config.CREDENTIALS_FILENAME)
    try:
        content = _decode_payload(config.GCP_CREDENTIALS_JSON)
        # Concurrent requests may write the same content here
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)
        os.environ[CREDENTIALS_ENV] = file_path
        logger.info(f"Staged service account credentials at {file_path}")
        return file_path
    except (OSError, ValueError) as e:
        logger.error(f"Credential error: {e}")
        return None
