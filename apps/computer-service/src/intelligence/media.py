# [[LUMEN]]/apps/computer-service/src/intelligence/media.py
# Purpose: Image and video lookup through Google Programmable Search
# Architecture: Intelligence Layer bridge to the Custom Search JSON API
# Dependencies: httpx

import asyncio
from typing import Any, Dict, List, Optional
import httpx
from core.config import logger
from domain.protocol import MediaImage, MediaVideo, MediaResultSet

DEFAULT_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

MAX_IMAGES = 6
MAX_VIDEOS = 4
GENERAL_RESULT_COUNT = 10
IMAGE_RESULT_COUNT = 8


def extract_video_id(link: str) -> Optional[str]:
    """Returns the YouTube video id of a watch or short link, else None."""
    video_id = None
    if "youtube.com/watch?v=" in link:
        video_id = link.split("v=")[1].split("&")[0]
    elif "youtu.be/" in link:
        video_id = link.split("youtu.be/")[1].split("?")[0]
    return video_id or None


def _video_from_item(item: Dict[str, Any]) -> Optional[MediaVideo]:
    link = item.get("link") or ""
    if "youtube.com/watch" not in link and "youtu.be" not in link:
        return None

    video_id = extract_video_id(link)
    if not video_id:
        return None

    cse_images = (item.get("pagemap") or {}).get("cse_image") or []
    thumbnail = (cse_images[0] or {}).get("src") if cse_images else None

    return MediaVideo(
        title=item.get("title"),
        link=link,
        thumbnail=thumbnail or f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg",
        video_id=video_id,
    )


def _image_from_item(item: Dict[str, Any]) -> Optional[MediaImage]:
    image_meta = item.get("image") or {}
    if not item.get("link") or not image_meta.get("thumbnailLink"):
        return None
    return MediaImage(
        title=item.get("title"),
        link=image_meta.get("contextLink"),
        src=item["link"],
        thumbnail=image_meta["thumbnailLink"],
    )


def build_media_results(general_data: Dict[str, Any], image_data: Dict[str, Any]) -> MediaResultSet:
    """
    Partitions raw search payloads into at most MAX_IMAGES images and
    MAX_VIDEOS distinct videos.
    """
    videos: Dict[str, MediaVideo] = {}
    for item in general_data.get("items") or []:
        video = _video_from_item(item)
        if video:
            # Later duplicates replace the stored entry but keep its position
            videos[video.video_id] = video

    images: List[MediaImage] = []
    for item in image_data.get("items") or []:
        image = _image_from_item(item)
        if image:
            images.append(image)

    return MediaResultSet(
        images=images[:MAX_IMAGES],
        videos=list(videos.values())[:MAX_VIDEOS],
    )


def _decode(response: httpx.Response, label: str) -> Dict[str, Any]:
    if response.status_code >= 400:
        logger.warning(f"{label} search returned {response.status_code}: {response.text[:300]}")
    data = response.json()
    return data if isinstance(data, dict) else {}


async def search_media(
    query: str,
    api_key: Optional[str],
    scope_id: Optional[str],
    search_url: str = DEFAULT_SEARCH_URL,
    http_client: Optional[httpx.AsyncClient] = None,
) -> MediaResultSet:
    """
    Runs a general search and an image search concurrently and returns the
    media found. Never raises: any failure yields an empty result set.
    """
    if not scope_id or not api_key:
        logger.warning("No search scope or API key configured for media search. Skipping.")
        return MediaResultSet()

    base_params = {"key": api_key, "cx": scope_id, "q": query}
    general_params = {**base_params, "num": GENERAL_RESULT_COUNT}
    image_params = {**base_params, "searchType": "image", "num": IMAGE_RESULT_COUNT}

    # No client-side timeout on the search calls
    client = http_client or httpx.AsyncClient(timeout=None)
    try:
        general_res, image_res = await asyncio.gather(
            client.get(search_url, params=general_params),
            client.get(search_url, params=image_params),
        )
        results = build_media_results(
            _decode(general_res, "General"),
            _decode(image_res, "Image"),
        )
        logger.debug(f"Media search '{query[:50]}': {len(results.images)} images, {len(results.videos)} videos")
        return results
    except Exception as e:
        logger.error(f"Media search error: {e!r}", exc_info=True)
        return MediaResultSet()
    finally:
        if http_client is None:
            await client.aclose()
