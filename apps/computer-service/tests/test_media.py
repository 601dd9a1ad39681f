"""Tests for intelligence.media - Google media search adapter."""

import logging

import httpx
import pytest

from intelligence.media import (
    MAX_IMAGES,
    MAX_VIDEOS,
    build_media_results,
    extract_video_id,
    search_media,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _video_item(video_id: str, title: str = "Video", short: bool = False, thumb: str = None) -> dict:
    link = f"https://youtu.be/{video_id}?t=5" if short else f"https://www.youtube.com/watch?v={video_id}&list=x"
    item = {"title": title, "link": link}
    if thumb:
        item["pagemap"] = {"cse_image": [{"src": thumb}]}
    return item


def _image_item(n: int) -> dict:
    return {
        "title": f"Image {n}",
        "link": f"https://img.example.com/{n}.png",
        "image": {
            "contextLink": f"https://example.com/page/{n}",
            "thumbnailLink": f"https://thumb.example.com/{n}.png",
        },
    }


def _search_transport(general: dict, images: dict, calls: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(dict(request.url.params))
        if request.url.params.get("searchType") == "image":
            return httpx.Response(200, json=images)
        return httpx.Response(200, json=general)
    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Video id extraction
# ---------------------------------------------------------------------------

class TestExtractVideoId:

    def test_watch_link(self):
        assert extract_video_id("https://www.youtube.com/watch?v=abc123&t=10") == "abc123"

    def test_short_link(self):
        assert extract_video_id("https://youtu.be/xyz789?si=share") == "xyz789"

    def test_watch_without_id(self):
        assert extract_video_id("https://www.youtube.com/watch?v=") is None

    def test_unrelated_link(self):
        assert extract_video_id("https://example.com/watch") is None


# ---------------------------------------------------------------------------
# Result partitioning
# ---------------------------------------------------------------------------

class TestBuildMediaResults:

    def test_keeps_only_video_links(self):
        general = {"items": [
            {"title": "Docs", "link": "https://docs.oracle.com/javase/tutorial"},
            _video_item("abc"),
        ]}
        results = build_media_results(general, {})

        assert [v.video_id for v in results.videos] == ["abc"]
        assert results.images == []

    def test_video_thumbnail_prefers_page_metadata(self):
        general = {"items": [
            _video_item("a", thumb="https://cdn.example.com/a.jpg"),
            _video_item("b", short=True),
        ]}
        results = build_media_results(general, {})

        assert results.videos[0].thumbnail == "https://cdn.example.com/a.jpg"
        assert results.videos[1].thumbnail == "https://img.youtube.com/vi/b/hqdefault.jpg"

    def test_duplicate_videos_keep_last_entry_at_first_position(self):
        general = {"items": [
            _video_item("a", title="first a"),
            _video_item("b", title="b"),
            _video_item("a", title="second a", short=True),
        ]}
        results = build_media_results(general, {})

        assert [v.video_id for v in results.videos] == ["a", "b"]
        assert results.videos[0].title == "second a"

    def test_caps_videos_and_images(self):
        general = {"items": [_video_item(f"v{i}") for i in range(8)]}
        images = {"items": [_image_item(i) for i in range(8)]}
        results = build_media_results(general, images)

        assert len(results.videos) == MAX_VIDEOS == 4
        assert len(results.images) == MAX_IMAGES == 6
        assert [v.video_id for v in results.videos] == ["v0", "v1", "v2", "v3"]
        assert results.images[0].src == "https://img.example.com/0.png"

    def test_image_requires_link_and_thumbnail(self):
        incomplete = {"title": "No thumb", "link": "https://img.example.com/x.png", "image": {}}
        results = build_media_results({}, {"items": [incomplete, _image_item(1)]})

        assert len(results.images) == 1
        image = results.images[0]
        assert image.link == "https://example.com/page/1"
        assert image.thumbnail == "https://thumb.example.com/1.png"


# ---------------------------------------------------------------------------
# search_media
# ---------------------------------------------------------------------------

class TestSearchMedia:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key,scope_id", [("key", ""), ("key", None), (None, "cx")])
    async def test_missing_configuration_skips_network(self, api_key, scope_id):
        calls = []
        async with httpx.AsyncClient(transport=_search_transport({}, {}, calls)) as client:
            results = await search_media("arrays", api_key, scope_id, http_client=client)

        assert results.is_empty
        assert calls == []

    @pytest.mark.asyncio
    async def test_issues_general_and_image_searches(self):
        calls = []
        general = {"items": [_video_item("abc")]}
        images = {"items": [_image_item(1), _image_item(2)]}
        async with httpx.AsyncClient(transport=_search_transport(general, images, calls)) as client:
            results = await search_media("arrays in java", "key", "cx", http_client=client)

        assert len(results.images) == 2
        assert len(results.videos) == 1
        assert len(calls) == 2

        image_call = next(c for c in calls if c.get("searchType") == "image")
        general_call = next(c for c in calls if "searchType" not in c)
        assert general_call == {"key": "key", "cx": "cx", "q": "arrays in java", "num": "10"}
        assert image_call["num"] == "8"

    @pytest.mark.asyncio
    async def test_network_error_yields_empty_results(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            results = await search_media("arrays", "key", "cx", http_client=client)

        assert results.is_empty

    @pytest.mark.asyncio
    async def test_invalid_json_yields_empty_results(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
        async with httpx.AsyncClient(transport=transport) as client:
            results = await search_media("arrays", "key", "cx", http_client=client)

        assert results.is_empty

    @pytest.mark.asyncio
    async def test_error_status_without_items_yields_empty_results(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(403, json={"error": {"message": "quota"}})
        )
        async with httpx.AsyncClient(transport=transport) as client:
            results = await search_media("arrays", "key", "cx", http_client=client)

        assert results.is_empty

    @pytest.mark.asyncio
    async def test_owned_client_has_no_timeout(self, monkeypatch):
        created = []
        real_client = httpx.AsyncClient

        class RecordingClient(real_client):
            def __init__(self, **kwargs):
                created.append(kwargs)
                super().__init__(transport=_search_transport({}, {}, []), **kwargs)
                created.append(self)

        monkeypatch.setattr("intelligence.media.httpx.AsyncClient", RecordingClient)
        await search_media("arrays", "key", "cx")

        assert created[0] == {"timeout": None}
        assert created[1].timeout == httpx.Timeout(None)
        assert created[1].is_closed

    @pytest.mark.asyncio
    async def test_failure_log_names_the_exception(self, caplog):
        def handler(request):
            raise httpx.ReadTimeout("", request=request)

        with caplog.at_level(logging.ERROR, logger="lumen.computer"):
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                results = await search_media("arrays", "key", "cx", http_client=client)

        assert results.is_empty
        record = next(r for r in caplog.records if r.message.startswith("Media search error"))
        assert "ReadTimeout" in record.message
        assert record.exc_info is not None
