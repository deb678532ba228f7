"""
Integration tests for the HTTP API.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from audioqueue.main import create_app
from audioqueue.streaming.dispatcher import Dispatcher
from audioqueue.streaming.remux_streamer import RemuxProcess, RemuxSpawnError, RemuxStreamer
from audioqueue.streaming.resolvers.base import ExhaustedError, ResolvedItem, SourceType
from audioqueue.streaming.resolvers.youtube import YouTubeAudioResolver
from audioqueue.streaming.stream_proxy import StreamProxy

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
GOOGLEVIDEO_URL = "https://rr1---sn-a.googlevideo.com/videoplayback?expire=4102444800&itag=140"


def podcast_item(url: str) -> ResolvedItem:
    return ResolvedItem(
        source_type=SourceType.PODCAST,
        title="Episode 42",
        original_url=url,
        publisher="The Test Show",
        duration_seconds=5025,
        audio_url="https://cdn.example.com/ep42.mp3",
    )


@pytest.fixture
def client(temp_dir, monkeypatch):
    """App with lifespan services, run from an empty directory."""
    monkeypatch.chdir(temp_dir)
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def dispatcher(client):
    mock = MagicMock(spec=Dispatcher)
    mock.dispatch = AsyncMock(side_effect=lambda url: podcast_item(url))
    mock.dispatch_many = AsyncMock(side_effect=lambda urls: [podcast_item(u) for u in urls])
    client.app.state.dispatcher = mock
    return mock


@pytest.mark.integration
class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_detailed(self, client):
        data = client.get("/api/health").json()

        assert data["status"] in ("healthy", "degraded")
        assert set(data["checks"]) == {"ffmpeg", "yt_dlp", "podcast_index"}
        assert data["checks"]["podcast_index"]["status"] == "not_configured"
        assert "streams" in data["cache"]

    def test_version(self, client):
        assert client.get("/version").json()["app"] == "AudioQueue"


@pytest.mark.integration
class TestResolveEndpoints:

    def test_resolve(self, client, dispatcher):
        response = client.post("/api/resolve", json={"url": " https://example.com/feed.xml "})

        assert response.status_code == 200
        data = response.json()
        assert data["sourceType"] == "podcast"
        assert data["audioURL"] == "https://cdn.example.com/ep42.mp3"
        assert data["originalURL"] == "https://example.com/feed.xml"
        dispatcher.dispatch.assert_awaited_once_with("https://example.com/feed.xml")

    @pytest.mark.parametrize("body", [{}, {"url": ""}, {"url": "   "}])
    def test_resolve_missing_url(self, client, dispatcher, body):
        response = client.post("/api/resolve", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required field: url"

    def test_unsupported_is_200(self, client, dispatcher):
        dispatcher.dispatch.side_effect = lambda url: ResolvedItem.unsupported(url)

        data = client.post("/api/resolve", json={"url": "https://example.com/page"}).json()

        assert data["sourceType"] == "unsupported"
        assert data["audioURL"] is None

    def test_batch(self, client, dispatcher):
        urls = ["https://a.example/feed", "https://b.example/feed"]

        response = client.post("/api/resolve/batch", json={"urls": urls})

        assert response.status_code == 200
        assert [item["originalURL"] for item in response.json()] == urls

    @pytest.mark.parametrize("body", [{}, {"urls": []}])
    def test_batch_missing_urls(self, client, dispatcher, body):
        response = client.post("/api/resolve/batch", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required field: urls (array)"

    def test_batch_limit(self, client, dispatcher):
        urls = [f"https://example.com/{i}.mp3" for i in range(21)]

        response = client.post("/api/resolve/batch", json={"urls": urls})

        assert response.status_code == 400
        assert response.json()["detail"] == "Batch limit is 20 URLs"
        dispatcher.dispatch_many.assert_not_awaited()


@pytest.mark.integration
class TestQueueEndpoints:

    def test_add_resolves_in_background(self, client, dispatcher):
        response = client.post("/api/queue", json={"url": "https://example.com/feed.xml"})

        assert response.status_code == 201
        created = response.json()
        assert created["resolveStatus"] == "pending"

        items = client.get("/api/queue").json()
        assert len(items) == 1
        assert items[0]["id"] == created["id"]
        assert items[0]["resolveStatus"] == "resolved"
        assert items[0]["title"] == "Episode 42"

    def test_add_requires_url(self, client, dispatcher):
        response = client.post("/api/queue", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "url required"

    def test_googlevideo_url_rewritten_to_proxy(self, client, dispatcher):
        dispatcher.dispatch.side_effect = lambda url: ResolvedItem(
            SourceType.YOUTUBE, "A Video", url, audio_url=GOOGLEVIDEO_URL,
        )
        created = client.post("/api/queue", json={"url": VIDEO_URL}).json()

        item = client.get("/api/queue").json()[0]

        assert item["audioURL"] == f"http://localhost:3000/api/queue/{created['id']}/stream"

    def test_update_listened(self, client, dispatcher):
        created = client.post("/api/queue", json={"url": "https://example.com/feed.xml"}).json()

        response = client.patch(f"/api/queue/{created['id']}", json={"isListened": True})

        assert response.status_code == 200
        assert response.json()["isListened"] is True
        assert client.patch("/api/queue/unknown", json={"isListened": True}).status_code == 404

    def test_reorder(self, client, dispatcher):
        first = client.post("/api/queue", json={"url": "https://a.example/feed"}).json()
        second = client.post("/api/queue", json={"url": "https://b.example/feed"}).json()

        response = client.patch("/api/queue/reorder", json={"order": [
            {"id": first["id"], "position": 1},
            {"id": second["id"], "position": 0},
        ]})

        assert response.json() == {"ok": True}
        assert [i["id"] for i in client.get("/api/queue").json()] == [second["id"], first["id"]]
        assert client.patch("/api/queue/reorder", json={}).status_code == 400

    def test_delete(self, client, dispatcher):
        created = client.post("/api/queue", json={"url": "https://example.com/feed.xml"}).json()

        assert client.delete(f"/api/queue/{created['id']}").status_code == 204
        assert client.delete(f"/api/queue/{created['id']}").status_code == 404
        assert client.get("/api/queue").json() == []


@pytest.mark.integration
class TestStreamEndpoint:

    @pytest.fixture
    def proxy_parts(self, client, fake_process):
        state = client.app.state
        youtube = MagicMock(spec=YouTubeAudioResolver)
        youtube.resolve = AsyncMock(return_value=ResolvedItem(
            SourceType.YOUTUBE, "A Video", VIDEO_URL, audio_url=GOOGLEVIDEO_URL,
        ))
        streamer = MagicMock(spec=RemuxStreamer)

        async def start(url, is_youtube=False):
            return RemuxProcess(fake_process(chunks=(b"ftyp", b"moov", b"moof")), url)

        streamer.start = AsyncMock(side_effect=start)
        state.stream_proxy = StreamProxy(
            cache=state.cache,
            dispatcher=state.dispatcher,
            youtube_resolver=youtube,
            streamer=streamer,
            items=state.item_store,
        )
        item = state.item_store.create(VIDEO_URL)
        item.source_type = SourceType.YOUTUBE
        return item, youtube, streamer

    def test_streams_fragmented_mp4(self, client, proxy_parts):
        item, youtube, streamer = proxy_parts

        response = client.get(f"/api/queue/{item.id}/stream")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mp4"
        assert "no-cache" in response.headers["cache-control"]
        assert response.content == b"ftypmoovmoof"
        assert streamer.start.call_args.args[0] == GOOGLEVIDEO_URL

    def test_second_play_uses_cache(self, client, proxy_parts):
        item, youtube, streamer = proxy_parts

        client.get(f"/api/queue/{item.id}/stream")
        client.get(f"/api/queue/{item.id}/stream")

        assert youtube.resolve.await_count == 1
        assert streamer.start.await_count == 2

    def test_unknown_item(self, client, proxy_parts):
        assert client.get("/api/queue/missing/stream").status_code == 404

    def test_resolution_failure_is_502(self, client, proxy_parts):
        item, youtube, streamer = proxy_parts
        youtube.resolve.side_effect = ExhaustedError("all mirrors failed")

        response = client.get(f"/api/queue/{item.id}/stream")

        assert response.status_code == 502
        assert response.json()["detail"] == "Could not resolve stream URL"
        streamer.start.assert_not_awaited()

    def test_spawn_failure_is_500(self, client, proxy_parts):
        item, youtube, streamer = proxy_parts
        streamer.start.side_effect = RemuxSpawnError("no ffmpeg")

        response = client.get(f"/api/queue/{item.id}/stream")

        assert response.status_code == 500
        assert response.json()["detail"] == "Stream remuxer unavailable"
