"""
Unit tests for URL classification.
"""

import pytest

from audioqueue.streaming.resolvers.base import SourceType
from audioqueue.streaming.resolvers.classifier import (
    classify_extractor,
    extract_apple_id,
    extract_youtube_id,
    is_apple_podcasts,
    is_googlevideo,
    is_podcast_platform,
    is_spotify,
    is_spotify_episode,
    is_substack,
    is_youtube,
)


@pytest.mark.unit
class TestYouTubeIds:
    """Video id extraction across URL shapes."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=abc",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
            "https://m.youtube.com/v/dQw4w9WgXcQ",
        ],
    )
    def test_supported_shapes(self, url):
        assert extract_youtube_id(url) == "dQw4w9WgXcQ"
        assert is_youtube(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "https://www.youtube.com/",
            "https://www.youtube.com/channel/UC1234567890",
            "https://vimeo.com/123456",
            "https://www.youtube.com/watch?v=short",
        ],
    )
    def test_non_video_urls(self, url):
        assert extract_youtube_id(url) is None
        assert is_youtube(url) is False


@pytest.mark.unit
class TestPlatforms:
    """Podcast platform and Substack detection."""

    def test_spotify(self):
        assert is_spotify("https://open.spotify.com/show/abc123")
        assert is_spotify("https://OPEN.SPOTIFY.COM/episode/xyz")
        assert not is_spotify("https://open.spotify.com/track/abc")
        assert not is_spotify("https://spotify.com/show/abc")

    def test_spotify_episode(self):
        assert is_spotify_episode("https://open.spotify.com/episode/xyz")
        assert not is_spotify_episode("https://open.spotify.com/show/abc123")

    def test_apple(self):
        url = "https://podcasts.apple.com/us/podcast/the-show/id1234567890?i=1000600000000"
        assert is_apple_podcasts(url)
        assert extract_apple_id(url) == "1234567890"
        assert extract_apple_id("https://podcasts.apple.com/us/browse") is None

    def test_podcast_platform(self):
        assert is_podcast_platform("https://open.spotify.com/show/abc")
        assert is_podcast_platform("https://podcasts.apple.com/us/podcast/x/id1")
        assert not is_podcast_platform("https://example.com/feed.xml")

    def test_substack(self):
        assert is_substack("https://writer.substack.com/p/post")
        assert not is_substack("https://example.com/p/post")


@pytest.mark.unit
class TestGoogleVideo:
    """CDN host detection for proxy rewriting."""

    def test_cdn_host(self):
        assert is_googlevideo("https://rr3---sn-abc.googlevideo.com/videoplayback?expire=1")
        assert is_googlevideo("https://googlevideo.com/videoplayback")

    def test_other_hosts(self):
        assert not is_googlevideo("https://cdn.example.com/ep.mp3")
        assert not is_googlevideo("https://googlevideo.com.evil.example/x")
        assert not is_googlevideo(None)
        assert not is_googlevideo("")


@pytest.mark.unit
class TestClassifyExtractor:
    """Extractor label to source type."""

    def test_soundcloud_label(self):
        assert classify_extractor("https://soundcloud.com/a/b", "Soundcloud") == SourceType.SOUNDCLOUD

    def test_substack_by_label(self):
        assert classify_extractor("https://example.com/p/x", "Substack") == SourceType.SUBSTACK

    def test_substack_by_url(self):
        assert classify_extractor("https://writer.substack.com/p/x", "generic") == SourceType.SUBSTACK

    def test_other(self):
        assert classify_extractor("https://vimeo.com/1", "vimeo") == SourceType.OTHER
        assert classify_extractor("https://vimeo.com/1", None) == SourceType.OTHER
