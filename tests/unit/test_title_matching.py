"""
Unit tests for episode title matching and Spotify page parsing.
"""

import pytest

from audioqueue.streaming.resolvers.podcast_index import (
    find_matching_episode,
    normalize_title,
    parse_spotify_page,
    word_overlap_score,
)
from audioqueue.streaming.resolvers.rss import FeedEpisode


def episodes(*titles: str) -> list[FeedEpisode]:
    return [FeedEpisode(title=t, audio_url=f"https://cdn.example.com/{i}.mp3") for i, t in enumerate(titles)]


@pytest.mark.unit
class TestNormalizeTitle:

    def test_punctuation_and_case(self):
        assert normalize_title("Episode 42: The Answer!") == "episode 42 the answer"

    def test_whitespace_collapsed(self):
        assert normalize_title("  A   lot\tof\nspace  ") == "a lot of space"

    def test_empty(self):
        assert normalize_title("") == ""
        assert normalize_title(None) == ""


@pytest.mark.unit
class TestWordOverlap:

    def test_identical(self):
        assert word_overlap_score("building better podcasts", "building better podcasts") == 1.0

    def test_disjoint(self):
        assert word_overlap_score("alpha bravo", "charlie delta") == 0.0

    def test_short_words_ignored(self):
        assert word_overlap_score("the a of", "the a of") == 0.0

    def test_empty(self):
        assert word_overlap_score("", "something here") == 0.0

    def test_case_sensitive(self):
        # Callers normalize first; raw comparison is exact
        assert word_overlap_score("Hello World", "hello world") == 0.0

    def test_partial(self):
        score = word_overlap_score("famous guest interview", "famous guest returns")
        assert score == pytest.approx(2 / 3)


@pytest.mark.unit
class TestFindMatchingEpisode:

    def test_exact_wins_over_prefix(self):
        feed = episodes("The Answer Extended", "The Answer")

        assert find_matching_episode(feed, "the answer!").title == "The Answer"

    def test_prefix_either_direction(self):
        feed = episodes("Unrelated", "Episode 42: The Answer to Everything (Part 1)")

        match = find_matching_episode(feed, "Episode 42: The Answer to Everything")
        assert match.title.endswith("(Part 1)")

        feed = episodes("Episode 42")
        assert find_matching_episode(feed, "Episode 42 - The Answer").title == "Episode 42"

    def test_overlap_above_threshold(self):
        feed = episodes("Random Talk", "Building Better Podcasts Together Today")

        match = find_matching_episode(feed, "Why Building Better Podcasts Together")
        assert match.title == "Building Better Podcasts Together Today"

    def test_overlap_below_threshold(self):
        feed = episodes("Interview With Someone Completely Different")

        assert find_matching_episode(feed, "Someone Else Entirely Here") is None

    def test_empty_inputs(self):
        assert find_matching_episode([], "anything") is None
        assert find_matching_episode(episodes("A title"), "") is None


SPOTIFY_EPISODE_HTML = """
<html><head>
<title>The Answer - The Test Show | Podcast on Spotify</title>
<meta property="og:title" content="Episode 42: The Answer to Everything"/>
<meta property="og:description" content="Listen to this episode from The Test Show on Spotify. Big ideas."/>
</head><body></body></html>
"""

SPOTIFY_EPISODE_DOT_HTML = """
<html><head>
<meta property="og:title" content="Episode 41"/>
<meta property="og:description" content="The Test Show · Episode"/>
</head></html>
"""

SPOTIFY_EPISODE_TITLE_ONLY_HTML = """
<html><head>
<title>Episode 40 - The Test Show | Podcast on Spotify</title>
<meta property="og:title" content="Episode 40"/>
</head></html>
"""

SPOTIFY_SHOW_HTML = """
<html><head>
<title>The Test Show | Podcast on Spotify</title>
<meta property="og:title" content="The Test Show"/>
</head></html>
"""


@pytest.mark.unit
class TestParseSpotifyPage:

    def test_episode_description(self):
        page = parse_spotify_page(SPOTIFY_EPISODE_HTML, "https://open.spotify.com/episode/abc")

        assert page.show_name == "The Test Show"
        assert page.episode_title == "Episode 42: The Answer to Everything"

    def test_episode_dot_separator(self):
        page = parse_spotify_page(SPOTIFY_EPISODE_DOT_HTML, "https://open.spotify.com/episode/abc")

        assert page.show_name == "The Test Show"

    def test_episode_title_fallback(self):
        page = parse_spotify_page(SPOTIFY_EPISODE_TITLE_ONLY_HTML, "https://open.spotify.com/episode/abc")

        assert page.show_name == "The Test Show"
        assert page.episode_title == "Episode 40"

    def test_episode_title_from_page_title(self):
        html = (
            "<html><head><title>Episode 41: Building Better Podcasts Together - The Test Show"
            " | Podcast on Spotify</title></head></html>"
        )
        page = parse_spotify_page(html, "https://open.spotify.com/episode/abc")

        assert page.show_name == "The Test Show"
        assert page.episode_title == "Episode 41: Building Better Podcasts Together"

    def test_episode_without_any_title(self):
        html = (
            '<html><head><meta property="og:description" '
            'content="Listen to this episode from The Test Show on Spotify."/></head></html>'
        )
        page = parse_spotify_page(html, "https://open.spotify.com/episode/abc")

        assert page.show_name == "The Test Show"
        assert page.episode_title is None

    def test_show_page(self):
        page = parse_spotify_page(SPOTIFY_SHOW_HTML, "https://open.spotify.com/show/abc")

        assert page.show_name == "The Test Show"
        assert page.episode_title is None

    def test_empty_page(self):
        page = parse_spotify_page("<html></html>", "https://open.spotify.com/episode/abc")

        assert page.show_name is None
