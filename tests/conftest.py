"""
AudioQueue Test Configuration

Shared fixtures and configuration for all tests.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional

import httpx
import pytest

import audioqueue.config as config_module
from audioqueue.cache.manager import CacheService


# ============ Clock Fixtures ============


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_service(clock: FakeClock) -> CacheService:
    """Cache service on the fake clock with default TTL and margin."""
    return CacheService(clock=clock)


# ============ HTTP Fixtures ============


Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def mock_http() -> Callable[[Handler], httpx.AsyncClient]:
    return make_client


# ============ Subprocess Fixtures ============


class FakeProcess:
    """
    Stand-in for an asyncio subprocess with stdout/stderr stream readers.

    With finish=True the output is complete and wait() returns the exit
    code; otherwise the process runs until terminate() or kill().
    """

    def __init__(
        self,
        chunks: tuple[bytes, ...] = (),
        stderr_lines: tuple[bytes, ...] = (),
        returncode: int = 0,
        finish: bool = True,
    ):
        self.pid = 4242
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        for chunk in chunks:
            self.stdout.feed_data(chunk)
        for line in stderr_lines:
            self.stderr.feed_data(line)
        self.returncode: Optional[int] = None
        self.terminated = False
        self.killed = False
        self._exit_code = returncode
        self._exited = asyncio.Event()
        if finish:
            self._end()

    def _end(self) -> None:
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        if self.returncode is None:
            self.returncode = self._exit_code
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15
        self._end()

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9
        self._end()


@pytest.fixture
def fake_process() -> type[FakeProcess]:
    return FakeProcess


# ============ Sample Data Fixtures ============


SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>The Test Show</title>
    <itunes:author>Test Network</itunes:author>
    <itunes:image href="https://example.com/show.jpg"/>
    <item>
      <title>Episode 42: The Answer to Everything</title>
      <enclosure url="https://cdn.example.com/ep42.mp3" type="audio/mpeg" length="1234"/>
      <itunes:duration>1:23:45</itunes:duration>
      <itunes:image href="https://example.com/ep42.jpg"/>
    </item>
    <item>
      <title>Episode 41: Building Better Podcasts Together</title>
      <enclosure url="https://cdn.example.com/ep41.mp3" type="audio/mpeg" length="1234"/>
      <itunes:duration>2:30</itunes:duration>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def sample_feed() -> str:
    return SAMPLE_FEED


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
server:
  host: "127.0.0.1"
  port: 8080
  debug: true

logging:
  level: "DEBUG"

mirrors:
  piped_instances:
    - "https://piped.test"
  invidious_instances: []

resolver:
  batch_limit: 5
"""
    config_file.write_text(config_content)
    return config_file


# ============ Environment Fixtures ============


_ENV_PREFIXES = ("AUDIOQUEUE_", "PODCAST_INDEX_", "YOUTUBE_COOKIES")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Clean environment variables and cached config for each test."""
    for key in list(os.environ.keys()):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)

    config_module._config = None
    yield
    config_module._config = None


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
