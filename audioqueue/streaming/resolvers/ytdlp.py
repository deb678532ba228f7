"""
Generic extractor adapter using yt-dlp.

Runs yt-dlp as a subprocess to turn a page URL from any of its supported
sites into a direct audio stream URL plus metadata.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Union

from audioqueue.config import YtDlpConfig
from audioqueue.streaming.resolvers.base import (
    ResolverError,
    TransientResolverError,
)

logger = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 10 * 1024 * 1024
READ_CHUNK_SIZE = 65536

Seconds = Union[int, float]


@dataclass
class ExtractorInfo:
    """Subset of the yt-dlp JSON document used for resolution."""

    url: str
    title: str
    extractor: str
    webpage_url: str
    uploader: Optional[str] = None
    channel: Optional[str] = None
    duration: Optional[Seconds] = None
    thumbnail: Optional[str] = None

    @property
    def publisher(self) -> Optional[str]:
        return self.uploader or self.channel

    @classmethod
    def from_json(cls, data: dict[str, Any], requested_url: str) -> "ExtractorInfo":
        """
        Build from a parsed yt-dlp document.

        Raises:
            ResolverError: If the document has no stream URL
        """
        url = data.get("url")
        if not url:
            raise ResolverError(
                f"yt-dlp returned no stream URL for {requested_url}",
                is_retryable=False,
            )
        duration = data.get("duration")
        return cls(
            url=url,
            title=data.get("title") or requested_url,
            extractor=data.get("extractor") or data.get("extractor_key") or "generic",
            webpage_url=data.get("webpage_url") or requested_url,
            uploader=data.get("uploader"),
            channel=data.get("channel"),
            duration=duration if isinstance(duration, (int, float)) else None,
            thumbnail=data.get("thumbnail"),
        )


@contextmanager
def cookie_file(cookies: Optional[str]) -> Iterator[Optional[str]]:
    """
    Materialize a Netscape cookie blob to a temporary file.

    Yields the file path, or None when no cookies are given. The file is
    removed on every exit path.
    """
    if not cookies or not cookies.strip():
        yield None
        return

    handle = tempfile.NamedTemporaryFile(
        mode="w",
        prefix="audioqueue-cookies-",
        suffix=".txt",
        delete=False,
        encoding="utf-8",
    )
    path = handle.name
    try:
        with handle:
            handle.write(cookies)
            if not cookies.endswith("\n"):
                handle.write("\n")
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


async def _read_output(process: asyncio.subprocess.Process, url: str) -> tuple[bytes, bytes]:
    """Collect stdout (at most MAX_OUTPUT_BYTES) and stderr, then reap."""

    async def read_stdout() -> bytes:
        buffer = bytearray()
        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > MAX_OUTPUT_BYTES:
                raise ResolverError(
                    f"yt-dlp output exceeded {MAX_OUTPUT_BYTES} bytes for {url}",
                    is_retryable=False,
                )

    stdout, stderr = await asyncio.gather(read_stdout(), process.stderr.read())
    await process.wait()
    return stdout, stderr


def _classify_failure(stderr_text: str, url: str) -> ResolverError:
    """Turn yt-dlp stderr into a resolver error."""
    lines = [line.strip() for line in stderr_text.splitlines() if line.strip()]
    last_line = lines[-1] if lines else "no output"
    lowered = stderr_text.lower()

    if "private video" in lowered or "video is private" in lowered:
        return ResolverError(f"Video is private: {url}", is_retryable=False)
    if "video unavailable" in lowered:
        return ResolverError(f"Video unavailable: {url}", is_retryable=False)
    if "unsupported url" in lowered:
        return ResolverError(f"Unsupported URL: {url}", is_retryable=False)
    if "sign in" in lowered or "confirm your age" in lowered:
        return TransientResolverError(f"Authentication required for {url}: {last_line}")
    if "too many requests" in lowered or "rate limit" in lowered:
        return TransientResolverError(f"Rate limited while extracting {url}")
    return TransientResolverError(f"yt-dlp failed for {url}: {last_line}")


class YtDlpExtractor:
    """
    Wrapper around the yt-dlp command line.

    Features:
    - Argument vector invocation (no shell)
    - Audio-first format selection preferring AAC/MP4
    - Per-call deadline, the process is killed when it expires
    - Temporary cookie file for sites with bot checks
    """

    def __init__(self, config: Optional[YtDlpConfig] = None):
        self.config = config or YtDlpConfig()

    def is_available(self) -> bool:
        """Check if the yt-dlp binary is on PATH."""
        return shutil.which(self.config.path) is not None

    def _default_cookies(self) -> Optional[str]:
        if self.config.cookies.strip():
            return self.config.cookies
        if self.config.cookies_file and os.path.exists(self.config.cookies_file):
            with open(self.config.cookies_file, encoding="utf-8") as f:
                return f.read()
        return None

    def build_command(self, url: str, cookies_path: Optional[str] = None) -> list[str]:
        """Build the yt-dlp argument vector."""
        cmd = [
            self.config.path,
            "--dump-json",
            "--no-playlist",
            "-f",
            self.config.format,
            "--no-warnings",
            "--quiet",
        ]
        if cookies_path:
            cmd.extend(["--cookies", cookies_path])
        # Terminate options so a URL can never be read as a flag
        cmd.extend(["--", url])
        return cmd

    async def extract(
        self,
        url: str,
        timeout: Optional[float] = None,
        cookies: Optional[str] = None,
    ) -> ExtractorInfo:
        """
        Extract stream info for a URL.

        Args:
            url: Page URL understood by yt-dlp
            timeout: Deadline in seconds (defaults to ytdlp.timeout)
            cookies: Netscape cookie text, overrides the configured cookies

        Returns:
            ExtractorInfo with the direct stream URL

        Raises:
            TransientResolverError: On timeout or non-zero exit
            ResolverError: On malformed output or missing stream URL
        """
        deadline = timeout if timeout is not None else self.config.timeout
        cookie_text = cookies if cookies is not None else self._default_cookies()

        with cookie_file(cookie_text) as cookies_path:
            cmd = self.build_command(url, cookies_path)
            logger.debug(f"Running yt-dlp for {url} (cookies={'yes' if cookies_path else 'no'})")

            try:
                process = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as e:
                raise ResolverError(
                    f"yt-dlp could not be started ({self.config.path}): {e}",
                    is_retryable=False,
                    original_error=e,
                )

            try:
                stdout, stderr = await asyncio.wait_for(_read_output(process, url), timeout=deadline)
            except asyncio.TimeoutError as e:
                raise TransientResolverError(
                    f"yt-dlp timed out after {deadline}s for {url}",
                    original_error=e,
                )
            finally:
                # Timeout, oversized output or cancellation leaves it running
                if process.returncode is None:
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    await process.wait()

        if process.returncode != 0:
            raise _classify_failure(stderr.decode("utf-8", errors="replace"), url)

        try:
            data = json.loads(stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ResolverError(
                f"yt-dlp returned malformed JSON for {url}",
                is_retryable=False,
                original_error=e,
            )

        if not isinstance(data, dict):
            raise ResolverError(
                f"yt-dlp returned unexpected JSON for {url}",
                is_retryable=False,
            )

        info = ExtractorInfo.from_json(data, url)
        logger.info(f"yt-dlp resolved {url} via {info.extractor}")
        return info

