"""
Fragmented MP4 remuxer with FFmpeg integration.

Copies the upstream audio track into a fragmented MP4 written to stdout:
- No re-encoding (-c:a copy), only the container is rewritten
- empty_moov puts the index first so players start decoding at once
- HTTP reconnect flags and CDN headers for signed YouTube URLs
- stderr inspected line by line, only error-like lines reach the log
"""

import asyncio
import logging
import re
import shutil
from collections.abc import AsyncIterator
from typing import Optional

from audioqueue.config import FFmpegConfig
from audioqueue.streaming.resolvers.classifier import is_googlevideo
from audioqueue.utils.http import BROWSER_USER_AGENT

logger = logging.getLogger(__name__)

# FFmpeg prints progress and stream info on stderr; these look like trouble
STDERR_ERROR_PATTERN = re.compile(
    r"error|failed|invalid|denied|forbidden|refused|unable|not found|timed out"
    r"|server returned|end of file|\b[45]\d\d\b",
    re.IGNORECASE,
)

TERMINATE_GRACE_SECONDS = 5


class RemuxError(Exception):
    """Base error for the remux subprocess."""


class RemuxSpawnError(RemuxError):
    """FFmpeg could not be started. Nothing has been sent to the client."""


class RemuxExitError(RemuxError):
    """FFmpeg exited non-zero after output had started."""

    def __init__(self, returncode: int, stderr_lines: Optional[list[str]] = None):
        self.returncode = returncode
        self.stderr_lines = stderr_lines or []
        detail = self.stderr_lines[-1] if self.stderr_lines else "no error output"
        super().__init__(f"FFmpeg exited with code {returncode}: {detail}")


class RemuxProcess:
    """
    A running FFmpeg remux.

    Iterate iter_chunks() to receive output. Closing the iterator early
    (client disconnect, cancellation) terminates the process.
    """

    def __init__(self, process: asyncio.subprocess.Process, input_url: str, read_size: int = 65536):
        self.process = process
        self.input_url = input_url
        self.read_size = read_size
        self.escalated_lines: list[str] = []
        self.bytes_sent = 0
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    async def _drain_stderr(self) -> None:
        stderr = self.process.stderr
        if stderr is None:
            return
        while True:
            line = await stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if not text:
                continue
            if STDERR_ERROR_PATTERN.search(text):
                self.escalated_lines.append(text)
                logger.warning(f"FFmpeg [{self.pid}]: {text}")
            else:
                logger.debug(f"FFmpeg [{self.pid}]: {text}")

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """
        Yield stdout chunks as they arrive.

        Raises:
            RemuxExitError: FFmpeg finished with a non-zero exit code
        """
        try:
            while True:
                chunk = await self.process.stdout.read(self.read_size)
                if not chunk:
                    break
                self.bytes_sent += len(chunk)
                yield chunk

            returncode = await self.process.wait()
            await asyncio.gather(self._stderr_task, return_exceptions=True)
            if returncode != 0:
                raise RemuxExitError(returncode, list(self.escalated_lines))
            logger.debug(f"FFmpeg [{self.pid}] finished after {self.bytes_sent} bytes")
        finally:
            await self.close()

    async def close(self) -> None:
        """Terminate the process if it is still running, then reap it."""
        if self.process.returncode is None:
            logger.info(f"Terminating FFmpeg [{self.pid}] for {self.input_url[:80]}")
            try:
                self.process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self.process.wait(), timeout=TERMINATE_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(f"FFmpeg [{self.pid}] ignored SIGTERM, killing")
                try:
                    self.process.kill()
                except ProcessLookupError:
                    pass
                await self.process.wait()

        if not self._stderr_task.done():
            self._stderr_task.cancel()
            await asyncio.gather(self._stderr_task, return_exceptions=True)


class RemuxStreamer:
    """Spawns FFmpeg remux processes for upstream audio URLs."""

    def __init__(self, config: Optional[FFmpegConfig] = None):
        self.config = config or FFmpegConfig()

        if not self.is_available():
            logger.warning(f"FFmpeg not found at {self.config.path}")

    def is_available(self) -> bool:
        return shutil.which(self.config.path) is not None

    def _http_input_options(self, input_url: str, is_youtube: bool) -> list[str]:
        """Network options placed before -i."""
        options = [
            "-timeout", str(int(self.config.timeout * 1_000_000)),
            "-user_agent", BROWSER_USER_AGENT,
            "-reconnect", "1",
            "-reconnect_streamed", "1",
            "-reconnect_delay_max", "5",
        ]
        if is_youtube or is_googlevideo(input_url):
            options.extend([
                "-headers",
                "Referer: https://www.youtube.com/\r\n"
                "Origin: https://www.youtube.com\r\n",
            ])
        return options

    def build_command(self, input_url: str, is_youtube: bool = False) -> list[str]:
        """
        Build the FFmpeg argument vector.

        Args:
            input_url: Upstream audio URL
            is_youtube: Add YouTube CDN headers

        Returns:
            FFmpeg command as list of arguments.
        """
        cmd = [
            self.config.path,
            "-hide_banner",
            "-nostdin",
            "-loglevel", self.config.log_level,
        ]

        if input_url.startswith("http"):
            cmd.extend(self._http_input_options(input_url, is_youtube))

        cmd.extend([
            "-i", input_url,
            "-vn",
            "-map", "0:a:0",
            "-c:a", "copy",
            "-f", "mp4",
            "-movflags", "+frag_keyframe+empty_moov+default_base_moof",
            "pipe:1",
        ])
        return cmd

    async def start(self, input_url: str, is_youtube: bool = False) -> RemuxProcess:
        """
        Start a remux of input_url.

        Raises:
            RemuxSpawnError: The FFmpeg binary could not be started
        """
        cmd = self.build_command(input_url, is_youtube=is_youtube)
        logger.debug(f"Starting FFmpeg: {' '.join(cmd[:6])}...")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RemuxSpawnError(f"Could not start FFmpeg ({self.config.path}): {e}") from e

        logger.info(f"FFmpeg [{process.pid}] remuxing {input_url[:80]}")
        return RemuxProcess(process, input_url, read_size=self.config.read_size)
