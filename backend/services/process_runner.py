"""Run external command-line tools (yt-dlp, ffmpeg) as argv vectors, never through a shell."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import suppress
from pathlib import Path

from services.errors import ToolExitError, ToolLaunchError, ToolTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 2

# (substring in stderr, message surfaced to callers); first match wins.
FAILURE_SIGNATURES: list[tuple[str, str]] = [
    ("No module named", "{tool} is missing a Python dependency"),
    ("ffmpeg not found", "{tool} could not find ffmpeg"),
    ("ffprobe not found", "{tool} could not find ffprobe"),
    ("Sign in to confirm", "{tool} was blocked by a bot check"),
    ("Video unavailable", "{tool} reports the video is unavailable"),
    ("403 Forbidden", "{tool} was denied access to the stream (HTTP 403)"),
    ("HTTP Error 403", "{tool} was denied access to the stream (HTTP 403)"),
]


def build_env(cwd: Path | None = None) -> dict[str, str]:
    """Inherit the parent environment, with cwd first on PATH so bundled helper binaries win."""
    env = dict(os.environ)
    directory = str(cwd or Path.cwd())
    current = env.get("PATH", "")
    env["PATH"] = f"{directory}{os.pathsep}{current}" if current else directory
    return env


def describe_failure(tool: str, returncode: int, stderr: str) -> str:
    for needle, template in FAILURE_SIGNATURES:
        if needle in stderr:
            return template.format(tool=tool)
    return f"{tool} exited with code {returncode}"


class ProcessRunner:
    """
    Spawns one subprocess per call, with at most `max_concurrent` alive at once.

    The limit is a plain semaphore: callers beyond it wait for a slot rather
    than being rejected.
    """

    def __init__(
        self,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        timeout: float | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._max_concurrent = max_concurrent
        self._timeout = timeout

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def run(self, command: str, args: list[str], *, timeout: float | None = None) -> str:
        """
        Run `command` with `args` and return its stdout.

        :raises ToolLaunchError: the binary could not be started
        :raises ToolExitError: the process exited non-zero
        :raises ToolTimeoutError: the process outlived the timeout and was killed
        """
        tool = Path(command).name
        limit = timeout if timeout is not None else self._timeout
        argv = [str(a) for a in args]
        logger.debug("[process_runner] exec %s %s", command, argv)

        async with self._semaphore:
            try:
                proc = await asyncio.create_subprocess_exec(
                    command,
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=build_env(),
                )
            except (FileNotFoundError, PermissionError) as exc:
                logger.error("[process_runner] Could not launch %s: %s", command, exc)
                raise ToolLaunchError(f"Could not start {tool}: {exc.strerror or exc}", tool=tool) from exc

            try:
                stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=limit)
            except asyncio.TimeoutError as exc:
                logger.error("[process_runner] %s timed out after %ss; killing pid=%s", tool, limit, proc.pid)
                raise ToolTimeoutError(f"{tool} timed out after {limit:g} seconds", tool=tool) from exc
            finally:
                if proc.returncode is None:
                    with suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            message = describe_failure(tool, proc.returncode, stderr)
            logger.error(
                "[process_runner] %s failed (code %s): %s",
                tool,
                proc.returncode,
                stderr.strip()[-2000:],
            )
            raise ToolExitError(message, tool=tool, returncode=proc.returncode, stderr=stderr)
        return stdout
