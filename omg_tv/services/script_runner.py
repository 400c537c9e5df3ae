"""
Helpers to fetch and run operator-supplied Python scripts.
Used by the resolver and the playlist generator.
"""
import asyncio
import httpx
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ScriptError(Exception):
    """A script could not be fetched or did not complete."""


@dataclass
class ScriptResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


async def download_script(url: str, destination: str | Path, timeout: float = 30.0) -> Path:
    """Download a script to destination, replacing any previous copy."""
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading script from {url}")

    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise ScriptError(f"Download failed: {e}") from e

    destination.write_text(response.text, encoding="utf-8")
    logger.info(f"Script saved to {destination}")
    return destination


async def run_script(
    python: str,
    script: str | Path,
    args: list[str],
    stdin: Optional[str] = None,
    timeout: float = 30.0,
) -> ScriptResult:
    """Run a Python script and collect its output."""
    cmd = [python, str(script), *args]
    logger.debug(f"Running script: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise ScriptError(f"Could not start {script}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(stdin.encode("utf-8") if stdin is not None else None),
            timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ScriptError(f"Script {Path(script).name} timed out after {timeout}s")

    return ScriptResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
