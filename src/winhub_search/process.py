"""Run package-manager executables without blocking the event loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


async def run_process(argv: list[str], *, timeout: float) -> ProcessResult:
    """Run `argv` and capture its output.

    Raises TimeoutError (after killing the process) if it runs longer than
    `timeout` seconds, and FileNotFoundError if the executable is missing.
    """
    logger.debug("Running %s", " ".join(argv))
    # LEARN: An argument vector (not a shell string) passes user text verbatim,
    # with no quoting or injection concerns.
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    return ProcessResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
