"""Run install commands produced by the resolver.

The command string is executed as given; this module never rebuilds it from a
package id. Only winget and Chocolatey commands are accepted.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import PureWindowsPath

from winhub_search.config import Settings
from winhub_search.models import InstallResult, WingetAvailability
from winhub_search.process import run_process

logger = logging.getLogger(__name__)

AVAILABILITY_TIMEOUT = 10.0


def _split_command(command: str, settings: Settings) -> list[str] | None:
    """Split `command` into argv, or None if it isn't a winget/choco install command."""
    try:
        argv = shlex.split(command)
    except ValueError:
        return None
    if len(argv) < 2 or argv[1] != "install":  # noqa: PLR2004
        return None

    executable = PureWindowsPath(argv[0]).stem.lower()
    allowed = {
        "winget": settings.winget_executable,
        "choco": settings.choco_executable,
    }
    if executable not in allowed:
        return None
    argv[0] = allowed[executable]
    return argv


async def run_install(command: str, settings: Settings | None = None) -> InstallResult:
    """Execute one install command and classify the outcome."""
    settings = settings or Settings()
    if not command or not isinstance(command, str):
        return InstallResult(success=False, message="Invalid command provided")

    argv = _split_command(command.strip(), settings)
    if argv is None:
        return InstallResult(success=False, message="Only winget or choco install commands can be executed")

    logger.info("Executing install command: %s", command)
    try:
        result = await run_process(argv, timeout=settings.install_timeout)
    except TimeoutError:
        return InstallResult(
            success=False,
            message="Installation timed out. The process may still be running in the background.",
        )
    except OSError as exc:
        logger.warning("Could not start installer: %s", exc)
        return InstallResult(success=False, message=f"Failed to start installation: {exc}")

    logger.info("Installer exited with code %d", result.returncode)
    if result.returncode == 0:
        return InstallResult(success=True, message=f"Successfully installed with: {command}")
    if result.returncode == 1 and "elevation" in (result.stderr + result.stdout).lower():
        return InstallResult(
            success=False,
            message="Installation requires administrator privileges. Please run as administrator.",
            needs_elevation=True,
        )
    details = result.stderr.strip() or result.stdout.strip() or "Unknown error"
    return InstallResult(success=False, message=f"Installation failed: {details}")


async def check_winget_available(settings: Settings | None = None) -> WingetAvailability:
    """Report whether `winget --version` runs on this machine."""
    settings = settings or Settings()
    try:
        result = await run_process([settings.winget_executable, "--version"], timeout=AVAILABILITY_TIMEOUT)
    except TimeoutError:
        return WingetAvailability(available=False, message="WinGet check timed out")
    except OSError:
        return WingetAvailability(available=False, message="WinGet is not installed on this system")

    if result.returncode != 0:
        return WingetAvailability(available=False, message="WinGet is not installed or not accessible")
    version = result.stdout.strip()
    return WingetAvailability(available=True, message=f"WinGet is available ({version})", version=version)
