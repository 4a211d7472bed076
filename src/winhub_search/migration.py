"""Export the winget-managed apps of one machine and reinstall them on another.

The export is a small JSON document (see AppListExport) holding the app list
and a single bulk `winget install` command a user can also run by hand.
"""

from __future__ import annotations

import json
import logging
import re
import socket
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from winhub_search.catalog import generate_winget_command
from winhub_search.config import Settings
from winhub_search.errors import MigrationError
from winhub_search.installer import run_install
from winhub_search.models import AppListExport, InstalledApp, InstallResult
from winhub_search.process import run_process

logger = logging.getLogger(__name__)

_HAS_LETTER_RE = re.compile(r"[A-Za-z]")


def _looks_like_package_id(token: str) -> bool:
    # Publisher.App style ids; plain version numbers ("23.01") have no letters.
    return (
        "." in token
        and not token.startswith("http")
        and len(token) > 3  # noqa: PLR2004
        and bool(_HAS_LETTER_RE.search(token))
    )


def parse_winget_list(output: str) -> list[InstalledApp]:
    """Parse `winget list` table output into InstalledApps.

    The header row and the dashed separator are skipped. The first dotted token
    on a row is taken as the package id, the words before it as the name.
    """
    apps: list[InstalledApp] = []
    seen: set[str] = set()
    for raw_line in output.splitlines():
        # winget draws a progress spinner with carriage returns before the table.
        line = raw_line.rsplit("\r", 1)[-1].strip()
        if not line or line.startswith("-") or "---" in line or line.startswith("Name "):
            continue

        parts = line.split()
        if len(parts) < 2:  # noqa: PLR2004
            continue

        for index, part in enumerate(parts):
            if not _looks_like_package_id(part):
                continue
            if part not in seen:
                name = " ".join(parts[:index]) or part
                apps.append(InstalledApp(name=name, package_id=part))
                seen.add(part)
            break
    return apps


def build_bulk_command(package_ids: list[str]) -> str:
    """One `winget install` command covering every id; empty string when there are none."""
    if not package_ids:
        return ""
    return f"winget install --accept-package-agreements --accept-source-agreements {' '.join(package_ids)}"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_export(apps: list[InstalledApp], computer_name: str | None = None) -> AppListExport:
    return AppListExport(
        exported_at=_now_iso(),
        computer_name=computer_name or socket.gethostname(),
        apps=apps,
        winget_command=build_bulk_command([app.package_id for app in apps]),
        total_apps=len(apps),
    )


async def export_installed_apps(settings: Settings | None = None) -> AppListExport:
    """Snapshot the apps winget knows about on this machine.

    Raises MigrationError if winget can't be run or fails.
    """
    settings = settings or Settings()
    try:
        result = await run_process([settings.winget_executable, "list"], timeout=settings.install_timeout)
    except TimeoutError as exc:
        msg = "Timed out while listing installed apps."
        raise MigrationError(msg) from exc
    except OSError as exc:
        msg = f"Failed to access WinGet: {exc}"
        raise MigrationError(msg) from exc

    if result.returncode != 0:
        logger.error("winget list failed: %s", result.stderr.strip())
        msg = "Failed to get installed apps list. Make sure WinGet is installed and available."
        raise MigrationError(msg)

    apps = parse_winget_list(result.stdout)
    logger.info("Exported %d installed apps", len(apps))
    return build_export(apps)


def default_export_filename(export: AppListExport) -> str:
    """Suggested file name, e.g. ``WinHub-Apps-DESKTOP-1-2025-01-31.json``."""
    return f"WinHub-Apps-{export.computer_name}-{export.exported_at[:10]}.json"


def save_export(export: AppListExport, path: str | Path) -> Path:
    target = Path(path)
    target.write_text(export.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return target


def load_import(path: str | Path) -> AppListExport:
    """Read and validate an export file. Raises MigrationError for anything malformed."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"Failed to load file: {exc}"
        raise MigrationError(msg) from exc

    if not isinstance(data, dict) or not isinstance(data.get("apps"), list) or not data.get("wingetCommand"):
        msg = "Invalid import file format"
        raise MigrationError(msg)

    try:
        return AppListExport.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid import file format: {exc.error_count()} invalid field(s)"
        raise MigrationError(msg) from exc


async def install_app_list(export: AppListExport, settings: Settings | None = None) -> list[InstallResult]:
    """Install every app in `export` one after another, collecting each outcome."""
    results: list[InstallResult] = []
    for app in export.apps:
        command = generate_winget_command(app.package_id, app.version)
        if not command:
            results.append(InstallResult(success=False, message=f"Skipped {app.name}: no package id"))
            continue
        results.append(await run_install(command, settings))
    succeeded = sum(1 for r in results if r.success)
    logger.info("Bulk install finished: %d of %d succeeded", succeeded, len(results))
    return results
