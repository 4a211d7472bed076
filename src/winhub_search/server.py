"""FastMCP server exposing the Windows software resolver as tools.

Applies arcade patterns throughout:
- QUERY_TOOL: search and command tools are read-only, safe to retry
- DISCOVERY_TOOL: list_sources() exposes valid source values
- CONSTRAINED_INPUT: Source enum for the sources parameter
- SMART_DEFAULTS: every parameter but the query is optional
- RECOVERY_GUIDE: failures come back as RETRYABLE/PERMANENT messages
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from winhub_search.config import Settings
from winhub_search.errors import MigrationError
from winhub_search.installer import check_winget_available, run_install
from winhub_search.links import generate_search_links
from winhub_search.migration import export_installed_apps as export_apps
from winhub_search.models import (
    AppListExport,
    InstallResult,
    SearchEngineLink,
    SearchResponse,
    Source,
    WingetAvailability,
)
from winhub_search.resolver import SearchOrchestrator, generate_command

logger = logging.getLogger(__name__)

# The server is the composition root: one settings object, one orchestrator
# (and therefore one set of caches) per process.
settings = Settings.from_env()
orchestrator = SearchOrchestrator.from_settings(settings)

mcp = FastMCP(
    name="WinHub Software Search",
    instructions=(
        "Find Windows software and get a ready-to-run install command. "
        "Use search_software to look a program up by name in the winget catalog and the Chocolatey repository. "
        "Use get_install_command to build a command for a specific version. "
        "When nothing is found, search_software returns an official-website guess and web-search links instead. "
        "Use export_installed_apps to snapshot the apps on this machine for migration."
    ),
)


@mcp.tool
async def search_software(
    query: str,
    page: int = 0,
    limit: int = 20,
    sources: list[Source] | None = None,
) -> SearchResponse:
    """Search for Windows software by name and get install commands.

    This is a QUERY tool: read-only, safe to call multiple times.

    Args:
        query: Free-text software name (e.g. "discord", "7zip"). Trimmed and capped at 100 characters.
        page: Zero-based page index. Check has_more in the response.
        limit: Results per page (default 20). The catalog returns at most 24 per page.
        sources: Repositories to search: "catalog" (winget) and/or "secondary-repo" (Chocolatey).
            Defaults to both. Call list_sources() to see valid values.

    Each package result carries an install_command you can pass to install_package.
    If no repository knows the query, results contain at most two web records:
    an official-website guess and a list of search-engine links.
    """
    return await orchestrator.resolve(query, page=page, limit=limit, sources=sources)


@mcp.tool
def get_install_command(package_id: str, source: Source = Source.CATALOG, version: str | None = None) -> str:
    """Build the install command for a package id from search results.

    This is a QUERY tool. It only builds a string, nothing is installed.

    Args:
        package_id: The package_id of a search result (e.g. "Discord.Discord").
        source: The source of that result: "catalog" or "secondary-repo".
        version: Optional specific version (one of the result's versions). Omit for latest.
    """
    return generate_command(source, package_id, version)


@mcp.tool
def list_sources() -> dict[str, list[str]]:
    """Return the valid values for the sources parameter of search_software.

    This is a DISCOVERY tool. "web" is listed for completeness but is never
    searched directly; web results only appear as a fallback.
    """
    return {"sources": [s.value for s in Source]}


@mcp.tool
def get_search_links(query: str) -> list[SearchEngineLink]:
    """Return search-engine and software-directory links for a program name.

    This is a QUERY tool. Useful when search_software found no packages.
    """
    try:
        return generate_search_links(query)
    except ValueError:
        return []


@mcp.tool
async def export_installed_apps() -> AppListExport | str:
    """List the winget-managed apps on this machine as a migration export.

    The returned wingetCommand reinstalls everything on another machine in one go.
    Returns a PERMANENT: message if winget is unavailable.
    """
    try:
        return await export_apps(settings)
    except MigrationError as exc:
        return f"PERMANENT: {exc}"


@mcp.tool
async def install_package(command: str) -> InstallResult:
    """Run an install_command taken verbatim from search_software results.

    This is an ACTION tool. It installs software. Only winget and choco
    install commands are accepted. If needs_elevation is true, ask the user to
    rerun with administrator rights.
    """
    return await run_install(command, settings)


@mcp.tool
async def check_winget() -> WingetAvailability:
    """Report whether the winget CLI is available on this machine."""
    return await check_winget_available(settings)
