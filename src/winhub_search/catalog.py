"""Client for the winget.run package catalog API.

Fetches one page of catalog results per call, normalizes each upstream package
into a PackageRecord (RESPONSE_SHAPER pattern) and caches the page. Failures are
returned as a SourceOutcome carrying an error, never raised, so one broken
backend cannot abort a multi-source search.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from winhub_search.cache import TTLCache, make_cache_key
from winhub_search.config import Settings
from winhub_search.errors import CATALOG_API_ERROR, VALIDATION_ERROR, classify_http_error, failed_outcome
from winhub_search.models import PackageRecord, Source, SourceOutcome

logger = logging.getLogger(__name__)

SERVICE_NAME = "the winget.run catalog"

HTTP_HEADERS = {
    "User-Agent": "WinHub/1.0.0",
    "Accept": "application/json",
}

_PACKAGE_ID_RE = re.compile(r"^[a-zA-Z0-9.\-_]+$")


def generate_winget_command(package_id: str, version: str | None = None) -> str:
    """Build a non-interactive `winget install` command; empty string for a blank id."""
    if not package_id or not package_id.strip():
        return ""
    command = f"winget install --id={package_id.strip()} --accept-source-agreements --accept-package-agreements"
    if version and version.strip():
        command += f" --version={version.strip()}"
    return command


def is_valid_package_id(package_id: str) -> bool:
    """Check that `package_id` looks like a winget identifier (e.g. ``Discord.Discord``)."""
    if not package_id or not isinstance(package_id, str):
        return False
    return bool(_PACKAGE_ID_RE.match(package_id)) and len(package_id) > 2  # noqa: PLR2004


def _normalize_package(raw: dict[str, Any]) -> PackageRecord:
    """Convert one upstream package object into a PackageRecord, defaulting missing fields."""
    # LEARN: `or {}` guards against both a missing key and an explicit null.
    latest = raw.get("Latest") or {}
    package_id = raw.get("Id") or ""
    versions = [str(v) for v in raw.get("Versions") or []]
    homepage = latest.get("Homepage")

    return PackageRecord(
        name=latest.get("Name") or "Unknown Package",
        publisher=latest.get("Publisher") or "Unknown Publisher",
        package_id=package_id,
        source=Source.CATALOG,
        versions=versions,
        install_command=generate_winget_command(package_id),
        description=latest.get("Description"),
        license=latest.get("License"),
        license_url=latest.get("LicenseUrl"),
        tags=list(latest.get("Tags") or []),
        homepage=homepage,
        official_url=homepage,
    )


def parse_catalog_response(payload: Any) -> tuple[list[PackageRecord], int]:
    """Turn a decoded API body into records plus the upstream total.

    A body without a `Packages` list is treated as an empty result. Packages that
    fail to normalize are skipped (GRACEFUL_DEGRADATION pattern).
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("Packages"), list):
        return [], 0

    records: list[PackageRecord] = []
    for raw in payload["Packages"]:
        if not isinstance(raw, dict):
            continue
        try:
            records.append(_normalize_package(raw))
        except Exception:
            logger.exception("Failed to normalize catalog package")

    total = payload.get("Total")
    if not isinstance(total, int) or total <= 0:
        total = len(records)
    return records, total


class CatalogAdapter:
    """Searches the primary package catalog with server-side paging."""

    def __init__(self, settings: Settings | None = None, cache: TTLCache | None = None) -> None:
        self.settings = settings or Settings()
        self.cache: TTLCache[tuple[list[PackageRecord], int]] = (
            cache if cache is not None else TTLCache(self.settings.repository_cache_ttl)
        )

    def clear_cache(self) -> None:
        self.cache.clear()

    async def search(self, query: str, page: int = 0, limit: int = 20) -> SourceOutcome[PackageRecord]:
        """Fetch one page of catalog packages matching `query`."""
        if not query or not query.strip():
            return failed_outcome(Source.CATALOG, VALIDATION_ERROR, "PERMANENT: Search query cannot be empty.")

        trimmed = query.strip()
        cache_key = make_cache_key(trimmed, page, limit)
        cached = self.cache.get(cache_key)
        if cached is not None:
            records, total = cached
            logger.debug("Catalog cache hit for %s", cache_key)
            # Hand out copies so a caller changing selected_version can't touch the cache.
            return SourceOutcome(records=[r.model_copy(deep=True) for r in records], total=total)

        take = min(limit, self.settings.catalog_max_page_size)
        params = {"query": trimmed, "take": str(take), "page": str(page)}
        logger.info("Searching catalog for %r (page=%d, take=%d)", trimmed, page, take)

        try:
            async with httpx.AsyncClient(
                headers=HTTP_HEADERS, timeout=self.settings.http_timeout, follow_redirects=True
            ) as client:
                response = await client.get(self.settings.catalog_api_url, params=params)
                response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException:
            logger.warning("Catalog request timed out for %r", trimmed)
            return failed_outcome(
                Source.CATALOG,
                CATALOG_API_ERROR,
                f"RETRYABLE: {SERVICE_NAME} took too long to respond. Retry the same search.",
            )
        except httpx.ConnectError:
            logger.warning("Could not connect to catalog for %r", trimmed)
            return failed_outcome(
                Source.CATALOG,
                CATALOG_API_ERROR,
                "RETRYABLE: Network error. Check your internet connection, then retry.",
            )
        except httpx.HTTPStatusError as exc:
            logger.warning("Catalog returned HTTP %d for %r", exc.response.status_code, trimmed)
            return failed_outcome(
                Source.CATALOG, CATALOG_API_ERROR, classify_http_error(exc.response.status_code, SERVICE_NAME)
            )
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers a body that is not valid JSON.
            logger.warning("Catalog search failed for %r: %s", trimmed, exc)
            return failed_outcome(Source.CATALOG, CATALOG_API_ERROR, f"RETRYABLE: Catalog search failed ({exc}).")

        records, total = parse_catalog_response(payload)
        logger.info("Catalog returned %d packages for page %d (total %d)", len(records), page, total)

        self.cache.set(cache_key, (records, total))
        return SourceOutcome(records=[r.model_copy(deep=True) for r in records], total=total)
