"""Multi-source resolution: fan out to the repositories, merge, fall back to the web.

The orchestrator is the only public entry point the tool surface needs. Its
contract is "never raises": every path, including unexpected bugs, ends in a
well-formed SearchResponse.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from typing import Any

from winhub_search.catalog import CatalogAdapter, generate_winget_command
from winhub_search.chocolatey import ChocolateyAdapter, generate_choco_command
from winhub_search.config import MAX_QUERY_LENGTH, Settings
from winhub_search.links import generate_search_links
from winhub_search.models import (
    FallbackRecord,
    PackageRecord,
    ResolutionStatus,
    SearchResponse,
    Source,
    SourceError,
    SourceOutcome,
)
from winhub_search.website import OfficialSiteResolver

logger = logging.getLogger(__name__)

# Sources backed by a package repository, in merge order.
REPOSITORY_SOURCES = (Source.CATALOG, Source.SECONDARY_REPO)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_query(raw: str | None) -> str:
    """Trim, drop angle brackets, collapse whitespace and cap the length of a query."""
    if not raw or not isinstance(raw, str):
        return ""
    cleaned = raw.strip().replace("<", "").replace(">", "")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    # Stripping brackets can expose leading/trailing spaces ("< x >").
    # Truncating can leave a trailing space behind.
    return cleaned.strip()[:MAX_QUERY_LENGTH].rstrip()


def parse_sources(sources: Iterable[Source | str] | None) -> list[Source]:
    """Turn caller-supplied source tags into the enabled repository sources, in merge order.

    None means "all repositories". Unknown tags are ignored; `web` is not a
    repository (web results only ever come from the fallback chain).
    """
    if sources is None:
        return list(REPOSITORY_SOURCES)
    requested: set[Source] = set()
    for tag in sources:
        try:
            requested.add(Source(tag))
        except ValueError:
            logger.warning("Ignoring unknown source %r", tag)
    return [source for source in REPOSITORY_SOURCES if source in requested]


def generate_command(source: Source | str, package_id: str, version: str | None = None) -> str:
    """Build the install command for a package from `source`; empty for web records or a blank id."""
    match Source(source):
        case Source.CATALOG:
            return generate_winget_command(package_id, version)
        case Source.SECONDARY_REPO:
            return generate_choco_command(package_id, version)
        case _:
            return ""


def _describe_errors(errors: list[SourceError]) -> str | None:
    if not errors:
        return None
    details = "; ".join(f"{e.source.value}: {e.message}" for e in errors)
    return f"No packages found, and some sources could not be searched ({details})"


class SearchOrchestrator:
    """Resolves a query against every enabled source concurrently.

    Collaborators are injected so tests (and alternative deployments) can swap
    any of them; `from_settings` builds the default wiring.
    """

    def __init__(
        self,
        catalog: CatalogAdapter,
        chocolatey: ChocolateyAdapter,
        website: OfficialSiteResolver,
        settings: Settings | None = None,
    ) -> None:
        self.catalog = catalog
        self.chocolatey = chocolatey
        self.website = website
        self.settings = settings or Settings()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SearchOrchestrator:
        settings = settings or Settings()
        return cls(
            catalog=CatalogAdapter(settings),
            chocolatey=ChocolateyAdapter(settings),
            website=OfficialSiteResolver(settings),
            settings=settings,
        )

    def clear_caches(self) -> None:
        self.catalog.clear_cache()
        self.chocolatey.clear_cache()
        self.website.clear_cache()

    def _page_size(self, source: Source, limit: int) -> int:
        """Records a full page from `source` holds; the catalog caps its page size."""
        if source is Source.CATALOG:
            return min(limit, self.settings.catalog_max_page_size)
        return limit

    def _coerce_paging(self, page: Any, limit: Any) -> tuple[int, int]:
        try:
            page = max(int(page), 0)
        except (TypeError, ValueError):
            page = 0
        try:
            limit = int(limit) if limit else 0
        except (TypeError, ValueError):
            limit = 0
        return page, limit if limit > 0 else self.settings.default_page_size

    def _search_call(self, source: Source, query: str, page: int, limit: int) -> Any:
        if source is Source.CATALOG:
            return self.catalog.search(query, page, limit)
        return self.chocolatey.search(query, page, limit)

    async def resolve(
        self,
        query: str,
        page: int = 0,
        limit: int | None = None,
        sources: Iterable[Source | str] | None = None,
    ) -> SearchResponse:
        """Search every enabled source and return merged package records or web fallbacks."""
        normalized = normalize_query(query)
        page, limit = self._coerce_paging(page, limit)

        if not normalized:
            # Quiet "no search yet" state, not an error.
            return SearchResponse(query="", page=page, limit=limit, status=ResolutionStatus.EMPTY)

        try:
            return await self._resolve(normalized, page, limit, parse_sources(sources))
        except Exception:
            logger.exception("Unexpected error while resolving %r; falling back to web results", normalized)
            return await self._safe_fallback(normalized, page, limit)

    async def _resolve(self, query: str, page: int, limit: int, enabled: list[Source]) -> SearchResponse:
        logger.info("Resolving %r (page=%d, limit=%d, sources=%s)", query, page, limit, [s.value for s in enabled])

        # LEARN: return_exceptions=True waits for every call to settle. One adapter
        # raising doesn't cancel the others, and results come back in launch order,
        # not completion order, so the merge is deterministic.
        settled = await asyncio.gather(
            *(self._search_call(source, query, page, limit) for source in enabled),
            return_exceptions=True,
        )

        records: list[PackageRecord] = []
        errors: list[SourceError] = []
        reported_total = 0
        has_more = False
        for source, outcome in zip(enabled, settled, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning("Source %s raised %r", source.value, outcome)
                errors.append(
                    SourceError(source=source, code="UNEXPECTED_ERROR", message=f"RETRYABLE: {outcome!r}")
                )
                continue
            if not isinstance(outcome, SourceOutcome):
                continue
            if outcome.error is not None:
                errors.append(outcome.error)
                continue
            records.extend(outcome.records)
            reported_total += outcome.total
            # Approximation: a source that filled its own page probably has another one.
            has_more = has_more or len(outcome.records) >= self._page_size(source, limit)

        if records:
            # Any repository hit is terminal: the web fallback is never mixed in.
            return SearchResponse(
                query=query,
                page=page,
                limit=limit,
                results=list(records),
                total=reported_total or len(records),
                status=ResolutionStatus.DEGRADED if errors else ResolutionStatus.OK,
                errors=errors,
                has_more=has_more,
            )

        logger.info("No packages found for %r, falling back to web search", query)
        return await self._fallback(query, page, limit, errors)

    async def _fallback(self, query: str, page: int, limit: int, errors: list[SourceError]) -> SearchResponse:
        """Official website (best effort) followed by web-search links."""
        fallback: list[FallbackRecord] = []

        try:
            official = await self.website.find(query)
        except Exception:
            logger.exception("Official website lookup crashed for %r", query)
        else:
            if official.error is not None:
                logger.info("Official website lookup failed for %r: %s", query, official.error.message)
            elif official.records:
                fallback.append(
                    FallbackRecord(name=query, publisher="Official Website", official_url=official.records[0])
                )

        try:
            links = generate_search_links(query)
        except ValueError:
            logger.warning("Could not build search links for %r", query)
        else:
            fallback.append(
                FallbackRecord(
                    name=f'Search for "{query}" online',
                    publisher="Web Search",
                    search_urls=links,
                    diagnostic=_describe_errors(errors),
                )
            )

        return SearchResponse(
            query=query,
            page=page,
            limit=limit,
            results=list(fallback),
            total=len(fallback),
            status=ResolutionStatus.FALLBACK,
            errors=errors,
        )

    async def _safe_fallback(self, query: str, page: int, limit: int) -> SearchResponse:
        try:
            return await self._fallback(query, page, limit, [])
        except Exception:
            logger.exception("Fallback chain failed for %r", query)
            return SearchResponse(query=query, page=page, limit=limit, status=ResolutionStatus.FALLBACK)
