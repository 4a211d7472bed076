"""Guess an application's official website from a scraped web search.

DuckDuckGo's HTML endpoint wraps every result link in a redirect carrying the
real target in a ``uddg`` query parameter. We collect those targets, score each
one with a few cheap heuristics, and accept the best only if it clears a
threshold. No API key needed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, unquote, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from winhub_search.cache import TTLCache
from winhub_search.config import Settings
from winhub_search.errors import VALIDATION_ERROR, WEBSITE_SEARCH_ERROR, classify_http_error, failed_outcome
from winhub_search.models import Source, SourceOutcome

logger = logging.getLogger(__name__)

SERVICE_NAME = "DuckDuckGo"

# LEARN: A realistic browser User-Agent; the HTML endpoint serves an empty page
# to unknown clients.
HTTP_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}

# Aggregators, mirrors and code hosts that rank well but are never the vendor's site.
NON_OFFICIAL_DOMAINS = (
    "wikipedia",
    "github.com",
    "sourceforge",
    "softonic",
    "cnet",
    "filehippo",
    "uptodown",
    "alternativeto",
)
OFFICIAL_TLDS = (".com", ".org", ".net", ".io")
ACCEPT_THRESHOLD = -3

_UDDG_RE = re.compile(r"uddg=([^&'\"]+)")

# Sentinel so a cached None ("searched, nothing found") is distinguishable from a miss.
_MISSING = object()


@dataclass(frozen=True, slots=True)
class Candidate:
    url: str
    title: str
    display_domain: str


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _uddg_target(href: str) -> str | None:
    """Pull the decoded redirect target out of a DuckDuckGo result href."""
    if "uddg=" not in href:
        return None
    # Hrefs are protocol-relative ("//duckduckgo.com/l/?uddg=...").
    values = parse_qs(urlparse(href).query).get("uddg")
    return values[0] if values else None


def extract_candidates(html: str) -> list[Candidate]:
    """Extract result candidates (target URL, title, domain) from a results page.

    Anchors are parsed with BeautifulSoup; if the markup has none carrying a
    ``uddg`` parameter, a raw scan of the page is used instead. Duplicate URLs
    keep their first occurrence.
    """
    titles: dict[str, str] = {}
    soup = BeautifulSoup(html, "lxml")
    for link in soup.find_all("a", href=True):
        if not isinstance(link, Tag):
            continue
        href = link.get("href")
        target = _uddg_target(href if isinstance(href, str) else "")
        if not target:
            continue
        classes = link.get("class") or []
        text = link.get_text(strip=True)
        # result__a carries the page title; result__url only repeats the domain.
        if target not in titles or (isinstance(classes, list) and "result__a" in classes and text):
            titles[target] = text

    if not titles:
        for match in _UDDG_RE.finditer(html):
            target = unquote(match.group(1))
            titles.setdefault(target, "")

    candidates = []
    for url, title in titles.items():
        domain = _hostname(url)
        candidates.append(Candidate(url=url, title=title or domain, display_domain=domain))
    return candidates


def extract_candidate_urls(html: str) -> list[str]:
    return [c.url for c in extract_candidates(html)]


def score_candidate(app_name: str, candidate: Candidate) -> int:
    """Score how likely `candidate` is to be the official site of `app_name`."""
    name = app_name.lower()
    compact_name = re.sub(r"\s+", "", name)
    title = candidate.title.lower()
    url = candidate.url.lower()
    domain = candidate.display_domain.lower()

    score = 0
    if name in title:
        score += 3
    if compact_name in url or compact_name in domain:
        score += 2
    if "official" in url or "official" in title:
        score += 2
    if "download" in url or "download" in title:
        score += 1
    if domain.endswith(OFFICIAL_TLDS):
        score += 1
    if any(blocked in url for blocked in NON_OFFICIAL_DOMAINS):
        score -= 5
    return score


def pick_official(app_name: str, candidates: list[Candidate]) -> str | None:
    """Return the best-scoring candidate URL, or None when nothing clears the threshold."""
    if not candidates:
        return None
    # sorted() is stable, so ties keep search-engine order.
    ranked = sorted(candidates, key=lambda c: score_candidate(app_name, c), reverse=True)
    best = ranked[0]
    best_score = score_candidate(app_name, best)
    logger.debug("Best official-site candidate for %r: %s (score %d)", app_name, best.url, best_score)
    return best.url if best_score > ACCEPT_THRESHOLD else None


def is_official_download_url(url: str, app_name: str) -> bool:
    """Check whether `url` looks like a vendor download page for `app_name`."""
    if not url or not app_name:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return False
    path = parsed.path.lower()
    compact_name = re.sub(r"\s+", "", app_name.lower())

    domain_matches = compact_name in hostname
    has_download_path = any(word in path for word in ("download", "get", "install"))
    is_non_official = any(blocked in hostname for blocked in NON_OFFICIAL_DOMAINS)
    return (domain_matches or has_download_path) and not is_non_official


def probe_urls(compact_name: str) -> list[str]:
    """Common homepage patterns for an app, most likely first."""
    return [f"https://{prefix}{compact_name}{tld}" for tld in OFFICIAL_TLDS for prefix in ("www.", "")]


class OfficialSiteResolver:
    """Finds official websites, caching both hits and "nothing found"."""

    def __init__(self, settings: Settings | None = None, cache: TTLCache | None = None) -> None:
        self.settings = settings or Settings()
        self.cache: TTLCache[str | None] = (
            cache if cache is not None else TTLCache(self.settings.website_cache_ttl)
        )

    def clear_cache(self) -> None:
        self.cache.clear()

    async def find(self, app_name: str) -> SourceOutcome[str]:
        """Resolve `app_name` to an official URL.

        The outcome holds one record (the URL) or none. A failed scrape is an
        error outcome and is not cached; an empty result is cached as None.
        """
        if not app_name or not app_name.strip():
            return failed_outcome(Source.WEB, VALIDATION_ERROR, "PERMANENT: Application name cannot be empty.")

        trimmed = app_name.strip()
        cache_key = trimmed.lower()
        cached = self.cache.get(cache_key, _MISSING)
        if cached is not _MISSING:
            return SourceOutcome(records=[cached] if cached else [], total=1 if cached else 0)

        params = {"q": f"official site {trimmed} download"}
        try:
            async with httpx.AsyncClient(
                headers=HTTP_HEADERS, timeout=self.settings.website_timeout, follow_redirects=True
            ) as client:
                response = await client.get(self.settings.website_search_url, params=params)
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Website search timed out for %r", trimmed)
            return failed_outcome(
                Source.WEB, WEBSITE_SEARCH_ERROR, f"RETRYABLE: {SERVICE_NAME} took too long to respond."
            )
        except httpx.HTTPStatusError as exc:
            logger.warning("Website search returned HTTP %d for %r", exc.response.status_code, trimmed)
            return failed_outcome(
                Source.WEB, WEBSITE_SEARCH_ERROR, classify_http_error(exc.response.status_code, SERVICE_NAME)
            )
        except httpx.HTTPError as exc:
            logger.warning("Website search failed for %r: %s", trimmed, exc)
            return failed_outcome(Source.WEB, WEBSITE_SEARCH_ERROR, f"RETRYABLE: Website search failed ({exc}).")

        candidates = extract_candidates(response.text)
        official = pick_official(trimmed, candidates)
        if official is None and candidates:
            # Search found pages but none looked official; try the obvious domains.
            official = await self.probe_common_domains(trimmed)

        self.cache.set(cache_key, official)
        return SourceOutcome(records=[official] if official else [], total=1 if official else 0)

    async def probe_common_domains(self, app_name: str) -> str | None:
        """Try ``<name>.com``-style domains and return the first one that answers.

        Probe failures are swallowed; an unreachable domain just isn't a match.
        """
        compact_name = re.sub(r"[^a-z0-9-]", "", app_name.lower())
        if not compact_name:
            return None

        async with httpx.AsyncClient(
            headers=HTTP_HEADERS, timeout=self.settings.website_timeout, follow_redirects=True
        ) as client:
            for url in probe_urls(compact_name):
                try:
                    response = await client.head(url)
                except httpx.HTTPError:
                    continue
                if response.status_code < 400:  # noqa: PLR2004
                    logger.info("Domain probe matched %s for %r", url, app_name)
                    return url
        return None
