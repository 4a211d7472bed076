"""Search-engine link generation for queries no repository could resolve.

Pure functions, no I/O. General engines are asked for ``download <query> official``;
software directories get the bare query.
"""

from __future__ import annotations

from urllib.parse import quote

from winhub_search.models import SearchEngineLink

# engine key -> (display name, URL template, uses the "download ... official" phrasing)
_ENGINES: dict[str, tuple[str, str, bool]] = {
    "google": ("Google", "https://www.google.com/search?q={q}&safe=active", True),
    "duckduckgo": ("DuckDuckGo", "https://duckduckgo.com/?q={q}&safe-search=moderate", True),
    "bing": ("Bing", "https://www.bing.com/search?q={q}&setlang=en", True),
    "yandex": ("Yandex", "https://yandex.com/search/?text={q}&lr=10418", True),
    "alternativeto": ("AlternativeTo", "https://alternativeto.net/browse/search/?q={q}", False),
    "softpedia": ("Softpedia", "https://www.softpedia.com/dyn-search.php?search_term={q}", False),
}

_ENGINE_ALIASES = {"ddg": "duckduckgo"}

# Roster returned for every fallback, in display order.
SEARCH_LINK_ROSTER = ("google", "duckduckgo", "bing", "yandex", "alternativeto", "softpedia")


def _encode(text: str) -> str:
    # Same escaping as JavaScript's encodeURIComponent.
    return quote(text, safe="-_.!~*'()")


def _resolve_engine(engine: str) -> str:
    key = engine.strip().lower()
    return _ENGINE_ALIASES.get(key, key)


def _validated(query: str) -> str:
    if not query or not query.strip():
        msg = "Application name cannot be empty"
        raise ValueError(msg)
    return query.strip()


def generate_direct_search_url(engine: str, query: str) -> str | None:
    """Return the search URL for one engine, or None if the engine is unknown or the query empty."""
    if not engine or not query or not query.strip():
        return None
    engine_entry = _ENGINES.get(_resolve_engine(engine))
    if engine_entry is None:
        return None
    _, template, official_phrasing = engine_entry
    trimmed = query.strip()
    text = f"download {trimmed} official" if official_phrasing else trimmed
    return template.format(q=_encode(text))


def generate_search_links(query: str) -> list[SearchEngineLink]:
    """Build the fixed, ordered list of web-search links for `query`.

    Raises ValueError for an empty query.
    """
    trimmed = _validated(query)
    links: list[SearchEngineLink] = []
    for key in SEARCH_LINK_ROSTER:
        url = generate_direct_search_url(key, trimmed)
        if url is not None:
            links.append(SearchEngineLink(engine=_ENGINES[key][0], url=url))
    return links


def get_search_engine_name(engine: str) -> str:
    engine_entry = _ENGINES.get(_resolve_engine(engine)) if engine else None
    return engine_entry[0] if engine_entry else engine


def is_supported_search_engine(engine: str) -> bool:
    return bool(engine) and _resolve_engine(engine) in _ENGINES


def generate_download_site_links(query: str) -> list[SearchEngineLink]:
    """Links to download portals that host installers directly. Empty list for an empty query."""
    if not query or not query.strip():
        return []
    q = _encode(query.strip())
    return [
        SearchEngineLink(engine="GitHub", url=f"https://github.com/search?q={q}&type=repositories"),
        SearchEngineLink(engine="SourceForge", url=f"https://sourceforge.net/directory/?q={q}"),
        SearchEngineLink(engine="FossHub", url=f"https://www.fosshub.com/search?q={q}"),
        SearchEngineLink(engine="FileHorse", url=f"https://www.filehorse.com/search?q={q}"),
    ]


def generate_open_source_links(query: str) -> list[SearchEngineLink]:
    """Links to open-source code hosts and directories. Empty list for an empty query."""
    if not query or not query.strip():
        return []
    q = _encode(query.strip())
    return [
        SearchEngineLink(engine="GitHub", url=f"https://github.com/search?q={q}&type=repositories&s=stars&o=desc"),
        SearchEngineLink(engine="GitLab", url=f"https://gitlab.com/search?search={q}&nav_source=navbar"),
        SearchEngineLink(engine="Open Source Alternative", url=f"https://www.opensourcealternative.to/search?q={q}"),
        SearchEngineLink(engine="F-Droid (Android)", url=f"https://search.f-droid.org/?q={q}"),
    ]


def create_windows_search_query(query: str) -> str:
    """Build a ``search-ms:`` URI that opens Windows search for installed apps."""
    if not query or not query.strip():
        return ""
    return f"search-ms:displayname=Search%20Results%20in%20Apps&query={_encode(query)}"
