"""Runtime settings for the resolution pipeline."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

CATALOG_API_URL = "https://api.winget.run/v2/packages"
WEBSITE_SEARCH_URL = "https://html.duckduckgo.com/html/"

# LEARN: The catalog API rejects pages larger than this, so requested limits are clamped.
CATALOG_MAX_PAGE_SIZE = 24
MAX_QUERY_LENGTH = 100


class Settings(BaseModel):
    """Endpoints, executables, timeouts and cache lifetimes.

    Defaults work out of the box; `from_env()` lets a deployment override the
    handful of values that differ between machines.
    """

    catalog_api_url: str = CATALOG_API_URL
    catalog_max_page_size: int = Field(default=CATALOG_MAX_PAGE_SIZE, gt=0)
    http_timeout: float = Field(default=15.0, gt=0)
    website_search_url: str = WEBSITE_SEARCH_URL
    website_timeout: float = Field(default=8.0, gt=0)
    choco_executable: str = "choco"
    winget_executable: str = "winget"
    cli_timeout: float = Field(default=15.0, gt=0)
    install_timeout: float = Field(default=60.0, gt=0)
    repository_cache_ttl: float = Field(default=5 * 60, gt=0, description="Seconds")
    website_cache_ttl: float = Field(default=10 * 60, gt=0, description="Seconds")
    default_page_size: int = Field(default=20, gt=0)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings, letting WINHUB_* environment variables override defaults."""
        env_map = {
            "catalog_api_url": "WINHUB_CATALOG_API_URL",
            "http_timeout": "WINHUB_HTTP_TIMEOUT",
            "website_search_url": "WINHUB_WEBSITE_SEARCH_URL",
            "choco_executable": "WINHUB_CHOCO_EXECUTABLE",
            "winget_executable": "WINHUB_WINGET_EXECUTABLE",
            "cli_timeout": "WINHUB_CLI_TIMEOUT",
        }
        overrides = {field: os.environ[var] for field, var in env_map.items() if os.environ.get(var)}
        # Pydantic coerces the string values ("30") into the declared float fields.
        return cls.model_validate(overrides)
