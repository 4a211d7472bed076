"""Data models for package resolution results.

StrEnum tags identify which backend produced a record (CONSTRAINED_INPUT pattern).
Pydantic models define the normalized output shape every adapter converges on,
so the orchestrator and the tool surface never see raw upstream payloads.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

T = TypeVar("T")


# LEARN: Declaration order matters here. The orchestrator merges source results
# by iterating this enum, so CATALOG always lands before SECONDARY_REPO.
class Source(StrEnum):
    """Backends that can produce a search result."""

    CATALOG = "catalog"
    SECONDARY_REPO = "secondary-repo"
    WEB = "web"


class ResolutionStatus(StrEnum):
    """How a search response was produced."""

    OK = "ok"
    DEGRADED = "degraded"
    FALLBACK = "fallback"
    EMPTY = "empty"


class SearchEngineLink(BaseModel):
    """A single external search URL for a query."""

    engine: str = Field(description="Display name of the search engine or directory")
    url: str = Field(description="Search URL with the query already encoded")


class PackageRecord(BaseModel):
    """A package found in the catalog or the secondary repository.

    Flat structure shared by every repository adapter (RESPONSE_SHAPER pattern).
    `install_command` is generated locally from `package_id`, never copied from upstream.
    """

    name: str = Field(description="Display name of the package")
    publisher: str = Field(default="Unknown", description="Publisher or author")
    package_id: str | None = Field(default=None, description="Identifier used to build install commands")
    source: Source = Field(description="Backend that produced this record")
    versions: list[str] = Field(default_factory=list, description="Known versions, newest first")
    selected_version: str | None = Field(default=None, description="Version the user picked (defaults to latest)")
    install_command: str = Field(default="", description="Ready-to-run install command")
    description: str | None = None
    license: str | None = None
    license_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    homepage: str | None = None
    official_url: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def latest_version(self) -> str | None:
        return self.versions[0] if self.versions else None

    @model_validator(mode="after")
    def _default_selected_version(self) -> PackageRecord:
        if self.selected_version is None and self.versions:
            self.selected_version = self.versions[0]
        return self


class FallbackRecord(BaseModel):
    """A web result returned when no repository knows the query.

    Either an official-website record (`official_url` set) or a web-search
    record (`search_urls` set).
    """

    name: str
    publisher: str
    source: Source = Source.WEB
    official_url: str | None = None
    search_urls: list[SearchEngineLink] = Field(default_factory=list)
    diagnostic: str | None = Field(default=None, description="Why no package was found, when a source failed")


class SourceError(BaseModel):
    """A recoverable failure reported by one adapter (ERROR_CLASSIFICATION pattern)."""

    source: Source
    code: str = Field(description="Stable error code, e.g. CATALOG_API_ERROR")
    message: str = Field(description="RETRYABLE:/PERMANENT: prefixed recovery message")


class SourceOutcome(BaseModel, Generic[T]):
    """What an adapter call settled to: records plus an optional error, never an exception."""

    records: list[T] = Field(default_factory=list)
    total: int = 0
    error: SourceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SearchResponse(BaseModel):
    """Merged result of one orchestrator call."""

    query: str = Field(description="The normalized query that was resolved")
    page: int = Field(description="Zero-based page index")
    limit: int = Field(description="Requested page size")
    results: list[PackageRecord | FallbackRecord] = Field(default_factory=list)
    total: int = Field(default=0, description="Combined total reported by the sources")
    status: ResolutionStatus = ResolutionStatus.EMPTY
    errors: list[SourceError] = Field(default_factory=list)
    has_more: bool = Field(
        default=False,
        description="True when at least one source filled its page, so the next page may hold more",
    )


class InstalledApp(BaseModel):
    """One application found on the exporting machine."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    package_id: str = Field(alias="packageId")
    version: str | None = None


class AppListExport(BaseModel):
    """The JSON document exchanged between machines during migration."""

    model_config = ConfigDict(populate_by_name=True)

    exported_at: str = Field(alias="exportedAt", description="ISO-8601 timestamp")
    computer_name: str = Field(alias="computerName")
    apps: list[InstalledApp]
    winget_command: str = Field(alias="wingetCommand")
    total_apps: int = Field(alias="totalApps")


class InstallResult(BaseModel):
    """Outcome of running an install command."""

    success: bool
    message: str
    needs_elevation: bool = False


class WingetAvailability(BaseModel):
    """Whether the winget CLI can be run on this machine."""

    available: bool
    message: str
    version: str | None = None
