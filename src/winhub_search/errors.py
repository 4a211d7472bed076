"""Error classification shared by the adapters.

Every recoverable failure answers three questions: what went wrong, why, and
how to fix it. Messages are prefixed with RETRYABLE or PERMANENT so a caller
knows whether to retry or change its approach (RECOVERY_GUIDE pattern).
"""

from __future__ import annotations

from winhub_search.models import Source, SourceError, SourceOutcome

CATALOG_API_ERROR = "CATALOG_API_ERROR"
CHOCO_CLI_ERROR = "CHOCO_CLI_ERROR"
WEBSITE_SEARCH_ERROR = "WEBSITE_SEARCH_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"


class MigrationError(Exception):
    """Raised when an installed-app list cannot be exported or imported."""


def classify_http_error(status_code: int, service: str) -> str:
    """Map an HTTP status code from `service` to an actionable recovery message."""
    match status_code:
        case 429:
            return f"RETRYABLE: Rate limited by {service}. Wait 60 seconds, then retry the same search."
        case 403:
            return f"PERMANENT: Access denied by {service} (403). The service may be blocking automated requests."
        case 404:
            return f"PERMANENT: Endpoint not found on {service} (404). The service may have changed its URL structure."
        case s if 500 <= s < 600:  # noqa: PLR2004
            return f"RETRYABLE: {service} returned server error ({s}). Retry in 30 seconds."
        case _:
            return f"PERMANENT: Unexpected HTTP {status_code} from {service}."


def failed_outcome(source: Source, code: str, message: str) -> SourceOutcome:
    """Build a zero-record outcome carrying a noted failure."""
    return SourceOutcome(records=[], total=0, error=SourceError(source=source, code=code, message=message))
