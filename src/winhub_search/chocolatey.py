"""Adapter for the Chocolatey community repository via the local `choco` CLI.

`choco search --limit-output` prints one ``id|version`` line per package and has
no paging, so the full listing for a query is fetched once, cached, and sliced
client-side for every page request.
"""

from __future__ import annotations

import logging

from winhub_search.cache import TTLCache
from winhub_search.config import Settings
from winhub_search.errors import CHOCO_CLI_ERROR, VALIDATION_ERROR, failed_outcome
from winhub_search.models import PackageRecord, Source, SourceOutcome
from winhub_search.process import run_process

logger = logging.getLogger(__name__)


def generate_choco_command(package_id: str, version: str | None = None) -> str:
    """Build a non-interactive `choco install` command; empty string for a blank id."""
    if not package_id or not package_id.strip():
        return ""
    command = f"choco install {package_id.strip()} -y"
    if version and version.strip():
        command += f" --version={version.strip()}"
    return command


def _is_noise_line(line: str) -> bool:
    # Banner ("Chocolatey v2.2.2") and summary ("12 packages found.") lines.
    if line.startswith("Chocolatey") and "|" not in line:
        return True
    return "packages found" in line or "package found" in line


def parse_choco_output(output: str) -> list[PackageRecord]:
    """Parse `choco search --limit-output` stdout into PackageRecords.

    Lines that are blank, banners, summaries, or lack an ``id|version`` pair are skipped.
    """
    records: list[PackageRecord] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or _is_noise_line(line):
            continue

        parts = line.split("|")
        if len(parts) < 2:  # noqa: PLR2004
            continue

        package_id, version = parts[0].strip(), parts[1].strip()
        if not package_id:
            continue

        records.append(
            PackageRecord(
                name=package_id,
                publisher="Unknown",
                package_id=package_id,
                source=Source.SECONDARY_REPO,
                versions=[version] if version else [],
                install_command=generate_choco_command(package_id),
                # --limit-output carries no descriptions
                description=f"{package_id} package from Chocolatey",
            )
        )
    return records


class ChocolateyAdapter:
    """Searches the Chocolatey repository through the `choco` executable."""

    def __init__(self, settings: Settings | None = None, cache: TTLCache | None = None) -> None:
        self.settings = settings or Settings()
        self.cache: TTLCache[list[PackageRecord]] = (
            cache if cache is not None else TTLCache(self.settings.repository_cache_ttl)
        )

    def clear_cache(self) -> None:
        self.cache.clear()

    def _build_command(self, query: str) -> list[str]:
        return [self.settings.choco_executable, "search", query, "--limit-output", "--yes"]

    async def _run_search(self, query: str) -> str:
        """Run the CLI and return stdout; raises on timeout or non-zero exit."""
        command = self._build_command(query)
        logger.info("Executing Chocolatey CLI: %s", " ".join(command))

        result = await run_process(command, timeout=self.settings.cli_timeout)
        err_text = result.stderr.strip()
        if result.returncode != 0:
            msg = f"choco exited with code {result.returncode}: {err_text or 'no error output'}"
            raise RuntimeError(msg)
        if err_text and "warn" not in err_text.lower():
            logger.warning("Chocolatey CLI stderr: %s", err_text)

        return result.stdout

    async def search(self, query: str, page: int = 0, limit: int = 20) -> SourceOutcome[PackageRecord]:
        """Return one client-side page of Chocolatey packages matching `query`."""
        if not query or not query.strip():
            return failed_outcome(Source.SECONDARY_REPO, VALIDATION_ERROR, "PERMANENT: Search query cannot be empty.")

        trimmed = query.strip()
        # One full listing per query; every page is a slice of it.
        cache_key = f"{trimmed.lower()}_full"
        all_records: list[PackageRecord] | None = self.cache.get(cache_key)

        if all_records is None:
            try:
                stdout = await self._run_search(trimmed)
            except TimeoutError:
                logger.warning("Chocolatey CLI search timed out for %r", trimmed)
                return failed_outcome(
                    Source.SECONDARY_REPO,
                    CHOCO_CLI_ERROR,
                    f"RETRYABLE: Chocolatey CLI search timed out after {self.settings.cli_timeout:g}s. Retry later.",
                )
            except FileNotFoundError:
                logger.warning("Chocolatey executable %r not found", self.settings.choco_executable)
                return failed_outcome(
                    Source.SECONDARY_REPO,
                    CHOCO_CLI_ERROR,
                    "PERMANENT: Chocolatey CLI command failed (is choco installed and on PATH?).",
                )
            except (RuntimeError, OSError) as exc:
                logger.warning("Chocolatey CLI search failed for %r: %s", trimmed, exc)
                return failed_outcome(
                    Source.SECONDARY_REPO, CHOCO_CLI_ERROR, f"PERMANENT: Chocolatey CLI command failed ({exc})."
                )

            all_records = parse_choco_output(stdout)
            self.cache.set(cache_key, all_records)
        else:
            logger.debug("Chocolatey cache hit for %s", cache_key)

        skip = page * limit
        page_records = all_records[skip : skip + limit]
        logger.info(
            "Chocolatey search returned %d total, sending %d for page %d", len(all_records), len(page_records), page
        )
        return SourceOutcome(records=[r.model_copy(deep=True) for r in page_records], total=len(all_records))
