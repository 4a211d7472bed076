"""Tests for the Chocolatey adapter: output parsing, commands, client-side paging."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from winhub_search.chocolatey import ChocolateyAdapter, generate_choco_command, parse_choco_output
from winhub_search.config import Settings
from winhub_search.models import Source
from winhub_search.process import ProcessResult

CHOCO_OUTPUT = """Chocolatey v2.2.2
vlc|3.0.20
vlc.install|3.0.20
vlc.portable|3.0.18

vlc-nightly|4.0.0-dev
4 packages found.
"""


def _many_packages(count: int) -> str:
    lines = [f"pkg{i:02d}|1.{i}" for i in range(count)]
    return "\n".join([*lines, f"{count} packages found."])


def _patch_run(result: ProcessResult | None = None, side_effect: object = None):
    mock_run = AsyncMock(return_value=result, side_effect=side_effect)
    return patch("winhub_search.chocolatey.run_process", mock_run), mock_run


class TestParseChocoOutput:
    def test_parses_id_and_version(self):
        records = parse_choco_output(CHOCO_OUTPUT)
        assert [r.package_id for r in records] == ["vlc", "vlc.install", "vlc.portable", "vlc-nightly"]
        assert records[0].versions == ["3.0.20"]
        assert records[0].latest_version == "3.0.20"

    def test_records_are_secondary_repo(self):
        record = parse_choco_output("git|2.44.0")[0]
        assert record.source is Source.SECONDARY_REPO
        assert record.name == "git"
        assert record.publisher == "Unknown"
        assert record.install_command == "choco install git -y"
        assert record.description == "git package from Chocolatey"

    def test_skips_banner_summary_and_blank_lines(self):
        assert parse_choco_output("Chocolatey v2.2.2\n\n0 packages found.\n") == []

    def test_package_named_chocolatey_is_kept(self):
        records = parse_choco_output("chocolatey|2.2.2\nChocolateyGUI|2.1.1\n")
        assert [r.package_id for r in records] == ["chocolatey", "ChocolateyGUI"]

    def test_lines_without_pipe_skipped(self):
        assert parse_choco_output("some warning text\n") == []

    def test_windows_line_endings(self):
        records = parse_choco_output("7zip|23.1.0\r\n7zip.install|23.1.0\r\n")
        assert [r.package_id for r in records] == ["7zip", "7zip.install"]

    def test_empty_version_gives_no_versions(self):
        record = parse_choco_output("oddpkg|")[0]
        assert record.versions == []
        assert record.latest_version is None


class TestGenerateChocoCommand:
    def test_latest(self):
        assert generate_choco_command("vlc") == "choco install vlc -y"

    def test_specific_version(self):
        assert generate_choco_command("vlc", "3.0.18") == "choco install vlc -y --version=3.0.18"

    def test_empty_id(self):
        assert generate_choco_command("", "1.0") == ""


class TestChocolateySearch:
    @pytest.mark.anyio
    async def test_builds_argument_vector(self):
        patcher, mock_run = _patch_run(ProcessResult(0, "", ""))
        with patcher:
            await ChocolateyAdapter(Settings(cli_timeout=15)).search("  visual studio code ")

        argv = mock_run.call_args.args[0]
        assert argv == ["choco", "search", "visual studio code", "--limit-output", "--yes"]
        assert mock_run.call_args.kwargs["timeout"] == 15

    @pytest.mark.anyio
    async def test_first_page_slice_and_full_total(self):
        patcher, _ = _patch_run(ProcessResult(0, _many_packages(25), ""))
        with patcher:
            outcome = await ChocolateyAdapter().search("pkg", page=0, limit=10)

        assert outcome.ok
        assert outcome.total == 25
        assert [r.package_id for r in outcome.records] == [f"pkg{i:02d}" for i in range(10)]

    @pytest.mark.anyio
    async def test_second_page_reuses_single_cli_run(self):
        patcher, mock_run = _patch_run(ProcessResult(0, _many_packages(25), ""))
        adapter = ChocolateyAdapter()
        with patcher:
            await adapter.search("pkg", page=0, limit=10)
            second = await adapter.search("pkg", page=1, limit=10)
            last = await adapter.search("pkg", page=2, limit=10)

        assert mock_run.await_count == 1
        assert [r.package_id for r in second.records] == [f"pkg{i:02d}" for i in range(10, 20)]
        assert [r.package_id for r in last.records] == [f"pkg{i:02d}" for i in range(20, 25)]

    @pytest.mark.anyio
    async def test_page_past_end_is_empty_success(self):
        patcher, _ = _patch_run(ProcessResult(0, _many_packages(3), ""))
        with patcher:
            outcome = await ChocolateyAdapter().search("pkg", page=5, limit=10)

        assert outcome.ok
        assert outcome.records == []
        assert outcome.total == 3

    @pytest.mark.anyio
    async def test_timeout_is_retryable_failure(self):
        patcher, _ = _patch_run(side_effect=TimeoutError())
        with patcher:
            outcome = await ChocolateyAdapter().search("vlc")

        assert outcome.records == []
        assert outcome.error is not None
        assert outcome.error.code == "CHOCO_CLI_ERROR"
        assert outcome.error.message.startswith("RETRYABLE")
        assert "timed out" in outcome.error.message

    @pytest.mark.anyio
    async def test_missing_executable_is_permanent_failure(self):
        patcher, _ = _patch_run(side_effect=FileNotFoundError("choco"))
        with patcher:
            outcome = await ChocolateyAdapter().search("vlc")

        assert outcome.error is not None
        assert outcome.error.message.startswith("PERMANENT")
        assert "installed" in outcome.error.message

    @pytest.mark.anyio
    async def test_non_zero_exit_is_failure(self):
        patcher, _ = _patch_run(ProcessResult(1, "", "source unreachable"))
        with patcher:
            outcome = await ChocolateyAdapter().search("vlc")

        assert outcome.error is not None
        assert "source unreachable" in outcome.error.message

    @pytest.mark.anyio
    async def test_failures_are_not_cached(self):
        mock_run = AsyncMock(side_effect=[TimeoutError(), ProcessResult(0, "vlc|3.0.20", "")])
        adapter = ChocolateyAdapter()
        with patch("winhub_search.chocolatey.run_process", mock_run):
            first = await adapter.search("vlc")
            second = await adapter.search("vlc")

        assert not first.ok
        assert second.ok
        assert mock_run.await_count == 2

    @pytest.mark.anyio
    async def test_empty_query_does_not_run_cli(self):
        patcher, mock_run = _patch_run(ProcessResult(0, "", ""))
        with patcher:
            outcome = await ChocolateyAdapter().search("")

        mock_run.assert_not_called()
        assert outcome.error is not None
        assert outcome.error.code == "VALIDATION_ERROR"
