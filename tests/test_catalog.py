"""Tests for the catalog adapter: normalization, commands, and mocked HTTP searches."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from winhub_search.catalog import (
    CatalogAdapter,
    generate_winget_command,
    is_valid_package_id,
    parse_catalog_response,
)
from winhub_search.config import Settings
from winhub_search.models import Source

API_URL = "https://api.winget.run/v2/packages"

DISCORD_PAYLOAD = {
    "Packages": [
        {
            "Id": "Discord.Discord",
            "Versions": ["1.2", "1.1"],
            "Latest": {
                "Name": "Discord",
                "Publisher": "Discord Inc.",
                "Tags": ["chat", "voice"],
                "Description": "Chat for communities",
                "Homepage": "https://discord.com",
                "License": "Proprietary",
                "LicenseUrl": "https://discord.com/terms",
            },
        }
    ],
    "Total": 1,
}


def _json_response(payload: object, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=payload, request=httpx.Request("GET", API_URL))


def _patch_client(mock_client: AsyncMock):
    """Return a patch context that wires mock_client as the httpx.AsyncClient instance."""
    mock_ctx = AsyncMock()
    mock_ctx.__aenter__ = AsyncMock(return_value=mock_client)
    mock_ctx.__aexit__ = AsyncMock(return_value=False)
    return patch("winhub_search.catalog.httpx.AsyncClient", return_value=mock_ctx)


class TestGenerateWingetCommand:
    def test_latest_has_no_version_flag(self):
        command = generate_winget_command("Discord.Discord")
        assert command == (
            "winget install --id=Discord.Discord --accept-source-agreements --accept-package-agreements"
        )
        assert "--version" not in command

    def test_specific_version(self):
        assert generate_winget_command("Discord.Discord", "1.1").endswith(" --version=1.1")

    def test_blank_version_ignored(self):
        assert "--version" not in generate_winget_command("Discord.Discord", "  ")

    def test_empty_id_returns_empty_string(self):
        assert generate_winget_command("") == ""
        assert generate_winget_command("   ", "1.0") == ""

    def test_idempotent(self):
        assert generate_winget_command("VideoLAN.VLC", "3.0") == generate_winget_command("VideoLAN.VLC", "3.0")


class TestIsValidPackageId:
    def test_dotted_id(self):
        assert is_valid_package_id("Mozilla.Firefox")

    def test_too_short(self):
        assert not is_valid_package_id("ab")

    def test_rejects_spaces_and_shell_characters(self):
        assert not is_valid_package_id("Mozilla Firefox")
        assert not is_valid_package_id("x; rm -rf /")


class TestParseCatalogResponse:
    def test_normalizes_package(self):
        records, total = parse_catalog_response(DISCORD_PAYLOAD)
        assert total == 1
        record = records[0]
        assert record.name == "Discord"
        assert record.publisher == "Discord Inc."
        assert record.package_id == "Discord.Discord"
        assert record.source is Source.CATALOG
        assert record.latest_version == "1.2"
        assert record.selected_version == "1.2"
        assert record.homepage == "https://discord.com"
        assert record.tags == ["chat", "voice"]
        assert "Discord.Discord" in record.install_command

    def test_missing_optional_fields_are_defaulted(self):
        records, _ = parse_catalog_response({"Packages": [{"Id": "Foo.Bar"}]})
        record = records[0]
        assert record.name == "Unknown Package"
        assert record.publisher == "Unknown Publisher"
        assert record.tags == []
        assert record.versions == []
        assert record.latest_version is None

    def test_total_falls_back_to_record_count(self):
        payload = {"Packages": [{"Id": "A.A"}, {"Id": "B.B"}]}
        _, total = parse_catalog_response(payload)
        assert total == 2

    def test_missing_packages_list_is_empty(self):
        assert parse_catalog_response({"Total": 5}) == ([], 0)
        assert parse_catalog_response(None) == ([], 0)

    def test_non_dict_entries_skipped(self):
        records, _ = parse_catalog_response({"Packages": ["junk", {"Id": "Good.One"}]})
        assert [r.package_id for r in records] == ["Good.One"]


class TestCatalogSearch:
    @pytest.mark.anyio
    async def test_empty_query_is_validation_error_without_http(self):
        adapter = CatalogAdapter()
        with patch("winhub_search.catalog.httpx.AsyncClient") as client_cls:
            outcome = await adapter.search("   ")
        client_cls.assert_not_called()
        assert outcome.records == []
        assert outcome.error is not None
        assert outcome.error.code == "VALIDATION_ERROR"

    @pytest.mark.anyio
    async def test_success_returns_records_and_total(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response(DISCORD_PAYLOAD)

        with _patch_client(mock_client):
            outcome = await CatalogAdapter().search("discord")

        assert outcome.ok
        assert outcome.total == 1
        assert outcome.records[0].package_id == "Discord.Discord"

    @pytest.mark.anyio
    async def test_limit_is_clamped_to_catalog_maximum(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response({"Packages": []})

        with _patch_client(mock_client):
            await CatalogAdapter().search("vlc", page=2, limit=100)

        params = mock_client.get.call_args.kwargs["params"]
        assert params == {"query": "vlc", "take": "24", "page": "2"}

    @pytest.mark.anyio
    async def test_second_call_is_served_from_cache(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response(DISCORD_PAYLOAD)
        adapter = CatalogAdapter()

        with _patch_client(mock_client):
            first = await adapter.search("discord")
            second = await adapter.search("DISCORD")

        assert mock_client.get.await_count == 1
        assert first.model_dump() == second.model_dump()

    @pytest.mark.anyio
    async def test_mutating_selected_version_does_not_touch_cache(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response(DISCORD_PAYLOAD)
        adapter = CatalogAdapter()

        with _patch_client(mock_client):
            first = await adapter.search("discord")
            first.records[0].selected_version = "1.1"
            second = await adapter.search("discord")

        assert second.records[0].selected_version == "1.2"

    @pytest.mark.anyio
    async def test_different_page_is_a_cache_miss(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response(DISCORD_PAYLOAD)
        adapter = CatalogAdapter()

        with _patch_client(mock_client):
            await adapter.search("discord", page=0)
            await adapter.search("discord", page=1)

        assert mock_client.get.await_count == 2

    @pytest.mark.anyio
    async def test_http_error_is_reported_not_raised(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response({}, status_code=503)

        with _patch_client(mock_client):
            outcome = await CatalogAdapter().search("discord")

        assert outcome.records == []
        assert outcome.error is not None
        assert outcome.error.code == "CATALOG_API_ERROR"
        assert outcome.error.message.startswith("RETRYABLE")
        assert "503" in outcome.error.message

    @pytest.mark.anyio
    async def test_timeout_is_retryable(self):
        mock_client = AsyncMock()
        mock_client.get.side_effect = httpx.ReadTimeout("timed out")

        with _patch_client(mock_client):
            outcome = await CatalogAdapter().search("discord")

        assert outcome.error is not None
        assert outcome.error.message.startswith("RETRYABLE")

    @pytest.mark.anyio
    async def test_connect_error_is_retryable(self):
        mock_client = AsyncMock()
        mock_client.get.side_effect = httpx.ConnectError("refused")

        with _patch_client(mock_client):
            outcome = await CatalogAdapter().search("discord")

        assert outcome.error is not None
        assert "Network error" in outcome.error.message

    @pytest.mark.anyio
    async def test_failures_are_not_cached(self):
        mock_client = AsyncMock()
        mock_client.get.side_effect = [httpx.ConnectError("refused"), _json_response(DISCORD_PAYLOAD)]
        adapter = CatalogAdapter()

        with _patch_client(mock_client):
            failed = await adapter.search("discord")
            recovered = await adapter.search("discord")

        assert not failed.ok
        assert recovered.ok
        assert len(recovered.records) == 1

    @pytest.mark.anyio
    async def test_invalid_json_is_reported(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = httpx.Response(
            status_code=200, text="<html>not json</html>", request=httpx.Request("GET", API_URL)
        )

        with _patch_client(mock_client):
            outcome = await CatalogAdapter().search("discord")

        assert outcome.error is not None
        assert outcome.error.code == "CATALOG_API_ERROR"

    @pytest.mark.anyio
    async def test_uses_configured_endpoint(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = _json_response({"Packages": []})
        settings = Settings(catalog_api_url="https://catalog.internal/api")

        with _patch_client(mock_client):
            await CatalogAdapter(settings).search("vlc")

        assert mock_client.get.call_args.args[0] == "https://catalog.internal/api"
