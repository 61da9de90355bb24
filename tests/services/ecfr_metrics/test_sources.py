"""
Tests for Publisher Sources
===========================

Tests for:
- Source configuration
- Catalog client (titles.json)
- Unit fetcher (full title XML)

Version: 0.1.0
"""

from collections.abc import Callable
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from services.ecfr_metrics.errors import CatalogUnavailable, FetchFailed
from services.ecfr_metrics.sources import (
    CatalogClient,
    PublisherClient,
    SourceConfig,
    UnitFetcher,
    VersionMarker,
)
from services.ecfr_metrics.sources.fetcher import document_path
from shared.config import EcfrSettings
from tests.conftest import (
    SIMPLE_DOCUMENT,
    FakeEcfrApi,
    catalog_payload,
    title_entry,
)


PublisherFactory = Callable[[FakeEcfrApi], PublisherClient]


# ============================================================================
# Source Config Tests
# ============================================================================


class TestSourceConfig:
    """Tests for SourceConfig."""

    def test_default_config(self) -> None:
        config = SourceConfig()

        assert config.max_connections == 4
        assert config.retry_count == 3
        assert config.versioner_url == "https://www.ecfr.gov/api/versioner/v1"

    def test_from_settings(self) -> None:
        ecfr = EcfrSettings(
            base_url="https://mirror.example/",
            max_concurrency=8,
            request_timeout=30,
        )
        config = SourceConfig.from_settings(ecfr)

        assert config.max_connections == 8
        assert config.request_timeout == 30
        assert config.versioner_url == "https://mirror.example/api/versioner/v1"


class TestPublisherClient:
    """Tests for PublisherClient."""

    @pytest.mark.asyncio
    async def test_get_joins_versioner_path(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1)]))

        async with make_publisher(api) as http:
            response = await http.get("/titles.json")

        assert response.status_code == 200
        request = api.requests[0]
        assert str(request.url) == "https://ecfr.test/api/versioner/v1/titles.json"
        assert request.headers["User-Agent"].startswith("ecfr-metrics/")

    @pytest.mark.asyncio
    async def test_close_releases_client(self, make_publisher: PublisherFactory) -> None:
        http = make_publisher(FakeEcfrApi(catalog_payload([])))
        await http.get("titles.json")

        await http.close()

        assert http._client is None


# ============================================================================
# Catalog Client Tests
# ============================================================================


class TestCatalogClient:
    """Tests for CatalogClient."""

    @pytest.mark.asyncio
    async def test_list_units(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1), title_entry(40)]))

        async with make_publisher(api) as http:
            units = await CatalogClient(http).list_units()

        assert [u.unit_id for u in units] == ["1", "40"]
        assert units[1].number == 40
        assert units[1].display_name == "Title 40 Name"

    @pytest.mark.asyncio
    async def test_reserved_titles_skipped(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(
            catalog_payload([
                title_entry(34),
                title_entry(35, as_of=None, reserved=True),
                title_entry(36),
            ])
        )

        async with make_publisher(api) as http:
            units = await CatalogClient(http).list_units()

        assert [u.unit_id for u in units] == ["34", "36"]

    @pytest.mark.asyncio
    async def test_current_version(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(7, as_of="2024-03-15")]))

        async with make_publisher(api) as http:
            marker = await CatalogClient(http).current_version("7")

        assert marker == VersionMarker(unit_id="7", as_of_date=date(2024, 3, 15))

    @pytest.mark.asyncio
    async def test_index_cached_between_lookups(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1), title_entry(2)]))

        async with make_publisher(api) as http:
            catalog = CatalogClient(http)
            await catalog.list_units()
            await catalog.current_version("1")
            await catalog.current_version("2")

        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_list_units_refreshes_index(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1)]))

        async with make_publisher(api) as http:
            catalog = CatalogClient(http)
            await catalog.list_units()
            await catalog.list_units()

        assert len(api.requests) == 2

    @pytest.mark.asyncio
    async def test_import_in_progress_is_advisory(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1)], import_in_progress=True))

        async with make_publisher(api) as http:
            catalog = CatalogClient(http)
            units = await catalog.list_units()
            marker = await catalog.current_version("1")

        assert len(units) == 1
        assert marker.import_in_progress is True

    @pytest.mark.asyncio
    async def test_unknown_unit(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(1)]))

        async with make_publisher(api) as http:
            with pytest.raises(CatalogUnavailable) as exc_info:
                await CatalogClient(http).current_version("99")

        assert exc_info.value.unit_id == "99"

    @pytest.mark.asyncio
    async def test_unit_without_date(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([title_entry(5, as_of=None)]))

        async with make_publisher(api) as http:
            with pytest.raises(CatalogUnavailable):
                await CatalogClient(http).current_version("5")

    @pytest.mark.asyncio
    async def test_index_unavailable(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(503)

        async with make_publisher(api) as http:
            with pytest.raises(CatalogUnavailable):
                await CatalogClient(http).list_units()

        # Server errors are retried up to retry_count
        assert len(api.requests) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(403)

        async with make_publisher(api) as http:
            with pytest.raises(CatalogUnavailable):
                await CatalogClient(http).list_units()

        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, source_config: SourceConfig) -> None:
        payload = catalog_payload([title_entry(1)])
        responses = iter([
            httpx.Response(502),
            httpx.Response(200, json=payload),
        ])

        transport = httpx.MockTransport(lambda request: next(responses))
        async with PublisherClient(source_config, transport=transport) as http:
            units = await CatalogClient(http).list_units()

        assert [u.unit_id for u in units] == ["1"]

    @pytest.mark.asyncio
    async def test_index_without_titles(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi({"meta": {}})

        async with make_publisher(api) as http:
            with pytest.raises(CatalogUnavailable):
                await CatalogClient(http).list_units()

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        catalog = CatalogClient(PublisherClient(SourceConfig(retry_delay_seconds=0)))
        mock_response = MagicMock()
        mock_response.json.side_effect = ValueError("Expecting value")

        with patch.object(catalog.http, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = mock_response

            with pytest.raises(CatalogUnavailable):
                await catalog.list_units()

            mock_get.assert_called_once_with("titles.json")


# ============================================================================
# Unit Fetcher Tests
# ============================================================================


class TestUnitFetcher:
    """Tests for UnitFetcher."""

    def test_document_path(self) -> None:
        assert document_path("40", date(2024, 1, 2)) == "full/2024-01-02/title-40.xml"

    @pytest.mark.asyncio
    async def test_fetch_requests_exact_date(self, make_publisher: PublisherFactory) -> None:
        api = FakeEcfrApi(catalog_payload([]), documents={"1": SIMPLE_DOCUMENT})

        async with make_publisher(api) as http:
            body = await UnitFetcher(http).fetch("1", date(2023, 6, 30))

        assert body == SIMPLE_DOCUMENT
        assert api.document_requests() == ["/api/versioner/v1/full/2023-06-30/title-1.xml"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 503])
    async def test_non_success_status(self, make_publisher: PublisherFactory, status: int) -> None:
        api = FakeEcfrApi(catalog_payload([]), documents={"1": status})

        async with make_publisher(api) as http:
            with pytest.raises(FetchFailed) as exc_info:
                await UnitFetcher(http).fetch("1", date(2024, 1, 1))

        assert exc_info.value.unit_id == "1"
        assert str(status) in exc_info.value.cause
        # No internal retry
        assert len(api.document_requests()) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"", b"   \n"])
    async def test_empty_body(self, make_publisher: PublisherFactory, body: bytes) -> None:
        api = FakeEcfrApi(catalog_payload([]), documents={"1": body})

        async with make_publisher(api) as http:
            with pytest.raises(FetchFailed) as exc_info:
                await UnitFetcher(http).fetch("1", date(2024, 1, 1))

        assert exc_info.value.cause == "empty response body"

    @pytest.mark.asyncio
    async def test_network_error(self, source_config: SourceConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with PublisherClient(source_config, transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(FetchFailed) as exc_info:
                await UnitFetcher(http).fetch("1", date(2024, 1, 1))

        assert "ConnectError" in exc_info.value.cause

    @pytest.mark.asyncio
    async def test_timeout(self, source_config: SourceConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with PublisherClient(source_config, transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(FetchFailed):
                await UnitFetcher(http).fetch("1", date(2024, 1, 1))
