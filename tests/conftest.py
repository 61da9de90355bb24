"""
Test Configuration
==================

Pytest fixtures for eCFR metrics tests.
"""

import os
import re
from collections.abc import AsyncGenerator, Callable
from datetime import date
from typing import Any

import httpx
import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "testing"

from services.ecfr_metrics.errors import PersistenceError  # noqa: E402
from services.ecfr_metrics.sources.base import PublisherClient, SourceConfig  # noqa: E402
from services.ecfr_metrics.store import sort_unit_ids  # noqa: E402
from shared.models.snapshot import HistoryPoint, Snapshot  # noqa: E402


WIDGET_SECTION = "§ 1.1 This section defines “widget” as any device."

SIMPLE_DOCUMENT = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<regulation title="Title 1 - General Provisions">'
    '<section label="§ 1.1">'
    "<paragraph>This section defines “widget” as any device.</paragraph>"
    "</section>"
    '<section label=""></section>'
    "</regulation>"
).encode("utf-8")

ECFR_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<ECFR>
  <AMDDATE>Jan. 2, 2024</AMDDATE>
  <DIV1 N="1" NODE="1:1" TYPE="TITLE">
    <HEAD>Title 1—General Provisions</HEAD>
    <CFRTOC><PTHD>Part</PTHD></CFRTOC>
    <DIV3 N="I" NODE="1:1.0.1" TYPE="CHAPTER">
      <HEAD>CHAPTER I—ADMINISTRATIVE COMMITTEE</HEAD>
      <DIV5 N="1" NODE="1:1.0.1.1.1" TYPE="PART">
        <HEAD>PART 1—DEFINITIONS</HEAD>
        <AUTH><HED>Authority:</HED><PSPACE>44 U.S.C. 1506.</PSPACE></AUTH>
        <DIV8 N="§ 1.1" NODE="1:1.0.1.1.1.0.1.1" TYPE="SECTION">
          <HEAD>§ 1.1 Definitions.</HEAD>
          <P>As used in this chapter, <I>“Agency”</I> means an executive agency.</P>
          <P>See also § 2.4 and § 3.</P>
        </DIV8>
        <DIV8 N="§ 1.2" NODE="1:1.0.1.1.1.0.1.2" TYPE="SECTION">
          <HEAD>§ 1.2 Scope.</HEAD>
          <P>This part applies to every document.</P>
        </DIV8>
      </DIV5>
      <DIV9 N="A" TYPE="APPENDIX">
        <HEAD>Appendix A to Part 1</HEAD>
        <P>Appendix text with “noise” and § 9.9.</P>
      </DIV9>
    </DIV3>
  </DIV1>
</ECFR>
""".encode("utf-8")

SECTIONLESS_DOCUMENT = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<regulation><chapter>Loose text without sections.</chapter></regulation>"
).encode("utf-8")


class InMemorySnapshotStore:
    """Snapshot store double keeping records in a list."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.records: list[Snapshot] = []
        self.fail_with = fail_with
        self._next_id = 0

    async def insert(self, snapshot: Snapshot) -> str:
        if self.fail_with is not None:
            raise PersistenceError(str(self.fail_with), unit_id=snapshot.unit_id)
        self._next_id += 1
        snapshot_id = f"snap-{self._next_id}"
        self.records.append(snapshot.model_copy(update={"id": snapshot_id}))
        return snapshot_id

    async def unit_ids(self) -> list[str]:
        return sort_unit_ids(list({s.unit_id for s in self.records}))

    async def latest(self, unit_id: str) -> Snapshot | None:
        matching = [s for s in self.records if s.unit_id == unit_id]
        return matching[-1] if matching else None

    async def history(
        self,
        unit_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[HistoryPoint]:
        matching = [
            s for s in self.records
            if s.unit_id == unit_id
            and (start is None or s.as_of_date >= start)
            and (end is None or s.as_of_date <= end)
        ]
        matching.sort(key=lambda s: s.as_of_date)
        return [HistoryPoint(as_of_date=s.as_of_date, word_count=s.word_count) for s in matching]


def catalog_payload(
    titles: list[dict[str, Any]],
    import_in_progress: bool = False,
) -> dict[str, Any]:
    """Build a titles.json payload."""
    return {
        "titles": titles,
        "meta": {"date": "2024-05-01", "import_in_progress": import_in_progress},
    }


def title_entry(number: int, as_of: str | None = "2024-05-01", **extra: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "number": number,
        "name": f"Title {number} Name",
        "up_to_date_as_of": as_of,
        "reserved": False,
    }
    entry.update(extra)
    return entry


_DOCUMENT_PATH = re.compile(r"/full/(?P<date>[\d-]+)/title-(?P<unit>[^/]+)\.xml$")


class FakeEcfrApi:
    """
    Serves titles.json and per-title XML through httpx.MockTransport.

    `documents` maps unit id to either bytes (200 body) or an int status code.
    """

    def __init__(
        self,
        index: dict[str, Any] | int,
        documents: dict[str, bytes | int] | None = None,
    ) -> None:
        self.index = index
        self.documents = documents or {}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/titles.json"):
            if isinstance(self.index, int):
                return httpx.Response(self.index)
            return httpx.Response(200, json=self.index)

        match = _DOCUMENT_PATH.search(path)
        if match:
            body = self.documents.get(match.group("unit"), 404)
            if isinstance(body, int):
                return httpx.Response(body)
            return httpx.Response(200, content=body)

        return httpx.Response(404)

    def document_requests(self) -> list[str]:
        return [r.url.path for r in self.requests if r.url.path.endswith(".xml")]


@pytest.fixture
def source_config() -> SourceConfig:
    """Publisher config with no retry delay."""
    return SourceConfig(
        base_url="https://ecfr.test",
        max_connections=4,
        retry_count=3,
        retry_delay_seconds=0,
    )


@pytest.fixture
def make_publisher(
    source_config: SourceConfig,
) -> Callable[[FakeEcfrApi], PublisherClient]:
    """Factory building a PublisherClient backed by a FakeEcfrApi."""

    def factory(api: FakeEcfrApi) -> PublisherClient:
        return PublisherClient(source_config, transport=httpx.MockTransport(api.handler))

    return factory


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[InMemorySnapshotStore, None]:
    yield InMemorySnapshotStore()
