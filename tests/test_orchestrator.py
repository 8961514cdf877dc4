from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import pytest

from adaptive_fetch.config import EngineConfig, FetchConfig
from adaptive_fetch.errors import ErrorKind, TransportError
from adaptive_fetch.models import CountProvenance, Strategy
from adaptive_fetch.orchestrator import FetchOrchestrator
from adaptive_fetch.sources.auth import Credentials
from adaptive_fetch.sources.base import HttpRequest, HttpResponse
from adaptive_fetch.store import LocalBlobStore
from conftest import FakeTransport, json_response, paged_api, query_of, text_response

GITHUB = "https://api.github.com/repos/o/r/issues"


def big_api(total: int):
    """GitHub-style API that reports ``total`` in a header and honours per_page."""

    def handler(request: HttpRequest) -> HttpResponse:
        q = query_of(request.url)
        size = int(q.get("per_page", "30"))
        page = int(q.get("page", "1"))
        start = (page - 1) * size
        n = max(0, min(size, total - start))
        return json_response(
            [{"id": start + i, "owner": {"value": f"u{i}", "link": "http://x"}} for i in range(n)],
            headers={"X-Total-Count": str(total)},
        )

    return handler


def make(engine: EngineConfig, transport: FakeTransport, **kwargs) -> FetchOrchestrator:
    return FetchOrchestrator(engine, transport=transport, sleep=lambda s: None, **kwargs)


def test_direct_request_uses_url_unchanged(engine_config: EngineConfig) -> None:
    url = GITHUB + "?per_page=10&state=open"
    transport = FakeTransport(big_api(50))
    result = make(engine_config, transport).fetch(FetchConfig(url=url))

    assert result.ok
    assert transport.urls == [url]
    assert result.strategy == Strategy.DIRECT
    assert result.record_set.count == 10
    assert result.metadata["fetchStrategy"] == "direct-user-request"
    assert result.metadata["totalRecordsInAPI"] == 50
    assert result.metadata["isPartialResult"] is True
    assert result.metadata["userPaginationParams"] == {"per_page": "10"}


def test_direct_request_without_count_is_not_partial(engine_config: EngineConfig) -> None:
    url = GITHUB + "?per_page=2"
    transport = FakeTransport(responses=[json_response([{"a": 1}, {"a": 2}])])
    result = make(engine_config, transport).fetch(FetchConfig(url=url))
    assert result.metadata["isPartialResult"] is False
    assert result.estimate.provenance == CountProvenance.INFERRED


def test_pagination_params_in_config_make_request_direct(engine_config: EngineConfig) -> None:
    transport = FakeTransport(big_api(50))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB, pagination_params={"per_page": 5}))
    assert result.strategy == Strategy.DIRECT
    assert len(transport.requests) == 1
    assert query_of(transport.urls[0]) == {"per_page": "5"}


def test_complete_crawl(engine_config: EngineConfig) -> None:
    transport = FakeTransport(paged_api([100, 100, 40]))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))

    assert result.ok
    assert result.strategy == Strategy.COMPLETE
    assert result.record_set.count == 240
    assert len(transport.requests) == 3
    meta = result.metadata
    assert meta["comparisonCoverage"] == 100.0
    assert meta["pagesFetched"] == 3
    assert meta["paginationSafetyLimitHit"] is False
    assert meta["isExhaustive"] is True
    # probe page length was only a lower bound
    assert meta["totalRecordsInAPI"] == 240
    assert meta["countProvenance"] == "inferred-array-length"


def test_complete_crawl_hits_safety_limit() -> None:
    engine = EngineConfig(inter_page_delay_ms=0, max_pages=3, page_size=10)

    def always_full(request: HttpRequest) -> HttpResponse:
        return json_response([{"n": i} for i in range(10)])

    transport = FakeTransport(always_full)
    result = make(engine, transport).fetch(FetchConfig(url=GITHUB))
    assert result.ok
    assert len(transport.requests) == 3
    assert result.record_set.count == 30
    assert result.metadata["paginationSafetyLimitHit"] is True
    assert result.metadata["isExhaustive"] is False


def test_sampled_fetch(engine_config: EngineConfig) -> None:
    transport = FakeTransport(big_api(50000))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))

    assert result.ok
    assert result.strategy == Strategy.SAMPLED
    assert len(transport.requests) == 2
    assert query_of(transport.urls[1]) == {"per_page": "10000", "page": "1"}
    assert result.record_set.count == 10000
    meta = result.metadata
    assert meta["sampleSize"] == 10000
    assert meta["totalRecordsInAPI"] == 50000
    assert meta["countProvenance"] == "header"
    assert meta["comparisonCoverage"] == 20.0
    assert meta["isPartialResult"] is True
    assert meta["isExhaustive"] is False


def test_sample_request_failure_keeps_first_page(engine_config: EngineConfig) -> None:
    healthy = big_api(50000)

    def handler(request: HttpRequest) -> HttpResponse:
        if query_of(request.url).get("per_page") == "10000":
            return json_response({"error": "too large"}, status=500)
        return healthy(request)

    transport = FakeTransport(handler)
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))

    assert result.ok
    assert result.strategy == Strategy.SAMPLED
    assert len(transport.requests) == 2
    assert result.record_set.count == 100
    meta = result.metadata
    assert meta["httpStatus"] == 200
    assert meta["isPartialResult"] is True
    assert meta["sampleError"]["kind"] == "HTTP_ERROR"
    assert meta["sampleError"]["http_status"] == 500


def test_sample_error_is_none_on_success(engine_config: EngineConfig) -> None:
    result = make(engine_config, FakeTransport(big_api(50000))).fetch(FetchConfig(url=GITHUB))
    assert result.metadata["sampleError"] is None


@pytest.mark.parametrize(
    "payload, expected",
    [
        ([{"id": 1}, {"id": 2}, {"id": 3}], "Array (3 items)"),
        ({"items": [{"id": 1}, {"id": 2}], "total_count": 2}, "Object (2 properties)"),
    ],
)
def test_data_type_describes_body_shape(engine_config: EngineConfig, payload, expected: str) -> None:
    transport = FakeTransport(responses=[json_response(payload)])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert result.ok
    assert result.metadata["dataType"] == expected


def test_repeated_query_keys_reach_the_api(engine_config: EngineConfig) -> None:
    transport = FakeTransport(big_api(3))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB + "?state=open&state=closed"))

    assert result.ok
    pairs = parse_qsl(urlsplit(transport.urls[0]).query)
    assert ("state", "open") in pairs
    assert ("state", "closed") in pairs
    assert ("per_page", "100") in pairs


def test_records_are_flattened(engine_config: EngineConfig) -> None:
    transport = FakeTransport(big_api(3))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    first = result.record_set.records[0]
    assert first == {"id": 0, "owner_value": "u0", "owner_link": "http://x"}
    assert "owner_value" in result.preview["availableFields"]


def test_force_sample_on_small_dataset(engine_config: EngineConfig) -> None:
    transport = FakeTransport(big_api(300))
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB, force_sample=True))
    assert result.strategy == Strategy.SAMPLED
    assert result.metadata["sampleSize"] == 100
    assert result.record_set.count == 100


def test_reported_total_below_observed_is_adjusted(engine_config: EngineConfig) -> None:
    body = {"total": 2, "result": [{"i": i} for i in range(5)]}
    transport = FakeTransport(responses=[json_response(body)])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert result.record_set.count == 5
    assert result.estimate.value == 5
    assert result.estimate.provenance == CountProvenance.INFERRED


def test_empty_collection_is_success(engine_config: EngineConfig) -> None:
    transport = FakeTransport(responses=[json_response({"result": []})])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert result.ok
    assert result.record_set.count == 0
    assert result.metadata["recordsForComparison"] == 0
    assert result.preview["totalRecords"] == 0


@pytest.mark.parametrize(
    "status,kind",
    [(401, ErrorKind.AUTHENTICATION_REQUIRED), (403, ErrorKind.ACCESS_DENIED), (500, ErrorKind.HTTP_ERROR)],
)
def test_status_errors_are_failures(engine_config: EngineConfig, status: int, kind: ErrorKind) -> None:
    transport = FakeTransport(responses=[json_response({"error": "x"}, status=status)])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert not result.ok
    assert result.error_kind == kind
    assert result.http_status == status
    assert result.hints
    assert result.error_payload()["kind"] == kind.value


def test_validation_failure_is_reported(engine_config: EngineConfig) -> None:
    transport = FakeTransport(responses=[text_response("<!doctype html><html></html>")])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert not result.ok
    assert result.error_kind == ErrorKind.HTML_CONTENT
    assert "HTML" in result.details


def test_transport_error_is_failure(engine_config: EngineConfig) -> None:
    transport = FakeTransport(responses=[TransportError(kind=ErrorKind.CONNECTION_REFUSED, message="refused")])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert not result.ok
    assert result.error_kind == ErrorKind.CONNECTION_REFUSED
    assert result.metadata["url"] == GITHUB


def test_unexpected_error_is_returned_not_raised(engine_config: EngineConfig) -> None:
    transport = FakeTransport(responses=[RuntimeError("boom")])
    result = make(engine_config, transport).fetch(FetchConfig(url=GITHUB))
    assert not result.ok
    assert result.error_kind == ErrorKind.UNEXPECTED_ERROR
    assert "boom" in result.details


def test_auth_headers_and_timeout(engine_config: EngineConfig) -> None:
    transport = FakeTransport(responses=[json_response([])])
    creds = Credentials(token="t0k")
    make(engine_config, transport).fetch(
        FetchConfig(url=GITHUB, credentials=creds, headers={"X-Trace": "1"})
    )
    sent = transport.requests[0].headers
    assert sent["Authorization"] == "Bearer t0k"
    assert sent["X-Trace"] == "1"
    assert transport.timeouts == [60.0]


def test_results_are_stored(engine_config: EngineConfig, tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    transport = FakeTransport(big_api(3))
    result = make(engine_config, transport, store=store).fetch(FetchConfig(url=GITHUB))

    records, metadata = store.get(result.data_id)
    assert len(records) == 3
    assert metadata["dataId"] == result.data_id
    assert (tmp_path / f"{result.data_id}_metadata.json").exists()


class TestProbe:
    def test_probe_success_requests_one_record(self, engine_config: EngineConfig) -> None:
        transport = FakeTransport(big_api(10))
        probe = make(engine_config, transport).probe(FetchConfig(url=GITHUB))
        assert probe.connection_ok and probe.authentication_ok
        assert query_of(transport.urls[0]) == {"per_page": "1", "page": "1"}
        assert transport.timeouts == [30.0]
        assert probe.auth_type == "No Authentication"

    def test_probe_keeps_caller_pagination(self, engine_config: EngineConfig) -> None:
        url = GITHUB + "?per_page=3"
        transport = FakeTransport(big_api(10))
        make(engine_config, transport).probe(FetchConfig(url=url))
        assert transport.urls == [url]

    def test_probe_unauthorized(self, engine_config: EngineConfig) -> None:
        transport = FakeTransport(responses=[json_response({}, status=401)])
        probe = make(engine_config, transport).probe(FetchConfig(url=GITHUB, credentials=Credentials(token="x")))
        assert probe.connection_ok
        assert not probe.authentication_ok
        assert probe.reason == ErrorKind.AUTHENTICATION_REQUIRED
        assert probe.auth_type == "Bearer Token Authentication"

    def test_probe_empty_body_is_a_warning(self, engine_config: EngineConfig) -> None:
        transport = FakeTransport(responses=[text_response("")])
        probe = make(engine_config, transport).probe(FetchConfig(url=GITHUB))
        assert probe.connection_ok and probe.authentication_ok
        assert probe.warning
        assert probe.suggestions

    def test_probe_html_login_page(self, engine_config: EngineConfig) -> None:
        transport = FakeTransport(responses=[text_response("<html>login</html>", content_type="text/html")])
        probe = make(engine_config, transport).probe(FetchConfig(url=GITHUB))
        assert not probe.connection_ok
        assert not probe.authentication_ok
        assert probe.reason == ErrorKind.HTML_CONTENT_TYPE

    def test_probe_transport_failure(self, engine_config: EngineConfig) -> None:
        transport = FakeTransport(responses=[TransportError(kind=ErrorKind.DNS_FAILURE, message="no host")])
        probe = make(engine_config, transport).probe(FetchConfig(url=GITHUB))
        assert not probe.connection_ok
        assert probe.status is None
        assert probe.to_dict()["reason"] == "DNS_FAILURE"
