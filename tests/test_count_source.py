import asyncio
import json

import httpx

from skills.hiring_funnel.cache import ResultCache
from skills.hiring_funnel.months import month_window
from skills.hiring_funnel.sources.ats_http import AtsClient, build_channel_count_payload, build_stage_count_payload
from skills.hiring_funnel.sources.count_source import RemoteCountSource, parse_stage_counts
from skills.hiring_funnel.types import FailureKind, StatusFilter

WINDOW = month_window(2024, 3)


def _run(handler, scenario, cache=None):
    async def go():
        async with AtsClient("tok", org_id="org-1", transport=httpx.MockTransport(handler)) as client:
            return await scenario(RemoteCountSource(client, cache))

    return asyncio.run(go())


def test_stage_payload_shape():
    payload = build_stage_count_payload("job-1", WINDOW, StatusFilter.REJECTED)
    assert payload["JobIds"] == {"Value": ["job-1"], "FilterType": "EQUALS"}
    assert payload["StageChangedDate"]["Value"] == {
        "StartDate": "2024-03-01T00:00:00.000Z",
        "EndDate": "2024-03-31T23:59:59.999Z",
    }
    assert payload["StageValue"] == 1
    assert payload["FetchOnlyActiveCandidates"] is False


def test_channel_payload_omits_empty_source_name():
    payload = build_channel_count_payload(WINDOW, "RecruitmentPartners", "", StatusFilter.ACTIVE)
    assert payload["SourceV2"]["Value"] == {"SourceCategory": ["RecruitmentPartners"], "SourceName": None}
    assert payload["StageValue"] == -1
    assert payload["FetchOnlyActiveCandidates"] is True


def test_parse_stage_counts_reads_stage_map():
    reply = parse_stage_counts({"TotalFilteredCount": 5, "StagesCount": {"0": 3, "14": "2"}})
    assert reply.total == 5
    assert reply.stages == {"0": 3, "14": 2}


def test_stage_counts_are_cached_per_key():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"TotalFilteredCount": 3, "StagesCount": {"0": 3}})

    async def scenario(source):
        first = await source.fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
        second = await source.fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
        other = await source.fetch_stage_counts("job-1", WINDOW, StatusFilter.REJECTED)
        return first, second, other

    first, second, other = _run(handler, scenario, ResultCache())

    assert first.ok and second.ok and other.ok
    assert first.value == second.value
    assert len(calls) == 2
    assert calls[0].url.path == "/api/v3/job/job-1/filteredcount"
    assert calls[0].headers["Authorization"] == "Bearer tok"
    assert json.loads(calls[0].content)["StageValue"] == -1


def test_auth_failure_is_tagged_and_not_cached():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, text="expired")

    async def scenario(source):
        first = await source.fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
        second = await source.fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
        return first, second

    cache = ResultCache()
    first, second = _run(handler, scenario, cache)

    assert first.failure is FailureKind.AUTH
    assert first.value.total == 0
    assert first.value.stages == {}
    assert second.failure is FailureKind.AUTH
    assert len(calls) == 2
    assert len(cache) == 0


def test_server_error_and_network_error_are_transport_failures():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    def network_error(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async def scenario(source):
        return await source.fetch_channel_count("job-1", WINDOW, "JobBoards", "naukri", StatusFilter.ACTIVE)

    for handler in (server_error, network_error):
        result = _run(handler, scenario)
        assert result.failure is FailureKind.TRANSPORT
        assert result.value == 0


def test_channel_count_reads_total():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["SourceV2"]["Value"]["SourceName"] == ["linkedin"]
        return httpx.Response(200, json={"TotalFilteredCount": 4})

    async def scenario(source):
        return await source.fetch_channel_count("job-1", WINDOW, "JobBoards", "linkedin", StatusFilter.ACTIVE)

    result = _run(handler, scenario)
    assert result.ok
    assert result.value == 4


def test_probe_hits_partial_jobs_endpoint():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.headers["Authorization"] == "Bearer tok":
            return httpx.Response(403)
        return httpx.Response(200, json=[])

    async def scenario(source):
        return await source.probe()

    result = _run(handler, scenario)
    assert seen == ["/api/org/org-1/jobs/partialdata"]
    assert result.failure is FailureKind.AUTH


def test_scoped_sources_do_not_share_cached_counts():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.headers["Authorization"])
        return httpx.Response(200, json={"TotalFilteredCount": 3, "StagesCount": {"0": 3}})

    cache = ResultCache()

    async def go():
        async with AtsClient("tok", org_id="org-1", transport=httpx.MockTransport(handler)) as client:
            await RemoteCountSource(client, cache, scope="a").fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
            await RemoteCountSource(client, cache, scope="a").fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)
            await RemoteCountSource(client, cache, scope="b").fetch_stage_counts("job-1", WINDOW, StatusFilter.ACTIVE)

    asyncio.run(go())
    assert len(calls) == 2
    assert len(cache) == 2
