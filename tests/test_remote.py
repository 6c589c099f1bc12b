"""Tests for remote page loading."""

import asyncio
import logging

import pytest

from reflex_datatable.exceptions import RemoteFetchError
from reflex_datatable.models import FetchRequest, FetchResponse
from reflex_datatable.remote import RemoteFetchAdapter


def _request(page=0, rows_per_page=10):
    return FetchRequest(page=page, rows_per_page=rows_per_page)


def test_successful_load():
    async def fetch(request):
        return {"data": [{"id": 1}], "totalCount": 31}

    adapter = RemoteFetchAdapter(fetch)
    assert asyncio.run(adapter.load(_request())) is True
    assert adapter.data == ({"id": 1},)
    assert adapter.total_count == 31
    assert adapter.loading is False
    assert adapter.last_error is None


def test_stale_response_is_discarded():
    async def scenario():
        release = asyncio.Event()

        async def fetch(request):
            if request.page == 0:
                await release.wait()
                return {"data": [{"id": "old"}], "totalCount": 1}
            return {"data": [{"id": "new"}], "totalCount": 1}

        adapter = RemoteFetchAdapter(fetch)
        slow = asyncio.create_task(adapter.load(_request(page=0)))
        await asyncio.sleep(0)
        fast = await adapter.load(_request(page=1))
        release.set()
        return await slow, fast, adapter

    slow, fast, adapter = asyncio.run(scenario())
    assert fast is True
    assert slow is False
    assert adapter.data == ({"id": "new"},)
    assert adapter.last_request.page == 1


def test_failure_keeps_the_previous_page(caplog):
    responses = [{"data": [{"id": 1}], "totalCount": 1}, RuntimeError("boom")]

    async def fetch(request):
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    adapter = RemoteFetchAdapter(fetch)
    asyncio.run(adapter.load(_request()))
    with caplog.at_level(logging.ERROR, logger="reflex_datatable.remote"):
        assert asyncio.run(adapter.load(_request(page=1))) is False

    assert adapter.data == ({"id": 1},)
    assert adapter.total_count == 1
    assert isinstance(adapter.last_error, RemoteFetchError)
    assert isinstance(adapter.last_error.__cause__, RuntimeError)
    assert adapter.last_error.request.page == 1
    assert adapter.loading is False
    assert "boom" in caplog.text


@pytest.mark.parametrize(
    "payload",
    [
        {"data": "not rows", "totalCount": 1},
        {"data": [], "totalCount": -1},
        {"data": [], "totalCount": "3"},
        {"rows": []},
        None,
    ],
)
def test_malformed_response_is_a_failure(payload):
    async def fetch(request):
        return payload

    adapter = RemoteFetchAdapter(fetch)
    assert asyncio.run(adapter.load(_request())) is False
    assert isinstance(adapter.last_error, RemoteFetchError)
    assert adapter.data == ()


def test_inconsistent_response_is_shown_with_a_warning(caplog):
    async def fetch(request):
        return FetchResponse(data=[{"id": i} for i in range(5)], total_count=2)

    adapter = RemoteFetchAdapter(fetch)
    with caplog.at_level(logging.WARNING, logger="reflex_datatable.remote"):
        assert asyncio.run(adapter.load(_request(rows_per_page=3))) is True

    assert len(adapter.data) == 5
    assert adapter.total_count == 2
    assert "5 rows for a page of 3" in caplog.text
    assert "smaller than the 5 rows" in caplog.text


def test_request_payload_uses_camel_case():
    payload = FetchRequest(page=2, rows_per_page=25).to_dict()
    assert payload["rowsPerPage"] == 25
    assert payload["sort"] == {"column": None, "direction": None}
    assert payload["search"] == {"term": "", "fields": []}
    assert "advancedSearch" not in payload
