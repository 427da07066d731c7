import json
import logging
from urllib.parse import parse_qs

import httpx
import pytest

from edloop.content.models import EntityKind
from edloop.search.clients import SearchIndexClient
from edloop.search.exceptions import BackendError
from edloop.search.transports import AlgoliaTransport, MemoryIndexTransport
from edloop.settings import settings


class _BrokenTransport(MemoryIndexTransport):
	async def save_object(self, index, document):
		raise RuntimeError("index offline")

	async def search(self, index, query, params):
		raise BackendError("index_unreachable")


@pytest.mark.asyncio
async def test_unconfigured_client_returns_none(unconfigured_client):
	assert unconfigured_client.is_configured() is False
	assert await unconfigured_client.save(EntityKind.NOTE, {"objectID": "n1"}) is None
	assert await unconfigured_client.delete(EntityKind.NOTE, "n1") is None
	assert await unconfigured_client.bulk_save(EntityKind.NOTE, [{"objectID": "n1"}]) is None
	assert await unconfigured_client.search(EntityKind.NOTE, "quantum", "", page=1, limit=10) is None


def test_from_settings_requires_both_credentials():
	partial = settings.model_copy(update={"search_app_id": "app", "search_api_key": None})
	complete = settings.model_copy(update={"search_app_id": "app", "search_api_key": "key"})

	assert SearchIndexClient.from_settings(partial).is_configured() is False
	client = SearchIndexClient.from_settings(complete)
	assert client.is_configured() is True
	assert client.index_name(EntityKind.NOTE) == settings.search_index_notes


@pytest.mark.asyncio
async def test_transport_failures_are_logged_not_raised(caplog):
	client = SearchIndexClient(transport=_BrokenTransport())
	caplog.set_level(logging.WARNING, logger="edloop.search.clients")

	assert await client.save(EntityKind.NOTE, {"objectID": "n1"}) is None
	assert await client.search(EntityKind.NOTE, "quantum", "", page=1, limit=10) is None

	messages = [record.getMessage() for record in caplog.records]
	assert "search.index.save_failed" in messages
	assert "search.index.search_failed" in messages


@pytest.mark.asyncio
async def test_search_uses_one_based_pages(index_client, memory_transport):
	documents = [{"objectID": f"n{i}", "title": f"Quantum {i}"} for i in range(3)]
	await index_client.bulk_save(EntityKind.NOTE, documents)

	page = await index_client.search(EntityKind.NOTE, "quantum", "", page=2, limit=2)

	assert page.page == 2
	assert page.total_hits == 3
	assert page.total_pages == 2
	assert [hit["objectID"] for hit in page.hits] == ["n2"]
	assert set(memory_transport.documents(settings.search_index_notes)) == {"n0", "n1", "n2"}


@pytest.mark.asyncio
async def test_algolia_transport_sends_restrictive_query():
	captured = {}

	def _handler(request: httpx.Request) -> httpx.Response:
		captured["url"] = str(request.url)
		captured["headers"] = request.headers
		captured["body"] = json.loads(request.content)
		return httpx.Response(200, json={"hits": [{"objectID": "n1"}], "nbHits": 1, "page": 0, "nbPages": 1, "hitsPerPage": 5})

	http = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
	transport = AlgoliaTransport(app_id="edloopapp", api_key="secret", http=http)
	client = SearchIndexClient(transport=transport, index_names={EntityKind.NOTE: "notes"})

	page = await client.search(EntityKind.NOTE, "quantum", 'category:"lecture"', page=1, limit=5)
	await http.aclose()

	assert captured["url"] == "https://edloopapp.algolia.net/1/indexes/notes/query"
	assert captured["headers"]["X-Algolia-Application-Id"] == "edloopapp"
	assert captured["headers"]["X-Algolia-API-Key"] == "secret"
	params = parse_qs(captured["body"]["params"])
	assert params["query"] == ["quantum"]
	assert params["filters"] == ['category:"lecture"']
	assert params["typoTolerance"] == ["min"]
	assert params["removeWordsIfNoResults"] == ["none"]
	assert params["optionalWords"] == ["[]"]
	assert params["hitsPerPage"] == ["5"]
	assert params["page"] == ["0"]
	assert page.page == 1
	assert page.hits == [{"objectID": "n1"}]


@pytest.mark.asyncio
async def test_algolia_transport_maps_http_errors():
	http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"message": "boom"})))
	transport = AlgoliaTransport(app_id="APP", api_key="secret", http=http)

	with pytest.raises(BackendError) as excinfo:
		await transport.save_object("notes", {"objectID": "n1"})
	await http.aclose()

	assert excinfo.value.detail == "index_http_500"


@pytest.mark.asyncio
async def test_algolia_batch_actions():
	bodies = []

	def _handler(request: httpx.Request) -> httpx.Response:
		bodies.append((request.method, request.url.path, json.loads(request.content)))
		return httpx.Response(200, json={"taskID": 1})

	http = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
	transport = AlgoliaTransport(app_id="APP", api_key="secret", http=http)
	await transport.save_objects("notes", [{"objectID": "n1"}])
	await transport.delete_objects("notes", ["n2"])
	await http.aclose()

	assert bodies[0] == ("POST", "/1/indexes/notes/batch", {"requests": [{"action": "updateObject", "body": {"objectID": "n1"}}]})
	assert bodies[1][2]["requests"][0] == {"action": "deleteObject", "body": {"objectID": "n2"}}
