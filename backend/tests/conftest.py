import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from edloop.content.models import EntityKind, model_for
from edloop.content.store import MemoryContentStore
from edloop.main import create_app
from edloop.search.clients import SearchIndexClient
from edloop.search.transports import MemoryIndexTransport
from edloop.settings import settings

ADMIN_TOKEN = "test-admin-token"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

_DEFAULTS = {
	EntityKind.NOTE: {
		"title": "Untitled note",
		"content": "Lecture summary",
		"subject": "General",
		"author": "u1",
		"community": "c1",
	},
	EntityKind.POST: {"title": "Untitled post", "content": "", "author": "u1", "community": "c1"},
	EntityKind.USER: {"username": "user"},
	EntityKind.GROUP: {"name": "Study group", "creator": "u1"},
	EntityKind.COMMUNITY: {"name": "community"},
}


def _make_record(kind: EntityKind, record_id: str, *, minutes: int = 0, **fields) -> dict:
	"""Build a canonical record payload; ``minutes`` offsets created_at from a fixed base."""
	payload = {"id": record_id, "created_at": BASE_TIME + timedelta(minutes=minutes)}
	payload.update(_DEFAULTS[EntityKind(kind)])
	payload.update(fields)
	return payload


@pytest.fixture(autouse=True)
def force_test_settings():
	original_token = settings.obs_admin_token
	original_public = settings.obs_metrics_public
	settings.obs_admin_token = ADMIN_TOKEN
	settings.obs_metrics_public = False
	try:
		yield
	finally:
		settings.obs_admin_token = original_token
		settings.obs_metrics_public = original_public


@pytest.fixture
def make_record():
	return _make_record


@pytest.fixture
def memory_transport():
	return MemoryIndexTransport()


@pytest.fixture
def index_client(memory_transport):
	return SearchIndexClient.from_settings(settings, transport=memory_transport)


@pytest.fixture
def unconfigured_client():
	return SearchIndexClient(transport=None)


@pytest.fixture
def store():
	return MemoryContentStore()


@pytest_asyncio.fixture
async def platform(store):
	"""Seed the users and communities that notes and posts point at."""
	seeds = [
		(EntityKind.USER, _make_record(EntityKind.USER, "u1", username="ada", display_name="Ada Lovelace")),
		(EntityKind.USER, _make_record(EntityKind.USER, "u2", username="quantum_kid", display_name="Quantum Kid")),
		(EntityKind.COMMUNITY, _make_record(EntityKind.COMMUNITY, "c1", name="physics", display_name="Physics")),
		(EntityKind.COMMUNITY, _make_record(EntityKind.COMMUNITY, "c2", name="chemistry", display_name="Chemistry")),
	]
	for kind, payload in seeds:
		await store.save(kind, model_for(kind).model_validate(payload))
	return store


@pytest.fixture
def app(store, index_client):
	return create_app(store=store, index_client=index_client)


@pytest_asyncio.fixture
async def api_client(app):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
