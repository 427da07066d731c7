import logging

import pytest

from edloop.content import models
from edloop.content.models import EntityKind
from edloop.search.clients import SearchIndexClient
from edloop.search.sync import SearchSync
from edloop.search.transports import MemoryIndexTransport
from edloop.settings import settings


class _FlakyBulkTransport(MemoryIndexTransport):
	"""Fails the n-th bulk save call."""

	def __init__(self, fail_on: int) -> None:
		super().__init__()
		self.fail_on = fail_on
		self.bulk_calls = 0

	async def save_objects(self, index, documents):
		self.bulk_calls += 1
		if self.bulk_calls == self.fail_on:
			raise RuntimeError("index rejected batch")
		return await super().save_objects(index, documents)


class _OfflineTransport(MemoryIndexTransport):
	async def save_object(self, index, document):
		raise RuntimeError("connection refused")

	async def delete_object(self, index, object_id):
		raise RuntimeError("connection refused")


def _notes_index(memory_transport):
	return memory_transport.documents(settings.search_index_notes)


@pytest.mark.asyncio
async def test_public_note_is_indexed_and_private_note_removed(index_client, memory_transport, make_record):
	sync = SearchSync(index_client=index_client)
	payload = make_record(EntityKind.NOTE, "n1", title="Quantum Mechanics")

	assert await sync.on_create(EntityKind.NOTE, payload) is True
	assert _notes_index(memory_transport)["n1"]["title"] == "Quantum Mechanics"

	assert await sync.on_update(EntityKind.NOTE, {**payload, "is_public": False}) is True
	assert "n1" not in _notes_index(memory_transport)


@pytest.mark.asyncio
async def test_private_note_is_never_written(index_client, memory_transport, make_record):
	sync = SearchSync(index_client=index_client)

	await sync.on_create(EntityKind.NOTE, make_record(EntityKind.NOTE, "n2", is_public=False))

	assert _notes_index(memory_transport) == {}


@pytest.mark.asyncio
async def test_delete_removes_document(index_client, memory_transport, make_record):
	sync = SearchSync(index_client=index_client)
	await sync.on_create(EntityKind.USER, make_record(EntityKind.USER, "u1", username="ada"))

	assert await sync.on_delete(EntityKind.USER, "u1") is True
	assert memory_transport.documents(settings.search_index_users) == {}


@pytest.mark.asyncio
async def test_sync_is_a_no_op_without_index(unconfigured_client, make_record):
	sync = SearchSync(index_client=unconfigured_client)

	assert await sync.on_create(EntityKind.NOTE, make_record(EntityKind.NOTE, "n1")) is False
	assert await sync.on_delete(EntityKind.NOTE, "n1") is False
	report = await sync.bulk_sync(EntityKind.NOTE, [make_record(EntityKind.NOTE, "n1")])
	assert report.configured is False
	assert report.batches == []


@pytest.mark.asyncio
async def test_index_failures_do_not_raise(make_record, caplog):
	sync = SearchSync(index_client=SearchIndexClient(transport=_OfflineTransport()))
	caplog.set_level(logging.WARNING)

	assert await sync.on_create(EntityKind.NOTE, make_record(EntityKind.NOTE, "n1")) is False
	assert await sync.on_delete(EntityKind.NOTE, "n1") is False

	messages = [record.getMessage() for record in caplog.records]
	assert messages.count("search.sync.failed") == 2


@pytest.mark.asyncio
async def test_malformed_record_is_skipped(index_client, memory_transport, caplog):
	sync = SearchSync(index_client=index_client)
	caplog.set_level(logging.WARNING, logger="edloop.search.sync")

	assert await sync.on_create(EntityKind.NOTE, {"id": "bad"}) is False

	assert _notes_index(memory_transport) == {}
	assert [record.getMessage() for record in caplog.records] == ["search.sync.projection_failed"]


@pytest.mark.asyncio
async def test_notify_schedules_background_task(index_client, memory_transport, make_record):
	sync = SearchSync(index_client=index_client)

	task = sync.notify_created(EntityKind.NOTE, make_record(EntityKind.NOTE, "n1"))
	assert task is not None
	await sync.drain()

	assert sync.pending == 0
	assert task.result() is True
	assert "n1" in _notes_index(memory_transport)


def test_notify_without_event_loop_is_dropped(index_client, make_record):
	sync = SearchSync(index_client=index_client)

	assert sync.notify_deleted(EntityKind.NOTE, "n1") is None


@pytest.mark.asyncio
async def test_bulk_sync_reports_each_batch(make_record, caplog):
	transport = _FlakyBulkTransport(fail_on=2)
	sync = SearchSync(index_client=SearchIndexClient(transport=transport), batch_size=100)
	records = [make_record(EntityKind.NOTE, f"n{i:03d}", minutes=i) for i in range(250)]
	caplog.set_level(logging.WARNING)

	report = await sync.bulk_sync(EntityKind.NOTE, records)

	assert [batch.size for batch in report.batches] == [100, 100, 50]
	assert [batch.ok for batch in report.batches] == [True, False, True]
	assert [batch.indexed for batch in report.batches] == [100, 0, 50]
	assert report.succeeded == 2
	assert report.failed == 1
	assert len(transport.documents("note")) == 150
	failures = [record for record in caplog.records if record.getMessage() == "search.sync.batch_failed"]
	assert len(failures) == 1
	assert failures[0].batch == 2


@pytest.mark.asyncio
async def test_bulk_sync_removes_hidden_and_skips_invalid(index_client, memory_transport, make_record):
	await memory_transport.save_object(settings.search_index_notes, {"objectID": "n2", "title": "stale"})
	sync = SearchSync(index_client=index_client)
	records = [
		models.Note.model_validate(make_record(EntityKind.NOTE, "n1")),
		make_record(EntityKind.NOTE, "n2", is_public=False),
		{"id": "n3"},
	]

	report = await sync.bulk_sync(EntityKind.NOTE, records, batch_size=10)

	batch = report.batches[0]
	assert (batch.indexed, batch.removed, batch.skipped, batch.ok) == (1, 1, 1, True)
	assert set(_notes_index(memory_transport)) == {"n1"}


@pytest.mark.asyncio
async def test_bulk_sync_rejects_non_positive_batch_size(index_client):
	with pytest.raises(ValueError):
		await SearchSync(index_client=index_client).bulk_sync(EntityKind.NOTE, [], batch_size=-1)


class _RaisingIndexClient(SearchIndexClient):
	"""Raises from the client itself rather than returning None."""

	def is_configured(self) -> bool:
		return True

	async def save(self, kind, document):
		raise RuntimeError("client exploded")

	async def delete(self, kind, object_id):
		raise RuntimeError("client exploded")


@pytest.mark.asyncio
async def test_update_against_raising_client_does_not_raise(memory_transport, make_record, caplog):
	sync = SearchSync(index_client=_RaisingIndexClient(transport=memory_transport))
	caplog.set_level(logging.ERROR, logger="edloop.search.sync")

	assert await sync.on_update(EntityKind.NOTE, make_record(EntityKind.NOTE, "n1")) is False
	assert await sync.on_update(EntityKind.NOTE, make_record(EntityKind.NOTE, "n2", is_public=False)) is False
	task = sync.notify_updated(EntityKind.NOTE, make_record(EntityKind.NOTE, "n3"))
	await sync.drain()

	assert task.result() is False
	messages = [record.getMessage() for record in caplog.records]
	assert messages.count("search.sync.unexpected_error") == 3


@pytest.mark.asyncio
async def test_bulk_sync_rejects_zero_batch_size(index_client, make_record):
	sync = SearchSync(index_client=index_client, batch_size=100)

	with pytest.raises(ValueError):
		await sync.bulk_sync(EntityKind.NOTE, [make_record(EntityKind.NOTE, "n1")], batch_size=0)
