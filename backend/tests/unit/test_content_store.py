import pytest

from edloop.content import models
from edloop.content.models import EntityKind
from edloop.content.postgres_store import PostgresContentStore, build_find_sql, build_where, escape_like
from edloop.content.store import StoreQuery


async def _seed(store, make_record):
	payloads = [
		make_record(EntityKind.NOTE, "n1", minutes=1, title="Calculus I", tags=["Math", "limits"], likes_count=3),
		make_record(EntityKind.NOTE, "n2", minutes=2, title="Cell biology", attachments=[{"name": "Mitosis.pdf", "type": "pdf"}]),
		make_record(EntityKind.NOTE, "n3", minutes=3, title="Algebra", community="c2", likes_count=8),
	]
	for payload in payloads:
		await store.save(EntityKind.NOTE, models.Note.model_validate(payload))


@pytest.mark.asyncio
async def test_memory_store_populates_relations(platform, make_record):
	await _seed(platform, make_record)

	note = await platform.find_by_id(EntityKind.NOTE, "n3")

	assert isinstance(note.author, models.EntityRef)
	assert note.author.display_name == "Ada Lovelace"
	assert note.community.display_name == "Chemistry"


@pytest.mark.asyncio
async def test_memory_store_text_matching_covers_arrays(platform, make_record):
	await _seed(platform, make_record)
	fields = ("title", "tags[*]", "attachments[*].name")

	by_tag = await platform.find(EntityKind.NOTE, StoreQuery(text="math", text_fields=fields))
	by_attachment = await platform.find(EntityKind.NOTE, StoreQuery(text="MITOSIS", text_fields=fields))

	assert [note.id for note in by_tag] == ["n1"]
	assert [note.id for note in by_attachment] == ["n2"]


@pytest.mark.asyncio
async def test_memory_store_equality_sort_and_paging(platform, make_record):
	await _seed(platform, make_record)
	query = StoreQuery(equals={"community": "c1", "is_public": True}, sort=(("created_at", -1),))

	assert [note.id for note in await platform.find(EntityKind.NOTE, query)] == ["n2", "n1"]
	assert await platform.count(EntityKind.NOTE, query) == 2

	popular = StoreQuery(sort=(("likes_count", -1),), offset=1, limit=1)
	assert [note.id for note in await platform.find(EntityKind.NOTE, popular)] == ["n1"]


@pytest.mark.asyncio
async def test_memory_store_delete_and_iterate(platform, make_record):
	await _seed(platform, make_record)

	assert await platform.delete_by_id(EntityKind.NOTE, "n2") is True
	assert await platform.delete_by_id(EntityKind.NOTE, "n2") is False

	chunks = [[note.id for note in chunk] async for chunk in platform.iter_all(EntityKind.NOTE, chunk_size=1)]
	assert chunks == [["n1"], ["n3"]]


def test_escape_like_escapes_wildcards():
	assert escape_like("100%_a\\b") == "100\\%\\_a\\\\b"


def test_postgres_query_builder_uses_parameters():
	query = StoreQuery(
		text="qu%",
		text_fields=("title", "tags[*]"),
		equals={"is_public": True, "community": "c1"},
		sort=(("likes_count", -1), ("created_at", -1)),
		offset=20,
		limit=10,
	)

	sql, params = build_find_sql(EntityKind.NOTE, query)

	assert params == ["note", "$.is_public", "true", "$.community", "c1", "%qu\\%%", "$.title", "$.tags[*]", 10, 20]
	assert "ILIKE $6" in sql
	assert "ORDER BY (body #> '{likes_count}') DESC NULLS LAST, created_at DESC NULLS LAST, id ASC" in sql
	assert sql.endswith("LIMIT $9 OFFSET $10")


def test_postgres_query_builder_rejects_unknown_sort_path():
	with pytest.raises(ValueError):
		build_find_sql(EntityKind.NOTE, StoreQuery(sort=(("title; DROP TABLE content_record", 1),)))


def test_postgres_where_without_text_has_only_kind_and_equality():
	where, params = build_where(EntityKind.USER, StoreQuery())

	assert where == "kind = $1"
	assert params == ["user"]


class _FakeConn:
	def __init__(self, row=None, status="DELETE 1"):
		self.row = row
		self.status = status
		self.executed = []

	async def fetchrow(self, sql, *params):
		self.executed.append((sql, params))
		return self.row

	async def execute(self, sql, *params):
		self.executed.append((sql, params))
		return self.status


class _FakePool:
	def __init__(self, conn):
		self.conn = conn

	def acquire(self):
		pool = self

		class _Ctx:
			async def __aenter__(self):
				return pool.conn

			async def __aexit__(self, exc_type, exc, tb):
				return False

		return _Ctx()


@pytest.mark.asyncio
async def test_postgres_store_find_and_delete_by_id():
	conn = _FakeConn(row=None, status="DELETE 0")

	async def _provider():
		return _FakePool(conn)

	store = PostgresContentStore(pool_provider=_provider)

	assert await store.find_by_id(EntityKind.NOTE, "missing") is None
	assert await store.delete_by_id(EntityKind.NOTE, "missing") is False
	assert conn.executed[0][1] == ("note", "missing")
