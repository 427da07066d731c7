"""Postgres-backed primary store: one JSONB row per canonical record."""

from __future__ import annotations

import json
import re
from collections import defaultdict
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import asyncpg

from edloop.content import models
from edloop.content.models import EntityKind
from edloop.content.store import SortSpec, StoreQuery, as_text, dehydrate
from edloop.infra.postgres import get_pool

PoolProvider = Callable[[], Awaitable[asyncpg.pool.Pool]]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS content_record (
	kind TEXT NOT NULL,
	id TEXT NOT NULL,
	body JSONB NOT NULL,
	created_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (kind, id)
);
CREATE INDEX IF NOT EXISTS content_record_kind_created_idx ON content_record (kind, created_at DESC);
"""

_SORT_PATH = re.compile(r"^[a-z_]+$")


def _jsonpath(path: str) -> str:
	return "$." + path


def escape_like(value: str) -> str:
	return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _order_by(sort: SortSpec) -> str:
	clauses: list[str] = []
	for path, direction in sort:
		if not _SORT_PATH.match(path):
			raise ValueError(f"unsupported sort path {path!r}")
		expression = "created_at" if path == "created_at" else f"(body #> '{{{path}}}')"
		clauses.append(f"{expression} {'DESC' if direction < 0 else 'ASC'} NULLS LAST")
	clauses.append("id ASC")
	return ", ".join(clauses)


def build_where(kind: EntityKind, query: StoreQuery) -> tuple[str, list[Any]]:
	"""Return the WHERE clause and its positional parameters for ``query``."""

	params: list[Any] = [kind.value]
	conditions = ["kind = $1"]

	def _param(value: Any) -> str:
		params.append(value)
		return f"${len(params)}"

	for path, expected in query.equals.items():
		path_ref = _param(_jsonpath(path))
		value_ref = _param(as_text(expected))
		conditions.append(
			f"EXISTS (SELECT 1 FROM jsonb_path_query(body, {path_ref}::jsonpath) AS v(val) WHERE v.val #>> '{{}}' = {value_ref})"
		)
	if query.text and query.text_fields:
		pattern_ref = _param(f"%{escape_like(query.text)}%")
		alternatives = []
		for path in query.text_fields:
			path_ref = _param(_jsonpath(path))
			alternatives.append(
				f"EXISTS (SELECT 1 FROM jsonb_path_query(body, {path_ref}::jsonpath) AS v(val) WHERE v.val #>> '{{}}' ILIKE {pattern_ref})"
			)
		conditions.append("(" + " OR ".join(alternatives) + ")")
	return " AND ".join(conditions), params


def build_find_sql(kind: EntityKind, query: StoreQuery) -> tuple[str, list[Any]]:
	where, params = build_where(kind, query)
	sql = f"SELECT id, body FROM content_record WHERE {where} ORDER BY {_order_by(query.sort)}"
	if query.limit is not None:
		params.append(query.limit)
		sql += f" LIMIT ${len(params)}"
	if query.offset:
		params.append(query.offset)
		sql += f" OFFSET ${len(params)}"
	return sql, params


def _load(body: Any) -> dict[str, Any]:
	return json.loads(body) if isinstance(body, (str, bytes)) else dict(body)


class PostgresContentStore:
	"""asyncpg implementation of the primary store boundary."""

	def __init__(self, *, pool_provider: PoolProvider | None = None) -> None:
		self._pool_provider = pool_provider or get_pool

	async def ensure_schema(self) -> None:
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			await conn.execute(SCHEMA_SQL)

	async def _populate(self, conn: asyncpg.Connection, kind: EntityKind, bodies: list[dict[str, Any]]) -> list[models.Record]:
		relations = models.RELATIONS[kind]
		wanted: dict[EntityKind, set[str]] = defaultdict(set)
		for body in bodies:
			for name, target_kind in relations.items():
				if body.get(name):
					wanted[target_kind].add(str(body[name]))
		targets: dict[tuple[EntityKind, str], dict[str, Any]] = {}
		for target_kind, ids in wanted.items():
			rows = await conn.fetch(
				"SELECT id, body FROM content_record WHERE kind = $1 AND id = ANY($2::text[])",
				target_kind.value,
				list(ids),
			)
			for row in rows:
				targets[(target_kind, row["id"])] = _load(row["body"])
		records = []
		for body in bodies:
			data = dict(body)
			for name, target_kind in relations.items():
				target = targets.get((target_kind, str(data.get(name))))
				if target is not None:
					data[name] = {
						"id": target["id"],
						"display_name": target.get("display_name"),
						"name": target.get("name"),
						"username": target.get("username"),
					}
			records.append(models.model_for(kind).model_validate(data))
		return records

	async def find(self, kind: EntityKind, query: StoreQuery) -> list[models.Record]:
		kind = EntityKind(kind)
		sql, params = build_find_sql(kind, query)
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			rows = await conn.fetch(sql, *params)
			return await self._populate(conn, kind, [_load(row["body"]) for row in rows])

	async def count(self, kind: EntityKind, query: StoreQuery) -> int:
		kind = EntityKind(kind)
		where, params = build_where(kind, query)
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			return int(await conn.fetchval(f"SELECT count(*) FROM content_record WHERE {where}", *params))

	async def find_by_id(self, kind: EntityKind, record_id: str) -> Optional[models.Record]:
		kind = EntityKind(kind)
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT id, body FROM content_record WHERE kind = $1 AND id = $2",
				kind.value,
				str(record_id),
			)
			if row is None:
				return None
			populated = await self._populate(conn, kind, [_load(row["body"])])
			return populated[0]

	async def save(self, kind: EntityKind, record: models.Record) -> models.Record:
		kind = EntityKind(kind)
		body = dehydrate(kind, record)
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO content_record (kind, id, body, created_at)
				VALUES ($1, $2, $3::jsonb, $4)
				ON CONFLICT (kind, id) DO UPDATE SET body = EXCLUDED.body, created_at = EXCLUDED.created_at
				""",
				kind.value,
				body["id"],
				json.dumps(body),
				record.created_at,
			)
			populated = await self._populate(conn, kind, [body])
			return populated[0]

	async def delete_by_id(self, kind: EntityKind, record_id: str) -> bool:
		kind = EntityKind(kind)
		pool = await self._pool_provider()
		async with pool.acquire() as conn:
			status = await conn.execute(
				"DELETE FROM content_record WHERE kind = $1 AND id = $2",
				kind.value,
				str(record_id),
			)
		return status.endswith(" 1")

	async def iter_all(self, kind: EntityKind, *, chunk_size: int = 500) -> AsyncIterator[list[models.Record]]:
		offset = 0
		while True:
			chunk = await self.find(kind, StoreQuery(sort=(("created_at", 1),), offset=offset, limit=chunk_size))
			if not chunk:
				return
			yield chunk
			if len(chunk) < chunk_size:
				return
			offset += chunk_size


__all__ = ["PostgresContentStore", "SCHEMA_SQL", "build_find_sql", "build_where", "escape_like"]
