"""Primary store boundary and its in-memory implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional, Protocol

from edloop.content import models
from edloop.content.models import EntityKind

SortSpec = tuple[tuple[str, int], ...]


@dataclass(slots=True)
class StoreQuery:
	"""Store-neutral query: substring OR over ``text_fields``, equality AND over ``equals``.

	Paths are dotted canonical-record paths; ``[*]`` marks an array whose
	elements are matched individually (``tags[*]``, ``attachments[*].name``).
	Relation fields compare by the referenced id.
	"""

	text: str = ""
	text_fields: tuple[str, ...] = ()
	equals: dict[str, Any] = field(default_factory=dict)
	sort: SortSpec = (("created_at", -1),)
	offset: int = 0
	limit: Optional[int] = None


class ContentStore(Protocol):
	async def find(self, kind: EntityKind, query: StoreQuery) -> list[models.Record]:
		...

	async def count(self, kind: EntityKind, query: StoreQuery) -> int:
		...

	async def find_by_id(self, kind: EntityKind, record_id: str) -> Optional[models.Record]:
		...

	async def save(self, kind: EntityKind, record: models.Record) -> models.Record:
		...

	async def delete_by_id(self, kind: EntityKind, record_id: str) -> bool:
		...

	def iter_all(self, kind: EntityKind, *, chunk_size: int = 500) -> AsyncIterator[list[models.Record]]:
		...


def as_text(value: Any) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	return str(value)


def dehydrate(kind: EntityKind, record: models.Record) -> dict[str, Any]:
	"""Serialise a record for storage, keeping only ids for relations."""

	body = record.model_dump(mode="json")
	for name in models.RELATIONS[kind]:
		body[name] = models.ref_id(getattr(record, name))
	return body


def path_values(body: Mapping[str, Any], path: str) -> list[Any]:
	values: list[Any] = [body]
	for part in path.replace("[*]", "").split("."):
		next_values: list[Any] = []
		for value in values:
			if isinstance(value, Mapping) and value.get(part) is not None:
				found = value[part]
				if isinstance(found, list):
					next_values.extend(item for item in found if item is not None)
				else:
					next_values.append(found)
		values = next_values
	return values


def body_matches(body: Mapping[str, Any], query: StoreQuery) -> bool:
	for path, expected in query.equals.items():
		if not any(as_text(value) == as_text(expected) for value in path_values(body, path)):
			return False
	needle = query.text.lower()
	if not needle:
		return True
	for path in query.text_fields:
		for value in path_values(body, path):
			if isinstance(value, str) and needle in value.lower():
				return True
	return False


def _sort_key(body: Mapping[str, Any], path: str) -> tuple[int, Any]:
	values = path_values(body, path)
	if not values:
		return (0, "")
	value = values[0]
	if isinstance(value, str):
		value = value.lower()
	return (1, value)


def sort_bodies(bodies: list[dict[str, Any]], sort: SortSpec) -> list[dict[str, Any]]:
	ordered = sorted(bodies, key=lambda body: str(body.get("id")))
	for path, direction in reversed(sort):
		ordered.sort(key=lambda body: _sort_key(body, path), reverse=direction < 0)
	return ordered


class MemoryContentStore:
	"""Dict-backed primary store used for local development and tests."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._records: dict[EntityKind, dict[str, dict[str, Any]]] = {kind: {} for kind in EntityKind}

	def _hydrate(self, kind: EntityKind, body: dict[str, Any]) -> models.Record:
		data = dict(body)
		for name, target_kind in models.RELATIONS[kind].items():
			target_id = data.get(name)
			target = self._records[target_kind].get(str(target_id)) if target_id else None
			if target is not None:
				data[name] = {
					"id": target["id"],
					"display_name": target.get("display_name"),
					"name": target.get("name"),
					"username": target.get("username"),
				}
		return models.model_for(kind).model_validate(data)

	def _matching(self, kind: EntityKind, query: StoreQuery) -> list[dict[str, Any]]:
		return [body for body in self._records[kind].values() if body_matches(body, query)]

	async def find(self, kind: EntityKind, query: StoreQuery) -> list[models.Record]:
		kind = EntityKind(kind)
		async with self._lock:
			ordered = sort_bodies(self._matching(kind, query), query.sort)
			end = None if query.limit is None else query.offset + query.limit
			return [self._hydrate(kind, body) for body in ordered[query.offset : end]]

	async def count(self, kind: EntityKind, query: StoreQuery) -> int:
		kind = EntityKind(kind)
		async with self._lock:
			return len(self._matching(kind, query))

	async def find_by_id(self, kind: EntityKind, record_id: str) -> Optional[models.Record]:
		kind = EntityKind(kind)
		async with self._lock:
			body = self._records[kind].get(str(record_id))
			return self._hydrate(kind, body) if body is not None else None

	async def save(self, kind: EntityKind, record: models.Record) -> models.Record:
		kind = EntityKind(kind)
		async with self._lock:
			body = dehydrate(kind, record)
			self._records[kind][body["id"]] = body
			return self._hydrate(kind, body)

	async def delete_by_id(self, kind: EntityKind, record_id: str) -> bool:
		kind = EntityKind(kind)
		async with self._lock:
			return self._records[kind].pop(str(record_id), None) is not None

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


__all__ = [
	"ContentStore",
	"MemoryContentStore",
	"StoreQuery",
	"as_text",
	"body_matches",
	"dehydrate",
	"path_values",
	"sort_bodies",
]
