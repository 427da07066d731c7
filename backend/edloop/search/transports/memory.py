"""In-memory index simulation used by tests and local development."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Sequence

from edloop.search import filters as filters_module

_LOG = logging.getLogger(__name__)


def _strings(value: Any) -> Iterable[str]:
	if isinstance(value, str):
		yield value
	elif isinstance(value, dict):
		for nested in value.values():
			yield from _strings(nested)
	elif isinstance(value, (list, tuple)):
		for nested in value:
			yield from _strings(nested)


class MemoryIndexTransport:
	"""Keeps documents per index keyed by objectID and answers naive queries."""

	def __init__(self) -> None:
		self.indexes: dict[str, dict[str, dict[str, Any]]] = {}
		self.index_settings: dict[str, dict[str, Any]] = {}
		self._task_id = 0

	def _next_task(self) -> int:
		self._task_id += 1
		return self._task_id

	def documents(self, index: str) -> dict[str, dict[str, Any]]:
		return self.indexes.setdefault(index, {})

	async def save_object(self, index: str, document: dict[str, Any]) -> dict[str, Any]:
		object_id = str(document["objectID"])
		self.documents(index)[object_id] = dict(document)
		return {"objectID": object_id, "taskID": self._next_task()}

	async def delete_object(self, index: str, object_id: str) -> dict[str, Any]:
		self.documents(index).pop(str(object_id), None)
		return {"objectID": str(object_id), "taskID": self._next_task()}

	async def save_objects(self, index: str, documents: Sequence[dict[str, Any]]) -> dict[str, Any]:
		stored = self.documents(index)
		for document in documents:
			stored[str(document["objectID"])] = dict(document)
		_LOG.debug("search.memory.save_objects", extra={"index": index, "count": len(documents)})
		return {"objectIDs": [str(document["objectID"]) for document in documents], "taskID": self._next_task()}

	async def delete_objects(self, index: str, object_ids: Sequence[str]) -> dict[str, Any]:
		stored = self.documents(index)
		for object_id in object_ids:
			stored.pop(str(object_id), None)
		return {"objectIDs": [str(object_id) for object_id in object_ids], "taskID": self._next_task()}

	def _searchable_text(self, index: str, document: dict[str, Any]) -> str:
		attributes = self.index_settings.get(index, {}).get("searchableAttributes")
		if attributes:
			values: list[str] = []
			for attribute in attributes:
				for found in filters_module.lookup(document, attribute):
					values.extend(_strings(found))
			return " ".join(values).lower()
		return " ".join(_strings(document)).lower()

	async def search(self, index: str, query: str, params: dict[str, Any]) -> dict[str, Any]:
		predicate = params.get("filters") or ""
		words = query.lower().split()
		candidates = []
		for document in self.documents(index).values():
			if not filters_module.matches(document, predicate):
				continue
			text = self._searchable_text(index, document)
			if all(word in text for word in words):
				candidates.append(dict(document))
		per_page = int(params.get("hitsPerPage") or 20)
		page = int(params.get("page") or 0)
		start = page * per_page
		return {
			"hits": candidates[start : start + per_page],
			"nbHits": len(candidates),
			"page": page,
			"nbPages": math.ceil(len(candidates) / per_page) if candidates else 0,
			"hitsPerPage": per_page,
		}

	async def set_settings(self, index: str, index_settings: dict[str, Any]) -> dict[str, Any]:
		self.index_settings[index] = dict(index_settings)
		return {"taskID": self._next_task()}

	async def aclose(self) -> None:
		return None


__all__ = ["MemoryIndexTransport"]
