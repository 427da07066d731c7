"""Transports for the hosted search index."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from edloop.search.transports.algolia import AlgoliaTransport
from edloop.search.transports.memory import MemoryIndexTransport


class IndexTransport(Protocol):
	"""Wire-level operations against one search service."""

	async def save_object(self, index: str, document: dict[str, Any]) -> dict[str, Any]:
		...

	async def delete_object(self, index: str, object_id: str) -> dict[str, Any]:
		...

	async def save_objects(self, index: str, documents: Sequence[dict[str, Any]]) -> dict[str, Any]:
		...

	async def delete_objects(self, index: str, object_ids: Sequence[str]) -> dict[str, Any]:
		...

	async def search(self, index: str, query: str, params: dict[str, Any]) -> dict[str, Any]:
		...

	async def set_settings(self, index: str, index_settings: dict[str, Any]) -> dict[str, Any]:
		...

	async def aclose(self) -> None:
		...


__all__ = ["AlgoliaTransport", "IndexTransport", "MemoryIndexTransport"]
