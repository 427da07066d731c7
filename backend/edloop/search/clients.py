"""Client adapter between the search layer and the hosted index.

Index unavailability is an expected condition: every operation returns
``None`` when the client is unconfigured or when the transport fails, and the
failure is logged and counted instead of being raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from edloop.content.models import EntityKind
from edloop.obs import metrics as obs_metrics
from edloop.search.kinds import KIND_SPECS
from edloop.search.transports import AlgoliaTransport, IndexTransport
from edloop.settings import Settings

_LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class RawSearchPage:
	"""One page of hits as returned by the index, before any local correction."""

	hits: list[dict[str, Any]]
	total_hits: int
	page: int
	total_pages: int
	hits_per_page: int
	extra: dict[str, Any] = field(default_factory=dict)

	@classmethod
	def from_response(cls, response: Mapping[str, Any], *, limit: int) -> RawSearchPage:
		hits = [dict(hit) for hit in response.get("hits") or []]
		total = int(response.get("nbHits", len(hits)))
		per_page = int(response.get("hitsPerPage") or limit)
		pages = response.get("nbPages")
		return cls(
			hits=hits,
			total_hits=total,
			page=int(response.get("page") or 0) + 1,
			total_pages=int(pages) if pages is not None else math.ceil(total / per_page),
			hits_per_page=per_page,
			extra={key: response[key] for key in ("processingTimeMS", "query") if key in response},
		)


class SearchIndexClient:
	"""Per-kind save/delete/bulk/search operations against one index service."""

	def __init__(
		self,
		*,
		transport: IndexTransport | None,
		index_names: Mapping[EntityKind, str] | None = None,
	) -> None:
		self._transport = transport
		self._index_names = {kind: (index_names or {}).get(kind, kind.value) for kind in EntityKind}

	@classmethod
	def from_settings(cls, config: Settings, *, transport: IndexTransport | None = None) -> SearchIndexClient:
		index_names = {kind: getattr(config, spec.index_setting) for kind, spec in KIND_SPECS.items()}
		if transport is None and config.search_configured:
			transport = AlgoliaTransport(
				app_id=config.search_app_id or "",
				api_key=config.search_api_key or "",
				timeout=config.search_timeout_seconds,
				base_url=config.search_base_url,
			)
		if transport is None:
			_LOG.info("search.index.unconfigured")
		return cls(transport=transport, index_names=index_names)

	def is_configured(self) -> bool:
		return self._transport is not None

	def index_name(self, kind: EntityKind | str) -> str:
		return self._index_names[EntityKind(kind)]

	async def save(self, kind: EntityKind | str, document: dict[str, Any]) -> Optional[dict[str, Any]]:
		kind = EntityKind(kind)
		return await self._call(kind, "save", "save_object", self.index_name(kind), document, object_id=document.get("objectID"))

	async def delete(self, kind: EntityKind | str, object_id: str) -> Optional[dict[str, Any]]:
		kind = EntityKind(kind)
		return await self._call(kind, "delete", "delete_object", self.index_name(kind), str(object_id), object_id=str(object_id))

	async def bulk_save(self, kind: EntityKind | str, documents: Sequence[dict[str, Any]]) -> Optional[dict[str, Any]]:
		kind = EntityKind(kind)
		return await self._call(kind, "bulk_save", "save_objects", self.index_name(kind), list(documents), count=len(documents))

	async def bulk_delete(self, kind: EntityKind | str, object_ids: Sequence[str]) -> Optional[dict[str, Any]]:
		kind = EntityKind(kind)
		ids = [str(object_id) for object_id in object_ids]
		return await self._call(kind, "bulk_delete", "delete_objects", self.index_name(kind), ids, count=len(ids))

	async def search(
		self,
		kind: EntityKind | str,
		query: str,
		predicate: str,
		*,
		page: int,
		limit: int,
	) -> Optional[RawSearchPage]:
		kind = EntityKind(kind)
		params: dict[str, Any] = {"hitsPerPage": limit, "page": max(page, 1) - 1}
		if predicate:
			params["filters"] = predicate
		response = await self._call(kind, "search", "search", self.index_name(kind), query, params)
		if response is None:
			return None
		return RawSearchPage.from_response(response, limit=limit)

	async def apply_settings(self, kind: EntityKind | str, index_settings: dict[str, Any]) -> Optional[dict[str, Any]]:
		kind = EntityKind(kind)
		return await self._call(kind, "settings", "set_settings", self.index_name(kind), index_settings)

	async def aclose(self) -> None:
		if self._transport is not None:
			await self._transport.aclose()

	async def _call(self, kind: EntityKind, operation: str, method: str, *args: Any, **log_fields: Any) -> Any:
		if self._transport is None:
			return None
		try:
			result = await getattr(self._transport, method)(*args)
		except Exception as exc:
			obs_metrics.record_index_call(kind.value, operation, ok=False)
			_LOG.warning(
				f"search.index.{operation}_failed",
				extra={"kind": kind.value, "error": repr(exc), **log_fields},
			)
			return None
		obs_metrics.record_index_call(kind.value, operation, ok=True)
		_LOG.debug(f"search.index.{operation}", extra={"kind": kind.value, **log_fields})
		return result if result is not None else {}


def build_index_client(config: Settings) -> SearchIndexClient:
	"""Build the process-wide client once from settings."""

	return SearchIndexClient.from_settings(config)


__all__ = ["RawSearchPage", "SearchIndexClient", "build_index_client"]
