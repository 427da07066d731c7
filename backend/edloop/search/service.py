"""Service layer orchestrating index queries and primary store fallbacks."""

from __future__ import annotations

import logging
import math
import time
from typing import Optional

from edloop.content.models import EntityKind
from edloop.content.store import ContentStore, StoreQuery
from edloop.obs import metrics as obs_metrics
from edloop.search import filters as filters_module
from edloop.search import guards
from edloop.search.clients import SearchIndexClient
from edloop.search.filters import FilterInput
from edloop.search.kinds import DEFAULT_SORT, KindSpec, get_spec
from edloop.search.matching import confident_hits
from edloop.search.projection import project
from edloop.search.schemas import Pagination, SearchResults
from edloop.settings import settings

_LOG = logging.getLogger(__name__)

BACKEND_INDEX = "index"
BACKEND_PRIMARY = "primary_store"
ORDER_INDEX_RANK = "index_rank"

REASON_UNCONFIGURED = "unconfigured"
REASON_SORT = "explicit_sort"
REASON_INDEX_ERROR = "index_error"
REASON_INDEX_EMPTY = "index_empty"
REASON_LOW_CONFIDENCE = "low_confidence"


def _page_count(total: int, limit: int) -> int:
	return math.ceil(total / limit) if total else 0


class SearchService:
	"""Answer searches from the index when it is usable, otherwise from the primary store."""

	def __init__(
		self,
		*,
		index_client: SearchIndexClient,
		store: ContentStore,
		default_limit: int | None = None,
		max_limit: int | None = None,
	) -> None:
		self._index = index_client
		self._store = store
		self._default_limit = default_limit or settings.search_default_page_size
		self._max_limit = max_limit or settings.search_max_page_size

	async def search_entities(
		self,
		kind: EntityKind | str,
		query: str | None,
		filters: FilterInput = None,
		*,
		page: int | None = None,
		limit: int | None = None,
		sort: str | None = None,
	) -> SearchResults:
		spec = get_spec(kind)
		normalized = guards.ensure_query_allowed(guards.normalize_query(query))
		pagination = guards.normalize_pagination(
			page,
			limit,
			default_limit=self._default_limit,
			max_limit=self._max_limit,
		)
		sort_name = guards.ensure_sort_allowed(spec, sort)
		active = filters_module.validate_filters(spec.kind, filters)

		started = time.perf_counter()
		result: Optional[SearchResults] = None
		reason = REASON_UNCONFIGURED
		if self._index.is_configured():
			if sort_name is None:
				result, reason = await self._search_index(spec, normalized, active, pagination)
			else:
				reason = REASON_SORT

		if result is None:
			if reason != REASON_UNCONFIGURED:
				obs_metrics.SEARCH_FALLBACKS.labels(kind=spec.kind.value, reason=reason).inc()
				_LOG.info(
					"search.fallback",
					extra={"kind": spec.kind.value, "reason": reason, "page": pagination.page},
				)
			result = await self._search_store(spec, normalized, active, pagination, sort_name, reason)

		duration = time.perf_counter() - started
		obs_metrics.SEARCH_QUERIES.labels(kind=spec.kind.value, backend=result.backend).inc()
		obs_metrics.SEARCH_LATENCY.labels(kind=spec.kind.value).observe(duration)
		result.took_ms = int(duration * 1000)
		return result

	async def _search_index(
		self,
		spec: KindSpec,
		query: str,
		active: dict[str, str],
		pagination: Pagination,
	) -> tuple[Optional[SearchResults], str]:
		predicate = filters_module.compile_filters(spec.kind, active)
		raw = await self._index.search(spec.kind, query, predicate, page=pagination.page, limit=pagination.limit)
		if raw is None:
			return None, REASON_INDEX_ERROR

		hits = confident_hits(spec, raw.hits, query)
		discarded = len(raw.hits) - len(hits)
		if discarded:
			obs_metrics.SEARCH_DISCARDED_HITS.labels(kind=spec.kind.value).inc(discarded)
			_LOG.debug(
				"search.post_filter.discarded",
				extra={"kind": spec.kind.value, "discarded": discarded, "raw": len(raw.hits)},
			)
		if not hits and pagination.page == 1:
			return None, REASON_LOW_CONFIDENCE if raw.hits else REASON_INDEX_EMPTY

		if hits:
			total = max(raw.total_hits - discarded, pagination.offset + len(hits))
		else:
			# later pages stay on the index so one listing never mixes backends
			total = min(max(raw.total_hits - discarded, 0), pagination.offset)
		total_pages = _page_count(total, pagination.limit)
		current_page = raw.page
		return (
			SearchResults(
				kind=spec.kind.value,
				query=query,
				hits=hits,
				total_hits=total,
				current_page=current_page,
				total_pages=total_pages,
				has_next_page=current_page < total_pages,
				has_prev_page=current_page > 1,
				backend=BACKEND_INDEX,
				ordering_source=ORDER_INDEX_RANK,
			),
			"",
		)

	async def _search_store(
		self,
		spec: KindSpec,
		query: str,
		active: dict[str, str],
		pagination: Pagination,
		sort_name: str | None,
		reason: str,
	) -> SearchResults:
		store_query = StoreQuery(
			text=query,
			text_fields=spec.record_text_fields,
			equals=filters_module.record_filters(spec.kind, active),
			sort=spec.sort_keys(sort_name),
			offset=pagination.offset,
			limit=pagination.limit,
		)
		records = await self._store.find(spec.kind, store_query)
		total = await self._store.count(spec.kind, store_query)
		hits = []
		for record in records:
			document = project(spec.kind, record)
			if document is not None:
				hits.append(document)
		total_pages = _page_count(total, pagination.limit)
		return SearchResults(
			kind=spec.kind.value,
			query=query,
			hits=hits,
			total_hits=total,
			current_page=pagination.page,
			total_pages=total_pages,
			has_next_page=pagination.page < total_pages,
			has_prev_page=pagination.page > 1,
			backend=BACKEND_PRIMARY,
			ordering_source=sort_name or DEFAULT_SORT,
			fallback_reason=reason,
		)


__all__ = ["SearchService"]
