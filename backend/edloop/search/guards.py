"""Validation helpers for search inputs."""

from __future__ import annotations

from edloop.search import exceptions
from edloop.search.kinds import KindSpec, RELEVANCE
from edloop.search.schemas import Pagination

MAX_QUERY_LENGTH = 120


def normalize_query(value: str | None) -> str:
	"""Collapse whitespace and trim surrounding spaces."""

	if not value:
		return ""
	return " ".join(value.strip().split())


def ensure_query_allowed(query: str) -> str:
	if len(query) > MAX_QUERY_LENGTH:
		raise exceptions.QueryValidationError("query_too_long")
	return query


def normalize_pagination(page: int | None, limit: int | None, *, default_limit: int, max_limit: int) -> Pagination:
	"""Clamp page/limit into the supported range."""

	page_value = page if page and page > 0 else 1
	limit_value = limit if limit and limit > 0 else default_limit
	return Pagination(page=page_value, limit=min(limit_value, max_limit))


def ensure_sort_allowed(spec: KindSpec, sort: str | None) -> str | None:
	"""Return the sort name, or ``None`` for relevance ordering."""

	if sort in (None, "", RELEVANCE):
		return None
	if sort not in spec.sorts:
		raise exceptions.QueryValidationError(f"unsupported_sort:{sort}")
	return sort
