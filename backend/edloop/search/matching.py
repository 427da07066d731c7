"""Confidence post-filter for index hits."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from edloop.search.filters import lookup
from edloop.search.kinds import KindSpec


def contains_query(document: Mapping[str, Any], query: str, fields: Iterable[str]) -> bool:
	"""True when the lower-cased ``query`` occurs in at least one of ``fields``."""

	needle = query.lower()
	if not needle:
		return True
	for field in fields:
		for value in lookup(document, field):
			if isinstance(value, str) and needle in value.lower():
				return True
	return False


def confident_hits(spec: KindSpec, hits: Iterable[Mapping[str, Any]], query: str) -> list[dict[str, Any]]:
	"""Drop hits that do not literally contain the query in any matchable field."""

	return [dict(hit) for hit in hits if contains_query(hit, query, spec.match_fields)]
