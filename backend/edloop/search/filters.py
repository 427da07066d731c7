"""Compile structured filters into the index service's predicate syntax.

Every present filter becomes one ``path:"value"`` equality clause and the
clauses are joined with ``AND``. An empty filter set compiles to ``""``, which
the service treats as match-all. The same predicates can be evaluated locally
with :func:`matches`.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional, Union

from edloop.content.models import EntityKind
from edloop.search.exceptions import UnsupportedFilterError
from edloop.search.kinds import get_spec
from edloop.search.schemas import SearchFilters

FilterInput = Union[SearchFilters, Mapping[str, Optional[str]], None]

_CLAUSE = re.compile(r'\s*([A-Za-z0-9_.]+):(?:"((?:[^"\\]|\\.)*)"|([^\s"]+))\s*')
_CONJUNCTION = re.compile(r"AND\b")
_ESCAPED = re.compile(r"\\(.)")


def active_filters(filters: FilterInput) -> dict[str, str]:
	if filters is None:
		return {}
	if isinstance(filters, SearchFilters):
		return filters.active()
	return {name: str(value) for name, value in filters.items() if value not in (None, "")}


def validate_filters(kind: EntityKind | str, filters: FilterInput) -> dict[str, str]:
	"""Return the present filters, rejecting any the kind cannot honour."""

	spec = get_spec(kind)
	active = active_filters(filters)
	for name in active:
		if name not in spec.filter_fields:
			raise UnsupportedFilterError(spec.kind.value, name)
	return active


def _quote(value: str) -> str:
	escaped = value.replace("\\", "\\\\").replace('"', '\\"')
	return f'"{escaped}"'


def compile_filters(kind: EntityKind | str, filters: FilterInput) -> str:
	spec = get_spec(kind)
	clauses = [
		f"{spec.filter_fields[name]}:{_quote(value)}"
		for name, value in validate_filters(kind, filters).items()
	]
	return " AND ".join(clauses)


def record_filters(kind: EntityKind | str, filters: FilterInput) -> dict[str, Any]:
	"""Translate filters into canonical-record equality constraints for the primary store."""

	spec = get_spec(kind)
	constraints: dict[str, Any] = dict(spec.visibility)
	for name, value in validate_filters(kind, filters).items():
		constraints[spec.record_filter_fields[name]] = value
	return constraints


def parse_predicate(predicate: str) -> list[tuple[str, str]]:
	"""Split a compiled predicate back into ``(path, value)`` clauses."""

	clauses: list[tuple[str, str]] = []
	position = 0
	text = predicate or ""
	while position < len(text):
		if not text[position:].strip():
			break
		if clauses:
			conjunction = _CONJUNCTION.match(text, position)
			if conjunction is None:
				raise ValueError(f"unsupported predicate near {text[position:]!r}")
			position = conjunction.end()
		match = _CLAUSE.match(text, position)
		if match is None:
			raise ValueError(f"unsupported predicate near {text[position:]!r}")
		path, quoted, bare = match.groups()
		value = _ESCAPED.sub(r"\1", quoted) if quoted is not None else bare
		clauses.append((path, value))
		position = match.end()
	return clauses


def lookup(document: Mapping[str, Any], path: str) -> list[Any]:
	"""Collect the scalar values found at a dotted ``path``, flattening lists."""

	values: list[Any] = [document]
	for part in path.split("."):
		next_values: list[Any] = []
		for value in values:
			if isinstance(value, Mapping) and part in value:
				next_values.append(value[part])
		values = list(_flatten(next_values))
	return values


def _flatten(values: Iterable[Any]) -> Iterable[Any]:
	for value in values:
		if isinstance(value, (list, tuple, set)):
			yield from _flatten(value)
		elif value is not None:
			yield value


def matches(document: Mapping[str, Any], predicate: str) -> bool:
	for path, expected in parse_predicate(predicate):
		if not any(str(value) == expected for value in lookup(document, path)):
			return False
	return True


__all__ = [
	"active_filters",
	"compile_filters",
	"lookup",
	"matches",
	"parse_predicate",
	"record_filters",
	"validate_filters",
]
