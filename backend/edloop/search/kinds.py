"""Per-kind search configuration shared by projection, filters, queries and sync.

Each entity kind is described once here: which search-document path every
structured filter targets, which canonical-record path the primary store
fallback must use for the same filter, and which fields take part in
substring matching on either side. The document paths are checked against
the projector's declared output when this module is imported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from edloop.content.models import EntityKind
from edloop.search.projection import DOCUMENT_FIELDS

FILTER_NAMES = ("community", "category", "difficulty", "author", "type")
DEFAULT_SORT = "recent"
RELEVANCE = "relevance"

SortKey = tuple[str, int]

_RECENT: tuple[SortKey, ...] = (("created_at", -1),)


@dataclass(frozen=True, slots=True)
class KindSpec:
	"""Search configuration for one entity kind."""

	kind: EntityKind
	index_setting: str
	filter_fields: Mapping[str, str]
	record_filter_fields: Mapping[str, str]
	match_fields: tuple[str, ...]
	record_text_fields: tuple[str, ...]
	visibility: Mapping[str, Any] = field(default_factory=dict)
	sorts: Mapping[str, tuple[SortKey, ...]] = field(default_factory=lambda: {DEFAULT_SORT: _RECENT})
	custom_ranking: tuple[str, ...] = ("desc(created_at_ts)",)

	def sort_keys(self, name: str | None) -> tuple[SortKey, ...]:
		return self.sorts.get(name or DEFAULT_SORT, self.sorts[DEFAULT_SORT])


KIND_SPECS: dict[EntityKind, KindSpec] = {
	EntityKind.NOTE: KindSpec(
		kind=EntityKind.NOTE,
		index_setting="search_index_notes",
		filter_fields={
			"community": "community.id",
			"category": "category",
			"difficulty": "difficulty_level",
			"author": "author.id",
		},
		record_filter_fields={
			"community": "community",
			"category": "category",
			"difficulty": "difficulty_level",
			"author": "author",
		},
		match_fields=("title", "content", "subject", "tags", "attachment_names", "attachment_types"),
		record_text_fields=("title", "content", "subject", "tags[*]", "attachments[*].name", "attachments[*].type"),
		visibility={"is_public": True},
		sorts={
			DEFAULT_SORT: _RECENT,
			"popular": (("likes_count", -1), ("views_count", -1), ("created_at", -1)),
			"views": (("views_count", -1), ("created_at", -1)),
			"alphabetical": (("title", 1),),
		},
		custom_ranking=("desc(likes_count)", "desc(created_at_ts)"),
	),
	EntityKind.POST: KindSpec(
		kind=EntityKind.POST,
		index_setting="search_index_posts",
		filter_fields={"community": "community.id", "type": "type", "author": "author.id"},
		record_filter_fields={"community": "community", "type": "type", "author": "author"},
		match_fields=("title", "content", "tags", "note_file_name", "note_file_type"),
		record_text_fields=("title", "content", "tags[*]", "note_file.name", "note_file.type"),
		visibility={"is_public": True},
		sorts={
			DEFAULT_SORT: _RECENT,
			"top": (("upvotes", -1), ("downvotes", 1), ("created_at", -1)),
			"discussed": (("comment_count", -1), ("created_at", -1)),
		},
		custom_ranking=("desc(upvotes)", "desc(created_at_ts)"),
	),
	EntityKind.GROUP: KindSpec(
		kind=EntityKind.GROUP,
		index_setting="search_index_groups",
		filter_fields={"category": "category", "author": "creator.id"},
		record_filter_fields={"category": "category", "author": "creator"},
		match_fields=("name", "description", "tags", "category"),
		record_text_fields=("name", "description", "tags[*]", "category"),
		sorts={
			DEFAULT_SORT: _RECENT,
			"oldest": (("created_at", 1),),
			"alphabetical": (("name", 1),),
		},
		custom_ranking=("desc(member_count)", "desc(created_at_ts)"),
	),
	EntityKind.USER: KindSpec(
		kind=EntityKind.USER,
		index_setting="search_index_users",
		filter_fields={},
		record_filter_fields={},
		match_fields=("username", "display_name", "university", "interests"),
		record_text_fields=("username", "display_name", "university", "interests[*]"),
		sorts={
			DEFAULT_SORT: _RECENT,
			"karma": (("karma", -1), ("created_at", -1)),
			"alphabetical": (("username", 1),),
		},
		custom_ranking=("desc(karma)",),
	),
	EntityKind.COMMUNITY: KindSpec(
		kind=EntityKind.COMMUNITY,
		index_setting="search_index_communities",
		filter_fields={"category": "category"},
		record_filter_fields={"category": "category"},
		match_fields=("name", "display_name", "description", "category", "subject"),
		record_text_fields=("name", "display_name", "description", "category", "subject"),
		sorts={
			DEFAULT_SORT: _RECENT,
			"members": (("members", -1), ("created_at", -1)),
			"alphabetical": (("name", 1),),
		},
		custom_ranking=("desc(members)",),
	),
}


def check_kind_config(spec: KindSpec) -> list[str]:
	"""Return the field-coupling problems for ``spec`` (empty when consistent)."""

	problems: list[str] = []
	declared = DOCUMENT_FIELDS[spec.kind]
	for name, path in spec.filter_fields.items():
		if name not in FILTER_NAMES:
			problems.append(f"{spec.kind.value}: unknown filter {name!r}")
		if path not in declared:
			problems.append(f"{spec.kind.value}: filter {name!r} targets undeclared field {path!r}")
	if set(spec.filter_fields) != set(spec.record_filter_fields):
		problems.append(f"{spec.kind.value}: index and primary store filter tables differ")
	for path in spec.match_fields:
		if path not in declared:
			problems.append(f"{spec.kind.value}: match field {path!r} is not projected")
	if DEFAULT_SORT not in spec.sorts:
		problems.append(f"{spec.kind.value}: missing {DEFAULT_SORT!r} sort")
	return problems


def get_spec(kind: EntityKind | str) -> KindSpec:
	return KIND_SPECS[EntityKind(kind)]


_PROBLEMS = [problem for spec in KIND_SPECS.values() for problem in check_kind_config(spec)]
if _PROBLEMS:
	raise RuntimeError("search kind configuration is inconsistent: " + "; ".join(_PROBLEMS))


__all__ = [
	"DEFAULT_SORT",
	"EntityKind",
	"FILTER_NAMES",
	"KIND_SPECS",
	"KindSpec",
	"RELEVANCE",
	"SortKey",
	"check_kind_config",
	"get_spec",
]
