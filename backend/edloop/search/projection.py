"""Projection of canonical records into flat search documents.

Every projector is a pure function of the record: projecting the same record
twice yields equal documents. Notes and posts that are not public project to
``None`` so that they are never written to (or kept in) the index.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import BaseModel, ValidationError

from edloop.content import models
from edloop.content.models import EntityKind
from edloop.search.exceptions import ProjectionError

SearchDocument = dict[str, Any]

OBJECT_ID = "objectID"
UNKNOWN_USER = "Unknown User"
UNKNOWN_COMMUNITY = "Unknown Community"


def _ref(value: models.Relation, fallback: str) -> dict[str, Optional[str]]:
	return {
		"id": models.ref_id(value),
		"display_name": models.ref_display_name(value) or fallback,
	}


def _join(values: Iterable[Optional[str]]) -> str:
	return " ".join(value for value in values if value)


def _timestamps(value: datetime) -> dict[str, Any]:
	return {"created_at": value.isoformat(), "created_at_ts": int(value.timestamp())}


def project_note(note: models.Note) -> Optional[SearchDocument]:
	if not note.is_public:
		return None
	return {
		OBJECT_ID: note.id,
		"title": note.title,
		"content": note.content,
		"subject": note.subject,
		"tags": list(note.tags),
		"tags_text": _join(note.tags),
		"category": note.category,
		"difficulty_level": note.difficulty_level,
		"author": _ref(note.author, UNKNOWN_USER),
		"community": _ref(note.community, UNKNOWN_COMMUNITY),
		"attachments": [{"name": att.name, "type": att.type, "size": att.size} for att in note.attachments],
		"attachment_names": _join(att.name for att in note.attachments),
		"attachment_types": _join(att.type for att in note.attachments),
		**_timestamps(note.created_at),
		"likes_count": note.likes_count,
		"views_count": note.views_count,
		"is_public": note.is_public,
	}


def project_post(post: models.Post) -> Optional[SearchDocument]:
	if not post.is_public:
		return None
	note_file = post.note_file
	return {
		OBJECT_ID: post.id,
		"title": post.title,
		"content": post.content,
		"type": post.type,
		"tags": list(post.tags),
		"tags_text": _join(post.tags),
		"author": _ref(post.author, UNKNOWN_USER),
		"community": _ref(post.community, UNKNOWN_COMMUNITY),
		"note_file": {"name": note_file.name, "type": note_file.type} if note_file else None,
		"note_file_name": (note_file.name or "") if note_file else "",
		"note_file_type": (note_file.type or "") if note_file else "",
		**_timestamps(post.created_at),
		"upvotes": post.upvotes,
		"downvotes": post.downvotes,
		"comment_count": post.comment_count,
		"is_public": post.is_public,
	}


def project_group(group: models.Group) -> SearchDocument:
	return {
		OBJECT_ID: group.id,
		"name": group.name,
		"description": group.description,
		"category": group.category,
		"tags": list(group.tags),
		"tags_text": _join(group.tags),
		"privacy": group.privacy,
		"member_count": len(group.members),
		"creator": _ref(group.creator, UNKNOWN_USER),
		"stats": {"total_posts": group.stats.total_posts, "total_notes": group.stats.total_notes},
		**_timestamps(group.created_at),
		"updated_at": group.updated_at.isoformat() if group.updated_at else None,
	}


def project_user(user: models.User) -> SearchDocument:
	return {
		OBJECT_ID: user.id,
		"username": user.username,
		"display_name": user.display_name or user.username,
		"university": user.university,
		"domain": user.domain,
		"interests": list(user.interests),
		"interests_text": _join(user.interests),
		"verified": user.verified,
		"karma": user.karma,
		**_timestamps(user.created_at),
	}


def project_community(community: models.Community) -> SearchDocument:
	return {
		OBJECT_ID: community.id,
		"name": community.name,
		"display_name": community.display_name or community.name,
		"description": community.description,
		"category": community.category,
		"subject": community.subject,
		"members": community.members,
		"is_private": community.is_private,
		**_timestamps(community.created_at),
	}


_PROJECTORS: dict[EntityKind, Callable[[Any], Optional[SearchDocument]]] = {
	EntityKind.NOTE: project_note,
	EntityKind.POST: project_post,
	EntityKind.USER: project_user,
	EntityKind.GROUP: project_group,
	EntityKind.COMMUNITY: project_community,
}

_REF_FIELDS = ("id", "display_name")

# Every path a projector may emit; filter tables are checked against these.
DOCUMENT_FIELDS: dict[EntityKind, frozenset[str]] = {
	EntityKind.NOTE: frozenset(
		[OBJECT_ID, "title", "content", "subject", "tags", "tags_text", "category", "difficulty_level"]
		+ [f"author.{name}" for name in _REF_FIELDS]
		+ [f"community.{name}" for name in _REF_FIELDS]
		+ ["attachments", "attachment_names", "attachment_types", "created_at", "created_at_ts"]
		+ ["likes_count", "views_count", "is_public"]
	),
	EntityKind.POST: frozenset(
		[OBJECT_ID, "title", "content", "type", "tags", "tags_text"]
		+ [f"author.{name}" for name in _REF_FIELDS]
		+ [f"community.{name}" for name in _REF_FIELDS]
		+ ["note_file.name", "note_file.type", "note_file_name", "note_file_type", "created_at", "created_at_ts"]
		+ ["upvotes", "downvotes", "comment_count", "is_public"]
	),
	EntityKind.GROUP: frozenset(
		[OBJECT_ID, "name", "description", "category", "tags", "tags_text", "privacy", "member_count"]
		+ [f"creator.{name}" for name in _REF_FIELDS]
		+ ["stats.total_posts", "stats.total_notes", "created_at", "created_at_ts", "updated_at"]
	),
	EntityKind.USER: frozenset(
		[OBJECT_ID, "username", "display_name", "university", "domain", "interests", "interests_text"]
		+ ["verified", "karma", "created_at", "created_at_ts"]
	),
	EntityKind.COMMUNITY: frozenset(
		[OBJECT_ID, "name", "display_name", "description", "category", "subject", "members", "is_private"]
		+ ["created_at", "created_at_ts"]
	),
}


def _raw_id(record: Any) -> Optional[str]:
	if isinstance(record, Mapping):
		value = record.get("id") or record.get("_id")
	else:
		value = getattr(record, "id", None)
	return str(value) if value is not None else None


def coerce_record(kind: EntityKind, record: Any) -> models.Record:
	"""Validate ``record`` into the canonical model for ``kind``."""

	model = models.model_for(kind)
	if isinstance(record, model):
		return record
	try:
		if isinstance(record, BaseModel):
			return model.model_validate(record.model_dump())
		return model.model_validate(record)
	except ValidationError as exc:
		raise ProjectionError(kind.value, _raw_id(record), str(exc)) from exc


def project(kind: EntityKind | str, record: Any) -> Optional[SearchDocument]:
	"""Return the search document for ``record`` or ``None`` when it must not be indexed."""

	kind = EntityKind(kind)
	canonical = coerce_record(kind, record)
	try:
		return _PROJECTORS[kind](canonical)
	except (AttributeError, TypeError, ValueError) as exc:
		raise ProjectionError(kind.value, canonical.id, str(exc)) from exc


__all__ = [
	"DOCUMENT_FIELDS",
	"OBJECT_ID",
	"SearchDocument",
	"UNKNOWN_COMMUNITY",
	"UNKNOWN_USER",
	"coerce_record",
	"project",
]
