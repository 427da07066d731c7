"""Canonical content records owned by the primary store."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EntityKind(str, Enum):
	"""Entity kinds mirrored into the search index."""

	NOTE = "note"
	POST = "post"
	USER = "user"
	GROUP = "group"
	COMMUNITY = "community"


class EntityRef(BaseModel):
	"""A populated relation: the referenced id plus its display fields."""

	id: str
	display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
	name: Optional[str] = None
	username: Optional[str] = None

	model_config = ConfigDict(populate_by_name=True)

	@field_validator("id", mode="before")
	def coerce_id(cls, value: Any) -> Any:
		return str(value) if value is not None else value


Relation = Union[EntityRef, str, None]


def _coerce_relation(value: Any) -> Any:
	if value is None or isinstance(value, (str, dict, EntityRef)):
		return value
	return str(value)


def ref_id(value: Relation) -> Optional[str]:
	if isinstance(value, EntityRef):
		return value.id
	return value


def ref_display_name(value: Relation) -> Optional[str]:
	if isinstance(value, EntityRef):
		return value.display_name or value.name or value.username
	return None


class Record(BaseModel):
	"""Fields shared by every canonical record."""

	id: str
	created_at: datetime

	model_config = ConfigDict(from_attributes=True, populate_by_name=True)

	@field_validator("id", mode="before")
	def coerce_id(cls, value: Any) -> Any:
		return str(value) if value is not None else value


class Attachment(BaseModel):
	name: str
	type: str
	size: int = 0
	url: Optional[str] = None


class NoteFile(BaseModel):
	name: Optional[str] = None
	type: Optional[str] = None
	size: Optional[int] = None
	url: Optional[str] = None


class Note(Record):
	"""A study note; only public notes are searchable."""

	title: str
	content: str
	subject: str
	author: Relation
	community: Relation = None
	group: Optional[str] = None
	tags: list[str] = Field(default_factory=list)
	category: str = "other"
	difficulty_level: str = "intermediate"
	attachments: list[Attachment] = Field(default_factory=list)
	is_public: bool = True
	views_count: int = 0
	likes_count: int = 0
	updated_at: Optional[datetime] = None

	@field_validator("author", "community", mode="before")
	def coerce_relations(cls, value: Any) -> Any:
		return _coerce_relation(value)


class Post(Record):
	"""A community or group post."""

	title: str
	content: str = ""
	type: str = "text"
	author: Relation
	community: Relation = None
	group: Optional[str] = None
	tags: list[str] = Field(default_factory=list)
	note_file: Optional[NoteFile] = None
	upvotes: int = 0
	downvotes: int = 0
	comment_count: int = Field(default=0, validation_alias=AliasChoices("comment_count", "commentCount"))
	is_public: bool = True
	updated_at: Optional[datetime] = None

	@field_validator("author", "community", mode="before")
	def coerce_relations(cls, value: Any) -> Any:
		return _coerce_relation(value)


class User(Record):
	username: str
	display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
	university: Optional[str] = None
	domain: Optional[str] = None
	interests: list[str] = Field(default_factory=list)
	verified: bool = False
	karma: int = 0


class GroupStats(BaseModel):
	total_posts: int = Field(default=0, validation_alias=AliasChoices("total_posts", "totalPosts"))
	total_notes: int = Field(default=0, validation_alias=AliasChoices("total_notes", "totalNotes"))


class Group(Record):
	name: str
	description: str = ""
	category: str = "general"
	tags: list[str] = Field(default_factory=list)
	privacy: str = "public"
	members: list[str] = Field(default_factory=list)
	creator: Relation = None
	stats: GroupStats = Field(default_factory=GroupStats)
	updated_at: Optional[datetime] = None

	@field_validator("creator", mode="before")
	def coerce_relations(cls, value: Any) -> Any:
		return _coerce_relation(value)


class Community(Record):
	name: str
	display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
	description: str = ""
	category: Optional[str] = None
	subject: Optional[str] = None
	members: int = 0
	is_private: bool = False


MODEL_BY_KIND: dict[EntityKind, type[Record]] = {
	EntityKind.NOTE: Note,
	EntityKind.POST: Post,
	EntityKind.USER: User,
	EntityKind.GROUP: Group,
	EntityKind.COMMUNITY: Community,
}

# Relation fields per kind and the kind they point at
RELATIONS: dict[EntityKind, dict[str, EntityKind]] = {
	EntityKind.NOTE: {"author": EntityKind.USER, "community": EntityKind.COMMUNITY},
	EntityKind.POST: {"author": EntityKind.USER, "community": EntityKind.COMMUNITY},
	EntityKind.USER: {},
	EntityKind.GROUP: {"creator": EntityKind.USER},
	EntityKind.COMMUNITY: {},
}


def model_for(kind: EntityKind) -> type[Record]:
	return MODEL_BY_KIND[EntityKind(kind)]


__all__ = [
	"Attachment",
	"Community",
	"EntityKind",
	"EntityRef",
	"Group",
	"GroupStats",
	"MODEL_BY_KIND",
	"Note",
	"NoteFile",
	"Post",
	"RELATIONS",
	"Record",
	"Relation",
	"User",
	"model_for",
	"ref_display_name",
	"ref_id",
]
