"""Service layer for primary store mutations.

Every mutation commits to the store first and only then notifies the search
sync coordinator. Index work runs in the background, so the value returned
here is always the store's own result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from edloop.content import models
from edloop.content.exceptions import InvalidRecordError, NotFoundError
from edloop.content.models import EntityKind
from edloop.content.store import ContentStore
from edloop.search.sync import SearchSync

_LOG = logging.getLogger(__name__)


def _validate(kind: EntityKind, payload: Mapping[str, Any] | models.Record) -> models.Record:
	model = models.model_for(kind)
	if isinstance(payload, model):
		return payload
	try:
		if isinstance(payload, models.Record):
			return model.model_validate(payload.model_dump())
		return model.model_validate(dict(payload))
	except ValidationError as exc:
		raise InvalidRecordError(f"invalid_{kind.value}") from exc


class ContentService:
	"""Create, update and delete canonical records of every kind."""

	def __init__(self, *, store: ContentStore, sync: SearchSync) -> None:
		self.store = store
		self.sync = sync

	async def get(self, kind: EntityKind | str, record_id: str) -> models.Record:
		kind = EntityKind(kind)
		record = await self.store.find_by_id(kind, record_id)
		if record is None:
			raise NotFoundError(f"{kind.value}_not_found")
		return record

	async def create(self, kind: EntityKind | str, payload: Mapping[str, Any] | models.Record) -> models.Record:
		kind = EntityKind(kind)
		saved = await self.store.save(kind, _validate(kind, payload))
		_LOG.debug("content.created", extra={"kind": kind.value, "record_id": saved.id})
		self._notify(self.sync.notify_created, kind, saved)
		return saved

	async def update(self, kind: EntityKind | str, record_id: str, changes: Mapping[str, Any]) -> models.Record:
		kind = EntityKind(kind)
		current = await self.get(kind, record_id)
		body = current.model_dump()
		for name in models.RELATIONS[kind]:
			body[name] = models.ref_id(getattr(current, name))
		body.update({key: value for key, value in changes.items() if key not in ("id", "created_at")})
		saved = await self.store.save(kind, _validate(kind, body))
		_LOG.debug("content.updated", extra={"kind": kind.value, "record_id": saved.id})
		self._notify(self.sync.notify_updated, kind, saved)
		return saved

	async def delete(self, kind: EntityKind | str, record_id: str) -> bool:
		kind = EntityKind(kind)
		deleted = await self.store.delete_by_id(kind, record_id)
		if not deleted:
			raise NotFoundError(f"{kind.value}_not_found")
		_LOG.debug("content.deleted", extra={"kind": kind.value, "record_id": str(record_id)})
		self._notify(self.sync.notify_deleted, kind, str(record_id))
		return deleted

	def _notify(self, hook: Callable[..., Any], kind: EntityKind, payload: Any) -> None:
		try:
			hook(kind, payload)
		except Exception:
			_LOG.exception("content.search_sync_failed", extra={"kind": kind.value, "hook": getattr(hook, "__name__", "notify")})


__all__ = ["ContentService"]
