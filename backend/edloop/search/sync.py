"""Propagate primary-store mutations into the search index.

Called after the primary write has committed. Nothing here raises into the
mutation path: index failures and malformed records are logged and counted,
and the caller's own result is left untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional

from edloop.content.models import EntityKind
from edloop.obs import metrics as obs_metrics
from edloop.search.clients import SearchIndexClient
from edloop.search.exceptions import ProjectionError
from edloop.search.projection import coerce_record, project
from edloop.search.schemas import BatchResult, BulkSyncReport
from edloop.settings import settings

_LOG = logging.getLogger(__name__)


def _label(kind: EntityKind | str) -> str:
	return getattr(kind, "value", kind)


class SearchSync:
	"""Single-document and batched index updates for every entity kind."""

	def __init__(self, *, index_client: SearchIndexClient, batch_size: int | None = None) -> None:
		self._index = index_client
		self._batch_size = batch_size or settings.search_sync_batch_size
		self._pending: set[asyncio.Task] = set()

	@property
	def batch_size(self) -> int:
		return self._batch_size

	def is_configured(self) -> bool:
		return self._index.is_configured()

	async def on_create(self, kind: EntityKind | str, record: Any) -> bool:
		return await self._upsert(kind, record, action="create")

	async def on_update(self, kind: EntityKind | str, record: Any) -> bool:
		return await self._upsert(kind, record, action="update")

	async def on_delete(self, kind: EntityKind | str, record_id: str) -> bool:
		try:
			kind = EntityKind(kind)
			if not self._index.is_configured():
				return False
			ok = await self._index.delete(kind, str(record_id)) is not None
			self._record(kind, "delete", ok, record_id=str(record_id))
			return ok
		except Exception:
			_LOG.exception("search.sync.unexpected_error", extra={"kind": _label(kind), "action": "delete"})
			return False

	async def _upsert(self, kind: EntityKind | str, record: Any, *, action: str) -> bool:
		try:
			kind = EntityKind(kind)
			if not self._index.is_configured():
				return False
			try:
				canonical = coerce_record(kind, record)
				document = project(kind, canonical)
			except ProjectionError as exc:
				obs_metrics.SYNC_EVENTS.labels(kind=kind.value, action=action, outcome="skipped").inc()
				_LOG.warning(
					"search.sync.projection_failed",
					extra={"kind": kind.value, "record_id": exc.record_id, "reason": exc.reason},
				)
				return False
			if document is None:
				# Not publicly visible: make sure no stale copy stays searchable.
				ok = await self._index.delete(kind, canonical.id) is not None
				self._record(kind, "hide", ok, record_id=canonical.id)
				return ok
			ok = await self._index.save(kind, document) is not None
			self._record(kind, action, ok, record_id=canonical.id)
			return ok
		except Exception:
			_LOG.exception("search.sync.unexpected_error", extra={"kind": _label(kind), "action": action})
			return False

	def _record(self, kind: EntityKind, action: str, ok: bool, **fields: Any) -> None:
		obs_metrics.SYNC_EVENTS.labels(kind=kind.value, action=action, outcome="ok" if ok else "error").inc()
		if ok:
			_LOG.debug("search.sync.applied", extra={"kind": kind.value, "action": action, **fields})
		else:
			_LOG.warning("search.sync.failed", extra={"kind": kind.value, "action": action, **fields})

	def notify_created(self, kind: EntityKind | str, record: Any) -> Optional[asyncio.Task]:
		return self._spawn(self.on_create(kind, record), name=f"search-sync:create:{_label(kind)}")

	def notify_updated(self, kind: EntityKind | str, record: Any) -> Optional[asyncio.Task]:
		return self._spawn(self.on_update(kind, record), name=f"search-sync:update:{_label(kind)}")

	def notify_deleted(self, kind: EntityKind | str, record_id: str) -> Optional[asyncio.Task]:
		return self._spawn(self.on_delete(kind, record_id), name=f"search-sync:delete:{_label(kind)}")

	def _spawn(self, coro: Awaitable[bool], *, name: str) -> Optional[asyncio.Task]:
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			coro.close()  # type: ignore[attr-defined]
			_LOG.warning("search.sync.no_event_loop", extra={"task": name})
			return None
		task = loop.create_task(coro, name=name)
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)
		return task

	@property
	def pending(self) -> int:
		return len(self._pending)

	async def drain(self) -> None:
		"""Wait for every scheduled sync task (shutdown and tests)."""

		while self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)

	async def bulk_sync(
		self,
		kind: EntityKind | str,
		records: Iterable[Any],
		batch_size: int | None = None,
	) -> BulkSyncReport:
		"""Push ``records`` in sequential fixed-size batches, reporting each batch."""

		kind = EntityKind(kind)
		size = self._batch_size if batch_size is None else batch_size
		if size < 1:
			raise ValueError("batch_size must be positive")
		items = list(records)
		report = BulkSyncReport(
			kind=kind.value,
			total_records=len(items),
			batch_size=size,
			configured=self._index.is_configured(),
		)
		if not report.configured:
			_LOG.info("search.sync.bulk_skipped", extra={"kind": kind.value, "count": len(items)})
			return report
		for number, start in enumerate(range(0, len(items), size), start=1):
			report.batches.append(await self._sync_batch(kind, number, items[start : start + size]))
		_LOG.info(
			"search.sync.bulk_completed",
			extra={
				"kind": kind.value,
				"count": len(items),
				"batches": len(report.batches),
				"failed_batches": report.failed,
			},
		)
		return report

	async def _sync_batch(self, kind: EntityKind, number: int, batch: list[Any]) -> BatchResult:
		documents: list[dict[str, Any]] = []
		hidden: list[str] = []
		skipped = 0
		for record in batch:
			try:
				canonical = coerce_record(kind, record)
				document = project(kind, canonical)
			except ProjectionError as exc:
				skipped += 1
				_LOG.warning(
					"search.sync.projection_failed",
					extra={"kind": kind.value, "record_id": exc.record_id, "batch": number},
				)
				continue
			if document is None:
				hidden.append(canonical.id)
			else:
				documents.append(document)

		error: str | None = None
		try:
			if documents and await self._index.bulk_save(kind, documents) is None:
				error = "bulk_save_failed"
			if error is None and hidden and await self._index.bulk_delete(kind, hidden) is None:
				error = "bulk_delete_failed"
		except Exception as exc:
			error = repr(exc)

		ok = error is None
		obs_metrics.SYNC_BATCHES.labels(kind=kind.value, outcome="ok" if ok else "error").inc()
		if not ok:
			_LOG.warning(
				"search.sync.batch_failed",
				extra={"kind": kind.value, "batch": number, "size": len(batch), "error": error},
			)
		return BatchResult(
			index=number,
			size=len(batch),
			indexed=len(documents) if ok else 0,
			removed=len(hidden) if ok else 0,
			skipped=skipped,
			ok=ok,
			error=error,
		)


__all__ = ["SearchSync"]
