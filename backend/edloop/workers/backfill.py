"""Backfill worker that replays the primary store into the search index."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from edloop.content.models import EntityKind
from edloop.content.store import ContentStore
from edloop.search.schemas import BatchResult, BulkSyncReport
from edloop.search.sync import SearchSync
from edloop.settings import settings

_LOG = logging.getLogger(__name__)


class SearchBackfill:
	"""Page through every record of a kind and push it through bulk sync."""

	def __init__(
		self,
		*,
		store: ContentStore,
		sync: SearchSync,
		page_size: int | None = None,
		batch_size: int | None = None,
	) -> None:
		self.store = store
		self.sync = sync
		self.page_size = page_size or settings.search_backfill_page_size
		self.batch_size = batch_size

	async def run(self, kinds: Iterable[EntityKind | str] | None = None) -> list[BulkSyncReport]:
		"""Backfill each kind in turn and return one report per kind."""
		targets: Sequence[EntityKind] = [EntityKind(kind) for kind in (kinds or list(EntityKind))]
		reports = []
		for kind in targets:
			reports.append(await self.run_kind(kind))
		return reports

	async def run_kind(self, kind: EntityKind | str) -> BulkSyncReport:
		kind = EntityKind(kind)
		report: BulkSyncReport | None = None
		async for chunk in self.store.iter_all(kind, chunk_size=self.page_size):
			partial = await self.sync.bulk_sync(kind, chunk, batch_size=self.batch_size)
			report = _merge(report, partial)
			if not partial.configured:
				break
		if report is None:
			report = BulkSyncReport(
				kind=kind.value,
				total_records=0,
				batch_size=self.batch_size or self.sync.batch_size,
				configured=self.sync.is_configured(),
			)
		_LOG.info(
			"search.backfill.completed",
			extra={
				"kind": kind.value,
				"records": report.total_records,
				"batches": len(report.batches),
				"failed_batches": report.failed,
			},
		)
		return report


def _merge(current: BulkSyncReport | None, partial: BulkSyncReport) -> BulkSyncReport:
	if current is None:
		return partial
	offset = len(current.batches)
	current.total_records += partial.total_records
	current.configured = current.configured and partial.configured
	current.batches.extend(
		BatchResult(**{**batch.model_dump(), "index": batch.index + offset}) for batch in partial.batches
	)
	return current


__all__ = ["SearchBackfill"]
