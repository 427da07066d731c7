"""Pydantic schemas for search queries, results and sync reports."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchFilters(BaseModel):
	"""Structured filters; absent fields add no constraint."""

	community: Optional[str] = None
	category: Optional[str] = None
	difficulty: Optional[str] = None
	author: Optional[str] = None
	type: Optional[str] = None

	def active(self) -> Dict[str, str]:
		"""Return the present filters in declaration order."""

		return {name: value for name, value in self.model_dump().items() if value not in (None, "")}


class Pagination(BaseModel):
	page: int = Field(default=1, ge=1)
	limit: int = Field(default=20, ge=1)

	@property
	def offset(self) -> int:
		return (self.page - 1) * self.limit


class SearchResults(BaseModel):
	"""Uniform result envelope for both the index and the primary store path."""

	kind: str
	query: str
	hits: List[Dict[str, Any]]
	total_hits: int
	current_page: int
	total_pages: int
	has_next_page: bool = False
	has_prev_page: bool = False
	backend: str
	ordering_source: str
	fallback_reason: Optional[str] = None
	took_ms: int = 0


class BatchResult(BaseModel):
	index: int
	size: int
	indexed: int = 0
	removed: int = 0
	skipped: int = 0
	ok: bool
	error: Optional[str] = None


class BulkSyncReport(BaseModel):
	kind: str
	total_records: int
	batch_size: int
	configured: bool = True
	batches: List[BatchResult] = Field(default_factory=list)

	@property
	def succeeded(self) -> int:
		return sum(1 for batch in self.batches if batch.ok)

	@property
	def failed(self) -> int:
		return sum(1 for batch in self.batches if not batch.ok)


__all__ = [
	"BatchResult",
	"BulkSyncReport",
	"Pagination",
	"SearchFilters",
	"SearchResults",
]
