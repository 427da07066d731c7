"""Central registry for Prometheus metrics used by the search layer."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

SEARCH_QUERIES = Counter(
	"edloop_search_queries_total",
	"Search queries served",
	["kind", "backend"],
)

SEARCH_LATENCY = Histogram(
	"edloop_search_duration_seconds",
	"Search latency in seconds",
	["kind"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SEARCH_FALLBACKS = Counter(
	"edloop_search_fallbacks_total",
	"Searches answered by the primary store instead of the index",
	["kind", "reason"],
)

SEARCH_DISCARDED_HITS = Counter(
	"edloop_search_discarded_hits_total",
	"Index hits dropped by the confidence post-filter",
	["kind"],
)

INDEX_OPERATIONS = Counter(
	"edloop_search_index_operations_total",
	"Calls issued to the hosted search index",
	["kind", "operation", "outcome"],
)

SYNC_EVENTS = Counter(
	"edloop_search_sync_events_total",
	"Single-document sync outcomes",
	["kind", "action", "outcome"],
)

SYNC_BATCHES = Counter(
	"edloop_search_sync_batches_total",
	"Bulk sync batch outcomes",
	["kind", "outcome"],
)


def record_index_call(kind: str, operation: str, ok: bool) -> None:
	INDEX_OPERATIONS.labels(kind=kind, operation=operation, outcome="ok" if ok else "error").inc()


__all__ = [
	"SEARCH_QUERIES",
	"SEARCH_LATENCY",
	"SEARCH_FALLBACKS",
	"SEARCH_DISCARDED_HITS",
	"INDEX_OPERATIONS",
	"SYNC_EVENTS",
	"SYNC_BATCHES",
	"record_index_call",
]
