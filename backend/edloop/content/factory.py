"""Select the primary store implementation from settings."""

from __future__ import annotations

import logging

from edloop.content.postgres_store import PostgresContentStore
from edloop.content.store import ContentStore, MemoryContentStore
from edloop.settings import Settings

_LOG = logging.getLogger(__name__)

STORE_MEMORY = "memory"
STORE_POSTGRES = "postgres"


def build_content_store(config: Settings) -> ContentStore:
	backend = config.content_store.lower()
	if backend == STORE_POSTGRES:
		_LOG.info("content.store.selected", extra={"backend": STORE_POSTGRES})
		return PostgresContentStore()
	if backend != STORE_MEMORY:
		raise ValueError(f"unknown content store {config.content_store!r}")
	_LOG.info("content.store.selected", extra={"backend": STORE_MEMORY})
	return MemoryContentStore()


__all__ = ["STORE_MEMORY", "STORE_POSTGRES", "build_content_store"]
