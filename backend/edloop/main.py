"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from edloop.api import ops, search
from edloop.content.factory import build_content_store
from edloop.content.postgres_store import PostgresContentStore
from edloop.content.service import ContentService
from edloop.content.store import ContentStore
from edloop.infra import postgres
from edloop.obs import init as obs_init
from edloop.search import SearchBootstrapper, SearchIndexClient, SearchService, SearchSync, build_index_client
from edloop.settings import settings
from edloop.workers.backfill import SearchBackfill

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	store = app.state.store
	if isinstance(store, PostgresContentStore):
		await postgres.init_pool()
		await store.ensure_schema()
	await SearchBootstrapper(index_client=app.state.index_client).install_all()
	_LOG.info("app.started", extra={"service": settings.service_name, "environment": settings.environment})
	try:
		yield
	finally:
		await app.state.search_sync.drain()
		await app.state.index_client.aclose()
		await postgres.close_pool()


def create_app(
	*,
	store: ContentStore | None = None,
	index_client: SearchIndexClient | None = None,
) -> FastAPI:
	"""Wire the store, index client and services into a FastAPI app."""
	obs_init()
	index_client = index_client or build_index_client(settings)
	store = store or build_content_store(settings)
	sync = SearchSync(index_client=index_client)

	app = FastAPI(title="edloop search", lifespan=lifespan)
	app.state.store = store
	app.state.index_client = index_client
	app.state.search_sync = sync
	app.state.search_service = SearchService(index_client=index_client, store=store)
	app.state.content_service = ContentService(store=store, sync=sync)
	app.state.backfill = SearchBackfill(store=store, sync=sync)
	app.include_router(ops.router)
	app.include_router(search.router)
	return app


app = create_app()


def run() -> None:
	"""Serve the app with uvicorn for local development."""
	uvicorn.run("edloop.main:app", host="0.0.0.0", port=8000, log_config=None)
