"""REST endpoints for entity search and index maintenance."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from edloop.api._errors import to_http_error
from edloop.api.ops import require_admin
from edloop.content.models import EntityKind
from edloop.search.exceptions import SearchError
from edloop.search.schemas import BulkSyncReport, SearchFilters, SearchResults
from edloop.search.service import SearchService
from edloop.workers.backfill import SearchBackfill

router = APIRouter(prefix="/api", tags=["search"])


def get_search_service(request: Request) -> SearchService:
	return request.app.state.search_service


def get_backfill(request: Request) -> SearchBackfill:
	return request.app.state.backfill


@router.get("/search/{kind}", response_model=SearchResults)
async def search_endpoint(
	kind: EntityKind,
	q: Optional[str] = Query(default=None, max_length=512),
	page: Optional[int] = Query(default=None),
	limit: Optional[int] = Query(default=None),
	sort: Optional[str] = Query(default=None),
	filters: SearchFilters = Depends(),
	service: SearchService = Depends(get_search_service),
) -> SearchResults:
	try:
		return await service.search_entities(kind, q, filters, page=page, limit=limit, sort=sort)
	except SearchError as exc:
		raise to_http_error(exc) from exc


@router.post("/admin/search/{kind}/backfill", response_model=BulkSyncReport)
async def backfill_endpoint(
	kind: EntityKind,
	_: None = Depends(require_admin),
	backfill: SearchBackfill = Depends(get_backfill),
) -> BulkSyncReport:
	if not backfill.sync.is_configured():
		raise HTTPException(status_code=503, detail="search_index_unconfigured")
	return await backfill.run_kind(kind)


__all__ = ["router"]
