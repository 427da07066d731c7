"""Error translation helpers for the search API."""

from __future__ import annotations

from fastapi import HTTPException, status

from edloop.content import exceptions as content_exceptions
from edloop.search import exceptions as search_exceptions


def to_http_error(exc: Exception) -> HTTPException:
	"""Translate domain exceptions to FastAPI HTTP errors."""
	if isinstance(exc, content_exceptions.ContentError):
		return HTTPException(status_code=exc.status_code, detail=exc.detail)
	if isinstance(exc, search_exceptions.SearchError):
		return HTTPException(status_code=exc.status_code, detail=exc.detail)
	return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


__all__ = ["to_http_error"]
