"""Custom exceptions for content services."""

from __future__ import annotations

from fastapi import status


class ContentError(Exception):
	"""Base class for content related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "content_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotFoundError(ContentError):
	"""Raised when a record does not exist in the primary store."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class InvalidRecordError(ContentError):
	"""Raised when a payload does not validate against the canonical model."""

	status_code = 422
	detail = "invalid_record"


__all__ = ["ContentError", "InvalidRecordError", "NotFoundError"]
