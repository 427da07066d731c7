"""Custom exceptions for search operations."""

from __future__ import annotations


class SearchError(Exception):
	"""Base class for search errors."""

	def __init__(self, detail: str, *, status_code: int = 400) -> None:
		super().__init__(detail)
		self.detail = detail
		self.status_code = status_code


class QueryValidationError(SearchError):
	"""Raised when a search query fails validation."""

	def __init__(self, detail: str, *, status_code: int = 422) -> None:
		super().__init__(detail, status_code=status_code)


class UnsupportedFilterError(QueryValidationError):
	"""Raised when a filter has no counterpart for the requested entity kind."""

	def __init__(self, kind: str, name: str) -> None:
		super().__init__(f"unsupported_filter:{kind}:{name}")
		self.kind = kind
		self.name = name


class BackendError(SearchError):
	"""Raised when the search backend rejects a request."""

	def __init__(self, detail: str = "backend_error", *, status_code: int = 503) -> None:
		super().__init__(detail, status_code=status_code)


class ProjectionError(SearchError):
	"""Raised when a canonical record cannot be projected into a search document."""

	def __init__(self, kind: str, record_id: str | None, reason: str) -> None:
		super().__init__(f"projection_failed:{kind}", status_code=500)
		self.kind = kind
		self.record_id = record_id
		self.reason = reason
