"""httpx transport for the hosted Algolia REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence
from urllib.parse import quote, urlencode

import httpx

from edloop.search.exceptions import BackendError

_LOG = logging.getLogger(__name__)

# Restrictive matching so that typo-tolerant hits stay rare.
SEARCH_DEFAULTS: dict[str, Any] = {
	"optionalWords": [],
	"removeWordsIfNoResults": "none",
	"minWordSizefor1Typo": 10,
	"minWordSizefor2Typos": 20,
	"typoTolerance": "min",
	"exactOnSingleWordQuery": "word",
	"removeStopWords": False,
}


def _encode_param(value: Any) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, (list, tuple, dict)):
		return json.dumps(value, separators=(",", ":"))
	return str(value)


def encode_search_params(query: str, params: dict[str, Any]) -> str:
	merged: dict[str, Any] = {**SEARCH_DEFAULTS, **params, "query": query}
	return urlencode({key: _encode_param(value) for key, value in merged.items() if value is not None})


class AlgoliaTransport:
	"""Thin async client for the index REST endpoints used by the sync and query layers."""

	def __init__(
		self,
		*,
		app_id: str,
		api_key: str,
		timeout: float = 5.0,
		base_url: str | None = None,
		http: httpx.AsyncClient | None = None,
	) -> None:
		self._base_url = (base_url or f"https://{app_id}.algolia.net").rstrip("/")
		self._headers = {
			"X-Algolia-Application-Id": app_id,
			"X-Algolia-API-Key": api_key,
			"Content-Type": "application/json",
		}
		self._owns_client = http is None
		self._http = http or httpx.AsyncClient(timeout=timeout)

	def _url(self, index: str, *parts: str) -> str:
		segments = [quote(index, safe="")] + [quote(part, safe="") for part in parts]
		return f"{self._base_url}/1/indexes/" + "/".join(segments)

	async def _request(self, method: str, url: str, *, payload: Any | None = None) -> dict[str, Any]:
		try:
			response = await self._http.request(method, url, json=payload, headers=self._headers)
			response.raise_for_status()
		except httpx.HTTPStatusError as exc:
			raise BackendError(f"index_http_{exc.response.status_code}") from exc
		except httpx.HTTPError as exc:
			raise BackendError("index_unreachable") from exc
		if not response.content:
			return {}
		return response.json()

	async def save_object(self, index: str, document: dict[str, Any]) -> dict[str, Any]:
		return await self._request("PUT", self._url(index, str(document["objectID"])), payload=document)

	async def delete_object(self, index: str, object_id: str) -> dict[str, Any]:
		return await self._request("DELETE", self._url(index, object_id))

	async def save_objects(self, index: str, documents: Sequence[dict[str, Any]]) -> dict[str, Any]:
		requests = [{"action": "updateObject", "body": document} for document in documents]
		return await self._request("POST", self._url(index, "batch"), payload={"requests": requests})

	async def delete_objects(self, index: str, object_ids: Sequence[str]) -> dict[str, Any]:
		requests = [{"action": "deleteObject", "body": {"objectID": object_id}} for object_id in object_ids]
		return await self._request("POST", self._url(index, "batch"), payload={"requests": requests})

	async def search(self, index: str, query: str, params: dict[str, Any]) -> dict[str, Any]:
		body = {"params": encode_search_params(query, params)}
		return await self._request("POST", self._url(index, "query"), payload=body)

	async def set_settings(self, index: str, index_settings: dict[str, Any]) -> dict[str, Any]:
		return await self._request("PUT", self._url(index, "settings"), payload=index_settings)

	async def aclose(self) -> None:
		if self._owns_client:
			await self._http.aclose()
			_LOG.debug("search.transport.closed", extra={"base_url": self._base_url})


__all__ = ["AlgoliaTransport", "SEARCH_DEFAULTS", "encode_search_params"]
