"""Bootstrap utilities for provisioning per-kind index settings."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from edloop.content.models import EntityKind
from edloop.search.clients import SearchIndexClient
from edloop.search.kinds import KIND_SPECS, KindSpec

_LOG = logging.getLogger(__name__)


def index_settings(spec: KindSpec) -> Dict[str, Any]:
	"""Build the settings payload for one kind from its filter and match tables."""

	faceting = [f"filterOnly({path})" for path in spec.filter_fields.values()]
	faceting.extend(f"filterOnly({path})" for path in spec.visibility)
	return {
		"attributesForFaceting": sorted(set(faceting)),
		"searchableAttributes": list(spec.match_fields),
		"customRanking": list(spec.custom_ranking),
	}


class SearchBootstrapper:
	"""Install faceting, searchable attributes and ranking for every index."""

	def __init__(self, *, index_client: SearchIndexClient) -> None:
		self._index = index_client

	async def install_all(self, kinds: Iterable[EntityKind | str] | None = None) -> dict[str, bool]:
		results: dict[str, bool] = {}
		if not self._index.is_configured():
			_LOG.info("search.bootstrap.skipped")
			return results
		for kind in kinds or list(EntityKind):
			spec = KIND_SPECS[EntityKind(kind)]
			ok = await self._index.apply_settings(spec.kind, index_settings(spec)) is not None
			results[spec.kind.value] = ok
			_LOG.info(
				"search.bootstrap.settings",
				extra={"kind": spec.kind.value, "index": self._index.index_name(spec.kind), "ok": ok},
			)
		return results


__all__ = ["SearchBootstrapper", "index_settings"]
