"""Search synchronization and query layer for community content."""

from edloop.search.bootstrap import SearchBootstrapper
from edloop.search.clients import RawSearchPage, SearchIndexClient, build_index_client
from edloop.search.service import SearchService
from edloop.search.sync import SearchSync

__all__ = [
	"RawSearchPage",
	"SearchBootstrapper",
	"SearchIndexClient",
	"SearchService",
	"SearchSync",
	"build_index_client",
]
