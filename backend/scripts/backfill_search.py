"""Replay the primary store into the search index.

Run from the ``backend`` directory::

	python -m scripts.backfill_search --kind note --kind post
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from edloop import obs
from edloop.content.factory import build_content_store
from edloop.content.models import EntityKind
from edloop.infra import postgres
from edloop.search import SearchBootstrapper, SearchSync, build_index_client
from edloop.settings import settings
from edloop.workers.backfill import SearchBackfill


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Backfill search indexes from the primary store")
	parser.add_argument(
		"--kind",
		action="append",
		choices=[kind.value for kind in EntityKind],
		help="Entity kind to backfill (repeatable, defaults to all kinds)",
	)
	parser.add_argument("--batch-size", type=int, default=None, help="Documents per index batch")
	parser.add_argument("--page-size", type=int, default=None, help="Records read from the store per page")
	parser.add_argument("--install-settings", action="store_true", help="Push index settings before backfilling")
	return parser.parse_args(argv)


async def backfill(args: argparse.Namespace) -> int:
	index_client = build_index_client(settings)
	if not index_client.is_configured():
		raise SystemExit("Search index credentials are not configured")
	store = build_content_store(settings)
	try:
		if args.install_settings:
			await SearchBootstrapper(index_client=index_client).install_all(args.kind)
		worker = SearchBackfill(
			store=store,
			sync=SearchSync(index_client=index_client, batch_size=args.batch_size),
			page_size=args.page_size,
		)
		reports = await worker.run(args.kind)
	finally:
		await index_client.aclose()
		await postgres.close_pool()
	failed = 0
	for report in reports:
		failed += report.failed
		print(json.dumps({**report.model_dump(), "succeeded": report.succeeded, "failed": report.failed}))
	return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
	obs.init()
	return asyncio.run(backfill(_parse_args(argv)))


if __name__ == "__main__":
	sys.exit(main())
