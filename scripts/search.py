"""Run suggest + results against the configured catalog database.

Configuration via constants below (no CLI args). Run:
	uv run python scripts/search.py

Environment:
	CATALOG_DATABASE_URL  (default sqlite:///catalog.db)
	SUGGEST_CACHE_MAX     (default 300)
	SUGGEST_CACHE_TTL_MS  (default 60000)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import sys

# Ensure repo root on path
CURRENT_DIR = Path(__file__).resolve().parent
REPO_ROOT = CURRENT_DIR.parent
if str(REPO_ROOT) not in sys.path:
	sys.path.insert(0, str(REPO_ROOT))

from catalog_search.search import SearchService, SearchServiceConfig  # noqa: E402
from catalog_search.store.record_store import SqlRecordStore  # noqa: E402


# ---------------------------------------------------------------------------
# Configuration Constants
# ---------------------------------------------------------------------------
QUERY_TEXT: str = "shoe"
SUGGEST_LIMIT: int = 8
PAGE: int = 1
PAGE_SIZE: int = 12
LOG_LEVEL: str = "INFO"


def run(query: str) -> None:
	"""Log the suggestion list and the first results page for `query`."""
	logger = logging.getLogger(__name__)

	store = SqlRecordStore(create_schema=True)
	try:
		service = SearchService(store=store, config=SearchServiceConfig.from_env())

		suggestions = service.suggest(query, SUGGEST_LIMIT)
		lines = [f"Suggestions ({len(suggestions)}) for {query!r}:"]
		for idx, item in enumerate(suggestions, start=1):
			lines.append(f"{idx}. {item['label']} [{item['slug']}]")
		logger.info("\n".join(lines))

		page = service.results(query, PAGE, PAGE_SIZE)
		header = (
			f"Results page {page['page']}/{page['totalPages']} "
			f"(total={page['total']}) for {page['query']!r}:"
		)
		lines = [header]
		for idx, item in enumerate(page["items"], start=1):
			lines.append(
				f"{idx}. relevance={item['relevance']} "
				f"{json.dumps(item['name'], ensure_ascii=False)} updated={item['updatedAt']}"
			)
		logger.info("\n".join(lines))
	finally:
		store.close()


def main() -> int:
	logging.basicConfig(
		level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
		format="%(asctime)s %(levelname)s %(name)s - %(message)s",
	)
	try:
		run(QUERY_TEXT)
		return 0
	except Exception as e:  # pragma: no cover
		logging.exception("Search failed: %s", e)
		return 1

if __name__ == "__main__":  # pragma: no cover
	raise SystemExit(main())
