"""Recompute the derived search columns (normalized name, case-folded slug and description).

Run after changing normalization rules or importing rows by other means:
	uv run python scripts/backfill_search_names.py
"""

import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from catalog_search.store.record_store import SqlRecordStore  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    store = SqlRecordStore()
    try:
        processed, updated = store.backfill_search_columns(batch_size=500)
    except Exception as e:
        logger.error(f"Backfill failed: {e}")
        return 1
    finally:
        store.close()
    logger.info(f"Backfill done: processed={processed} updated={updated}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
