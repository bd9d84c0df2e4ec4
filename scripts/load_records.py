import json
import logging
import sys
from pathlib import Path

# Ensure repo root on path
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from catalog_search.store.record_store import SqlRecordStore  # noqa: E402
from catalog_search.store.schemas import SearchableRecord  # noqa: E402
from catalog_search.utils.text_cleaning import clean_text  # noqa: E402

# --- Configuration ---
INPUT_FILE = "products.jsonl"
BATCH_SIZE = 500
# --- End of Configuration ---

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)


def iter_records(path: str):
    """Yield cleaned, de-duplicated SearchableRecords from a JSONL file."""
    seen_ids = set()
    with open(path, "r", encoding="utf-8") as infile:
        for line_no, line in enumerate(infile, start=1):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
                if not isinstance(raw, dict):
                    raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
                raw["description"] = clean_text(raw.get("description"))
                record = SearchableRecord.from_mapping(raw)
            except (ValueError, TypeError) as e:
                logging.warning(f"   Skipping line {line_no}: {e}")
                continue

            if record.id in seen_ids:
                logging.info(f"   Skipping duplicate id {record.id} at line {line_no}")
                continue
            seen_ids.add(record.id)
            yield record


def main():
    logging.info("Loading products...")
    logging.info(f"Input file: {INPUT_FILE}")

    store = SqlRecordStore(create_schema=True)
    batch = []
    loaded = 0
    try:
        for record in iter_records(INPUT_FILE):
            batch.append(record)
            if len(batch) >= BATCH_SIZE:
                loaded += store.upsert(batch)
                batch.clear()
                logging.info(f"   Loaded {loaded:,} records...")
        if batch:
            loaded += store.upsert(batch)
    except FileNotFoundError:
        logging.error(f"Error: Input file not found: {INPUT_FILE}")
        sys.exit(1)
    finally:
        store.close()

    logging.info(f"Load complete: {loaded:,} records upserted.")


if __name__ == "__main__":
    main()
