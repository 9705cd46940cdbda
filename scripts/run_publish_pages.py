from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from page_pipeline.config import load_config
from page_pipeline.errors import PartialBatchFailure, raise_for_failures
from page_pipeline.resilience import build_store
from page_pipeline.workers.publish_pages import delete_pages, publish_pages


def main() -> None:
    parser = argparse.ArgumentParser(description="Publish or delete generated pages")
    parser.add_argument("page_ids", nargs="*", help="Page ids to process")
    parser.add_argument("--batch-id", default=None, help="Process every page of a generation batch")
    parser.add_argument("--delete", action="store_true", help="Delete the pages instead of publishing them")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    store = build_store(load_config())
    try:
        if args.delete:
            result = raise_for_failures(delete_pages(args.page_ids, args.batch_id, store=store), "deleted", "Delete")
            print(f"Deleted {len(result['deleted'])} pages")
        else:
            result = raise_for_failures(publish_pages(args.page_ids, args.batch_id, store=store), "publishedPages", "Publish")
            print(f"Published {len(result['publishedPages'])} pages")
            for page in result["publishedPages"]:
                print(f"  {page['url']}")
    except PartialBatchFailure as exc:
        print(exc.message)
        print(json.dumps(exc.result.get("errors", []), indent=2))
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
