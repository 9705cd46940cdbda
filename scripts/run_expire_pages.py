"""Expiration sweep, meant to be run from cron every few minutes."""
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

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from page_pipeline.config import load_config
from page_pipeline.errors import StoreError
from page_pipeline.resilience import build_store
from page_pipeline.storage import ObjectStore
from page_pipeline.workers.expire_pages import ACTIONS, run_expiration


@retry(
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(StoreError),
    reraise=True,
)
def run_with_retry(action: str, page_id: str | None, hours: float | None, store: ObjectStore) -> dict:
    return run_expiration(action, page_id=page_id, hours=hours, store=store)


def main() -> None:
    parser = argparse.ArgumentParser(description="Expire, extend, or inspect generated pages")
    parser.add_argument("--action", choices=ACTIONS, default="expire-all")
    parser.add_argument("--page-id", default=None, help="Required for expire-single and extend")
    parser.add_argument("--hours", type=float, default=None, help="Required for extend")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    store = build_store(load_config())
    try:
        result = run_with_retry(args.action, args.page_id, args.hours, store)
    finally:
        store.close()
    print(result["message"])
    if args.action == "check-upcoming" and result["expiredPages"]:
        print(json.dumps([{"id": page["id"], "expiresAt": page["expiresAt"]} for page in result["expiredPages"]], indent=2))


if __name__ == "__main__":
    main()
