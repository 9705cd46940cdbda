from __future__ import annotations

import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from page_pipeline.config import load_config
from page_pipeline.resilience import build_store
from page_pipeline.workers.sitemap import rebuild_sitemap


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store = build_store(load_config())
    try:
        result = rebuild_sitemap(store=store)
    finally:
        store.close()
    print(f"Wrote {result['sitemapKey']} with {result['urlCount']} urls and {result['robotsKey']}")


if __name__ == "__main__":
    main()
