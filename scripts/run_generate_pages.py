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

from page_pipeline.page_data import ALL_INTENTS
from page_pipeline.workers.generate_pages import generate_for_update


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate draft pages for one update")
    parser.add_argument("update_id", help="Update to generate pages for")
    parser.add_argument("--business-id", default=None, help="Optional owning business check")
    parser.add_argument("--content", default=None, help="Override the update's content text")
    parser.add_argument("--expires-at", default=None, help="Override the update's expiry (ISO 8601)")
    parser.add_argument("--deal-terms", default=None)
    parser.add_argument("--special-hours", default=None)
    parser.add_argument(
        "--intents",
        default=",".join(ALL_INTENTS),
        help=f"Comma-separated intents (default: {','.join(ALL_INTENTS)})",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    temporal_info = {}
    if args.expires_at:
        temporal_info["expiresAt"] = args.expires_at
    if args.deal_terms is not None:
        temporal_info["dealTerms"] = args.deal_terms

    result = generate_for_update(
        args.update_id,
        business_id=args.business_id,
        content_text=args.content,
        temporal_info=temporal_info or None,
        special_hours=args.special_hours,
        intents=[item.strip() for item in args.intents.split(",") if item.strip()],
    )
    print(f"Generated {result['totalPages']} pages in batch {result['batchId']} ({result['processingTimeMs']} ms)")
    for page in result["pages"]:
        print(f"  {page['intent_type']:<15} {page['file_path']}")
    if result["errors"]:
        print(json.dumps(result["errors"], indent=2))


if __name__ == "__main__":
    main()
