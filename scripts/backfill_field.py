#!/usr/bin/env python3
"""
Backfill a field on every document matching a query.

Walks the collection window by window (ascending _id) and sets the field
on each window with one bulk update. SIGINT/SIGTERM stop the walk between
windows and print the key to resume after.

Usage:
    python scripts/backfill_field.py events status '"archived"' --query '{"year": 2019}'
    python scripts/backfill_field.py events status '"archived"' --resume-after 65a1f0c2e4b0a1b2c3d4e5f6

Options:
    --page-size      Window size (default: DOCBATCH_PAGE_SIZE or 500)
    --resume-after   Resume strictly after this _id
    --dry-run        Log what would be updated without writing
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bson import ObjectId

from docbatch.common.config import StoreConfig
from docbatch.common.logger import setup_logging
from docbatch.common.result import Result
from docbatch.common.shutdown import ShutdownFlag, register_for_graceful_shutdown
from docbatch.repositories import StoreHandle, bulk_update_by_query, work_page_by_page

logger = logging.getLogger(__name__)


def parse_key(raw: str) -> Any:
    """ObjectId when it looks like one, then int, else the raw string."""
    if ObjectId.is_valid(raw):
        return ObjectId(raw)
    try:
        return int(raw)
    except ValueError:
        return raw


def set_field_on_window(
    window: List[Dict[str, Any]],
    store: StoreHandle,
    collection: str,
    field: str,
    value: Any,
    dry_run: bool,
) -> Result:
    """Set field=value on every document of the window in one bulk operation."""
    first, last = window[0]["_id"], window[-1]["_id"]
    if dry_run:
        logger.info(f"[DRY RUN] Would set {field} on {len(window)} document(s) ({first} .. {last})")
        return Result.empty("dry run")

    ids = [document["_id"] for document in window]
    result = bulk_update_by_query(store, collection, {field: value}, {"_id": {"$in": ids}})
    if result:
        logger.info(f"Updated {len(window)} document(s) ({first} .. {last})")
    return result


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Backfill a field across a collection")
    parser.add_argument("collection", help="Collection to walk")
    parser.add_argument("field", help="Field to set")
    parser.add_argument("value", help="JSON value to set, e.g. '\"archived\"' or 3")
    parser.add_argument("--query", default="{}", help="JSON query filter (default: {})")
    parser.add_argument("--page-size", type=int, default=None, help="Window size")
    parser.add_argument("--resume-after", default=None, help="Resume strictly after this _id")
    parser.add_argument("--dry-run", action="store_true", help="Do not write anything")
    parser.add_argument("--verbose", action="store_true", help="Log every window (DEBUG)")
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else None)
    config = StoreConfig.from_env()

    flag = ShutdownFlag()
    register_for_graceful_shutdown(flag.request)

    store = StoreHandle.from_config(config)
    connected = store.initialize()
    if not connected:
        logger.error(f"Could not connect: {connected.text}")
        sys.exit(1)

    try:
        result = work_page_by_page(
            store,
            args.collection,
            json.loads(args.query),
            args.page_size or config.default_page_size,
            set_field_on_window,
            (store, args.collection, args.field, json.loads(args.value), args.dry_run),
            start_after=parse_key(args.resume_after) if args.resume_after else None,
            stop_requested=flag,
        )
    finally:
        store.close()

    logger.info(json.dumps(result.to_dict(), default=str))
    sys.exit(0 if result else 1)


if __name__ == "__main__":
    main()
