"""
execute_publish_batch.py — Read a publish batch and publish each entry to Instagram.

Reads .tmp/publish_batch.json (a JSON list of entries, or {"items": [...]})
and publishes entries strictly one after another, in order. Each entry looks like:

    {"resource": "image",    "node": "1784...", "caption": "...", "image_url": "https://..."}
    {"resource": "reels",    "caption": "...", "video_url": "https://..."}
    {"resource": "stories",  "video_url": "https://..."}
    {"resource": "carousel", "caption": "...", "media_items": [
        {"type": "IMAGE", "image_url": "https://..."},
        {"type": "VIDEO", "video_url": "https://..."}]}

By default the first failure stops the batch. With --continue-on-fail each
failure is recorded and the next entry is attempted. Results are written to
.tmp/publish_results.json after every entry.

Usage:
    python tools/execute_publish_batch.py                     # publish everything
    python tools/execute_publish_batch.py --dry-run           # validate + preview only
    python tools/execute_publish_batch.py --continue-on-fail  # record failures, keep going
    python tools/execute_publish_batch.py --batch path/to/batch.json
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from config import BATCH_PATH, GRAPH_HOST, RESULTS_PATH, check_credentials
from errors import PublishError
from graph_client import GraphClient
from media_types import CarouselMedia, ItemResult, work_item_from_entry
from post_instagram import publish_item

logger = logging.getLogger(__name__)


def load_batch(path) -> list:
    """Load batch entries from a JSON file or exit with an error."""
    if not path.exists():
        print(f"ERROR: {path} not found.")
        sys.exit(1)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("items", [])
    if not isinstance(data, list):
        print(f"ERROR: {path} must contain a list of entries.")
        sys.exit(1)
    return data


def _should_continue(continue_on_fail) -> bool:
    return bool(continue_on_fail()) if callable(continue_on_fail) else bool(continue_on_fail)


def _resource_of(entry) -> str:
    return str(entry.get("resource", "")) if isinstance(entry, dict) else ""


def _node_of(entry) -> str:
    return str(entry.get("node") or "") if isinstance(entry, dict) else ""


def run_batch(entries: list, client, *, continue_on_fail=False, sleep=time.sleep,
              host: str = GRAPH_HOST, defaults=None, on_result=None) -> list[ItemResult]:
    """
    Publish every entry in order and return one ItemResult per entry.

    continue_on_fail may be a bool or a zero-argument callable; it is read
    once per failed entry. When it is false the PublishError is re-raised
    (with item_index set) and the rest of the batch is not attempted.
    """
    results: list[ItemResult] = []

    for index, entry in enumerate(entries):
        resource = _resource_of(entry)
        node = _node_of(entry)
        try:
            item = work_item_from_entry(entry, defaults)
            node = item.node
            payload = publish_item(client, item, host=host, sleep=sleep)
        except PublishError as e:
            e.item_index = index
            if not _should_continue(continue_on_fail):
                logger.error("Entry %d failed, stopping batch: %s", index, e)
                raise
            logger.warning("Entry %d failed, continuing: %s", index, e)
            result = ItemResult(index, False, error=e.to_record(),
                                resource=resource, node=node)
        else:
            result = ItemResult(index, True, payload=payload,
                                resource=resource, node=node)

        results.append(result)
        if on_result:
            on_result(result)

    return results


def describe_entry(entry) -> str:
    """One-line preview of an entry, used by --dry-run."""
    item = work_item_from_entry(entry)
    if isinstance(item.media, CarouselMedia):
        target = ", ".join(f"{c.child_type}:{c.url}" for c in item.media.children)
    else:
        target = getattr(item.media, "image_url", None) or item.media.video_url
    caption = item.caption
    return (f"{_resource_of(entry)} → {item.node} ({item.graph_api_version})\n"
            f"    Media: {target}\n"
            f"    Caption: {caption[:80]}{'...' if len(caption) > 80 else ''}")


def save_results(results: list[ItemResult], path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in results], f, indent=2)


def main():
    args = sys.argv[1:]
    dry_run = "--dry-run" in args
    continue_on_fail = "--continue-on-fail" in args
    batch_path = BATCH_PATH
    if "--batch" in args:
        i = args.index("--batch")
        if i + 1 >= len(args):
            print("ERROR: --batch needs a path.")
            sys.exit(1)
        batch_path = Path(args[i + 1])

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    entries = load_batch(batch_path)
    if not entries:
        print("No entries in publish batch. Nothing to do.")
        sys.exit(0)

    if dry_run:
        print("=== DRY RUN — nothing will be published ===\n")
        invalid = 0
        for i, entry in enumerate(entries):
            try:
                print(f"  [{i+1}/{len(entries)}] {describe_entry(entry)}\n")
            except PublishError as e:
                print(f"  [{i+1}/{len(entries)}] INVALID: {e.message}\n")
                invalid += 1
        print("=== DRY RUN COMPLETE ===")
        sys.exit(1 if invalid else 0)

    missing = check_credentials()
    if missing:
        print(f"ERROR: {', '.join(missing)} must be set in .env")
        sys.exit(1)

    print(f"Publishing {len(entries)} entries — {datetime.now().isoformat()}\n")

    collected: list[ItemResult] = []

    def on_result(result: ItemResult):
        collected.append(result)
        status = "OK" if result.ok else f"FAILED: {result.error.message}"
        print(f"  [{result.index+1}/{len(entries)}] Publishing {result.resource or '?'} → "
              f"{result.node or '?'}... {status}", flush=True)
        # Save after each entry (so progress is preserved on crash)
        save_results(collected, RESULTS_PATH)

    try:
        results = run_batch(entries, GraphClient(), continue_on_fail=continue_on_fail,
                            on_result=on_result)
    except PublishError as e:
        print(f"  [{e.item_index+1}/{len(entries)}] FAILED: {e}")
        print(f"\nBatch STOPPED at entry {e.item_index+1}. Results so far: {RESULTS_PATH}")
        sys.exit(1)

    succeeded = sum(1 for r in results if r.ok)
    failed = len(results) - succeeded
    print("\n=== Publishing complete ===")
    print(f"  Succeeded: {succeeded}")
    print(f"  Failed: {failed}")
    print(f"  Results: {RESULTS_PATH}")

    if failed > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
