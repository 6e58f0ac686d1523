"""Pull every configuration from the admin platform and write it under a local directory."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Optional

from .http_source import _get
from .source import ConfigError, loads_json

logger = logging.getLogger(__name__)

SYNC_TIMEOUT = 30.0

# (display name, admin API path, sub-directory under the output directory)
CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("event_types", "/api/configs/event_types", "events"),
    ("fsm_configs", "/api/configs/fsm_configs", "fsm"),
    ("bt_trees", "/api/configs/bt_trees", "bt_trees"),
    ("npc_templates", "/api/configs/npc_templates", "npc_templates"),
)


def fetch_items(url: str, timeout: float = SYNC_TIMEOUT) -> list[tuple[str, Any]]:
    """Fetch one category: a list of (name, decoded config) pairs in response order."""
    status, body = _get(url, timeout)
    if status != 200:
        raise ConfigError(f"request {url}: status {status}")
    try:
        payload = loads_json(body)
    except ValueError as exc:
        raise ConfigError(f"parse response: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("parse response: response is not an object")
    items = payload.get("items") or []
    if not isinstance(items, list):
        raise ConfigError("parse response: items is not a list")

    result: list[tuple[str, Any]] = []
    for item in items:
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise ConfigError("parse response: item is not an object")
        name = item.get("name") or ""
        if not isinstance(name, str):
            raise ConfigError("parse response: item name is not a string")
        result.append((name, item.get("config")))
    return result


def write_items(items: Iterable[Sequence[Any]], out_dir: str | Path, sub_dir: str) -> int:
    """Write each (name, config) as pretty JSON to out_dir/sub_dir/name.json; return the count.

    Names may contain "/" and then land in sub-directories. Items without a name are skipped.
    """
    written = 0
    for name, config in items:
        if not name:
            continue
        content = json.dumps(config, indent=2, ensure_ascii=False) + "\n"
        path = Path(out_dir) / sub_dir / (name + ".json")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"mkdir {path.parent}: {exc}") from exc
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"write {path}: {exc}") from exc
        written += 1
    return written


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Sync every configuration category; return the process exit status."""
    parser = argparse.ArgumentParser(
        prog="npcbrain-sync",
        description="Pull all configurations from the admin platform into local JSON files.",
    )
    parser.add_argument(
        "-api", "--api", default="",
        help="admin platform base URL (required), e.g. http://localhost:3000",
    )
    parser.add_argument(
        "-out", "--out", default="configs", help="output directory for JSON configs",
    )
    args = parser.parse_args(argv)

    if not args.api:
        parser.print_usage(sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    base = args.api.rstrip("/")
    deadline = time.monotonic() + SYNC_TIMEOUT
    total = 0

    for name, api_path, sub_dir in CATEGORIES:
        remaining = deadline - time.monotonic()
        try:
            if remaining <= 0:
                raise ConfigError("sync deadline exceeded")
            items = fetch_items(base + api_path, remaining)
        except ConfigError as exc:
            logger.error("[%s] fetch failed: %s", name, exc)
            return 1

        try:
            written = write_items(items, args.out, sub_dir)
        except ConfigError as exc:
            logger.error("[%s] write failed: %s", name, exc)
            return 1

        total += written
        logger.info("[%s] synced %d configs", name, written)

    logger.info("sync complete: %d files written to %s/", total, args.out)
    return 0


if __name__ == "__main__":
    sys.exit(main())