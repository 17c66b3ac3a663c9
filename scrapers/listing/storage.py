"""
Output sinks and the debug-artifact store.

Sinks and the failure log are the only state shared between concurrent
target sessions. All of them run on the event loop thread; appends are
synchronous between awaits, so concurrent sessions never interleave
inside one write.
"""

import asyncio
import csv
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Iterable, Optional

from shared.constants import CSV_HEADER, FAILED_URLS_KEY

from .models import FailedTarget, ProductRecord
from .page_scripts import PAGE_INFO_JS

logger = logging.getLogger(__name__)


# ── Sinks ─────────────────────────────────────────────────────────────────────

class MemorySink:
    """Keeps every appended record in memory."""

    def __init__(self):
        self.records: list[ProductRecord] = []

    def append(self, records: Iterable[ProductRecord]) -> int:
        batch = list(records)
        self.records.extend(batch)
        return len(batch)


class JsonlSink(MemorySink):
    """Appends one JSON object per record to a .jsonl file."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, records: Iterable[ProductRecord]) -> int:
        batch = list(records)
        if not batch:
            return 0
        with self.path.open("a", encoding="utf-8") as fh:
            for record in batch:
                fh.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
        self.records.extend(batch)
        return len(batch)


def _csv_row(record: ProductRecord) -> list:
    return [
        record.product_id,
        record.name or "",
        record.current_price if record.current_price is not None else "",
        record.original_price if record.original_price is not None else "",
        record.discount_percent if record.discount_percent is not None else "",
        record.weight_or_size or "",
        "Yes" if record.in_stock else "No",
        record.delivery_time or "",
        record.search_query or "",
        record.delivery_location or "",
        record.platform or "",
        record.image_url or "",
        record.product_url or record.search_url or "",
        record.extraction_strategy,
        record.captured_at,
    ]


def write_csv(records: Iterable[ProductRecord], path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [_csv_row(r) for r in records]
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_HEADER)
        writer.writerows(rows)
    logger.info("Saved %d product(s) to %s", len(rows), path)
    return path


# ── Artifact store ────────────────────────────────────────────────────────────

class ArtifactStore:
    """
    Best-effort key-value store on the local filesystem for screenshots,
    HTML snapshots and JSON documents. Every method logs and returns None
    instead of raising.
    """

    def __init__(self, root, enabled: bool = True):
        self.root = Path(root)
        self.enabled = enabled
        if enabled:
            self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def stamp(label: str) -> str:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in label)[:80]
        return f"{safe}_{int(time.time() * 1000)}"

    def put_json(self, key: str, value) -> Optional[Path]:
        if not self.enabled:
            return None
        path = self.root / f"{key}.json"
        try:
            path.write_text(json.dumps(value, indent=2, ensure_ascii=False, default=str),
                            encoding="utf-8")
            return path
        except OSError as exc:
            logger.warning("Could not write %s: %s", path, exc)
            return None

    def get_json(self, key: str, default=None):
        path = self.root / f"{key}.json"
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return default

    async def screenshot(self, page, label: str, stamped: bool = True) -> Optional[Path]:
        if not self.enabled or page is None:
            return None
        path = self.root / f"{self.stamp(label) if stamped else label}.png"
        try:
            await page.screenshot(path=str(path), full_page=True)
            logger.info("Screenshot saved: %s", path)
            return path
        except Exception as exc:
            logger.warning("Screenshot failed for %s: %s", label, exc)
            return None

    async def snapshot(self, page, label: str, selector: Optional[str] = None) -> Optional[str]:
        """Screenshot + HTML + page info under one timestamped key."""
        if not self.enabled or page is None:
            return None
        key = self.stamp(label)
        await self.screenshot(page, key, stamped=False)
        try:
            html = await page.content()
            (self.root / f"{key}.html").write_text(html, encoding="utf-8")
            info = await page.evaluate(PAGE_INFO_JS, selector)
            self.put_json(f"{key}_info", info)
            logger.info("Debug snapshot saved: %s (%s products visible)",
                        key, (info or {}).get("productCount", "?"))
        except Exception as exc:
            logger.warning("Debug snapshot incomplete for %s: %s", label, exc)
        return key


class FailureLog:
    """
    Append-only list of failed targets, mirrored to FAILED_URLS.json.
    Entries already in the store from earlier runs are kept ahead of this
    run's failures; .failures holds this run only.
    """

    def __init__(self, store: Optional[ArtifactStore] = None):
        self.store = store
        self.failures: list[FailedTarget] = []
        self._lock = asyncio.Lock()
        previous = store.get_json(FAILED_URLS_KEY, default=[]) if store is not None else []
        self._previous: list = previous if isinstance(previous, list) else []

    async def record(self, failure: FailedTarget) -> None:
        async with self._lock:
            self.failures.append(failure)
            if self.store is not None:
                self.store.put_json(FAILED_URLS_KEY, self._previous + [asdict(f) for f in self.failures])
        logger.error("Target failed after %d attempt(s): %s (%s)",
                     failure.attempts, failure.url, failure.error)
