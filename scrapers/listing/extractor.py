"""
Listing page field extractor.

Tiers (in order, first tier with at least one valid record wins):
  1. Structured state: the storefront's pre-hydration JSON blob
  2. DOM: product containers + per-field strategy tables
  3. Fallback: any focusable block, name + price only

extract() never raises: a failing tier logs a warning and the next tier
runs; a failure everywhere returns an empty list.
"""

import asyncio
import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag

from .models import ExtractionStrategy, LandingContext, ProductRecord
from .page_scripts import COLLECT_CONTAINERS_JS
from .sites import FieldTable, SiteProfile
from .state_parser import parse_state
from .strategies import PRICE_RE, absolute_url, any_signal, first_value, normalize_image_url


def parse_container(html: str) -> Optional[Tag]:
    soup = BeautifulSoup(html or "", "html.parser")
    return soup.find(True)


class FieldExtractor:

    def __init__(self, profile: SiteProfile, evaluate_timeout_s: float = 15.0):
        self.profile = profile
        self.evaluate_timeout_s = evaluate_timeout_s
        self._log = logging.getLogger(f"scrapers.listing.{profile.platform}")

    # ── Page access ───────────────────────────────────────────────────────────

    async def _evaluate(self, page, script: str, arg=None):
        return await asyncio.wait_for(page.evaluate(script, arg), timeout=self.evaluate_timeout_s)

    async def _containers(self, page, selectors: tuple[str, ...],
                          price_pattern: Optional[str] = None) -> list[Tag]:
        data = await self._evaluate(page, COLLECT_CONTAINERS_JS, {
            "selectors": list(selectors),
            "limit": self.profile.max_containers,
            "pricePattern": price_pattern,
        }) or {}
        if data.get("selector"):
            self._log.debug("[%s] %d container(s) via %s",
                            self.profile.display_name, len(data.get("html") or []), data["selector"])
        tags = []
        for html in data.get("html") or []:
            tag = parse_container(html)
            if tag is not None:
                tags.append(tag)
        return tags

    # ── Tiers ─────────────────────────────────────────────────────────────────

    async def _state_tier(self, page) -> list[ProductRecord]:
        if not self.profile.state_script:
            return []
        state = await self._evaluate(page, self.profile.state_script)
        if not state:
            return []
        return parse_state(state)

    async def _dom_tier(self, page) -> list[ProductRecord]:
        containers = await self._containers(page, self.profile.container_selectors)
        records = []
        for index, tag in enumerate(containers):
            record = self.record_from_container(tag, index, self.profile.fields, ExtractionStrategy.DOM)
            if record is not None:
                records.append(record)
        return records

    async def _fallback_tier(self, page) -> list[ProductRecord]:
        containers = await self._containers(page, (self.profile.fallback_selector,), PRICE_RE.pattern)
        records = []
        for index, tag in enumerate(containers):
            record = self.record_from_container(tag, index, self.profile.fallback_fields,
                                                ExtractionStrategy.FALLBACK)
            # Loose blocks need both signals to count as a product
            if record is not None and record.name and record.current_price is not None:
                records.append(record)
        return records

    # ── Container → record ────────────────────────────────────────────────────

    def record_from_container(self, tag: Tag, index: int, table: FieldTable,
                              tier: ExtractionStrategy) -> Optional[ProductRecord]:
        def value(strategies):
            return first_value(strategies, tag)[0]

        synthetic_tier = "" if tier is ExtractionStrategy.DOM else tier.value
        rating = value(table.rating)
        record = ProductRecord(
            product_id=str(value(table.product_id) or self.profile.synthetic_id(index, synthetic_tier)),
            name=value(table.name),
            image_url=value(table.image),
            weight_or_size=value(table.weight),
            current_price=value(table.current_price),
            original_price=value(table.original_price),
            in_stock=not any_signal(table.out_of_stock, tag),
            delivery_time=value(table.delivery_time),
            product_url=value(table.product_url),
            product_slug=value(table.product_slug),
            rating=float(rating) if rating is not None else None,
            is_sponsored=bool(value(table.sponsored)),
            extraction_strategy=tier.value,
        )
        if record.is_empty():
            return None
        record.finalize_pricing()
        return record

    # ── Post-processing ───────────────────────────────────────────────────────

    def _finish(self, records: list[ProductRecord], base_url: Optional[str]) -> list[ProductRecord]:
        seen: set[str] = set()
        out = []
        for record in records:
            if record.product_id in seen:
                continue
            record.image_url = normalize_image_url(record.image_url, base_url, self.profile.image_upgrades)
            if record.product_url:
                record.product_url = absolute_url(record.product_url, base_url)
            if record.is_empty():
                continue
            seen.add(record.product_id)
            out.append(record)
        return out

    # ── Public ────────────────────────────────────────────────────────────────

    async def extract(self, page, context: Optional[LandingContext] = None) -> list[ProductRecord]:
        name = self.profile.display_name
        base_url = getattr(page, "url", None) or (context.url if context else None)

        tiers = (
            (ExtractionStrategy.STATE, self._state_tier),
            (ExtractionStrategy.DOM, self._dom_tier),
            (ExtractionStrategy.FALLBACK, self._fallback_tier),
        )
        for tier, run in tiers:
            try:
                records = self._finish(await run(page), base_url)
            except Exception as exc:
                self._log.warning("[%s] %s tier failed: %s", name, tier.value, exc)
                continue
            if records:
                self._log.info("[%s] Extracted %d product(s) from %s tier", name, len(records), tier.value)
                return records
            self._log.debug("[%s] %s tier yielded nothing", name, tier.value)

        self._log.warning("[%s] No products extracted from %s", name, base_url)
        return []
