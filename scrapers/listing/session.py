"""
Per-target listing session.

Sequence for one already-navigated page:
  load signal → overlays → location (first target only) → first result
  → scroll → extract → annotate → truncate → sink

Only navigation and browser faults propagate out of process(); every
other phase degrades locally.
"""

import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .extractor import FieldExtractor
from .location import LocationSetupMachine
from .models import LandingContext, LocationSessionResult, ProductRecord, SessionState, TargetResult
from .scroll import DEFAULT_MAX_ITERATIONS, ScrollController
from .sites import SiteProfile
from .storage import ArtifactStore

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"

OverlayHook = Callable[[object], Awaitable[None]]


class ListingSession:

    def __init__(
        self,
        profile: SiteProfile,
        sink=None,
        artifacts: Optional[ArtifactStore] = None,
        max_records: int = 100,
        scroll_target: Optional[int] = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        load_timeout_ms: int = 15_000,
        results_timeout_ms: int = 10_000,
        capture_debug: bool = False,
        overlay_hook: Optional[OverlayHook] = None,
        scroll: Optional[ScrollController] = None,
        extractor: Optional[FieldExtractor] = None,
    ):
        self.profile = profile
        self.sink = sink
        self.artifacts = artifacts
        self.max_records = max_records
        self.scroll_target = scroll_target or max_records
        self.max_iterations = max_iterations
        self.load_timeout_ms = load_timeout_ms
        self.results_timeout_ms = results_timeout_ms
        self.capture_debug = capture_debug
        self.overlay_hook = overlay_hook
        self.scroll = scroll or ScrollController(profile)
        self.extractor = extractor or FieldExtractor(profile)

    @property
    def name(self) -> str:
        return self.profile.display_name

    # ── Phases ────────────────────────────────────────────────────────────────

    async def _wait_for_load(self, page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=self.load_timeout_ms)
        except PlaywrightTimeoutError:
            logger.info("[%s] Network never went idle, continuing", self.name)

    async def _dismiss_overlays(self, page) -> None:
        try:
            if self.overlay_hook is not None:
                await self.overlay_hook(page)
        except Exception as exc:
            logger.debug("[%s] Overlay dismissal skipped: %s", self.name, exc)

    async def _bind_location(self, page, landing: LandingContext,
                             state: SessionState) -> SessionState:
        if not landing.is_first_request_in_run or not landing.requested_location:
            return state
        if state.location_bound:
            return state
        result = await LocationSetupMachine(self.profile).run(page, landing.requested_location)
        return replace(state, location=result)

    async def _wait_for_results(self, page) -> bool:
        try:
            await page.wait_for_selector(self.profile.results_selector, timeout=self.results_timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def _global_delivery_time(self, page) -> Optional[str]:
        selector = self.profile.delivery_time_selector
        if not selector:
            return None
        try:
            locator = page.locator(selector)
            if await locator.count() == 0:
                return None
            text = await locator.first.text_content(timeout=2_000)
        except Exception as exc:
            logger.debug("[%s] Delivery time not readable: %s", self.name, exc)
            return None
        text = " ".join((text or "").split())
        return text or None

    async def _debug_snapshot(self, page, label: str) -> None:
        if self.capture_debug and self.artifacts is not None:
            await self.artifacts.snapshot(page, f"{self.profile.platform}_{label}",
                                          self.profile.results_selector)

    # ── Annotation ────────────────────────────────────────────────────────────

    def annotate(self, records: list[ProductRecord], landing: LandingContext,
                 location: Optional[LocationSessionResult],
                 delivery_time: Optional[str] = None) -> list[ProductRecord]:
        label = location.resolved_location_label if location else None
        delivery_location = label or landing.requested_location or UNKNOWN_LOCATION
        for record in records:
            record.search_query = landing.search_term
            record.search_url = landing.url
            record.requested_location = landing.requested_location
            record.delivery_location = delivery_location
            record.platform = landing.platform
            if delivery_time:
                record.delivery_time = delivery_time
        return records

    # ── Public ────────────────────────────────────────────────────────────────

    async def process(self, page, landing: LandingContext,
                      state: Optional[SessionState] = None) -> TargetResult:
        state = state or SessionState()
        logger.info("[%s] Processing %s", self.name, landing.url)

        await self._wait_for_load(page)
        await self._dismiss_overlays(page)
        state = await self._bind_location(page, landing, state)

        if not await self._wait_for_results(page):
            logger.warning("[%s] No products found within %dms on %s", self.name,
                           self.results_timeout_ms, landing.url)
            await self._debug_snapshot(page, "no_results")
            return TargetResult(url=landing.url, status="no_results", session_state=state)

        scroll_count = await self.scroll.load_more(page, self.scroll_target, self.max_iterations)
        delivery_time = await self._global_delivery_time(page)
        records = await self.extractor.extract(page, landing)

        if not records:
            logger.warning("[%s] Zero products extracted from %s", self.name, landing.url)
            await self._debug_snapshot(page, "empty")

        records = self.annotate(records, landing, state.location, delivery_time)
        if len(records) > self.max_records:
            logger.info("[%s] Truncating %d product(s) to %d", self.name, len(records), self.max_records)
            records = records[: self.max_records]

        if self.sink is not None and records:
            self.sink.append(records)

        logger.info("[%s] %d product(s) from %s", self.name, len(records), landing.url)
        return TargetResult(
            url=landing.url,
            records=records,
            status="ok" if records else "empty",
            scroll_count=scroll_count,
            session_state=state,
        )
