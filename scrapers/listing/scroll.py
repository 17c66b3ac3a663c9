"""
Scroll convergence controller.

Drives the infinite-scroll list until the matched-container count reaches
the target or stops growing for `stable_threshold` consecutive reads.
Probing → Growing → Stabilizing → Done; `max_iterations` bounds the loop
whatever the page does.
"""

import logging
from dataclasses import replace

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .models import ScrollOutcome, ScrollPhase, ScrollState
from .page_scripts import COUNT_CONTAINERS_JS, COUNT_EXCEEDS_JS, SCROLL_ADVANCE_JS, SCROLL_NUDGE_JS
from .sites import SiteProfile

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 50
DEFAULT_STABLE_THRESHOLD = 3


def advance(state: ScrollState, current_count: int, target_count: int,
            stable_threshold: int = DEFAULT_STABLE_THRESHOLD) -> ScrollState:
    """
    One convergence step. Pure: the next state depends only on the inputs.

    A read lower than what was already seen (virtualised lists unmount
    rows) is treated as "no growth"; observed_count never decreases.
    """
    observed = max(state.observed_count, current_count)
    grew = observed > state.observed_count
    state = replace(
        state,
        previous_count=state.observed_count,
        observed_count=observed,
        attempts=state.attempts + 1,
    )

    if observed >= target_count:
        return state.done(ScrollOutcome.TARGET_REACHED)

    if not grew:
        stable = state.stable_iterations + 1
        state = replace(state, stable_iterations=stable, phase=ScrollPhase.STABILIZING)
        if stable >= stable_threshold:
            return state.done(ScrollOutcome.EXHAUSTED)
        return state

    return replace(state, stable_iterations=0, phase=ScrollPhase.GROWING)


class ScrollController:
    """Runs advance() against a live page, scrolling between reads."""

    def __init__(
        self,
        profile: SiteProfile,
        stable_threshold: int = DEFAULT_STABLE_THRESHOLD,
        settle_ms: int = 800,
        nudge_px: int = 200,
        nudge_settle_ms: int = 300,
        growth_wait_ms: int = 2_000,
    ):
        self.profile = profile
        self.stable_threshold = stable_threshold
        self.settle_ms = settle_ms
        self.nudge_px = nudge_px
        self.nudge_settle_ms = nudge_settle_ms
        self.growth_wait_ms = growth_wait_ms
        self.state = ScrollState()

    async def _count(self, page) -> int:
        count = await page.evaluate(COUNT_CONTAINERS_JS, list(self.profile.container_selectors))
        return int(count or 0)

    async def _scroll_step(self, page) -> None:
        region = self.profile.scroll_region_selector
        await page.evaluate(SCROLL_ADVANCE_JS, region)
        await page.wait_for_timeout(self.settle_ms)
        # Small reverse nudge re-triggers intersection observers bound to upward movement
        await page.evaluate(SCROLL_NUDGE_JS, [region, self.nudge_px])
        await page.wait_for_timeout(self.nudge_settle_ms)

    async def _wait_for_growth(self, page, previous: int) -> None:
        if self.growth_wait_ms <= 0:
            return
        try:
            await page.wait_for_function(
                COUNT_EXCEEDS_JS,
                arg=[list(self.profile.container_selectors), previous],
                timeout=self.growth_wait_ms,
            )
        except PlaywrightTimeoutError:
            pass

    async def load_more(self, page, target_count: int,
                        max_iterations: int = DEFAULT_MAX_ITERATIONS) -> int:
        """Scroll until convergence; returns the highest container count seen."""
        name = self.profile.display_name
        self.state = ScrollState()
        try:
            for _ in range(max(0, max_iterations)):
                self.state = advance(self.state, await self._count(page), target_count,
                                     self.stable_threshold)
                logger.debug("[%s] Scroll %d: %d item(s), %s", name, self.state.attempts,
                             self.state.observed_count, self.state.phase.value)
                if self.state.phase is ScrollPhase.DONE:
                    break
                await self._scroll_step(page)
                await self._wait_for_growth(page, self.state.observed_count)
            else:
                self.state = self.state.done(ScrollOutcome.ITERATION_CAP)
        except Exception as exc:
            logger.warning("[%s] Scroll loop stopped early: %s", name, exc)
            self.state = self.state.done(ScrollOutcome.ERROR)

        logger.info("[%s] Scroll finished: %d item(s) after %d read(s) (%s)", name,
                    self.state.observed_count, self.state.attempts, self.state.outcome.value)
        return self.state.observed_count
