"""
Delivery-location setup.

The storefront prices and stocks the catalog per dark store, so the
pincode has to be bound before anything is extracted. The flow is a
linear state machine:

  Idle → LocatorOpened → ModalVisible → InputFilled → SuggestionSelected → Confirmed

Each state probes an ordered list of selectors for its UI affordance and
advances on the first match. A state whose affordance never appears within
its timeout moves to Failed. run() never raises; callers treat Failed as
"continue under the storefront's default location".
"""

import asyncio
import logging
from typing import Optional

from .models import LocationSessionResult, LocationState
from .sites import LocationFlow, SiteProfile

logger = logging.getLogger(__name__)


class LocationSetupMachine:

    def __init__(self, profile: SiteProfile):
        self.profile = profile
        self.flow: LocationFlow = profile.location
        self.state = LocationState.IDLE
        self.history: list[LocationState] = [LocationState.IDLE]
        self._input = None
        self._submitted_directly = False
        self._deadline: Optional[float] = None

    # ── Probing ───────────────────────────────────────────────────────────────

    def _remaining_ms(self) -> float:
        """Budget left for the walk, never below 1ms."""
        if self._deadline is None:
            return float(self.flow.total_timeout_ms)
        return max(1.0, (self._deadline - asyncio.get_running_loop().time()) * 1000)

    async def _probe(self, page, selectors: tuple[str, ...], timeout_ms: int):
        """Poll selectors in priority order until one matches or timeout_ms passes."""
        if not selectors:
            return None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while True:
            for selector in selectors:
                locator = page.locator(selector)
                if await locator.count() > 0:
                    logger.debug("[%s] Matched %s", self.profile.display_name, selector)
                    return locator.first
            if loop.time() >= deadline:
                return None
            await page.wait_for_timeout(self.flow.poll_interval_ms)

    async def _any_visible(self, page, selectors: tuple[str, ...]) -> bool:
        for selector in selectors:
            if await page.locator(selector).count() > 0:
                return True
        return False

    # ── State handlers (each returns the next state) ──────────────────────────

    async def _from_idle(self, page, location: str) -> LocationState:
        button = await self._probe(page, self.flow.locator_selectors, self.flow.locator_timeout_ms)
        if button is None:
            if self.flow.locator_required:
                logger.warning("[%s] Location button not found", self.profile.display_name)
                return LocationState.FAILED
            logger.info("[%s] Location bar not found, looking for modal...", self.profile.display_name)
            return LocationState.LOCATOR_OPENED
        try:
            await button.click(timeout=self.flow.locator_timeout_ms)
        except Exception as exc:
            if self.flow.locator_required:
                raise
            logger.info("[%s] Location bar click failed (%s), looking for input...",
                        self.profile.display_name, exc)
        return LocationState.LOCATOR_OPENED

    async def _from_locator_opened(self, page, location: str) -> LocationState:
        if not self.flow.modal_selectors:
            return LocationState.MODAL_VISIBLE
        modal = await self._probe(page, self.flow.modal_selectors, self.flow.modal_timeout_ms)
        if modal is None:
            logger.warning("[%s] Location modal not detected", self.profile.display_name)
            return LocationState.FAILED
        return LocationState.MODAL_VISIBLE

    async def _from_modal_visible(self, page, location: str) -> LocationState:
        field = await self._probe(page, self.flow.input_selectors, self.flow.input_timeout_ms)
        if field is None:
            logger.warning("[%s] Location input not found", self.profile.display_name)
            return LocationState.FAILED
        await field.click(timeout=self.flow.input_timeout_ms)
        await field.fill("", timeout=self._remaining_ms())
        await field.press_sequentially(location, delay=self.flow.type_delay_ms, timeout=self._remaining_ms())
        self._input = field
        return LocationState.INPUT_FILLED

    async def _from_input_filled(self, page, location: str) -> LocationState:
        suggestion = await self._probe(page, self.flow.suggestion_selectors,
                                       self.flow.suggestion_timeout_ms)
        if suggestion is not None:
            await suggestion.click(timeout=self.flow.suggestion_timeout_ms, force=True)
            return LocationState.SUGGESTION_SELECTED
        # No suggestion list: submit the typed value directly
        logger.info("[%s] No suggestions rendered, submitting typed location", self.profile.display_name)
        await self._input.press("Enter", timeout=self.flow.suggestion_timeout_ms)
        self._submitted_directly = True
        return LocationState.SUGGESTION_SELECTED

    async def _from_suggestion_selected(self, page, location: str) -> LocationState:
        if not self.flow.modal_selectors:
            await page.wait_for_timeout(min(self.flow.confirm_timeout_ms, 1_500))
            return LocationState.CONFIRMED
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.flow.confirm_timeout_ms / 1000
        while await self._any_visible(page, self.flow.modal_selectors):
            if loop.time() >= deadline:
                logger.warning("[%s] Location modal still open after %s", self.profile.display_name,
                               "direct submit" if self._submitted_directly else "suggestion click")
                return LocationState.FAILED
            await page.wait_for_timeout(self.flow.poll_interval_ms)
        return LocationState.CONFIRMED

    _HANDLERS = {
        LocationState.IDLE: _from_idle,
        LocationState.LOCATOR_OPENED: _from_locator_opened,
        LocationState.MODAL_VISIBLE: _from_modal_visible,
        LocationState.INPUT_FILLED: _from_input_filled,
        LocationState.SUGGESTION_SELECTED: _from_suggestion_selected,
    }

    # ── Public ────────────────────────────────────────────────────────────────

    async def read_label(self, page) -> Optional[str]:
        """Text of the location bar subtitle, if the storefront shows one."""
        label = await self._probe(page, self.flow.label_selectors, self.flow.label_timeout_ms)
        if label is None:
            return None
        try:
            text = await label.text_content(timeout=self.flow.label_timeout_ms)
        except Exception:
            return None
        text = " ".join((text or "").split())
        return text or None

    async def _walk(self, page, location: str) -> None:
        name = self.profile.display_name
        while self.state not in (LocationState.CONFIRMED, LocationState.FAILED):
            handler = self._HANDLERS[self.state]
            try:
                next_state = await handler(self, page, location)
            except Exception as exc:
                logger.warning("[%s] Location step %s failed: %s", name, self.state.value, exc)
                next_state = LocationState.FAILED
            self.state = next_state
            self.history.append(next_state)

    async def run(self, page, location: str) -> LocationSessionResult:
        """Walk the flow within LocationFlow.total_timeout_ms, then read the label."""
        name = self.profile.display_name
        logger.info("[%s] Setting delivery location to %s", name, location)

        budget_ms = self.flow.total_timeout_ms - self.flow.label_timeout_ms
        self._deadline = asyncio.get_running_loop().time() + budget_ms / 1000
        try:
            await asyncio.wait_for(self._walk(page, location), timeout=budget_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning("[%s] Location step %s ran past %dms", name, self.state.value, budget_ms)
            self.state = LocationState.FAILED
            self.history.append(LocationState.FAILED)

        succeeded = self.state is LocationState.CONFIRMED
        label = None
        if succeeded:
            try:
                label = await asyncio.wait_for(self.read_label(page),
                                               timeout=self.flow.label_timeout_ms / 1000)
            except Exception as exc:
                logger.debug("[%s] Could not read location label: %s", name, exc)
            logger.info("[%s] Location set%s", name, f": {label}" if label else "")
        else:
            logger.warning("[%s] Location setup failed, continuing with default location", name)

        return LocationSessionResult(
            attempted=True,
            succeeded=succeeded,
            resolved_location_label=label,
            final_state=self.state,
        )
