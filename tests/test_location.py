"""
tests/test_location.py

Pytest unit tests for the delivery-location state machine on both
storefront flows. Page transitions are simulated with FakePage hooks.
"""

from __future__ import annotations

import asyncio
import time

from conftest import BLINKIT_LOCATION_BAR, FakeLocator, FakePage, page_html
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scrapers.listing.location import LocationSetupMachine
from scrapers.listing.models import LocationState

ZEPTO_BUTTON = '<button aria-label="Select Location">Select Location</button>'
ZEPTO_MODAL = """
<div data-testid="address-modal">
  <div data-testid="address-search-input"><input type="text"></div>
  {suggestions}
</div>"""
ZEPTO_SUGGESTION = '<div data-testid="address-search-item">Shivajinagar, Pune 411001</div>'

BLINKIT_INPUT = '<input name="select-locality" type="text">'


def run(profile, page, location="411001"):
    machine = LocationSetupMachine(profile)
    result = asyncio.run(machine.run(page, location))
    return result, machine


def zepto_page(with_suggestions=True, modal_closes=True, page_cls=FakePage) -> FakePage:
    def open_modal(page):
        suggestions = ZEPTO_SUGGESTION if with_suggestions else ""
        page.set_html(page_html(ZEPTO_BUTTON + ZEPTO_MODAL.format(suggestions=suggestions)))

    def pick(page):
        if modal_closes:
            page.set_html(page_html('<button aria-label="Select Location">Shivajinagar, Pune</button>'))

    return page_cls(page_html(ZEPTO_BUTTON), hooks={
        ("click", 'button[aria-label="Select Location"]'): open_modal,
        ("click", 'div[data-testid="address-search-item"]'): pick,
    })


class TestZeptoFlow:
    def test_happy_path(self, zepto_profile) -> None:
        page = zepto_page()
        result, machine = run(zepto_profile, page)

        assert result.attempted and result.succeeded
        assert result.final_state is LocationState.CONFIRMED
        assert result.resolved_location_label == "Shivajinagar, Pune"
        assert machine.history == [
            LocationState.IDLE,
            LocationState.LOCATOR_OPENED,
            LocationState.MODAL_VISIBLE,
            LocationState.INPUT_FILLED,
            LocationState.SUGGESTION_SELECTED,
            LocationState.CONFIRMED,
        ]
        assert page.typed == "411001"

    def test_missing_button_fails(self, zepto_profile) -> None:
        result, machine = run(zepto_profile, FakePage(page_html("<p>hello</p>")))
        assert not result.succeeded
        assert result.final_state is LocationState.FAILED
        assert machine.history == [LocationState.IDLE, LocationState.FAILED]

    def test_modal_never_opens(self, zepto_profile) -> None:
        result, _ = run(zepto_profile, FakePage(page_html(ZEPTO_BUTTON)))
        assert result.final_state is LocationState.FAILED

    def test_no_suggestions_submits_typed_value(self, zepto_profile) -> None:
        page = zepto_page(with_suggestions=False)
        page.hooks[("press", "Enter")] = lambda p: p.set_html(page_html(ZEPTO_BUTTON))

        result, machine = run(zepto_profile, page)

        assert ("press", 'div[data-testid="address-search-input"] input[type="text"]', "Enter") in page.actions
        assert result.succeeded
        assert LocationState.SUGGESTION_SELECTED in machine.history

    def test_modal_stuck_open_fails(self, zepto_profile) -> None:
        result, _ = run(zepto_profile, zepto_page(modal_closes=False))
        assert result.final_state is LocationState.FAILED
        assert result.resolved_location_label is None


class TestBlinkitFlow:
    def test_modal_open_without_location_bar(self, blinkit_profile) -> None:
        def pick(page):
            page.set_html(page_html(BLINKIT_LOCATION_BAR))

        page = FakePage(
            page_html(BLINKIT_INPUT + '<div role="option">Shivajinagar, Pune</div>'),
            hooks={("click", 'div[role="option"]'): pick},
        )
        result, machine = run(blinkit_profile, page, "Pune 411001")

        assert result.succeeded
        assert result.resolved_location_label == "Shivajinagar, Pune"
        assert page.typed == "Pune 411001"

    def test_enter_fallback_without_suggestions(self, blinkit_profile) -> None:
        page = FakePage(page_html(BLINKIT_LOCATION_BAR + BLINKIT_INPUT))
        result, _ = run(blinkit_profile, page)
        assert any(a[0] == "press" and a[2] == "Enter" for a in page.actions)
        assert result.succeeded

    def test_location_bar_click_failure_is_not_fatal(self, blinkit_profile) -> None:
        class HiddenBar(FakeLocator):
            @property
            def first(self):
                return HiddenBar(self.page, self.selector, 0)

            async def click(self, timeout=None, force=False):
                raise PlaywrightTimeoutError("element is not visible")

        class HiddenBarPage(FakePage):
            def locator(self, selector):
                if "LocationBar__Container" in selector:
                    return HiddenBar(self, selector)
                return super().locator(selector)

        def pick(page):
            page.set_html(page_html(BLINKIT_LOCATION_BAR))

        page = HiddenBarPage(
            page_html(BLINKIT_LOCATION_BAR + BLINKIT_INPUT + '<div role="option">Shivajinagar, Pune</div>'),
            hooks={("click", 'div[role="option"]'): pick},
        )
        result, machine = run(blinkit_profile, page)

        assert result.final_state is LocationState.CONFIRMED
        assert LocationState.LOCATOR_OPENED in machine.history
        assert page.typed == "411001"

    def test_no_input_fails(self, blinkit_profile) -> None:
        result, _ = run(blinkit_profile, FakePage(page_html(BLINKIT_LOCATION_BAR)))
        assert result.final_state is LocationState.FAILED


class TestTermination:
    def test_handler_exception_becomes_failed(self, zepto_profile) -> None:
        class ExplodingPage(FakePage):
            def locator(self, selector):
                raise RuntimeError("Target page has been closed")

        result, _ = run(zepto_profile, ExplodingPage())
        assert result.final_state is LocationState.FAILED

    def test_always_terminal(self, zepto_profile, blinkit_profile) -> None:
        for profile in (zepto_profile, blinkit_profile):
            for html in ("", page_html(ZEPTO_BUTTON), page_html(BLINKIT_INPUT)):
                result, _ = run(profile, FakePage(html))
                assert result.final_state in (LocationState.CONFIRMED, LocationState.FAILED)

    def test_bounded_by_per_state_timeouts(self, zepto_profile) -> None:
        page = FakePage(page_html(ZEPTO_BUTTON))
        started = time.monotonic()
        run(zepto_profile, page)
        assert time.monotonic() - started <= zepto_profile.location.total_timeout_ms / 1000 + 1.0

    def test_slow_typing_cut_off_at_total_budget(self, zepto_profile) -> None:
        class SlowInput(FakeLocator):
            @property
            def first(self):
                return SlowInput(self.page, self.selector, 0)

            async def press_sequentially(self, text, delay=None, timeout=None):
                await asyncio.sleep(2)

        class SlowTypingPage(FakePage):
            def locator(self, selector):
                return SlowInput(self, selector)

        budget = zepto_profile.location.total_timeout_ms / 1000
        started = time.monotonic()
        result, machine = run(zepto_profile, zepto_page(page_cls=SlowTypingPage))

        assert time.monotonic() - started < budget + 0.5
        assert result.final_state is LocationState.FAILED
        assert machine.history[-1] is LocationState.FAILED
