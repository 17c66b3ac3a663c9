"""
tests/conftest.py

Shared fakes for the listing tests.

FakePage stands in for a Playwright page. It keeps the page as static
HTML parsed with BeautifulSoup and answers the page scripts from
scrapers.listing.page_scripts by running the same selectors through
soupsieve, so the site profiles are exercised unchanged. No browser,
no network, no real waiting.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import replace
from typing import Callable, Optional

import pytest
from bs4 import BeautifulSoup
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scrapers.blinkit_scraper import BLINKIT_PROFILE
from scrapers.listing import page_scripts
from scrapers.listing.sites import SiteProfile
from scrapers.zepto_scraper import ZEPTO_PROFILE


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def _select(soup, selector: str) -> list:
    try:
        return soup.select(selector)
    except Exception:
        # Playwright-only pseudo classes (:has-text) never match here
        return []


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: Optional[int] = None):
        self.page = page
        self.selector = selector
        self.index = index

    def _nodes(self) -> list:
        nodes = _select(self.page.soup, self.selector)
        if self.index is not None:
            return nodes[self.index:self.index + 1]
        return nodes

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, 0)

    async def count(self) -> int:
        return len(self._nodes())

    async def is_visible(self, timeout=None) -> bool:
        return bool(self._nodes())

    def _require(self):
        if not self._nodes():
            raise PlaywrightTimeoutError(f"waiting for locator('{self.selector}')")

    async def click(self, timeout=None, force=False):
        self._require()
        self.page.actions.append(("click", self.selector))
        self.page.fire(("click", self.selector))

    async def fill(self, value: str, timeout=None):
        self._require()
        self.page.actions.append(("fill", self.selector, value))

    async def press_sequentially(self, text: str, delay=None, timeout=None):
        self._require()
        self.page.actions.append(("type", self.selector, text))
        self.page.typed = text
        self.page.fire(("type", self.selector))

    async def press(self, key: str, timeout=None):
        self._require()
        self.page.actions.append(("press", self.selector, key))
        self.page.fire(("press", key))

    async def text_content(self, timeout=None):
        self._require()
        return self._nodes()[0].get_text(" ", strip=True)


class FakePage:
    """
    Static-HTML page.

    counts: optional sequence of container counts reported to the scroll
    loop, one per read (the last value repeats).
    hooks: {("click", selector) | ("type", selector) | ("press", key): fn(page)}
    """

    def __init__(self, html: str = "", url: str = "https://example.test/",
                 state=None, counts: Optional[list[int]] = None,
                 hooks: Optional[dict[tuple, Callable]] = None,
                 results_appear: Optional[bool] = None):
        self.url = url
        self.state = state
        self.counts = list(counts) if counts is not None else None
        self.hooks = hooks or {}
        self.results_appear = results_appear
        self.actions: list[tuple] = []
        self.evaluated: list[str] = []
        self.waited_ms = 0
        self.typed: Optional[str] = None
        self.reads = 0
        self.set_html(html)

    def set_html(self, html: str) -> None:
        self.html = html
        self.soup = BeautifulSoup(html, "html.parser")

    def fire(self, event: tuple) -> None:
        hook = self.hooks.get(event)
        if hook is not None:
            hook(self)

    # -- Playwright surface --------------------------------------------------

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def wait_for_timeout(self, ms: int) -> None:
        self.waited_ms += ms
        await asyncio.sleep(0)

    async def goto(self, url: str, wait_until=None, timeout=None):
        self.url = url
        self.actions.append(("goto", url))
        return None

    async def wait_for_load_state(self, state: str = "load", timeout=None) -> None:
        return None

    async def wait_for_selector(self, selector: str, timeout=None):
        if self.results_appear is False or not _select(self.soup, selector):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return _select(self.soup, selector)[0]

    async def wait_for_function(self, script: str, arg=None, timeout=None):
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")

    async def content(self) -> str:
        return self.html

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        with open(path, "wb") as fh:
            fh.write(b"\x89PNG")

    async def evaluate(self, script: str, arg=None):
        self.evaluated.append(script)
        if script == page_scripts.COUNT_CONTAINERS_JS:
            return self._count(arg)
        if script == page_scripts.COLLECT_CONTAINERS_JS:
            return self._collect(arg)
        if script in (page_scripts.SCROLL_ADVANCE_JS, page_scripts.SCROLL_NUDGE_JS):
            return "window"
        if script == page_scripts.COUNT_EXCEEDS_JS:
            return False
        if script == page_scripts.PAGE_INFO_JS:
            return {"url": self.url, "title": "", "productCount": len(_select(self.soup, arg or ""))}
        # Anything else is a site state script
        return self.state

    def _count(self, selectors: list[str]) -> int:
        if self.counts is not None:
            value = self.counts[min(self.reads, len(self.counts) - 1)]
            self.reads += 1
            return value
        for selector in selectors:
            n = len(_select(self.soup, selector))
            if n:
                return n
        return 0

    def _collect(self, arg: dict) -> dict:
        pattern = arg.get("pricePattern")
        priced = re.compile(pattern, re.IGNORECASE) if pattern else None

        def has_price(node) -> bool:
            return bool(priced.search(node.get_text(" ")))

        for selector in arg["selectors"]:
            nodes = _select(self.soup, selector)
            if priced is not None:
                nodes = [n for n in nodes
                         if has_price(n) and not any(has_price(c) for c in _select(n, selector))]
            if nodes:
                return {"selector": selector, "html": [str(n) for n in nodes[: arg["limit"]]]}
        return {"selector": None, "html": []}


class FakeContext:
    def __init__(self, page: FakePage, storage: Optional[dict] = None):
        self.page = page
        self.storage = storage if storage is not None else {"cookies": [], "origins": []}
        self.closed = False

    async def storage_state(self):
        return self.storage

    async def close(self):
        self.closed = True


def fast(profile: SiteProfile) -> SiteProfile:
    """Same profile with location timeouts short enough for unit tests."""
    flow = replace(
        profile.location,
        locator_timeout_ms=30, modal_timeout_ms=30, input_timeout_ms=30,
        suggestion_timeout_ms=30, confirm_timeout_ms=30, label_timeout_ms=30,
        poll_interval_ms=5,
    )
    return replace(profile, location=flow)


# ---------------------------------------------------------------------------
# HTML fixtures
# ---------------------------------------------------------------------------


def blinkit_card(pid: str, name: str, price: str, mrp: Optional[str] = None,
                 weight: str = "500 g", out_of_stock: bool = False) -> str:
    mrp_html = f'<div class="tw-text-200 tw-font-regular tw-line-through">{mrp}</div>' if mrp else ""
    oos_html = (
        '<div class="tw-absolute tw-bottom-1/2 tw-right-1/2"><div>Out of Stock</div></div>'
        if out_of_stock else ""
    )
    return f"""
    <div id="{pid}" role="button" tabindex="0" class="tw-relative tw-flex tw-h-full tw-flex-col tw-items-start">
      <div class="tw-relative">
        <img src="https://cdn.grofers.com/cdn-cgi/image/f=auto,fit=scale-down,q=70,metadata=none,w=270/da/cms-assets/cms/product/{pid}.png" alt="{name}">
        {oos_html}
      </div>
      <div class="tw-text-050 tw-font-bold tw-uppercase">9 MINS</div>
      <div class="tw-text-300 tw-font-semibold tw-line-clamp-2">{name}</div>
      <div class="tw-text-200 tw-font-medium tw-line-clamp-1">{weight}</div>
      <div class="tw-flex">
        <div class="tw-text-200 tw-font-semibold">{price}</div>
        {mrp_html}
      </div>
      <div role="button" class="tw-rounded">ADD</div>
    </div>"""


def zepto_card(pvid: str, slug: str, name: str, price: str, mrp: Optional[str] = None,
               out_of_stock: bool = False, sponsored: bool = False, rating: Optional[str] = None) -> str:
    mrp_html = f'<span class="cx3iWL MRP">{mrp}</span>' if mrp else ""
    sponsor_html = '<div data-slot-id="SponsorTag"><span>Ad</span></div>' if sponsored else ""
    rating_html = (
        f'<div data-slot-id="RatingInformation"><span>{rating}</span><span>(1.2k)</span></div>'
        if rating else ""
    )
    return f"""
    <a class="B4vNQ" href="/pn/{slug}/pvid/{pvid}" data-is-out-of-stock="{'true' if out_of_stock else 'false'}">
      <div class="cavQgJ cTH4Df">
        <img src="https://cdn.zeptonow.com/production/tr:w-210,ar-1000-1000,pr-true,f-auto,q-80/cms/product_variant/{pvid}.jpeg" alt="{name}">
        {sponsor_html}
        <div data-slot-id="ProductName"><span>{name}</span></div>
        <div data-slot-id="PackSize"><span>500 ml</span></div>
        {rating_html}
        <div><span class="cptQT7">{price}</span>{mrp_html}</div>
      </div>
    </a>"""


BLINKIT_LOCATION_BAR = """
<div class="LocationBar__Container-sc-x8ezho-6">
  <div class="LocationBar__Title-sc-x8ezho-2">Delivery in 9 minutes</div>
  <div class="LocationBar__Subtitle-sc-x8ezho-9">Shivajinagar, Pune</div>
</div>"""


def page_html(*cards: str, header: str = "") -> str:
    return f"<html><body>{header}<main>{''.join(cards)}</main></body></html>"


@pytest.fixture()
def blinkit_profile() -> SiteProfile:
    return fast(BLINKIT_PROFILE)


@pytest.fixture()
def zepto_profile() -> SiteProfile:
    return fast(ZEPTO_PROFILE)


@pytest.fixture()
def blinkit_page() -> FakePage:
    cards = [
        blinkit_card("390", "Amul Salted Butter", "₹56", "₹60", weight="100 g"),
        blinkit_card("391", "Mother Dairy Paneer", "₹90", weight="200 g"),
        blinkit_card("392", "Britannia Cheese Slices", "₹1,299", "₹1,499", out_of_stock=True),
    ]
    return FakePage(page_html(*cards, header=BLINKIT_LOCATION_BAR), url="https://blinkit.com/s/?q=butter")


@pytest.fixture()
def zepto_page() -> FakePage:
    cards = [
        zepto_card("8f2a-11", "amul-taaza-toned-fresh-milk", "Amul Taaza Toned Fresh Milk", "₹27", "₹29",
                   rating="4.8"),
        zepto_card("9c1b-22", "nandini-shubham-milk", "Nandini Shubham Milk", "₹30", sponsored=True),
        zepto_card("7d3e-33", "akshayakalpa-organic-milk", "Akshayakalpa Organic Milk", "₹85", "₹90",
                   out_of_stock=True),
    ]
    return FakePage(page_html(*cards), url="https://www.zepto.com/search?query=milk")
