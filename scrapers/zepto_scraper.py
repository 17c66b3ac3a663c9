"""
Zepto search-listing scraper.

Listing flow:
  1. Open https://www.zepto.com/search?query=<term>
  2. First target only: "Select Location" → address modal → type the
     pincode → first address-search-item → wait for the modal to close
  3. Wait for product links, scroll until the link count converges
  4. Extract from __NEXT_DATA__ page props, else from the product links

Product links look like /pn/<slug>/pvid/<variant-id>; the id and slug
are read from the href. Cards carry data-slot-id markers for name, pack
size, rating and the sponsor tag.
"""

import re

from shared.constants import DEFAULT_PINCODES, PLATFORM_ZEPTO

from .base_scraper import BaseListingScraper
from .listing import strategies as s
from .listing.sites import FieldTable, LocationFlow, SiteProfile

PVID_RE = r"/pn/[^/]+/pvid/([^/?#]+)"
PVID_SLUG_RE = r"/pn/([^/]+)/pvid/"
LEGACY_ID_RE = r"/(?:p|product)/[^/]+/([^/?#]+)"
LEGACY_SLUG_RE = r"/(?:p|product)/([^/]+)/"

ZEPTO_FIELDS = FieldTable(
    product_id=(s.regex_attr(None, "href", PVID_RE), s.regex_attr(None, "href", LEGACY_ID_RE)),
    product_slug=(s.regex_attr(None, "href", PVID_SLUG_RE), s.regex_attr(None, "href", LEGACY_SLUG_RE)),
    product_url=(s.attr(None, "href"),),
    name=(
        s.text('div[data-slot-id="ProductName"] span'),
        s.text("div.cQAjo6.ch5GgP span"),
        s.text("h3"),
        s.text("h2"),
        s.attr(None, "title"),
        s.attr("img", "alt"),
    ),
    current_price=(
        s.price_in_elements("span", exclude_class=r"MRP|strike|original"),
        s.price_in_elements("p, div", exclude_class=r"MRP|strike|original"),
    ),
    original_price=(
        s.price_in_elements("span", class_pattern=r"MRP|strike|original"),
        s.price("s"),
        s.price("del"),
    ),
    image=(
        s.image_src("img"),
        s.lazy_image(("data-src",)),
        s.srcset_first(),
        s.background_image(),
    ),
    weight=(s.text('[data-slot-id="PackSize"] span'), s.text('[data-slot-id="PackSize"]')),
    rating=(s.number_in('[data-slot-id="RatingInformation"]', r"(\d+\.\d+)"),),
    sponsored=(s.present('[data-slot-id="SponsorTag"]'),),
    out_of_stock=(
        s.attr_signal("data-is-out-of-stock", "true"),
        s.text_signal(None, r"out of stock|notify me"),
    ),
)

ZEPTO_FALLBACK_FIELDS = FieldTable(
    name=(s.first_line_without_price(),),
    current_price=(s.price(),),
    image=(s.image_src("img"),),
    product_url=(s.attr(None, "href"),),
)

ZEPTO_LOCATION = LocationFlow(
    locator_selectors=('button[aria-label="Select Location"]', "button.__4y7HY", "div.a0Ppr button"),
    modal_selectors=('div[data-testid="address-modal"]',),
    input_selectors=(
        'div[data-testid="address-search-input"] input[type="text"]',
        'div[data-testid="address-search-input"] input',
    ),
    suggestion_selectors=('div[data-testid="address-search-item"]',),
    label_selectors=('button[aria-label="Select Location"]',),
    suggestion_timeout_ms=10_000,
)

NEXT_DATA_JS = """
() => {
    const el = document.getElementById('__NEXT_DATA__');
    if (!el) return null;
    try { return JSON.parse(el.textContent); } catch (e) { return null; }
}
"""

ZEPTO_PROFILE = SiteProfile(
    platform=PLATFORM_ZEPTO,
    display_name="Zepto",
    search_endpoint="https://www.zepto.com/search",
    query_param="query",
    container_selectors=("a.B4vNQ", 'a[href*="/pvid/"]'),
    fields=ZEPTO_FIELDS,
    fallback_selector='a[href*="/pn/"], [tabindex="0"], [role="link"]',
    fallback_fields=ZEPTO_FALLBACK_FIELDS,
    location=ZEPTO_LOCATION,
    state_script=NEXT_DATA_JS,
    overlay_close_selectors=('button[aria-label*="Close"]',),
    image_upgrades=(
        s.ImageUpgrade(re.compile(r"(tr:w-)(?:100|150|200|210|280|300)\b"), r"\g<1>640"),
    ),
    default_location=DEFAULT_PINCODES[PLATFORM_ZEPTO],
)


class ZeptoListingScraper(BaseListingScraper):
    portal_name = PLATFORM_ZEPTO
    profile = ZEPTO_PROFILE

    async def dismiss_overlays(self, page) -> None:
        # The address modal is handled by the location flow; leave it open
        if await page.locator('div[data-testid="address-modal"]').count() > 0:
            return
        close_btn = page.locator(self.profile.overlay_close_selectors[0]).first
        if await close_btn.count() > 0:
            self._log.info("[Zepto] Closing popup")
            await close_btn.click(timeout=1_500)
