"""
Blinkit search-listing scraper.

Listing flow:
  1. Open https://blinkit.com/s/?q=<term>
  2. First target only: click the LocationBar → type the pincode into the
     locality input → pick the first suggestion (Enter if none render)
  3. Wait for product cards, scroll until the card count converges
  4. Extract from window.grofers.PRELOADED_STATE, else from the cards

Cards are Tailwind blocks: div[id][role="button"].tw-relative… where the
element id is the product id. The delivery ETA is shown once in the
location bar and applies to every card.
"""

import re

from shared.constants import DEFAULT_PINCODES, PLATFORM_BLINKIT

from .base_scraper import BaseListingScraper
from .listing import strategies as s
from .listing.sites import FieldTable, LocationFlow, SiteProfile

BLINKIT_CARD = 'div[id][role="button"].tw-relative.tw-flex.tw-h-full.tw-flex-col'

BLINKIT_FIELDS = FieldTable(
    product_id=(s.attr(None, "id"),),
    name=(
        s.text("div.tw-text-300.tw-font-semibold.tw-line-clamp-2"),
        s.text('div[class*="Product__UpdatedTitle"]'),
        s.attr("img", "alt"),
    ),
    current_price=(
        s.price("div.tw-text-200.tw-font-semibold"),
        s.price_in_elements("div", exclude_class=r"line-through"),
    ),
    original_price=(
        s.price("div.tw-text-200.tw-font-regular.tw-line-through"),
        s.price_in_elements("div, span", class_pattern=r"line-through|strike"),
    ),
    image=(
        s.image_src('img[src*="cdn.grofers.com"]'),
        s.image_src("img"),
        s.lazy_image(),
        s.background_image(),
        s.srcset_first(),
    ),
    weight=(s.text("div.tw-text-200.tw-font-medium.tw-line-clamp-1"),),
    delivery_time=(s.text("div.tw-text-050.tw-font-bold.tw-uppercase"),),
    out_of_stock=(
        s.text_signal(r"div.tw-absolute.tw-bottom-1\/2.tw-right-1\/2", r"out of stock"),
        s.class_signal("img", r"grayscale|tw-opacity-(?:30|40|50)"),
        s.class_signal("div.tw-font-semibold", r"tw-text-grey"),
    ),
)

BLINKIT_FALLBACK_FIELDS = FieldTable(
    name=(s.first_line_without_price(),),
    current_price=(s.price(),),
    image=(s.image_src("img"),),
)

BLINKIT_LOCATION = LocationFlow(
    locator_selectors=('div[class*="LocationBar__Container"]', 'div[class*="LocationBar"]'),
    input_selectors=(
        "input.LocationSearchBox__InputSelect-sc-1k8u6a6-0",
        'input[placeholder*="search delivery location"]',
        'input[placeholder*="Search delivery location"]',
        'input[name="select-locality"]',
        'input[type="text"][placeholder*="location"]',
    ),
    suggestion_selectors=(
        "div.LocationSearchList__LocationListContainer-sc-93rfr7-0",
        'div[class*="LocationSelector"]',
        'div[role="option"]',
        'li[role="option"]',
    ),
    label_selectors=('div[class*="LocationBar__Subtitle"]',),
    # The locality modal opens by itself on a cold visit
    locator_required=False,
)

BLINKIT_PROFILE = SiteProfile(
    platform=PLATFORM_BLINKIT,
    display_name="Blinkit",
    search_endpoint="https://blinkit.com/s/",
    query_param="q",
    container_selectors=(BLINKIT_CARD, 'div[id][role="button"].tw-relative'),
    fields=BLINKIT_FIELDS,
    fallback_fields=BLINKIT_FALLBACK_FIELDS,
    location=BLINKIT_LOCATION,
    state_script="() => (window.grofers && window.grofers.PRELOADED_STATE && window.grofers.PRELOADED_STATE.data) || null",
    overlay_close_selectors=('button:has-text("Close")', 'button:has-text("×")', '[aria-label="Close"]'),
    delivery_time_selector='div[class*="LocationBar__Title"]',
    image_upgrades=(
        s.ImageUpgrade(re.compile(r"(/cdn-cgi/image/[^/]*?\bw=)(?:120|135|180|270)\b"), r"\g<1>540"),
    ),
    default_location=DEFAULT_PINCODES[PLATFORM_BLINKIT],
)


class BlinkitListingScraper(BaseListingScraper):
    portal_name = PLATFORM_BLINKIT
    profile = BLINKIT_PROFILE

    async def dismiss_overlays(self, page) -> None:
        """Close app-download / login popups that cover the listing."""
        for selector in self.profile.overlay_close_selectors:
            try:
                button = page.locator(selector).first
                if await button.is_visible(timeout=1_000):
                    self._log.info("[Blinkit] Dismissing popup via %s", selector)
                    await button.click(timeout=2_000)
                    await page.wait_for_timeout(500)
            except Exception:
                continue
