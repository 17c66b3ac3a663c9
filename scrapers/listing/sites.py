"""
Site profiles.

Everything that differs between storefront variants lives here as data:
container selectors, per-field strategy tables, out-of-stock signal sets,
the location flow selectors and CDN image rules. The core components only
read a SiteProfile, so markup drift on one site means editing its profile.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, quote, urlparse

from .strategies import ImageUpgrade, Strategy

# encodeURIComponent leaves these unescaped as well
_URI_SAFE = "!*'()"


@dataclass(frozen=True)
class FieldTable:
    """Ordered strategies per ProductRecord field."""
    name: tuple[Strategy, ...] = ()
    current_price: tuple[Strategy, ...] = ()
    product_id: tuple[Strategy, ...] = ()
    image: tuple[Strategy, ...] = ()
    original_price: tuple[Strategy, ...] = ()
    weight: tuple[Strategy, ...] = ()
    delivery_time: tuple[Strategy, ...] = ()
    product_url: tuple[Strategy, ...] = ()
    product_slug: tuple[Strategy, ...] = ()
    rating: tuple[Strategy, ...] = ()
    sponsored: tuple[Strategy, ...] = ()
    out_of_stock: tuple[Strategy, ...] = ()


@dataclass(frozen=True)
class LocationFlow:
    """Selector candidates and timeouts for each location-machine state."""
    locator_selectors: tuple[str, ...]
    input_selectors: tuple[str, ...]
    suggestion_selectors: tuple[str, ...]
    modal_selectors: tuple[str, ...] = ()
    label_selectors: tuple[str, ...] = ()
    # Blinkit sometimes opens the locality modal on first visit; no button needed then
    locator_required: bool = True
    locator_timeout_ms: int = 5_000
    modal_timeout_ms: int = 5_000
    input_timeout_ms: int = 5_000
    suggestion_timeout_ms: int = 5_000
    confirm_timeout_ms: int = 5_000
    label_timeout_ms: int = 2_000
    type_delay_ms: int = 80
    poll_interval_ms: int = 250

    @property
    def total_timeout_ms(self) -> int:
        return (self.locator_timeout_ms + self.modal_timeout_ms + self.input_timeout_ms
                + self.suggestion_timeout_ms + self.confirm_timeout_ms + self.label_timeout_ms)


@dataclass(frozen=True)
class SiteProfile:
    platform: str
    display_name: str
    search_endpoint: str
    query_param: str
    container_selectors: tuple[str, ...]
    fields: FieldTable
    location: LocationFlow
    fallback_selector: str = '[tabindex="0"], [role="button"], [role="link"]'
    fallback_fields: FieldTable = field(default_factory=FieldTable)
    state_script: Optional[str] = None
    overlay_close_selectors: tuple[str, ...] = ()
    delivery_time_selector: Optional[str] = None
    scroll_region_selector: Optional[str] = None
    image_upgrades: tuple[ImageUpgrade, ...] = ()
    default_location: str = "411001"
    max_containers: int = 500

    @property
    def results_selector(self) -> str:
        return ", ".join(self.container_selectors)

    def search_url(self, term: str) -> str:
        return f"{self.search_endpoint}?{self.query_param}={quote(term.strip(), safe=_URI_SAFE)}"

    def search_term_from_url(self, url: str) -> Optional[str]:
        values = parse_qs(urlparse(url).query).get(self.query_param)
        return values[0] if values else None

    def synthetic_id(self, index: int, tier: str = "") -> str:
        return f"{self.platform}-{tier + '-' if tier else ''}{index}"
