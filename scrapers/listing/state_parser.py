"""
Structured-state normalization.

Storefronts embed a pre-hydration JSON blob (Blinkit's PRELOADED_STATE,
Next.js __NEXT_DATA__). The blob's shape is not under our control, so
this module recognises a fixed set of shapes and maps each candidate
through one field table. Anything unrecognised yields nothing.

Recognised shapes (relative to the blob root, after unwrapping
``props.pageProps`` / ``data`` if present):
  - ``search.results``                 flat results list
  - ``plp.products``                   paginated products list
  - ``widgetizedLayout.data[].data.items[]``  widget tree, item or item.data
"""

import logging
from typing import Any, Iterator, Optional

from .models import ExtractionStrategy, ProductRecord
from .strategies import clean_text, parse_price

logger = logging.getLogger(__name__)

Path = tuple[str, ...]

# field → ordered candidate paths; first usable value wins
FIELD_MAP: dict[str, tuple[Path, ...]] = {
    "product_id": (("id",), ("productId",), ("product_id",), ("sku",), ("data", "id")),
    "name": (("title", "text"), ("title",), ("name",), ("product_name",),
             ("data", "title"), ("data", "name")),
    "image_url": (("image", "url"), ("image",), ("product_image",), ("image_url",),
                  ("data", "image_url")),
    "current_price": (("price",), ("currentPrice",), ("current_price",), ("pricing", "price"),
                      ("data", "price")),
    "original_price": (("mrp",), ("originalPrice",), ("original_price",), ("pricing", "mrp"),
                       ("data", "mrp")),
    "weight_or_size": (("unit",), ("quantity",), ("pack_size",), ("weight",), ("data", "unit")),
    "delivery_time": (("eta",), ("delivery_time",), ("eta_identifier",)),
}

_IN_STOCK_KEYS = ("is_available", "in_stock", "available", "inventory")
_OUT_OF_STOCK_KEYS = ("is_sold_out", "out_of_stock", "isOutOfStock")


def _dig(obj: Any, path: Path) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("text")
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return clean_text(value)
    return None


def _as_number(value: Any) -> Optional[float]:
    """Numbers pass through; {"value": n} unwraps; numeric strings parse."""
    if isinstance(value, dict):
        value = value.get("value")
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str):
        parsed = parse_price(value)
        if parsed is None:
            try:
                parsed = float(value.replace(",", "").strip())
            except ValueError:
                return None
        return parsed if parsed > 0 else None
    return None


def _as_image(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("url")
    return value.strip() if isinstance(value, str) and value.strip() else None


_CONVERTERS = {
    "product_id": _as_text,
    "name": _as_text,
    "image_url": _as_image,
    "current_price": _as_number,
    "original_price": _as_number,
    "weight_or_size": _as_text,
    "delivery_time": _as_text,
}


def _lookup(candidate: dict, field_name: str) -> Any:
    convert = _CONVERTERS[field_name]
    for path in FIELD_MAP[field_name]:
        value = convert(_dig(candidate, path))
        if value is not None:
            return value
    return None


def _in_stock(candidate: dict) -> bool:
    for key in _OUT_OF_STOCK_KEYS:
        if candidate.get(key) is True:
            return False
    for key in _IN_STOCK_KEYS:
        value = candidate.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value > 0
    return True


def _unwrap_root(state: Any) -> Any:
    if not isinstance(state, dict):
        return None
    page_props = _dig(state, ("props", "pageProps"))
    if isinstance(page_props, dict):
        state = page_props
    inner = state.get("data")
    if isinstance(inner, dict) and any(k in inner for k in ("search", "plp", "widgetizedLayout")):
        state = inner
    return state


def iter_candidates(state: Any) -> Iterator[dict]:
    """Yield raw product dicts from every recognised shape of the blob."""
    root = _unwrap_root(state)
    if not root:
        return

    results = _dig(root, ("search", "results"))
    if isinstance(results, list):
        yield from (c for c in results if isinstance(c, dict))

    products = _dig(root, ("plp", "products"))
    if isinstance(products, list):
        yield from (c for c in products if isinstance(c, dict))

    widgets = _dig(root, ("widgetizedLayout", "data"))
    if isinstance(widgets, list):
        for widget in widgets:
            items = _dig(widget, ("data", "items"))
            if not isinstance(items, list):
                continue
            for item in items:
                if isinstance(item, dict):
                    inner = item.get("data")
                    yield inner if isinstance(inner, dict) else item


def normalize_candidate(candidate: dict, index: int) -> Optional[ProductRecord]:
    """Map one raw candidate to a ProductRecord, or None if it is an empty shell."""
    if not isinstance(candidate, dict):
        return None
    record = ProductRecord(
        product_id=_lookup(candidate, "product_id") or f"state-{index}",
        name=_lookup(candidate, "name"),
        image_url=_lookup(candidate, "image_url"),
        weight_or_size=_lookup(candidate, "weight_or_size"),
        current_price=_lookup(candidate, "current_price"),
        original_price=_lookup(candidate, "original_price"),
        delivery_time=_lookup(candidate, "delivery_time"),
        in_stock=_in_stock(candidate),
        extraction_strategy=ExtractionStrategy.STATE.value,
    )
    if record.is_empty():
        return None
    record.finalize_pricing()
    return record


def parse_state(state: Any) -> list[ProductRecord]:
    records = []
    for index, candidate in enumerate(iter_candidates(state)):
        record = normalize_candidate(candidate, index)
        if record is not None:
            records.append(record)
    logger.debug("State blob yielded %d record(s)", len(records))
    return records
