"""
Field strategies for DOM extraction.

A strategy derives one field from one product container (a parsed
BeautifulSoup tag). Each site profile lists strategies per field in
priority order; the extractor takes the first non-empty value.
Strategies never raise: a failing lookup counts as "no value".
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urljoin

from bs4 import Tag

# Currency-marked amount: "₹1,299", "₹ 45.50", "Rs. 99", "INR 1,29,999"
PRICE_RE = re.compile(r"(?:₹|\bRs\.?|\bINR)\s*(\d+(?:,\d+)*(?:\.\d+)?)", re.IGNORECASE)
_CSS_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)")


def parse_price(text) -> Optional[float]:
    """Parse the first currency-marked amount in text. No marker → None."""
    if text is None:
        return None
    m = PRICE_RE.search(str(text))
    if not m:
        return None
    try:
        return float(m.group(1).replace(",", ""))
    except ValueError:
        return None


def clean_text(value) -> Optional[str]:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def _text_of(el: Optional[Tag]) -> Optional[str]:
    if el is None:
        return None
    return clean_text(el.get_text(" ", strip=True))


def _scope(tag: Tag, selector: Optional[str]) -> Optional[Tag]:
    return tag.select_one(selector) if selector else tag


@dataclass(frozen=True)
class Strategy:
    name: str
    fn: Callable[[Tag], Any]

    def __call__(self, tag: Tag) -> Any:
        try:
            value = self.fn(tag)
        except Exception:
            return None
        if value is None or value == "":
            return None
        return value


def first_value(strategies: Iterable[Strategy], tag: Tag) -> tuple[Any, Optional[str]]:
    """Run strategies in order; return (value, strategy name) of the first hit."""
    for strategy in strategies:
        value = strategy(tag)
        if value is not None:
            return value, strategy.name
    return None, None


def any_signal(signals: Iterable[Strategy], tag: Tag) -> bool:
    return any(bool(signal(tag)) for signal in signals)


# ── Text / attribute strategies ───────────────────────────────────────────────

def text(selector: Optional[str] = None, min_length: int = 1) -> Strategy:
    def fn(tag: Tag):
        value = _text_of(_scope(tag, selector))
        return value if value and len(value) >= min_length else None
    return Strategy(f"text:{selector or 'self'}", fn)


def attr(selector: Optional[str], name: str) -> Strategy:
    def fn(tag: Tag):
        el = _scope(tag, selector)
        return clean_text(el.get(name)) if el is not None else None
    return Strategy(f"attr:{selector or 'self'}@{name}", fn)


def regex_attr(selector: Optional[str], name: str, pattern: str) -> Strategy:
    """First capture group of pattern applied to an attribute value."""
    compiled = re.compile(pattern)

    def fn(tag: Tag):
        el = _scope(tag, selector)
        value = el.get(name) if el is not None else None
        m = compiled.search(value or "")
        return m.group(1) if m else None
    return Strategy(f"regex:{selector or 'self'}@{name}", fn)


def number_in(selector: str, pattern: str = r"(\d+(?:\.\d+)?)") -> Strategy:
    compiled = re.compile(pattern)

    def fn(tag: Tag):
        m = compiled.search(_text_of(tag.select_one(selector)) or "")
        return float(m.group(1)) if m else None
    return Strategy(f"number:{selector}", fn)


def first_line_without_price(max_length: int = 120) -> Strategy:
    """Loose name guess: first text chunk that is not a price or a button label."""
    def fn(tag: Tag):
        for chunk in tag.stripped_strings:
            chunk = clean_text(chunk)
            if not chunk or PRICE_RE.search(chunk) or len(chunk) < 3 or len(chunk) > max_length:
                continue
            if chunk.upper() in ("ADD", "OUT OF STOCK", "NOTIFY ME"):
                continue
            return chunk
        return None
    return Strategy("first_line", fn)


# ── Price strategies ──────────────────────────────────────────────────────────

def price(selector: Optional[str] = None) -> Strategy:
    return Strategy(f"price:{selector or 'self'}", lambda tag: parse_price(_text_of(_scope(tag, selector))))


def price_in_elements(selector: str, class_pattern: Optional[str] = None,
                      exclude_class: Optional[str] = None) -> Strategy:
    """First parseable price among matching elements, optionally filtered by class."""
    include = re.compile(class_pattern, re.IGNORECASE) if class_pattern else None
    exclude = re.compile(exclude_class, re.IGNORECASE) if exclude_class else None

    def fn(tag: Tag):
        for el in tag.select(selector):
            classes = " ".join(el.get("class") or [])
            if include and not include.search(classes):
                continue
            if exclude and exclude.search(classes):
                continue
            value = parse_price(_text_of(el))
            if value is not None:
                return value
        return None
    return Strategy(f"price_in:{selector}", fn)


# ── Image strategies ──────────────────────────────────────────────────────────

def _usable_src(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    if not value or value.startswith("data:") or value == "about:blank":
        return None
    return value


def image_src(selector: str = "img") -> Strategy:
    def fn(tag: Tag):
        for el in tag.select(selector):
            src = _usable_src(el.get("src"))
            if src:
                return src
        return None
    return Strategy(f"img:{selector}", fn)


def lazy_image(attrs: tuple[str, ...] = ("data-src", "data-lazy-src", "data-original")) -> Strategy:
    def fn(tag: Tag):
        for el in tag.select("img"):
            for name in attrs:
                src = _usable_src(el.get(name))
                if src:
                    return src
        return None
    return Strategy("img:lazy", fn)


def background_image() -> Strategy:
    def fn(tag: Tag):
        for el in [tag, *tag.select("[style]")]:
            m = _CSS_URL_RE.search(el.get("style") or "")
            if m and _usable_src(m.group(1)):
                return m.group(1).strip()
        return None
    return Strategy("css:background-image", fn)


def srcset_first() -> Strategy:
    def fn(tag: Tag):
        for el in tag.select("img[srcset], source[srcset]"):
            first = (el.get("srcset") or "").split(",")[0].strip().split(" ")[0]
            if _usable_src(first):
                return first
        return None
    return Strategy("img:srcset", fn)


# ── Out-of-stock signals ──────────────────────────────────────────────────────

def text_signal(selector: Optional[str], needle: str) -> Strategy:
    pattern = re.compile(needle, re.IGNORECASE)

    def fn(tag: Tag):
        els = tag.select(selector) if selector else [tag]
        return any(pattern.search(el.get_text(" ", strip=True)) for el in els) or None
    return Strategy(f"signal:text:{needle}", fn)


def class_signal(selector: str, class_pattern: str) -> Strategy:
    pattern = re.compile(class_pattern, re.IGNORECASE)

    def fn(tag: Tag):
        return any(pattern.search(" ".join(el.get("class") or [])) for el in tag.select(selector)) or None
    return Strategy(f"signal:class:{class_pattern}", fn)


def present(selector: str) -> Strategy:
    return Strategy(f"signal:present:{selector}", lambda tag: tag.select_one(selector) is not None or None)


def attr_signal(name: str, value: str, selector: Optional[str] = None) -> Strategy:
    def fn(tag: Tag):
        els = [tag, *tag.select(f"[{name}]")] if selector is None else tag.select(selector)
        return any(str(el.get(name, "")).lower() == value for el in els) or None
    return Strategy(f"signal:attr:{name}={value}", fn)


# ── Image URL normalization ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ImageUpgrade:
    """Rewrite a known low-resolution CDN parameter when the pattern matches."""
    pattern: re.Pattern
    replacement: str

    def apply(self, url: str) -> Optional[str]:
        if not self.pattern.search(url):
            return None
        return self.pattern.sub(self.replacement, url, count=1)


def absolute_url(url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Protocol-relative → https, root- or path-relative → joined with the page URL."""
    url = _usable_src(url)
    if not url:
        return None
    if url.startswith("//"):
        return "https:" + url
    if not url.startswith(("http://", "https://")) and base_url:
        return urljoin(base_url, url)
    return url


def normalize_image_url(url: Optional[str], base_url: Optional[str] = None,
                        upgrades: Iterable[ImageUpgrade] = ()) -> Optional[str]:
    url = absolute_url(url, base_url)
    if not url:
        return None
    for upgrade in upgrades:
        upgraded = upgrade.apply(url)
        if upgraded:
            return upgraded
    return url
