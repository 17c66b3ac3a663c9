"""
Run configuration for the listing scrapers.

Values come from (highest priority first): explicit keyword arguments,
LISTING_* environment variables, the project .env file, defaults.
A camelCase JSON input document is mapped onto the same model by
ListingSettings.from_input().
"""
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from shared.constants import ALL_PLATFORMS, PLATFORM_BLINKIT

from .listing.errors import ConfigurationError

# .env lives at the project root (one level above this file: scrapers/config.py → root/)
_ENV_FILE = str(Path(__file__).parent.parent / ".env")

# input-document key → settings field. Later names are the older spellings.
INPUT_ALIASES: dict[str, tuple[str, ...]] = {
    "platform":                ("platform",),
    "target_urls":             ("targetUrls", "searchUrls", "startUrls"),
    "search_terms":            ("searchTerms", "searchQueries"),
    "requested_location":      ("requestedLocation", "deliveryLocation"),
    "pincode":                 ("pincode",),
    "max_records_per_target":  ("maxRecordsPerTarget", "maxProductsPerSearch"),
    "max_retries":             ("maxRetries", "maxRequestRetries"),
    "max_concurrency":         ("maxConcurrency",),
    "navigation_timeout_ms":   ("navigationTimeoutMs", "navigationTimeout"),
    "headless":                ("headless",),
    "capture_debug_artifacts": ("captureDebugArtifacts", "debugMode"),
    "scroll_target_count":     ("scrollTargetCount",),
    "scroll_iteration_count":  ("scrollIterationCount", "scrollCount"),
    "screenshot_on_error":     ("screenshotOnError",),
    "session_timeout_seconds": ("sessionTimeoutSeconds",),
    "retry_backoff_seconds":   ("retryBackoffSeconds",),
    "results_timeout_ms":      ("resultsTimeoutMs",),
    "artifacts_path":          ("artifactsPath",),
    "output_path":             ("outputPath",),
    "proxy_url":               ("proxyUrl",),
    "set_location":            ("setLocation",),
}


def _url_list(value: Any) -> list[str]:
    """Accept ["https://..."] as well as [{"url": "https://..."}]."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    urls = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("url")
        if isinstance(item, str) and item.strip():
            urls.append(item.strip())
    return urls


class ListingSettings(BaseSettings):
    platform: str = PLATFORM_BLINKIT

    # Targets
    target_urls: list[str] = Field(default_factory=list)
    search_terms: list[str] = Field(default_factory=list)

    # Location
    requested_location: Optional[str] = None
    pincode: Optional[str] = None
    set_location: bool = True

    # Limits
    max_records_per_target: int = Field(default=100, gt=0)
    max_retries: int = Field(default=3, ge=0)
    max_concurrency: int = Field(default=2, ge=1, le=8)
    navigation_timeout_ms: int = Field(default=60_000, gt=0)
    results_timeout_ms: int = Field(default=10_000, gt=0)
    session_timeout_seconds: float = Field(default=240.0, gt=0)
    retry_backoff_seconds: float = Field(default=2.0, ge=0)
    scroll_target_count: Optional[int] = Field(default=None, gt=0)
    scroll_iteration_count: int = Field(default=50, gt=0)

    # Browser
    headless: bool = True
    proxy_url: Optional[str] = None

    # Artifacts / output
    capture_debug_artifacts: bool = False
    screenshot_on_error: bool = True
    artifacts_path: str = "./data/raw/listing"
    output_path: str = "./data/listing_products.jsonl"

    model_config = {
        "env_prefix": "LISTING_",
        "env_file": _ENV_FILE,
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def effective_location(self) -> Optional[str]:
        """Pincode wins over a free-text location."""
        for value in (self.pincode, self.requested_location):
            if value and str(value).strip():
                return str(value).strip()
        return None

    @property
    def scroll_target(self) -> int:
        return self.scroll_target_count or self.max_records_per_target

    @classmethod
    def from_input(cls, document: dict, **overrides) -> "ListingSettings":
        """Build settings from a camelCase input document."""
        if not isinstance(document, dict):
            raise ConfigurationError("Input document must be a JSON object")

        values: dict[str, Any] = {}
        for field_name, keys in INPUT_ALIASES.items():
            for key in keys:
                if document.get(key) is not None:
                    values[field_name] = document[key]
                    break

        proxy = document.get("proxyConfiguration")
        if isinstance(proxy, dict) and proxy.get("proxyUrl") and "proxy_url" not in values:
            values["proxy_url"] = proxy["proxyUrl"]

        if "target_urls" in values:
            values["target_urls"] = _url_list(values["target_urls"])
        if isinstance(values.get("search_terms"), str):
            values["search_terms"] = [values["search_terms"]]
        if "pincode" in values:
            values["pincode"] = str(values["pincode"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return load_settings(**values)


def load_settings(**values) -> ListingSettings:
    """Validated settings; any invalid option is a ConfigurationError."""
    try:
        settings = ListingSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    if settings.platform not in ALL_PLATFORMS:
        raise ConfigurationError(
            f"Unknown platform {settings.platform!r} (expected one of {', '.join(ALL_PLATFORMS)})"
        )
    return settings
