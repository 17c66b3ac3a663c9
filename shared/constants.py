"""
Shared constants for the listing scrapers.
Used by the site profiles, the browser session and the CLI.
"""

# ---------------------------------------------------------------------------
# Platform tags (written to every record as `platform`)
# ---------------------------------------------------------------------------
PLATFORM_BLINKIT = "blinkit"
PLATFORM_ZEPTO   = "zepto"

ALL_PLATFORMS = [
    PLATFORM_BLINKIT,
    PLATFORM_ZEPTO,
]

PLATFORM_DISPLAY_NAMES: dict[str, str] = {
    PLATFORM_BLINKIT: "Blinkit",
    PLATFORM_ZEPTO:   "Zepto",
}

# ---------------------------------------------------------------------------
# Pincode → coordinates
# Used for the context geolocation so the storefront offers the right
# dark store even before the location flow has been walked.
# ---------------------------------------------------------------------------
PINCODE_COORDS: dict[str, dict] = {
    "110001": {"lat": 28.6139, "lng": 77.2090, "area": "Connaught Place, Delhi"},
    "122009": {"lat": 28.4595, "lng": 77.0266, "area": "DLF Phase 3, Gurugram"},
    "400001": {"lat": 18.9387, "lng": 72.8353, "area": "Fort, Mumbai"},
    "400093": {"lat": 19.1136, "lng": 72.8697, "area": "Powai, Mumbai"},
    "411001": {"lat": 18.5204, "lng": 73.8567, "area": "Shivajinagar, Pune"},
    "560001": {"lat": 12.9716, "lng": 77.5946, "area": "Bangalore City"},
    "560103": {"lat": 12.9784, "lng": 77.6408, "area": "Whitefield, Bangalore"},
    "600001": {"lat": 13.0827, "lng": 80.2707, "area": "Park Town, Chennai"},
    "700001": {"lat": 22.5726, "lng": 88.3639, "area": "BBD Bagh, Kolkata"},
}

DEFAULT_PINCODES: dict[str, str] = {
    PLATFORM_BLINKIT: "411001",
    PLATFORM_ZEPTO:   "411001",
}

# ---------------------------------------------------------------------------
# Browser fingerprint
# ---------------------------------------------------------------------------
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
]

CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
]

VIEWPORT = {"width": 1920, "height": 1080}

EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9,hi;q=0.8",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
}

# Injected before any page JS runs
STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
    Object.defineProperty(navigator, 'plugins', {get: () => [1,2,3,4,5]});
    Object.defineProperty(navigator, 'languages', {get: () => ['en-IN','en-US','en']});
    window.chrome = {runtime: {}};
"""

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
CSV_HEADER = [
    "Product_ID", "Name", "Price", "MRP", "Discount_Pct", "Weight",
    "In_Stock", "Delivery_Time", "Search_Query", "Delivery_Location",
    "Platform", "Image_URL", "URL", "Strategy", "Scraped_At",
]

FAILED_URLS_KEY = "FAILED_URLS"
