"""
Data model shared by the listing components.

ProductRecord is what gets emitted; the other types are the small state
values threaded between the orchestrator and the three core components.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExtractionStrategy(str, Enum):
    STATE = "state"
    DOM = "dom"
    FALLBACK = "fallback"


def compute_discount(current: Optional[float], original: Optional[float]) -> Optional[int]:
    """Discount percent, only when both prices exist and original > current."""
    if current is None or original is None or original <= 0 or original <= current:
        return None
    pct = round((original - current) / original * 100)
    # A sub-0.5% cut rounds to 0; 100% would mean a free item
    if 0 < pct < 100:
        return pct
    return None


@dataclass
class ProductRecord:
    product_id: str
    name: Optional[str] = None
    image_url: Optional[str] = None
    weight_or_size: Optional[str] = None
    current_price: Optional[float] = None
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    in_stock: bool = True
    delivery_time: Optional[str] = None
    product_url: Optional[str] = None
    product_slug: Optional[str] = None
    rating: Optional[float] = None
    is_sponsored: bool = False
    extraction_strategy: str = ExtractionStrategy.DOM.value
    captured_at: str = field(default_factory=_now_iso, compare=False)

    # Request-scoped annotations, written by the session orchestrator
    search_query: Optional[str] = None
    search_url: Optional[str] = None
    requested_location: Optional[str] = None
    delivery_location: Optional[str] = None
    platform: Optional[str] = None

    def is_empty(self) -> bool:
        return self.name is None and self.image_url is None and self.current_price is None

    def finalize_pricing(self) -> None:
        """Recompute the discount from the two prices; never keep a badge value."""
        self.discount_percent = compute_discount(self.current_price, self.original_price)

    def to_dict(self) -> dict:
        return asdict(self)


class ScrollPhase(str, Enum):
    PROBING = "probing"
    GROWING = "growing"
    STABILIZING = "stabilizing"
    DONE = "done"


class ScrollOutcome(str, Enum):
    TARGET_REACHED = "target_reached"
    EXHAUSTED = "exhausted"
    ITERATION_CAP = "iteration_cap"
    ERROR = "error"


@dataclass(frozen=True)
class ScrollState:
    observed_count: int = 0
    previous_count: int = 0
    stable_iterations: int = 0
    attempts: int = 0
    phase: ScrollPhase = ScrollPhase.PROBING
    outcome: Optional[ScrollOutcome] = None

    def done(self, outcome: ScrollOutcome) -> "ScrollState":
        return replace(self, phase=ScrollPhase.DONE, outcome=outcome)


class LocationState(str, Enum):
    IDLE = "idle"
    LOCATOR_OPENED = "locator_opened"
    MODAL_VISIBLE = "modal_visible"
    INPUT_FILLED = "input_filled"
    SUGGESTION_SELECTED = "suggestion_selected"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class LocationSessionResult:
    attempted: bool
    succeeded: bool
    resolved_location_label: Optional[str] = None
    final_state: LocationState = LocationState.IDLE


@dataclass(frozen=True)
class LandingContext:
    """Per-target values derived by the orchestrator. Read-only downstream."""
    url: str
    platform: str
    search_term: Optional[str] = None
    requested_location: Optional[str] = None
    is_first_request_in_run: bool = False


@dataclass(frozen=True)
class SessionState:
    """
    Run-level state threaded through each per-target call.

    storage_state is the browser storage captured after the location was
    bound; later contexts are created from it.
    """
    location: Optional[LocationSessionResult] = None
    storage_state: Optional[dict] = None

    @property
    def location_bound(self) -> bool:
        return self.location is not None and self.location.attempted


@dataclass
class TargetResult:
    url: str
    records: list[ProductRecord] = field(default_factory=list)
    status: str = "ok"
    scroll_count: int = 0
    attempts: int = 0
    error: Optional[str] = None
    session_state: SessionState = field(default_factory=SessionState)


@dataclass
class FailedTarget:
    url: str
    error: str
    attempts: int
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class RunReport:
    platform: str
    targets: int = 0
    records: int = 0
    results: list[TargetResult] = field(default_factory=list)
    failures: list[FailedTarget] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status != "failed")
