"""
Listing run orchestrator.
Builds the target list, runs every target through the platform scraper
(first target alone, the rest concurrently), collects failures and
reports a summary.

Usage:
    from scrapers.config import load_settings
    from scrapers.orchestrator import run_listing

    report = asyncio.run(run_listing(load_settings(search_terms=["milk"])))
"""
import asyncio
import logging
from typing import Optional

from shared.constants import PLATFORM_BLINKIT, PLATFORM_DISPLAY_NAMES, PLATFORM_ZEPTO

from . import slack_upload
from .base_scraper import BaseListingScraper
from .blinkit_scraper import BlinkitListingScraper
from .config import ListingSettings
from .listing.errors import ConfigurationError
from .listing.models import LandingContext, RunReport, SessionState, TargetResult
from .listing.sites import SiteProfile
from .zepto_scraper import ZeptoListingScraper

logger = logging.getLogger(__name__)


SCRAPERS: dict[str, type[BaseListingScraper]] = {
    PLATFORM_BLINKIT: BlinkitListingScraper,
    PLATFORM_ZEPTO:   ZeptoListingScraper,
}


def get_scraper_class(platform: str) -> type[BaseListingScraper]:
    try:
        return SCRAPERS[platform]
    except KeyError:
        raise ConfigurationError(f"No scraper registered for platform {platform!r}") from None


def build_targets(settings: ListingSettings, profile: SiteProfile,
                  requested_location: Optional[str] = None) -> list[LandingContext]:
    """
    Explicit URLs first, then one search URL per term. Duplicates are
    dropped keeping the first occurrence. Raises ConfigurationError when
    nothing is left.
    """
    urls: list[tuple[str, Optional[str]]] = []
    for url in settings.target_urls:
        url = url.strip()
        if url:
            urls.append((url, profile.search_term_from_url(url)))
    for term in settings.search_terms:
        term = (term or "").strip()
        if term:
            urls.append((profile.search_url(term), term))

    seen: set[str] = set()
    targets = []
    for url, term in urls:
        if url in seen:
            continue
        seen.add(url)
        targets.append(LandingContext(
            url=url,
            platform=profile.platform,
            search_term=term,
            requested_location=requested_location,
            is_first_request_in_run=not targets,
        ))

    if not targets:
        raise ConfigurationError("No target URLs or search terms supplied")
    return targets


async def run_targets(scraper: BaseListingScraper, targets: list[LandingContext]) -> RunReport:
    """The first target binds the location alone; the rest share its session state."""
    first, rest = targets[0], targets[1:]
    first_result = await scraper.scrape_target(first, SessionState())
    state = first_result.session_state

    semaphore = asyncio.Semaphore(scraper.settings.max_concurrency)

    async def bounded(landing: LandingContext) -> TargetResult:
        async with semaphore:
            return await scraper.scrape_target(landing, state)

    results = [first_result, *await asyncio.gather(*(bounded(t) for t in rest))]
    return RunReport(
        platform=scraper.profile.platform,
        targets=len(targets),
        records=sum(len(r.records) for r in results),
        results=results,
        failures=list(scraper.failures.failures),
    )


def log_summary(report: RunReport) -> None:
    portal = PLATFORM_DISPLAY_NAMES.get(report.platform, report.platform)
    logger.info("=" * 60)
    logger.info("[%s] Targets: %d processed, %d succeeded, %d failed", portal,
                report.targets, report.succeeded, len(report.failures))
    logger.info("[%s] Products: %d", portal, report.records)
    for result in report.results:
        logger.info("  %-7s %4d  %s", result.status.upper(), len(result.records), result.url)
    for failure in report.failures:
        logger.error("  FAILED  %s: %s", failure.url, failure.error)
    logger.info("=" * 60)


async def run_listing(settings: ListingSettings, sink=None,
                      scraper_cls: Optional[type[BaseListingScraper]] = None,
                      notify: bool = True) -> RunReport:
    """
    Full run for one platform. Configuration problems raise before any
    browser is launched; per-target failures end up in report.failures.
    """
    scraper_cls = scraper_cls or get_scraper_class(settings.platform)
    scraper = scraper_cls(settings, sink=sink)
    targets = build_targets(settings, scraper.profile, scraper.requested_location)
    logger.info("[%s] %d target(s), location %s", scraper.profile.display_name, len(targets),
                scraper.requested_location or "default")

    async with scraper:
        report = await run_targets(scraper, targets)

    log_summary(report)
    if notify and slack_upload.is_configured():
        slack_upload.notify_run_summary(report)
    return report
