#!/usr/bin/env python3
"""
Quick-commerce Listing Scraper CLI

Usage:
    python listing_main.py -q "amul butter"                                # One search term (Blinkit)
    python listing_main.py -q milk -q bread --platform zepto               # Several terms on Zepto
    python listing_main.py "https://blinkit.com/s/?q=atta"                 # Listing URL
    python listing_main.py -f searches.txt -o results.csv                  # From file, export to CSV
    python listing_main.py -p 560001 -q eggs -n 50                         # Specific pincode, 50 per target
    python listing_main.py -i input.json                                   # JSON input document
"""

import argparse
import asyncio
import csv
import json
import logging
import sys

from dotenv import load_dotenv

from scrapers.config import ListingSettings, load_settings
from scrapers.listing.errors import ConfigurationError
from scrapers.listing.models import RunReport
from scrapers.listing.storage import JsonlSink, write_csv
from scrapers.orchestrator import run_listing
from shared.constants import ALL_PLATFORMS

load_dotenv()

logger = logging.getLogger("listing_main")


def load_entries_from_file(filepath: str) -> list[str]:
    """Load URLs or search terms from a text file (one per line) or CSV."""
    entries = []
    with open(filepath, "r", encoding="utf-8") as f:
        if filepath.endswith(".csv"):
            reader = csv.reader(f)
            for row in reader:
                if row and row[0].strip():
                    entry = row[0].strip()
                    # Skip header rows
                    if entry.upper() not in ("URL", "LINK", "QUERY", "SEARCH", "TERM", "KEYWORD"):
                        entries.append(entry)
        else:
            for line in f:
                entry = line.strip()
                if entry and not entry.startswith("#"):
                    entries.append(entry)
    return entries


def split_entries(entries: list[str]) -> tuple[list[str], list[str]]:
    """URLs go to target_urls, anything else is a search term."""
    urls = [e for e in entries if e.startswith(("http://", "https://"))]
    terms = [e for e in entries if not e.startswith(("http://", "https://"))]
    return urls, terms


def build_settings(args) -> ListingSettings:
    entries = list(args.urls or [])
    if args.file:
        file_entries = load_entries_from_file(args.file)
        entries.extend(file_entries)
        print(f"Loaded {len(file_entries)} entries from {args.file}")
    urls, terms = split_entries(entries)
    terms.extend(args.query or [])

    overrides = {
        "platform": args.platform,
        "pincode": args.pincode,
        "requested_location": args.location,
        "max_records_per_target": args.max_products,
        "max_concurrency": args.concurrency,
        "max_retries": args.retries,
        "scroll_target_count": args.scroll_target,
        "output_path": args.jsonl,
        "headless": False if args.no_headless else None,
        "capture_debug_artifacts": True if args.debug else None,
    }

    if args.input:
        with open(args.input, "r", encoding="utf-8") as f:
            document = json.load(f)
        settings = ListingSettings.from_input(document, **overrides)
    else:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})

    if urls or terms:
        settings = load_settings(**{
            **settings.model_dump(),
            "target_urls": [*settings.target_urls, *urls],
            "search_terms": [*settings.search_terms, *terms],
        })
    return settings


def print_summary(report: RunReport, settings: ListingSettings) -> None:
    print("\n" + "=" * 60)
    print(f"Platform:   {report.platform}")
    print(f"Targets:    {report.succeeded}/{report.targets} succeeded")
    print(f"Products:   {report.records}")
    print(f"JSONL:      {settings.output_path}")
    if report.failures:
        print("-" * 60)
        print("Failed targets:")
        for failure in report.failures:
            print(f"  {failure.url}")
            print(f"    {failure.error}")
    print("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Scrape product listings from Blinkit / Zepto search pages"
    )
    parser.add_argument(
        "urls",
        nargs="*",
        help="Listing URLs (or bare search terms) to scrape"
    )
    parser.add_argument("-q", "--query", action="append", help="Search term (repeatable)")
    parser.add_argument("-f", "--file", help="File containing URLs or search terms (one per line or CSV)")
    parser.add_argument("-i", "--input", help="JSON input document (camelCase options)")
    parser.add_argument("--platform", choices=ALL_PLATFORMS, help="Storefront to scrape (default: blinkit)")
    parser.add_argument("-p", "--pincode", help="Delivery pincode (geolocation defaults to 411001 Pune)")
    parser.add_argument("-l", "--location", help="Free-text delivery location (pincode wins if both given)")
    parser.add_argument("-n", "--max-products", type=int, help="Maximum products per target (default: 100)")
    parser.add_argument("--concurrency", type=int, help="Concurrent targets after the first (default: 2)")
    parser.add_argument("--retries", type=int, help="Retries per failed target (default: 3)")
    parser.add_argument("--scroll-target", type=int, help="Stop scrolling at this many cards")
    parser.add_argument("-o", "--output", help="Also export results to this CSV file")
    parser.add_argument("--jsonl", help="JSON Lines output file")
    parser.add_argument("--no-headless", action="store_true", help="Show the browser window")
    parser.add_argument("--debug", action="store_true", help="Verbose logs and debug snapshots")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )

    try:
        settings = build_settings(args)
        sink = JsonlSink(settings.output_path)
        report = asyncio.run(run_listing(settings, sink=sink))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    if args.output:
        write_csv(sink.records, args.output)
        print(f"\nResults saved to: {args.output}")

    print_summary(report, settings)


if __name__ == "__main__":
    main()
