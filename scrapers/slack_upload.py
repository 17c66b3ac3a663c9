"""
Slack notification utility for the listing scrapers.

Posts a one-message run summary to the configured Slack channel.
Uses SLACK_BOT_TOKEN and SLACK_CHANNEL_ID from .env.

Usage:
    from scrapers.slack_upload import notify_run_summary

    notify_run_summary(report)
"""

import logging
import os

import requests

from shared.constants import PLATFORM_DISPLAY_NAMES

logger = logging.getLogger(__name__)

SLACK_API_MESSAGE = "https://slack.com/api/chat.postMessage"
MAX_LISTED_FAILURES = 10


def is_configured() -> bool:
    return bool(os.environ.get("SLACK_BOT_TOKEN") and os.environ.get("SLACK_CHANNEL_ID"))


def post_message(text: str) -> bool:
    """Post a plain text message to the configured Slack channel."""
    token      = os.environ.get("SLACK_BOT_TOKEN")
    channel_id = os.environ.get("SLACK_CHANNEL_ID")

    if not token or not channel_id:
        logger.warning("[Slack] SLACK_BOT_TOKEN or SLACK_CHANNEL_ID not set — skipping")
        return False

    try:
        resp = requests.post(
            SLACK_API_MESSAGE,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            json={"channel": channel_id, "text": text},
            timeout=10,
        )
        result = resp.json()
        if result.get("ok"):
            logger.info("[Slack] Message posted successfully")
            return True
        logger.error("[Slack] Message failed: %s", result.get("error"))
        return False
    except Exception as exc:
        logger.error("[Slack] Message exception: %s", exc)
        return False


def format_run_summary(report) -> str:
    portal = PLATFORM_DISPLAY_NAMES.get(report.platform, report.platform)
    status = "completed" if not report.failures else "completed with failures"
    lines = [
        f"*{portal} listing scrape {status}*",
        f"Targets: {report.succeeded}/{report.targets} succeeded",
        f"Products: {report.records}",
    ]
    if report.failures:
        lines.append("Failed URLs:")
        for failure in report.failures[:MAX_LISTED_FAILURES]:
            lines.append(f"• {failure.url} ({failure.error})")
        if len(report.failures) > MAX_LISTED_FAILURES:
            lines.append(f"…and {len(report.failures) - MAX_LISTED_FAILURES} more")
    return "\n".join(lines)


def notify_run_summary(report) -> bool:
    return post_message(format_run_summary(report))
