"""
Main entry point for the stats tracker.

Usage:
    python tracker_main.py          # Daemon mode, ticks on the cron schedule
    python tracker_main.py --once   # Single tick, then exit
"""

import asyncio
import sys
from typing import Optional, Tuple

import structlog

from notifications.diagnostics import DiagnosticCapture
from notifications.telegram_client import TelegramClient
from tracker.failure_reporter import FailureReporter
from tracker.models import TickOutcome
from tracker.snapshot_store import SnapshotStore
from tracker.sources import load_source
from tracker.tracker_service import TrackerService
from utilities.config import TrackerConfig, config
from utilities.logger import setup_logging


def build_service(
    settings: TrackerConfig,
    run_once: bool = False
) -> Tuple[TrackerService, Optional[TelegramClient]]:
    """
    Wire the source, store, reporter and Telegram clients from configuration.

    Returns:
        The service and, when it uses its own bot, the error-chat client to close
    """
    if not settings.source:
        raise ValueError("SOURCE must name an observation source factory ('module:factory')")

    cron_expression = None if run_once else settings.get_cron_expression()
    source = load_source(settings.source)
    store = SnapshotStore(settings.get_data_dir())

    notifier: Optional[TelegramClient] = None
    if settings.telegram_bot_token:
        notifier = TelegramClient(
            settings.telegram_bot_token,
            api_url=settings.telegram_api_url,
            timeout=settings.request_timeout
        )

    error_client: Optional[TelegramClient] = None
    error_token = settings.get_error_bot_token()
    if error_token and settings.get_error_chat_ids():
        if error_token == settings.telegram_bot_token:
            error_client = notifier
        else:
            error_client = TelegramClient(
                error_token,
                api_url=settings.telegram_api_url,
                timeout=settings.request_timeout
            )

    diagnostics = DiagnosticCapture(
        source=source,
        screenshot_dir=settings.get_screenshot_dir(),
        client=error_client,
        chat_ids=settings.get_error_chat_ids(),
        screenshot_url=settings.screenshot_url
    )

    service = TrackerService(
        source=source,
        store=store,
        failure_reporter=FailureReporter(diagnostics),
        notifier=notifier,
        chat_ids=settings.get_chat_ids(),
        cron_expression=cron_expression,
        timezone=settings.timezone
    )
    return service, error_client if error_client is not notifier else None


async def main() -> int:
    """Start the tracker; returns the process exit code."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger = structlog.get_logger(__name__)

    run_once = len(sys.argv) > 1 and sys.argv[1] == "--once"
    if len(sys.argv) > 1 and not run_once:
        print(f"Unknown argument: {sys.argv[1]}")
        print("Usage: python tracker_main.py [--once]")
        return 1

    if not config.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN is not set")
        return 1

    try:
        service, error_client = build_service(config, run_once=run_once)
    except (ValueError, TypeError, ImportError, AttributeError) as e:
        logger.error("Failed to configure tracker", error=str(e))
        return 1

    try:
        if run_once:
            result = await service.run_once()
            await service.stop()
            return 0 if result.outcome != TickOutcome.FAILED else 2
        await service.start()
        return 0
    finally:
        if error_client is not None:
            await error_client.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
