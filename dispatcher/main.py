# dispatcher/main.py
import argparse
import asyncio
import signal
import sys

from pydantic import ValidationError

from scraper.scraper import ReviewScraper
from scraper.storage import CSVStorage
from utils.logger import get_logger, set_verbose
from .config import (
    API_KEY,
    CONCURRENCY,
    LANGUAGE,
    MAX_REVIEWS,
    PAGE_DELAY,
    REQUEST_TIMEOUT,
    ConfigError,
    Settings,
    collect_urls,
)
from .dispatcher import Dispatcher

logger = get_logger("dispatcher")


def parse_args(argv=None):
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Harvest Goodreads reviews for one or more books into a CSV file"
    )
    parser.add_argument("url", nargs="?", default=None, help="Single Goodreads book URL")
    parser.add_argument(
        "-api", dest="api_key", default=API_KEY,
        help="API key for the reviews endpoint (default: $GOODREADS_API_KEY)",
    )
    parser.add_argument("-c", dest="concurrency", type=int, default=CONCURRENCY, help="Number of concurrent workers")
    parser.add_argument("-f", dest="input_file", default=None, help="Text file containing Goodreads URLs (one per line)")
    parser.add_argument("-m", dest="max_reviews", type=int, default=MAX_REVIEWS, help="Maximum number of reviews to scrape per book")
    parser.add_argument("-o", dest="output_file", default=None, help="Output CSV file (default: auto-generated with timestamp)")
    parser.add_argument("-l", dest="language", default=LANGUAGE, help="Language code for reviews ('' for all)")
    parser.add_argument("--page-delay", type=float, default=PAGE_DELAY, help="Seconds to wait between review pages")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT, help="Per-request HTTP timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def build_settings(args):
    """
    Turn parsed flags into validated Settings.

    Raises:
        ConfigError: On a missing credential or invalid numeric flags
    """
    values = {
        "api_key": args.api_key or "",
        "concurrency": args.concurrency,
        "max_reviews": args.max_reviews,
        "language": args.language or "",
        "input_url": args.url,
        "input_file": args.input_file,
        "page_delay": args.page_delay,
        "timeout": args.timeout,
        "verbose": args.verbose,
    }
    if args.output_file:
        values["output_file"] = args.output_file
    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(problems) from e


def build_scraper(settings):
    """Create a ReviewScraper from validated settings."""
    return ReviewScraper(
        settings.api_key, page_delay=settings.page_delay, timeout=settings.timeout
    )


async def harvest(settings, urls):
    """
    Run one harvest with signal-driven cancellation.

    SIGINT/SIGTERM set the dispatcher's cancel event; the run then drains
    the jobs already in progress and returns.
    """
    scraper = build_scraper(settings)
    dispatcher = Dispatcher(
        scraper,
        CSVStorage(),
        settings.output_file,
        max_reviews=settings.max_reviews,
        language=settings.language,
        concurrency=settings.concurrency,
    )
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, dispatcher.cancel)
    try:
        return await dispatcher.run(urls)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await scraper.close()


def main(argv=None):
    args = parse_args(argv)
    set_verbose(args.verbose)
    try:
        settings = build_settings(args)
        urls = collect_urls(settings)
    except ConfigError as e:
        logger.critical(str(e))
        return 1

    if settings.input_url:
        logger.info(f"Processing single URL: {settings.input_url}")
    else:
        logger.info(f"Loaded {len(urls)} URLs from {settings.input_file}")
    logger.info(
        f"Starting harvest: concurrency={settings.concurrency}, max_reviews={settings.max_reviews}, "
        f"language={settings.language or '-'}, output={settings.output_file}"
    )

    asyncio.run(harvest(settings, urls))
    return 0


if __name__ == "__main__":
    sys.exit(main())
