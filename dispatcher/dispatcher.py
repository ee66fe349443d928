# dispatcher/dispatcher.py
import asyncio

from scraper.scraper import MetadataError
from scraper.storage import StorageError
from utils.logger import get_logger
from utils.validator import is_acceptable

logger = get_logger("dispatcher")

# end-of-stream marker for both the job queue and the results queue
_DONE = object()


def admit_urls(urls):
    """Keep the URLs that pass validation, logging the rest."""
    valid = []
    for url in urls:
        if is_acceptable(url):
            valid.append(url)
        else:
            logger.warning(f"Invalid Goodreads URL: {url}")
    return valid


class Dispatcher:
    """
    Worker pool that harvests reviews for a list of book URLs.

    A feeder task puts admitted URLs on a shared job queue; N worker tasks
    compete for them, so each URL is scraped by exactly one worker. Finished
    BookResults go through a results queue to a single consumer loop, which
    is the only place the sink is written from.
    """

    def __init__(
        self,
        scraper,
        storage,
        output_file,
        max_reviews=100,
        language=None,
        concurrency=5,
        cancel_event=None,
    ):
        self.scraper = scraper
        self.storage = storage
        self.output_file = output_file
        self.max_reviews = max_reviews
        self.language = language
        self.concurrency = concurrency
        self.cancel_event = cancel_event or asyncio.Event()

    def cancel(self):
        """Stop handing out new jobs; jobs already running finish normally."""
        self.cancel_event.set()

    async def _feed(self, jobs, urls, workers):
        try:
            for url in urls:
                if self.cancel_event.is_set():
                    logger.info("Signal received. Stopping new job dispatch...")
                    break
                await jobs.put(url)
        finally:
            for _ in range(workers):
                jobs.put_nowait(_DONE)

    async def _worker(self, worker_id, jobs, results):
        while not self.cancel_event.is_set():
            url = await jobs.get()
            if url is _DONE:
                return
            if self.cancel_event.is_set():
                return

            logger.debug(f"Worker {worker_id}: Starting scraping for {url}")
            try:
                book = await self.scraper.scrape_book(url, self.max_reviews, self.language)
            except MetadataError as e:
                logger.error(f"Worker {worker_id}: Failed to scrape {url}: {e}")
                continue
            except Exception as e:
                logger.exception(f"Worker {worker_id}: Unexpected error scraping {url}: {e}")
                continue

            logger.debug(
                f"Worker {worker_id}: Finished scraping {url} ({len(book.reviews)} reviews)"
            )
            await results.put(book)

    async def _supervise(self, workers, results):
        try:
            await asyncio.gather(*workers)
        finally:
            await results.put(_DONE)

    async def run(self, urls, concurrency=None):
        """
        Scrape every admitted URL and persist the results.

        Args:
            urls (list[str]): Candidate book URLs; invalid ones are dropped
            concurrency (int, optional): Worker count, overriding the value
                given to the constructor

        Returns:
            tuple[int, int]: (success_count, total_count) where total_count is
                the number of admitted URLs

        Accounting:
            - metadata failure: job skipped, not counted as success
            - reviews saved: success
            - zero reviews: success (the scrape itself worked)
            - save error: logged, not counted as success

        Note:
            Setting cancel_event stops the feeder and keeps workers from
            claiming further jobs. Requests already in flight run to their
            own completion or timeout, and their results are still saved.
        """
        workers_n = max(1, concurrency or self.concurrency)
        valid = admit_urls(urls)
        total = len(valid)
        if not valid:
            logger.info("No valid URLs to process.")
            return 0, 0

        logger.info(f"Processing {total} valid URLs with {workers_n} workers...")

        jobs = asyncio.Queue()
        results = asyncio.Queue()

        workers = [
            asyncio.create_task(self._worker(i + 1, jobs, results))
            for i in range(workers_n)
        ]
        feeder = asyncio.create_task(self._feed(jobs, valid, workers_n))
        supervisor = asyncio.create_task(self._supervise(workers, results))

        success = 0
        processed = 0
        try:
            while True:
                book = await results.get()
                if book is _DONE:
                    break
                processed += 1
                if await self._persist(book, processed, total):
                    success += 1
            await asyncio.gather(feeder, supervisor)
        finally:
            pending = [t for t in (feeder, supervisor, *workers) if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("-" * 57)
        logger.info(f"Scraping completed! Successfully processed {success}/{total} URLs.")
        logger.info(f"Results saved to: {self.output_file}")
        logger.info("-" * 57)
        return success, total

    async def _persist(self, book, processed, total):
        title = book.metadata.title
        if not book.reviews:
            logger.warning(f"[{processed}/{total}] No reviews found for '{title}'")
            return True
        try:
            await asyncio.to_thread(self.storage.save_reviews, book.reviews, self.output_file)
        except StorageError as e:
            logger.error(f"[{processed}/{total}] Failed to save reviews for {title}: {e}")
            return False
        except Exception as e:
            logger.exception(f"[{processed}/{total}] Unexpected error saving reviews for {title}: {e}")
            return False
        logger.info(f"[{processed}/{total}] Saved {len(book.reviews)} reviews for '{title}'")
        return True
