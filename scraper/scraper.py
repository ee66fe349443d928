# scraper/scraper.py
import asyncio
import re
from urllib.parse import urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from .models import (
    BookMetadata,
    BookResult,
    GraphQLResponse,
    Review,
    ReviewFetchResult,
)
from .query import (
    GRAPHQL_URL,
    PAGE_LIMIT,
    USER_AGENT,
    build_reviews_payload,
    graphql_headers,
)
from .utils import epoch_ms_to_date, parse_decimal, strip_tags
from utils.logger import get_logger

DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_DELAY = 1.0

WORK_ID_RE = re.compile(r'"work":\s*{\s*"__ref":\s*"Work:(kca://work/[^"]+)"')

logger = get_logger("scraper")


class ScraperError(Exception):
    pass


class MetadataError(ScraperError):
    """The book page could not be fetched; the job cannot continue."""


class WorkIDNotFoundError(MetadataError):
    pass


def canonical_book_url(book_url):
    """Strip query, fragment and trailing slash from a book URL."""
    parts = urlsplit(book_url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip("/"), "", ""))


def reviews_page_url(book_url):
    return canonical_book_url(book_url) + "/reviews"


def parse_metadata(html, book_url):
    """
    Extract title, author and average rating from a book's reviews page.

    Missing display fields never fail the parse: the title and author fall
    back to "Unknown Title" / "Unknown Author" and the rating to 0.0.

    Args:
        html (str): Raw HTML of <book_url>/reviews
        book_url (str): URL the page was fetched for

    Returns:
        BookMetadata: Parsed metadata with the canonical book URL

    Rating lookup:
        1. Decimal number in the aria-label of div.RatingStatistics__column
           (e.g. "4.5 out of 5 stars")
        2. If that yields 0, the same regex over the element's visible text
    """
    soup = BeautifulSoup(html, "lxml")

    title = "Unknown Title"
    title_el = soup.select_one("a[data-testid='title']")
    if title_el:
        title = title_el.get_text(strip=True)

    author = "Unknown Author"
    author_el = soup.select_one("span.ContributorLink__name[data-testid='name']")
    if author_el:
        author = author_el.get_text(strip=True)

    avg_rating = 0.0
    rating_el = soup.select_one("div.RatingStatistics__column")
    if rating_el:
        avg_rating = parse_decimal(rating_el.get("aria-label"))
        if avg_rating == 0.0:
            avg_rating = parse_decimal(rating_el.get_text(strip=True))

    return BookMetadata(
        title=title,
        author=author,
        average_rating=avg_rating,
        url=canonical_book_url(book_url),
    )


def extract_work_id(html):
    """
    Find the work identifier in the page's embedded Apollo state.

    Raises:
        WorkIDNotFoundError: If the page carries no "work" reference
    """
    m = WORK_ID_RE.search(html)
    if not m:
        raise WorkIDNotFoundError("work ID not found in page content")
    return m.group(1)


def normalize_review(node, metadata, language=""):
    """
    Turn one GraphQL review node into a Review.

    Returns None when the node is null or has no usable identifier; the
    caller drops such records.
    """
    if node is None or not node.id:
        return None
    rating = str(node.rating) if node.rating and node.rating > 0 else ""
    reviewer = node.creator.name if node.creator and node.creator.name else ""
    return Review(
        book_url=metadata.url,
        book_title=metadata.title,
        review_id=node.id,
        reviewer_name=reviewer,
        rating=rating,
        review_text=strip_tags(node.text),
        review_date=epoch_ms_to_date(node.created_at),
        language=language or "",
    )


class ReviewScraper:
    def __init__(
        self,
        api_key,
        graphql_url=GRAPHQL_URL,
        page_delay=DEFAULT_PAGE_DELAY,
        timeout=DEFAULT_TIMEOUT,
        client=None,
    ):
        if not api_key:
            raise ValueError("API key is required to query the reviews endpoint")
        self.api_key = api_key
        self.graphql_url = graphql_url
        self.page_delay = page_delay
        self.client = client or httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": USER_AGENT}
        )

    async def close(self):
        """
        Close the HTTP client and release resources.

        Should be called once the scraper is no longer needed, ideally from a
        finally block.
        """
        await self.client.aclose()

    async def fetch(self, url):
        """
        Fetch a book page and return its HTML.

        Args:
            url (str): Page URL

        Returns:
            str: Response body

        Raises:
            MetadataError: On transport failure or any status other than 200
        """
        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as e:
            raise MetadataError(f"failed to fetch {url}: {e}") from e
        if resp.status_code != 200:
            raise MetadataError(
                f"status code error fetching {url}: {resp.status_code} {resp.reason_phrase}"
            )
        return resp.text

    async def _fetch_book_page(self, book_url):
        html = await self.fetch(reviews_page_url(book_url))
        return html, parse_metadata(html, book_url)

    async def resolve_metadata(self, book_url):
        """Fetch <book_url>/reviews and parse the book metadata from it."""
        _, metadata = await self._fetch_book_page(book_url)
        return metadata

    async def fetch_reviews(self, work_id, max_reviews, language, metadata):
        """
        Page through the getReviews query until the cap or exhaustion.

        Each iteration requests min(PAGE_LIMIT, remaining) reviews, passing
        the continuation token from the previous page. Requests after the
        first are preceded by a fixed politeness delay.

        Args:
            work_id (str): Work identifier extracted from the book page
            max_reviews (int): Upper bound on the number of reviews returned
            language (str | None): Language code filter
            metadata (BookMetadata): Book the reviews belong to; its URL and
                title are copied into every Review

        Returns:
            ReviewFetchResult: Accumulated reviews (never more than
                max_reviews, in server order) and, if a page failed, an
                error description

        Stop conditions:
            - max_reviews reached
            - empty edge list or empty nextPageToken (exhaustion)
            - transport error, non-200 status or undecodable body (error)
            - any reported GraphQL error other than "Unauthorized" (error)

        Note:
            "Unauthorized" errors are expected for anonymous access to
            viewer-specific fields; they do not affect the review data.
            Nodes without an id are skipped and logged.
        """
        reviews = []
        after = None
        pages = 0
        total_count = None
        error = None
        exhausted = False

        logger.debug(
            f"Starting review fetch for {work_id}: target={max_reviews}, language={language or '-'}"
        )

        while len(reviews) < max_reviews:
            if pages > 0:
                await asyncio.sleep(self.page_delay)

            payload = build_reviews_payload(
                work_id, min(PAGE_LIMIT, max_reviews - len(reviews)), language, after
            )
            try:
                resp = await self.client.post(
                    self.graphql_url, json=payload, headers=graphql_headers(self.api_key)
                )
            except httpx.HTTPError as e:
                error = f"error fetching reviews: {e}"
                logger.error(f"{error} (work {work_id})")
                break
            pages += 1

            if resp.status_code != 200:
                error = f"HTTP error: {resp.status_code} {resp.reason_phrase}"
                logger.error(f"{error} (work {work_id}): {resp.text[:500]}")
                break

            try:
                parsed = GraphQLResponse.model_validate_json(resp.content)
            except ValidationError as e:
                error = f"error parsing reviews response: {e}"
                logger.error(f"{error} (work {work_id})")
                break

            critical = parsed.critical_errors()
            if critical:
                kinds = sorted({e.error_type or "unknown" for e in critical})
                error = f"critical GraphQL errors: {', '.join(kinds)}"
                logger.error(f"{error} (work {work_id}): {[e.message for e in critical]}")
                break
            if parsed.errors:
                logger.debug(
                    f"{len(parsed.errors)} non-critical authorization errors (expected for public API)"
                )

            connection = parsed.connection
            edges = connection.edges if connection and connection.edges else []
            if connection is not None and connection.total_count is not None:
                total_count = connection.total_count
            if not edges:
                exhausted = True
                logger.info(
                    f"No more reviews for {work_id}. Total available: {total_count}, fetched: {len(reviews)}"
                )
                break

            added = 0
            for edge in edges:
                if len(reviews) >= max_reviews:
                    break
                review = normalize_review(edge.node, metadata, language)
                if review is None:
                    node_id = edge.node.id if edge.node else None
                    logger.warning(f"Skipped review due to missing data (ID: {node_id})")
                    continue
                reviews.append(review)
                added += 1
            logger.debug(
                f"Processed {added} reviews from page {pages}; progress {len(reviews)}/{max_reviews}"
            )

            after = connection.next_page_token
            if not after:
                exhausted = True
                break

        return ReviewFetchResult(
            reviews=reviews[:max_reviews],
            error=error,
            exhausted=exhausted,
            total_count=total_count,
            pages=pages,
        )

    async def scrape_book(self, book_url, max_reviews, language=None):
        """
        Resolve one book and harvest its reviews.

        Args:
            book_url (str): Admitted Goodreads book URL
            max_reviews (int): Cap on reviews for this book
            language (str, optional): Language code filter

        Returns:
            BookResult: Metadata plus the (possibly partial, possibly empty)
                review list

        Raises:
            MetadataError: If the book page cannot be fetched or carries no
                work identifier. Pagination failures are not raised; the
                reviews gathered before the failure are returned.
        """
        html, metadata = await self._fetch_book_page(book_url)
        work_id = extract_work_id(html)
        logger.debug(f"Found work ID {work_id} for {metadata.url}")

        result = await self.fetch_reviews(work_id, max_reviews, language, metadata)
        if result.error:
            logger.warning(
                f"Review fetch for '{metadata.title}' stopped early: {result.error} "
                f"({len(result.reviews)} reviews kept)"
            )
        else:
            logger.debug(f"Fetched {len(result.reviews)} reviews for '{metadata.title}'")
        return BookResult(metadata=metadata, reviews=result.reviews)
