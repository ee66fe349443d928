import sys
import os

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

import json
import pytest
import httpx

from scraper.models import BookMetadata, Review

BOOK_URL = "https://www.goodreads.com/book/show/12345.Some_Book"
WORK_ID = "kca://work/amzn1.gr.work.v1.abcDEF"

BOOK_PAGE_HTML = """
<html>
  <body>
    <a data-testid="title">Test Book Title</a>
    <span class="ContributorLink__name" data-testid="name">Test Author</span>
    <div class="RatingStatistics__column" aria-label="4.5 out of 5 stars">4.5</div>
    <script id="__NEXT_DATA__" type="application/json">
      {"Book:kca://book/1": {"work": {"__ref": "Work:kca://work/amzn1.gr.work.v1.abcDEF"}}}
    </script>
  </body>
</html>
"""


def make_node(i, rating=4, created_at=1390843144000, text="A <b>great</b> read", name=None):
    """Build one getReviews node shaped like the live API payload."""
    return {
        "__typename": "Review",
        "id": f"kca://review/{i}",
        "creator": {
            "id": 1000 + i,
            "name": name or f"Reader {i}",
            "isAuthor": False,
            "viewerRelationshipStatus": None,
            "contributor": None,
            "__typename": "User",
        },
        "recommendFor": None,
        "createdAt": created_at,
        "updatedAt": created_at,
        "spoilerStatus": False,
        "text": text,
        "rating": rating,
        "likeCount": 0,
        "viewerHasLiked": None,
        "commentCount": 0,
    }


def make_page(start, count, next_token="", errors=None, total=1000, nodes=None):
    """
    Build a getReviews response body.

    Args:
        start (int): Index of the first node
        count (int): Number of nodes on the page
        next_token (str): pageInfo.nextPageToken ("" on the last page)
        errors (list, optional): GraphQL errors array
        total (int): totalCount reported by the server
        nodes (list, optional): Explicit node dicts, overriding start/count
    """
    if nodes is None:
        nodes = [make_node(start + i) for i in range(count)]
    return {
        "data": {
            "getReviews": {
                "totalCount": total,
                "edges": [{"node": n, "__typename": "BookReviewsEdge"} for n in nodes],
                "pageInfo": {
                    "prevPageToken": None,
                    "nextPageToken": next_token,
                    "__typename": "PageInfo",
                },
                "__typename": "BookReviewsConnection",
            }
        },
        "errors": errors,
    }


def unauthorized_error(field="viewerHasLiked"):
    return {
        "path": ["getReviews", "edges", 0, "node", field],
        "data": None,
        "errorType": "Unauthorized",
        "errorInfo": None,
        "message": f"Not Authorized to access {field} on type Review",
    }


class FakeGoodreads:
    """
    In-memory stand-in for both Goodreads endpoints.

    GET requests return `book_page` (or `book_status`); each POST pops the
    next entry from `pages`. An entry may be a dict (served as JSON with
    status 200), an httpx.Response, or an exception instance to raise.
    Every POST body is recorded in `requests`.
    """

    def __init__(self, pages=None, book_page=BOOK_PAGE_HTML, book_status=200):
        self.pages = list(pages or [])
        self.book_page = book_page
        self.book_status = book_status
        self.requests = []
        self.gets = []

    def handler(self, request):
        if request.method == "GET":
            self.gets.append(str(request.url))
            return httpx.Response(self.book_status, text=self.book_page)
        self.requests.append(json.loads(request.content))
        if not self.pages:
            return httpx.Response(200, json=make_page(0, 0))
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, httpx.Response):
            return page
        return httpx.Response(200, json=page)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def metadata():
    return BookMetadata(
        title="Test Book",
        author="Test Author",
        average_rating=4.2,
        url="https://www.goodreads.com/book/show/123",
    )


@pytest.fixture
def sample_reviews():
    return [
        Review(
            book_url="http://example.com/book1",
            book_title="Test Book 1",
            review_id="123",
            reviewer_name="John Doe",
            rating="5",
            review_text="Great book!",
            review_date="2023-01-01",
            language="en",
        ),
        Review(
            book_url="http://example.com/book2",
            book_title="Test Book 2",
            review_id="456",
            reviewer_name="Jane Doe",
            rating="",
            review_text='Good book, with "quotes",\nand a newline.',
            review_date="",
            language="fr",
        ),
    ]
