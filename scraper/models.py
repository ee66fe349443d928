# scraper/models.py
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

UNAUTHORIZED_ERROR = "Unauthorized"

CSV_COLUMNS = [
    "BookURL",
    "BookTitle",
    "ReviewID",
    "ReviewerName",
    "Rating",
    "ReviewText",
    "ReviewDate",
    "Language",
]


class BookMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = "Unknown Title"
    author: str = "Unknown Author"
    average_rating: float = 0.0
    url: str = Field(..., description="Canonical book URL")


class Review(BaseModel):
    model_config = ConfigDict(frozen=True)

    book_url: str
    book_title: str
    review_id: str
    reviewer_name: str = ""
    rating: str = ""  # "" when the reviewer left no star rating
    review_text: str = ""
    review_date: str = ""  # YYYY-MM-DD (UTC) or ""
    language: str = ""

    def to_row(self):
        """Map the review onto the CSV column names, in column order."""
        return dict(
            zip(
                CSV_COLUMNS,
                [
                    self.book_url,
                    self.book_title,
                    self.review_id,
                    self.reviewer_name,
                    self.rating,
                    self.review_text,
                    self.review_date,
                    self.language,
                ],
            )
        )


class BookResult(BaseModel):
    metadata: BookMetadata
    reviews: List[Review] = Field(default_factory=list)


class ReviewFetchResult(BaseModel):
    """
    Outcome of one pagination run.

    `reviews` always holds everything accumulated before the loop stopped.
    `error` is None when the loop ended on the cap or on exhaustion, and a
    description of the failing page otherwise.
    """

    reviews: List[Review] = Field(default_factory=list)
    error: Optional[str] = None
    exhausted: bool = False
    total_count: Optional[int] = None
    pages: int = 0


# GraphQL wire models. The remote payload is deeply nested and partially
# nullable; every object below may be missing or null and unknown keys are
# ignored, so callers only ever deal with None instead of probing dicts.


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ContributorWorks(_Wire):
    total_count: Optional[int] = Field(None, alias="totalCount")


class Contributor(_Wire):
    id: Optional[str] = None
    works: Optional[ContributorWorks] = None


class ReviewCreator(_Wire):
    id: Optional[int] = None
    name: Optional[str] = None
    web_url: Optional[str] = Field(None, alias="webUrl")
    is_author: Optional[bool] = Field(None, alias="isAuthor")
    followers_count: Optional[int] = Field(None, alias="followersCount")
    text_reviews_count: Optional[int] = Field(None, alias="textReviewsCount")
    contributor: Optional[Contributor] = None
    viewer_relationship_status: Optional[dict] = Field(
        None, alias="viewerRelationshipStatus"
    )


class ReviewNode(_Wire):
    id: Optional[str] = None
    text: Optional[str] = None
    rating: Optional[int] = None
    created_at: Optional[float] = Field(None, alias="createdAt")
    updated_at: Optional[float] = Field(None, alias="updatedAt")
    spoiler_status: Optional[bool] = Field(None, alias="spoilerStatus")
    like_count: Optional[int] = Field(None, alias="likeCount")
    comment_count: Optional[int] = Field(None, alias="commentCount")
    creator: Optional[ReviewCreator] = None
    recommend_for: Optional[Any] = Field(None, alias="recommendFor")
    viewer_has_liked: Optional[bool] = Field(None, alias="viewerHasLiked")


class ReviewEdge(_Wire):
    node: Optional[ReviewNode] = None


class PageInfo(_Wire):
    prev_page_token: Optional[str] = Field(None, alias="prevPageToken")
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class ReviewsConnection(_Wire):
    total_count: Optional[int] = Field(None, alias="totalCount")
    edges: Optional[List[ReviewEdge]] = None
    page_info: Optional[PageInfo] = Field(None, alias="pageInfo")

    @property
    def next_page_token(self):
        if self.page_info is None:
            return ""
        return self.page_info.next_page_token or ""


class ReviewsData(_Wire):
    get_reviews: Optional[ReviewsConnection] = Field(None, alias="getReviews")


class GraphQLError(_Wire):
    error_type: Optional[str] = Field(None, alias="errorType")
    message: Optional[str] = None
    path: Optional[List[Any]] = None


class GraphQLResponse(_Wire):
    data: Optional[ReviewsData] = None
    errors: Optional[List[GraphQLError]] = None

    @property
    def connection(self):
        if self.data is None:
            return None
        return self.data.get_reviews

    def critical_errors(self):
        """Errors other than field-level authorization failures."""
        return [e for e in self.errors or [] if e.error_type != UNAUTHORIZED_ERROR]
