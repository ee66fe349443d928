# scraper/query.py
import os

from dotenv import load_dotenv

load_dotenv()

GRAPHQL_URL = os.getenv(
    "GOODREADS_GRAPHQL_URL",
    "https://kxbwmqov6jgg3daaamb744ycu4.appsync-api.us-east-1.amazonaws.com/graphql",
)
PAGE_LIMIT = 100  # server-side maximum per getReviews call

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

REVIEWS_QUERY = """
query getReviews($filters: BookReviewsFilterInput!, $pagination: PaginationInput) {
  getReviews(filters: $filters, pagination: $pagination) {
    ...BookReviewsFragment
    __typename
  }
}

fragment BookReviewsFragment on BookReviewsConnection {
  totalCount
  edges {
    node {
      ...ReviewCardFragment
      __typename
    }
    __typename
  }
  pageInfo {
    prevPageToken
    nextPageToken
    __typename
  }
  __typename
}

fragment ReviewCardFragment on Review {
  __typename
  id
  creator {
    ...ReviewerProfileFragment
    __typename
  }
  recommendFor
  updatedAt
  createdAt
  spoilerStatus
  lastRevisionAt
  text
  rating
  shelving {
    shelf {
      name
      displayName
      editable
      default
      actionType
      sortOrder
      webUrl
      __typename
    }
    taggings {
      tag {
        name
        webUrl
        __typename
      }
      __typename
    }
    webUrl
    __typename
  }
  likeCount
  viewerHasLiked
  commentCount
}

fragment ReviewerProfileFragment on User {
  id: legacyId
  imageUrlSquare
  isAuthor
  ...SocialUserFragment
  textReviewsCount
  viewerRelationshipStatus {
    isBlockedByViewer
    __typename
  }
  name
  webUrl
  contributor {
    id
    works {
      totalCount
      __typename
    }
    __typename
  }
  __typename
}

fragment SocialUserFragment on User {
  viewerRelationshipStatus {
    isFollowing
    isFriend
    __typename
  }
  followersCount
  __typename
}
"""


def build_reviews_payload(work_id, limit, language=None, after=None):
    """
    Build the JSON body for one getReviews page request.

    Args:
        work_id (str): Work identifier (kca://work/...)
        limit (int): Page size for this request
        language (str, optional): Language code filter; omitted when empty
        after (str, optional): Continuation token from the previous page;
            omitted on the first request

    Returns:
        dict: {operationName, variables: {filters, pagination}, query}
    """
    filters = {"resourceType": "WORK", "resourceId": work_id}
    if language:
        filters["languageCode"] = language
    pagination = {"limit": limit}
    if after:
        pagination["after"] = after
    return {
        "operationName": "getReviews",
        "variables": {"filters": filters, "pagination": pagination},
        "query": REVIEWS_QUERY,
    }


def graphql_headers(api_key):
    """Request headers for the AppSync endpoint."""
    return {
        "accept": "*/*",
        "accept-language": "en-US,en;q=0.9",
        "content-type": "application/json",
        "x-api-key": api_key,
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "cross-site",
    }
