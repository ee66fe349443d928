# utils/validator.py
from urllib.parse import urlparse

GOODREADS_HOST = "www.goodreads.com"
BOOK_PATH_MARKER = "/book/show/"


def is_acceptable(url):
    """
    Check whether a URL points at a Goodreads book page.

    The host must be exactly www.goodreads.com and the path must contain the
    /book/show/ segment. Anything that cannot be parsed is rejected rather
    than raising.

    Args:
        url (str): Candidate URL

    Returns:
        bool: True when the URL can be admitted as a scraping job
    """
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.netloc != GOODREADS_HOST:
        return False
    return BOOK_PATH_MARKER in parsed.path
