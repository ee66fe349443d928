# scraper/utils.py
import re
from datetime import datetime, timezone

TAG_RE = re.compile(r"<[^>]*>")
DECIMAL_RE = re.compile(r"(\d+\.?\d*)")


def strip_tags(text):
    """
    Remove markup tags from review text.

    A single non-recursive pass deletes every literal <...> span. Entities
    such as &amp; are left as they are. Running it on already stripped text
    returns the text unchanged.
    """
    if not text:
        return ""
    return TAG_RE.sub("", text)


def epoch_ms_to_date(value):
    """Convert an epoch timestamp in milliseconds to a UTC YYYY-MM-DD string."""
    if not value or value <= 0:
        return ""
    try:
        return datetime.fromtimestamp(int(value // 1000), tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        # out of the platform's representable range
        return ""


def parse_decimal(text):
    """Return the first decimal number found in text, or 0.0."""
    if not text:
        return 0.0
    m = DECIMAL_RE.search(text)
    if not m:
        return 0.0
    try:
        return float(m.group(1))
    except ValueError:
        return 0.0
