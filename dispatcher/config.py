# dispatcher/config.py
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

API_KEY = os.getenv("GOODREADS_API_KEY", "")
CONCURRENCY = int(os.getenv("SCRAPER_CONCURRENCY", "5"))
MAX_REVIEWS = int(os.getenv("SCRAPER_MAX_REVIEWS", "100"))
LANGUAGE = os.getenv("SCRAPER_LANGUAGE", "id")
PAGE_DELAY = float(os.getenv("SCRAPER_PAGE_DELAY", "1.0"))
REQUEST_TIMEOUT = float(os.getenv("SCRAPER_TIMEOUT", "30"))
RESULTS_DIR = os.getenv("SCRAPER_RESULTS_DIR", "results")


class ConfigError(Exception):
    pass


def default_output_path(now=None):
    """results/goodreads_reviews_<YYYYmmdd_HHMMSS>.csv"""
    now = now or datetime.now()
    return str(Path(RESULTS_DIR) / f"goodreads_reviews_{now.strftime('%Y%m%d_%H%M%S')}.csv")


class Settings(BaseModel):
    api_key: str = Field(..., min_length=1)
    concurrency: int = Field(CONCURRENCY, ge=1)
    max_reviews: int = Field(MAX_REVIEWS, ge=1)
    language: str = LANGUAGE
    output_file: str = Field(default_factory=default_output_path)
    input_url: Optional[str] = None
    input_file: Optional[str] = None
    page_delay: float = Field(PAGE_DELAY, ge=0)
    timeout: float = Field(REQUEST_TIMEOUT, gt=0)
    verbose: bool = False

    @field_validator("api_key")
    @classmethod
    def _reject_placeholder(cls, v):
        v = v.strip()
        if not v or v == "xxxxxx":
            raise ValueError("API key is required. Use -api or GOODREADS_API_KEY")
        return v


def load_urls_from_file(filepath):
    """
    Read URLs from a text file, one per line.

    Lines are trimmed; empty lines and lines starting with '#' are skipped.
    Order is preserved.

    Args:
        filepath (str): Path of the URL list

    Returns:
        list[str]: URLs in file order

    Raises:
        ConfigError: If the file does not exist or cannot be read
    """
    path = Path(filepath)
    try:
        with path.open(encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError as e:
        raise ConfigError(f"file '{filepath}' not found") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"file '{filepath}' is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigError(f"error reading file '{filepath}': {e}") from e

    urls = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def collect_urls(settings):
    """
    Resolve the input URLs from a Settings object.

    A single positional URL takes precedence over a URL file.

    Raises:
        ConfigError: If neither source is given or the file is missing
    """
    if settings.input_url:
        return [settings.input_url]
    if settings.input_file:
        return load_urls_from_file(settings.input_file)
    raise ConfigError(
        "You must provide either a single URL as an argument or an input file with -f"
    )
