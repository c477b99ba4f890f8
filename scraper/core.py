import logging
from typing import Optional

from .extractor import extract
from .fetcher import FetchConfig, fetch_page
from .models import ExtractionResult

logger = logging.getLogger(__name__)


async def scrape(raw_input: str, config: Optional[FetchConfig] = None) -> ExtractionResult:
    """
    Top-level entry point. Fetches a single URL and extracts its full summary.

    Raises FetchError when the page cannot be retrieved; extraction itself never
    fails, it only degrades individual fields.
    """
    fetched = await fetch_page(raw_input, config=config)
    result = extract(fetched.html, fetched.final_url, scraped_at=fetched.fetched_at)
    logger.info(
        "Scraped %s: %d links, %d images, %d chars of text",
        fetched.final_url,
        len(result.links),
        len(result.images),
        len(result.text),
    )
    return result
