from .core import scrape
from .extractor import extract
from .fetcher import FetchConfig, fetch_page, normalize_url
from .models import ExtractionResult, FetchError, FetchResult, RefinedRecord
from .refiner import refine

__all__ = [
    "scrape",
    "extract",
    "refine",
    "fetch_page",
    "normalize_url",
    "FetchConfig",
    "FetchError",
    "FetchResult",
    "ExtractionResult",
    "RefinedRecord",
]
