import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from scraper.core import scrape
from scraper.fetcher import FetchConfig, normalize_url
from scraper.models import FetchError
from scraper.refiner import refine
from .auth import Principal, require_full_access
from .cache import get_cache
from .schemas import (
    HealthResponse,
    MessageResponse,
    RecordListResponse,
    SaveRequest,
    ScrapeRequest,
    ScrapeResponse,
    StoredRecordModel,
)
from .storage import DuplicateRecordError, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 200

FETCH_CONFIG = FetchConfig.from_env()


@router.post("/scrape", response_model=ScrapeResponse, summary="Scrape a URL and preview the extracted data")
async def scrape_url(request: ScrapeRequest, user: Principal = Depends(require_full_access)) -> ScrapeResponse:
    """
    Fetches the page and returns the full extraction. Nothing is saved.

    - Accepts bare domains (`example.com`) as well as absolute URLs.
    - Checks Redis cache first; returns cached result if available.
    """
    try:
        url = normalize_url(request.url)
    except FetchError as exc:
        raise HTTPException(status_code=400, detail=exc.reason)

    # cache-aside: serve from Redis if we've scraped this URL recently
    cache = get_cache()
    cached = cache.get(url)
    if cached:
        logger.info("Cache hit for %s", url)
        return ScrapeResponse(scraped_data=cached, cached=True)

    try:
        result = await scrape(url, config=FETCH_CONFIG)
    except FetchError as exc:
        logger.error("Scrape failed for %s: %s", url, exc.reason)
        raise HTTPException(status_code=502, detail=f"Failed to scrape website: {exc.reason}")

    response_data = result.to_dict()
    cache.set(url, response_data)
    return ScrapeResponse(scraped_data=response_data, cached=False)


@router.post("/scraped", response_model=StoredRecordModel, status_code=201, summary="Refine and save scraped data")
def save_scraped_data(request: SaveRequest, user: Principal = Depends(require_full_access)) -> StoredRecordModel:
    record = refine(request.scraped_data)
    if record is None:
        raise HTTPException(status_code=400, detail="Invalid scraped data format")

    try:
        saved = get_store().create(record, owner_id=user.id)
    except DuplicateRecordError:
        raise HTTPException(status_code=409, detail="Scraped data for this URL already exists")
    return StoredRecordModel(**saved)


@router.get("/scraped", response_model=RecordListResponse, summary="List saved scraped data")
def list_scraped_data(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    url: Optional[str] = Query(None, description="case-insensitive substring of the page url"),
    user: Principal = Depends(require_full_access),
) -> RecordListResponse:
    limit = min(limit, MAX_PAGE_SIZE)
    items, total = get_store().find_many(url_filter=(url or "").strip() or None, limit=limit, offset=offset)
    return RecordListResponse(
        items=[StoredRecordModel(**item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/scraped/{record_id}", response_model=StoredRecordModel, summary="Fetch one saved record")
def get_scraped_data(record_id: str, user: Principal = Depends(require_full_access)) -> StoredRecordModel:
    saved = get_store().find_by_id(record_id.strip())
    if saved is None:
        raise HTTPException(status_code=404, detail="Scraped data not found")
    return StoredRecordModel(**saved)


@router.delete("/scraped/{record_id}", response_model=MessageResponse, summary="Delete a saved record")
def delete_scraped_data(record_id: str, user: Principal = Depends(require_full_access)) -> MessageResponse:
    if not get_store().delete_by_id(record_id.strip()):
        raise HTTPException(status_code=404, detail="Scraped data not found")
    return MessageResponse(detail="Scraped data deleted successfully")


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    cache_status = "connected" if get_cache().healthy() else "unavailable"
    return HealthResponse(status="ok", cache=cache_status)
