import logging

import redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Web Page Scraper",
    description=(
        "Given any URL, returns a structured summary of the page (title, description, "
        "headings, links, images, text, Open Graph / Twitter metadata, JSON-LD) and "
        "saves a bounded, refined record of it on request."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# middleware stack: outermost runs first on request, last on response
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(redis.ConnectionError)
async def store_unavailable_handler(request: Request, exc: redis.ConnectionError):
    logging.getLogger(__name__).error("Record store unreachable: %s", exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Record store is unavailable.", "code": "store_unavailable"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger(__name__).error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred.", "code": "internal_error"},
    )


app.include_router(router)
