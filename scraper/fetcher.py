import asyncio
import ipaddress
import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import requests

from .models import FetchError, FetchResult

logger = logging.getLogger(__name__)

# realistic browser UA; avoids most trivial bot blocks
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_MAX_REDIRECTS = 5
MAX_CONTENT_CHARS = 5 * 1024 * 1024  # ceiling to avoid runaway pages
CHUNK_SIZE = 8 * 1024

TIMEOUT_REASON = "Request timed out. The website took too long to respond."

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_HOST_END_RE = re.compile(r"[/?#]")


@dataclass(frozen=True)
class FetchConfig:
    timeout_seconds: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
    accept_language: str = "en-US,en;q=0.9"
    max_content_chars: int = MAX_CONTENT_CHARS

    @classmethod
    def from_env(cls) -> "FetchConfig":
        return cls(
            timeout_seconds=float(os.getenv("SCRAPER_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT))),
            user_agent=os.getenv("SCRAPER_USER_AGENT", USER_AGENT),
            max_redirects=int(os.getenv("SCRAPER_MAX_REDIRECTS", str(DEFAULT_MAX_REDIRECTS))),
            max_content_chars=int(os.getenv("SCRAPER_MAX_CONTENT_CHARS", str(MAX_CONTENT_CHARS))),
        )

    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
        }


def _bare_host(value: str) -> str:
    """Host part of a scheme-less string, e.g. '127.0.0.1' from '127.0.0.1:8000/x'."""
    authority = _HOST_END_RE.split(value, maxsplit=1)[0]
    if authority.startswith("["):
        return authority[1:].split("]", 1)[0]
    return authority.rsplit(":", 1)[0] if authority.count(":") == 1 else authority


def _is_local_host(host: str) -> bool:
    if host.lower() == "localhost":
        return True
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    return addr.is_loopback or addr.is_link_local or addr.is_unspecified


def normalize_url(raw_input: str) -> str:
    """
    Turn user input into an absolute http(s) URL.

    Idempotent: a string that already carries an http/https scheme is returned as-is.
    """
    if not raw_input or not isinstance(raw_input, str) or not raw_input.strip():
        raise FetchError("Invalid URL provided")

    candidate = raw_input.strip()

    if _SCHEME_RE.match(candidate):
        normalized = candidate
    elif candidate.startswith("//"):
        normalized = f"https:{candidate}"
    elif _is_local_host(_bare_host(candidate)):
        normalized = f"http://{candidate}"
    else:
        normalized = f"https://{candidate}"

    try:
        parsed = urlparse(normalized)
    except ValueError as exc:
        raise FetchError(f"Invalid URL format: {exc}") from exc
    if not parsed.netloc:
        raise FetchError("Invalid URL format")
    return normalized


def _describe(exc: requests.RequestException) -> str:
    """Readable reason for a transport failure; always keeps the underlying message."""
    if isinstance(exc, requests.TooManyRedirects):
        summary = "Too many redirects."
    elif isinstance(exc, requests.Timeout):
        summary = TIMEOUT_REASON
    elif isinstance(exc, requests.HTTPError) and exc.response is not None:
        summary = f"HTTP {exc.response.status_code}: {exc.response.reason}"
    elif isinstance(exc, requests.ConnectionError):
        message = str(exc)
        if "Name or service not known" in message or "getaddrinfo failed" in message or "NameResolutionError" in message:
            summary = "Domain not found. Please check the URL."
        elif "Connection refused" in message:
            summary = "Connection refused. The website may be down or unreachable."
        else:
            summary = "Could not connect to the website."
    else:
        summary = "Request failed."
    return f"{summary} ({exc})"


def _decode(body: bytes, encoding: Optional[str]) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        logger.debug("Unknown charset %r, decoding as utf-8", encoding)
        return body.decode("utf-8", errors="replace")


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise FetchError(TIMEOUT_REASON)


def _read_body(response: requests.Response, deadline: float, max_bytes: int) -> bytes:
    """Read the streamed body up to `max_bytes`, checking `deadline` between chunks."""
    chunks = []
    size = 0
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        _check_deadline(deadline)
        chunks.append(chunk)
        size += len(chunk)
        if size >= max_bytes:
            logger.debug("Body of %s exceeds %d bytes, truncating", response.url, max_bytes)
            break
    return b"".join(chunks)[:max_bytes]


def _sync_fetch(url: str, config: FetchConfig) -> FetchResult:
    """
    Synchronous fetch using requests, run inside a thread executor.

    `timeout_seconds` bounds each socket read and, through a deadline checked
    between chunks, the request as a whole (redirects and body included).
    """
    deadline = time.monotonic() + config.timeout_seconds
    # a character is at most 4 bytes in utf-8
    max_bytes = config.max_content_chars * 4

    with requests.Session() as session:
        session.max_redirects = config.max_redirects
        response = None
        try:
            response = session.get(
                url,
                headers=config.headers(),
                timeout=config.timeout_seconds,
                allow_redirects=True,
                stream=True,
            )
            response.raise_for_status()
            if not 200 <= response.status_code < 400:
                raise FetchError(f"HTTP {response.status_code}: {response.reason}")
            _check_deadline(deadline)
            body = _read_body(response, deadline, max_bytes)
        except requests.RequestException as exc:
            raise FetchError(_describe(exc)) from exc
        finally:
            if response is not None:
                response.close()

    # requests falls back to ISO-8859-1 for text/* without a charset, like response.text
    html = _decode(body, response.encoding)[:config.max_content_chars]
    if not html.strip():
        raise FetchError("Empty response received from the website")

    return FetchResult(
        final_url=response.url or url,
        html=html,
        fetched_at=datetime.now(timezone.utc).isoformat(),
        status_code=response.status_code,
    )


async def fetch_page(raw_input: str, config: Optional[FetchConfig] = None) -> FetchResult:
    """
    Normalize `raw_input` and fetch it with a single bounded GET.

    Uses requests in a thread executor to stay non-blocking inside the async
    event loop. Raises FetchError on any failure; no partial HTML is returned.
    """
    config = config or FetchConfig()
    url = normalize_url(raw_input)

    loop = asyncio.get_running_loop()
    try:
        # releases the caller at the deadline even if a read is still blocked
        result = await asyncio.wait_for(
            loop.run_in_executor(None, _sync_fetch, url, config),
            timeout=config.timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise FetchError(TIMEOUT_REASON) from exc
    logger.info("Fetched %s -> %s (%d chars)", url, result.final_url, len(result.html))
    return result
