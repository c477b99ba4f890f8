import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from .models import ExtractionResult, Image, Link, RecordMetadata, RefinedRecord

logger = logging.getLogger(__name__)

# storage limits, applied on top of the extraction-time caps
MAX_H1 = 5
MAX_H2 = 10
MAX_LINKS = 20
MAX_LINK_TEXT = 100
MAX_IMAGES = 5
MAX_IMAGE_ALT = 200
MAX_TEXT_PREVIEW = 2000


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _strings(value: Any) -> tuple[str, ...]:
    return tuple(v for v in _as_list(value) if isinstance(v, str))


def _field(item: Any, name: str) -> str:
    """Read `name` from a Link/Image or from its plain-dict form."""
    if isinstance(item, Mapping):
        return _as_str(item.get(name))
    return _as_str(getattr(item, name, None))


def _optional(metadata: Mapping, key: str) -> Optional[str]:
    value = metadata.get(key)
    return value if isinstance(value, str) and value else None


def refine(extraction: Union[ExtractionResult, Mapping, None]) -> Optional[RefinedRecord]:
    """
    Project a full extraction onto the bounded record that gets persisted.

    Accepts an ExtractionResult or its dict form (as posted back by API clients).
    Returns None, never raises, when the input has no usable `url`; callers
    should treat that as a client error. Pure: the same input always yields an
    equal record.
    """
    if isinstance(extraction, ExtractionResult):
        data: Mapping = extraction.to_dict()
    elif isinstance(extraction, Mapping):
        data = extraction
    else:
        logger.debug("Refusing to refine %s", type(extraction).__name__)
        return None

    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        logger.debug("Refusing to refine extraction without a url")
        return None

    headings = data.get("headings")
    headings = headings if isinstance(headings, Mapping) else {}
    images = _as_list(data.get("images"))
    metadata = data.get("metadata")
    metadata = metadata if isinstance(metadata, Mapping) else {}
    scraped_at = data.get("scraped_at")

    return RefinedRecord(
        url=url,
        title=_as_str(data.get("title")),
        description=_as_str(data.get("description")),
        keywords=_strings(data.get("keywords")),
        main_headings={
            "h1": _strings(headings.get("h1"))[:MAX_H1],
            "h2": _strings(headings.get("h2"))[:MAX_H2],
        },
        important_links=tuple(
            Link(text=_field(link, "text")[:MAX_LINK_TEXT], href=_field(link, "href"))
            for link in _as_list(data.get("links"))[:MAX_LINKS]
        ),
        image_count=len(images),
        main_images=tuple(
            Image(alt=_field(image, "alt")[:MAX_IMAGE_ALT], src=_field(image, "src"))
            for image in images[:MAX_IMAGES]
        ),
        text_preview=_as_str(data.get("text"))[:MAX_TEXT_PREVIEW],
        metadata=RecordMetadata(
            author=_optional(metadata, "author"),
            og_title=_optional(metadata, "og:title"),
            og_description=_optional(metadata, "og:description"),
            og_image=_optional(metadata, "og:image"),
        ),
        structured_data_count=len(_as_list(data.get("structured_data"))),
        scraped_at=scraped_at if isinstance(scraped_at, str) and scraped_at else None,
    )
