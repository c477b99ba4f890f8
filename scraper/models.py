from dataclasses import dataclass, field
from typing import Any, Optional

HEADING_LEVELS = ("h1", "h2", "h3", "h4", "h5", "h6")


class FetchError(Exception):
    """Raised when a page cannot be retrieved. `reason` carries the transport message."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class FetchResult:
    final_url: str                      # may differ from the requested URL after redirects
    html: str
    fetched_at: str                     # ISO-8601, UTC
    status_code: int = 200


@dataclass(frozen=True)
class Link:
    text: str
    href: str


@dataclass(frozen=True)
class Image:
    alt: str
    src: str


def _empty_headings() -> dict[str, list[str]]:
    return {level: [] for level in HEADING_LEVELS}


@dataclass
class ExtractionResult:
    url: str
    title: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    headings: dict[str, list[str]] = field(default_factory=_empty_headings)
    links: list[Link] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    text: str = ""

    # og:*, twitter:*, author and page-level extras (language, charset, ...)
    metadata: dict[str, str] = field(default_factory=dict)
    structured_data: list[Any] = field(default_factory=list)
    scraped_at: str = ""

    # derived
    domain_info: dict[str, str] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "keywords": list(self.keywords),
            "headings": {level: list(items) for level, items in self.headings.items()},
            "links": [{"text": link.text, "href": link.href} for link in self.links],
            "images": [{"alt": image.alt, "src": image.src} for image in self.images],
            "text": self.text,
            "metadata": dict(self.metadata),
            "structured_data": list(self.structured_data),
            "scraped_at": self.scraped_at,
            "domain_info": dict(self.domain_info),
            "stats": dict(self.stats),
        }


@dataclass(frozen=True)
class RecordMetadata:
    author: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None


@dataclass(frozen=True)
class RefinedRecord:
    url: str
    title: str
    description: str
    keywords: tuple[str, ...]
    main_headings: dict[str, tuple[str, ...]]   # only h1 and h2
    important_links: tuple[Link, ...]
    image_count: int                            # counts every extracted image, not just main_images
    main_images: tuple[Image, ...]
    text_preview: str
    metadata: RecordMetadata
    structured_data_count: int
    scraped_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "keywords": list(self.keywords),
            "main_headings": {level: list(items) for level, items in self.main_headings.items()},
            "important_links": [{"text": link.text, "href": link.href} for link in self.important_links],
            "image_count": self.image_count,
            "main_images": [{"alt": image.alt, "src": image.src} for image in self.main_images],
            "text_preview": self.text_preview,
            "metadata": {
                "author": self.metadata.author,
                "og_title": self.metadata.og_title,
                "og_description": self.metadata.og_description,
                "og_image": self.metadata.og_image,
            },
            "structured_data_count": self.structured_data_count,
            "scraped_at": self.scraped_at,
        }
