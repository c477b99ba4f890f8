import json
import logging
import re
from datetime import datetime, timezone
from itertools import islice
from typing import Any, Callable, Iterator, Optional
from urllib.parse import urljoin, urlparse

from .models import HEADING_LEVELS, ExtractionResult, Image, Link
from .parser import DocumentTree, clean_text, parse_html

logger = logging.getLogger(__name__)

MAX_LINKS = 100
MAX_IMAGES = 50
MAX_TEXT_CHARS = 10000

# subtrees that never count as visible page text
NON_CONTENT_TAGS = ("script", "style", "nav", "footer", "header", "aside")

_CHARSET_RE = re.compile(r"charset=([^;]+)", re.IGNORECASE)


def _meta_content(tree: DocumentTree, selector: str) -> str:
    """Content of the first tag matching `selector`, stripped; "" when absent."""
    for node in tree.select_all(selector):
        return (tree.attr(node, "content") or "").strip()
    return ""


def _resolve(base_url: str, reference: str) -> Optional[str]:
    """Absolute URL for `reference`, or None when it cannot be resolved."""
    try:
        absolute = urljoin(base_url, reference)
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    return absolute


# --- facets ---

def extract_title(tree: DocumentTree) -> str:
    for node in tree.select_all("title"):
        title = tree.text(node).strip()
        if title:
            return title
        break
    return _meta_content(tree, 'meta[property="og:title"]')


def extract_description(tree: DocumentTree) -> str:
    return (
        _meta_content(tree, 'meta[name="description"]')
        or _meta_content(tree, 'meta[property="og:description"]')
    )


def extract_keywords(tree: DocumentTree) -> list[str]:
    raw = _meta_content(tree, 'meta[name="keywords"]')
    return [k.strip() for k in raw.split(",") if k.strip()]


def extract_headings(tree: DocumentTree) -> dict[str, list[str]]:
    headings: dict[str, list[str]] = {}
    for level in HEADING_LEVELS:
        texts = (tree.text(node).strip() for node in tree.select_all(level))
        headings[level] = [t for t in texts if t]
    return headings


def _iter_links(tree: DocumentTree, base_url: str) -> Iterator[Link]:
    for node in tree.select_all("a[href]"):
        href = (tree.attr(node, "href") or "").strip()
        if not href:
            continue
        absolute = _resolve(base_url, href)
        if absolute is None:
            logger.debug("Skipping unresolvable href %r", href)
            continue
        yield Link(text=tree.text(node).strip() or href, href=absolute)


def extract_links(tree: DocumentTree, base_url: str) -> list[Link]:
    return list(islice(_iter_links(tree, base_url), MAX_LINKS))


def _iter_images(tree: DocumentTree, base_url: str) -> Iterator[Image]:
    for node in tree.select_all("img[src]"):
        src = (tree.attr(node, "src") or "").strip()
        if not src:
            continue
        absolute = _resolve(base_url, src)
        if absolute is None:
            logger.debug("Skipping unresolvable img src %r", src)
            continue
        yield Image(alt=tree.attr(node, "alt") or "", src=absolute)


def extract_images(tree: DocumentTree, base_url: str) -> list[Image]:
    return list(islice(_iter_images(tree, base_url), MAX_IMAGES))


def extract_main_text(tree: DocumentTree) -> str:
    # prune a copy so the other facets keep seeing the full document
    working = tree.without(NON_CONTENT_TAGS)
    return clean_text(working.text(working.root()))[:MAX_TEXT_CHARS]


def extract_page_metadata(tree: DocumentTree) -> dict[str, str]:
    metadata: dict[str, str] = {}

    for node in tree.select_all("html"):
        lang = tree.attr(node, "lang") or tree.attr(node, "xml:lang") or ""
        if lang:
            metadata["language"] = lang
        break

    charset = ""
    for node in tree.select_all("meta[charset]"):
        charset = tree.attr(node, "charset") or ""
        break
    if not charset:
        content_type = _meta_content(tree, 'meta[http-equiv="Content-Type"]')
        match = _CHARSET_RE.search(content_type)
        charset = match.group(1).strip() if match else ""
    if charset:
        metadata["charset"] = charset

    for key, selector in (
        ("viewport", 'meta[name="viewport"]'),
        ("robots", 'meta[name="robots"]'),
        ("generator", 'meta[name="generator"]'),
        ("theme_color", 'meta[name="theme-color"]'),
    ):
        value = _meta_content(tree, selector)
        if value:
            metadata[key] = value

    for node in tree.select_all('link[rel~="canonical"]'):
        href = (tree.attr(node, "href") or "").strip()
        if href:
            metadata["canonical"] = href
        break

    for node in tree.select_all('meta[property^="og:"]'):
        prop, content = tree.attr(node, "property"), tree.attr(node, "content")
        if prop and content:
            metadata[prop] = content

    for node in tree.select_all('meta[name^="twitter:"]'):
        name, content = tree.attr(node, "name"), tree.attr(node, "content")
        if name and content:
            metadata[name] = content

    author = (
        _meta_content(tree, 'meta[name="author"]')
        or _meta_content(tree, 'meta[property="article:author"]')
    )
    if author:
        metadata["author"] = author

    return metadata


def _reject_constant(name: str) -> Any:
    # json.loads accepts NaN and Infinity, which are not JSON
    raise ValueError(f"non-standard JSON constant {name}")


def extract_structured_data(tree: DocumentTree) -> list[Any]:
    blocks = []
    for node in tree.select_all('script[type="application/ld+json"]'):
        raw = tree.text(node)
        if not raw.strip():
            continue
        try:
            blocks.append(json.loads(raw, parse_constant=_reject_constant))
        except (ValueError, RecursionError) as exc:
            logger.debug("Skipping invalid JSON-LD block: %s", exc)
    return blocks


def describe_domain(url: str) -> dict[str, str]:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return {}
    return {
        "domain": parsed.hostname or "",
        "protocol": parsed.scheme,
        "path": parsed.path or "/",
        "host": parsed.netloc,
        "origin": f"{parsed.scheme}://{parsed.netloc}",
    }


def summarize(result: ExtractionResult) -> dict[str, Any]:
    metadata = result.metadata
    return {
        "total_headings": sum(len(items) for items in result.headings.values()),
        "total_links": len(result.links),
        "total_images": len(result.images),
        "total_keywords": len(result.keywords),
        "text_length": len(result.text),
        "has_title": bool(result.title),
        "has_description": bool(result.description),
        "has_keywords": bool(result.keywords),
        "has_open_graph": any(key.startswith("og:") for key in metadata),
        "has_twitter_card": any(key.startswith("twitter:") for key in metadata),
        "has_structured_data": bool(result.structured_data),
        "has_canonical": "canonical" in metadata,
        "has_robots": "robots" in metadata,
        "has_language": "language" in metadata,
        "has_charset": "charset" in metadata,
        "has_viewport": "viewport" in metadata,
    }


def _isolated(name: str, facet: Callable[..., Any], default: Callable[[], Any], *args: Any) -> Any:
    """Run one facet; a failure only costs that facet, which falls back to its default."""
    try:
        return facet(*args)
    except Exception as exc:
        logger.warning("Facet %r degraded to default: %s", name, exc)
        return default()


def extract(html: str, final_url: str, scraped_at: Optional[str] = None) -> ExtractionResult:
    """
    Pull every facet out of `html`. Never raises: malformed or hostile markup
    degrades individual fields to their empty defaults.
    """
    tree = parse_html(html)

    result = ExtractionResult(
        url=final_url,
        title=_isolated("title", extract_title, str, tree),
        description=_isolated("description", extract_description, str, tree),
        keywords=_isolated("keywords", extract_keywords, list, tree),
        headings=_isolated("headings", extract_headings, lambda: {level: [] for level in HEADING_LEVELS}, tree),
        links=_isolated("links", extract_links, list, tree, final_url),
        images=_isolated("images", extract_images, list, tree, final_url),
        text=_isolated("text", extract_main_text, str, tree),
        metadata=_isolated("metadata", extract_page_metadata, dict, tree),
        structured_data=_isolated("structured_data", extract_structured_data, list, tree),
        scraped_at=scraped_at or datetime.now(timezone.utc).isoformat(),
        domain_info=_isolated("domain_info", describe_domain, dict, final_url),
    )
    result.stats = _isolated("stats", summarize, dict, result)
    return result
