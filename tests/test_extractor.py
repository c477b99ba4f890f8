import pytest
from unittest.mock import patch

from scraper.extractor import MAX_TEXT_CHARS, describe_domain, extract, extract_links
from scraper.models import HEADING_LEVELS, Image, Link
from scraper.parser import parse_html


BASE_URL = "https://example.com/blog/post"

SAMPLE_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>
        Cuisinart CPT-122 Compact 2-Slice Toaster Review
    </title>
    <meta name="description" content="A detailed review of the Cuisinart compact toaster.">
    <meta name="keywords" content="toaster, cuisinart, , kitchen appliance,toaster">
    <meta name="author" content="Jane Doe">
    <meta name="viewport" content="width=device-width">
    <meta name="robots" content="index,follow">
    <meta property="og:title" content="Cuisinart Toaster Review">
    <meta property="og:description" content="Compact 2-slice toaster for small kitchens">
    <meta property="og:image" content="https://example.com/toaster.jpg">
    <meta name="twitter:card" content="summary">
    <meta name="twitter:site" content="">
    <link rel="canonical" href="https://example.com/toaster-review">
    <script type="application/ld+json">{"@context": "https://schema.org", "@type": "Review"}</script>
    <script type="application/ld+json">{"@type": "Product", broken json</script>
    <style>.hero { color: red; }</style>
</head>
<body>
    <header>Site header</header>
    <nav><a href="/home">Home</a></nav>
    <h1>Cuisinart CPT-122 Toaster</h1>
    <h2>Features</h2>
    <h2>   </h2>
    <h2>Price and Value</h2>
    <h3>Bagel setting</h3>
    <p>The Cuisinart CPT-122 is a compact
       2-slice toaster ideal for small kitchens.</p>
    <a href="../reviews/toasters">More toaster reviews</a>
    <a href="https://other.example.org/page"></a>
    <a href="http://[::1">broken</a>
    <a>no href</a>
    <img src="/img/toaster.png" alt="The toaster">
    <img src="//cdn.example.com/side.jpg">
    <img alt="no src">
    <aside>Related products</aside>
    <script>var tracking = "should not appear";</script>
    <footer>Footer content here</footer>
</body>
</html>
"""


@pytest.fixture(scope="module")
def result():
    return extract(SAMPLE_HTML, BASE_URL, scraped_at="2024-05-01T12:00:00+00:00")


def test_url_and_timestamp(result):
    assert result.url == BASE_URL
    assert result.scraped_at == "2024-05-01T12:00:00+00:00"


def test_timestamp_defaults_to_now():
    assert extract("<p>hi</p>", BASE_URL).scraped_at


def test_title_is_trimmed(result):
    assert result.title == "Cuisinart CPT-122 Compact 2-Slice Toaster Review"


def test_title_keeps_inner_whitespace():
    assert extract("<title>  Tents\n  and Tarps </title>", BASE_URL).title == "Tents\n  and Tarps"


def test_title_falls_back_to_og_title():
    html = '<head><meta property="og:title" content="OG Title"></head>'
    assert extract(html, BASE_URL).title == "OG Title"


def test_description(result):
    assert result.description == "A detailed review of the Cuisinart compact toaster."


def test_description_falls_back_to_og_description():
    html = '<head><meta property="og:description" content="From OG"></head>'
    assert extract(html, BASE_URL).description == "From OG"


def test_keywords_keep_order_and_duplicates(result):
    assert result.keywords == ["toaster", "cuisinart", "kitchen appliance", "toaster"]


def test_headings_grouped_by_level(result):
    assert result.headings["h1"] == ["Cuisinart CPT-122 Toaster"]
    assert result.headings["h2"] == ["Features", "Price and Value"]
    assert result.headings["h3"] == ["Bagel setting"]
    assert result.headings["h6"] == []
    assert set(result.headings) == set(HEADING_LEVELS)


def test_links_resolved_and_malformed_skipped(result):
    assert result.links == [
        Link(text="Home", href="https://example.com/home"),
        Link(text="More toaster reviews", href="https://example.com/reviews/toasters"),
        # empty anchor text falls back to the href
        Link(text="https://other.example.org/page", href="https://other.example.org/page"),
    ]


def test_images_resolved_with_default_alt(result):
    assert result.images == [
        Image(alt="The toaster", src="https://example.com/img/toaster.png"),
        Image(alt="", src="https://cdn.example.com/side.jpg"),
    ]


def test_main_text_excludes_chrome_and_code(result):
    text = result.text
    assert "compact 2-slice toaster ideal for small kitchens" in text
    for noise in ("Site header", "Footer content", "Related products", "should not appear", "color: red", "Home"):
        assert noise not in text
    assert "  " not in text
    assert text == text.strip()


def test_main_text_does_not_mutate_tree_for_other_facets(result):
    # nav link is gone from text but still extracted as a link
    assert "Home" not in result.text
    assert result.links[0].text == "Home"


def test_main_text_joins_inline_text_without_separator():
    html = "<body><p>foo</p><p>bar</p><span>Hel</span><span>lo</span> world</body>"
    assert extract(html, BASE_URL).text == "foobarHello world"


def test_metadata_collects_og_twitter_and_author(result):
    metadata = result.metadata
    assert metadata["og:title"] == "Cuisinart Toaster Review"
    assert metadata["og:image"] == "https://example.com/toaster.jpg"
    assert metadata["twitter:card"] == "summary"
    assert "twitter:site" not in metadata  # empty content is ignored
    assert metadata["author"] == "Jane Doe"


def test_metadata_page_extras(result):
    metadata = result.metadata
    assert metadata["language"] == "en"
    assert metadata["charset"] == "utf-8"
    assert metadata["viewport"] == "width=device-width"
    assert metadata["robots"] == "index,follow"
    assert metadata["canonical"] == "https://example.com/toaster-review"


def test_author_from_article_author():
    html = '<head><meta property="article:author" content="John Roe"></head>'
    assert extract(html, BASE_URL).metadata["author"] == "John Roe"


def test_charset_from_http_equiv():
    html = '<head><meta http-equiv="Content-Type" content="text/html; charset=ISO-8859-1"></head>'
    assert extract(html, BASE_URL).metadata["charset"] == "ISO-8859-1"


def test_invalid_json_ld_block_is_skipped(result):
    assert result.structured_data == [{"@context": "https://schema.org", "@type": "Review"}]


def test_json_ld_with_non_standard_constants_is_skipped():
    html = (
        '<script type="application/ld+json">{"@type": "Product", "price": NaN}</script>'
        '<script type="application/ld+json">{"@type": "Offer", "limit": -Infinity}</script>'
        '<script type="application/ld+json">{"@type": "Organization"}</script>'
    )
    result = extract(html, BASE_URL)
    assert result.structured_data == [{"@type": "Organization"}]
    assert result.stats["has_structured_data"] is True


def test_json_ld_list_payload_counts_as_one_block():
    html = '<script type="application/ld+json">[{"@type": "A"}, {"@type": "B"}]</script>'
    assert extract(html, BASE_URL).structured_data == [[{"@type": "A"}, {"@type": "B"}]]


def test_domain_info(result):
    assert result.domain_info == {
        "domain": "example.com",
        "protocol": "https",
        "path": "/blog/post",
        "host": "example.com",
        "origin": "https://example.com",
    }


def test_describe_domain_of_relative_url_is_empty():
    assert describe_domain("/relative") == {}


def test_stats(result):
    stats = result.stats
    assert stats["total_headings"] == 4
    assert stats["total_links"] == 3
    assert stats["total_images"] == 2
    assert stats["total_keywords"] == 4
    assert stats["text_length"] == len(result.text)
    assert stats["has_open_graph"] is True
    assert stats["has_twitter_card"] is True
    assert stats["has_structured_data"] is True
    assert stats["has_canonical"] is True


def test_bare_document_degrades_to_empty_fields():
    result = extract("<html><head></head><body></body></html>", BASE_URL)
    assert result.title == ""
    assert result.description == ""
    assert result.text == ""
    assert result.keywords == []
    assert result.links == []
    assert result.images == []
    assert result.structured_data == []
    assert result.metadata == {}
    assert all(result.headings[level] == [] for level in HEADING_LEVELS)
    assert result.stats["has_title"] is False


@pytest.mark.parametrize("html", ["", "<<<", "</div></div><p", "\x00\x01binary"])
def test_garbage_input_never_raises(html):
    result = extract(html, BASE_URL)
    assert result.url == BASE_URL
    assert result.links == []


def test_links_capped_at_100():
    html = "".join(f'<a href="/p/{i}">Link {i}</a>' for i in range(150))
    links = extract(html, BASE_URL).links
    assert len(links) == 100
    assert links[0].href == "https://example.com/p/0"
    assert links[-1].href == "https://example.com/p/99"


def test_images_capped_at_50():
    html = "".join(f'<img src="/i/{i}.png">' for i in range(80))
    assert len(extract(html, BASE_URL).images) == 50


def test_text_capped():
    html = "<p>" + ("abcde " * 10000) + "</p>"
    text = extract(html, BASE_URL).text
    assert len(text) == MAX_TEXT_CHARS


def test_link_text_is_trimmed_not_collapsed():
    tree = parse_html('<a href="/x">  Read\n more  </a>')
    assert extract_links(tree, BASE_URL)[0].text == "Read\n more"


def test_failing_facet_degrades_alone():
    with patch("scraper.extractor.extract_headings", side_effect=RuntimeError("boom")):
        result = extract(SAMPLE_HTML, BASE_URL)

    assert result.headings == {level: [] for level in HEADING_LEVELS}
    # the remaining facets are unaffected
    assert result.title == "Cuisinart CPT-122 Compact 2-Slice Toaster Review"
    assert len(result.links) == 3


def test_to_dict_has_every_field(result):
    data = result.to_dict()
    assert set(data) == {
        "url", "title", "description", "keywords", "headings", "links", "images",
        "text", "metadata", "structured_data", "scraped_at", "domain_info", "stats",
    }
    assert data["links"][0] == {"text": "Home", "href": "https://example.com/home"}
