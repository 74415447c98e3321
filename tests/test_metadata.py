from readlater.pipelines.metadata import (
    extract_author,
    extract_description,
    extract_excerpt,
    extract_favicon,
    extract_published_date,
    extract_title,
    lead_image_candidates,
    parse_document,
)


def test_title_prefers_h1_then_og_title():
    document = parse_document(
        '<html><head><title>Page</title><meta property="og:title" content="OG Title"></head>'
        "<body><h1>  Heading\n Title </h1></body></html>"
    )
    assert extract_title(document) == "Heading Title"

    document = parse_document(
        '<html><head><title>Page</title><meta property="og:title" content="OG Title"></head>'
        "<body></body></html>"
    )
    assert extract_title(document) == "OG Title"


def test_title_defaults_when_missing():
    assert extract_title(parse_document("<html><body><p>x</p></body></html>")) == "Untitled Article"


def test_author_and_description():
    document = parse_document(
        '<html><head><meta name="author" content="Jo Writer">'
        '<meta name="description" content="Short summary"></head>'
        '<body><span class="byline">Someone else</span></body></html>'
    )
    assert extract_author(document) == "Jo Writer"
    assert extract_description(document) == "Short summary"


def test_author_from_byline_text():
    document = parse_document('<html><body><p class="byline">By Sam</p></body></html>')
    assert extract_author(document) == "By Sam"
    assert extract_description(document) is None


def test_published_date_skips_invalid_candidates():
    document = parse_document(
        '<html><head><meta property="article:published_time" content="sometime"></head>'
        '<body><time datetime="2024-03-05T08:30:00+02:00">March 5</time></body></html>'
    )
    assert extract_published_date(document) == "2024-03-05T06:30:00+00:00"


def test_published_date_missing():
    assert extract_published_date(parse_document("<p>no dates</p>")) is None


def test_favicon_resolves_and_falls_back():
    document = parse_document('<html><head><link rel="icon" href="/static/icon.png"></head></html>')
    assert extract_favicon(document, "https://example.com/a/b") == "https://example.com/static/icon.png"

    bare = parse_document("<html><head></head></html>")
    assert extract_favicon(bare, "https://example.com/a/b") == "https://example.com/favicon.ico"
    assert extract_favicon(bare, None) is None


def test_lead_image_candidates_are_ordered_and_unique():
    document = parse_document(
        '<html><head><meta property="og:image" content="https://cdn.example.com/lead.jpg">'
        '<meta name="twitter:image" content="https://cdn.example.com/lead.jpg"></head>'
        '<body><article><img src="data:image/png;base64,AAAA"></article>'
        '<div class="featured-image"><img src="/img/feature.jpg"></div></body></html>'
    )
    assert lead_image_candidates(document, "https://example.com/post") == [
        "https://cdn.example.com/lead.jpg",
        "https://example.com/img/feature.jpg",
    ]


def test_excerpt_truncates_plain_text():
    content = "<p>" + ("word " * 100) + "</p>"
    excerpt = extract_excerpt(content, 20)
    assert excerpt.endswith("...")
    assert len(excerpt) == 23
    assert extract_excerpt("<p>short</p>") == "short"
    assert extract_excerpt("<div></div>") is None
