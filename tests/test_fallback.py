from readlater.pipelines.fallback import (
    GENERIC_NOTE,
    SOCIAL_NOTE,
    VIDEO_NOTE,
    build_fallback_content,
    content_note,
)


def test_content_note_by_host():
    assert content_note("https://www.youtube.com/watch?v=abc") == VIDEO_NOTE
    assert content_note("https://youtu.be/abc") == VIDEO_NOTE
    assert content_note("https://x.com/someone/status/1") == SOCIAL_NOTE
    assert content_note("https://mobile.twitter.com/someone") == SOCIAL_NOTE
    assert content_note("https://notyoutube.com/watch") == GENERIC_NOTE
    assert content_note("https://example.com/box.com") == GENERIC_NOTE
    assert content_note(None) == GENERIC_NOTE


def test_build_fallback_content_escapes_values():
    html = build_fallback_content(
        "Tom & Jerry <live>",
        'A "quoted" summary',
        "https://www.youtube.com/watch?v=abc&t=1",
    )
    assert html.startswith('<div class="fallback-content">')
    assert "<h1>Tom &amp; Jerry &lt;live&gt;</h1>" in html
    assert "A &quot;quoted&quot; summary" in html
    assert VIDEO_NOTE in html
    assert 'href="https://www.youtube.com/watch?v=abc&amp;t=1"' in html
    assert ">youtube.com</a>" in html


def test_build_fallback_content_without_description():
    html = build_fallback_content("Title", None, "https://example.com/page")
    assert 'class="description"' not in html
    assert GENERIC_NOTE in html
