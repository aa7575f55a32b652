"""Tests for tab content cleaning and enrichment."""

import asyncio

import pytest

from processors.content_extractor import (
    ContentExtractor,
    ContentTooShortError,
    clean_tab_content,
    enrich_tab,
    html_to_text,
)
from schemas.tab import TabContent


def test_plain_string_whitespace_collapsed():
    cleaned = clean_tab_content("  Hello\n\n   world\t\tagain  ")
    assert cleaned.text == "Hello world again"
    assert cleaned.meta == {}


def test_text_preferred_over_html():
    content = TabContent(text="Readable text", html="<p>Other</p>", meta={"lang": "en"})
    cleaned = clean_tab_content(content)
    assert cleaned.text == "Readable text"
    assert cleaned.meta == {"lang": "en"}


def test_html_reduced_to_visible_text():
    html = """
    <html><head><style>body { color: red; }</style><script>var x = 1;</script></head>
    <body><nav>Home | About</nav><h1>Title</h1><p>First paragraph.</p><p>Second one.</p></body></html>
    """
    text = clean_tab_content(TabContent(html=html)).text

    assert text == "Title First paragraph. Second one."
    assert "var x" not in html_to_text(html)


def test_content_capped_at_max_length():
    cleaned = clean_tab_content("a" * 500, max_length=100)
    assert len(cleaned.text) == 100


def test_cookie_banner_stripped():
    cleaned = clean_tab_content("We use cookies to improve your experience. The actual article starts here.")
    assert cleaned.text == "The actual article starts here."


def test_newsletter_sentence_stripped():
    cleaned = clean_tab_content("Join our weekly newsletter today. Body text follows.")
    assert cleaned.text == "Body text follows."


def test_signup_phrase_does_not_swallow_article():
    text = (
        "Sign up for a free account to follow along. "
        + "Real article content. " * 40
        + "We publish release updates every week."
    )
    extractor = ContentExtractor()
    cleaned = extractor.clean(text)

    assert cleaned.text == " ".join(text.split())
    extractor.require_indexable(cleaned)


def test_short_content_rejected():
    extractor = ContentExtractor(min_content_length=50)
    cleaned = extractor.clean("too short")
    with pytest.raises(ContentTooShortError):
        extractor.require_indexable(cleaned)


def test_empty_tab_content_rejected():
    extractor = ContentExtractor()
    with pytest.raises(ContentTooShortError):
        extractor.require_indexable(extractor.clean(TabContent()))


def test_reading_time_rounds_up():
    enrichment = asyncio.run(enrich_tab("word " * 201, "Title"))
    assert enrichment.word_count == 201
    assert enrichment.reading_time == 2
    assert enrichment.reading_time_text == "2 minute read"


def test_short_text_reads_in_one_minute_with_full_text_summary():
    enrichment = asyncio.run(enrich_tab("Just a few words here.", "Title"))
    assert enrichment.reading_time == 1
    assert enrichment.reading_time_text == "1 minute read"
    assert enrichment.summary == "Just a few words here."


def test_long_text_summarized_by_llm():
    calls = []

    async def summarizer(text, title):
        calls.append((len(text), title))
        return "A concise summary."

    enrichment = asyncio.run(enrich_tab("x" * 6000, "Long page", summarizer=summarizer))

    assert enrichment.summary == "A concise summary."
    assert calls == [(4000, "Long page")]


def test_summary_failure_falls_back_to_excerpt():
    async def summarizer(text, title):
        raise RuntimeError("rate limited")

    enrichment = asyncio.run(enrich_tab("y" * 1500, "Page", summarizer=summarizer))
    assert enrichment.summary == "y" * 200 + "..."


def test_no_summarizer_uses_excerpt():
    enrichment = asyncio.run(enrich_tab("z" * 1500, "Page"))
    assert enrichment.summary == "z" * 200 + "..."
