"""Content extractor for cleaning and enriching captured tab content.

Turns the extension's ``content`` payload (plain text, or HTML when the page
script could not extract text) into a single normalised string, then derives
word count, reading time and a short summary for the indexed metadata.
"""

import logging
import math
import re
from typing import Awaitable, Callable, Optional, Union

from bs4 import BeautifulSoup

from schemas.tab import CleanedContent, TabContent, TabEnrichment

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200
SUMMARY_INPUT_CHARS = 4000

Summarizer = Callable[[str, str], Awaitable[str]]


class InvalidInputError(ValueError):
    """Client input that cannot be processed; reported as 400."""


class ContentTooShortError(InvalidInputError):
    """Cleaned content is below the minimum length worth indexing."""


class ContentExtractor:
    """Cleans and normalizes tab text content."""

    def __init__(
        self,
        max_content_length: int = 20000,
        min_content_length: int = 50,
        summary_threshold: int = 1000,
        summarizer: Optional[Summarizer] = None,
    ):
        self.max_content_length = max_content_length
        self.min_content_length = min_content_length
        self.summary_threshold = summary_threshold
        self.summarizer = summarizer

        # Boilerplate sentences that survive page extraction; a match never crosses a period
        self._strip_patterns = [
            # Cookie consent / GDPR banners
            re.compile(
                r"(we use cookies|cookie policy|accept all cookies|manage preferences)[^.]{0,200}\.",
                re.IGNORECASE,
            ),
            # Newsletter signup CTAs
            re.compile(
                r"(subscribe to|sign up for|join our)[^.]{0,200}?(newsletter|updates)[^.]{0,200}\.",
                re.IGNORECASE,
            ),
        ]

    @classmethod
    def from_settings(cls, settings, summarizer: Optional[Summarizer] = None) -> "ContentExtractor":
        return cls(
            max_content_length=settings.max_content_length,
            min_content_length=settings.min_content_length,
            summary_threshold=settings.summary_threshold,
            summarizer=summarizer,
        )

    def clean(self, content: Union[TabContent, str]) -> CleanedContent:
        """Extract and normalise the text of a tab's content payload."""
        meta: dict = {}
        if isinstance(content, str):
            text = content
        else:
            meta = dict(content.meta)
            if content.text:
                text = content.text
            elif content.html:
                text = html_to_text(content.html)
            else:
                text = ""

        for pattern in self._strip_patterns:
            text = pattern.sub("", text)

        # Collapse every whitespace run (newlines included) to one space
        text = re.sub(r"\s+", " ", text).strip()

        if len(text) > self.max_content_length:
            logger.info("Truncating content from %d to %d chars", len(text), self.max_content_length)
            text = text[: self.max_content_length]

        return CleanedContent(text=text, meta=meta)

    def require_indexable(self, cleaned: CleanedContent) -> None:
        if len(cleaned.text) < self.min_content_length:
            raise ContentTooShortError(
                f"Content too short to index ({len(cleaned.text)} < {self.min_content_length} chars)"
            )

    async def enrich(self, text: str, title: str) -> TabEnrichment:
        """Compute reading statistics and a short summary for ``text``."""
        word_count = len(text.split())
        reading_time = max(1, math.ceil(word_count / WORDS_PER_MINUTE)) if word_count else 0
        reading_time_text = "1 minute read" if reading_time == 1 else f"{reading_time} minute read"

        summary = None
        if len(text) > self.summary_threshold and self.summarizer is not None:
            try:
                summary = await self.summarizer(text[:SUMMARY_INPUT_CHARS], title)
            except Exception as e:
                logger.warning("Summary generation failed for '%s', using excerpt: %s", title, e)
        if not summary:
            summary = excerpt(text)

        return TabEnrichment(
            word_count=word_count,
            reading_time=reading_time,
            reading_time_text=reading_time_text,
            summary=summary,
        )


def html_to_text(html: str) -> str:
    """Strip markup, scripts and navigation chrome from an HTML fragment."""
    soup = BeautifulSoup(html, "lxml")
    for tag_name in ["script", "style", "noscript", "nav", "header", "footer", "aside"]:
        for tag in soup.find_all(tag_name):
            tag.decompose()
    return soup.get_text(separator=" ", strip=True)


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    if len(text) <= length:
        return text
    return text[:length] + "..."


def clean_tab_content(content: Union[TabContent, str], max_length: int = 20000) -> CleanedContent:
    return ContentExtractor(max_content_length=max_length).clean(content)


async def enrich_tab(
    text: str,
    title: str,
    summarizer: Optional[Summarizer] = None,
    summary_threshold: int = 1000,
) -> TabEnrichment:
    extractor = ContentExtractor(summary_threshold=summary_threshold, summarizer=summarizer)
    return await extractor.enrich(text, title)
