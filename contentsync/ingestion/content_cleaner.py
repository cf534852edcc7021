"""
Content Cleaner
===============

HTML cleaning and text helpers shared by the normalizers:

- markup stripping with BeautifulSoup
- excerpt truncation
- slug generation
- first-image extraction from HTML bodies
"""

import re
import html
import uuid
from typing import Optional

from bs4 import BeautifulSoup, Comment

from ..utils.logging import get_logger_for_component

EXCERPT_LENGTH = 260
ELLIPSIS = "..."


class ContentCleaner:
    """Turns provider HTML into plain text, excerpts and slugs."""

    # Removed together with their content
    DANGEROUS_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "form",
        "noscript",
        "canvas",
    }

    WHITESPACE_PATTERN = re.compile(r"\s+", re.MULTILINE)
    SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

    def __init__(self, excerpt_length: int = EXCERPT_LENGTH):
        self.excerpt_length = excerpt_length
        self.logger = get_logger_for_component("content_cleaner")
        self.parser = "html.parser"

    def strip_markup(self, html_content: Optional[str]) -> str:
        """Extract readable text from an HTML fragment.

        Returns an empty string for empty input.
        """
        if not html_content:
            return ""

        soup = BeautifulSoup(html_content, self.parser)

        for element in soup.find_all(self.DANGEROUS_ELEMENTS):
            element.decompose()
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        text = soup.get_text(separator=" ")
        text = html.unescape(text)
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def make_excerpt(self, text: Optional[str]) -> str:
        """Truncate plain text to the excerpt length.

        Text longer than the limit becomes exactly ``excerpt_length``
        characters, the last three being ``"..."``. Shorter text is
        returned unchanged.
        """
        text = text or ""
        if len(text) <= self.excerpt_length:
            return text
        return text[: self.excerpt_length - len(ELLIPSIS)] + ELLIPSIS

    def excerpt_from_html(self, html_content: Optional[str]) -> str:
        return self.make_excerpt(self.strip_markup(html_content))

    def first_image(self, html_content: Optional[str]) -> Optional[str]:
        """Return the src of the first <img> in an HTML fragment, if any."""
        if not html_content:
            return None
        soup = BeautifulSoup(html_content, self.parser)
        img = soup.find("img", src=True)
        if img is None:
            return None
        src = img["src"].strip()
        if src.startswith(("http://", "https://")):
            return src
        return None

    @classmethod
    def slugify(cls, text: Optional[str]) -> str:
        """Lowercase, collapse non-alphanumeric runs to '-', trim dashes.

        Falls back to a random UUID when nothing survives.
        """
        slug = cls.SLUG_PATTERN.sub("-", (text or "").lower()).strip("-")
        return slug or str(uuid.uuid4())


def slugify(text: Optional[str]) -> str:
    return ContentCleaner.slugify(text)
