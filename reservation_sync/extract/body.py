"""Pick the most useful body text from a mailbox message."""

from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

BODY_SOURCE_TEXT = "text"
BODY_SOURCE_HTML = "html"
BODY_SOURCE_SNIPPET = "snippet"

_BLOCK_TAGS = ["br", "p", "div", "tr", "td", "th", "li", "h1", "h2", "h3", "h4", "table"]


def html_to_text(html: str) -> str:
    """
    Convert an HTML email body to line-oriented plain text.

    Block-level elements become line breaks so that label/value pairs laid
    out in tables ("Check-in" / "Fri, Mar 13") stay on neighbouring lines.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "head"]):
        element.decompose()
    text = soup.get_text(separator="\n")
    text = text.replace("\xa0", " ")
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def select_body_text(
    text: Optional[str], html: Optional[str], snippet: Optional[str]
) -> tuple[str, Optional[str]]:
    """
    Choose the body to extract from: plain text, then HTML-derived text, then snippet.

    Returns:
        tuple: (body text, source label) where the label is None when nothing was usable
    """
    if text and text.strip():
        return text.replace("\xa0", " ").strip(), BODY_SOURCE_TEXT
    if html and html.strip():
        converted = html_to_text(html)
        if converted:
            return converted, BODY_SOURCE_HTML
    if snippet and snippet.strip():
        return snippet.strip(), BODY_SOURCE_SNIPPET
    return "", None
