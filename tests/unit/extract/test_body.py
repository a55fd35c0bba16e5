"""
Unit tests for extract/body.py body selection.
"""

from __future__ import annotations

import pytest

from reservation_sync.extract.body import (
    BODY_SOURCE_HTML,
    BODY_SOURCE_SNIPPET,
    BODY_SOURCE_TEXT,
    html_to_text,
    select_body_text,
)


@pytest.mark.unit
def test_html_table_cells_become_separate_lines() -> None:
    """Test that label and value cells end up on neighbouring lines."""
    html = """
    <html><head><style>td {color: red}</style></head>
    <body><table>
      <tr><td>Check-in</td><td>Fri,&nbsp;Mar 13</td></tr>
      <tr><td>Checkout</td><td>Mon, Mar 16</td></tr>
    </table><script>var x = 1;</script></body></html>
    """

    text = html_to_text(html)

    assert text.splitlines() == ["Check-in", "Fri, Mar 13", "Checkout", "Mon, Mar 16"]


@pytest.mark.unit
def test_html_to_text_empty() -> None:
    """Test that empty HTML gives empty text."""
    assert html_to_text("") == ""


@pytest.mark.unit
def test_select_body_prefers_plain_text() -> None:
    """Test that a non-empty plain-text body wins over HTML and snippet."""
    body, source = select_body_text("  plain body ", "<p>html body</p>", "snippet")

    assert body == "plain body"
    assert source == BODY_SOURCE_TEXT


@pytest.mark.unit
def test_select_body_falls_back_to_html_then_snippet() -> None:
    """Test the fallback order when earlier sources are blank."""
    assert select_body_text("   ", "<p>html body</p>", "snippet") == ("html body", BODY_SOURCE_HTML)
    assert select_body_text(None, "<p> </p>", "snippet") == ("snippet", BODY_SOURCE_SNIPPET)


@pytest.mark.unit
def test_select_body_with_nothing_usable() -> None:
    """Test that no usable body returns empty text and no source."""
    assert select_body_text(None, None, None) == ("", None)
