"""
Page inspection for substituted content

Extracts the pieces of a page the assertions look at (title, headings,
paragraphs, links and raw text nodes) and checks a source/result pair for
the substitution properties.
"""

import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import List, Optional, Tuple

from .errors import AssertionFailure

CAPTURED_TAGS = ("title", "h1", "p", "a")
SKIPPED_TAGS = ("script", "style")


@dataclass
class Link:
    text: str
    href: Optional[str]


@dataclass
class PageSummary:
    title: str = ""
    headings: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)
    text_nodes: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.text_nodes)

    @property
    def hrefs(self) -> List[str]:
        return [link.href for link in self.links if link.href is not None]

    @classmethod
    def from_html(cls, content: str) -> "PageSummary":
        parser = _SummaryParser()
        parser.feed(content)
        parser.close()
        return parser.summary


class _SummaryParser(HTMLParser):

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.summary = PageSummary()
        self._open: List[Tuple[str, List[str], Optional[str]]] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in SKIPPED_TAGS:
            self._skip_depth += 1
        elif tag in CAPTURED_TAGS:
            if tag == "p":
                # A new paragraph implicitly closes an open one
                self.handle_endtag("p")
            href = dict(attrs).get("href") if tag == "a" else None
            self._open.append((tag, [], href))

    def handle_endtag(self, tag):
        if tag in SKIPPED_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        for i in range(len(self._open) - 1, -1, -1):
            if self._open[i][0] == tag:
                # Anything opened inside and never closed ends here too
                for entry in reversed(self._open[i:]):
                    self._finish(*entry)
                del self._open[i:]
                break

    def handle_data(self, data):
        if self._skip_depth:
            return
        self.summary.text_nodes.append(data)
        for _, parts, _ in self._open:
            parts.append(data)

    def close(self):
        super().close()
        for entry in reversed(self._open):
            self._finish(*entry)
        self._open = []

    def _finish(self, tag: str, parts: List[str], href: Optional[str]):
        text = "".join(parts)
        if tag == "title":
            self.summary.title = text
        elif tag == "h1":
            self.summary.headings.append(text)
        elif tag == "p":
            self.summary.paragraphs.append(text)
        elif tag == "a":
            self.summary.links.append(Link(text=text, href=href))


def count_word(text: str, word: str) -> int:
    """Case-sensitive whole-word occurrences of ``word`` in ``text``"""
    return len(re.findall(rf"\b{re.escape(word)}\b", text))


def assert_substituted(source_html: str, content: str,
                       original: str = "Yale", replacement: str = "Fale"):
    """Check a fetched page against the page it was fetched from

    Text must hold no whole-word ``original``, every ``original`` must have
    become ``replacement``, and link targets must be byte-for-byte unchanged.
    """
    source = PageSummary.from_html(source_html)
    result = PageSummary.from_html(content)

    leftover = count_word(result.text, original)
    if leftover:
        raise AssertionFailure(f"{leftover} occurrence(s) of {original!r} left in page text")

    expected = count_word(source.text, original) + count_word(source.text, replacement)
    actual = count_word(result.text, replacement)
    if actual != expected:
        raise AssertionFailure(
            f"Expected {expected} occurrence(s) of {replacement!r} in page text, found {actual}"
        )

    if result.hrefs != source.hrefs:
        raise AssertionFailure(f"Link targets changed: {source.hrefs} -> {result.hrefs}")

    return result
