"""
HTML Parser Module
Parses captured page HTML into a read-only document with the handful of
queries the structural diff needs: class membership, id lookup and tag lookup.
"""

import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

logger = logging.getLogger(__name__)

WHITESPACE_RE = re.compile(r'\s+')


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(' ', text).strip()


def element_classes(element: Optional[Tag]) -> List[str]:
    """Class tokens of an element in document order, duplicates removed."""
    if element is None:
        return []
    value = element.get('class') or []
    if isinstance(value, str):
        value = value.split()
    seen = []
    for cls in value:
        if cls and cls not in seen:
            seen.append(cls)
    return seen


def element_text(element: Optional[Tag]) -> str:
    if element is None:
        return ''
    return collapse_whitespace(element.get_text(' '))


def element_attr(element: Optional[Tag], *names: str) -> str:
    """First non-empty attribute among ``names``, or ''."""
    if element is None:
        return ''
    for name in names:
        value = element.get(name)
        if isinstance(value, list):
            value = ' '.join(value)
        if value:
            return value.strip()
    return ''


class ParsedDocument:
    """In-memory, read-only view over one HTML document."""

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup
        self._class_counts: Optional[Counter] = None
        self._ids: Optional[Dict[str, Tag]] = None

    @property
    def class_counts(self) -> Counter:
        """Number of elements carrying each class name."""
        if self._class_counts is None:
            counts = Counter()
            for tag in self.soup.find_all(class_=True):
                counts.update(element_classes(tag))
            self._class_counts = counts
        return self._class_counts

    def count_class(self, name: str) -> int:
        return self.class_counts.get(name, 0)

    def class_selectors(self) -> Set[str]:
        return {f".{cls}" for cls in self.class_counts}

    @property
    def ids(self) -> Dict[str, Tag]:
        """Element for each id attribute; the first occurrence wins."""
        if self._ids is None:
            ids = {}
            for tag in self.soup.find_all(id=True):
                value = element_attr(tag, 'id')
                if value and value not in ids:
                    ids[value] = tag
            self._ids = ids
        return self._ids

    def by_id(self, element_id: str) -> Optional[Tag]:
        return self.ids.get(element_id)

    def first(self, tag_name: str) -> Optional[Tag]:
        return self.soup.find(tag_name)

    def select(self, selector: str) -> List[Tag]:
        return self.soup.select(selector)

    def inline_styles(self) -> List[str]:
        """``tag[style="..."]`` for every element with a style attribute, in document order."""
        return [
            f'{tag.name}[style="{element_attr(tag, "style")}"]'
            for tag in self.soup.select('[style]')
        ]


class HTMLParser:
    """Parser for captured HTML content."""

    def __init__(self, features: str = 'html.parser'):
        self.features = features

    def parse_file(self, file_path: Union[str, Path]) -> ParsedDocument:
        """Parse an HTML file from disk."""
        path = Path(file_path)
        logger.info(f"Parsing HTML file: {path}")
        return self.parse(path.read_text(encoding='utf-8', errors='replace'))

    def parse(self, html_content: str) -> ParsedDocument:
        """Parse HTML text; malformed markup is repaired by the parser rather than rejected."""
        logger.debug(f"Parsing HTML content of length {len(html_content or '')}")
        soup = BeautifulSoup(html_content or '', self.features)
        return ParsedDocument(soup)
