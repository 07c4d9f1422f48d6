"""
Structure Diff Module
Analyzes structural differences between two captures of a page: declared
class styles, element class attributes, visible content, class usage,
inline style attributes and the raw HTML.
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bs4.element import Tag

from core.css_style_checker import ClassStyleMap, CSSStyleChecker
from core.html_parser import (HTMLParser, ParsedDocument, element_attr,
                              element_classes, element_text)
from core.settings import DEFAULT_SETTINGS, DiffSettings
from .class_matcher import ClassMatcher, CssClassChange

logger = logging.getLogger(__name__)

HTML_DIFF_CONTEXT = 3
STYLE_DIFF_CONTEXT = 2


@dataclass(frozen=True)
class ElementClassChange:
    identifier: str
    tag: str
    classes_before: Tuple[str, ...]
    classes_after: Tuple[str, ...]
    classes_added: Tuple[str, ...]
    classes_removed: Tuple[str, ...]

    def to_dict(self) -> Dict:
        return {
            'identifier': self.identifier,
            'tag': self.tag,
            'classes_before': list(self.classes_before),
            'classes_after': list(self.classes_after),
            'classes_added': list(self.classes_added),
            'classes_removed': list(self.classes_removed),
        }


@dataclass(frozen=True)
class ContentChange:
    kind: str  # text | image | link
    location: str
    before: str
    after: str

    def to_dict(self) -> Dict:
        return {'kind': self.kind, 'location': self.location, 'before': self.before, 'after': self.after}


@dataclass(frozen=True)
class StructuralAnalysis:
    css_class_changes: Tuple[CssClassChange, ...] = field(default_factory=tuple)
    element_class_changes: Tuple[ElementClassChange, ...] = field(default_factory=tuple)
    content_changes: Tuple[ContentChange, ...] = field(default_factory=tuple)
    raw_html_diff: str = ''
    html_changed_lines: int = 0
    added_selectors: Tuple[str, ...] = field(default_factory=tuple)
    removed_selectors: Tuple[str, ...] = field(default_factory=tuple)
    css_diff: str = ''
    css_changed_lines: int = 0

    @property
    def total_changes(self) -> int:
        return len(self.css_class_changes) + len(self.element_class_changes) + len(self.content_changes)

    @property
    def confirms_visual_findings(self) -> bool:
        """True when the markup or the inline styles changed at all."""
        return self.html_changed_lines > 0 or self.css_changed_lines > 0

    @property
    def html_diff_summary(self) -> str:
        if self.html_changed_lines == 0:
            return 'No HTML changes detected.'
        additions = deletions = 0
        for line in self.raw_html_diff.splitlines():
            if line.startswith('+') and not line.startswith('+++'):
                additions += 1
            elif line.startswith('-') and not line.startswith('---'):
                deletions += 1
        return f"{self.html_changed_lines} changed lines ({additions} additions, {deletions} deletions)."

    def to_dict(self) -> Dict:
        return {
            'css_class_changes': [c.to_dict() for c in self.css_class_changes],
            'element_class_changes': [c.to_dict() for c in self.element_class_changes],
            'content_changes': [c.to_dict() for c in self.content_changes],
            'html_changed_lines': self.html_changed_lines,
            'html_diff_summary': self.html_diff_summary,
            'added_selectors': list(self.added_selectors),
            'removed_selectors': list(self.removed_selectors),
            'raw_html_diff': self.raw_html_diff,
            'css_changed_lines': self.css_changed_lines,
            'css_diff': self.css_diff,
            'confirms_visual_findings': self.confirms_visual_findings,
        }


def unified_diff(before: str, after: str, fromfile: str, tofile: str, context: int) -> str:
    lines = difflib.unified_diff(
        (before or '').splitlines(),
        (after or '').splitlines(),
        fromfile=fromfile,
        tofile=tofile,
        n=context,
        lineterm='',
    )
    return '\n'.join(lines)


def unified_html_diff(html_before: str, html_after: str, context: int = HTML_DIFF_CONTEXT) -> str:
    return unified_diff(html_before, html_after, 'before.html', 'after.html', context)


def inline_style_diff(doc_before: ParsedDocument, doc_after: ParsedDocument,
                      context: int = STYLE_DIFF_CONTEXT) -> str:
    """Unified diff of every element's ``style`` attribute, one ``tag[style="..."]`` line each."""
    return unified_diff(
        '\n'.join(doc_before.inline_styles()),
        '\n'.join(doc_after.inline_styles()),
        'before.styles', 'after.styles', context,
    )


def count_changed_lines(patch: str) -> int:
    """Added plus removed lines of a unified diff, file headers excluded."""
    return sum(
        1 for line in patch.splitlines()
        if line.startswith(('+', '-')) and not line.startswith(('+++', '---'))
    )


class StructureDiff:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self.html_parser = HTMLParser()
        self.css_checker = CSSStyleChecker(settings.class_style_props)
        self.class_matcher = ClassMatcher(settings)

    def _truncate(self, text: str) -> str:
        return text[:self.settings.text_truncate]

    def _class_delta(self, identifier: str, before: Tag, after: Tag) -> Optional[ElementClassChange]:
        classes_before = element_classes(before)
        classes_after = element_classes(after)
        added = tuple(c for c in classes_after if c not in classes_before)
        removed = tuple(c for c in classes_before if c not in classes_after)
        if not added and not removed:
            return None
        return ElementClassChange(
            identifier=identifier,
            tag=before.name,
            classes_before=tuple(classes_before),
            classes_after=tuple(classes_after),
            classes_added=added,
            classes_removed=removed,
        )

    def compare_element_classes(self, doc_before: ParsedDocument,
                                doc_after: ParsedDocument) -> List[ElementClassChange]:
        """Class attribute changes on elements paired by id, then by singleton landmark tag."""
        changes = []
        seen = set()
        matched = set()
        for element_id, before in doc_before.ids.items():
            after = doc_after.by_id(element_id)
            key = f"#{element_id}"
            if after is None or key in seen:
                continue
            seen.add(key)
            matched.add(id(before))
            matched.add(id(after))
            change = self._class_delta(key, before, after)
            if change:
                changes.append(change)

        for tag_name in self.settings.semantic_tags:
            key = f"<{tag_name}>"
            before = doc_before.first(tag_name)
            after = doc_after.first(tag_name)
            if before is None or after is None or key in seen:
                continue
            if id(before) in matched or id(after) in matched:
                continue
            seen.add(key)
            change = self._class_delta(key, before, after)
            if change:
                changes.append(change)
        return changes[:self.settings.element_change_cap]

    @staticmethod
    def _pairs(before: List[Tag], after: List[Tag]):
        for index in range(max(len(before), len(after))):
            yield (index,
                   before[index] if index < len(before) else None,
                   after[index] if index < len(after) else None)

    def _text_changes(self, doc_before: ParsedDocument, doc_after: ParsedDocument) -> List[ContentChange]:
        changes = []
        limit = self.settings.matches_per_selector
        for selector in self.settings.text_sample_selectors:
            matches = self._pairs(doc_before.select(selector)[:limit], doc_after.select(selector)[:limit])
            for index, before, after in matches:
                text_before = self._truncate(element_text(before))
                text_after = self._truncate(element_text(after))
                if text_before != text_after and (text_before or text_after):
                    location = selector if index == 0 else f"{selector} [{index + 1}]"
                    changes.append(ContentChange('text', location, text_before, text_after))

        nav_selector = self.settings.nav_link_selector
        nav_links = self._pairs(doc_before.select(nav_selector), doc_after.select(nav_selector))
        for index, before, after in nav_links:
            text_before = self._truncate(element_text(before))
            text_after = self._truncate(element_text(after))
            if text_before != text_after and (text_before or text_after):
                changes.append(ContentChange('text', f"nav link [{index + 1}]", text_before, text_after))
        return changes

    def _image_changes(self, doc_before: ParsedDocument, doc_after: ParsedDocument) -> List[ContentChange]:
        changes = []
        for index, before, after in self._pairs(doc_before.select(self.settings.image_selector),
                                                 doc_after.select(self.settings.image_selector)):
            alt_before = element_attr(before, 'alt')
            alt_after = element_attr(after, 'alt')
            alt = alt_before or alt_after
            tag = (before or after).name
            location = f'{tag}[alt="{alt}"]' if alt else f"{tag} [{index + 1}]"
            src_before = element_attr(before, 'src', 'data-src')
            src_after = element_attr(after, 'src', 'data-src')
            if src_before != src_after:
                changes.append(ContentChange('image', location, src_before, src_after))
            if alt_before != alt_after:
                changes.append(ContentChange('image', f"{location} alt", alt_before, alt_after))
        return changes

    def _link_changes(self, doc_before: ParsedDocument, doc_after: ParsedDocument) -> List[ContentChange]:
        changes = []
        for index, before, after in self._pairs(doc_before.select(self.settings.link_selector),
                                                 doc_after.select(self.settings.link_selector)):
            href_before = element_attr(before, 'href')
            href_after = element_attr(after, 'href')
            if href_before == href_after:
                continue
            if href_before.startswith('#') and href_after.startswith('#'):
                continue
            label = element_text(before) or element_text(after)
            location = f'a "{label[:self.settings.link_label_max]}"' if label else f"a [{index + 1}]"
            changes.append(ContentChange('link', location, href_before, href_after))
        return changes

    def compare_content(self, doc_before: ParsedDocument, doc_after: ParsedDocument) -> List[ContentChange]:
        """Visible text, image and link changes, matched by position within each selector."""
        changes = (
            self._text_changes(doc_before, doc_after)
            + self._image_changes(doc_before, doc_after)
            + self._link_changes(doc_before, doc_after)
        )
        return changes[:self.settings.content_change_cap]

    def compare(self, html_before: str, styles_before: ClassStyleMap,
                html_after: str, styles_after: ClassStyleMap) -> StructuralAnalysis:
        """Compare two (HTML, class style map) pairs."""
        doc_before = self.html_parser.parse(html_before)
        doc_after = self.html_parser.parse(html_after)

        css_changes = self.class_matcher.compare_class_styles(styles_before, doc_before, styles_after, doc_after)
        element_changes = self.compare_element_classes(doc_before, doc_after)
        content_changes = self.compare_content(doc_before, doc_after)
        added, removed = self.class_matcher.compare_class_usage(doc_before, doc_after)
        patch = unified_html_diff(html_before, html_after)
        style_patch = inline_style_diff(doc_before, doc_after)

        analysis = StructuralAnalysis(
            css_class_changes=tuple(css_changes),
            element_class_changes=tuple(element_changes),
            content_changes=tuple(content_changes),
            raw_html_diff=patch,
            html_changed_lines=count_changed_lines(patch),
            added_selectors=tuple(added),
            removed_selectors=tuple(removed),
            css_diff=style_patch,
            css_changed_lines=count_changed_lines(style_patch),
        )
        logger.info(
            f"Structural diff: {len(css_changes)} class style, {len(element_changes)} element class, "
            f"{len(content_changes)} content changes; {analysis.html_changed_lines} HTML lines, "
            f"{analysis.css_changed_lines} inline style lines"
        )
        return analysis

    def analyze(self, html_before: str, css_before: str, html_after: str, css_after: str) -> StructuralAnalysis:
        """Compare two (HTML, stylesheet text) pairs."""
        return self.compare(
            html_before, self.css_checker.extract_class_styles(css_before or ''),
            html_after, self.css_checker.extract_class_styles(css_after or ''),
        )
