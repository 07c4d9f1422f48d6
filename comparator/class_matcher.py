"""
Class Matcher Module
Compares declared class styles and class usage between two pages.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from core.css_style_checker import ClassStyleMap
from core.html_parser import ParsedDocument
from core.settings import DEFAULT_SETTINGS, DiffSettings

logger = logging.getLogger(__name__)

NOT_DECLARED = '(not declared)'

ADDED = 'added'
REMOVED = 'removed'
CHANGED = 'changed'


@dataclass(frozen=True)
class CssPropertyChange:
    property: str
    before: str
    after: str

    def to_dict(self) -> Dict:
        return {'property': self.property, 'before': self.before, 'after': self.after}


@dataclass(frozen=True)
class CssClassChange:
    class_name: str
    kind: str
    changed_properties: Tuple[CssPropertyChange, ...] = field(default_factory=tuple)
    element_count_before: int = 0
    element_count_after: int = 0

    @property
    def impact(self) -> int:
        return self.element_count_before + self.element_count_after

    def to_dict(self) -> Dict:
        return {
            'class_name': self.class_name,
            'kind': self.kind,
            'changed_properties': [change.to_dict() for change in self.changed_properties],
            'element_count_before': self.element_count_before,
            'element_count_after': self.element_count_after,
        }


class ClassMatcher:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self._prop_order = {name: i for i, name in enumerate(settings.class_style_props)}

    def _ordered(self, props: Set[str]) -> List[str]:
        return sorted(props, key=lambda p: (self._prop_order.get(p, len(self._prop_order)), p))

    def diff_properties(self, before: Dict[str, str], after: Dict[str, str]) -> Tuple[CssPropertyChange, ...]:
        """Per-property before/after pairs for every property whose value differs."""
        changes = []
        for prop in self._ordered(set(before) | set(after)):
            old = before.get(prop, NOT_DECLARED)
            new = after.get(prop, NOT_DECLARED)
            if old != new:
                changes.append(CssPropertyChange(prop, old, new))
        return tuple(changes)

    def compare_class_styles(self,
                             styles_before: ClassStyleMap, doc_before: ParsedDocument,
                             styles_after: ClassStyleMap, doc_after: ParsedDocument) -> List[CssClassChange]:
        """Added, removed and changed classes, most widely used first."""
        changes = []
        for cls in sorted(set(styles_before) | set(styles_after)):
            in_before = cls in styles_before
            in_after = cls in styles_after
            properties = self.diff_properties(styles_before.get(cls, {}), styles_after.get(cls, {}))
            if in_before and in_after:
                if not properties:
                    continue
                kind = CHANGED
            else:
                kind = ADDED if in_after else REMOVED
            changes.append(CssClassChange(
                class_name=cls,
                kind=kind,
                changed_properties=properties,
                element_count_before=doc_before.count_class(cls),
                element_count_after=doc_after.count_class(cls),
            ))
        changes.sort(key=lambda change: change.impact, reverse=True)
        logger.debug(f"{len(changes)} class style changes before capping")
        return changes[:self.settings.class_change_cap]

    def compare_class_usage(self, doc_before: ParsedDocument,
                            doc_after: ParsedDocument) -> Tuple[List[str], List[str]]:
        """(added, removed) ``.class`` selectors used by elements of each page."""
        before = doc_before.class_selectors()
        after = doc_after.class_selectors()
        cap = self.settings.selector_cap
        return sorted(after - before)[:cap], sorted(before - after)[:cap]
