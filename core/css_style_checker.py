"""
CSS Style Checker Module
Walks raw stylesheet text and attributes declared visual properties to bare
class selectors, resolving ``var()`` references against ``:root`` custom
properties.
"""

import logging
import re
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import tinycss2

from .settings import CLASS_STYLE_PROPS

logger = logging.getLogger(__name__)

COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
BARE_CLASS_RE = re.compile(r'^\.([\w-]+)$')
VAR_RE = re.compile(r'var\((--[\w-]+)(?:\s*,\s*([^)]*))?\)')

ClassStyleMap = Dict[str, Dict[str, str]]


class CssDeclarationBlock(NamedTuple):
    selector: str
    body: str


def strip_comments(css_text: str) -> str:
    return COMMENT_RE.sub('', css_text)


def find_block_end(text: str, open_index: int) -> Optional[int]:
    """Index of the ``}`` matching the ``{`` at ``open_index``, or None if it is never closed."""
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return index
    return None


def walk_css_rules(css_text: str) -> Iterator[CssDeclarationBlock]:
    """Yield (selector, body) for every style rule, flattening @media/@supports/@layer nesting.

    Scanning stops at the first unbalanced block; everything before it is still yielded.
    """
    index = 0
    length = len(css_text)
    while index < length:
        block_start = css_text.find('{', index)
        if block_start == -1:
            break
        block_end = find_block_end(css_text, block_start)
        if block_end is None:
            logger.debug(f"Unbalanced braces at offset {block_start}, stopping")
            return
        # statement at-rules (@import, @charset) end with ';' and never own a block
        prelude = css_text[index:block_start].rsplit(';', 1)[-1].strip()
        body = css_text[block_start + 1:block_end]
        if prelude.startswith('@'):
            yield from walk_css_rules(body)
        else:
            yield CssDeclarationBlock(prelude, body)
        index = block_end + 1


def parse_declarations(body: str) -> List[Tuple[str, str]]:
    """Split a declaration body into (property, value) pairs, skipping anything unparsable."""
    declarations = []
    for node in tinycss2.parse_declaration_list(body, skip_comments=True, skip_whitespace=True):
        if node.type == 'error':
            logger.debug(f"Skipping unparsable declaration: {node.message}")
            continue
        if node.type != 'declaration':
            continue
        name = node.name if node.name.startswith('--') else node.lower_name
        value = tinycss2.serialize(node.value).strip()
        if not value:
            continue
        if node.important:
            value = f"{value} !important"
        declarations.append((name, value))
    return declarations


def selector_list(selector: str) -> List[str]:
    return [part.strip() for part in selector.split(',')]


def resolve_vars(value: str, custom_props: Dict[str, str]) -> str:
    """Substitute ``var(--name[, fallback])`` once; no variable-in-variable resolution.

    Unknown names use the fallback text, or stay as written when there is none.
    """
    def repl(match):
        name, fallback = match.group(1), match.group(2)
        if name in custom_props:
            return custom_props[name]
        if fallback is not None:
            return fallback.strip()
        return match.group(0)
    return VAR_RE.sub(repl, value)


class CSSStyleChecker:
    def __init__(self, style_props: Iterable[str] = CLASS_STYLE_PROPS):
        self.style_props = frozenset(style_props)

    def parse_custom_properties(self, css_text: str) -> Dict[str, str]:
        """Collect ``--name: value`` declarations from rules whose selector list contains ``:root``."""
        custom_props = {}
        for block in walk_css_rules(strip_comments(css_text)):
            if ':root' not in selector_list(block.selector):
                continue
            for name, value in parse_declarations(block.body):
                if name.startswith('--'):
                    custom_props[name] = value
        logger.debug(f"Found {len(custom_props)} custom properties")
        return custom_props

    def extract_class_styles(self, css_text: str) -> ClassStyleMap:
        """Map each bare ``.class`` selector to its allow-listed, var-resolved declarations.

        Every bare class gets an entry, empty when none of its declarations are
        allow-listed.

        Deliberately ignores specificity, ``!important`` and the cascade: the
        last declaration of a property for a class anywhere in the sheet wins.
        A compound or more specific selector that would beat it in a browser is
        not considered, so the reported value can differ from the rendered one.
        """
        stripped = strip_comments(css_text)
        custom_props = self.parse_custom_properties(stripped)
        result: ClassStyleMap = {}
        for block in walk_css_rules(stripped):
            classes = []
            for part in selector_list(block.selector):
                match = BARE_CLASS_RE.match(part)
                if match:
                    classes.append(match.group(1))
            if not classes:
                continue
            props = {
                name: resolve_vars(value, custom_props)
                for name, value in parse_declarations(block.body)
                if name in self.style_props
            }
            for cls in classes:
                result.setdefault(cls, {}).update(props)
        logger.info(f"Extracted declared styles for {len(result)} classes")
        return result
