"""
Settings Module
Tunable parameters and read-only lookup tables shared by the comparison core.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

# Visual CSS properties worth comparing per class.
# Inherited text properties (font-family, letter-spacing) are too noisy and
# width/height are usually layout-computed rather than declared, so both are left out.
CLASS_STYLE_PROPS: Tuple[str, ...] = (
    'color',
    'background-color',
    'font-size',
    'font-weight',
    'padding-top',
    'padding-right',
    'padding-bottom',
    'padding-left',
    'margin-top',
    'margin-right',
    'margin-bottom',
    'margin-left',
    'max-width',
    'min-height',
    'display',
    'flex-direction',
    'justify-content',
    'align-items',
    'gap',
    'border-radius',
    'border-top-width',
    'border-right-width',
    'border-bottom-width',
    'border-left-width',
    'border-top-color',
    'border-right-color',
    'border-bottom-color',
    'border-left-color',
    'border-top-style',
    'opacity',
    'text-align',
    'line-height',
    'box-shadow',
    'text-decoration',
    'text-transform',
)

# Elements whose visible text is compared positionally
TEXT_SAMPLE_SELECTORS: Tuple[str, ...] = ('h1', 'h2', 'h3', 'h4', 'button', 'label')

NAV_LINK_SELECTOR = 'nav a'
IMAGE_SELECTOR = 'img'
LINK_SELECTOR = 'a[href]'

# Singleton landmarks used to pair elements that carry no id
SEMANTIC_TAGS: Tuple[str, ...] = ('nav', 'header', 'footer', 'main', 'aside')

VIEWPORTS: Dict[str, Tuple[int, int]] = {
    'mobile': (375, 812),
    'tablet': (768, 1024),
    'laptop': (1280, 800),
    'desktop': (1920, 1080),
}

WHITE = (255, 255, 255, 255)


@dataclass(frozen=True)
class DiffSettings:
    """Knobs for the pixel and structural comparison.

    ``max_shift=0`` turns strip alignment off. ``include_aa=False`` keeps
    anti-aliased edge pixels out of the changed count.
    """
    strip_height: int = 400
    max_shift: int = 300
    coarse_x: int = 16
    coarse_y: int = 8
    threshold: float = 0.1
    include_aa: bool = False
    diff_color: Tuple[int, int, int] = (255, 0, 100)
    aa_color: Tuple[int, int, int] = (255, 255, 0)
    alpha: float = 0.3

    class_change_cap: int = 60
    element_change_cap: int = 40
    content_change_cap: int = 50
    selector_cap: int = 50
    matches_per_selector: int = 20
    text_truncate: int = 200
    link_label_max: int = 60

    class_style_props: Tuple[str, ...] = CLASS_STYLE_PROPS
    text_sample_selectors: Tuple[str, ...] = TEXT_SAMPLE_SELECTORS
    semantic_tags: Tuple[str, ...] = SEMANTIC_TAGS
    nav_link_selector: str = NAV_LINK_SELECTOR
    image_selector: str = IMAGE_SELECTOR
    link_selector: str = LINK_SELECTOR

    def __post_init__(self):
        if self.strip_height <= 0:
            raise ValueError(f"strip_height must be positive, got {self.strip_height}")
        if self.max_shift < 0:
            raise ValueError(f"max_shift must not be negative, got {self.max_shift}")
        if self.coarse_x <= 0 or self.coarse_y <= 0:
            raise ValueError(f"coarse strides must be positive, got {self.coarse_x}x{self.coarse_y}")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError(f"alpha must be within [0, 1], got {self.alpha}")
        caps = (self.class_change_cap, self.element_change_cap, self.content_change_cap,
                self.selector_cap, self.matches_per_selector, self.text_truncate, self.link_label_max)
        if any(cap < 0 for cap in caps):
            raise ValueError("result caps must not be negative")

    @property
    def alignment_enabled(self) -> bool:
        return self.max_shift > 0


DEFAULT_SETTINGS = DiffSettings()
