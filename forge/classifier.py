"""
Classification engine.

``classify`` maps one design node to its output strategy. It looks at the
node alone (never at siblings or ancestors) and has no side effects, so every
other pass can call it freely.
"""

import re
from enum import Enum
from typing import Iterator

from forge.base import has_flatten_tag, visible_fills, visible_strokes
from forge.models import BaseNode, ContainerNode, SolidPaint, TextNode, live_children


class Strategy(str, Enum):
    """Output representation for a design node."""
    RASTER = "raster"
    TEXT = "text"
    CONTAINER = "container"


def is_flattened(node: BaseNode) -> bool:
    return node.is_flattened or has_flatten_tag(node.name)


def classify(node: BaseNode) -> Strategy:
    """Pick RASTER, TEXT or CONTAINER for a node.

    Priority: flatten tag -> RASTER; TEXT type -> TEXT; no children -> RASTER;
    otherwise CONTAINER.
    """
    if is_flattened(node):
        return Strategy.RASTER
    if isinstance(node, TextNode):
        return Strategy.TEXT
    if not live_children(node):
        return Strategy.RASTER
    return Strategy.CONTAINER


def is_solid_fill_node(node: BaseNode) -> bool:
    """True when the node can be drawn with a native background color.

    Exactly one visible fill, that fill is SOLID, no visible stroke and no
    flatten tag. These nodes never reach the asset cache.
    """
    if isinstance(node, TextNode) or is_flattened(node):
        return False
    fills = visible_fills(node)
    if len(fills) != 1 or not isinstance(fills[0], SolidPaint):
        return False
    return not visible_strokes(node)


def is_scroll_container(node: BaseNode) -> bool:
    return isinstance(node, ContainerNode) and node.overflow_direction not in ('NONE', '')


# Layer names that usually carry runtime-bound values
_DYNAMIC_NAME_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r'price', r'^unit', r'^socket', r'^stats', r'^timer', r'^count', r'^amount',
        r'^level', r'^score', r'^currency', r'^health', r'^progress', r'^rank',
        r'^value', r'^quantity',
    )
]

# Placeholder-looking text content
_DYNAMIC_TEXT_PATTERNS = [
    re.compile(r'^\{.+\}$'),
    re.compile(r'^\$[\d.,]+[KMBkmb]?$'),
    re.compile(r'^[\d,]+$'),
    re.compile(r'^\d+:\d+$'),
    re.compile(r'^x[\d.]+$', re.IGNORECASE),
    re.compile(r'^Level \d+$', re.IGNORECASE),
    re.compile(r'^Lv\.?\d+$', re.IGNORECASE),
    re.compile(r'^Player ?Name$', re.IGNORECASE),
    re.compile(r'^\d+%$'),
    re.compile(r'^\.\.\.'),
    re.compile('→'),
    re.compile(r'^\?$'),
]


def is_dynamic_text(node: TextNode, prefix: str = '$') -> bool:
    """Guess whether a text layer holds a runtime value rather than copy."""
    if node.name.startswith(prefix):
        return True
    if any(p.search(node.name) for p in _DYNAMIC_NAME_PATTERNS):
        return True
    text = node.characters.strip()
    if not text:
        return False
    return any(p.search(text) for p in _DYNAMIC_TEXT_PATTERNS)


def iter_emitted_nodes(node: BaseNode) -> Iterator[BaseNode]:
    """Pre-order walk over nodes that reach the output.

    Stops at RASTER nodes: a flattened subtree is drawn from its root's pixels,
    so its descendants are never emitted on their own.
    """
    if node.is_stroke_duplicate or not node.visible:
        return
    yield node
    if classify(node) == Strategy.RASTER:
        return
    for child in node.children:
        yield from iter_emitted_nodes(child)
