"""
Layout override table.

Per-design patches (force a named node to stretch, center text inside an
unstyled button-like parent, drop duplicate text children under a wrapper)
are expressed as ordered rules supplied through configuration and applied as
a pre-pass, so the classifier and the geometry translator stay generic.
"""

import logging
import re
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from forge.base import has_flatten_tag, visible_effects, visible_fills, visible_strokes
from forge.models import BaseNode, TextNode

logger = logging.getLogger("forge.overrides")

OverrideAction = Literal['stretch', 'center_text', 'dedupe_text_children', 'strip_text_children']


class OverrideRule(BaseModel):
    """One ordered rule: a name regex, an action and an optional parent-name regex."""
    model_config = ConfigDict(str_strip_whitespace=True)

    pattern: str = Field(..., description="Regex searched in the node name", min_length=1)
    action: OverrideAction
    parent_pattern: Optional[str] = Field(default=None, description="Regex the parent name must match")

    def matches(self, node: BaseNode, parent: Optional[BaseNode]) -> bool:
        if not re.search(self.pattern, node.name):
            return False
        if self.parent_pattern is None:
            return True
        return parent is not None and re.search(self.parent_pattern, parent.name) is not None


def _is_unstyled(node: BaseNode) -> bool:
    return not (visible_fills(node) or visible_strokes(node) or visible_effects(node))


def _apply_stretch(node: BaseNode, parent: Optional[BaseNode]) -> None:
    node.constraints.horizontal = 'STRETCH'
    node.constraints.vertical = 'STRETCH'


def _apply_center_text(node: BaseNode, parent: Optional[BaseNode]) -> None:
    if not isinstance(node, TextNode) or parent is None or not _is_unstyled(parent):
        return
    node.text_style.text_align_horizontal = 'CENTER'
    node.text_style.text_align_vertical = 'CENTER'
    node.constraints.horizontal = 'CENTER'
    node.constraints.vertical = 'CENTER'


def _apply_dedupe_text_children(node: BaseNode, parent: Optional[BaseNode]) -> None:
    seen = set()
    kept = []
    for child in node.children:
        if isinstance(child, TextNode):
            if child.characters in seen:
                continue
            seen.add(child.characters)
        kept.append(child)
    node.children = kept


def _apply_strip_text_children(node: BaseNode, parent: Optional[BaseNode]) -> None:
    if not (node.is_flattened or has_flatten_tag(node.name)):
        return
    node.children = [c for c in node.children if not isinstance(c, TextNode)]


_ACTIONS = {
    'stretch': _apply_stretch,
    'center_text': _apply_center_text,
    'dedupe_text_children': _apply_dedupe_text_children,
    'strip_text_children': _apply_strip_text_children,
}


def apply_overrides(root: BaseNode, rules: Sequence[OverrideRule]) -> int:
    """Apply rules top-down over the tree; returns the number of rule hits."""
    if not rules:
        return 0
    hits = 0

    def visit(node: BaseNode, parent: Optional[BaseNode]) -> None:
        nonlocal hits
        for rule in rules:
            if rule.matches(node, parent):
                _ACTIONS[rule.action](node, parent)
                hits += 1
                logger.debug("Override %s applied to '%s' (%s)", rule.action, node.name, node.id)
        for child in node.children:
            visit(child, node)

    visit(root, None)
    return hits


def default_override_rules() -> List[OverrideRule]:
    return []
