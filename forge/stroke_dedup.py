"""
Stroke-duplication resolver.

Design tools without a native text outline fake one by stacking many copies
of the same text layer at small offsets under one real styled layer. This
pass finds those stacks among siblings, keeps one survivor annotated with an
inferred stroke, and drops the copies from the tree.

Median-based clustering:
1. Group sibling TEXT nodes by (characters, font size, font family)
2. Take the median x/y of the group
3. Split into "core" (within the cluster radius of the median) and outliers
4. A core with enough members and a tight spread is a stroke simulation
5. Survivor: styled outlier > last outlier > last group member
6. Thickness from the core spread, color from a core copy's fill
"""

import logging
import math
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from forge.base import first_solid_fill, gradient_fill, visible_effects
from forge.config import DedupThresholds
from forge.models import BaseNode, Color, TextNode

logger = logging.getLogger("forge.stroke_dedup")

GroupKey = Tuple[str, float, str]


def _group_text_children(parent: BaseNode) -> Dict[GroupKey, List[TextNode]]:
    groups: Dict[GroupKey, List[TextNode]] = OrderedDict()
    for child in parent.children:
        if isinstance(child, TextNode) and child.characters and not child.is_stroke_duplicate:
            key = (child.characters, child.text_style.font_size, child.text_style.font_family)
            groups.setdefault(key, []).append(child)
    return groups


def _spread(values: List[float]) -> float:
    return max(values) - min(values)


def _pick_survivor(group: List[TextNode], outliers: List[TextNode]) -> TextNode:
    for node in outliers:
        if gradient_fill(node) is not None or visible_effects(node):
            return node
    if outliers:
        return outliers[-1]
    return group[-1]


def _stroke_color(core: List[TextNode], survivor: TextNode) -> Optional[Color]:
    for node in core:
        if node is survivor:
            continue
        fill = first_solid_fill(node)
        if fill is not None:
            return fill.color.model_copy()
    return None


def collapse_group(group: List[TextNode], thresholds: DedupThresholds) -> Optional[TextNode]:
    """Collapse one candidate group in place; returns the survivor or None if rejected."""
    if len(group) < thresholds.min_group:
        return None

    xs = sorted(n.x for n in group)
    ys = sorted(n.y for n in group)
    median_x = xs[len(xs) // 2]
    median_y = ys[len(ys) // 2]

    core: List[TextNode] = []
    outliers: List[TextNode] = []
    for node in group:
        if abs(node.x - median_x) <= thresholds.cluster_radius and abs(node.y - median_y) <= thresholds.cluster_radius:
            core.append(node)
        else:
            outliers.append(node)

    if len(core) < thresholds.min_group:
        return None

    spread_x = _spread([n.x for n in core])
    spread_y = _spread([n.y for n in core])
    if spread_x > thresholds.max_spread or spread_y > thresholds.max_spread:
        return None

    survivor = _pick_survivor(group, outliers)
    for node in group:
        if node is not survivor:
            node.is_stroke_duplicate = True

    half_spread = max(spread_x, spread_y) / 2
    survivor.inferred_stroke_thickness = math.ceil(half_spread) if half_spread > 0 else 2
    color = _stroke_color(core, survivor)
    if color is not None:
        survivor.inferred_stroke_color = color
    return survivor


def deduplicate_text_strokes(parent: BaseNode, thresholds: Optional[DedupThresholds] = None) -> int:
    """Run the pass over ``parent`` and its subtree; returns the number of removed copies."""
    thresholds = thresholds or DedupThresholds()
    if not parent.children:
        return 0

    for key, group in _group_text_children(parent).items():
        survivor = collapse_group(group, thresholds)
        if survivor is not None:
            logger.debug(
                "Collapsed %d copies of '%s' into %s (stroke %spx)",
                len(group) - 1, key[0], survivor.id, survivor.inferred_stroke_thickness,
            )

    before = len(parent.children)
    parent.children = [c for c in parent.children if not c.is_stroke_duplicate]
    removed = before - len(parent.children)

    for child in parent.children:
        removed += deduplicate_text_strokes(child, thresholds)
    return removed
