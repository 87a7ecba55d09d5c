"""
Content hashes for raster content.

A node that needs pixels is keyed by a content hash: the declared image-fill
hash when there is one, else an extractor-provided raster key, else a
synthetic hash over a canonical (sorted-key) JSON of its visual properties.
Identical visuals hash identically, so they share one uploaded asset.
"""

import hashlib
import json
from typing import Any, Collection, Dict, Optional

from forge.base import (
    drop_shadow, image_fill, safe_node_key, visible_effects, visible_fills, visible_strokes,
)
from forge.classifier import Strategy, classify, is_flattened, is_solid_fill_node, iter_emitted_nodes
from forge.models import BaseNode, TextNode, live_children

SYNTHETIC_PREFIX = 'vis_'
RASTER_PREFIX = 'raster_'
SHADOW_PREFIX = 'shadow_'


def canonical_json(value: Any) -> str:
    """Stable serialization: sorted keys, no whitespace, floats rounded to 3 places."""
    return json.dumps(_canon(value), sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def _canon(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        rounded = round(value, 3)
        return int(rounded) if rounded == int(rounded) else rounded
    if isinstance(value, dict):
        return {str(k): _canon(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canon(v) for v in value]
    return value


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def visual_properties(node: BaseNode, include_children: bool = False) -> Dict[str, Any]:
    props: Dict[str, Any] = {
        'type': node.type,
        'width': node.width,
        'height': node.height,
        'rotation': node.rotation,
        'cornerRadius': node.corner_radius,
        'fills': [f.model_dump(mode='json', by_alias=True) for f in visible_fills(node)],
        'strokes': [s.model_dump(mode='json', by_alias=True) for s in visible_strokes(node)],
        'strokeWeight': node.stroke_weight,
        'strokeAlign': node.stroke_align,
        'effects': [e.model_dump(mode='json', by_alias=True) for e in visible_effects(node)],
        'opacity': node.opacity,
    }
    if isinstance(node, TextNode):
        props['characters'] = node.characters
        props['textStyle'] = node.text_style.model_dump(mode='json', by_alias=True)
    if include_children:
        props['children'] = [
            dict(visual_properties(c, include_children=True), x=c.x, y=c.y)
            for c in live_children(node)
        ]
    return props


def synthetic_hash(node: BaseNode) -> str:
    payload = canonical_json(visual_properties(node, include_children=is_flattened(node)))
    return SYNTHETIC_PREFIX + sha256_hex(payload)[:16]


def raster_key(node: BaseNode) -> str:
    return RASTER_PREFIX + safe_node_key(node.id)


def shadow_key(node: BaseNode) -> str:
    return SHADOW_PREFIX + safe_node_key(node.id)


def needs_raster(node: BaseNode) -> bool:
    """Whether the node (or its background, for containers) must be drawn from pixels."""
    if is_solid_fill_node(node):
        return False
    strategy = classify(node)
    if strategy == Strategy.TEXT:
        return False
    if strategy == Strategy.CONTAINER:
        return node.is_hybrid or bool(visible_fills(node) or visible_strokes(node))
    return (
        is_flattened(node)
        or node.rasterized_image_hash is not None
        or bool(visible_fills(node) or visible_strokes(node) or visible_effects(node))
    )


def _image_fill_hash(node: BaseNode) -> Optional[str]:
    fill = image_fill(node)
    if fill is not None and fill.image_hash and not is_flattened(node) and classify(node) == Strategy.RASTER:
        return fill.image_hash
    return None


def content_hash(node: BaseNode, declared: Collection[str] = ()) -> Optional[str]:
    """Content hash for a node needing raster content, None when it needs none."""
    if not needs_raster(node):
        return None
    fill_hash = _image_fill_hash(node)
    if fill_hash:
        return fill_hash
    if node.rasterized_image_hash:
        return node.rasterized_image_hash
    key = raster_key(node)
    if key in declared:
        return key
    return synthetic_hash(node)


def shadow_hash(node: BaseNode, declared: Collection[str] = ()) -> Optional[str]:
    """Hash of a detached drop-shadow image, if the node carries one."""
    if node.shadow_image_hash:
        return node.shadow_image_hash
    if drop_shadow(node) is None:
        return None
    key = shadow_key(node)
    return key if key in declared else None


def backfill_raster_hashes(root: BaseNode, declared: Collection[str]) -> int:
    """Annotate nodes whose pixels were exported under their node key.

    Extractors sometimes export ``raster_<id>`` / ``shadow_<id>`` blobs without
    setting the matching hash on the node. Returns how many fields were set.
    """
    declared = set(declared)
    filled = 0
    for node in iter_emitted_nodes(root):
        if (not node.rasterized_image_hash and raster_key(node) in declared
                and needs_raster(node) and not _image_fill_hash(node)):
            node.rasterized_image_hash = raster_key(node)
            filled += 1
        if not node.shadow_image_hash and drop_shadow(node) is not None and shadow_key(node) in declared:
            node.shadow_image_hash = shadow_key(node)
            filled += 1
    return filled
