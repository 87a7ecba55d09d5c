"""
Incremental diff engine.

Compares a structural fingerprint of every visible node against a snapshot
saved by the previous run. Unchanged nodes reuse their previous asset id and
skip the upload path entirely.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from forge.base import round_px
from forge.hashing import canonical_json, sha256_hex
from forge.models import BaseNode, ImagePaint, PreviousSnapshot, SnapshotEntry, TextNode, iter_nodes

logger = logging.getLogger("forge.diff")

STRUCTURAL_HASH_LENGTH = 12


def _fill_summary(fill: Any) -> Dict[str, Any]:
    summary: Dict[str, Any] = {'type': fill.type, 'opacity': fill.opacity}
    color = getattr(fill, 'color', None)
    if color is not None:
        summary['color'] = color.model_dump()
    if isinstance(fill, ImagePaint):
        summary['imageHash'] = fill.image_hash
    return summary


def structural_fingerprint(node: BaseNode) -> Dict[str, Any]:
    """Visually relevant subset of a node; volatile fields are left out."""
    return {
        'name': node.name,
        'width': round_px(node.width),
        'height': round_px(node.height),
        'fills': [_fill_summary(f) for f in node.fills],
        'effects': [
            {'type': e.type, 'radius': e.radius, 'color': e.color.model_dump() if e.color else None}
            for e in node.effects
        ],
        'opacity': node.opacity,
        'cornerRadius': node.corner_radius,
        'characters': node.characters if isinstance(node, TextNode) else None,
        'childCount': len(node.children),
        'childNames': [c.name for c in node.children],
    }


def structural_hash(node: BaseNode) -> str:
    return sha256_hex(canonical_json(structural_fingerprint(node)))[:STRUCTURAL_HASH_LENGTH]


@dataclass
class DiffResult:
    changed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    # node id -> previously resolved asset reference
    reuse_map: Dict[str, str] = field(default_factory=dict)

    def stats(self) -> Dict[str, int]:
        return {
            'changed': len(self.changed),
            'unchanged': len(self.unchanged),
            'added': len(self.added),
            'removed': len(self.removed),
            'reusable': len(self.reuse_map),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'changed': self.changed,
            'unchanged': self.unchanged,
            'added': self.added,
            'removed': self.removed,
            'reuseMap': self.reuse_map,
            'stats': self.stats(),
        }


def compute_diff(root: BaseNode, previous: Optional[PreviousSnapshot]) -> DiffResult:
    """Classify every visible node as changed, unchanged, added or removed."""
    result = DiffResult()
    current = {node.id: structural_hash(node) for node in iter_nodes(root)}

    if previous is None:
        result.added = list(current)
        return result

    for node_id, digest in current.items():
        entry = previous.entries.get(node_id)
        if entry is None:
            result.added.append(node_id)
        elif entry.structural_hash != digest:
            result.changed.append(node_id)
        else:
            result.unchanged.append(node_id)
            if entry.asset_id:
                result.reuse_map[node_id] = entry.asset_id

    result.removed = [node_id for node_id in previous.entries if node_id not in current]
    return result


def build_snapshot(root: BaseNode, asset_map: Optional[Mapping[str, str]] = None) -> PreviousSnapshot:
    """Snapshot of the tree for the next run; ``asset_map`` defaults to resolved ids on the nodes."""
    entries: Dict[str, SnapshotEntry] = {}
    for node in iter_nodes(root):
        if asset_map is not None:
            asset_id = asset_map.get(node.id, '')
        else:
            asset_id = node.resolved_image_id or ''
        entries[node.id] = SnapshotEntry(
            name=node.name,
            structural_hash=structural_hash(node),
            asset_id=asset_id,
            width=round_px(node.width),
            height=round_px(node.height),
        )
    return PreviousSnapshot(entries=entries)


def snapshot_to_json(snapshot: PreviousSnapshot, source_node_id: str = '') -> str:
    payload = snapshot.model_dump(by_alias=True)
    payload['generatedAt'] = datetime.now(timezone.utc).isoformat()
    payload['sourceNodeId'] = source_node_id
    return json.dumps(payload, indent=2)


def load_snapshot(source: Union[str, Path, Mapping[str, Any], None]) -> Optional[PreviousSnapshot]:
    """Load a previous snapshot; missing or malformed input yields None (all nodes added)."""
    if source is None:
        return None
    try:
        if isinstance(source, Mapping):
            data = source
        else:
            data = json.loads(Path(source).read_text(encoding='utf-8'))
        return PreviousSnapshot.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        logger.warning("Previous snapshot unusable (%s), treating every node as added", e)
        return None
