"""
Geometry & constraint translator.

Converts parent-relative pixel boxes into Roblox scale+offset primitives
under three regimes, checked in order: flow-managed child, root, free.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from forge.base import AUTOMATIC_SIZE, round_px, round_to
from forge.models import BaseNode, RenderBounds


@dataclass(frozen=True)
class UDim:
    scale: float = 0.0
    offset: int = 0


@dataclass(frozen=True)
class UDim2:
    x: UDim = field(default_factory=UDim)
    y: UDim = field(default_factory=UDim)

    @classmethod
    def from_offset(cls, x: float, y: float) -> "UDim2":
        return cls(UDim(0.0, round_px(x)), UDim(0.0, round_px(y)))

    @classmethod
    def from_scale(cls, x: float, y: float) -> "UDim2":
        return cls(UDim(x, 0), UDim(y, 0))


@dataclass(frozen=True)
class Vector2:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Placement:
    position: UDim2
    size: UDim2
    anchor: Vector2 = field(default_factory=Vector2)
    automatic_size: int = 0


def _flow_axis(sizing: Optional[str], length: float) -> UDim:
    if sizing == 'FILL':
        return UDim(1.0, 0)
    # HUG and FIXED both keep the designed pixel length
    return UDim(0.0, round_px(length))


def _automatic_size(node: BaseNode) -> int:
    hug_x = node.layout_sizing_horizontal == 'HUG'
    hug_y = node.layout_sizing_vertical == 'HUG'
    if hug_x and hug_y:
        return AUTOMATIC_SIZE['XY']
    if hug_x:
        return AUTOMATIC_SIZE['X']
    if hug_y:
        return AUTOMATIC_SIZE['Y']
    return AUTOMATIC_SIZE['NONE']


def _free_axis(kind: str, pos: float, length: float, parent_length: float) -> Tuple[UDim, UDim, float]:
    """Return (position, size, anchor) for one axis."""
    if kind == 'SCALE' and parent_length <= 0:
        kind = 'MIN'

    if kind == 'MAX':
        return UDim(1.0, round_px(pos + length - parent_length)), UDim(0.0, round_px(length)), 1.0
    if kind == 'CENTER':
        return UDim(0.5, round_px(pos + length / 2 - parent_length / 2)), UDim(0.0, round_px(length)), 0.5
    if kind == 'STRETCH':
        # Negative size offset is the combined inset from both edges
        return UDim(0.0, round_px(pos)), UDim(1.0, round_px(length - parent_length)), 0.0
    if kind == 'SCALE':
        return UDim(round_to(pos / parent_length), 0), UDim(round_to(length / parent_length), 0), 0.0
    return UDim(0.0, round_px(pos)), UDim(0.0, round_px(length)), 0.0


def geometry(
    node: BaseNode,
    parent_is_flow_managed: bool,
    parent_width: float,
    parent_height: float,
    is_root: bool,
    box: Optional[RenderBounds] = None,
) -> Placement:
    """Translate a node's box into position, size and anchor.

    ``box`` overrides the logical box (used for expanded render bounds).
    Children with ``layoutPositioning: ABSOLUTE`` inside an auto-layout parent
    are placed freely.
    """
    x = box.x if box else node.x
    y = box.y if box else node.y
    width = box.width if box else node.width
    height = box.height if box else node.height

    if parent_is_flow_managed and node.layout_positioning != 'ABSOLUTE':
        size = UDim2(
            _flow_axis(node.layout_sizing_horizontal, width),
            _flow_axis(node.layout_sizing_vertical, height),
        )
        return Placement(UDim2(), size, Vector2(), _automatic_size(node))

    if is_root:
        return Placement(
            position=UDim2.from_scale(0.5, 0.5),
            size=UDim2.from_offset(width, height),
            anchor=Vector2(0.5, 0.5),
        )

    pos_x, size_x, anchor_x = _free_axis(node.constraints.horizontal, x, width, parent_width)
    pos_y, size_y, anchor_y = _free_axis(node.constraints.vertical, y, height, parent_height)
    return Placement(UDim2(pos_x, pos_y), UDim2(size_x, size_y), Vector2(anchor_x, anchor_y))
