"""
Design-graph data model.

The manifest produced by the extraction sandbox is parsed into these pydantic
models. Node kinds form a tagged union on ``type`` so the classifier and the
assembler dispatch on the node class instead of probing for dict keys.

Engine-computed annotations (``_isStrokeDuplicate``, ``_renderBounds`` ...)
keep their underscore keys on the wire but are plain attributes here.
"""

from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ForgeModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


def _annotation(key: str, default: Any = None) -> Any:
    """Field for an engine annotation stored under an ``_underscore`` key."""
    return Field(
        default=default,
        validation_alias=AliasChoices(key, key.lstrip('_')),
        serialization_alias=key,
    )


# ============================================================================
# Paint
# ============================================================================

class Color(ForgeModel):
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0


class GradientStop(ForgeModel):
    position: float = 0.0
    color: Color = Field(default_factory=Color)


class SolidPaint(ForgeModel):
    type: Literal['SOLID']
    visible: bool = True
    opacity: float = 1.0
    color: Color = Field(default_factory=Color)


class GradientPaint(ForgeModel):
    type: Literal['GRADIENT_LINEAR', 'GRADIENT_RADIAL', 'GRADIENT_ANGULAR', 'GRADIENT_DIAMOND']
    visible: bool = True
    opacity: float = 1.0
    gradient_stops: List[GradientStop] = Field(default_factory=list)
    # 2x3 affine matrix [[a, c, e], [b, d, f]]
    gradient_transform: Optional[List[List[float]]] = None


class ImagePaint(ForgeModel):
    type: Literal['IMAGE']
    visible: bool = True
    opacity: float = 1.0
    image_hash: Optional[str] = None
    scale_mode: Optional[str] = None


Paint = Annotated[Union[SolidPaint, GradientPaint, ImagePaint], Field(discriminator='type')]


class Vector(ForgeModel):
    x: float = 0.0
    y: float = 0.0


class Effect(ForgeModel):
    """DROP_SHADOW, INNER_SHADOW, LAYER_BLUR or BACKGROUND_BLUR."""
    type: str
    visible: bool = True
    radius: float = 0.0
    color: Optional[Color] = None
    offset: Optional[Vector] = None


# ============================================================================
# Text, layout and interaction records
# ============================================================================

class TextStyle(ForgeModel):
    font_family: str = 'Inter'
    font_weight: float = 400
    font_style: str = 'Normal'
    font_size: float = 14
    line_height: Union[float, str] = 'AUTO'
    letter_spacing: float = 0.0
    text_align_horizontal: str = 'LEFT'
    text_align_vertical: str = 'TOP'
    text_decoration: str = 'NONE'
    text_case: str = 'ORIGINAL'


class AutoLayout(ForgeModel):
    mode: Literal['NONE', 'HORIZONTAL', 'VERTICAL'] = 'NONE'
    item_spacing: float = 0.0
    padding_top: float = 0.0
    padding_right: float = 0.0
    padding_bottom: float = 0.0
    padding_left: float = 0.0
    primary_axis_align_items: str = 'MIN'
    counter_axis_align_items: str = 'MIN'
    layout_wrap: str = 'NO_WRAP'

    @property
    def is_flow(self) -> bool:
        return self.mode != 'NONE'


# REST API vocabulary -> plugin API vocabulary
_CONSTRAINT_ALIASES = {
    'LEFT': 'MIN',
    'TOP': 'MIN',
    'RIGHT': 'MAX',
    'BOTTOM': 'MAX',
    'LEFT_RIGHT': 'STRETCH',
    'TOP_BOTTOM': 'STRETCH',
}

ConstraintKind = Literal['MIN', 'MAX', 'CENTER', 'STRETCH', 'SCALE']


class Constraints(ForgeModel):
    horizontal: ConstraintKind = 'MIN'
    vertical: ConstraintKind = 'MIN'

    @field_validator('horizontal', 'vertical', mode='before')
    @classmethod
    def normalize(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.upper()
            return _CONSTRAINT_ALIASES.get(v, v)
        return v


class Easing(ForgeModel):
    type: str = 'EASE_OUT'
    control_points: Optional[List[float]] = None


class Transition(ForgeModel):
    type: str = 'DISSOLVE'
    duration: float = 0.3
    easing: Easing = Field(default_factory=Easing)
    direction: Optional[str] = None


class Trigger(ForgeModel):
    type: str = 'ON_CLICK'
    delay: Optional[float] = None


class Action(ForgeModel):
    type: str = 'NAVIGATE'
    destination_id: Optional[str] = None
    transition: Optional[Transition] = None


class Reaction(ForgeModel):
    trigger: Trigger = Field(default_factory=Trigger)
    action: Action = Field(default_factory=Action)


class RenderBounds(ForgeModel):
    """Visual box (parent-relative) when effects bleed past the logical box."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


# ============================================================================
# Nodes
# ============================================================================

class BaseNode(ForgeModel):
    id: str
    name: str = ''
    visible: bool = True

    # Geometry, relative to the parent's local origin
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = 0.0

    corner_radius: Union[float, List[float]] = 0.0

    fills: List[Paint] = Field(default_factory=list)
    strokes: List[Paint] = Field(default_factory=list)
    stroke_weight: float = 0.0
    stroke_align: str = 'INSIDE'
    effects: List[Effect] = Field(default_factory=list)
    opacity: float = 1.0
    blend_mode: str = 'PASS_THROUGH'
    clips_content: bool = False

    constraints: Constraints = Field(default_factory=Constraints)
    layout_sizing_horizontal: Optional[Literal['FIXED', 'FILL', 'HUG']] = None
    layout_sizing_vertical: Optional[Literal['FIXED', 'FILL', 'HUG']] = None
    # ABSOLUTE children of an auto-layout frame are positioned freely
    layout_positioning: Optional[str] = None

    reactions: List[Reaction] = Field(default_factory=list)
    children: List['DesignNode'] = Field(default_factory=list)

    # Engine annotations, never authoritative design intent
    is_stroke_duplicate: bool = _annotation('_isStrokeDuplicate', False)
    resolved_image_id: Optional[str] = _annotation('_resolvedImageId')
    inferred_stroke_thickness: Optional[float] = _annotation('_inferredStrokeThickness')
    inferred_stroke_color: Optional[Color] = _annotation('_inferredStrokeColor')
    rasterized_image_hash: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('_rasterizedImageHash', '_imageKey', 'rasterizedImageHash'),
        serialization_alias='_rasterizedImageHash',
    )
    is_flattened: bool = _annotation('_isFlattened', False)
    is_hybrid: bool = _annotation('_isHybrid', False)
    render_bounds: Optional[RenderBounds] = _annotation('_renderBounds')
    shadow_image_hash: Optional[str] = _annotation('_shadowImageHash')
    shadow_asset_id: Optional[str] = _annotation('_shadowAssetId')


class TextNode(BaseNode):
    type: Literal['TEXT']
    characters: str = ''
    text_style: TextStyle = Field(default_factory=TextStyle)
    text_auto_resize: Optional[str] = None


class ShapeNode(BaseNode):
    type: Literal[
        'RECTANGLE', 'ELLIPSE', 'LINE', 'VECTOR', 'STAR', 'REGULAR_POLYGON', 'BOOLEAN_OPERATION'
    ]


class ContainerNode(BaseNode):
    type: Literal['FRAME', 'GROUP', 'COMPONENT', 'COMPONENT_SET', 'INSTANCE', 'SECTION']
    auto_layout: Optional[AutoLayout] = None
    overflow_direction: str = 'NONE'


DesignNode = Annotated[Union[TextNode, ShapeNode, ContainerNode], Field(discriminator='type')]

TextNode.model_rebuild()
ShapeNode.model_rebuild()
ContainerNode.model_rebuild()


# ============================================================================
# Manifest and snapshot
# ============================================================================

class Manifest(ForgeModel):
    version: str = '1.0.0'
    exported_at: Optional[str] = None
    root: DesignNode
    unresolved_content_hashes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices('unresolvedContentHashes', 'unresolvedImages', 'unresolved_content_hashes'),
        serialization_alias='unresolvedContentHashes',
    )
    # hash -> base64 PNG exported by the sandbox
    raw_content_by_hash: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices('rawContentByHash', 'exportedImages', 'raw_content_by_hash'),
        serialization_alias='rawContentByHash',
    )
    stats: Dict[str, Any] = Field(default_factory=dict)


class SnapshotEntry(ForgeModel):
    name: str = ''
    structural_hash: str = Field(
        default='',
        validation_alias=AliasChoices('structuralHash', 'hash', 'structural_hash'),
        serialization_alias='structuralHash',
    )
    asset_id: str = ''
    width: float = 0.0
    height: float = 0.0


class PreviousSnapshot(ForgeModel):
    version: str = '1.0.0'
    entries: Dict[str, SnapshotEntry] = Field(default_factory=dict)


# ============================================================================
# Tree helpers
# ============================================================================

def iter_nodes(node: BaseNode, include_hidden: bool = False) -> Iterator[BaseNode]:
    """Depth-first pre-order walk skipping stroke duplicates (and hidden nodes)."""
    if node.is_stroke_duplicate or (not node.visible and not include_hidden):
        return
    yield node
    for child in node.children:
        yield from iter_nodes(child, include_hidden)


def live_children(node: BaseNode) -> List[BaseNode]:
    """Children that take part in emission, in z-order."""
    return [c for c in node.children if c.visible and not c.is_stroke_duplicate]


def is_flow_container(node: BaseNode) -> bool:
    auto_layout = getattr(node, 'auto_layout', None)
    return auto_layout is not None and auto_layout.is_flow
