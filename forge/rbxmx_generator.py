"""
RBXMX Generator - recursive tree assembler.

Composes classification, geometry, stroke inference and resolved assets into
a Roblox .rbxmx model (ScreenGui root, one <Item> per GUI object).

Key decisions:
- Referents come from a counter owned by the AssemblyContext, one per run
- Children are stacked by ZIndex in design order (Sibling behavior)
- Non-solid container backgrounds become a `_BG` underlay image
- Interactive names get an invisible `ClickTarget` overlay as last child
- Interactive children clipped by their parent are promoted to siblings
- Detached drop shadows are emitted just before their owner
- Empty fills stay transparent (nothing is fabricated)
"""

import itertools
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from forge.audit import ApproximationLog
from forge.base import (
    DEFAULT_FONT, FONT_MAP, OVERFLOW_TOLERANCE, SCALE_TYPE, TEXT_X_ALIGNMENT, TEXT_Y_ALIGNMENT,
    corner_radii, escape_xml, first_solid_fill, fmt_num, gradient_fill, gradient_rotation,
    image_fill, round_px, round_to, text_color, visible_strokes,
)
from forge.classifier import (
    Strategy, classify, is_dynamic_text, is_flattened, is_scroll_container, is_solid_fill_node,
)
from forge.config import ForgeConfig
from forge.geometry import Placement, UDim, UDim2, Vector2, geometry
from forge.hashing import needs_raster
from forge.interactions import InteractivityMatcher, map_reactions
from forge.models import (
    BaseNode, Color, Constraints, GradientPaint, SolidPaint, TextNode, is_flow_container, live_children,
)

ROBLOX_HEADER = (
    '<roblox xmlns:xmime="http://www.w3.org/2005/05/xmlmime" '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
    'xsi:noNamespaceSchemaLocation="http://www.roblox.com/roblox.xsd" version="4">'
)
ROBLOX_FOOTER = '</roblox>'

DEFAULT_GUI_NAME = 'FigmaForgeUI'

# Enum.HorizontalAlignment / Enum.VerticalAlignment
_H_ALIGN = {'CENTER': 0, 'MIN': 1, 'MAX': 2}
_V_ALIGN = {'CENTER': 0, 'MIN': 1, 'MAX': 2}
# Enum.ScrollingDirection
_SCROLL_DIRECTION = {'HORIZONTAL': 1, 'VERTICAL': 2, 'BOTH': 4}


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass
class AssemblyContext:
    """State for one assembly run; nothing is shared between runs."""
    config: ForgeConfig = field(default_factory=ForgeConfig)
    audit: ApproximationLog = field(default_factory=ApproximationLog)
    matcher: Optional[InteractivityMatcher] = None
    promoted: int = 0
    _refs: Iterator[int] = field(default_factory=itertools.count, repr=False)

    def __post_init__(self) -> None:
        if self.matcher is None:
            self.matcher = InteractivityMatcher(self.config.interactive_patterns)

    def next_ref(self) -> str:
        return f"RBX{next(self._refs)}"


@dataclass(frozen=True)
class ParentFrame:
    """What a child needs to know about where it is placed."""
    width: float
    height: float
    is_flow: bool = False


@dataclass
class AssemblyResult:
    output: str
    promoted: int = 0
    referents: int = 0


# ---------------------------------------------------------------------------
# Property writers
# ---------------------------------------------------------------------------

def _string(name: str, value: str) -> str:
    return f'<string name="{name}">{escape_xml(value)}</string>'


def _bool(name: str, value: bool) -> str:
    return f'<bool name="{name}">{"true" if value else "false"}</bool>'


def _int(name: str, value: int) -> str:
    return f'<int name="{name}">{int(value)}</int>'


def _float(name: str, value: float) -> str:
    return f'<float name="{name}">{fmt_num(value)}</float>'


def _token(name: str, value: int) -> str:
    return f'<token name="{name}">{int(value)}</token>'


def _color3(name: str, color: Color) -> str:
    return (
        f'<Color3 name="{name}"><R>{fmt_num(color.r)}</R>'
        f'<G>{fmt_num(color.g)}</G><B>{fmt_num(color.b)}</B></Color3>'
    )


def _udim(name: str, value: UDim) -> str:
    return f'<UDim name="{name}"><S>{fmt_num(value.scale)}</S><O>{int(value.offset)}</O></UDim>'


def _udim2(name: str, value: UDim2) -> str:
    return (
        f'<UDim2 name="{name}"><XS>{fmt_num(value.x.scale)}</XS><XO>{int(value.x.offset)}</XO>'
        f'<YS>{fmt_num(value.y.scale)}</YS><YO>{int(value.y.offset)}</YO></UDim2>'
    )


def _vector2(name: str, value: Vector2) -> str:
    return f'<Vector2 name="{name}"><X>{fmt_num(value.x)}</X><Y>{fmt_num(value.y)}</Y></Vector2>'


def _content(name: str, url: str) -> str:
    return f'<Content name="{name}"><url>{escape_xml(url)}</url></Content>'


def _font(family: str, weight: int, style: str) -> str:
    return (
        f'<Font name="FontFace"><Family><url>{family}</url></Family>'
        f'<Weight>{weight}</Weight><Style>{style}</Style></Font>'
    )


def _item(ctx: AssemblyContext, class_name: str, props: List[str], children: Optional[List[str]] = None) -> str:
    lines = [f'<Item class="{class_name}" referent="{ctx.next_ref()}">', '<Properties>']
    lines.extend(props)
    lines.append('</Properties>')
    lines.extend(children or [])
    lines.append('</Item>')
    return '\n'.join(lines)


def _gui_props(name: str, placement: Placement, z_index: int, frame: Optional[ParentFrame], rotation: float = 0) -> List[str]:
    props = [
        _string('Name', name),
        _bool('Visible', True),
        _int('ZIndex', z_index),
        _int('BorderSizePixel', 0),
        _udim2('Position', placement.position),
        _udim2('Size', placement.size),
    ]
    if placement.anchor != Vector2():
        props.append(_vector2('AnchorPoint', placement.anchor))
    if placement.automatic_size:
        props.append(_token('AutomaticSize', placement.automatic_size))
    if rotation:
        # Figma rotates counter-clockwise
        props.append(_float('Rotation', round_to(-rotation, 3)))
    if frame is not None and frame.is_flow:
        props.append(_int('LayoutOrder', z_index))
    return props


# ---------------------------------------------------------------------------
# Decorations (UICorner, UIGradient, UIStroke, reactions, click target)
# ---------------------------------------------------------------------------

def _corner_item(ctx: AssemblyContext, node: BaseNode) -> Optional[str]:
    if node.type == 'ELLIPSE':
        return _item(ctx, 'UICorner', [_udim('CornerRadius', UDim(0.5, 0))])
    radius, uniform = corner_radii(node)
    if radius <= 0:
        return None
    if not uniform:
        ctx.audit.record(
            'corner', node.id,
            f"'{node.name}' has per-corner radii {node.corner_radius}; using max {fmt_num(radius)}px",
        )
    return _item(ctx, 'UICorner', [_udim('CornerRadius', UDim(0.0, round_px(radius)))])


def _color_sequence(fill: GradientPaint) -> str:
    if not fill.gradient_stops:
        return '0 1 1 1 0 1 1 1 1 0'
    return ' '.join(
        f"{fmt_num(s.position)} {fmt_num(s.color.r)} {fmt_num(s.color.g)} {fmt_num(s.color.b)} 0"
        for s in fill.gradient_stops
    )


def _transparency_sequence(fill: GradientPaint) -> str:
    if not fill.gradient_stops:
        return '0 0 0 1 0 0'
    return ' '.join(
        f"{fmt_num(s.position)} {fmt_num(1 - s.color.a * fill.opacity)} 0"
        for s in fill.gradient_stops
    )


def _gradient_item(ctx: AssemblyContext, node: BaseNode, fill: GradientPaint) -> str:
    if fill.type != 'GRADIENT_LINEAR':
        ctx.audit.record(
            'gradient', node.id,
            f"{fill.type} on '{node.name}' approximated as a linear UIGradient",
        )
    props = [
        _bool('Enabled', True),
        _float('Rotation', gradient_rotation(fill.gradient_transform)),
        _vector2('Offset', Vector2()),
        f'<ColorSequence name="Color">{_color_sequence(fill)}</ColorSequence>',
        f'<NumberSequence name="Transparency">{_transparency_sequence(fill)}</NumberSequence>',
    ]
    return _item(ctx, 'UIGradient', props)


def _stroke_item(ctx: AssemblyContext, node: BaseNode) -> Optional[str]:
    strokes = visible_strokes(node)
    stroke = strokes[0] if strokes else None
    inferred = node.inferred_stroke_thickness

    if inferred:
        color = node.inferred_stroke_color or Color()
        thickness = inferred
    elif stroke is not None and node.stroke_weight > 0:
        if isinstance(stroke, SolidPaint):
            color = stroke.color
        else:
            ctx.audit.record('stroke', node.id, f"Non-solid stroke on '{node.name}' drawn with its first color")
            stops = getattr(stroke, 'gradient_stops', [])
            color = stops[0].color if stops else Color()
        thickness = node.stroke_weight
    else:
        return None

    is_text = isinstance(node, TextNode)
    props = [
        _string('Name', 'UIStroke'),
        # 0 = Contextual (text outline), 1 = Border
        _token('ApplyStrokeMode', 0 if is_text else 1),
        _color3('Color', color),
        _token('LineJoinMode', 0),
        _float('Thickness', round_px(thickness)),
        _float('Transparency', 0),
    ]
    return _item(ctx, 'UIStroke', props)


def _reaction_items(ctx: AssemblyContext, node: BaseNode) -> List[str]:
    return [
        _item(ctx, 'StringValue', [_string('Name', binding.value_name), _string('Value', binding.encode())])
        for binding in map_reactions(node, ctx.audit)
    ]


def _click_target(ctx: AssemblyContext, z_index: int) -> str:
    props = [
        _string('Name', 'ClickTarget'),
        _bool('Visible', True),
        _int('ZIndex', z_index),
        _int('BorderSizePixel', 0),
        _float('BackgroundTransparency', 1),
        _udim2('Position', UDim2()),
        _udim2('Size', UDim2.from_scale(1, 1)),
        _string('Text', ''),
        _bool('AutoButtonColor', False),
    ]
    return _item(ctx, 'TextButton', props)


def _background_transparency(node: BaseNode, fill: SolidPaint) -> float:
    return round_to(1 - fill.opacity * node.opacity)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def _font_family(ctx: AssemblyContext, family: str) -> str:
    mapped = FONT_MAP.get(family)
    if mapped:
        return mapped
    ctx.audit.record('font', family, f"Font '{family}' not in font map, falling back to BuilderSans")
    return DEFAULT_FONT


def _apply_text_case(text: str, case: str) -> str:
    if case == 'UPPER':
        return text.upper()
    if case == 'LOWER':
        return text.lower()
    if case == 'TITLE':
        return text.title()
    return text


def _text_auto_resize(mode: Optional[str]) -> tuple:
    """Return (AutomaticSize token, TextWrapped)."""
    if mode == 'WIDTH_AND_HEIGHT':
        return 3, False
    if mode == 'HEIGHT':
        return 2, True
    return 0, True


def _line_height(style) -> Optional[float]:
    if isinstance(style.line_height, str) or not style.line_height or not style.font_size:
        return None
    ratio = style.line_height / style.font_size
    if abs(ratio - 1.2) < 0.05:
        return None
    return round_to(ratio, 2)


def _text_name(ctx: AssemblyContext, node: TextNode) -> str:
    prefix = ctx.config.dynamic_prefix
    if ctx.config.text_export_mode == 'dynamic_prefix' and is_dynamic_text(node, prefix):
        if not node.name.startswith(prefix):
            return f"{prefix}{node.name}"
    return node.name


def _emit_text(ctx: AssemblyContext, node: TextNode, placement: Placement, z_index: int,
               frame: Optional[ParentFrame]) -> str:
    style = node.text_style
    auto_size, wrapped = _text_auto_resize(node.text_auto_resize)
    if placement.automatic_size:
        auto_size = placement.automatic_size
    placement = Placement(placement.position, placement.size, placement.anchor, auto_size)

    text = _apply_text_case(node.characters, style.text_case)
    rich = False
    if style.text_decoration == 'UNDERLINE':
        text, rich = f"<u>{escape_xml(text)}</u>", True
    elif style.text_decoration == 'STRIKETHROUGH':
        text, rich = f"<s>{escape_xml(text)}</s>", True
    if style.letter_spacing:
        ctx.audit.record('letter_spacing', node.id, f"Letter spacing on '{node.name}' dropped")

    weight = min(900, max(100, round_px(style.font_weight / 100) * 100))
    font_style = 'Italic' if 'italic' in style.font_style.lower() else 'Normal'
    solid = first_solid_fill(node)
    fill_opacity = solid.opacity if solid is not None and gradient_fill(node) is None else 1.0

    class_name = 'TextButton' if node.reactions else 'TextLabel'
    props = _gui_props(_text_name(ctx, node), placement, z_index, frame, node.rotation)
    props += [
        _float('BackgroundTransparency', 1),
        _string('Text', text),
        _float('TextSize', style.font_size),
        _font(_font_family(ctx, style.font_family), weight, font_style),
        _color3('TextColor3', text_color(node)),
        _float('TextTransparency', round_to(1 - fill_opacity * node.opacity)),
        _token('TextXAlignment', TEXT_X_ALIGNMENT.get(style.text_align_horizontal, 0)),
        _token('TextYAlignment', TEXT_Y_ALIGNMENT.get(style.text_align_vertical, 0)),
        _bool('TextWrapped', wrapped),
    ]
    if rich:
        props.append(_bool('RichText', True))
    line_height = _line_height(style)
    if line_height is not None:
        props.append(_float('LineHeight', line_height))
    if class_name == 'TextButton':
        props.append(_bool('AutoButtonColor', False))

    children: List[str] = []
    grad = gradient_fill(node)
    if grad is not None:
        children.append(_gradient_item(ctx, node, grad))
    stroke = _stroke_item(ctx, node)
    if stroke:
        children.append(stroke)
    children += _reaction_items(ctx, node)
    return _item(ctx, class_name, props, children)


# ---------------------------------------------------------------------------
# Raster leaves
# ---------------------------------------------------------------------------

def _emit_raster(ctx: AssemblyContext, node: BaseNode, placement: Placement, z_index: int,
                 frame: Optional[ParentFrame]) -> str:
    children: List[str] = []

    if is_solid_fill_node(node):
        class_name = 'ImageButton' if node.reactions else 'Frame'
        props = _gui_props(node.name, placement, z_index, frame, node.rotation)
        fill = first_solid_fill(node)
        props += [
            _color3('BackgroundColor3', fill.color),
            _float('BackgroundTransparency', _background_transparency(node, fill)),
        ]
        corner = _corner_item(ctx, node)
        if corner:
            children.append(corner)
    elif needs_raster(node):
        class_name = 'ImageButton' if node.reactions else 'ImageLabel'
        props = _gui_props(node.name, placement, z_index, frame, node.rotation)
        props.append(_float('BackgroundTransparency', 1))
        if node.resolved_image_id:
            fill = image_fill(node)
            scale_type = 0
            if fill is not None and not is_flattened(node) and fill.image_hash:
                scale_type = SCALE_TYPE.get(fill.scale_mode or '', 0)
            props += [_content('Image', node.resolved_image_id), _token('ScaleType', scale_type)]
            if node.opacity < 1:
                props.append(_float('ImageTransparency', round_to(1 - node.opacity)))
    else:
        # Nothing to draw: keep the box for layout, stay transparent
        class_name = 'ImageButton' if node.reactions else 'Frame'
        props = _gui_props(node.name, placement, z_index, frame, node.rotation)
        props.append(_float('BackgroundTransparency', 1))

    if class_name == 'ImageButton':
        props.append(_bool('AutoButtonColor', False))
    children += _reaction_items(ctx, node)
    if ctx.matcher.is_interactive(node):
        children.append(_click_target(ctx, 1))
    return _item(ctx, class_name, props, children)


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------

def _list_layout_items(ctx: AssemblyContext, node: BaseNode) -> List[str]:
    layout = node.auto_layout
    primary = layout.primary_axis_align_items
    counter = layout.counter_axis_align_items
    if primary not in _H_ALIGN:
        ctx.audit.record('flow_alignment', f"{node.id}:primary",
                         f"{primary} alignment on '{node.name}' approximated as MIN")
        primary = 'MIN'
    if counter not in _H_ALIGN:
        ctx.audit.record('flow_alignment', f"{node.id}:counter",
                         f"{counter} alignment on '{node.name}' approximated as MIN")
        counter = 'MIN'

    horizontal = layout.mode == 'HORIZONTAL'
    h_align = _H_ALIGN[primary] if horizontal else _H_ALIGN[counter]
    v_align = _V_ALIGN[counter] if horizontal else _V_ALIGN[primary]

    props = [
        _token('FillDirection', 0 if horizontal else 1),
        _udim('Padding', UDim(0.0, round_px(layout.item_spacing))),
        _token('HorizontalAlignment', h_align),
        _token('VerticalAlignment', v_align),
        _token('SortOrder', 2),
    ]
    if layout.layout_wrap == 'WRAP':
        props.append(_bool('Wraps', True))
    items = [_item(ctx, 'UIListLayout', props)]

    paddings = (layout.padding_top, layout.padding_right, layout.padding_bottom, layout.padding_left)
    if any(paddings):
        items.append(_item(ctx, 'UIPadding', [
            _udim('PaddingTop', UDim(0.0, round_px(layout.padding_top))),
            _udim('PaddingRight', UDim(0.0, round_px(layout.padding_right))),
            _udim('PaddingBottom', UDim(0.0, round_px(layout.padding_bottom))),
            _udim('PaddingLeft', UDim(0.0, round_px(layout.padding_left))),
        ]))
    return items


def _background_item(ctx: AssemblyContext, node: BaseNode, is_root: bool) -> str:
    rb = node.render_bounds
    if rb is not None and not is_root:
        position = UDim2.from_offset(rb.x - node.x, rb.y - node.y)
        size = UDim2.from_offset(rb.width, rb.height)
    else:
        position, size = UDim2(), UDim2.from_scale(1, 1)
    props = [
        _string('Name', '_BG'),
        _bool('Visible', True),
        _int('ZIndex', 0),
        _int('BorderSizePixel', 0),
        _float('BackgroundTransparency', 1),
        _udim2('Position', position),
        _udim2('Size', size),
    ]
    if node.resolved_image_id:
        props += [_content('Image', node.resolved_image_id), _token('ScaleType', 0)]
    if node.opacity < 1:
        props.append(_float('ImageTransparency', round_to(1 - node.opacity)))
    return _item(ctx, 'ImageLabel', props)


def _overflows(child: BaseNode, parent: BaseNode) -> bool:
    return (
        child.x < -OVERFLOW_TOLERANCE
        or child.y < -OVERFLOW_TOLERANCE
        or child.x + child.width > parent.width + OVERFLOW_TOLERANCE
        or child.y + child.height > parent.height + OVERFLOW_TOLERANCE
    )


def _canvas_size(node: BaseNode) -> UDim2:
    right = max((c.x + c.width for c in live_children(node)), default=0)
    bottom = max((c.y + c.height for c in live_children(node)), default=0)
    return UDim2(UDim(0.0, int(-(-right // 1))), UDim(0.0, int(-(-bottom // 1))))


def _emit_container(ctx: AssemblyContext, node: BaseNode, placement: Placement, z_index: int,
                    frame: Optional[ParentFrame], is_root: bool) -> Tuple[str, List[BaseNode]]:
    """Return the container item plus children promoted out of it."""
    flow = is_flow_container(node)
    scroll = is_scroll_container(node)
    solid = is_solid_fill_node(node)
    hybrid = not solid and needs_raster(node)

    if scroll:
        class_name = 'ScrollingFrame'
    elif hybrid and flow:
        # An underlay child would be taken over by UIListLayout
        class_name = 'ImageButton' if node.reactions else 'ImageLabel'
    elif node.reactions:
        class_name = 'ImageButton'
    else:
        class_name = 'Frame'

    props = _gui_props(node.name, placement, z_index, frame, node.rotation)
    if solid:
        fill = first_solid_fill(node)
        props += [
            _color3('BackgroundColor3', fill.color),
            _float('BackgroundTransparency', _background_transparency(node, fill)),
        ]
    else:
        props.append(_float('BackgroundTransparency', 1))
    if hybrid and flow and node.resolved_image_id:
        props += [_content('Image', node.resolved_image_id), _token('ScaleType', 0)]
        if node.opacity < 1:
            props.append(_float('ImageTransparency', round_to(1 - node.opacity)))
    if node.clips_content and not scroll:
        props.append(_bool('ClipsDescendants', True))
    if scroll:
        direction = _SCROLL_DIRECTION.get(node.overflow_direction, 4)
        props += [
            _bool('ClipsDescendants', True),
            _udim2('CanvasSize', _canvas_size(node)),
            _token('ScrollingDirection', direction),
            _int('ScrollBarThickness', 4),
            _bool('ScrollingEnabled', True),
        ]
    if class_name == 'ImageButton':
        props.append(_bool('AutoButtonColor', False))

    children = live_children(node)
    if node.opacity < 1 and children:
        ctx.audit.record(
            'group_opacity', node.id,
            f"Opacity {fmt_num(node.opacity)} on '{node.name}' applied to its background only",
        )

    items: List[str] = []
    if hybrid and not flow:
        items.append(_background_item(ctx, node, is_root))
    if solid:
        corner = _corner_item(ctx, node)
        if corner:
            items.append(corner)
    if flow:
        items += _list_layout_items(ctx, node)

    child_frame = ParentFrame(node.width, node.height, flow)
    z_counter = itertools.count(1)
    promoted: List[BaseNode] = []
    for child in children:
        if not flow and _overflows(child, node):
            can_promote = (
                node.clips_content and ctx.matcher.is_interactive(child)
                and not is_root and not scroll and not (frame and frame.is_flow)
            )
            if can_promote:
                promoted.append(child.model_copy(update={
                    'x': node.x + child.x,
                    'y': node.y + child.y,
                    'constraints': Constraints(),
                }))
                ctx.promoted += 1
                continue
            if not scroll:
                ctx.audit.record(
                    'overflow', child.id,
                    f"'{child.name}' extends past its parent '{node.name}' and is left in place",
                )
        items += emit_node(ctx, child, child_frame, lambda: next(z_counter))

    items += _reaction_items(ctx, node)
    if ctx.matcher.is_interactive(node):
        items.append(_click_target(ctx, next(z_counter)))

    return _item(ctx, class_name, props, items), promoted


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def _emit_shadow(ctx: AssemblyContext, node: BaseNode, frame: Optional[ParentFrame], is_root: bool,
                 z_index: int) -> str:
    box = node.render_bounds
    parent_w = frame.width if frame else node.width
    parent_h = frame.height if frame else node.height
    placement = geometry(node, False, parent_w, parent_h, is_root, box=box)
    props = _gui_props(f"{node.name}_Shadow", placement, z_index, None)
    props += [
        _float('BackgroundTransparency', 1),
        _content('Image', node.shadow_asset_id),
        _token('ScaleType', 0),
    ]
    return _item(ctx, 'ImageLabel', props)


def emit_node(ctx: AssemblyContext, node: BaseNode, frame: Optional[ParentFrame],
              next_z: Callable[[], int], is_root: bool = False) -> List[str]:
    """Emit a node as a list of sibling items: [shadow], node, [promoted children]."""
    if not node.visible or node.is_stroke_duplicate:
        return []

    items: List[str] = []
    parent_flow = bool(frame and frame.is_flow) and node.layout_positioning != 'ABSOLUTE'
    parent_w = frame.width if frame else node.width
    parent_h = frame.height if frame else node.height

    if node.shadow_asset_id:
        if parent_flow:
            ctx.audit.record('shadow', node.id, f"Detached shadow of '{node.name}' dropped inside a list layout")
        else:
            items.append(_emit_shadow(ctx, node, frame, is_root, next_z()))

    z_index = next_z()
    strategy = classify(node)
    if strategy == Strategy.TEXT:
        placement = geometry(node, parent_flow, parent_w, parent_h, is_root)
        items.append(_emit_text(ctx, node, placement, z_index, frame))
    elif strategy == Strategy.RASTER:
        box = node.render_bounds if (not is_root and needs_raster(node) and not is_solid_fill_node(node)) else None
        placement = geometry(node, parent_flow, parent_w, parent_h, is_root, box=box)
        items.append(_emit_raster(ctx, node, placement, z_index, frame))
    else:
        placement = geometry(node, parent_flow, parent_w, parent_h, is_root)
        item, promoted = _emit_container(ctx, node, placement, z_index, frame, is_root)
        items.append(item)
        # Promoted children live in this node's parent frame, free-floating
        free_frame = ParentFrame(parent_w, parent_h, False)
        for copy in promoted:
            items += emit_node(ctx, copy, free_frame, next_z)
    return items


def assemble_rbxmx(root: BaseNode, config: Optional[ForgeConfig] = None,
                   audit: Optional[ApproximationLog] = None) -> AssemblyResult:
    """Assemble a complete .rbxmx document for ``root`` wrapped in a ScreenGui."""
    ctx = AssemblyContext(config=config or ForgeConfig(), audit=audit if audit is not None else ApproximationLog())
    z_counter = itertools.count(1)
    body = emit_node(ctx, root, None, lambda: next(z_counter), is_root=True)

    gui_props = [
        _string('Name', root.name or DEFAULT_GUI_NAME),
        _bool('IgnoreGuiInset', True),
        _bool('ResetOnSpawn', False),
        _token('ZIndexBehavior', 1),
        _bool('Enabled', True),
    ]
    screen_gui = _item(ctx, 'ScreenGui', gui_props, body)
    output = '\n'.join([ROBLOX_HEADER, screen_gui, ROBLOX_FOOTER])
    return AssemblyResult(output=output, promoted=ctx.promoted, referents=next(ctx._refs))
