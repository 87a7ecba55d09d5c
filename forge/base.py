"""
Shared constants and helpers for the compiler passes.

Single source of truth for values used by the classifier, the hashing pass
and the rbxmx generator. Import from here instead of duplicating.
"""

import math
import re
from typing import List, Optional, Tuple

from forge.models import BaseNode, Color, GradientPaint, ImagePaint, SolidPaint, TextNode

# ============================================================================
# Conventions
# ============================================================================

# Name tags that force a node (and its subtree) into a single raster
FLATTEN_TAGS = ('[Flatten]', '[Raster]', '[Flattened]')

ASSET_URI_PREFIX = 'rbxassetid://'

# Half a pixel of slack before a child counts as overflowing its parent
OVERFLOW_TOLERANCE = 0.5

# ============================================================================
# Font mapping
# ============================================================================

FONT_MAP = {
    # Exact matches (Roblox ships these)
    'Fredoka One': 'rbxassetid://12187365364',
    'Fredoka': 'rbxassetid://12187365364',

    # Sans-serif
    'Inter': 'rbxasset://fonts/families/BuilderSans.json',
    'Roboto': 'rbxasset://fonts/families/BuilderSans.json',
    'Open Sans': 'rbxasset://fonts/families/SourceSansPro.json',
    'Lato': 'rbxasset://fonts/families/SourceSansPro.json',
    'Arial': 'rbxasset://fonts/families/SourceSansPro.json',
    'Helvetica': 'rbxasset://fonts/families/SourceSansPro.json',
    'DM Sans': 'rbxasset://fonts/families/BuilderSans.json',
    'Work Sans': 'rbxasset://fonts/families/BuilderSans.json',
    'Outfit': 'rbxasset://fonts/families/BuilderSans.json',

    # Display / rounded
    'Poppins': 'rbxasset://fonts/families/GothamSSm.json',
    'Montserrat': 'rbxasset://fonts/families/GothamSSm.json',
    'Nunito': 'rbxasset://fonts/families/GothamSSm.json',
    'Raleway': 'rbxasset://fonts/families/GothamSSm.json',
    'Quicksand': 'rbxasset://fonts/families/GothamSSm.json',

    # Game / display
    'Bangers': 'rbxasset://fonts/families/Bangers.json',
    'Bungee': 'rbxasset://fonts/families/PressStart2P.json',
    'Comic Neue': 'rbxasset://fonts/families/ComicNeueAngular.json',
    'Luckiest Guy': 'rbxasset://fonts/families/LuckiestGuy.json',
    'Permanent Marker': 'rbxasset://fonts/families/IndieFlower.json',
    'Titan One': 'rbxasset://fonts/families/Bangers.json',
    'Boogaloo': 'rbxasset://fonts/families/Bangers.json',
    'Lilita One': 'rbxasset://fonts/families/Bangers.json',
    'Creepster': 'rbxasset://fonts/families/Creepster.json',
    'Special Elite': 'rbxasset://fonts/families/SpecialElite.json',

    # Serif
    'Georgia': 'rbxasset://fonts/families/Merriweather.json',
    'Times New Roman': 'rbxasset://fonts/families/Merriweather.json',
    'Playfair Display': 'rbxasset://fonts/families/Merriweather.json',

    # Monospace
    'Fira Code': 'rbxasset://fonts/families/RobotoMono.json',
    'JetBrains Mono': 'rbxasset://fonts/families/RobotoMono.json',
    'Source Code Pro': 'rbxasset://fonts/families/RobotoMono.json',
    'Courier New': 'rbxasset://fonts/families/RobotoMono.json',
}

DEFAULT_FONT = 'rbxasset://fonts/families/BuilderSans.json'

# Roblox enum tokens
TEXT_X_ALIGNMENT = {'LEFT': 0, 'RIGHT': 1, 'CENTER': 2, 'JUSTIFIED': 0}
TEXT_Y_ALIGNMENT = {'TOP': 0, 'CENTER': 1, 'BOTTOM': 2}
AUTOMATIC_SIZE = {'NONE': 0, 'X': 1, 'Y': 2, 'XY': 3}

# Figma scaleMode -> Roblox ScaleType (0=Stretch, 2=Tile, 3=Fit, 4=Crop)
SCALE_TYPE = {'FIT': 3, 'FILL': 4, 'CROP': 4, 'TILE': 2}


# ============================================================================
# Numbers and strings
# ============================================================================

def round_px(value: float) -> int:
    """Round half up to a whole pixel (no banker's rounding)."""
    return int(math.floor(value + 0.5))


def round_to(value: float, decimals: int = 5) -> float:
    factor = 10 ** decimals
    rounded = math.floor(value * factor + 0.5) / factor
    return 0.0 if rounded == 0 else rounded


def fmt_num(value: float) -> str:
    """Render a number the way the target format expects (no trailing .0)."""
    value = round_to(value)
    if value == int(value):
        return str(int(value))
    return repr(value)


def escape_xml(text: str) -> str:
    return (
        text.replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
        .replace("'", '&apos;')
    )


def has_flatten_tag(name: str) -> bool:
    return any(tag in name for tag in FLATTEN_TAGS)


def safe_node_key(node_id: str) -> str:
    """Node ids contain ':' and ';' which are unsafe in asset keys."""
    return re.sub(r'[:;]', '_', node_id)


# ============================================================================
# Paint queries
# ============================================================================

def visible_fills(node: BaseNode) -> list:
    return [f for f in node.fills if f.visible]


def visible_strokes(node: BaseNode) -> list:
    return [s for s in node.strokes if s.visible]


def visible_effects(node: BaseNode) -> list:
    return [e for e in node.effects if e.visible]


def first_solid_fill(node: BaseNode) -> Optional[SolidPaint]:
    for fill in node.fills:
        if fill.visible and isinstance(fill, SolidPaint):
            return fill
    return None


def gradient_fill(node: BaseNode) -> Optional[GradientPaint]:
    for fill in node.fills:
        if fill.visible and isinstance(fill, GradientPaint):
            return fill
    return None


def image_fill(node: BaseNode) -> Optional[ImagePaint]:
    for fill in node.fills:
        if fill.visible and isinstance(fill, ImagePaint):
            return fill
    return None


def drop_shadow(node: BaseNode):
    for effect in node.effects:
        if effect.visible and effect.type == 'DROP_SHADOW':
            return effect
    return None


def text_color(node: TextNode) -> Color:
    """Text renders white under a gradient so UIGradient is not double-tinted."""
    if gradient_fill(node) is not None:
        return Color(r=1, g=1, b=1)
    solid = first_solid_fill(node)
    return solid.color if solid else Color(r=0, g=0, b=0)


def corner_radii(node: BaseNode) -> Tuple[float, bool]:
    """Return (radius in px, is_uniform)."""
    radius = node.corner_radius
    if isinstance(radius, list):
        values: List[float] = list(radius) or [0.0]
        return max(values), len(set(values)) <= 1
    return float(radius), True


def gradient_rotation(transform: Optional[List[List[float]]]) -> int:
    """UIGradient rotation from Figma's [[a, c, e], [b, d, f]] transform."""
    if not transform or len(transform) < 2:
        return 90
    a, b = transform[0][0], transform[1][0]
    return round_px(math.degrees(math.atan2(b, a)))
