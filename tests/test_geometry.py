"""Tests for the geometry and constraint translator."""
from pydantic import TypeAdapter

from forge.base import round_px
from forge.geometry import UDim, UDim2, Vector2, geometry
from forge.models import DesignNode, RenderBounds

_adapter = TypeAdapter(DesignNode)


def _rect(make_node, **fields):
    return _adapter.validate_python(make_node('RECTANGLE', **fields))


class TestRounding:

    def test_half_rounds_up(self):
        assert round_px(2.5) == 3
        assert round_px(3.5) == 4
        assert round_px(-0.5) == 0


class TestFlowManaged:

    def test_fixed_child_keeps_pixel_size(self, make_node):
        node = _rect(make_node, width=64.4, height=31.6,
                     layoutSizingHorizontal='FIXED', layoutSizingVertical='FIXED')
        placement = geometry(node, True, 300, 100, False)
        assert placement.position == UDim2()
        assert placement.size == UDim2(UDim(0, 64), UDim(0, 32))
        assert placement.automatic_size == 0

    def test_fill_child_uses_full_scale(self, make_node):
        node = _rect(make_node, layoutSizingHorizontal='FILL', layoutSizingVertical='FIXED')
        placement = geometry(node, True, 300, 100, False)
        assert placement.size.x == UDim(1.0, 0)
        assert placement.size.y == UDim(0.0, 50)

    def test_hug_sets_automatic_size(self, make_node):
        node = _rect(make_node, layoutSizingHorizontal='HUG', layoutSizingVertical='HUG')
        assert geometry(node, True, 300, 100, False).automatic_size == 3

    def test_absolute_child_placed_freely(self, make_node):
        node = _rect(make_node, x=12, y=8, layoutPositioning='ABSOLUTE')
        placement = geometry(node, True, 300, 100, False)
        assert placement.position == UDim2(UDim(0, 12), UDim(0, 8))


class TestRoot:

    def test_root_is_centered(self, make_node):
        node = _rect(make_node, x=500, y=400, width=800, height=600)
        placement = geometry(node, False, 800, 600, True)
        assert placement.position == UDim2.from_scale(0.5, 0.5)
        assert placement.anchor == Vector2(0.5, 0.5)
        assert placement.size == UDim2.from_offset(800, 600)


class TestFreeConstraints:

    def test_min(self, make_node):
        node = _rect(make_node, x=10, y=20, constraints={'horizontal': 'MIN', 'vertical': 'MIN'})
        placement = geometry(node, False, 400, 300, False)
        assert placement.position == UDim2(UDim(0, 10), UDim(0, 20))
        assert placement.anchor == Vector2()

    def test_max_anchors_to_far_edge(self, make_node):
        node = _rect(make_node, x=290, y=240, width=100, height=50,
                     constraints={'horizontal': 'MAX', 'vertical': 'MAX'})
        placement = geometry(node, False, 400, 300, False)
        assert placement.position == UDim2(UDim(1.0, -10), UDim(1.0, -10))
        assert placement.anchor == Vector2(1.0, 1.0)

    def test_center(self, make_node):
        node = _rect(make_node, x=150, y=125, width=100, height=50,
                     constraints={'horizontal': 'CENTER', 'vertical': 'CENTER'})
        placement = geometry(node, False, 400, 300, False)
        assert placement.position == UDim2(UDim(0.5, 0), UDim(0.5, 0))
        assert placement.anchor == Vector2(0.5, 0.5)

    def test_stretch_keeps_insets(self, make_node):
        node = _rect(make_node, x=10, y=0, width=380, height=50,
                     constraints={'horizontal': 'STRETCH', 'vertical': 'MIN'})
        placement = geometry(node, False, 400, 300, False)
        assert placement.position.x == UDim(0.0, 10)
        assert placement.size.x == UDim(1.0, -20)

    def test_scale_uses_fractions(self, make_node):
        node = _rect(make_node, x=100, y=75, width=200, height=150,
                     constraints={'horizontal': 'SCALE', 'vertical': 'SCALE'})
        placement = geometry(node, False, 400, 300, False)
        assert placement.position == UDim2.from_scale(0.25, 0.25)
        assert placement.size == UDim2.from_scale(0.5, 0.5)

    def test_scale_with_zero_parent_falls_back(self, make_node):
        node = _rect(make_node, x=5, y=5, constraints={'horizontal': 'SCALE', 'vertical': 'SCALE'})
        placement = geometry(node, False, 0, 0, False)
        assert placement.position == UDim2(UDim(0, 5), UDim(0, 5))

    def test_rest_vocabulary_is_normalized(self, make_node):
        node = _rect(make_node, constraints={'horizontal': 'LEFT_RIGHT', 'vertical': 'BOTTOM'})
        assert node.constraints.horizontal == 'STRETCH'
        assert node.constraints.vertical == 'MAX'

    def test_render_bounds_override_box(self, make_node):
        node = _rect(make_node, x=10, y=10, width=100, height=50)
        box = RenderBounds(x=6, y=8, width=112, height=60)
        placement = geometry(node, False, 400, 300, False, box=box)
        assert placement.position == UDim2(UDim(0, 6), UDim(0, 8))
        assert placement.size == UDim2(UDim(0, 112), UDim(0, 60))
