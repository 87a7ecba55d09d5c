"""Tests for node classification."""
from pydantic import TypeAdapter

from forge.classifier import (
    Strategy, classify, is_dynamic_text, is_scroll_container, is_solid_fill_node, iter_emitted_nodes,
)
from forge.models import DesignNode

_adapter = TypeAdapter(DesignNode)


def _node(data):
    return _adapter.validate_python(data)


class TestClassify:
    """Priority: flatten tag > TEXT > leaf > container."""

    def test_text_node_is_text(self, text_node):
        assert classify(_node(text_node)) == Strategy.TEXT

    def test_leaf_shape_is_raster(self, solid_rect):
        assert classify(_node(solid_rect)) == Strategy.RASTER

    def test_frame_without_children_is_raster(self, make_node):
        assert classify(_node(make_node('FRAME'))) == Strategy.RASTER

    def test_frame_with_children_is_container(self, make_node, text_node):
        frame = make_node('FRAME', children=[text_node])
        assert classify(_node(frame)) == Strategy.CONTAINER

    def test_hidden_children_do_not_count(self, make_node, text_node):
        text_node['visible'] = False
        frame = make_node('FRAME', children=[text_node])
        assert classify(_node(frame)) == Strategy.RASTER

    def test_flatten_tag_beats_children(self, make_node, text_node):
        frame = make_node('FRAME', name='Badge [Flatten]', children=[text_node])
        assert classify(_node(frame)) == Strategy.RASTER

    def test_flatten_tag_beats_text(self, text_node):
        text_node['name'] = 'Logo [Raster]'
        assert classify(_node(text_node)) == Strategy.RASTER

    def test_flattened_annotation(self, make_node, text_node):
        frame = make_node('FRAME', _isFlattened=True, children=[text_node])
        assert classify(_node(frame)) == Strategy.RASTER

    def test_classify_is_pure(self, make_node, text_node):
        frame = _node(make_node('FRAME', children=[text_node]))
        before = frame.model_dump()
        classify(frame)
        classify(frame)
        assert frame.model_dump() == before


class TestEmittedWalk:

    def test_walk_stops_at_flattened_node(self, make_node, text_node):
        badge = make_node('FRAME', id='4:1', name='Badge [Flatten]', children=[text_node])
        root = _node(make_node('FRAME', id='4:0', children=[badge]))
        assert [n.id for n in iter_emitted_nodes(root)] == ['4:0', '4:1']

    def test_walk_enters_containers(self, make_node, text_node, solid_rect):
        root = _node(make_node('FRAME', id='4:0', children=[text_node, solid_rect]))
        assert [n.id for n in iter_emitted_nodes(root)] == ['4:0', '3:1', '2:1']

    def test_hidden_nodes_are_skipped(self, make_node, text_node, solid_rect):
        solid_rect['visible'] = False
        root = _node(make_node('FRAME', id='4:0', children=[text_node, solid_rect]))
        assert [n.id for n in iter_emitted_nodes(root)] == ['4:0', '3:1']


class TestSolidFill:
    """Exactly one visible SOLID fill, no visible stroke, no flatten tag."""

    def test_single_solid_fill(self, solid_rect):
        assert is_solid_fill_node(_node(solid_rect))

    def test_hidden_second_fill_still_solid(self, solid_rect, solid_fill):
        hidden = solid_fill(1, 0, 0)
        hidden['visible'] = False
        solid_rect['fills'].append(hidden)
        assert is_solid_fill_node(_node(solid_rect))

    def test_two_visible_fills_not_solid(self, solid_rect, solid_fill):
        solid_rect['fills'].append(solid_fill(1, 0, 0))
        assert not is_solid_fill_node(_node(solid_rect))

    def test_visible_stroke_not_solid(self, solid_rect, solid_fill):
        solid_rect['strokes'] = [solid_fill(0, 0, 0)]
        solid_rect['strokeWeight'] = 2
        assert not is_solid_fill_node(_node(solid_rect))

    def test_image_fill_not_solid(self, image_rect):
        assert not is_solid_fill_node(_node(image_rect))

    def test_flatten_tag_not_solid(self, solid_rect):
        solid_rect['name'] = 'Panel [Flatten]'
        assert not is_solid_fill_node(_node(solid_rect))

    def test_text_never_solid(self, text_node):
        assert not is_solid_fill_node(_node(text_node))


class TestScrollAndDynamicText:

    def test_overflow_direction_marks_scroll(self, make_node, text_node):
        frame = _node(make_node('FRAME', overflowDirection='VERTICAL', children=[text_node]))
        assert is_scroll_container(frame)

    def test_clipping_alone_is_not_scroll(self, make_node, text_node):
        frame = _node(make_node('FRAME', clipsContent=True, children=[text_node]))
        assert not is_scroll_container(frame)

    def test_prefixed_name_is_dynamic(self, text_node):
        text_node['name'] = '$PlayerCoins'
        assert is_dynamic_text(_node(text_node))

    def test_placeholder_content_is_dynamic(self, text_node):
        text_node['characters'] = '12:45'
        assert is_dynamic_text(_node(text_node))

    def test_regular_copy_is_static(self, text_node):
        assert not is_dynamic_text(_node(text_node))
