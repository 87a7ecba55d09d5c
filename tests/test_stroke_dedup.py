"""Tests for collapsing stroke-simulation text stacks."""
from pydantic import TypeAdapter

from forge.config import DedupThresholds
from forge.models import DesignNode, TextNode
from forge.stroke_dedup import deduplicate_text_strokes

_adapter = TypeAdapter(DesignNode)


def _texts(parent):
    return [c for c in parent.children if isinstance(c, TextNode)]


class TestStrokeStack:

    def test_nine_copies_collapse_to_gradient_survivor(self, stroke_stack):
        parent = _adapter.validate_python(stroke_stack)
        removed = deduplicate_text_strokes(parent)

        assert removed == 8
        survivors = _texts(parent)
        assert len(survivors) == 1
        survivor = survivors[0]
        assert survivor.id == '5:99'
        assert survivor.inferred_stroke_thickness == 2
        assert survivor.inferred_stroke_color is not None
        assert abs(survivor.inferred_stroke_color.r - 0.1) < 1e-9

    def test_below_min_group_is_left_alone(self, stroke_stack):
        stroke_stack['children'] = stroke_stack['children'][:4]
        parent = _adapter.validate_python(stroke_stack)
        assert deduplicate_text_strokes(parent) == 0
        assert len(parent.children) == 4

    def test_scattered_copies_are_not_a_stroke(self, stroke_stack):
        for i, child in enumerate(stroke_stack['children']):
            child['x'] = i * 40
        parent = _adapter.validate_python(stroke_stack)
        assert deduplicate_text_strokes(parent) == 0
        assert len(parent.children) == 9

    def test_different_text_is_grouped_separately(self, stroke_stack):
        for child in stroke_stack['children'][:5]:
            child['characters'] = 'QUIT'
        parent = _adapter.validate_python(stroke_stack)
        # 5 QUIT copies collapse; the 3 remaining PLAY copies plus survivor stay
        assert deduplicate_text_strokes(parent) == 4
        assert len(parent.children) == 5

    def test_survivor_without_outliers_is_last_member(self, stroke_stack):
        stroke_stack['children'] = stroke_stack['children'][:8]
        parent = _adapter.validate_python(stroke_stack)
        assert deduplicate_text_strokes(parent) == 7
        assert parent.children[0].id == '5:7'

    def test_thresholds_are_configurable(self, stroke_stack):
        parent = _adapter.validate_python(stroke_stack)
        assert deduplicate_text_strokes(parent, DedupThresholds(min_group=10)) == 0

    def test_pass_recurses_into_children(self, stroke_stack, make_node):
        wrapper = _adapter.validate_python(make_node('FRAME', children=[stroke_stack]))
        assert deduplicate_text_strokes(wrapper) == 8
        assert len(wrapper.children[0].children) == 1

    def test_effect_outlier_beats_later_plain_outlier(self, stroke_stack, solid_fill):
        survivor = stroke_stack['children'][-1]
        survivor['fills'] = [solid_fill(1, 1, 1)]
        survivor['effects'] = [{
            'type': 'DROP_SHADOW', 'visible': True, 'radius': 2,
            'color': {'r': 0, 'g': 0, 'b': 0, 'a': 0.6}, 'offset': {'x': 0, 'y': 2},
        }]
        plain = dict(survivor, id='5:98', x=140, y=90, effects=[])
        stroke_stack['children'].append(plain)
        parent = _adapter.validate_python(stroke_stack)

        assert deduplicate_text_strokes(parent) == 9
        assert [c.id for c in _texts(parent)] == ['5:99']

    def test_zero_spread_core_gets_minimum_thickness(self, stroke_stack):
        copies = stroke_stack['children'][:6]
        for copy in copies:
            copy['x'], copy['y'] = 100, 50
        stroke_stack['children'] = copies
        parent = _adapter.validate_python(stroke_stack)

        assert deduplicate_text_strokes(parent) == 5
        survivor = _texts(parent)[0]
        assert survivor.id == '5:5'
        assert survivor.inferred_stroke_thickness == 2
