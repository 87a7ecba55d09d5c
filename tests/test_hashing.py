"""Tests for content hashes and the exported-key backfill."""
from pydantic import TypeAdapter

from forge.hashing import backfill_raster_hashes, content_hash, shadow_hash
from forge.models import DesignNode

_adapter = TypeAdapter(DesignNode)

_SHADOW = {
    'type': 'DROP_SHADOW', 'visible': True, 'radius': 4,
    'color': {'r': 0, 'g': 0, 'b': 0, 'a': 0.5}, 'offset': {'x': 0, 'y': 2},
}


class TestContentHash:

    def test_image_fill_hash_wins(self, image_rect):
        assert content_hash(_adapter.validate_python(image_rect)) == 'img_aaa'

    def test_solid_fill_needs_nothing(self, solid_rect):
        assert content_hash(_adapter.validate_python(solid_rect)) is None

    def test_declared_key_leaves_node_untouched(self, make_node, solid_fill):
        node = _adapter.validate_python(
            make_node('ELLIPSE', id='4:1', strokes=[solid_fill(0, 0, 0)], strokeWeight=2)
        )
        assert content_hash(node, {'raster_4_1'}) == 'raster_4_1'
        assert node.rasterized_image_hash is None
        assert content_hash(node).startswith('vis_')

    def test_declared_shadow_leaves_node_untouched(self, solid_rect):
        solid_rect['effects'] = [_SHADOW]
        node = _adapter.validate_python(solid_rect)
        assert shadow_hash(node, {'shadow_2_1'}) == 'shadow_2_1'
        assert node.shadow_image_hash is None
        assert shadow_hash(node) is None


class TestBackfill:

    def test_exported_keys_are_recorded(self, make_node, solid_fill):
        ring = make_node('ELLIPSE', id='4:1', strokes=[solid_fill(0, 0, 0)], effects=[_SHADOW])
        root = _adapter.validate_python(make_node('FRAME', id='4:0', children=[ring]))

        filled = backfill_raster_hashes(root, ['raster_4_1', 'shadow_4_1'])

        assert filled == 2
        assert root.children[0].rasterized_image_hash == 'raster_4_1'
        assert root.children[0].shadow_image_hash == 'shadow_4_1'
        assert content_hash(root.children[0]) == 'raster_4_1'

    def test_image_fill_and_solid_nodes_keep_their_hashes(self, image_rect, solid_rect):
        icon = _adapter.validate_python(image_rect)
        panel = _adapter.validate_python(solid_rect)
        assert backfill_raster_hashes(icon, ['raster_2_2']) == 0
        assert backfill_raster_hashes(panel, ['raster_2_1']) == 0
        assert icon.rasterized_image_hash is None
        assert panel.rasterized_image_hash is None

    def test_descendants_of_flattened_node_are_skipped(self, make_node, solid_fill):
        shine = make_node('ELLIPSE', id='4:2', strokes=[solid_fill(1, 1, 1)])
        badge = _adapter.validate_python(
            make_node('FRAME', id='4:1', name='Badge [Flatten]', children=[shine])
        )

        filled = backfill_raster_hashes(badge, ['raster_4_1', 'raster_4_2'])

        assert filled == 1
        assert badge.rasterized_image_hash == 'raster_4_1'
        assert badge.children[0].rasterized_image_hash is None
