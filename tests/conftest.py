"""Shared test fixtures for compiler tests."""
import base64

import pytest

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 16
PNG_B64 = base64.b64encode(PNG_BYTES).decode('ascii')


def _solid(r, g, b, opacity=1):
    return {'type': 'SOLID', 'visible': True, 'opacity': opacity, 'color': {'r': r, 'g': g, 'b': b, 'a': 1}}


@pytest.fixture
def png_b64():
    return PNG_B64


@pytest.fixture
def make_node():
    """Factory for Figma-style node dicts (camelCase, as exported by the sandbox)."""
    counter = {'n': 0}

    def factory(node_type='RECTANGLE', **fields):
        counter['n'] += 1
        node = {
            'id': f"1:{counter['n']}",
            'name': f"{node_type.title()}{counter['n']}",
            'type': node_type,
            'visible': True,
            'x': 0, 'y': 0, 'width': 100, 'height': 50,
            'fills': [], 'strokes': [], 'effects': [],
            'children': [],
        }
        node.update(fields)
        return node

    return factory


@pytest.fixture
def solid_fill():
    return _solid


@pytest.fixture
def solid_rect():
    """Leaf with exactly one visible solid fill and no stroke."""
    return {
        'id': '2:1', 'name': 'Panel', 'type': 'RECTANGLE',
        'x': 10, 'y': 20, 'width': 200, 'height': 100,
        'cornerRadius': 8,
        'fills': [_solid(0.2, 0.4, 0.6, opacity=0.5)],
        'strokes': [], 'effects': [], 'opacity': 1,
        'children': [],
    }


@pytest.fixture
def image_rect():
    """Leaf painted with an exported image fill."""
    return {
        'id': '2:2', 'name': 'Icon', 'type': 'RECTANGLE',
        'x': 0, 'y': 0, 'width': 64, 'height': 64,
        'fills': [{'type': 'IMAGE', 'visible': True, 'opacity': 1, 'imageHash': 'img_aaa', 'scaleMode': 'FIT'}],
        'strokes': [], 'effects': [],
        'children': [],
    }


@pytest.fixture
def text_node():
    return {
        'id': '3:1', 'name': 'Title', 'type': 'TEXT',
        'x': 12, 'y': 8, 'width': 180, 'height': 32,
        'characters': 'Daily Reward',
        'textStyle': {
            'fontFamily': 'Inter', 'fontWeight': 700, 'fontSize': 24,
            'textAlignHorizontal': 'CENTER', 'textAlignVertical': 'CENTER',
            'lineHeight': 'AUTO', 'letterSpacing': 0,
        },
        'fills': [_solid(1, 1, 1)],
        'strokes': [], 'effects': [],
        'children': [],
    }


@pytest.fixture
def stroke_stack():
    """9 identical TEXT layers: 8 within 3px of each other, 1 gradient copy 20px away."""
    offsets = [(0, 0), (1, 0), (2, 0), (3, 0), (0, 3), (1, 3), (2, 3), (3, 3)]
    style = {'fontFamily': 'Fredoka One', 'fontSize': 32}
    copies = [
        {
            'id': f'5:{i}', 'name': 'Label', 'type': 'TEXT',
            'x': 100 + dx, 'y': 50 + dy, 'width': 120, 'height': 40,
            'characters': 'PLAY', 'textStyle': style,
            'fills': [_solid(0.1, 0.1, 0.1)],
            'children': [],
        }
        for i, (dx, dy) in enumerate(offsets)
    ]
    survivor = {
        'id': '5:99', 'name': 'Label', 'type': 'TEXT',
        'x': 120, 'y': 70, 'width': 120, 'height': 40,
        'characters': 'PLAY', 'textStyle': style,
        'fills': [{
            'type': 'GRADIENT_LINEAR', 'visible': True, 'opacity': 1,
            'gradientStops': [
                {'position': 0, 'color': {'r': 1, 'g': 0.8, 'b': 0, 'a': 1}},
                {'position': 1, 'color': {'r': 1, 'g': 0.4, 'b': 0, 'a': 1}},
            ],
        }],
        'children': [],
    }
    return {
        'id': '5:0', 'name': 'PlayBtn', 'type': 'FRAME',
        'x': 0, 'y': 0, 'width': 400, 'height': 200,
        'children': copies + [survivor],
    }


@pytest.fixture
def flow_manifest():
    """Auto-layout container with three image leaves of distinct hashes."""
    leaves = [
        {
            'id': f'7:{i}', 'name': f'Slot{i}', 'type': 'RECTANGLE',
            'x': i * 70, 'y': 0, 'width': 64, 'height': 64,
            'layoutSizingHorizontal': 'FIXED', 'layoutSizingVertical': 'FIXED',
            'fills': [{'type': 'IMAGE', 'visible': True, 'opacity': 1, 'imageHash': f'hash_{i}'}],
            'children': [],
        }
        for i in range(1, 4)
    ]
    root = {
        'id': '7:0', 'name': 'Inventory', 'type': 'FRAME',
        'x': 0, 'y': 0, 'width': 220, 'height': 64,
        'autoLayout': {
            'mode': 'HORIZONTAL', 'itemSpacing': 6,
            'paddingTop': 0, 'paddingRight': 0, 'paddingBottom': 0, 'paddingLeft': 0,
            'primaryAxisAlignItems': 'MIN', 'counterAxisAlignItems': 'CENTER',
            'layoutWrap': 'NO_WRAP',
        },
        'fills': [],
        'children': leaves,
    }
    return {
        'version': '1.0.0',
        'root': root,
        'unresolvedImages': ['hash_1', 'hash_2', 'hash_3'],
        'exportedImages': {f'hash_{i}': PNG_B64 for i in range(1, 4)},
        'stats': {'totalNodes': 4},
    }


class FakeUploader:
    """Records uploads and hands out sequential asset ids."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on or set()

    async def upload(self, content, display_name):
        from forge.errors import AssetUploadError

        self.calls.append(display_name)
        if any(display_name.endswith(h[:8]) for h in self.fail_on):
            raise AssetUploadError(f"rejected {display_name}")
        return str(1000 + len(self.calls))


@pytest.fixture
def fake_uploader():
    return FakeUploader()


@pytest.fixture
def failing_uploader():
    return FakeUploader


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def no_sleep():
    return _no_sleep
