"""Tests for the MCP tool layer."""
import json

import pytest
from pydantic import ValidationError

from figma_forge_mcp import (
    CacheStatusInput, ClassifyTreeInput, CompileManifestInput, DiffManifestInput, ResponseFormat,
    forge_cache_status, forge_classify_tree, forge_compile_manifest, forge_diff_manifest,
)
from forge.assets import AssetCache


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch):
    monkeypatch.delenv('ROBLOX_API_KEY', raising=False)
    monkeypatch.delenv('ROBLOX_CREATOR_ID', raising=False)


def _write(path, data):
    path.write_text(json.dumps(data))
    return str(path)


class TestInputModels:

    def test_missing_manifest_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            ClassifyTreeInput(manifest_path=str(tmp_path / 'absent.json'))

    def test_max_depth_bounds(self, tmp_path, solid_rect):
        path = _write(tmp_path / 'm.json', {'root': solid_rect})
        with pytest.raises(ValidationError):
            ClassifyTreeInput(manifest_path=path, max_depth=0)

    def test_unknown_text_mode_rejected(self, tmp_path, solid_rect):
        path = _write(tmp_path / 'm.json', {'root': solid_rect})
        with pytest.raises(ValidationError):
            CompileManifestInput(manifest_path=path, output_path='out.rbxmx', text_export_mode='some')


class TestCompileTool:

    async def test_compile_without_uploads(self, tmp_path, stroke_stack):
        path = _write(tmp_path / 'm.json', {'root': stroke_stack})
        output = tmp_path / 'ui.rbxmx'
        params = CompileManifestInput(
            manifest_path=path,
            output_path=str(output),
            cache_path=str(tmp_path / 'cache.json'),
            response_format=ResponseFormat.JSON,
        )

        response = json.loads(await forge_compile_manifest(params))

        assert response['stats']['deduplicated'] == 8
        assert response['stats']['uploads'] == 0
        assert output.exists()
        assert (tmp_path / 'ui.rbxmx.snapshot.json').exists()

    async def test_markdown_summary(self, tmp_path, solid_rect):
        path = _write(tmp_path / 'm.json', {'root': solid_rect})
        params = CompileManifestInput(
            manifest_path=path,
            output_path=str(tmp_path / 'ui.rbxmx'),
            cache_path=str(tmp_path / 'cache.json'),
        )
        text = await forge_compile_manifest(params)
        assert text.startswith('# FigmaForge Compile')
        assert '- Uploads: 0' in text

    async def test_missing_content_reports_error(self, tmp_path, flow_manifest):
        flow_manifest['exportedImages'] = {}
        path = _write(tmp_path / 'm.json', flow_manifest)
        output = tmp_path / 'ui.rbxmx'
        params = CompileManifestInput(
            manifest_path=path, output_path=str(output), cache_path=str(tmp_path / 'cache.json'),
        )

        text = await forge_compile_manifest(params)

        assert text.startswith('Error: No raw content')
        assert not output.exists()

    async def test_invalid_manifest_reports_error(self, tmp_path):
        path = _write(tmp_path / 'm.json', {'version': '1.0.0'})
        params = CompileManifestInput(manifest_path=path, output_path=str(tmp_path / 'ui.rbxmx'))
        assert (await forge_compile_manifest(params)).startswith('Error: Invalid manifest')


class TestInspectionTools:

    async def test_classify_tree_markdown(self, tmp_path, make_node, text_node, image_rect):
        root = make_node('FRAME', name='Shop', children=[text_node, image_rect])
        path = _write(tmp_path / 'm.json', {'root': root})
        text = await forge_classify_tree(ClassifyTreeInput(manifest_path=path))
        assert '[box] **Shop**' in text
        assert '[txt] **Title**' in text
        assert '[img] **Icon**' in text
        assert '`img_aaa`' in text

    async def test_classify_tree_depth_limit(self, tmp_path, make_node, text_node):
        root = make_node('FRAME', name='Shop', children=[text_node])
        path = _write(tmp_path / 'm.json', {'root': root})
        params = ClassifyTreeInput(manifest_path=path, max_depth=1, response_format=ResponseFormat.JSON)
        tree = json.loads(await forge_classify_tree(params))['root']
        assert tree['strategy'] == 'container'
        assert tree['hiddenChildren'] == 1

    async def test_diff_without_snapshot(self, tmp_path, flow_manifest):
        path = _write(tmp_path / 'm.json', flow_manifest)
        params = DiffManifestInput(manifest_path=path, response_format=ResponseFormat.JSON)
        diff = json.loads(await forge_diff_manifest(params))
        assert diff['stats']['added'] == 4
        assert diff['reuseMap'] == {}

    async def test_cache_status(self, tmp_path):
        cache_path = tmp_path / 'cache.json'
        AssetCache(cache_path).put('abc', '321')

        listing = await forge_cache_status(CacheStatusInput(cache_path=str(cache_path)))
        lookup = await forge_cache_status(CacheStatusInput(cache_path=str(cache_path), content_hash='abc'))
        miss = await forge_cache_status(CacheStatusInput(cache_path=str(cache_path), content_hash='zzz'))

        assert '**Entries:** 1' in listing
        assert 'rbxassetid://321' in lookup
        assert 'not cached' in miss
