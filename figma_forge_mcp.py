#!/usr/bin/env python3
"""
FigmaForge MCP Server - Model Context Protocol server for the Figma -> Roblox compiler.

This server exposes the design-tree compiler as tools:
- Compile an extraction manifest into a Roblox .rbxmx model
- Diff a manifest against the snapshot of a previous run
- Inspect how each node of a manifest will be classified
- Inspect the persistent asset cache

Uploads go to the Roblox Open Cloud Assets API using ROBLOX_API_KEY and
ROBLOX_CREATOR_ID from the environment.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from mcp.server.fastmcp import FastMCP

from forge.assets import AssetCache
from forge.classifier import Strategy, classify, is_solid_fill_node
from forge.config import ForgeConfig
from forge.diff import compute_diff, load_snapshot
from forge.errors import (
    AssetUploadError, ConfigurationError, ForgeError, ManifestError, MissingContentError, UploadTimeoutError,
)
from forge.hashing import backfill_raster_hashes, content_hash
from forge.logging_config import get_forge_logger
from forge.models import BaseNode, live_children
from forge.overrides import apply_overrides
from forge.pipeline import compile_file, load_manifest
from forge.stroke_dedup import deduplicate_text_strokes

# ============================================================================
# Constants
# ============================================================================

CHARACTER_LIMIT = 25000

# ============================================================================
# Initialize MCP Server
# ============================================================================

mcp = FastMCP("figma_forge_mcp")

# ============================================================================
# Enums and Types
# ============================================================================

class ResponseFormat(str, Enum):
    """Output format for tool responses."""
    MARKDOWN = "markdown"
    JSON = "json"


class TextExportMode(str, Enum):
    """How TEXT nodes are named in the output."""
    ALL = "all"
    DYNAMIC_PREFIX = "dynamic_prefix"


# ============================================================================
# Pydantic Input Models
# ============================================================================

class ManifestPathMixin(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    manifest_path: str = Field(
        ...,
        description="Path to the extraction manifest JSON (or sandbox response wrapper)",
        min_length=1
    )

    @field_validator('manifest_path')
    @classmethod
    def validate_manifest_path(cls, v: str) -> str:
        if not Path(v).expanduser().exists():
            raise ValueError(f"Manifest not found: {v}")
        return str(Path(v).expanduser())


class CompileManifestInput(ManifestPathMixin):
    """Input model for compiling a manifest."""

    output_path: str = Field(
        ...,
        description="Where to write the .rbxmx model",
        min_length=1
    )
    previous_snapshot_path: Optional[str] = Field(
        default=None,
        description="Snapshot from a previous run for incremental re-export"
    )
    snapshot_path: Optional[str] = Field(
        default=None,
        description="Where to write this run's snapshot (defaults to <output>.snapshot.json)"
    )
    cache_path: Optional[str] = Field(
        default=None,
        description="Asset cache file (defaults to FORGE_CACHE_PATH)"
    )
    text_export_mode: TextExportMode = Field(
        default=TextExportMode.ALL,
        description="'all' or 'dynamic_prefix'"
    )
    dynamic_prefix: str = Field(
        default="$",
        description="Prefix for runtime-bound text node names",
        min_length=1,
        max_length=4
    )
    interactive_patterns: Optional[List[str]] = Field(
        default=None,
        description="Regex patterns marking interactive node names (replaces the defaults)"
    )
    skip_dedup: bool = Field(
        default=False,
        description="Disable the stroke-simulation text collapse"
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format: 'markdown' or 'json'"
    )


class DiffManifestInput(ManifestPathMixin):
    """Input model for diffing against a previous snapshot."""

    previous_snapshot_path: Optional[str] = Field(
        default=None,
        description="Snapshot written by a previous compile"
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format"
    )


class ClassifyTreeInput(ManifestPathMixin):
    """Input model for classification preview."""

    max_depth: int = Field(
        default=6,
        description="Depth of node tree to show (1-20)",
        ge=1,
        le=20
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format"
    )


class CacheStatusInput(BaseModel):
    """Input model for cache inspection."""
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    cache_path: Optional[str] = Field(
        default=None,
        description="Asset cache file (defaults to FORGE_CACHE_PATH)"
    )
    content_hash: Optional[str] = Field(
        default=None,
        description="Look up a single content hash"
    )
    response_format: ResponseFormat = Field(
        default=ResponseFormat.MARKDOWN,
        description="Output format"
    )


# ============================================================================
# Helpers
# ============================================================================

def _handle_error(e: Exception) -> str:
    """Format compiler errors for user-friendly messages."""
    if isinstance(e, MissingContentError):
        return f"Error: {e}"
    if isinstance(e, UploadTimeoutError):
        return f"Error: Upload timed out. {e}"
    if isinstance(e, AssetUploadError):
        return f"Error: Upload failed, no output was written. {e}"
    if isinstance(e, ConfigurationError):
        return f"Error: {e}"
    if isinstance(e, ManifestError):
        return f"Error: Invalid manifest. {e}"
    if isinstance(e, ForgeError):
        return f"Error: {e}"
    if isinstance(e, httpx.TimeoutException):
        return "Error: Request to the asset store timed out."
    if isinstance(e, ValueError):
        return f"Error: {str(e)}"
    return f"Error: {type(e).__name__}: {str(e)}"


def _truncate(text: str) -> str:
    if len(text) <= CHARACTER_LIMIT:
        return text
    return text[:CHARACTER_LIMIT] + "\n\n... (truncated)"


def _classified_tree(node: BaseNode, depth: int, max_depth: int) -> Dict[str, Any]:
    strategy = classify(node)
    entry: Dict[str, Any] = {
        'id': node.id,
        'name': node.name,
        'type': node.type,
        'strategy': strategy.value,
        'solidFill': is_solid_fill_node(node),
        'contentHash': content_hash(node),
    }
    children = live_children(node)
    if children and depth < max_depth:
        entry['children'] = [_classified_tree(c, depth + 1, max_depth) for c in children]
    elif children:
        entry['hiddenChildren'] = len(children)
    return entry


# ============================================================================
# Tools
# ============================================================================

@mcp.tool(
    name="forge_compile_manifest",
    annotations={
        "title": "Compile Manifest to RBXMX",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True
    }
)
async def forge_compile_manifest(params: CompileManifestInput) -> str:
    """
    Compile a FigmaForge extraction manifest into a Roblox .rbxmx model.

    Uploads any raster content that is not cached yet, then writes the model
    and a snapshot for the next incremental run. Nothing is written when an
    image is missing or an upload fails.

    Args:
        params: CompileManifestInput containing:
            - manifest_path (str): Extraction manifest JSON
            - output_path (str): Target .rbxmx path
            - previous_snapshot_path (str): Optional snapshot for reuse
            - text_export_mode: 'all' or 'dynamic_prefix'
            - response_format: 'markdown' or 'json'

    Returns:
        str: Compile summary in requested format
    """
    try:
        config = ForgeConfig(
            text_export_mode=params.text_export_mode.value,
            dynamic_prefix=params.dynamic_prefix,
            skip_dedup=params.skip_dedup,
        )
        if params.interactive_patterns is not None:
            config.interactive_patterns = params.interactive_patterns
        if params.cache_path:
            config.cache_path = Path(params.cache_path)

        snapshot_path = params.snapshot_path or f"{params.output_path}.snapshot.json"
        result = await compile_file(
            params.manifest_path,
            params.output_path,
            config=config,
            previous_path=params.previous_snapshot_path,
            snapshot_path=snapshot_path,
        )

        if params.response_format == ResponseFormat.JSON:
            response = dict(result.summary(), output=params.output_path, snapshot=snapshot_path)
            return _truncate(json.dumps(response, indent=2))

        stats = result.stats
        lines = [
            "# FigmaForge Compile",
            f"**Output:** `{params.output_path}`",
            f"**Snapshot:** `{snapshot_path}`",
            "",
            "## Stats",
            f"- Uploads: {stats.uploads}",
            f"- Cache hits: {stats.cache_hits}",
            f"- Reused from previous run: {stats.reused}",
            f"- Stroke copies removed: {stats.deduplicated}",
            f"- Promoted children: {stats.promoted}",
        ]
        if result.warnings:
            lines.extend(["", f"## Approximations ({len(result.warnings)})", ""])
            lines.extend(f"- {w}" for w in result.warnings)
        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="forge_diff_manifest",
    annotations={
        "title": "Diff Manifest Against Previous Run",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def forge_diff_manifest(params: DiffManifestInput) -> str:
    """
    Show which nodes changed since the previous compile.

    Args:
        params: DiffManifestInput containing:
            - manifest_path (str): Extraction manifest JSON
            - previous_snapshot_path (str): Snapshot of the previous run
            - response_format: 'markdown' or 'json'

    Returns:
        str: Changed/unchanged/added/removed node ids and reusable assets
    """
    try:
        config = ForgeConfig()
        manifest = load_manifest(params.manifest_path)
        apply_overrides(manifest.root, config.override_rules)
        deduplicate_text_strokes(manifest.root, config.dedup)
        backfill_raster_hashes(manifest.root, manifest.unresolved_content_hashes)
        previous = load_snapshot(params.previous_snapshot_path) if params.previous_snapshot_path else None
        diff = compute_diff(manifest.root, previous)

        if params.response_format == ResponseFormat.JSON:
            return _truncate(json.dumps(diff.to_dict(), indent=2))

        stats = diff.stats()
        lines = [
            "# FigmaForge Diff",
            f"**Previous snapshot:** `{params.previous_snapshot_path or 'none'}`",
            "",
            f"- Changed: {stats['changed']}",
            f"- Unchanged: {stats['unchanged']}",
            f"- Added: {stats['added']}",
            f"- Removed: {stats['removed']}",
            f"- Reusable assets: {stats['reusable']}",
        ]
        if diff.changed:
            lines.extend(["", "## Changed", ""])
            lines.extend(f"- `{node_id}`" for node_id in diff.changed)
        if diff.removed:
            lines.extend(["", "## Removed", ""])
            lines.extend(f"- `{node_id}`" for node_id in diff.removed)
        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="forge_classify_tree",
    annotations={
        "title": "Preview Node Classification",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def forge_classify_tree(params: ClassifyTreeInput) -> str:
    """
    Preview how each node of a manifest will be emitted (raster, text or container).

    Args:
        params: ClassifyTreeInput containing:
            - manifest_path (str): Extraction manifest JSON
            - max_depth (int): How deep to show the tree (1-20)
            - response_format: 'markdown' or 'json'

    Returns:
        str: Classified node tree
    """
    try:
        config = ForgeConfig()
        manifest = load_manifest(params.manifest_path)
        apply_overrides(manifest.root, config.override_rules)
        removed = deduplicate_text_strokes(manifest.root, config.dedup)
        backfill_raster_hashes(manifest.root, manifest.unresolved_content_hashes)
        tree = _classified_tree(manifest.root, 1, params.max_depth)

        if params.response_format == ResponseFormat.JSON:
            return _truncate(json.dumps({'strokeCopiesRemoved': removed, 'root': tree}, indent=2))

        icons = {
            Strategy.RASTER.value: "[img]",
            Strategy.TEXT.value: "[txt]",
            Strategy.CONTAINER.value: "[box]",
        }
        lines = [
            f"# Classification: {manifest.root.name}",
            f"**Stroke copies removed:** {removed}",
            "",
        ]

        def format_tree(entry: Dict[str, Any], indent: int = 0) -> None:
            prefix = "  " * indent
            extra = " solid" if entry['solidFill'] else ""
            if entry['contentHash']:
                extra += f" `{entry['contentHash']}`"
            lines.append(f"{prefix}- {icons[entry['strategy']]} **{entry['name']}** `{entry['id']}`{extra}")
            for child in entry.get('children', []):
                format_tree(child, indent + 1)
            if entry.get('hiddenChildren'):
                lines.append(f"{prefix}  - ... {entry['hiddenChildren']} more")

        format_tree(tree)
        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_error(e)


@mcp.tool(
    name="forge_cache_status",
    annotations={
        "title": "Inspect Asset Cache",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def forge_cache_status(params: CacheStatusInput) -> str:
    """
    Show the persistent content-hash -> asset id cache.

    Args:
        params: CacheStatusInput containing:
            - cache_path (str): Optional cache file
            - content_hash (str): Optional single hash to look up
            - response_format: 'markdown' or 'json'

    Returns:
        str: Cache entries or a single lookup result
    """
    try:
        path = Path(params.cache_path) if params.cache_path else ForgeConfig().cache_path
        cache = AssetCache.load(path)

        if params.content_hash:
            entry = cache.get(params.content_hash)
            if params.response_format == ResponseFormat.JSON:
                return json.dumps({
                    'contentHash': params.content_hash,
                    'entry': entry.model_dump(by_alias=True) if entry else None,
                }, indent=2)
            if entry is None:
                return f"`{params.content_hash}` is not cached."
            return f"`{params.content_hash}` -> rbxassetid://{entry.asset_id} (uploaded {entry.uploaded_at})"

        if params.response_format == ResponseFormat.JSON:
            return _truncate(json.dumps(dict(cache.to_dict(), path=str(path)), indent=2))

        lines = [
            "# Asset Cache",
            f"**File:** `{path}`",
            f"**Entries:** {len(cache)}",
            "",
        ]
        for content, entry in cache.entries.items():
            lines.append(f"- `{content}` -> rbxassetid://{entry.asset_id}")
        return _truncate("\n".join(lines))

    except Exception as e:
        return _handle_error(e)


# ============================================================================
# Entry Point
# ============================================================================

def main() -> None:
    get_forge_logger()
    mcp.run()


if __name__ == "__main__":
    main()
