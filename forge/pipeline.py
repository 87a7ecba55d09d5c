"""
Compiler driver.

load -> overrides -> stroke dedup -> hash backfill -> diff -> reuse -> asset resolution ->
assembly -> output. Fatal errors propagate to the caller untouched and
nothing is written unless the whole run succeeds.
"""

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from forge.assets import AssetCache, AssetResolver, RobloxAssetUploader, Uploader, apply_resolved, build_resolution_plan
from forge.audit import ApproximationLog
from forge.config import ForgeConfig
from forge.diff import DiffResult, build_snapshot, compute_diff, load_snapshot, snapshot_to_json
from forge.errors import ConfigurationError, ManifestError
from forge.hashing import backfill_raster_hashes
from forge.models import Manifest, PreviousSnapshot
from forge.overrides import apply_overrides
from forge.rbxmx_generator import assemble_rbxmx
from forge.stroke_dedup import deduplicate_text_strokes

logger = logging.getLogger("forge.pipeline")


@dataclass
class CompileStats:
    uploads: int = 0
    cache_hits: int = 0
    reused: int = 0
    deduplicated: int = 0
    overrides: int = 0
    promoted: int = 0
    approximations: int = 0


@dataclass
class CompileResult:
    output: str
    diff: DiffResult
    snapshot: PreviousSnapshot
    stats: CompileStats = field(default_factory=CompileStats)
    warnings: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {'stats': asdict(self.stats), 'diff': self.diff.stats(), 'warnings': self.warnings}


# ============================================================================
# Loading
# ============================================================================

def load_manifest(source: Union[str, Path, Mapping[str, Any]]) -> Manifest:
    """Parse a manifest from a path or an already-decoded dict.

    A sandbox response wrapper ``{success, result}`` is unwrapped first.
    """
    if isinstance(source, Mapping):
        data: Any = source
    else:
        try:
            data = json.loads(Path(source).read_text(encoding='utf-8'))
        except OSError as e:
            raise ManifestError(f"Cannot read manifest {source}: {e}") from e
        except ValueError as e:
            raise ManifestError(f"Manifest {source} is not valid JSON: {e}") from e

    if isinstance(data, Mapping) and 'success' in data and 'root' not in data:
        if not data.get('success'):
            raise ManifestError(f"Extraction failed: {data.get('error', 'unknown error')}")
        data = data.get('result') or {}

    if not isinstance(data, Mapping) or not data.get('root'):
        raise ManifestError("Manifest has no root node")
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Malformed manifest: {e.error_count()} validation error(s)\n{e}") from e


def write_atomic(path: Union[str, Path], text: str) -> None:
    """Write through a temp file in the target directory, then rename into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name, suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


# ============================================================================
# Compile
# ============================================================================

async def compile_manifest(
    manifest: Manifest,
    config: Optional[ForgeConfig] = None,
    cache: Optional[AssetCache] = None,
    uploader: Optional[Uploader] = None,
    previous: Optional[PreviousSnapshot] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> CompileResult:
    """Compile a parsed manifest. The manifest's tree is annotated in place."""
    config = config or ForgeConfig()
    cache = cache if cache is not None else AssetCache(None)
    audit = ApproximationLog()
    stats = CompileStats()
    root = manifest.root

    stats.overrides = apply_overrides(root, config.override_rules)
    if not config.skip_dedup:
        stats.deduplicated = deduplicate_text_strokes(root, config.dedup)
        if stats.deduplicated:
            logger.info("Removed %d stroke-simulation text copies", stats.deduplicated)

    backfilled = backfill_raster_hashes(root, manifest.unresolved_content_hashes)
    if backfilled:
        logger.debug("Annotated %d node hash(es) from exported node keys", backfilled)

    diff = compute_diff(root, previous)
    stats.reused = len(diff.reuse_map)

    plan = build_resolution_plan(root, manifest.unresolved_content_hashes, diff.reuse_map)
    logger.info("Resolving %d content hash(es), %d node(s) reused", len(plan.hashes), stats.reused)
    resolver = AssetResolver(cache, manifest.raw_content_by_hash, uploader, config.upload_delay, sleep)
    resolved = await resolver.resolve(plan.hashes, plan.owners)
    stats.uploads = resolver.stats.uploaded
    stats.cache_hits = resolver.stats.cache_hits
    apply_resolved(root, resolved, diff.reuse_map)

    assembly = assemble_rbxmx(root, config, audit)
    stats.promoted = assembly.promoted
    stats.approximations = len(audit)
    audit.report(logger)

    return CompileResult(
        output=assembly.output,
        diff=diff,
        snapshot=build_snapshot(root),
        stats=stats,
        warnings=audit.messages(),
    )


def default_uploader(config: ForgeConfig) -> Optional[RobloxAssetUploader]:
    """Uploader from ROBLOX_* credentials, or None when they are not set."""
    try:
        return RobloxAssetUploader.from_env(
            poll_interval=config.poll_interval,
            poll_max_attempts=config.poll_max_attempts,
            timeout=config.http_timeout,
        )
    except ConfigurationError:
        logger.info("No Roblox credentials configured, only cached assets can be used")
        return None


async def compile_file(
    manifest_path: Union[str, Path],
    output_path: Union[str, Path],
    config: Optional[ForgeConfig] = None,
    previous_path: Optional[Union[str, Path]] = None,
    snapshot_path: Optional[Union[str, Path]] = None,
    uploader: Optional[Uploader] = None,
) -> CompileResult:
    """File-level driver: reads inputs, compiles, writes output and snapshot on success."""
    config = config or ForgeConfig()
    manifest = load_manifest(manifest_path)
    previous = load_snapshot(previous_path) if previous_path else None
    cache = AssetCache.load(config.cache_path)

    owned = None
    if uploader is None:
        owned = uploader = default_uploader(config)
    try:
        result = await compile_manifest(manifest, config, cache, uploader, previous)
    finally:
        if owned is not None:
            await owned.aclose()

    write_atomic(output_path, result.output)
    logger.info("Wrote %s (%d uploads, %d cache hits)", output_path, result.stats.uploads, result.stats.cache_hits)
    if snapshot_path:
        write_atomic(snapshot_path, snapshot_to_json(result.snapshot, manifest.root.id))
    return result
