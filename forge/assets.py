"""
Asset resolution & cache.

Maps content hashes to uploaded Roblox image assets:

1. Persistent cache hit -> resolved, no network
2. Miss -> the extractor must have exported raw pixels for the hash (fail-fast)
3. Upload through the Open Cloud Assets API, polling long-running operations
4. Any upload failure aborts the run
5. Each new entry is written to disk before the next hash is processed
6. Uploads run strictly one after another with a fixed delay between them
"""

import asyncio
import base64
import binascii
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Set

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from forge import settings
from forge.base import ASSET_URI_PREFIX
from forge.classifier import iter_emitted_nodes
from forge.errors import (
    AssetUploadError, ConfigurationError, ManifestError, MissingContentError, UploadTimeoutError,
)
from forge.hashing import content_hash, raster_key, shadow_hash
from forge.models import BaseNode

logger = logging.getLogger("forge.assets")

CACHE_VERSION = "1.0.0"
DISPLAY_NAME_LIMIT = 50


# ============================================================================
# Persistent cache
# ============================================================================

class CacheEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    asset_id: str
    uploaded_at: str


def asset_uri(asset_id: str) -> str:
    return asset_id if asset_id.startswith(ASSET_URI_PREFIX) else f"{ASSET_URI_PREFIX}{asset_id}"


class AssetCache:
    """Content hash -> uploaded asset id, persisted as one JSON file per project.

    Entries are immutable: ``put`` never replaces an existing hash. With
    ``path=None`` the cache lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None, entries: Optional[Dict[str, CacheEntry]] = None):
        self.path = Path(path) if path is not None else None
        self.entries: Dict[str, CacheEntry] = dict(entries or {})

    @classmethod
    def load(cls, path: Optional[Path]) -> "AssetCache":
        if path is None or not Path(path).exists():
            return cls(path)
        try:
            raw = json.loads(Path(path).read_text(encoding='utf-8'))
            entries = {
                h: CacheEntry.model_validate(e) for h, e in (raw.get('entries') or {}).items()
            }
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.warning("Cache file %s is unreadable (%s), starting with an empty cache", path, e)
            return cls(path)
        logger.info("Loaded %d cached asset(s) from %s", len(entries), path)
        return cls(path, entries)

    def __contains__(self, content_hash: str) -> bool:
        return content_hash in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, content_hash: str) -> Optional[CacheEntry]:
        return self.entries.get(content_hash)

    def put(self, content_hash: str, asset_id: str) -> CacheEntry:
        existing = self.entries.get(content_hash)
        if existing is not None:
            return existing
        entry = CacheEntry(asset_id=asset_id, uploaded_at=datetime.now(timezone.utc).isoformat())
        self.entries[content_hash] = entry
        self.save()
        return entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': CACHE_VERSION,
            'entries': {h: e.model_dump(by_alias=True) for h, e in self.entries.items()},
        }

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name, suffix='.tmp', dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


# ============================================================================
# Upload service
# ============================================================================

class Uploader(Protocol):
    async def upload(self, content: bytes, display_name: str) -> str:
        ...


def _status_message(response: httpx.Response) -> str:
    status = response.status_code
    if status == 401:
        return "Invalid Roblox API key. Check your ROBLOX_API_KEY environment variable."
    if status == 403:
        return "Access denied. The API key lacks the asset:write scope for this creator."
    if status == 429:
        return "Rate limit exceeded by the asset store."
    return f"Asset store returned status {status}: {response.text[:300]}"


class RobloxAssetUploader:
    """Open Cloud Assets API client (``POST /assets/v1/assets`` + operation polling)."""

    def __init__(
        self,
        api_key: str,
        creator_id: str,
        *,
        base_url: str = settings.ROBLOX_API_BASE,
        poll_interval: float = settings.POLL_INTERVAL,
        poll_max_attempts: int = settings.POLL_MAX_ATTEMPTS,
        timeout: float = settings.HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.creator_id = str(creator_id)
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"x-api-key": api_key.strip()},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RobloxAssetUploader":
        api_key = os.environ.get("ROBLOX_API_KEY", "")
        creator_id = os.environ.get("ROBLOX_CREATOR_ID", "")
        if not api_key or not creator_id:
            raise ConfigurationError(
                "ROBLOX_API_KEY and ROBLOX_CREATOR_ID must be set to upload images."
            )
        return cls(api_key, creator_id, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RobloxAssetUploader":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def upload(self, content: bytes, display_name: str) -> str:
        """Upload one PNG and return its numeric asset id."""
        request = {
            "assetType": "Image",
            "displayName": display_name[:DISPLAY_NAME_LIMIT],
            "description": "FigmaForge export",
            "creationContext": {"creator": {"userId": self.creator_id}},
        }
        try:
            response = await self._client.post(
                "/assets/v1/assets",
                data={"request": json.dumps(request)},
                files={"fileContent": (f"{display_name}.png", content, "image/png")},
            )
        except httpx.TimeoutException as e:
            raise AssetUploadError(f"Upload of '{display_name}' timed out") from e
        except httpx.HTTPError as e:
            raise AssetUploadError(f"Upload of '{display_name}' failed: {e}") from e

        if response.is_error:
            raise AssetUploadError(_status_message(response), status_code=response.status_code)

        try:
            result = response.json()
        except ValueError as e:
            raise AssetUploadError(f"Asset store returned non-JSON body: {response.text[:200]}") from e

        if result.get("done") and (result.get("response") or {}).get("assetId"):
            return str(result["response"]["assetId"])
        if result.get("path"):
            final = await self._poll(result["path"])
            asset_id = (final.get("response") or {}).get("assetId")
            if asset_id:
                return str(asset_id)
        if result.get("assetId"):
            return str(result["assetId"])
        raise AssetUploadError(f"No assetId in response: {json.dumps(result)[:200]}")

    async def _poll(self, operation_path: str) -> Dict[str, Any]:
        url = operation_path if operation_path.startswith("http") else f"/assets/v1/{operation_path}"
        for attempt in range(1, self.poll_max_attempts + 1):
            await self._sleep(self.poll_interval)
            try:
                response = await self._client.get(url)
            except httpx.HTTPError as e:
                logger.debug("Poll %d for %s failed: %s", attempt, operation_path, e)
                continue
            if response.status_code != 200:
                continue
            try:
                result = response.json()
            except ValueError:
                continue
            if result.get("done"):
                return result
        raise UploadTimeoutError(
            f"Operation {operation_path} not done after {self.poll_max_attempts} polls "
            f"({self.poll_max_attempts * self.poll_interval:.0f}s)"
        )


# ============================================================================
# Resolver
# ============================================================================

def decode_raw_content(content_hash: str, blob: str) -> bytes:
    """Raw content is base64 PNG, optionally as a data URI."""
    if blob.startswith("data:"):
        blob = blob.split(",", 1)[-1]
    try:
        return base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ManifestError(f"Raw content for hash '{content_hash}' is not valid base64") from e


@dataclass
class ResolutionStats:
    uploaded: int = 0
    cache_hits: int = 0


class AssetResolver:
    """Resolves content hashes to ``rbxassetid://`` references, one upload at a time."""

    def __init__(
        self,
        cache: AssetCache,
        raw_content: Mapping[str, str],
        uploader: Optional[Uploader] = None,
        upload_delay: float = settings.UPLOAD_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.raw_content = raw_content
        self.uploader = uploader
        self.upload_delay = upload_delay
        self._sleep = sleep
        self._uploaded_once = False
        self.stats = ResolutionStats()

    async def resolve_one(self, content_hash: str, node_id: Optional[str] = None) -> str:
        entry = self.cache.get(content_hash)
        if entry is not None:
            self.stats.cache_hits += 1
            return asset_uri(entry.asset_id)

        blob = self.raw_content.get(content_hash)
        if not blob:
            raise MissingContentError(content_hash, node_id)
        if self.uploader is None:
            raise ConfigurationError(
                f"Hash '{content_hash}' is not cached and no uploader is configured."
            )
        content = decode_raw_content(content_hash, blob)

        if self._uploaded_once and self.upload_delay > 0:
            await self._sleep(self.upload_delay)
        logger.info("Uploading %s (%.1f KB)", content_hash[:15], len(content) / 1024)
        try:
            asset_id = await self.uploader.upload(content, f"figmaforge_{content_hash[:8]}")
        except AssetUploadError as e:
            if e.content_hash is None:
                e.content_hash = content_hash
            raise
        self._uploaded_once = True
        self.cache.put(content_hash, asset_id)
        self.stats.uploaded += 1
        logger.info("Uploaded %s -> %s", content_hash[:15], asset_uri(asset_id))
        return asset_uri(asset_id)

    async def resolve(self, hashes: Iterable[str], owners: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Resolve distinct hashes in order; the first failure aborts."""
        owners = owners or {}
        resolved: Dict[str, str] = {}
        for content_hash in hashes:
            if content_hash in resolved:
                continue
            resolved[content_hash] = await self.resolve_one(content_hash, owners.get(content_hash))
        return resolved


# ============================================================================
# Tree integration
# ============================================================================

@dataclass
class ResolutionPlan:
    """Ordered distinct hashes to resolve plus the node that first needed each."""
    hashes: List[str] = field(default_factory=list)
    owners: Dict[str, str] = field(default_factory=dict)

    def add(self, content_hash: str, node_id: Optional[str]) -> None:
        if content_hash in self.owners:
            return
        self.hashes.append(content_hash)
        self.owners[content_hash] = node_id or ''


def build_resolution_plan(
    root: BaseNode,
    declared: Iterable[str] = (),
    reuse: Optional[Mapping[str, str]] = None,
) -> ResolutionPlan:
    """Collect every hash the tree needs, then declared hashes no node accounts for.

    The walk stops at RASTER nodes, whose descendants are drawn into their
    pixels. Nodes covered by ``reuse`` are skipped, and so are declared raster
    keys of nodes drawn natively (solid fills, plain text).
    """
    declared = list(declared)
    declared_set = set(declared)
    reuse = reuse or {}
    plan = ResolutionPlan()
    skipped: Set[str] = set()

    for node in iter_emitted_nodes(root):
        required = content_hash(node, declared_set)
        if node.id in reuse or not required:
            skipped.add(raster_key(node))
            if node.rasterized_image_hash:
                skipped.add(node.rasterized_image_hash)
            if required:
                skipped.add(required)
        else:
            plan.add(required, node.id)
        shadow = shadow_hash(node, declared_set)
        if shadow:
            plan.add(shadow, node.id)

    for content in declared:
        if content not in skipped:
            plan.add(content, None)
    return plan


def apply_resolved(root: BaseNode, resolved: Mapping[str, str], reuse: Optional[Mapping[str, str]] = None) -> None:
    """Write resolved asset references onto the nodes (reuse map first)."""
    reuse = reuse or {}
    for node in iter_emitted_nodes(root):
        if node.id in reuse:
            node.resolved_image_id = asset_uri(reuse[node.id])
        else:
            required = content_hash(node, resolved)
            if required and required in resolved:
                node.resolved_image_id = resolved[required]
        shadow = shadow_hash(node, resolved)
        if shadow and shadow in resolved:
            node.shadow_asset_id = resolved[shadow]
