"""Compiler runtime settings - tunable parameters read from the environment.

Every value falls back to a built-in default when the variable is unset.
The resolved per-run object lives in forge/config.py; this module only holds
process-wide knobs.
"""

from __future__ import annotations

import os
from pathlib import Path


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Asset upload (Roblox Open Cloud)
# =====================================================================

ROBLOX_API_BASE = _str("ROBLOX_API_BASE", "https://apis.roblox.com")

# Seconds between consecutive uploads (rate limit pressure)
UPLOAD_DELAY = _float("FORGE_UPLOAD_DELAY", 1.5)

# Long-running operation polling
POLL_INTERVAL = _float("FORGE_POLL_INTERVAL", 2.0)
POLL_MAX_ATTEMPTS = _int("FORGE_POLL_MAX_ATTEMPTS", 60)

# Per-request HTTP timeout (seconds)
HTTP_TIMEOUT = _float("FORGE_HTTP_TIMEOUT", 60.0)


# =====================================================================
# Persistent state
# =====================================================================

CACHE_PATH = Path(_str("FORGE_CACHE_PATH", ".figmaforge-cache.json"))

LOG_DIR = Path(_str("FORGE_LOG_DIR", str(Path.cwd() / "logs")))


# =====================================================================
# Stroke-duplication heuristic
# =====================================================================

DEDUP_MIN_GROUP = _int("FORGE_DEDUP_MIN_GROUP", 5)
DEDUP_CLUSTER_RADIUS = _float("FORGE_DEDUP_CLUSTER_RADIUS", 6.0)
DEDUP_MAX_SPREAD = _float("FORGE_DEDUP_MAX_SPREAD", 8.0)
