"""
Resolved per-run configuration.

The CLI/server layer builds one ``ForgeConfig`` and hands it to the pipeline;
the compiler core never reads the environment itself. Defaults come from
forge/settings.py.
"""

from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from forge import settings
from forge.overrides import OverrideRule, default_override_rules

DEFAULT_INTERACTIVE_PATTERNS = [
    r'.*Button.*',
    r'.*Btn.*',
    r'.*Toggle.*',
    r'.*Checkbox.*',
    r'.*Switch.*',
]


class DedupThresholds(BaseModel):
    """Stroke-simulation clustering thresholds (empirically tuned)."""
    model_config = ConfigDict(frozen=True)

    min_group: int = Field(default=settings.DEDUP_MIN_GROUP, ge=2)
    cluster_radius: float = Field(default=settings.DEDUP_CLUSTER_RADIUS, gt=0)
    max_spread: float = Field(default=settings.DEDUP_MAX_SPREAD, gt=0)


class ForgeConfig(BaseModel):
    """Everything one compile run needs beyond the manifest itself."""
    model_config = ConfigDict(validate_assignment=True)

    interactive_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_INTERACTIVE_PATTERNS))
    override_rules: List[OverrideRule] = Field(default_factory=default_override_rules)

    # 'all': every TEXT node is a TextLabel under its own name
    # 'dynamic_prefix': runtime-bound text gets the prefix prepended to its name
    text_export_mode: Literal['all', 'dynamic_prefix'] = 'all'
    dynamic_prefix: str = '$'

    skip_dedup: bool = False
    dedup: DedupThresholds = Field(default_factory=DedupThresholds)

    upload_delay: float = Field(default=settings.UPLOAD_DELAY, ge=0)
    poll_interval: float = Field(default=settings.POLL_INTERVAL, ge=0)
    poll_max_attempts: int = Field(default=settings.POLL_MAX_ATTEMPTS, ge=1)
    http_timeout: float = Field(default=settings.HTTP_TIMEOUT, gt=0)

    cache_path: Path = settings.CACHE_PATH
