"""Community stats eligibility, thresholds and rollup configuration."""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from vibe_profiler.errors import ConfigError

logger = logging.getLogger(__name__)

# Minimum total_commits for a profile to be included in community aggregates
COMMUNITY_ELIGIBLE_MIN_COMMITS = 80

# Minimum eligible profiles before any community stats are published
COMMUNITY_GLOBAL_THRESHOLD = 10

# Minimum profiles in a breakdown bucket before that row is published
COMMUNITY_BUCKET_THRESHOLD = 25

ROLLUP_WINDOW = "30d"
ROLLUP_VERSION = "community-v1"

ENV_PREFIX = "VIBE_PROFILER_"


@dataclass(frozen=True)
class RollupConfig:
    """Thresholds and labels used by a single rollup computation."""

    eligible_min_commits: int = COMMUNITY_ELIGIBLE_MIN_COMMITS
    global_threshold: int = COMMUNITY_GLOBAL_THRESHOLD
    bucket_threshold: int = COMMUNITY_BUCKET_THRESHOLD
    window: str = ROLLUP_WINDOW
    version: str = ROLLUP_VERSION

    def __post_init__(self) -> None:
        for name in ("eligible_min_commits", "global_threshold", "bucket_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not self.window:
            raise ConfigError("window label must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RollupConfig":
        """
        Build a config from VIBE_PROFILER_* environment variables.

        Unset variables fall back to the module defaults.
        """
        env = os.environ if environ is None else environ
        overrides: dict = {}

        for name in ("eligible_min_commits", "global_threshold", "bucket_threshold"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[name] = int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from None

        for name in ("window", "version"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw:
                overrides[name] = raw

        config = cls(**overrides)
        logger.debug("ROLLUP_CONFIG_LOADED", extra={"overrides": sorted(overrides)})
        return config


DEFAULT_CONFIG = RollupConfig()


def is_eligible_for_community_stats(total_commits: int, config: Optional[RollupConfig] = None) -> bool:
    """Return True if a profile with this many commits may join community aggregates."""
    config = config or DEFAULT_CONFIG
    return total_commits >= config.eligible_min_commits
