"""vibe-profiler: Privacy-preserving community stats for vibe coding profiles."""

__version__ = "0.1.0"

from vibe_profiler.community import RollupConfig, is_eligible_for_community_stats
from vibe_profiler.rollup import CommunityStatsPayload, CommunityStatsSuppressed, compute_community_rollup
from vibe_profiler.snapshot import CommunitySnapshot

__all__ = [
    "__version__",
    "CommunitySnapshot",
    "CommunityStatsPayload",
    "CommunityStatsSuppressed",
    "RollupConfig",
    "compute_community_rollup",
    "is_eligible_for_community_stats",
]
