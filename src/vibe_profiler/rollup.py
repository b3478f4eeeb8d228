"""Community rollup: privacy-preserving aggregate stats over eligible snapshots."""

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from vibe_profiler.community import DEFAULT_CONFIG, RollupConfig
from vibe_profiler.scoring import (
    DIVERSITY_BUCKET_ORDER,
    RATE_BUCKET_ORDER,
    Number,
    bucket_percentages,
    diversity_bucket,
    percentage,
    quartiles,
    rate_bucket,
)
from vibe_profiler.snapshot import AXIS_KEYS, CONFIDENCE_LEVELS, CommunitySnapshot, is_number, persona_display_name

logger = logging.getLogger(__name__)

SUPPRESSION_INSUFFICIENT_DATA = "insufficient_data"
SUPPRESSION_NO_DATA_YET = "no_data_yet"


@dataclass
class PersonaShare:
    id: str
    name: str
    pct: float


@dataclass
class AxisQuartiles:
    p25: Number
    p50: Number
    p75: Number


@dataclass
class BucketShare:
    bucket: str
    pct: float


@dataclass
class AIToolsStats:
    """AI tool adoption across profiles where tool detection ran."""

    eligible_profiles_with_data: int
    collaboration_rate_buckets: List[BucketShare] = field(default_factory=list)
    tool_diversity_buckets: List[BucketShare] = field(default_factory=list)


@dataclass
class RollupMeta:
    window: str
    version: str
    generated_at: str


@dataclass
class CommunityStatsSuppressed:
    """Rollup withheld because too few profiles support it."""

    reason: str
    eligible_profiles: int
    threshold: int
    suppressed: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suppressed": True,
            "reason": self.reason,
            "eligible_profiles": self.eligible_profiles,
            "threshold": self.threshold,
        }


@dataclass
class CommunityStatsPayload:
    """Published community aggregate for one rollup window."""

    as_of: str
    eligible_profiles: int
    eligible_repos: int
    total_analyzed_commits: int
    personas: List[PersonaShare]
    persona_confidence: Dict[str, float]
    axes: Dict[str, AxisQuartiles]
    ai_tools: Optional[AIToolsStats]
    meta: RollupMeta
    suppressed: bool = field(default=False, init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("suppressed")
        return {"suppressed": False, **data}


CommunityStatsResult = Union[CommunityStatsPayload, CommunityStatsSuppressed]


def as_utc(now: Optional[datetime] = None) -> datetime:
    """Return now (or the current time) as an aware UTC datetime; naive values are taken as UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _persona_distribution(snapshots: Sequence[CommunitySnapshot], bucket_threshold: int) -> List[PersonaShare]:
    """Persona shares of the cohort, omitting personas below the bucket threshold."""
    total = len(snapshots)
    counts = Counter(s.persona_id for s in snapshots)

    shares = []
    for persona_id, count in counts.items():
        if count < bucket_threshold:
            logger.debug(
                "PERSONA_BUCKET_SUPPRESSED",
                extra={"persona_id": persona_id, "group_size": count, "k_threshold": bucket_threshold},
            )
            continue
        shares.append(PersonaShare(id=persona_id, name=persona_display_name(persona_id), pct=percentage(count, total)))

    shares.sort(key=lambda share: share.pct, reverse=True)
    return shares


def _confidence_distribution(snapshots: Sequence[CommunitySnapshot]) -> Dict[str, float]:
    total = len(snapshots)
    counts = Counter(s.persona_confidence for s in snapshots)
    return {level: percentage(counts.get(level, 0), total) for level in CONFIDENCE_LEVELS}


def _axis_quartiles(snapshots: Sequence[CommunitySnapshot]) -> Dict[str, AxisQuartiles]:
    axes = {}
    for key in AXIS_KEYS:
        values = [s.axis(key) for s in snapshots]
        axes[key] = AxisQuartiles(**quartiles([v for v in values if is_number(v)]))
    return axes


def _ai_tools_stats(snapshots: Sequence[CommunitySnapshot], bucket_threshold: int) -> Optional[AIToolsStats]:
    """
    AI adoption buckets over snapshots where tools were detected.

    The whole sub-aggregate is withheld when its cohort is below the bucket
    threshold. A detected snapshot with an unknown tool count lands in the
    "0" diversity bucket.
    """
    with_data = [s for s in snapshots if s.ai_tools_detected is True and s.ai_collaboration_rate is not None]

    if len(with_data) < bucket_threshold:
        logger.info(
            "AI_TOOLS_SUPPRESSED",
            extra={"group_size": len(with_data), "k_threshold": bucket_threshold},
        )
        return None

    rate_buckets = bucket_percentages([rate_bucket(s.ai_collaboration_rate) for s in with_data], RATE_BUCKET_ORDER)
    diversity_buckets = bucket_percentages(
        [diversity_bucket(s.ai_tool_diversity) for s in with_data], DIVERSITY_BUCKET_ORDER
    )

    return AIToolsStats(
        eligible_profiles_with_data=len(with_data),
        collaboration_rate_buckets=[BucketShare(**b) for b in rate_buckets],
        tool_diversity_buckets=[BucketShare(**b) for b in diversity_buckets],
    )


def compute_community_rollup(
    snapshots: Sequence[CommunitySnapshot],
    config: Optional[RollupConfig] = None,
    now: Optional[datetime] = None,
) -> CommunityStatsResult:
    """
    Aggregate eligible snapshots into community stats.

    Args:
        snapshots: Eligible snapshots; no eligibility filtering happens here
        config: Thresholds and labels (defaults to the module constants)
        now: Clock override for the as_of and generated_at fields

    Returns:
        CommunityStatsSuppressed when the cohort is below the global
        threshold, otherwise a CommunityStatsPayload
    """
    config = config or DEFAULT_CONFIG
    total = len(snapshots)

    if total < config.global_threshold:
        logger.info(
            "COMMUNITY_ROLLUP_SUPPRESSED",
            extra={
                "eligible_profiles": total,
                "k_threshold": config.global_threshold,
                "reason": SUPPRESSION_INSUFFICIENT_DATA,
            },
        )
        return CommunityStatsSuppressed(
            reason=SUPPRESSION_INSUFFICIENT_DATA,
            eligible_profiles=total,
            threshold=config.global_threshold,
        )

    now = as_utc(now)

    payload = CommunityStatsPayload(
        as_of=now.date().isoformat(),
        eligible_profiles=total,
        eligible_repos=sum(s.total_repos for s in snapshots),
        total_analyzed_commits=sum(s.total_commits for s in snapshots),
        personas=_persona_distribution(snapshots, config.bucket_threshold),
        persona_confidence=_confidence_distribution(snapshots),
        axes=_axis_quartiles(snapshots),
        ai_tools=_ai_tools_stats(snapshots, config.bucket_threshold),
        meta=RollupMeta(
            window=config.window,
            version=config.version,
            generated_at=now.isoformat().replace("+00:00", "Z"),
        ),
    )

    logger.info(
        "COMMUNITY_ROLLUP_COMPUTED",
        extra={
            "eligible_profiles": total,
            "published_personas": len(payload.personas),
            "ai_tools_published": payload.ai_tools is not None,
        },
    )
    return payload
