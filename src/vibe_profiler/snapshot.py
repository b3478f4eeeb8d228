"""Per-user community snapshots: the input records of a community rollup."""

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from vibe_profiler.community import DEFAULT_CONFIG, RollupConfig, is_eligible_for_community_stats
from vibe_profiler.errors import SnapshotError

logger = logging.getLogger(__name__)

AXIS_KEYS = (
    "automation_heaviness",
    "guardrail_strength",
    "iteration_loop_intensity",
    "planning_signal",
    "surface_area_per_change",
    "shipping_rhythm",
)

CONFIDENCE_LEVELS = ("high", "medium", "low")

PERSONA_DISPLAY_NAMES: Dict[str, str] = {
    "prompt_sprinter": "Vibe Prototyper",
    "guardrailed_viber": "Test-First Validator",
    "spec_first_director": "Spec-Driven Architect",
    "vertical_slice_shipper": "Agent Orchestrator",
    "fix_loop_hacker": "Hands-On Debugger",
    "toolsmith_viber": "Toolsmith Viber",
    "infra_weaver": "Infra Weaver",
    "rapid_risk_taker": "Rapid Risk-Taker",
    "balanced_builder": "Reflective Balancer",
}

BACKFILL_SOURCE_VERSION = "backfill-v1"


def persona_display_name(persona_id: str) -> str:
    """Return the human-readable persona name, or the id for unknown personas."""
    return PERSONA_DISPLAY_NAMES.get(persona_id, persona_id)


def is_number(value: Any) -> bool:
    """True for real ints and floats; booleans and NaN do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


@dataclass
class CommunitySnapshot:
    """Behavioral summary of one eligible user."""

    user_id: str
    total_commits: int
    total_repos: int
    persona_id: str
    persona_confidence: str
    automation_heaviness: Optional[float] = None
    guardrail_strength: Optional[float] = None
    iteration_loop_intensity: Optional[float] = None
    planning_signal: Optional[float] = None
    surface_area_per_change: Optional[float] = None
    shipping_rhythm: Optional[float] = None
    ai_collaboration_rate: Optional[float] = None
    ai_tool_diversity: Optional[int] = None
    ai_tools_detected: Optional[bool] = None

    def axis(self, key: str) -> Optional[float]:
        """Return the score for one of the six axes."""
        if key not in AXIS_KEYS:
            raise KeyError(key)
        return getattr(self, key)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CommunitySnapshot":
        """Build a snapshot from a snapshot-table row."""
        if not isinstance(row, dict):
            raise SnapshotError(f"snapshot row must be an object, got {type(row).__name__}")

        user_id = row.get("user_id")
        if user_id is None or user_id == "":
            raise SnapshotError("snapshot row is missing user_id")
        user_id = str(user_id)

        persona_id = row.get("persona_id")
        if not isinstance(persona_id, str) or not persona_id:
            raise SnapshotError(f"snapshot {user_id}: persona_id must be a non-empty string")

        confidence = row.get("persona_confidence")
        if confidence not in CONFIDENCE_LEVELS:
            raise SnapshotError(
                f"snapshot {user_id}: persona_confidence must be one of "
                f"{', '.join(CONFIDENCE_LEVELS)}, got {confidence!r}"
            )

        axes: Dict[str, Optional[float]] = {}
        for key in AXIS_KEYS:
            value = row.get(key)
            if value is not None and not is_number(value):
                raise SnapshotError(f"snapshot {user_id}: {key} must be a number, got {value!r}")
            axes[key] = value

        rate = row.get("ai_collaboration_rate")
        if rate is not None and not is_number(rate):
            raise SnapshotError(f"snapshot {user_id}: ai_collaboration_rate must be a number, got {rate!r}")

        diversity = row.get("ai_tool_diversity")
        if diversity is not None:
            diversity = _count(row, "ai_tool_diversity", user_id)

        detected = row.get("ai_tools_detected")
        if detected is not None and not isinstance(detected, bool):
            raise SnapshotError(f"snapshot {user_id}: ai_tools_detected must be a boolean, got {detected!r}")

        return cls(
            user_id=user_id,
            total_commits=_count(row, "total_commits", user_id),
            total_repos=_count(row, "total_repos", user_id),
            persona_id=persona_id,
            persona_confidence=confidence,
            ai_collaboration_rate=rate,
            ai_tool_diversity=diversity,
            ai_tools_detected=detected,
            **axes,
        )


def _count(row: Dict[str, Any], key: str, user_id: Optional[str] = None) -> int:
    """Read a non-negative integer field from a row."""
    value = row.get(key)
    label = f"snapshot {user_id}" if user_id else "snapshot row"
    if value is None:
        raise SnapshotError(f"{label} is missing {key}")
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        else:
            raise SnapshotError(f"{label}: {key} must be an integer, got {value!r}")
    if value < 0:
        raise SnapshotError(f"{label}: {key} must not be negative, got {value}")
    return value


def _json_object(profile: Dict[str, Any], key: str, user_id: str) -> Dict[str, Any]:
    """Read an optional nested object from a profile; null means empty."""
    value = profile.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SnapshotError(f"profile {user_id}: {key} must be an object, got {type(value).__name__}")
    return value


def select_eligible(rows: List[Dict[str, Any]], config: Optional[RollupConfig] = None) -> List[Dict[str, Any]]:
    """
    Keep the rows that qualify for community aggregates.

    Rows carrying an ``is_eligible`` flag are trusted; rows without one are
    checked against the minimum-commit rule.
    """
    config = config or DEFAULT_CONFIG
    eligible = []
    for row in rows:
        if not isinstance(row, dict):
            raise SnapshotError(f"snapshot row must be an object, got {type(row).__name__}")
        if "is_eligible" in row and row["is_eligible"] is not None:
            if row["is_eligible"] is True:
                eligible.append(row)
            continue
        if is_eligible_for_community_stats(_count(row, "total_commits", row.get("user_id")), config):
            eligible.append(row)

    logger.debug("ELIGIBLE_SNAPSHOTS_SELECTED", extra={"total_rows": len(rows), "eligible": len(eligible)})
    return eligible


def read_json_rows(path: str, key: str) -> List[Dict[str, Any]]:
    """Read a JSON array of rows, or an object wrapping one under ``key``."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, dict) and isinstance(data.get(key), list):
        data = data[key]
    if not isinstance(data, list):
        raise SnapshotError(f"{path} must contain a JSON array or an object with a '{key}' array")
    return data


def load_snapshots(path: str, config: Optional[RollupConfig] = None) -> List[CommunitySnapshot]:
    """Load snapshot rows from disk and return the eligible ones as snapshots."""
    rows = read_json_rows(path, "snapshots")
    snapshots = [CommunitySnapshot.from_row(row) for row in select_eligible(rows, config)]
    logger.info("SNAPSHOTS_LOADED", extra={"path": path, "rows": len(rows), "eligible": len(snapshots)})
    return snapshots


def snapshot_row_from_profile(
    profile: Dict[str, Any],
    config: Optional[RollupConfig] = None,
    today: Optional[date] = None,
    updated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Map a stored user profile onto a community snapshot row.

    Axis scores are read from ``axes_json.<axis>.score`` and default to 0;
    AI fields are read from ``ai_tools_json`` and default to null.
    """
    config = config or DEFAULT_CONFIG
    updated_at = updated_at or datetime.now(timezone.utc)
    today = today or updated_at.date()

    if not isinstance(profile, dict):
        raise SnapshotError(f"profile must be an object, got {type(profile).__name__}")
    if profile.get("user_id") in (None, ""):
        raise SnapshotError("profile is missing user_id")

    user_id = str(profile["user_id"])
    total_commits = _count(profile, "total_commits", user_id)
    axes = _json_object(profile, "axes_json", user_id)
    ai = _json_object(profile, "ai_tools_json", user_id)

    row: Dict[str, Any] = {
        "user_id": user_id,
        "snapshot_date": today.isoformat(),
        "is_eligible": is_eligible_for_community_stats(total_commits, config),
        "total_commits": total_commits,
        "total_repos": _count(profile, "total_repos", user_id),
        "persona_id": profile.get("persona_id"),
        "persona_confidence": profile.get("persona_confidence"),
        "persona_score": profile.get("persona_score") or 0,
    }
    for key in AXIS_KEYS:
        axis = axes.get(key) or {}
        score = axis.get("score") if isinstance(axis, dict) else None
        row[key] = score if score is not None else 0

    row["ai_collaboration_rate"] = ai.get("ai_collaboration_rate")
    row["ai_tool_diversity"] = ai.get("tool_diversity")
    row["ai_tools_detected"] = ai.get("detected")
    row["source_version"] = BACKFILL_SOURCE_VERSION
    row["updated_at"] = updated_at.isoformat().replace("+00:00", "Z")
    return row
