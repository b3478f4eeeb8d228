"""pytest configuration and shared fixtures."""

import json

import pytest

from vibe_profiler.snapshot import AXIS_KEYS, CommunitySnapshot


def build_snapshot(index: int = 0, **overrides) -> CommunitySnapshot:
    """A plain eligible snapshot; keyword overrides replace any field."""
    fields = {
        "user_id": f"user-{index}",
        "total_commits": 100,
        "total_repos": 3,
        "persona_id": "balanced_builder",
        "persona_confidence": "high",
    }
    fields.update({key: 50 for key in AXIS_KEYS})
    fields.update(overrides)
    return CommunitySnapshot(**fields)


@pytest.fixture
def make_snapshots():
    """Factory returning ``count`` snapshots sharing the given overrides."""

    def _make(count, start=0, **overrides):
        return [build_snapshot(start + i, **overrides) for i in range(count)]

    return _make


@pytest.fixture
def mixed_cohort(make_snapshots):
    """30 profiles: 25 balanced builders and 5 rapid risk-takers."""
    return make_snapshots(25, persona_id="balanced_builder") + make_snapshots(
        5, start=25, persona_id="rapid_risk_taker", persona_confidence="low"
    )


@pytest.fixture
def ai_cohort(make_snapshots):
    """30 profiles with detected AI tools spread evenly over the rate buckets."""
    snapshots = []
    rates = [0, 0.05, 0.2, 0.5, 0.9]
    diversities = [None] * 10 + [1] * 10 + [2] * 5 + [4] * 5
    for i in range(30):
        snapshots.append(
            build_snapshot(
                i,
                ai_tools_detected=True,
                ai_collaboration_rate=rates[i % 5],
                ai_tool_diversity=diversities[i],
            )
        )
    return snapshots


@pytest.fixture
def snapshot_row():
    """A single snapshot-table row as stored upstream."""
    return {
        "user_id": "u-1",
        "is_eligible": True,
        "total_commits": 120,
        "total_repos": 4,
        "persona_id": "prompt_sprinter",
        "persona_confidence": "medium",
        "automation_heaviness": 72,
        "guardrail_strength": 30,
        "iteration_loop_intensity": 66.5,
        "planning_signal": 20,
        "surface_area_per_change": 41,
        "shipping_rhythm": 58,
        "ai_collaboration_rate": 0.25,
        "ai_tool_diversity": 2,
        "ai_tools_detected": True,
    }


@pytest.fixture
def snapshots_file(tmp_path, snapshot_row):
    """A snapshots JSON file with 12 eligible rows and 2 ineligible ones."""
    rows = []
    for i in range(12):
        row = dict(snapshot_row, user_id=f"u-{i}")
        rows.append(row)
    rows.append(dict(snapshot_row, user_id="flagged-out", is_eligible=False))
    unflagged = dict(snapshot_row, user_id="too-few-commits", total_commits=40)
    del unflagged["is_eligible"]
    rows.append(unflagged)

    path = tmp_path / "snapshots.json"
    path.write_text(json.dumps(rows))
    return path
