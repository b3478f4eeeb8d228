"""File-backed store of computed rollups and the public read side."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from vibe_profiler.community import DEFAULT_CONFIG, RollupConfig
from vibe_profiler.errors import StoreError
from vibe_profiler.rollup import SUPPRESSION_NO_DATA_YET, CommunityStatsResult, as_utc, compute_community_rollup
from vibe_profiler.snapshot import CommunitySnapshot

logger = logging.getLogger(__name__)

# Public cache policies for the stats endpoint
CACHE_CONTROL_ROLLUP = "public, s-maxage=300, stale-while-revalidate=3600"
CACHE_CONTROL_NO_DATA = "public, s-maxage=60, stale-while-revalidate=300"


@dataclass
class StatsResponse:
    """Payload served to readers together with its cache policy."""

    payload: Dict[str, Any]
    cache_control: str


class RollupStore:
    """Rollup records kept in a single JSON file, newest appended last."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def records(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StoreError(f"cannot read rollup store {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise StoreError(f"rollup store {self.path} is corrupt: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"rollup store {self.path} must contain a JSON array")
        if not all(isinstance(record, dict) for record in data):
            raise StoreError(f"rollup store {self.path} must contain an array of objects")
        return data

    def insert(self, record: Dict[str, Any]) -> None:
        records = self.records()
        records.append(record)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write(records)
        logger.debug("ROLLUP_RECORD_INSERTED", extra={"store": str(self.path), "records": len(records)})

    def _write(self, records: List[Dict[str, Any]]) -> None:
        """Replace the store file in one step so readers never see a partial write."""
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            Path(tmp_name).replace(self.path)
        except OSError as e:
            raise StoreError(f"cannot write rollup store {self.path}: {e}") from e
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    def latest(self, window: str) -> Optional[Dict[str, Any]]:
        """Return the newest record for a window; later inserts win ties on as_of_date."""
        latest = None
        for record in self.records():
            if record.get("window") != window:
                continue
            if latest is None or str(record.get("as_of_date", "")) >= str(latest.get("as_of_date", "")):
                latest = record
        return latest


def store_rollup(
    store: RollupStore,
    snapshots: Sequence[CommunitySnapshot],
    config: Optional[RollupConfig] = None,
    now: Optional[datetime] = None,
) -> CommunityStatsResult:
    """Compute the rollup for the given snapshots and persist it."""
    config = config or DEFAULT_CONFIG
    now = as_utc(now)
    result = compute_community_rollup(snapshots, config=config, now=now)

    store.insert(
        {
            "window": config.window,
            "as_of_date": now.date().isoformat(),
            "payload_json": result.to_dict(),
            "eligible_profiles": len(snapshots),
            "source_version": config.version,
            "generated_at": now.isoformat().replace("+00:00", "Z"),
        }
    )
    logger.info(
        "ROLLUP_STORED",
        extra={"eligible_profiles": len(snapshots), "suppressed": result.suppressed, "window": config.window},
    )
    return result


def read_community_stats(store: RollupStore, config: Optional[RollupConfig] = None) -> StatsResponse:
    """Return the latest stored payload, or a no-data placeholder."""
    config = config or DEFAULT_CONFIG
    record = store.latest(config.window)

    if record is None:
        return StatsResponse(
            payload={
                "suppressed": True,
                "reason": SUPPRESSION_NO_DATA_YET,
                "eligible_profiles": 0,
                "threshold": config.global_threshold,
            },
            cache_control=CACHE_CONTROL_NO_DATA,
        )

    return StatsResponse(payload=record.get("payload_json", {}), cache_control=CACHE_CONTROL_ROLLUP)
