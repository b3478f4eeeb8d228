"""Percentages, percentiles and bucket tables used by the community rollup."""

import math
from typing import Dict, List, Optional, Sequence, Union

Number = Union[int, float]

PERCENTILES = (25, 50, 75)

# Collaboration-rate buckets, first match wins; a rate of exactly 0 is "none"
RATE_BUCKETS = [
    (0.1, "light"),
    (0.3, "moderate"),
    (0.6, "heavy"),
]
RATE_BUCKET_NONE = "none"
RATE_BUCKET_TOP = "ai-native"
RATE_BUCKET_ORDER = [RATE_BUCKET_NONE] + [label for _, label in RATE_BUCKETS] + [RATE_BUCKET_TOP]

DIVERSITY_BUCKET_ORDER = ["0", "1", "2", "3+"]

RATE_BUCKET_LABELS: Dict[str, str] = {
    "none": "None",
    "light": "Light",
    "moderate": "Moderate",
    "heavy": "Heavy",
    "ai-native": "AI-Native",
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(math.floor(value + 0.5))


def percentage(count: int, total: int) -> float:
    """Return count/total as a percentage with one decimal place."""
    if total <= 0:
        return 0.0
    return round_half_up(count / total * 1000) / 10


def percentile(sorted_values: Sequence[Number], p: float) -> Number:
    """
    Linear-interpolation percentile over an ascending sequence.

    An integral rank returns that element unchanged; otherwise the two
    neighbouring elements are interpolated and rounded half up. An empty
    sequence yields 0.
    """
    if not sorted_values:
        return 0

    index = (p / 100) * (len(sorted_values) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return sorted_values[lower]

    low_value = sorted_values[lower]
    high_value = sorted_values[upper]
    return round_half_up(low_value + (high_value - low_value) * (index - lower))


def quartiles(values: List[Number]) -> Dict[str, Number]:
    """Return p25/p50/p75 for an unsorted list of values."""
    ordered = sorted(values)
    return {f"p{p}": percentile(ordered, p) for p in PERCENTILES}


def rate_bucket(rate: float) -> str:
    """Return the collaboration-rate bucket for a rate in [0, 1]."""
    if rate == 0:
        return RATE_BUCKET_NONE
    for ceiling, label in RATE_BUCKETS:
        if rate <= ceiling:
            return label
    return RATE_BUCKET_TOP


def diversity_bucket(tool_count: Optional[int]) -> str:
    """Return the tool-diversity bucket; an unknown count counts as zero."""
    count = tool_count or 0
    if count >= 3:
        return "3+"
    return str(max(0, count))


def bucket_percentages(labels: List[str], order: List[str]) -> List[Dict[str, Union[str, float]]]:
    """Tally labels into the fixed bucket order, every bucket always present."""
    counts = {bucket: 0 for bucket in order}
    for label in labels:
        counts[label] += 1
    total = len(labels)
    return [{"bucket": bucket, "pct": percentage(counts[bucket], total)} for bucket in order]
