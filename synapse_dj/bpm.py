"""
BPM Proximity Scoring

Tempo closeness under DJ pitch-fader limits. Differences are percentages,
not absolute BPM: a turntable at ±6% covers 7.7 BPM at 128 but only 5.4 at 90.
"""

import math
from typing import Optional, NamedTuple

from .profiles import ScoringProfile


class BpmScore(NamedTuple):
    points: float
    percent_diff: Optional[float]
    reason: Optional[str]


_NO_SCORE = BpmScore(0.0, None, None)


def _usable(bpm: Optional[float]) -> bool:
    return bpm is not None and math.isfinite(bpm) and bpm > 0


def bpm_percent_difference(
    source_bpm: Optional[float],
    candidate_bpm: Optional[float],
    reference: str = "source",
) -> Optional[float]:
    """
    Percentage tempo difference between two tracks.

    ``reference`` picks the denominator: ``source`` divides by the source
    tempo, ``min`` by the slower track, ``mean`` by the average. Missing,
    zero, negative or non-finite tempos give None.
    """
    if not _usable(source_bpm) or not _usable(candidate_bpm):
        return None
    if reference == "min":
        base = min(source_bpm, candidate_bpm)
    elif reference == "mean":
        base = (source_bpm + candidate_bpm) / 2
    else:
        base = source_bpm
    return abs(source_bpm - candidate_bpm) / base * 100


def score_bpm(
    source_bpm: Optional[float],
    candidate_bpm: Optional[float],
    profile: ScoringProfile,
) -> BpmScore:
    """Tiered BPM score. Tighter bands score higher; no tempo, no score."""
    pct = bpm_percent_difference(source_bpm, candidate_bpm, profile.bpm_reference)
    if pct is None:
        return _NO_SCORE

    for max_pct, points, labelled in profile.bpm_tiers:
        if pct <= max_pct:
            reason = f"BPM {candidate_bpm:.0f} (±{pct:.1f}%)" if labelled else None
            return BpmScore(points, pct, reason)

    return BpmScore(0.0, pct, None)
