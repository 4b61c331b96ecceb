"""
Track Recommendation Engine

Ranks a user's own tracks as mixing candidates for a source track. Combines
curated transition history, BPM proximity, Camelot key compatibility and
label/artist/genre/era affinity into one additive score with human-readable
reasons.

The engine is pure: it reads already-owned data through an injected
DataAccessor and holds no state between calls.
"""

import math
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .affinity import same_artist, same_label, score_affinity
from .bpm import score_bpm
from .camelot import CamelotWheel
from .database import DataAccessor
from .models import REASON_SEPARATOR, Recommendation, ScoreBreakdown, TrackSnapshot
from .profiles import ScoringProfile, get_profile
from .relations import (
    RANK_TRANSITION,
    PriorityEntry,
    RelationPriorityLayer,
    transition_rank_key,
    transition_reason,
)


class RecommendationEngine:
    """
    Scores and ranks candidate tracks for a source track.

    Pipeline per request:
    1. Fetch the source track (missing -> no recommendations)
    2. Build a capped candidate pool: transitions, same label, same artist, filler
    3. Fetch candidate details in one batch
    4. Score each candidate, drop silent and excluded ones
    5. Sort by score (pool order breaks ties) and truncate
    """

    def __init__(
        self,
        profile: Optional[ScoringProfile] = None,
        camelot: Optional[CamelotWheel] = None,
    ) -> None:
        self.profile = profile or get_profile()
        self.camelot = camelot or CamelotWheel()
        self.relations = RelationPriorityLayer(self.profile)

    # ------------------------------------------------------------------
    # Recommendation
    # ------------------------------------------------------------------

    def recommend(
        self,
        source_track_id: str,
        owned_track_ids: Iterable[str],
        accessor: DataAccessor,
        limit: Optional[int] = None,
    ) -> List[Recommendation]:
        """Return up to ``result_limit`` explained recommendations for a source track."""
        source = accessor.get_track(source_track_id)
        if source is None:
            logger.info(f"Source track {source_track_id} not found, no recommendations")
            return []

        pool = self.relations.build_pool(source, owned_track_ids, accessor)

        snapshots: Dict[str, TrackSnapshot] = dict(pool.snapshots)
        missing = [tid for tid in pool if tid not in snapshots]
        if missing:
            for snap in accessor.get_tracks(missing):
                snapshots.setdefault(snap.id, snap)

        artist_cache: Dict[str, bool] = {}
        scored: List[Tuple[ScoreBreakdown, TrackSnapshot, Optional[PriorityEntry]]] = []
        seen = set()
        excluded = 0

        for track_id in pool:
            candidate = snapshots.get(track_id)
            if candidate is None or candidate.id == source.id or candidate.id in seen:
                continue
            seen.add(candidate.id)
            if candidate.relations_excluded:
                excluded += 1
                continue

            entry = pool.priority.get(candidate.id)
            breakdown = self._score(source, candidate, entry, accessor, artist_cache)
            if breakdown.total > 0 and breakdown.reasons:
                scored.append((breakdown, candidate, entry))

        # list.sort is stable: equal scores keep pool order
        scored.sort(key=lambda x: x[0].total, reverse=True)

        cap = self.profile.result_limit
        if limit is not None:
            cap = max(0, min(limit, cap))

        results = [self._to_recommendation(b, c, e) for b, c, e in scored[:cap]]
        logger.info(
            f"Recommendations for {source.id}: {len(results)} returned "
            f"({len(scored)} scored, {excluded} excluded, pool {len(pool)})"
        )
        return results

    def explain(
        self,
        source_track_id: str,
        candidate_track_id: str,
        accessor: DataAccessor,
    ) -> Optional[ScoreBreakdown]:
        """Full per-component score for one pair, ignoring pool and result caps."""
        source = accessor.get_track(source_track_id)
        candidate = accessor.get_track(candidate_track_id)
        if source is None or candidate is None:
            return None

        entry = None
        partners = [
            t for t in accessor.get_transitions(source.id)
            if t.other_end(source.id) == candidate.id
        ]
        if partners:
            best = max(partners, key=transition_rank_key)
            entry = PriorityEntry(RANK_TRANSITION, self.profile.transition_bonus, transition_reason(best))

        breakdown = self._score(source, candidate, entry, accessor, {})
        breakdown.excluded = candidate.relations_excluded or candidate.id == source.id
        return breakdown

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------

    def _score(
        self,
        source: TrackSnapshot,
        candidate: TrackSnapshot,
        entry: Optional[PriorityEntry],
        accessor: DataAccessor,
        artist_cache: Dict[str, bool],
    ) -> ScoreBreakdown:
        b = ScoreBreakdown(source_track_id=source.id, candidate_track_id=candidate.id)
        reasons: List[str] = []

        # Curated transition history
        if entry is not None:
            b.relation = self._checked("relation", entry.bonus, candidate.id)
            if entry.reason and b.relation > 0:
                reasons.append(entry.reason)

        # BPM proximity
        bpm = score_bpm(source.bpm, candidate.bpm, self.profile)
        b.bpm = self._checked("bpm", bpm.points, candidate.id)
        b.bpm_percent_diff = round(bpm.percent_diff, 2) if bpm.percent_diff is not None else None
        if bpm.reason and b.bpm > 0:
            reasons.append(bpm.reason)

        # Harmonic key
        source_key = source.effective_key
        candidate_key = candidate.effective_key
        if source_key and candidate_key:
            _, b.key_relation = self.camelot.transition_score(source_key, candidate_key)
            if self.camelot.are_compatible(candidate_key, source_key):
                b.key = self._checked("key", self.profile.key_bonus, candidate.id)
                if b.key > 0:
                    reasons.append(f"Harmonic match ({candidate_key})")

        # Label / artist / genre / era
        on_label = self._artist_on_label(source, candidate, accessor, artist_cache)
        affinity = score_affinity(source, candidate, self.profile, artist_on_label=on_label)
        b.affinity = self._checked("affinity", affinity.points, candidate.id)
        if b.affinity > 0:
            reasons.extend(affinity.reasons)

        b.total = round(b.relation + b.bpm + b.key + b.affinity, 2)
        b.reasons = reasons
        return b

    def _artist_on_label(
        self,
        source: TrackSnapshot,
        candidate: TrackSnapshot,
        accessor: DataAccessor,
        cache: Dict[str, bool],
    ) -> bool:
        """Auxiliary lookup: has the candidate's artist released on the source's label?"""
        if self.profile.artist_on_label_bonus <= 0:
            return False
        if not source.label or not candidate.artist:
            return False
        if same_label(source, candidate) or same_artist(source, candidate):
            return False

        cache_key = candidate.artist.strip().casefold()
        if cache_key not in cache:
            try:
                cache[cache_key] = bool(
                    accessor.artist_has_release_on_label(candidate.artist, source.label)
                )
            except Exception as e:
                logger.warning(
                    f"Label lookup for '{candidate.artist}' on '{source.label}' failed, ignoring: {e}"
                )
                cache[cache_key] = False
        return cache[cache_key]

    @staticmethod
    def _checked(component: str, value: Optional[float], track_id: str) -> float:
        """Drop contributions that are not finite, non-negative numbers."""
        if value is None or not math.isfinite(value) or value < 0:
            logger.warning(f"Skipping invalid {component} score {value!r} for track {track_id}")
            return 0.0
        return float(value)

    @staticmethod
    def _to_recommendation(
        b: ScoreBreakdown,
        candidate: TrackSnapshot,
        entry: Optional[PriorityEntry],
    ) -> Recommendation:
        release = candidate.release
        song = candidate.song
        if release and (release.genres or release.styles):
            genres, styles = release.genres, release.styles
        elif song:
            genres, styles = song.genres, song.styles
        else:
            genres, styles = [], []

        return Recommendation(
            track_id=candidate.id,
            track_title=candidate.title,
            artist=candidate.artist or "Unknown",
            album=candidate.album or "Unknown",
            cover_image_url=release.cover_image_url if release else None,
            label=candidate.label,
            year=candidate.year,
            bpm=candidate.bpm,
            key=candidate.effective_key,
            genres=list(genres),
            styles=list(styles),
            collection_type=release.collection_type if release else None,
            match_reason=REASON_SEPARATOR.join(b.reasons),
            reasons=list(b.reasons),
            match_score=b.total,
            priority_rank=entry.rank if entry else None,
        )


def recommend(
    source_track_id: str,
    owned_track_ids: Iterable[str],
    accessor: DataAccessor,
    profile: Optional[ScoringProfile] = None,
) -> List[Recommendation]:
    """Recommend mixing candidates for ``source_track_id`` from the user's owned tracks."""
    return RecommendationEngine(profile).recommend(source_track_id, owned_track_ids, accessor)
