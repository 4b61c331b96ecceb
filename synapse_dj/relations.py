"""
Relation Priority Layer

Builds the bounded candidate pool for one source track. Tracks the user has
already mixed with the source come first, then owned tracks on the same
label, then owned tracks by the same artist on other releases, then generic
filler from the rest of the collection.

The pool size is a hard ceiling on per-request work: every id in it costs a
detail fetch and possibly an auxiliary lookup downstream.
"""

from typing import Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Set

from loguru import logger

from .database import DataAccessor
from .models import TrackSnapshot, Transition
from .profiles import ScoringProfile


RANK_TRANSITION = 1
RANK_LABEL = 2
RANK_ARTIST = 3


class PriorityEntry(NamedTuple):
    rank: int
    bonus: float
    reason: Optional[str]


class CandidatePool:
    """Ordered, de-duplicated, capped set of candidate track ids."""

    def __init__(self, source_track_id: str, cap: int) -> None:
        self.source_track_id = source_track_id
        self.cap = cap
        self.ids: List[str] = []
        self.priority: Dict[str, PriorityEntry] = {}
        # Details already fetched while building the pool
        self.snapshots: Dict[str, TrackSnapshot] = {}
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._seen

    @property
    def full(self) -> bool:
        return len(self.ids) >= self.cap

    def add(self, track_id: str, entry: Optional[PriorityEntry] = None) -> bool:
        """Append ``track_id`` unless it is the source, a repeat, or the pool is full."""
        if self.full or track_id == self.source_track_id or track_id in self._seen:
            return False
        self._seen.add(track_id)
        self.ids.append(track_id)
        if entry is not None:
            self.priority[track_id] = entry
        return True

    @property
    def priority_count(self) -> int:
        return len(self.priority)


def transition_rank_key(t: Transition):
    return (t.worked_well is True, t.worked_well is not False, t.rating or 0)


def transition_reason(t: Transition) -> str:
    details = []
    if t.worked_well is True:
        details.append("worked")
    elif t.worked_well is False:
        details.append("didn't work")
    if t.rating:
        details.append(f"rated {t.rating}/5")
    return f"Mixed before ({', '.join(details)})" if details else "Mixed before"


class RelationPriorityLayer:
    """Selects and ranks priority candidates ahead of generic filler."""

    def __init__(self, profile: ScoringProfile) -> None:
        self.profile = profile

    def build_pool(
        self,
        source: TrackSnapshot,
        owned_track_ids: Iterable[str],
        accessor: DataAccessor,
    ) -> CandidatePool:
        owned = list(dict.fromkeys(owned_track_ids))
        owned_set = set(owned)
        pool = CandidatePool(source.id, self.profile.candidate_cap)

        self._add_transition_partners(pool, source, owned_set, accessor)

        if source.label and not pool.full:
            for track_id in self._lookup(
                "label", accessor.find_tracks_by_label, source.label, owned_set
            ):
                pool.add(track_id, PriorityEntry(RANK_LABEL, 0.0, None))

        if source.artist and not pool.full:
            for track_id in self._lookup(
                "artist", accessor.find_tracks_by_artist, source.artist, owned_set,
                exclude_release_id=source.release_id,
            ):
                pool.add(track_id, PriorityEntry(RANK_ARTIST, 0.0, None))

        priority_count = pool.priority_count
        self._add_filler(pool, owned, accessor)

        logger.debug(
            f"Candidate pool for {source.id}: {priority_count} priority, "
            f"{len(pool) - priority_count} filler (cap {pool.cap}, owned {len(owned)})"
        )
        return pool

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _add_transition_partners(
        self,
        pool: CandidatePool,
        source: TrackSnapshot,
        owned_set: Set[str],
        accessor: DataAccessor,
    ) -> None:
        """Rank 1: endpoints of the source's curated transitions, either direction."""
        best: Dict[str, Transition] = {}
        for t in accessor.get_transitions(source.id):
            other = t.other_end(source.id)
            if other is None or other == source.id:
                continue
            if other not in owned_set:
                logger.debug(f"Transition {t.id} points at unowned track {other}, skipping")
                continue
            if other not in best or transition_rank_key(t) > transition_rank_key(best[other]):
                best[other] = t

        if not best:
            return

        for snapshot in accessor.get_tracks(list(best)):
            if snapshot.relations_excluded:
                continue
            t = best[snapshot.id]
            entry = PriorityEntry(RANK_TRANSITION, self.profile.transition_bonus, transition_reason(t))
            if pool.add(snapshot.id, entry):
                pool.snapshots[snapshot.id] = snapshot

    @staticmethod
    def _add_filler(pool: CandidatePool, owned: List[str], accessor: DataAccessor) -> None:
        """Fill remaining slots in owned order, fetching in batches so excluded releases never take a slot."""
        remaining = [tid for tid in owned if tid not in pool and tid != pool.source_track_id]
        start = 0
        while not pool.full and start < len(remaining):
            batch = remaining[start:start + pool.cap - len(pool)]
            start += len(batch)
            fetched = {snap.id: snap for snap in accessor.get_tracks(batch)}
            for track_id in batch:
                snapshot = fetched.get(track_id)
                if snapshot is None or snapshot.relations_excluded:
                    continue
                if pool.add(track_id):
                    pool.snapshots[track_id] = snapshot

    @staticmethod
    def _lookup(
        what: str,
        fn: Callable[..., List[str]],
        value: str,
        owned_set: Set[str],
        **kwargs,
    ) -> List[str]:
        """Run an auxiliary lookup; a failure means 'no matches', not an error."""
        try:
            return list(fn(value, owned_set, **kwargs))
        except Exception as e:
            logger.warning(f"Same-{what} lookup for '{value}' failed, ignoring: {e}")
            return []
