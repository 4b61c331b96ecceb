"""
Library Data Access Layer

Serves read-only track snapshots, ownership and transitions to the
recommendation engine, plus the handful of user writes (transitions,
relations toggle) that change what the engine sees.

The library is held in memory, loaded from a JSON snapshot exported by the
import pipeline. Every engine-facing read goes through a per-user view so
ownership is always scoped to the requesting user.
"""

import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Set

from loguru import logger

from .camelot import are_compatible
from .models import (
    LibrarySnapshot,
    OwnershipRecord,
    Release,
    RelatedTrack,
    Song,
    Track,
    TrackRelationSummary,
    TrackSnapshot,
    Transition,
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LibraryError(Exception):
    """Base class for library data errors."""


class NotFoundError(LibraryError):
    pass


class TrackNotFoundError(NotFoundError):
    pass


class TransitionError(LibraryError):
    """A transition write broke an ownership or shape rule."""


# ---------------------------------------------------------------------------
# Engine-facing protocol
# ---------------------------------------------------------------------------

class DataAccessor(Protocol):
    """Read capabilities the recommendation engine needs from its caller."""

    def get_track(self, track_id: str) -> Optional[TrackSnapshot]:
        ...

    def get_tracks(self, track_ids: List[str]) -> List[TrackSnapshot]:
        ...

    def get_transitions(self, track_id: str) -> List[Transition]:
        ...

    def find_tracks_by_label(self, label: str, within: Set[str]) -> List[str]:
        ...

    def find_tracks_by_artist(
        self, artist: str, within: Set[str], exclude_release_id: Optional[str] = None
    ) -> List[str]:
        ...

    def artist_has_release_on_label(self, artist: str, label: str) -> bool:
        ...


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


# ---------------------------------------------------------------------------
# In-memory library
# ---------------------------------------------------------------------------

class LibraryDatabase:
    """In-memory library holding every user's collection."""

    def __init__(self, snapshot: Optional[LibrarySnapshot] = None) -> None:
        self.releases: Dict[str, Release] = {}
        self.songs: Dict[str, Song] = {}
        self.tracks: Dict[str, Track] = {}
        self.ownership: Dict[str, Dict[str, OwnershipRecord]] = {}
        self.transitions: Dict[str, Transition] = {}
        if snapshot is not None:
            self.load(snapshot)

    @classmethod
    def from_json(cls, path: Path) -> "LibraryDatabase":
        """Load a library snapshot exported as JSON."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Library snapshot not found at {path}")
        snapshot = LibrarySnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        db = cls(snapshot)
        logger.info(f"Library loaded from {path}")
        return db

    def load(self, snapshot: LibrarySnapshot) -> None:
        self.releases = {r.id: r for r in snapshot.releases}
        self.songs = {s.id: s for s in snapshot.songs}
        self.tracks = {t.id: t for t in snapshot.tracks}
        self.ownership = {}
        for record in snapshot.ownership:
            self.ownership.setdefault(record.user_id, {})[record.track_id] = record
        self.transitions = {}
        for t in snapshot.transitions:
            owned = self.ownership.get(t.user_id, {})
            if t.from_track_id not in owned or t.to_track_id not in owned:
                logger.warning(f"Dropping transition {t.id}: endpoint not owned by {t.user_id}")
                continue
            self.transitions[t.id] = t
        logger.info(
            f"Library ready: {len(self.tracks)} tracks, {len(self.releases)} releases, "
            f"{len(self.ownership)} users, {len(self.transitions)} transitions"
        )

    def to_snapshot(self) -> LibrarySnapshot:
        return LibrarySnapshot(
            releases=list(self.releases.values()),
            songs=list(self.songs.values()),
            tracks=list(self.tracks.values()),
            ownership=[r for records in self.ownership.values() for r in records.values()],
            transitions=list(self.transitions.values()),
        )

    def save_json(self, path: Path) -> None:
        Path(path).write_text(self.to_snapshot().model_dump_json(indent=2), encoding="utf-8")

    def for_user(self, user_id: str) -> "UserLibrary":
        return UserLibrary(self, user_id)

    def snapshot(self, track_id: str) -> Optional[TrackSnapshot]:
        """Join a track with its release and song."""
        track = self.tracks.get(track_id)
        if track is None:
            return None
        return TrackSnapshot(
            **track.model_dump(),
            release=self.releases.get(track.release_id) if track.release_id else None,
            song=self.songs.get(track.song_id) if track.song_id else None,
        )

    def set_relations_enabled(self, release_id: str, enabled: bool) -> Release:
        release = self.releases.get(release_id)
        if release is None:
            raise NotFoundError(f"Release {release_id} not found")
        updated = release.model_copy(update={"relations_enabled": enabled})
        self.releases[release_id] = updated
        logger.info(f"Release {release_id} relations {'enabled' if enabled else 'disabled'}")
        return updated


class UserLibrary:
    """One user's view of the library. Implements DataAccessor."""

    def __init__(self, db: LibraryDatabase, user_id: str) -> None:
        self.db = db
        self.user_id = user_id

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def owned_track_ids(self) -> List[str]:
        return list(self.db.ownership.get(self.user_id, {}))

    def owns(self, track_id: str) -> bool:
        return track_id in self.db.ownership.get(self.user_id, {})

    def _owned_snapshots(self, within: Set[str]) -> Iterable[TrackSnapshot]:
        for track_id in self.owned_track_ids():
            if track_id in within:
                snap = self.db.snapshot(track_id)
                if snap is not None:
                    yield snap

    # ------------------------------------------------------------------
    # DataAccessor
    # ------------------------------------------------------------------

    def get_track(self, track_id: str) -> Optional[TrackSnapshot]:
        return self.db.snapshot(track_id)

    def get_tracks(self, track_ids: List[str]) -> List[TrackSnapshot]:
        snaps = (self.db.snapshot(tid) for tid in track_ids)
        return [s for s in snaps if s is not None]

    def get_transitions(self, track_id: str) -> List[Transition]:
        return [
            t for t in self.db.transitions.values()
            if t.user_id == self.user_id and t.touches(track_id)
        ]

    def find_tracks_by_label(self, label: str, within: Set[str]) -> List[str]:
        """Owned tracks (from ``within``) on releases with this label, relations enabled."""
        wanted = _norm(label)
        return [
            s.id for s in self._owned_snapshots(within)
            if wanted and _norm(s.label) == wanted and not s.relations_excluded
        ]

    def find_tracks_by_artist(
        self, artist: str, within: Set[str], exclude_release_id: Optional[str] = None
    ) -> List[str]:
        """Owned tracks by this artist, optionally skipping one release."""
        wanted = _norm(artist)
        return [
            s.id for s in self._owned_snapshots(within)
            if wanted
            and _norm(s.artist) == wanted
            and not s.relations_excluded
            and (exclude_release_id is None or s.release_id != exclude_release_id)
        ]

    def artist_has_release_on_label(self, artist: str, label: str) -> bool:
        a, l = _norm(artist), _norm(label)
        if not a or not l:
            return False
        return any(
            _norm(r.artist) == a and _norm(r.label) == l
            for r in self.db.releases.values()
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_transition(
        self,
        from_track_id: str,
        to_track_id: str,
        worked_well: Optional[bool] = None,
        rating: Optional[int] = None,
        context: Optional[str] = None,
    ) -> Transition:
        """Record a transition between two tracks this user owns."""
        if from_track_id == to_track_id:
            raise TransitionError("A track cannot transition into itself")
        for tid in (from_track_id, to_track_id):
            if tid not in self.db.tracks:
                raise TrackNotFoundError(f"Track {tid} not found")
            if not self.owns(tid):
                raise TransitionError(f"Track {tid} is not in {self.user_id}'s collection")

        src = self.db.tracks[from_track_id]
        dst = self.db.tracks[to_track_id]
        bpm_diff = abs(src.bpm - dst.bpm) if src.bpm and dst.bpm else None
        src_key = src.camelot_key or src.key
        dst_key = dst.camelot_key or dst.key
        key_compatible = are_compatible(src_key, dst_key) if src_key and dst_key else None

        try:
            transition = Transition(
                id=str(uuid.uuid4())[:8],
                user_id=self.user_id,
                from_track_id=from_track_id,
                to_track_id=to_track_id,
                worked_well=worked_well,
                rating=rating,
                context=context,
                bpm_diff=bpm_diff,
                key_compatible=key_compatible,
            )
        except ValueError as e:
            raise TransitionError(str(e)) from e

        self.db.transitions[transition.id] = transition
        logger.info(f"Transition {transition.id} created: {from_track_id} -> {to_track_id}")
        return transition

    def delete_transition(self, transition_id: str) -> None:
        t = self.db.transitions.get(transition_id)
        if t is None or t.user_id != self.user_id:
            raise NotFoundError(f"Transition {transition_id} not found")
        del self.db.transitions[transition_id]
        logger.info(f"Transition {transition_id} deleted")

    def related_tracks(self, track_id: str) -> List[RelatedTrack]:
        """Tracks linked to ``track_id`` in either direction, newest first, de-duplicated."""
        mine = sorted(
            self.get_transitions(track_id), key=lambda t: t.created_at, reverse=True
        )
        outgoing = [t for t in mine if t.from_track_id == track_id]
        incoming = [t for t in mine if t.to_track_id == track_id]

        related: List[RelatedTrack] = []
        seen: Set[str] = set()
        for direction, group in (("outgoing", outgoing), ("incoming", incoming)):
            for t in group:
                other = t.other_end(track_id)
                if other in seen:
                    continue
                seen.add(other)
                snap = self.db.snapshot(other)
                related.append(RelatedTrack(
                    track_id=other,
                    track_title=snap.title if snap and snap.title else "Unknown",
                    artist=(snap.artist if snap else None) or "Unknown",
                    album=(snap.album if snap else None) or "Unknown",
                    bpm=snap.bpm if snap else None,
                    key=snap.effective_key if snap else None,
                    rating=t.rating,
                    worked_well=t.worked_well,
                    context=t.context,
                    transition_id=t.id,
                    direction=direction,
                ))
        return related

    def tracks_with_relations(self) -> List[TrackRelationSummary]:
        """Every track with at least one transition, most connected first."""
        outgoing: Dict[str, int] = {}
        incoming: Dict[str, int] = {}
        for t in self.db.transitions.values():
            if t.user_id != self.user_id:
                continue
            outgoing[t.from_track_id] = outgoing.get(t.from_track_id, 0) + 1
            incoming[t.to_track_id] = incoming.get(t.to_track_id, 0) + 1

        summaries = []
        for track_id in dict.fromkeys(list(outgoing) + list(incoming)):
            snap = self.db.snapshot(track_id)
            if snap is None:
                continue
            out_n, in_n = outgoing.get(track_id, 0), incoming.get(track_id, 0)
            summaries.append(TrackRelationSummary(
                track_id=track_id,
                track_title=snap.title or "Unknown",
                artist=snap.artist or "Unknown",
                album=snap.album or "Unknown",
                bpm=snap.bpm,
                key=snap.effective_key,
                cover_image_url=snap.release.cover_image_url if snap.release else None,
                outgoing_count=out_n,
                incoming_count=in_n,
                total_relations=out_n + in_n,
            ))
        summaries.sort(key=lambda s: s.total_relations, reverse=True)
        return summaries

    # ------------------------------------------------------------------
    # Release settings
    # ------------------------------------------------------------------

    def set_relations_enabled(self, release_id: str, enabled: bool) -> Release:
        """Toggle a release in or out of recommendations. The user must own a track on it."""
        owned_here = any(
            self.db.tracks[tid].release_id == release_id
            for tid in self.owned_track_ids()
            if tid in self.db.tracks
        )
        if not owned_here:
            raise NotFoundError(f"Release {release_id} not found in {self.user_id}'s collection")
        return self.db.set_relations_enabled(release_id, enabled)
