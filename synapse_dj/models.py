"""
Data Models for the Synapse DJ recommendation engine

Collection entities (releases, songs, tracks, ownership, transitions) as read
from the hosted library, plus the ephemeral recommendation result.
"""

from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Collection constants
# ---------------------------------------------------------------------------

COLLECTION_TYPES = ("vinyl", "digital")
OWNERSHIP_SOURCES = ("vinyl", "digital", "rekordbox", "discogs")

REASON_SEPARATOR = " • "


def _dedupe(values: List[str]) -> List[str]:
    """Drop blank and repeated tags, keeping first-seen order."""
    seen = set()
    out = []
    for v in values:
        v = (v or "").strip()
        if v and v.lower() not in seen:
            seen.add(v.lower())
            out.append(v)
    return out


# ---------------------------------------------------------------------------
# Catalogue models
# ---------------------------------------------------------------------------

class Release(BaseModel):
    """A physical or digital album/EP imported from Discogs or Rekordbox."""

    id: str = Field(..., description="Unique release identifier")
    title: str = Field("", description="Release title")
    artist: Optional[str] = Field(None, description="Primary release artist")
    label: Optional[str] = Field(None, description="Record label")
    year: Optional[int] = Field(None, description="Release year")
    genres: List[str] = Field(default_factory=list, description="Discogs genre tags")
    styles: List[str] = Field(default_factory=list, description="Discogs style tags")
    cover_image_url: Optional[str] = Field(None, description="Cover art reference")
    collection_type: Optional[str] = Field(None, description="vinyl or digital")
    relations_enabled: bool = Field(
        True, description="False when the user excluded this release from recommendations"
    )

    @field_validator("collection_type")
    @classmethod
    def _check_collection_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in COLLECTION_TYPES:
            raise ValueError(f"collection_type must be one of {COLLECTION_TYPES}")
        return v

    @property
    def relations_excluded(self) -> bool:
        return not self.relations_enabled


class Song(BaseModel):
    """Canonical musical work shared by tracks on different pressings."""

    id: str
    title: str = ""
    artist: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)


class Track(BaseModel):
    """A playable unit on a release."""

    id: str = Field(..., description="Unique track identifier")
    title: str = Field("", description="Track title")
    bpm: Optional[float] = Field(None, description="Beats per minute")
    key: Optional[str] = Field(None, description="Musical key as imported (e.g. 'Am', '8A')")
    camelot_key: Optional[str] = Field(None, description="Normalised Camelot key (e.g. '8A')")
    duration: Optional[int] = Field(None, ge=0, description="Length in seconds")
    release_id: Optional[str] = Field(None, description="Owning release")
    song_id: Optional[str] = Field(None, description="Owning canonical song")

    def duration_formatted(self) -> str:
        if not self.duration or self.duration <= 0:
            return "0:00"
        minutes = self.duration // 60
        seconds = self.duration % 60
        return f"{minutes}:{seconds:02d}"


class TrackSnapshot(Track):
    """Track joined with its release and song, as handed to the scoring engine."""

    release: Optional[Release] = None
    song: Optional[Song] = None

    @property
    def artist(self) -> Optional[str]:
        if self.release and self.release.artist:
            return self.release.artist
        return self.song.artist if self.song else None

    @property
    def label(self) -> Optional[str]:
        return self.release.label if self.release else None

    @property
    def year(self) -> Optional[int]:
        return self.release.year if self.release else None

    @property
    def album(self) -> Optional[str]:
        return self.release.title if self.release else None

    @property
    def genre_tags(self) -> List[str]:
        """Release genres + styles, falling back to the song's when the release has none."""
        if self.release and (self.release.genres or self.release.styles):
            return _dedupe(self.release.genres + self.release.styles)
        if self.song:
            return _dedupe(self.song.genres + self.song.styles)
        return []

    @property
    def effective_key(self) -> Optional[str]:
        return self.camelot_key or self.key

    @property
    def relations_excluded(self) -> bool:
        return bool(self.release and self.release.relations_excluded)


# ---------------------------------------------------------------------------
# User-owned data
# ---------------------------------------------------------------------------

class OwnershipRecord(BaseModel):
    """Links a user to a track they possess."""

    user_id: str
    track_id: str
    rating: Optional[int] = Field(None, ge=0, le=5, description="Personal rating (0-5 stars)")
    play_count: int = Field(0, ge=0)
    source: Optional[str] = Field(None, description="vinyl, digital, rekordbox or discogs")

    @field_validator("source")
    @classmethod
    def _check_source(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in OWNERSHIP_SOURCES:
            raise ValueError(f"source must be one of {OWNERSHIP_SOURCES}")
        return v


class Transition(BaseModel):
    """A directed, user-curated edge between two owned tracks."""

    id: str
    user_id: str
    from_track_id: str
    to_track_id: str
    worked_well: Optional[bool] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    context: Optional[str] = None
    bpm_diff: Optional[float] = None
    key_compatible: Optional[bool] = None
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    @model_validator(mode="after")
    def _distinct_endpoints(self) -> "Transition":
        if self.from_track_id == self.to_track_id:
            raise ValueError("A transition must connect two different tracks")
        return self

    def touches(self, track_id: str) -> bool:
        return track_id in (self.from_track_id, self.to_track_id)

    def other_end(self, track_id: str) -> Optional[str]:
        """The endpoint opposite ``track_id``, or None if the transition doesn't touch it."""
        if track_id == self.from_track_id:
            return self.to_track_id
        if track_id == self.to_track_id:
            return self.from_track_id
        return None


class LibrarySnapshot(BaseModel):
    """Everything the data-access layer serves, serialisable to one JSON file."""

    releases: List[Release] = Field(default_factory=list)
    songs: List[Song] = Field(default_factory=list)
    tracks: List[Track] = Field(default_factory=list)
    ownership: List[OwnershipRecord] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Recommendation output
# ---------------------------------------------------------------------------

class Recommendation(BaseModel):
    """One ranked, explained candidate for a source track. Never persisted."""

    track_id: str
    track_title: str = ""
    artist: str = "Unknown"
    album: str = "Unknown"
    cover_image_url: Optional[str] = None
    label: Optional[str] = None
    year: Optional[int] = None
    bpm: Optional[float] = None
    key: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    collection_type: Optional[str] = None
    match_reason: str = ""
    reasons: List[str] = Field(default_factory=list)
    match_score: float = 0.0
    priority_rank: Optional[int] = Field(
        None, description="1 = curated transition, 2 = same label, 3 = same artist"
    )


class ScoreBreakdown(BaseModel):
    """Per-component scoring of one source/candidate pair."""

    source_track_id: str
    candidate_track_id: str
    relation: float = 0.0
    bpm: float = 0.0
    bpm_percent_diff: Optional[float] = None
    key: float = 0.0
    key_relation: str = "unknown"
    affinity: float = 0.0
    total: float = 0.0
    excluded: bool = False
    reasons: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Relation views
# ---------------------------------------------------------------------------

class RelatedTrack(BaseModel):
    """A track linked to another by a curated transition, seen from one end."""

    track_id: str
    track_title: str = "Unknown"
    artist: str = "Unknown"
    album: str = "Unknown"
    bpm: Optional[float] = None
    key: Optional[str] = None
    rating: Optional[int] = None
    worked_well: Optional[bool] = None
    context: Optional[str] = None
    transition_id: str
    direction: str = Field(..., description="outgoing or incoming")


class TrackRelationSummary(BaseModel):
    """Relation counts for a track that has at least one transition."""

    track_id: str
    track_title: str = "Unknown"
    artist: str = "Unknown"
    album: str = "Unknown"
    bpm: Optional[float] = None
    key: Optional[str] = None
    cover_image_url: Optional[str] = None
    outgoing_count: int = 0
    incoming_count: int = 0
    total_relations: int = 0
