"""
Affinity Scoring

Label, artist, genre and era overlap between two tracks. All bonuses are
additive; nothing here is clamped.
"""

from typing import List, Optional, NamedTuple

from .models import TrackSnapshot
from .profiles import ScoringProfile


class AffinityScore(NamedTuple):
    points: float
    reasons: List[str]


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def same_label(source: TrackSnapshot, candidate: TrackSnapshot) -> bool:
    return bool(_norm(source.label)) and _norm(source.label) == _norm(candidate.label)


def same_artist(source: TrackSnapshot, candidate: TrackSnapshot) -> bool:
    return bool(_norm(source.artist)) and _norm(source.artist) == _norm(candidate.artist)


def _tags(track: TrackSnapshot, fields: str) -> List[str]:
    if fields == "genres":
        if track.release and track.release.genres:
            return list(track.release.genres)
        return list(track.song.genres) if track.song else []
    return track.genre_tags


def shared_genres(
    source: TrackSnapshot,
    candidate: TrackSnapshot,
    stoplist: List[str],
    fields: str = "all",
    case_sensitive: bool = False,
) -> List[str]:
    """
    Tags present on both tracks, minus generic ones, in the source's order.

    ``fields`` picks the tags compared: ``all`` is genres plus styles,
    ``genres`` is the broad genre list only.
    """
    key = (lambda g: (g or "").strip()) if case_sensitive else _norm
    candidate_tags = {key(g) for g in _tags(candidate, fields)}
    stop = set(stoplist)
    shared = []
    for g in _tags(source, fields):
        k = key(g)
        if k and k in candidate_tags and _norm(g) not in stop and g not in shared:
            shared.append(g)
    return shared


def score_affinity(
    source: TrackSnapshot,
    candidate: TrackSnapshot,
    profile: ScoringProfile,
    artist_on_label: bool = False,
) -> AffinityScore:
    """
    Score label/artist/genre/era overlap.

    ``artist_on_label`` is the answer to the auxiliary lookup "does the
    candidate's artist have a release on the source's label"; the caller
    resolves it (or leaves it False when the lookup failed).
    """
    points = 0.0
    reasons: List[str] = []

    label_match = same_label(source, candidate)
    artist_match = same_artist(source, candidate)

    if label_match:
        points += profile.label_bonus
        reasons.append(f"Same label ({candidate.label})")

    if artist_match:
        if label_match and profile.stack_label_artist:
            points += profile.label_artist_bonus
        else:
            points += profile.artist_bonus
        reasons.append("Same artist")
    elif (
        not label_match
        and artist_on_label
        and profile.artist_on_label_bonus > 0
        and source.label
    ):
        points += profile.artist_on_label_bonus
        reasons.append(f"Artist also on {source.label}")

    shared = shared_genres(
        source,
        candidate,
        profile.genre_stoplist,
        fields=profile.genre_fields,
        case_sensitive=profile.genre_case_sensitive,
    )
    genre_points = min(len(shared), profile.genre_tag_limit) * profile.genre_bonus_per_tag
    if genre_points > 0:
        points += genre_points
        reasons.append(f"Genre: {', '.join(shared[:profile.genre_reason_limit])}")

    if source.year and candidate.year:
        year_diff = abs(source.year - candidate.year)
        if year_diff == 0:
            points += profile.same_year_bonus
            if profile.year_reasons:
                reasons.append(f"Same year ({candidate.year})")
        elif year_diff <= profile.year_window:
            points += profile.near_year_bonus
            if profile.year_reasons:
                lo, hi = sorted((source.year, candidate.year))
                reasons.append(f"Era: {lo}-{hi}")

    return AffinityScore(points, reasons)
