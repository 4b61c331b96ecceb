"""
Scoring Profiles

Every tier threshold, bonus and cap used by the recommendation engine lives
here as a named field. ``balanced`` is the default; ``classic`` reproduces
the points of the older pitch-range endpoint so both behaviours run on the
same engine.
"""

from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


# (max_percent_diff, points, labelled); labelled tiers add a reason string
BpmTier = Tuple[float, float, bool]


class ScoringProfile(BaseModel):
    """Named constants for one flavour of the recommendation engine."""

    name: str
    description: str = ""

    # BPM proximity
    bpm_tiers: List[BpmTier] = Field(
        default_factory=lambda: [(3.0, 30.0, True), (6.0, 20.0, True), (8.0, 5.0, False)]
    )
    bpm_reference: str = Field("source", description="source, min or mean")

    # Harmonic key
    key_bonus: float = 25.0

    # Affinity
    label_bonus: float = 20.0
    label_artist_bonus: float = 10.0
    artist_bonus: float = 12.0
    stack_label_artist: bool = True
    artist_on_label_bonus: float = 8.0
    genre_bonus_per_tag: float = 5.0
    genre_stoplist: List[str] = Field(default_factory=lambda: ["electronic", "dance"])
    genre_reason_limit: int = 2
    genre_tag_limit: int = Field(3, ge=0, description="Most shared tags that earn points")
    genre_fields: str = Field("all", description="all (genres + styles) or genres")
    genre_case_sensitive: bool = False
    same_year_bonus: float = 5.0
    near_year_bonus: float = 3.0
    year_window: int = 2
    year_reasons: bool = True

    # Relation priority
    transition_bonus: float = 100.0
    candidate_cap: int = Field(150, ge=1)

    # Output
    result_limit: int = Field(20, ge=1)

    @field_validator("bpm_tiers")
    @classmethod
    def _tiers_monotonic(cls, tiers: List[BpmTier]) -> List[BpmTier]:
        ordered = sorted(tiers, key=lambda t: t[0])
        for (_, p1, _), (_, p2, _) in zip(ordered, ordered[1:]):
            if p2 > p1:
                raise ValueError("BPM tier points must not increase with percent difference")
        if any(t[1] < 0 for t in ordered):
            raise ValueError("BPM tier points must be non-negative")
        return ordered

    @field_validator("bpm_reference")
    @classmethod
    def _check_reference(cls, v: str) -> str:
        if v not in ("source", "min", "mean"):
            raise ValueError("bpm_reference must be source, min or mean")
        return v

    @field_validator("genre_stoplist")
    @classmethod
    def _lower_stoplist(cls, v: List[str]) -> List[str]:
        return [g.strip().lower() for g in v]

    @field_validator("genre_fields")
    @classmethod
    def _check_genre_fields(cls, v: str) -> str:
        if v not in ("all", "genres"):
            raise ValueError("genre_fields must be all or genres")
        return v

    @model_validator(mode="after")
    def _transition_dominates_tags(self) -> "ScoringProfile":
        # genre + era overlap alone must never reach a curated transition
        tags_and_era = (
            self.genre_tag_limit * self.genre_bonus_per_tag
            + max(self.same_year_bonus, self.near_year_bonus)
        )
        if self.transition_bonus > 0 and tags_and_era >= self.transition_bonus:
            raise ValueError(
                f"genre and year bonuses ({tags_and_era:g}) must stay below transition_bonus"
            )
        return self


PROFILES: Dict[str, ScoringProfile] = {
    "balanced": ScoringProfile(
        name="balanced",
        description="Tight pitch-fader banding, stacked label/artist affinity, generic genres ignored",
    ),
    "classic": ScoringProfile(
        name="classic",
        description="Flat ±6% BPM window, independent label and artist bonuses, release genres matched exactly with no stoplist",
        bpm_tiers=[(6.0, 30.0, True), (10.0, 10.0, False)],
        label_bonus=20.0,
        label_artist_bonus=0.0,
        artist_bonus=15.0,
        stack_label_artist=False,
        artist_on_label_bonus=0.0,
        genre_stoplist=[],
        genre_fields="genres",
        genre_case_sensitive=True,
        same_year_bonus=3.0,
        near_year_bonus=3.0,
        year_reasons=False,
        candidate_cap=500,
    ),
}

DEFAULT_PROFILE = "balanced"


def get_profile(name: str = DEFAULT_PROFILE) -> ScoringProfile:
    """Look up a profile by name (case-insensitive)."""
    key = (name or DEFAULT_PROFILE).strip().lower()
    if key not in PROFILES:
        raise KeyError(f"Unknown scoring profile '{name}'. Available: {', '.join(PROFILES)}")
    return PROFILES[key]


def get_profile_names() -> List[str]:
    return list(PROFILES.keys())
