"""Shared fixtures: a small two-user record collection."""

import pytest
from synapse_dj.database import LibraryDatabase
from synapse_dj.models import (
    LibrarySnapshot,
    OwnershipRecord,
    Release,
    Track,
    Transition,
)


@pytest.fixture
def snapshot():
    releases = [
        Release(id="r1", title="Planet E EP", artist="Carl Craig", label="Planet E", year=2001,
                genres=["Electronic"], styles=["Detroit Techno"], collection_type="vinyl"),
        Release(id="r2", title="Black Mahogani", artist="Moodymann", label="Planet E", year=2002,
                styles=["Deep House"], collection_type="vinyl"),
        Release(id="r3", title="Far Away", artist="Nobody", label="Warp", year=1995,
                styles=["IDM"], collection_type="digital"),
        Release(id="r4", title="Hidden", artist="Someone", label="Tresor", year=2001,
                relations_enabled=False),
        Release(id="r5", title="Elsewhere", artist="Carl Craig", label="Ostgut", year=2010,
                styles=["Techno"]),
    ]
    tracks = [
        Track(id="t1", title="At Les", bpm=128.0, key="8A", release_id="r1"),
        Track(id="t2", title="Shades", bpm=129.0, key="8A", release_id="r2"),
        Track(id="t3", title="Drift", bpm=140.0, key="3B", release_id="r3"),
        Track(id="t4", title="Secret", bpm=128.0, key="8A", release_id="r4"),
        Track(id="t5", title="Slow", bpm=100.0, key="1B", release_id="r5"),
        Track(id="t6", title="Bridge", bpm=90.0, key="4B", release_id="r3"),
        Track(id="t7", title="Not Mine", bpm=128.0, key="8A", release_id="r2"),
    ]
    ownership = [OwnershipRecord(user_id="u1", track_id=f"t{i}") for i in range(1, 7)]
    ownership += [
        OwnershipRecord(user_id="u2", track_id="t1"),
        OwnershipRecord(user_id="u2", track_id="t7"),
    ]
    transitions = [
        Transition(id="x1", user_id="u1", from_track_id="t1", to_track_id="t6",
                   worked_well=True, rating=4, created_at="2024-01-01T10:00:00"),
    ]
    return LibrarySnapshot(
        releases=releases, tracks=tracks, ownership=ownership, transitions=transitions,
    )


@pytest.fixture
def db(snapshot):
    return LibraryDatabase(snapshot)


@pytest.fixture
def library(db):
    return db.for_user("u1")
