"""Unit tests for the recommendation engine."""

import pytest
from synapse_dj.database import UserLibrary
from synapse_dj.models import REASON_SEPARATOR, Release, Track, OwnershipRecord
from synapse_dj.profiles import get_profile
from synapse_dj.recommender import RecommendationEngine, recommend


class NoLabelIndex(UserLibrary):
    def artist_has_release_on_label(self, artist, label):
        raise TimeoutError("label index timed out")


class BrokenBackend(UserLibrary):
    def get_tracks(self, track_ids):
        raise ConnectionError("database unreachable")


@pytest.fixture
def engine():
    return RecommendationEngine(get_profile("balanced"))


def run(engine, library, source_id="t1", **kwargs):
    return engine.recommend(source_id, library.owned_track_ids(), library, **kwargs)


class TestWorkedExamples:
    def test_close_match_scores_high(self, engine, library):
        recs = {r.track_id: r for r in run(engine, library)}
        a = recs["t2"]
        # 30 BPM + 25 key + 20 label + 3 era
        assert a.match_score == 78
        assert a.reasons == [
            "BPM 129 (±0.8%)",
            "Harmonic match (8A)",
            "Same label (Planet E)",
            "Era: 2001-2002",
        ]
        assert a.match_reason == REASON_SEPARATOR.join(a.reasons)

    def test_unrelated_track_excluded(self, engine, library):
        assert "t3" not in [r.track_id for r in run(engine, library)]
        breakdown = engine.explain("t1", "t3", library)
        assert breakdown.total == 0
        assert breakdown.bpm_percent_diff == pytest.approx(9.38, abs=0.01)

    def test_excluded_release_absent(self, engine, library):
        assert "t4" not in [r.track_id for r in run(engine, library)]
        assert engine.explain("t1", "t4", library).excluded


class TestRanking:
    def test_order(self, engine, library):
        recs = run(engine, library)
        assert [r.track_id for r in recs] == ["t6", "t2", "t5"]

    def test_transition_outranks_affinity(self, engine, library):
        recs = run(engine, library)
        assert recs[0].track_id == "t6"
        assert recs[0].match_score == 100
        assert recs[0].priority_rank == 1
        assert recs[0].reasons == ["Mixed before (worked, rated 4/5)"]

    def test_sorted_descending(self, engine, library):
        scores = [r.match_score for r in run(engine, library)]
        assert scores == sorted(scores, reverse=True)
        assert all(s > 0 for s in scores)

    def test_every_result_explained(self, engine, library):
        for r in run(engine, library):
            assert r.reasons

    def test_no_source_no_duplicates(self, engine, library):
        ids = [r.track_id for r in run(engine, library)]
        assert "t1" not in ids
        assert len(ids) == len(set(ids))

    def test_only_owned_tracks(self, engine, db):
        ids = [r.track_id for r in run(engine, db.for_user("u2"))]
        assert ids == ["t7"]

    def test_limit(self, engine, library):
        assert len(run(engine, library, limit=1)) == 1

    def test_result_limit_caps_output(self, db):
        for i in range(30):
            db.tracks[f"n{i}"] = Track(id=f"n{i}", bpm=128.0, key="8A", release_id="r2")
            db.ownership["u1"][f"n{i}"] = OwnershipRecord(user_id="u1", track_id=f"n{i}")
        recs = run(RecommendationEngine(), db.for_user("u1"))
        assert len(recs) == 20

    def test_ties_keep_pool_order(self, engine, db):
        db.releases["r9"] = Release(id="r9", label="Elsewhere")
        for tid in ("y1", "y2", "y3"):
            db.tracks[tid] = Track(id=tid, bpm=128.0, release_id="r9")
            db.ownership["u1"][tid] = OwnershipRecord(user_id="u1", track_id=tid)
        ids = [r.track_id for r in run(engine, db.for_user("u1")) if r.track_id.startswith("y")]
        assert ids == ["y1", "y2", "y3"]


class TestOutputFields:
    def test_display_fields(self, engine, library):
        rec = next(r for r in run(engine, library) if r.track_id == "t2")
        assert rec.artist == "Moodymann"
        assert rec.album == "Black Mahogani"
        assert rec.label == "Planet E"
        assert rec.styles == ["Deep House"]
        assert rec.collection_type == "vinyl"
        assert rec.priority_rank == 2

    def test_missing_metadata_defaults(self, engine, db):
        db.tracks["bare"] = Track(id="bare", title="Bare", bpm=128.0)
        db.ownership["u1"]["bare"] = OwnershipRecord(user_id="u1", track_id="bare")
        rec = next(r for r in run(engine, db.for_user("u1")) if r.track_id == "bare")
        assert rec.artist == "Unknown"
        assert rec.album == "Unknown"
        assert rec.reasons == ["BPM 128 (±0.0%)"]


class TestFailureHandling:
    def test_unknown_source(self, engine, library):
        assert run(engine, library, source_id="missing") == []

    def test_source_without_metadata(self, engine, db):
        db.tracks["empty"] = Track(id="empty")
        db.ownership["u1"]["empty"] = OwnershipRecord(user_id="u1", track_id="empty")
        library = db.for_user("u1")
        recs = run(engine, library, source_id="empty")
        # no tempo, key, label, artist or tags on the source
        assert recs == []

    def test_auxiliary_lookup_failure_degrades(self, engine, db):
        recs = run(engine, NoLabelIndex(db, "u1"))
        assert [r.track_id for r in recs] == ["t6", "t2", "t5"]

    def test_artist_on_label_bonus(self, engine, db):
        db.releases["r6"] = Release(id="r6", artist="Nobody", label="Planet E", year=1990)
        recs = {r.track_id: r for r in run(engine, db.for_user("u1"))}
        assert "Artist also on Planet E" in recs["t3"].reasons
        assert recs["t3"].match_score == 8

    def test_backend_failure_propagates(self, engine, db):
        with pytest.raises(ConnectionError):
            run(engine, BrokenBackend(db, "u1"))

    def test_invalid_contribution_skipped(self):
        assert RecommendationEngine._checked("bpm", float("nan"), "t") == 0.0
        assert RecommendationEngine._checked("bpm", -5, "t") == 0.0
        assert RecommendationEngine._checked("bpm", None, "t") == 0.0
        assert RecommendationEngine._checked("bpm", 12, "t") == 12.0


class TestClassicProfile:
    def test_unlabelled_points_alone_are_dropped(self, db):
        engine = RecommendationEngine(get_profile("classic"))
        library = db.for_user("u1")
        assert engine.explain("t1", "t3", library).total == 10
        assert "t3" not in [r.track_id for r in run(engine, library)]

    def test_classic_artist_bonus(self, db):
        engine = RecommendationEngine(get_profile("classic"))
        recs = {r.track_id: r for r in run(engine, db.for_user("u1"))}
        assert recs["t5"].match_score == 15


class TestModuleLevelRecommend:
    def test_default_engine(self, library):
        recs = recommend("t1", library.owned_track_ids(), library)
        assert [r.track_id for r in recs] == ["t6", "t2", "t5"]
