"""Tests for fingerprint generation (signal aggregation and genre weighting)."""

import asyncio
import math
from datetime import timedelta

import pytest

from tasteradar.data.fingerprint import Artist
from tasteradar.features.progress import ProgressTracker
from tasteradar.models.taste import (
    FOLLOW_WEIGHT,
    FingerprintBuilder,
    FingerprintSettings,
    compute_genre_scores,
)

from conftest import FakeLibrary, iso, saved_track


class TestComputeGenreScores:
    def test_multi_genre_artist_counts_fully(self):
        artists = [
            Artist(id="A", name="A", genres=("rock",)),
            Artist(id="B", name="B", genres=("rock", "jazz")),
        ]
        scores = compute_genre_scores(artists, {"A": 3.0, "B": 1.0})
        assert [(g.name, g.score) for g in scores] == [
            ("rock", pytest.approx(0.8)),
            ("jazz", pytest.approx(0.2)),
        ]

    def test_scores_sum_to_one(self):
        artists = [
            Artist(id="A", name="A", genres=("rock", "pop", "indie")),
            Artist(id="B", name="B", genres=("pop",)),
        ]
        scores = compute_genre_scores(artists, {"A": 0.7, "B": 2.3})
        assert sum(g.score for g in scores) == pytest.approx(1.0)

    def test_zero_weight_falls_back_to_uniform(self):
        artists = [
            Artist(id="A", name="A", genres=("rock", "jazz")),
            Artist(id="B", name="B", genres=("pop",)),
        ]
        scores = compute_genre_scores(artists, {"A": 0.0, "B": 0.0})
        assert len(scores) == 3
        for g in scores:
            assert g.score == pytest.approx(1 / 3)
            assert not math.isnan(g.score)

    def test_missing_weight_defaults_to_one(self):
        artists = [
            Artist(id="A", name="A", genres=("rock",)),
            Artist(id="B", name="B", genres=("jazz",)),
        ]
        scores = {g.name: g.score for g in compute_genre_scores(artists, {"A": 3.0})}
        assert scores["rock"] == pytest.approx(0.75)
        assert scores["jazz"] == pytest.approx(0.25)

    def test_labels_normalized_and_merged(self):
        artists = [
            Artist(id="A", name="A", genres=("Indie Rock",)),
            Artist(id="B", name="B", genres=("indie  rock",)),
        ]
        scores = compute_genre_scores(artists, {"A": 1.0, "B": 1.0})
        assert [(g.name, g.score) for g in scores] == [("indie_rock", pytest.approx(1.0))]

    def test_sorted_descending(self):
        artists = [Artist(id=x, name=x, genres=(x,)) for x in "abc"]
        scores = compute_genre_scores(artists, {"a": 1.0, "b": 5.0, "c": 2.0})
        assert [g.name for g in scores] == ["b", "c", "a"]

    def test_no_genres(self):
        assert compute_genre_scores([Artist(id="A", name="A")], {"A": 1.0}) == []


def _build(library, now, progress=None):
    builder = FingerprintBuilder(library, progress=progress, now=now)
    return builder, asyncio.run(builder.build())


class TestFingerprintBuilder:
    def test_recency_weighted_likes_and_follows(self, now):
        library = FakeLibrary(
            liked_pages=[[
                saved_track("t1", "Fresh", [("A", "Artist A")], added_at=iso(now)),
                saved_track("t2", "Old", [("B", "Artist B")], added_at=iso(now - timedelta(days=60))),
            ]],
            followed_pages=[["B"]],
            artist_details={"A": ("Artist A", ["rock"]), "B": ("Artist B", ["jazz"])},
        )
        builder, fp = _build(library, now)
        assert builder.artist_weights["A"] == pytest.approx(1.0)
        assert builder.artist_weights["B"] == pytest.approx(1 / math.e + FOLLOW_WEIGHT)
        total = 1.0 + 1 / math.e + FOLLOW_WEIGHT
        scores = {g.name: g.score for g in fp.genres}
        assert scores["rock"] == pytest.approx(1.0 / total)
        assert scores["jazz"] == pytest.approx((1 / math.e + FOLLOW_WEIGHT) / total)

    def test_liked_tracks_recorded(self, now):
        library = FakeLibrary(
            liked_pages=[
                [saved_track("t1", "One More Time", [("dp", "Daft Punk"), ("x", "Guest")])],
                [{"added_at": None, "track": None}, saved_track("t2", "So What", [("md", "Miles Davis")])],
            ],
            artist_details={"dp": ("Daft Punk", ["french house"])},
        )
        _, fp = _build(library, now)
        assert [(t.artist, t.title) for t in fp.liked_tracks] == [
            ("Daft Punk", "One More Time"),
            ("Miles Davis", "So What"),
        ]
        assert library.liked_calls == [0, 1]

    def test_tracks_without_title_or_artist_name_not_recorded(self, now):
        library = FakeLibrary(
            liked_pages=[[
                saved_track("t1", "", [("A", "Artist A")]),
                saved_track("t2", "Nameless Artist", [("B", "")]),
                saved_track("t3", "Solo", []),
                saved_track("t4", "Kept", [("A", "Artist A")]),
            ]],
            artist_details={"A": ("Artist A", ["rock"])},
        )
        builder, fp = _build(library, now)
        assert [t.title for t in fp.liked_tracks] == ["Kept"]
        assert builder.artist_weights["A"] == pytest.approx(2 * builder.artist_weights["B"])

    def test_every_listed_artist_gets_weight(self, now):
        library = FakeLibrary(
            liked_pages=[[saved_track("t1", "Duet", [("A", "A"), ("B", "B")])]],
        )
        builder, _ = _build(library, now)
        assert builder.artist_weights == {"A": 0.1, "B": 0.1}

    def test_follow_accumulates_across_pages(self, now):
        library = FakeLibrary(followed_pages=[["A", "B"], ["A"]])
        builder, _ = _build(library, now)
        assert builder.artist_weights["A"] == pytest.approx(2 * FOLLOW_WEIGHT)
        assert builder.artist_weights["B"] == pytest.approx(FOLLOW_WEIGHT)

    def test_weights_independent_of_page_order(self, now):
        tracks = [
            saved_track(f"t{i}", f"Song {i}", [(f"a{i % 3}", "x")], added_at=iso(now - timedelta(days=i)))
            for i in range(9)
        ]
        forward, _ = _build(FakeLibrary(liked_pages=[tracks[:4], tracks[4:]]), now)
        backward, _ = _build(FakeLibrary(liked_pages=[tracks[5:][::-1], tracks[:5][::-1]]), now)
        assert forward.artist_weights.keys() == backward.artist_weights.keys()
        for key in forward.artist_weights:
            assert forward.artist_weights[key] == pytest.approx(backward.artist_weights[key])

    def test_top_artists_flagged(self, now):
        library = FakeLibrary(
            followed_pages=[["A", "B"]],
            top_ids=["A"],
            artist_details={"A": ("A", ["rock"]), "B": ("B", ["jazz"])},
        )
        _, fp = _build(library, now)
        flags = {a.id: a.is_top_artist for a in fp.artists}
        assert flags == {"A": True, "B": False}

    def test_top_artists_failure_is_not_fatal(self, now):
        library = FakeLibrary(
            followed_pages=[["A"]],
            artist_details={"A": ("A", ["rock"])},
            top_error=RuntimeError("403"),
        )
        _, fp = _build(library, now)
        assert [g.name for g in fp.genres] == ["rock"]
        assert not any(a.is_top_artist for a in fp.artists)

    def test_artist_details_failure_propagates(self, now):
        library = FakeLibrary(followed_pages=[["A"]], artists_error=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            _build(library, now)

    def test_artist_batches_of_fifty(self, now):
        ids = [f"a{i}" for i in range(120)]
        library = FakeLibrary(followed_pages=[ids])
        _build(library, now)
        assert [len(b) for b in library.artist_batches] == [50, 50, 20]

    def test_settings_from_config(self):
        settings = FingerprintSettings.from_config(
            {"fingerprint": {"follow_weight": 2.0, "artist_batch_size": 500}}
        )
        assert settings.follow_weight == 2.0
        assert settings.artist_batch_size == 50
        assert settings.decay_days == 60

    def test_empty_library(self, now):
        _, fp = _build(FakeLibrary(), now)
        assert fp.genres == ()
        assert fp.user.id == "user1"


class TestProgress:
    def test_non_decreasing_and_single_hundred(self, now):
        updates = []
        library = FakeLibrary(
            liked_pages=[[saved_track(f"t{i}", "s", [(f"a{i}", "x")])] for i in range(4)],
            followed_pages=[["b1"], ["b2"]],
            artist_details={"a0": ("x", ["rock"])},
        )
        _build(library, now, progress=ProgressTracker(updates.append))
        percents = [u.percent for u in updates]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert percents.count(100) == 1
        assert all(p <= 99 for p in percents[:-1])

    def test_stage_boundaries(self):
        tracker = ProgressTracker()
        assert tracker.emit("liked_tracks", 1, "").percent == 40
        assert tracker.emit("followed_artists", 1, "").percent == 55
        assert tracker.emit("top_artists", 1, "").percent == 70
        assert tracker.emit("artist_details", 1, "").percent == 99

    def test_never_regresses(self):
        tracker = ProgressTracker()
        tracker.emit("followed_artists", 0.5, "")
        assert tracker.emit("liked_tracks", 0.1, "").percent == tracker.history[0].percent

    def test_unknown_total_ratio(self):
        tracker = ProgressTracker()
        assert tracker.stage_ratio(0, 0) == 0.25
        assert tracker.stage_ratio(10, 0) == 0.5
        assert tracker.stage_ratio(100, 100) == 0.99
