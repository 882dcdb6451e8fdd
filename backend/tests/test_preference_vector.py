import math
import random
from datetime import timedelta

import numpy as np
import pytest

from app.core.exceptions import InsufficientDataException, VectorDimensionError
from app.core.identifiers import AppId
from app.core.interfaces import ItemRecord, OwnedItemSignal
from app.schemas.item import ItemMetadata
from app.schemas.library import BuildOptions
from app.services.preference_vector_service import (
    WeightingConfig, diversity_multipliers, playtime_weight, quality_weight, recency_weight
)
from tests.fakes import axis, unit

USER = "user-1"

def signal(app_id, hours, last_played=None, genres=None, **extra):
    return OwnedItemSignal(
        user_id=USER,
        app_id=AppId(app_id),
        playtime_minutes=int(round(hours * 60)),
        last_played=last_played,
        genres=genres or [],
        **extra
    )

@pytest.fixture
def library(embedding_repo, preference_repo, clock):
    """A: 100h last week, B: 10h a year ago, C: 0.2h (below threshold)"""
    now = clock.now
    embedding_repo.add(10, axis(0), genres=["Action"])
    embedding_repo.add(20, axis(1), genres=["RPG"])
    embedding_repo.add(30, axis(2), genres=["Puzzle"])
    signals = [
        signal(10, 100, now - timedelta(days=7), ["Action"]),
        signal(20, 10, now - timedelta(days=365), ["RPG"]),
        signal(30, 0.2, now - timedelta(days=1), ["Puzzle"]),
    ]
    preference_repo.replace_signals(USER, signals)
    return signals

class TestWeights:

    def test_playtime_weight_is_log1p(self):
        assert playtime_weight(0) == 0.0
        assert playtime_weight(100) == pytest.approx(math.log1p(100))
        assert playtime_weight(1000) < 2 * playtime_weight(100)

    def test_recency_weight_halves_every_half_life(self, clock):
        now = clock.now
        assert recency_weight(None, now) == 1.0
        assert recency_weight(now, now) == 1.0
        assert recency_weight(now - timedelta(days=720), now) == pytest.approx(0.5)

    def test_recency_weight_has_a_floor(self, clock):
        now = clock.now
        assert recency_weight(now - timedelta(days=3650), now) == pytest.approx(0.2)
        assert recency_weight(now - timedelta(days=3650), now, floor=0.3) == pytest.approx(0.3)

    def test_quality_weight_rules(self):
        assert quality_weight(9, avg_completion_hours=10) == pytest.approx(1.3)
        assert quality_weight(1, avg_completion_hours=10) == pytest.approx(0.7)
        assert quality_weight(5, avg_completion_hours=10) == pytest.approx(1.0)
        assert quality_weight(5, achievements_earned=6, achievements_total=10) == pytest.approx(1.2)
        assert quality_weight(20, achievements_earned=0, achievements_total=10) == pytest.approx(0.9)
        # Few achievements but little playtime is not penalised
        assert quality_weight(5, achievements_earned=0, achievements_total=10) == pytest.approx(1.0)
        assert quality_weight(9, 10, 6, 10) == pytest.approx(1.56)

    def test_quality_weight_ignores_missing_data(self):
        assert quality_weight(50) == 1.0
        assert quality_weight(50, achievements_earned=3, achievements_total=0) == 1.0

class TestBuilder:

    def test_weighted_average_of_played_items(self, preference_service, preference_repo, library, clock):
        now = clock.now
        result = preference_service.rebuild(USER)

        w_a = math.log1p(100) * 0.5 ** ((7 / 30) / 24)
        w_b = math.log1p(10) * 0.5 ** ((365 / 30) / 24)
        expected = (w_a * axis(0) + w_b * axis(1)) / (w_a + w_b)

        assert np.allclose(result.vector, expected)
        assert result.items_analyzed == 2
        assert result.items_below_threshold == 1
        assert result.items_skipped_missing_embedding == 0
        assert result.total_playtime_hours == pytest.approx(110.2)
        assert result.last_updated == now
        stored = preference_repo.get_preference_vector(USER)
        assert np.array_equal(stored.vector, result.vector)
        assert stored.items_analyzed == 2

    def test_items_below_threshold_do_not_change_the_vector(self, preference_service, preference_repo,
                                                            embedding_repo, library):
        with_low = preference_service.rebuild(USER).vector
        preference_repo.replace_signals(USER, library[:2])
        without_low = preference_service.rebuild(USER).vector
        assert np.array_equal(with_low, without_low)

    def test_items_without_embeddings_are_skipped(self, preference_service, preference_repo, library):
        baseline = preference_service.rebuild(USER).vector
        preference_repo.replace_signals(USER, library + [signal(99, 50, genres=["Action"])])
        result = preference_service.rebuild(USER)
        assert result.items_skipped_missing_embedding == 1
        assert np.array_equal(result.vector, baseline)

    def test_signal_order_does_not_matter(self, preference_service, embedding_repo, clock):
        rng = random.Random(7)
        signals = []
        for app_id in range(1, 40):
            embedding_repo.add(app_id, unit(*[rng.uniform(-1, 1) for _ in range(8)]),
                               genres=[rng.choice(["Action", "RPG", "Indie"])], tags=["Fallout"] if app_id % 5 == 0 else [])
            signals.append(signal(app_id, rng.uniform(0.5, 300), clock.now - timedelta(days=rng.randint(0, 900))))
        config = WeightingConfig()
        now = clock.now
        first = preference_service.compute(USER, signals, config, now).vector
        rng.shuffle(signals)
        second = preference_service.compute(USER, signals, config, now).vector
        assert np.array_equal(first, second)

    def test_no_contributing_items_keeps_previous_vector(self, preference_service, preference_repo, library):
        previous = preference_service.rebuild(USER).vector
        preference_repo.replace_signals(USER, [library[2]])
        with pytest.raises(InsufficientDataException):
            preference_service.rebuild(USER)
        assert np.array_equal(preference_repo.get_preference_vector(USER).vector, previous)

    def test_threshold_override(self, preference_service, library):
        result = preference_service.rebuild(USER, BuildOptions(min_playtime_hours=0.1))
        assert result.items_analyzed == 3
        assert result.items_below_threshold == 0

    def test_max_items_keeps_heaviest(self, preference_service, library):
        result = preference_service.rebuild(USER, BuildOptions(min_playtime_hours=0.1, max_items=1))
        assert result.items_analyzed == 1
        assert np.allclose(result.vector, axis(0))

    def test_genre_diversification(self, preference_service, embedding_repo):
        embedding_repo.add(1, axis(0), genres=["Action"])
        embedding_repo.add(2, axis(1), genres=["Action"])
        embedding_repo.add(3, axis(2), genres=["RPG"])
        signals = [signal(1, 10, genres=["Action"]), signal(2, 10, genres=["Action"]), signal(3, 10, genres=["RPG"])]
        now = preference_service.clock()

        diversified = preference_service.compute(USER, signals, WeightingConfig(), now).vector
        weights = np.array([1 / math.sqrt(2), 1 / math.sqrt(2), 1.0])
        assert np.allclose(diversified[:3], weights / weights.sum())

        flat = preference_service.compute(USER, signals, WeightingConfig(enable_genre_diversification=False), now).vector
        assert np.allclose(flat[:3], [1 / 3, 1 / 3, 1 / 3])

    def test_franchise_diversification(self):
        class Item:
            def __init__(self, app_id, genre, franchises):
                self.app_id = app_id
                self.primary_genre = genre
                self.franchises = franchises

        multipliers = diversity_multipliers([
            Item(1, "RPG", ["Fallout"]),
            Item(2, "Shooter", ["Fallout"]),
            Item(3, "Strategy", []),
        ])
        assert multipliers[1] == pytest.approx(1 / math.sqrt(2))
        assert multipliers[2] == pytest.approx(1 / math.sqrt(2))
        assert multipliers[3] == 1.0

    def test_quality_weighting_only_when_enabled(self, preference_service, embedding_repo):
        embedding_repo.add(1, axis(0), genres=["RPG"], avg_completion_hours=10)
        embedding_repo.add(2, axis(1), genres=["Action"], avg_completion_hours=100)
        signals = [signal(1, 10), signal(2, 10)]
        now = preference_service.clock()
        plain = preference_service.compute(USER, signals, WeightingConfig(), now).vector
        weighted = preference_service.compute(USER, signals, WeightingConfig(enable_quality_weighting=True), now).vector
        assert plain[0] == pytest.approx(plain[1])
        assert weighted[0] / weighted[1] == pytest.approx(1.3 / 0.7)

    def test_wrong_dimension_embedding_is_rejected(self, preference_service, embedding_repo):
        embedding_repo.items[5] = ItemRecord(AppId(5), np.ones(4), ItemMetadata(name="Broken"))
        with pytest.raises(VectorDimensionError):
            preference_service.compute(USER, [signal(5, 10)], WeightingConfig(), preference_service.clock())

    def test_replace_and_rebuild_writes_nothing_on_failure(self, preference_service, preference_repo, library):
        preference_service.rebuild(USER)
        writes = preference_repo.writes
        with pytest.raises(InsufficientDataException):
            preference_service.replace_and_rebuild(USER, [signal(30, 0.1)])
        assert preference_repo.writes == writes
        assert len(preference_repo.get_signals(USER)) == 3
