import gc

import numpy as np
import pytest

from app.core.enums import FeedbackLabel, RecommendationSource
from app.core.exceptions import (
    FeedbackNotFoundException, InvalidFeedbackLabelException, ItemNotFoundException,
    PreferenceVectorMissingException, PremiumRequiredException
)
from app.core.vectors import cosine, normalize
from app.services.feedback_service import FeedbackService, apply_nudge, blend_vectors
from tests.conftest import FREE_USER, PREMIUM_USER
from tests.fakes import axis, unit

@pytest.fixture
def seeded(preference_repo, embedding_repo):
    preference_repo.set_vector(PREMIUM_USER, unit(1, 1, 0))
    preference_repo.set_vector(FREE_USER, unit(1, 1, 0))
    embedding_repo.add(100, axis(0), genres=["Action"])
    embedding_repo.add(200, axis(1), genres=["RPG"])
    embedding_repo.add(300, axis(2), genres=["Puzzle"])
    return unit(1, 1, 0)

def learned(feedback_repo, user=PREMIUM_USER):
    return feedback_repo.get_learned_vector(user).vector

class TestNudge:

    def test_positive_moves_towards_item(self):
        start = unit(1, 1, 0)
        moved = apply_nudge(start, axis(0), FeedbackLabel.LOVE)
        assert cosine(moved, axis(0)) > cosine(start, axis(0))
        assert np.linalg.norm(moved) == pytest.approx(1.0)

    def test_negative_moves_away_from_item(self):
        start = unit(1, 1, 0)
        moved = apply_nudge(start, axis(0), FeedbackLabel.DISLIKE)
        assert cosine(moved, axis(0)) < cosine(start, axis(0))

    def test_negative_labels_outweigh_positive(self):
        assert abs(FeedbackLabel.DISLIKE.magnitude) > FeedbackLabel.LIKE.magnitude
        assert abs(FeedbackLabel.NOT_INTERESTED.magnitude) > FeedbackLabel.LOVE.magnitude

class TestBlend:

    def test_without_learned_vector_uses_preference(self):
        preference = unit(1, 0)
        vector, source = blend_vectors(preference, None, 0.6, 0.4)
        assert source == RecommendationSource.PREFERENCE
        assert np.array_equal(vector, preference)

    def test_blend_is_normalized_weighted_sum(self):
        vector, source = blend_vectors(axis(0), 3 * axis(1), 0.6, 0.4)
        assert source == RecommendationSource.BLENDED
        assert np.allclose(vector, normalize(0.6 * axis(0) + 0.4 * axis(1)))

class TestSubmit:

    def test_love_moves_closer_and_seeds_from_preference(self, feedback_service, feedback_repo, seeded):
        state = feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        assert state.has_learned_vector
        assert state.likes_count == 1
        record = feedback_repo.get_learned_vector(PREMIUM_USER)
        assert np.allclose(record.seed_vector, seeded)
        assert cosine(record.vector, axis(0)) > cosine(seeded, axis(0))

    def test_dislike_moves_away(self, feedback_service, feedback_repo, seeded):
        state = feedback_service.submit_feedback(PREMIUM_USER, 200, FeedbackLabel.DISLIKE)
        assert state.dislikes_count == 1
        assert cosine(learned(feedback_repo), axis(1)) < cosine(seeded, axis(1))

    def test_resubmitting_same_label_is_idempotent(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "like")
        once = learned(feedback_repo).copy()
        feedback_service.submit_feedback(PREMIUM_USER, 100, "like")
        assert np.array_equal(learned(feedback_repo), once)
        assert feedback_repo.get_feedback_counts(PREMIUM_USER) == (1, 0)

    def test_changing_label_replaces_previous_nudge(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.submit_feedback(PREMIUM_USER, 100, "dislike")
        expected = apply_nudge(seeded, axis(0), FeedbackLabel.DISLIKE)
        assert np.allclose(learned(feedback_repo), expected)
        assert feedback_repo.get_feedback_counts(PREMIUM_USER) == (0, 1)

    def test_events_fold_in_submission_order(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 200, "like")
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        # Relabelling the first item keeps its place in the fold
        feedback_service.submit_feedback(PREMIUM_USER, 200, "not_interested")
        expected = apply_nudge(
            apply_nudge(seeded, axis(1), FeedbackLabel.NOT_INTERESTED), axis(0), FeedbackLabel.LOVE
        )
        assert np.allclose(learned(feedback_repo), expected)

    def test_invalid_label_is_rejected_without_side_effects(self, feedback_service, feedback_repo, seeded):
        for label in ("meh", "LOVE", "", 3):
            with pytest.raises(InvalidFeedbackLabelException):
                feedback_service.submit_feedback(PREMIUM_USER, 100, label)
        assert feedback_repo.events == {}
        assert feedback_repo.get_learned_vector(PREMIUM_USER) is None

    def test_requires_premium(self, feedback_service, feedback_repo, seeded):
        with pytest.raises(PremiumRequiredException) as excinfo:
            feedback_service.submit_feedback(FREE_USER, 100, "love")
        assert excinfo.value.status_code == 403
        assert excinfo.value.error_code == "PREMIUM_REQUIRED"
        assert feedback_repo.events == {}
        assert feedback_repo.get_learned_vector(FREE_USER) is None

    def test_unknown_item(self, feedback_service, seeded):
        with pytest.raises(ItemNotFoundException):
            feedback_service.submit_feedback(PREMIUM_USER, 999, "love")

    def test_needs_a_preference_vector_to_seed(self, feedback_service, embedding_repo, entitlement):
        embedding_repo.add(100, axis(0))
        entitlement.entitled.add("new-user")
        with pytest.raises(PreferenceVectorMissingException):
            feedback_service.submit_feedback("new-user", 100, "love")

    def test_seed_is_kept_after_preference_changes(self, feedback_service, feedback_repo, preference_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        preference_repo.set_vector(PREMIUM_USER, axis(5))
        feedback_service.submit_feedback(PREMIUM_USER, 200, "like")
        assert np.allclose(feedback_repo.get_learned_vector(PREMIUM_USER).seed_vector, seeded)

    def test_user_locks_are_released(self, feedback_service, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.reset_learned_vector(PREMIUM_USER)
        gc.collect()
        assert PREMIUM_USER not in FeedbackService._locks

class TestDeleteAndReset:

    def test_delete_keeps_vector_by_default(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        before = learned(feedback_repo).copy()
        state = feedback_service.delete_feedback(PREMIUM_USER, 100)
        assert state.has_learned_vector
        assert state.likes_count == 0
        assert np.array_equal(learned(feedback_repo), before)

    def test_delete_can_reverse_nudge(self, feedback_repo, preference_repo, embedding_repo,
                                      entitlement, dimension, settings, clock, seeded):
        settings.FEEDBACK_DELETE_REVERSES_NUDGE = True
        service = FeedbackService(feedback_repo, preference_repo, embedding_repo, entitlement,
                                  dimension, settings=settings, clock=clock)
        service.submit_feedback(PREMIUM_USER, 100, "love")
        service.submit_feedback(PREMIUM_USER, 200, "dislike")
        service.delete_feedback(PREMIUM_USER, 100)
        expected = apply_nudge(seeded, axis(1), FeedbackLabel.DISLIKE)
        assert np.allclose(learned(feedback_repo), expected)

    def test_delete_missing_feedback(self, feedback_service, seeded):
        with pytest.raises(FeedbackNotFoundException):
            feedback_service.delete_feedback(PREMIUM_USER, 100)

    def test_reset_keeps_history(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        state = feedback_service.reset_learned_vector(PREMIUM_USER)
        assert not state.has_learned_vector
        assert feedback_repo.get_learned_vector(PREMIUM_USER) is None
        assert len(feedback_repo.events) == 1
        assert state.likes_count == 1

    def test_reset_with_history(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.submit_feedback(PREMIUM_USER, 200, "dislike")
        state = feedback_service.reset_learned_vector(PREMIUM_USER, clear_history=True)
        assert feedback_repo.events == {}
        assert (state.likes_count, state.dislikes_count) == (0, 0)

    def test_next_feedback_after_reset_reseeds(self, feedback_service, feedback_repo, preference_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.reset_learned_vector(PREMIUM_USER, clear_history=True)
        preference_repo.set_vector(PREMIUM_USER, axis(3))
        feedback_service.submit_feedback(PREMIUM_USER, 200, "like")
        assert np.allclose(feedback_repo.get_learned_vector(PREMIUM_USER).seed_vector, axis(3))

    def test_feedback_before_a_history_keeping_reset_is_not_replayed(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.reset_learned_vector(PREMIUM_USER, clear_history=False)
        state = feedback_service.submit_feedback(PREMIUM_USER, 200, "like")
        after_like = apply_nudge(seeded, axis(1), FeedbackLabel.LIKE)
        assert np.allclose(learned(feedback_repo), after_like)
        assert state.likes_count == 2
        assert len(feedback_service.get_user_feedback(PREMIUM_USER).positive) == 2

        # Giving feedback on the item again applies it on top of the new vector
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        assert np.allclose(learned(feedback_repo), apply_nudge(after_like, axis(0), FeedbackLabel.LOVE))

class TestHidden:

    def test_hide_excludes_without_learning(self, feedback_service, feedback_repo, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        before = learned(feedback_repo)
        state = feedback_service.hide_item(PREMIUM_USER, 200)
        assert state.hidden and state.hidden_at is not None
        assert feedback_service.excluded_app_ids(PREMIUM_USER) == [200]
        assert np.array_equal(learned(feedback_repo), before)
        assert list(feedback_repo.events) == [(PREMIUM_USER, 100)]

        hidden = feedback_service.list_hidden(PREMIUM_USER)
        assert hidden.total == 1
        assert hidden.items[0].item.name == "Game 200"

    def test_free_users_can_hide(self, feedback_service, seeded):
        assert feedback_service.hide_item(FREE_USER, 300).hidden
        assert feedback_service.excluded_app_ids(FREE_USER) == [300]

    def test_unhide_is_idempotent(self, feedback_service, seeded):
        feedback_service.hide_item(PREMIUM_USER, 300)
        assert not feedback_service.unhide_item(PREMIUM_USER, 300).hidden
        assert not feedback_service.unhide_item(PREMIUM_USER, 300).hidden
        assert feedback_service.excluded_app_ids(PREMIUM_USER) == []
        assert feedback_service.list_hidden(PREMIUM_USER).total == 0

    def test_hide_unknown_item(self, feedback_service, seeded):
        with pytest.raises(ItemNotFoundException):
            feedback_service.hide_item(PREMIUM_USER, 999)

class TestReads:

    def test_history_split_by_polarity(self, feedback_service, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "love")
        feedback_service.submit_feedback(PREMIUM_USER, 200, "not_interested")
        feedback_service.submit_feedback(PREMIUM_USER, 300, "like")
        history = feedback_service.get_user_feedback(PREMIUM_USER)
        assert [e.app_id for e in history.positive] == [300, 100]
        assert [e.app_id for e in history.negative] == [200]
        assert history.positive[0].item.name == "Game 300"
        assert (history.likes_count, history.dislikes_count) == (2, 1)

    def test_history_limit(self, feedback_service, seeded):
        for app_id in (100, 200, 300):
            feedback_service.submit_feedback(PREMIUM_USER, app_id, "like")
        history = feedback_service.get_user_feedback(PREMIUM_USER, limit=2)
        assert len(history.positive) == 2

    def test_not_interested_items_are_excluded(self, feedback_service, seeded):
        feedback_service.submit_feedback(PREMIUM_USER, 100, "dislike")
        feedback_service.submit_feedback(PREMIUM_USER, 200, "not_interested")
        assert feedback_service.excluded_app_ids(PREMIUM_USER) == [200]

    def test_reads_are_not_gated(self, feedback_service, seeded):
        history = feedback_service.get_user_feedback(FREE_USER)
        assert history.positive == [] and history.negative == []
