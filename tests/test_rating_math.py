"""
Tests for the incremental mean

Covers the formulas shared by the server aggregator and the client's
optimistic display:
- Folding a first-time rating into an average
- Correcting an existing rating
- Client-side prediction helpers
"""

import pytest

from bookshelf.client.reconciler import blended_average, optimistic_average
from bookshelf.utils.mean import mean_with_corrected_rating, mean_with_new_rating


class TestMeanWithNewRating:
    def test_first_rating_of_book(self):
        assert mean_with_new_rating(0.0, 0, 4) == (4.0, 1)

    def test_new_rating_lowers_average(self):
        avg, count = mean_with_new_rating(4.0, 2, 2)

        assert avg == pytest.approx(10 / 3)
        assert count == 3

    def test_average_matches_plain_mean(self):
        values = [5, 3, 4, 1, 2, 5, 5]
        avg, count = 0.0, 0
        for value in values:
            avg, count = mean_with_new_rating(avg, count, value)

        assert count == len(values)
        assert avg == pytest.approx(sum(values) / len(values))


class TestMeanWithCorrectedRating:
    def test_correction_keeps_count(self):
        avg, count = mean_with_corrected_rating(10 / 3, 3, 2, 5)

        assert avg == pytest.approx(13 / 3)
        assert count == 3

    def test_correction_of_only_rating(self):
        assert mean_with_corrected_rating(2.0, 1, 2, 5) == (5.0, 1)

    def test_correction_on_empty_summary_raises(self):
        with pytest.raises(ValueError):
            mean_with_corrected_rating(0.0, 0, 3, 4)


class TestOptimisticAverage:
    def test_without_prior_rating_adds_one(self):
        avg, count = optimistic_average(4.0, 2, 2)

        assert avg == pytest.approx(3.3333, abs=1e-4)
        assert count == 3

    def test_with_prior_rating_corrects(self):
        avg, count = optimistic_average(10 / 3, 3, 5, prior=2)

        assert avg == pytest.approx(4.3333, abs=1e-4)
        assert count == 3

    def test_same_value_is_unchanged(self):
        assert optimistic_average(3.5, 4, 4, prior=4) == (3.5, 4)

    def test_prior_with_empty_summary_treated_as_new(self):
        assert optimistic_average(0.0, 0, 3, prior=5) == (3.0, 1)


class TestBlendedAverage:
    def test_unrated_book_shows_value(self):
        assert blended_average(0.0, 4) == 4.0

    def test_blends_with_current_average(self):
        assert blended_average(3.0, 5) == 4.0
