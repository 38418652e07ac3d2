from __future__ import annotations

import pytest

from app.services.progress import ProgressEstimate, ProgressEstimator, count_batches


@pytest.fixture()
def estimator() -> ProgressEstimator:
    return ProgressEstimator()


class TestPercentComplete:
    def test_floors(self, estimator) -> None:
        assert estimator.percent_complete(total=120, processed=50) == 41
        assert estimator.percent_complete(total=3, processed=2) == 66

    def test_zero_total(self, estimator) -> None:
        assert estimator.percent_complete(total=0, processed=0) == 0

    def test_capped_at_hundred(self, estimator) -> None:
        assert estimator.percent_complete(total=10, processed=10) == 100
        assert estimator.percent_complete(total=10, processed=12) == 100


class TestTimeRemaining:
    def test_linear_extrapolation(self, estimator) -> None:
        # 50 items in 1000 ms -> 70 remaining at 0.05 items/ms
        assert estimator.estimated_time_remaining_ms(total=120, processed=50, elapsed_ms=1000) == 1400

    def test_unknown_before_first_item(self, estimator) -> None:
        assert estimator.estimated_time_remaining_ms(total=120, processed=0, elapsed_ms=1000) is None

    def test_unknown_without_elapsed_time(self, estimator) -> None:
        assert estimator.estimated_time_remaining_ms(total=120, processed=50, elapsed_ms=0) is None

    def test_zero_when_done(self, estimator) -> None:
        assert estimator.estimated_time_remaining_ms(total=120, processed=120, elapsed_ms=2500) == 0


@pytest.mark.parametrize(
    ("total", "batch_size", "expected"),
    [(120, 50, 3), (100, 50, 2), (1, 50, 1), (0, 50, 0), (7, 0, 7)],
)
def test_count_batches(total, batch_size, expected) -> None:
    assert count_batches(total, batch_size) == expected


def test_estimate_combines_both(estimator) -> None:
    assert estimator.estimate(total=100, processed=25, elapsed_ms=500) == ProgressEstimate(
        percent_complete=25,
        estimated_time_remaining_ms=1500,
    )
