import pytest

from clash_staking.models import LockPeriod
from clash_staking.score_calculator import calculate_score
from tests.factories import DAY


def test_score_after_30_day_lock():
    assert calculate_score(1000, LockPeriod.LOCK_30_DAYS, 0, 40 * DAY) == 12500


def test_score_inside_lock_is_zero():
    assert calculate_score(1000, LockPeriod.LOCK_30_DAYS, 0, 20 * DAY) == 0


def test_score_at_lock_boundary_is_zero():
    assert calculate_score(1000, LockPeriod.LOCK_90_DAYS, 0, 90 * DAY) == 0
    assert calculate_score(1000, LockPeriod.LOCK_90_DAYS, 0, 91 * DAY) == 2000


def test_no_lock_counts_whole_days_only():
    assert calculate_score(1000, LockPeriod.NO_LOCK, 0, DAY - 1) == 0
    assert calculate_score(1000, LockPeriod.NO_LOCK, 0, DAY) == 1000
    assert calculate_score(1000, LockPeriod.NO_LOCK, 0, 3 * DAY + 5) == 3000


def test_multipliers():
    assert calculate_score(100, LockPeriod.LOCK_60_DAYS, 0, 70 * DAY) == 1500
    assert calculate_score(100, LockPeriod.LOCK_90_DAYS, 0, 100 * DAY) == 2000


def test_score_is_floored():
    # 3 * 1.25 * 1 = 3.75
    assert calculate_score(3, LockPeriod.LOCK_30_DAYS, 0, 31 * DAY) == 3


def test_evaluation_before_stake_is_zero():
    assert calculate_score(1000, LockPeriod.NO_LOCK, 10 * DAY, 0) == 0


def test_large_token_amounts_stay_exact():
    amount = 123456789 * 10**18 + 1
    assert calculate_score(amount, LockPeriod.LOCK_30_DAYS, 0, 34 * DAY) == amount * 5


@pytest.mark.parametrize("lock_period", list(LockPeriod))
def test_score_is_monotonic_in_time(lock_period):
    scores = [calculate_score(777, lock_period, 5000, 5000 + t * DAY // 3) for t in range(400)]
    assert scores == sorted(scores)
    assert scores[0] == 0
