"""
Staking Score Calculation Module

Score = Amount × Lock Multiplier × Days Staked After The Lock

Nothing accrues while the stake is locked. Once the lock has expired the
score grows by amount × multiplier for every full day.
"""
import math
from fractions import Fraction
from typing import Dict, Tuple

from .models import LockPeriod

SECONDS_PER_DAY = 24 * 60 * 60

# lock period -> (locked days, score multiplier)
LOCK_PERIOD_TERMS: Dict[LockPeriod, Tuple[int, Fraction]] = {
    LockPeriod.NO_LOCK: (0, Fraction(1)),
    LockPeriod.LOCK_30_DAYS: (30, Fraction(5, 4)),
    LockPeriod.LOCK_60_DAYS: (60, Fraction(3, 2)),
    LockPeriod.LOCK_90_DAYS: (90, Fraction(2)),
}


def calculate_score(amount: int, lock_period: LockPeriod, staked_at: int, timestamp: int) -> int:
    """
    Calculate the score of one stake as of a given time

    Args:
        amount: Staked token amount (raw units)
        lock_period: Lock tier chosen when staking
        staked_at: Stake time (epoch seconds)
        timestamp: Time the score is evaluated at (epoch seconds)

    Returns:
        Score, never negative
    """
    locked_days, multiplier = LOCK_PERIOD_TERMS[LockPeriod(lock_period)]
    lock_period_in_seconds = locked_days * SECONDS_PER_DAY

    number_of_periods = (timestamp - staked_at) // SECONDS_PER_DAY
    locked_periods = lock_period_in_seconds // SECONDS_PER_DAY

    # Fraction keeps the floor exact for 18-decimal amounts
    return math.floor(amount * multiplier * max(0, number_of_periods - locked_periods))
