"""
Clash Staking — Ledger Reconciliation & Leaderboard
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Folds the ordered event stream into stake transactions, aggregates them per
staker and ranks the stakers by score. Snapshots run the same pipeline on
the events up to a given time.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from .errors import DuplicateTransactionError, UnknownTransactionError
from .models import (
    STAKED,
    Staker,
    StakingEvent,
    Transaction,
    TransactionStatus,
)
from .score_calculator import calculate_score

logger = logging.getLogger(__name__)

SECONDS_PER_WEEK = 7 * 24 * 60 * 60


def reconcile_transactions(events: Iterable[StakingEvent]) -> Tuple[Dict[int, Transaction], List[Transaction]]:
    """
    Rebuild stake transactions from Staked / Unstaked events

    Events must be in chain order (a Staked event before its Unstaked event).

    Returns:
        (mapping by transaction id in order of first appearance,
         transactions sorted by ascending id)

    Raises:
        DuplicateTransactionError: a second Staked event reuses an id
        UnknownTransactionError: an Unstaked event references no known stake
    """
    transaction_mapping: Dict[int, Transaction] = {}

    for event in events:
        transaction_id = event.transaction_id
        if event.type == STAKED:
            if transaction_id in transaction_mapping:
                raise DuplicateTransactionError(transaction_id)
            transaction_mapping[transaction_id] = Transaction(
                transaction_id=transaction_id,
                sender=event.sender,
                amount=event.amount,
                staked_at=event.staked_at,
                lock_period=event.lock_period,
                status=TransactionStatus.STAKED,
                score=0,
                unstaked_at=0,
            )
        else:
            transaction = transaction_mapping.get(transaction_id)
            if transaction is None:
                raise UnknownTransactionError(transaction_id)
            transaction.status = event.status
            transaction.score = event.score
            transaction.unstaked_at = event.unstaked_at

    transactions = [transaction_mapping[key] for key in sorted(transaction_mapping)]
    return transaction_mapping, transactions


def build_leaderboard(transactions: Iterable[Transaction], timestamp: int) -> List[Staker]:
    """
    Aggregate open stakes per sender and rank the stakers

    Only transactions still STAKED count, scored as of `timestamp`. Stakers
    without a positive score are left out. Equal scores keep the order in
    which the stakers first appear (ascending transaction id).
    """
    staker_map: Dict[str, Staker] = {}

    for transaction in transactions:
        staker = staker_map.get(transaction.sender)
        if staker is None:
            staker = staker_map[transaction.sender] = Staker(address=transaction.sender)

        if transaction.status == TransactionStatus.STAKED:
            staker.score += calculate_score(
                transaction.amount,
                transaction.lock_period,
                transaction.staked_at,
                timestamp,
            )
            staker.amount += transaction.amount
            staker.transaction_ids.append(transaction.transaction_id)

    # sorted() is stable, ties stay in first-seen order
    stakers = sorted(
        (s for s in staker_map.values() if s.score > 0),
        key=lambda s: s.score,
        reverse=True,
    )
    for index, staker in enumerate(stakers):
        staker.rank = index + 1

    return stakers


def compute_leaderboard(events: Iterable[StakingEvent], timestamp: int) -> List[Staker]:
    """Reconcile the events and rank the stakers as of `timestamp`"""
    _, transactions = reconcile_transactions(events)
    stakers = build_leaderboard(transactions, timestamp)
    logger.debug(f"Leaderboard at {timestamp}: {len(transactions)} transactions, {len(stakers)} ranked stakers")
    return stakers


def filter_events_until(events: Iterable[StakingEvent], snapshot_timestamp: int) -> List[StakingEvent]:
    return [e for e in events if e.timestamp <= snapshot_timestamp]


def compute_snapshot(events: Iterable[StakingEvent], snapshot_timestamp: int) -> List[Staker]:
    """Leaderboard built only from the events up to the snapshot time"""
    return compute_leaderboard(filter_events_until(events, snapshot_timestamp), snapshot_timestamp)


def snapshot_timestamp_for(staking_start_time: int, now: int) -> int:
    """
    End of the last complete staking week

    Weeks are counted from the program start; the snapshot for week N-1 is
    taken at start + N weeks, N being the current week.
    """
    current_week = (now - staking_start_time) // SECONDS_PER_WEEK
    previous_week = current_week - 1
    return staking_start_time + (previous_week + 1) * SECONDS_PER_WEEK
