"""
Clash Staking — Data Model
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Typed events, reconciled transactions, stakers and the persisted history.
JSON keys are camelCase so the documents stay compatible with the ones the
TypeScript sync jobs wrote.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union

from .errors import EventDecodingError


class LockPeriod(IntEnum):
    NO_LOCK = 0
    LOCK_30_DAYS = 1
    LOCK_60_DAYS = 2
    LOCK_90_DAYS = 3


class TransactionStatus(IntEnum):
    STAKED = 0
    CANCELLED = 1
    UNSTAKED = 2


STAKED = "Staked"
UNSTAKED = "Unstaked"


@dataclass
class RawEvent:
    """Event row as delivered by an event source, before any validation"""
    event_type: str
    block_number: Any
    block_timestamp: Any
    parameters: Dict[str, Any]
    log_index: Any = None


@dataclass
class StakedEvent:
    block_number: int
    timestamp: int
    transaction_id: int
    amount: int
    staked_at: int
    sender: str
    lock_period: LockPeriod
    log_index: Optional[int] = None

    type = STAKED

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type,
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "transactionId": self.transaction_id,
            "amount": self.amount,
            "stakedAt": self.staked_at,
            "sender": self.sender,
            "lockPeriod": int(self.lock_period),
        }
        if self.log_index is not None:
            data["logIndex"] = self.log_index
        return data


@dataclass
class UnstakedEvent:
    block_number: int
    timestamp: int
    transaction_id: int
    status: TransactionStatus
    score: int
    unstaked_at: int
    log_index: Optional[int] = None

    type = UNSTAKED

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type,
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "transactionId": self.transaction_id,
            "status": int(self.status),
            "score": self.score,
            "unstakedAt": self.unstaked_at,
        }
        if self.log_index is not None:
            data["logIndex"] = self.log_index
        return data


StakingEvent = Union[StakedEvent, UnstakedEvent]


def event_from_dict(data: Dict[str, Any]) -> StakingEvent:
    """Rebuild a typed event from its stored JSON form"""
    try:
        event_type = data["type"]
        log_index = data.get("logIndex")
        if event_type == STAKED:
            return StakedEvent(
                block_number=int(data["blockNumber"]),
                timestamp=int(data["timestamp"]),
                transaction_id=int(data["transactionId"]),
                amount=int(data["amount"]),
                staked_at=int(data["stakedAt"]),
                sender=str(data["sender"]).lower(),
                lock_period=LockPeriod(int(data["lockPeriod"])),
                log_index=None if log_index is None else int(log_index),
            )
        if event_type == UNSTAKED:
            return UnstakedEvent(
                block_number=int(data["blockNumber"]),
                timestamp=int(data["timestamp"]),
                transaction_id=int(data["transactionId"]),
                status=TransactionStatus(int(data["status"])),
                score=int(data["score"]),
                unstaked_at=int(data["unstakedAt"]),
                log_index=None if log_index is None else int(log_index),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise EventDecodingError(f"Invalid stored event {data!r}: {e}") from e
    raise EventDecodingError(f"Unknown event type {event_type!r}", field="type", value=event_type)


@dataclass
class Transaction:
    transaction_id: int
    sender: str
    amount: int
    staked_at: int
    lock_period: LockPeriod
    status: TransactionStatus = TransactionStatus.STAKED
    score: int = 0
    unstaked_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "sender": self.sender,
            "amount": self.amount,
            "stakedAt": self.staked_at,
            "lockPeriod": int(self.lock_period),
            "status": int(self.status),
            "score": self.score,
            "unstakedAt": self.unstaked_at,
        }


@dataclass
class Staker:
    address: str
    amount: int = 0
    score: int = 0
    rank: int = 0
    transaction_ids: List[int] = field(default_factory=list)
    # Filled by the payout process, not by the sync
    top_staking_reward: int = 0
    standard_reward: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "amount": self.amount,
            "score": self.score,
            "rank": self.rank,
            "transactionIds": list(self.transaction_ids),
            "topStakingReward": self.top_staking_reward,
            "standardReward": self.standard_reward,
        }


@dataclass
class StakingEventHistory:
    events: List[StakingEvent] = field(default_factory=list)
    number_of_events: int = 0
    last_block: int = 0

    @classmethod
    def from_events(cls, events: List[StakingEvent]) -> "StakingEventHistory":
        events = list(events)
        last_block = max((e.block_number for e in events), default=0)
        return cls(events=events, number_of_events=len(events), last_block=last_block)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakingEventHistory":
        if not isinstance(data, dict) or not isinstance(data.get("events"), list):
            raise EventDecodingError("Staking history document has no event list")
        return cls.from_events([event_from_dict(e) for e in data["events"]])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "numberOfEvents": self.number_of_events,
            "lastBlock": self.last_block,
        }
