"""
Clash Staking — Event Ingestion
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Turns raw rows from an event source (SQL API or RPC) into typed Staked /
Unstaked events. Every numeric field is parsed strictly: a value that is not
an integer aborts the run instead of turning into a zero score.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from .errors import EventDecodingError
from .models import (
    STAKED,
    UNSTAKED,
    LockPeriod,
    RawEvent,
    StakedEvent,
    StakingEvent,
    TransactionStatus,
    UnstakedEvent,
)

logger = logging.getLogger(__name__)


def parse_int(value: Any, field: str) -> int:
    """Parse a base-10 integer from an int or a string"""
    if isinstance(value, bool):
        raise EventDecodingError(f"Invalid integer for {field}: {value!r}", field=field, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        # int() would also accept "1_000" and full-width digits
        digits = text[1:] if text[:1] in "+-" else text
        if digits and digits.isascii() and digits.isdigit():
            return int(text)
    raise EventDecodingError(f"Invalid integer for {field}: {value!r}", field=field, value=value)


def parse_timestamp(value: Any, field: str = "block_timestamp") -> int:
    """
    Parse a block timestamp into epoch seconds

    The SQL API returns timestamps like "2025-06-01 12:00:00", the RPC path
    returns epoch seconds. Naive timestamps are UTC.
    """
    if isinstance(value, str) and not value.strip().lstrip("+-").isdigit():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise EventDecodingError(f"Invalid timestamp for {field}: {value!r}", field=field, value=value) from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp())
    return parse_int(value, field)


def _parse_optional_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return parse_int(value, field)


def _parameter(raw: RawEvent, name: str) -> Any:
    try:
        return raw.parameters[name]
    except KeyError:
        raise EventDecodingError(f"{raw.event_type} event is missing parameter {name}", field=name) from None


def normalize_event(raw: RawEvent) -> StakingEvent:
    """
    Convert one raw event row into a typed event

    Raises:
        EventDecodingError: unknown event type, missing or malformed field
    """
    if raw.event_type not in (STAKED, UNSTAKED):
        raise EventDecodingError(f"Unknown event type: {raw.event_type!r}", field="event_type", value=raw.event_type)

    block_number = parse_int(raw.block_number, "block_number")
    timestamp = parse_timestamp(raw.block_timestamp)
    log_index = _parse_optional_int(raw.log_index, "log_index")
    transaction_id = parse_int(_parameter(raw, "transactionId"), "transactionId")

    if raw.event_type == STAKED:
        lock_period = parse_int(_parameter(raw, "lockPeriod"), "lockPeriod")
        try:
            lock_period = LockPeriod(lock_period)
        except ValueError:
            raise EventDecodingError(
                f"Unknown lock period {lock_period} in transaction {transaction_id}",
                field="lockPeriod", value=lock_period,
            ) from None
        sender = _parameter(raw, "sender")
        if not isinstance(sender, str) or not sender:
            raise EventDecodingError(f"Invalid sender in transaction {transaction_id}", field="sender", value=sender)
        return StakedEvent(
            block_number=block_number,
            timestamp=timestamp,
            transaction_id=transaction_id,
            amount=parse_int(_parameter(raw, "amount"), "amount"),
            staked_at=parse_int(_parameter(raw, "stakedAt"), "stakedAt"),
            sender=sender.lower(),
            lock_period=lock_period,
            log_index=log_index,
        )

    status = parse_int(_parameter(raw, "status"), "status")
    try:
        status = TransactionStatus(status)
    except ValueError:
        raise EventDecodingError(
            f"Unknown transaction status {status} in transaction {transaction_id}",
            field="status", value=status,
        ) from None
    return UnstakedEvent(
        block_number=block_number,
        timestamp=timestamp,
        transaction_id=transaction_id,
        status=status,
        score=parse_int(_parameter(raw, "score"), "score"),
        unstaked_at=parse_int(_parameter(raw, "unstakedAt"), "unstakedAt"),
        log_index=log_index,
    )


def sort_events(events: Iterable[StakingEvent]) -> List[StakingEvent]:
    """Order events by block, then by position in the block (stable)"""
    return sorted(
        events,
        key=lambda e: (e.block_number, -1 if e.log_index is None else e.log_index),
    )


def normalize_events(raws: Iterable[RawEvent]) -> List[StakingEvent]:
    """Normalize all raw rows and return them in chain order"""
    events = [normalize_event(raw) for raw in raws]
    staked = sum(1 for e in events if e.type == STAKED)
    logger.debug(f"Normalized {len(events)} events ({staked} Staked, {len(events) - staked} Unstaked)")
    return sort_events(events)
