"""
Clash Staking — History Synchronization
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

One run: fetch the staking events, rewrite the history document, rebuild
the live leaderboard and (optionally) a snapshot leaderboard. Everything is
computed in memory first; the documents are then written as one group, so a
failure before the write leaves the previous documents as they were.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cdp_service import STAKING_EVENT_SIGNATURES, CdpSqlClient
from .config import EVENT_SOURCE_CDP, EVENT_SOURCE_RPC, StakingConfig
from .ingestion import normalize_events, sort_events
from .ledger import compute_leaderboard, compute_snapshot
from .logger import log_activity
from .models import StakingEvent, StakingEventHistory
from .rpc_service import LegacyRpcEventSource
from .storage import (
    STAKING_NAME,
    history_file_path,
    load_history,
    snapshot_file_path,
    stakers_file_path,
    write_documents,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    source: str
    number_of_events: int
    last_block: int
    total_stakers: int
    snapshot_timestamp: int = 0
    snapshot_stakers: Optional[int] = None
    files: List[Path] = field(default_factory=list)


def _write_run(
    config: StakingConfig,
    source: str,
    events: List[StakingEvent],
    snapshot_timestamp: int,
    now: int,
    name: str = STAKING_NAME,
) -> SyncResult:
    history = StakingEventHistory.from_events(events)
    stakers = compute_leaderboard(history.events, now)
    logger.info(f"{name} - Total stakers: {len(stakers)}")

    documents: Dict[Path, Any] = {
        stakers_file_path(config.history_folder, source, name): [s.to_dict() for s in stakers],
    }

    snapshot_stakers = None
    if snapshot_timestamp > 0:
        snapshot = compute_snapshot(history.events, snapshot_timestamp)
        snapshot_stakers = len(snapshot)
        documents[snapshot_file_path(config.history_folder, snapshot_timestamp, source, name)] = [
            s.to_dict() for s in snapshot
        ]
        logger.info(f"{name} - Snapshot stakers: {snapshot_stakers}. Timestamp: {snapshot_timestamp}")

    # History goes last: leaderboards are never newer than the stored history
    documents[history_file_path(config.history_folder, source, name)] = history.to_dict()

    files = write_documents(documents)

    log_activity(
        "INFO", "SYNC", f"{name} history written",
        source=source,
        events=history.number_of_events,
        last_block=history.last_block,
        stakers=len(stakers),
        snapshot=snapshot_timestamp or "-",
    )
    return SyncResult(
        source=source,
        number_of_events=history.number_of_events,
        last_block=history.last_block,
        total_stakers=len(stakers),
        snapshot_timestamp=snapshot_timestamp,
        snapshot_stakers=snapshot_stakers,
        files=files,
    )


def synchronize_history_with_cdp(
    config: StakingConfig,
    snapshot_timestamp: int,
    client: Optional[CdpSqlClient] = None,
    now: Optional[int] = None,
) -> SyncResult:
    """
    Synchronize the staking history through the CDP SQL API

    Args:
        config: Run configuration
        snapshot_timestamp: Snapshot time (epoch seconds), 0 for no snapshot
        client: SQL API client, built from the config when omitted
        now: Evaluation time of the live leaderboard, defaults to the current time
    """
    logger.info(f"{STAKING_NAME} - Using CDP SQL API to fetch staking events...")
    client = client or CdpSqlClient.from_config(config)

    raw_events = client.fetch_events(config.contract_address, STAKING_EVENT_SIGNATURES)
    events = normalize_events(raw_events)

    result = _write_run(
        config,
        EVENT_SOURCE_CDP,
        events,
        snapshot_timestamp,
        int(time.time()) if now is None else now,
    )
    logger.info(f"✅ {STAKING_NAME} - CDP SQL API synchronization completed!")
    return result


def synchronize_history_legacy(
    config: StakingConfig,
    snapshot_timestamp: int,
    source: Optional[LegacyRpcEventSource] = None,
    now: Optional[int] = None,
) -> SyncResult:
    """
    Synchronize the staking history by polling the RPC node

    Continues from the last block of the stored RPC history and appends the
    new events; the history document itself is rewritten in full.
    """
    logger.warning("⚠️ Using legacy RPC polling method - this is slow and expensive!")
    source = source or LegacyRpcEventSource.from_config(config)

    previous = load_history(history_file_path(config.history_folder, EVENT_SOURCE_RPC))
    from_block = max(previous.last_block + 1, config.deploy_block)
    logger.info(f"{STAKING_NAME} - {previous.number_of_events} stored events, scanning from block {from_block}")

    new_events = normalize_events(source.fetch_events(from_block))
    events = sort_events(previous.events + new_events)

    result = _write_run(
        config,
        EVENT_SOURCE_RPC,
        events,
        snapshot_timestamp,
        int(time.time()) if now is None else now,
    )
    logger.info(f"✅ {STAKING_NAME} - RPC synchronization completed ({len(new_events)} new events)")
    return result


def synchronize_history(config: StakingConfig, snapshot_timestamp: int, now: Optional[int] = None) -> SyncResult:
    """Run the sync with the event source selected in the config"""
    if config.event_source == EVENT_SOURCE_RPC:
        return synchronize_history_legacy(config, snapshot_timestamp, now=now)
    return synchronize_history_with_cdp(config, snapshot_timestamp, now=now)
