#!/usr/bin/env python3
"""
Clash Staking Sync - fetch staking events, rebuild leaderboards

Configured through environment variables / .env only:
    BASE_CLASH_STAKING_ADDRESS, CLASH_STAKING_START_TIME,
    CDP_API_KEY_NAME, CDP_API_KEY_SECRET, LOGGER_LEVEL, STAKING_EVENT_SOURCE
"""
import logging
import time
from datetime import datetime, timezone

from .config import StakingConfig
from .errors import ConfigurationError, StakingSyncError
from .ledger import SECONDS_PER_WEEK, snapshot_timestamp_for
from .logger import ROOT_LOGGER_NAME, setup_logger
from .staking_sync import synchronize_history

logger = logging.getLogger(__name__)


def main() -> int:
    try:
        config = StakingConfig.from_env()
    except ConfigurationError as e:
        setup_logger(ROOT_LOGGER_NAME)
        logger.error(f"❌ Configuration error: {e}")
        return 1

    setup_logger(ROOT_LOGGER_NAME, level=config.log_level, log_dir=config.log_dir)

    logger.info("🚀 Starting staking synchronization...")
    logger.info(f"Contract: {config.contract_address}")
    logger.info(f"Event source: {config.event_source}")

    now = int(time.time())
    snapshot_timestamp = snapshot_timestamp_for(config.staking_start_time, now)
    current_week = (now - config.staking_start_time) // SECONDS_PER_WEEK
    logger.info(f"Current week: {current_week}")
    logger.info(
        f"Snapshot time for previous week ({current_week - 1}): {snapshot_timestamp} - "
        f"{datetime.fromtimestamp(snapshot_timestamp, tz=timezone.utc).isoformat()}"
    )

    try:
        result = synchronize_history(config, snapshot_timestamp, now=now)
    except StakingSyncError as e:
        logger.error(f"❌ Staking synchronization failed: {type(e).__name__}: {e}")
        return 1
    except Exception:
        logger.exception("❌ Unexpected error during staking synchronization")
        return 1

    logger.info(
        f"✅ Synchronization completed: {result.number_of_events} events, "
        f"last block {result.last_block}, {result.total_stakers} stakers"
    )
    for path in result.files:
        logger.info(f"   📄 {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
