"""
Clash Staking — Legacy RPC Event Source
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Reads Staked / Unstaked logs directly from a BASE JSON-RPC node:
- eth_getLogs in block batches (default 10,000 blocks)
- one eth_getBlockByNumber per block for the timestamp (cached)

Slow and expensive compared to the SQL API, kept for comparison and as a
fallback when no CDP key is available.
"""

import logging
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import EventDecodingError, TransportError
from .models import RawEvent

logger = logging.getLogger(__name__)

# Staking contract events (minimal ABI - only the events we read)
STAKING_EVENTS_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "transactionId", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
            {"indexed": False, "internalType": "uint40", "name": "stakedAt", "type": "uint40"},
            {"indexed": False, "internalType": "address", "name": "sender", "type": "address"},
            {"indexed": False, "internalType": "enum LockPeriod", "name": "lockPeriod", "type": "uint8"}
        ],
        "name": "Staked",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "uint256", "name": "transactionId", "type": "uint256"},
            {"indexed": False, "internalType": "enum TransactionStatus", "name": "status", "type": "uint8"},
            {"indexed": False, "internalType": "uint256", "name": "score", "type": "uint256"},
            {"indexed": False, "internalType": "uint40", "name": "unstakedAt", "type": "uint40"}
        ],
        "name": "Unstaked",
        "type": "event"
    }
]

STAKED_TOPIC = Web3.keccak(text="Staked(uint256,uint256,uint40,address,uint8)")
UNSTAKED_TOPIC = Web3.keccak(text="Unstaked(uint256,uint8,uint256,uint40)")


class LegacyRpcEventSource:
    """Event source polling a JSON-RPC node for staking logs"""

    def __init__(self, w3: Web3, contract_address: str, batch_size: int = 10000):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.batch_size = batch_size
        self.contract = w3.eth.contract(address=self.contract_address, abi=STAKING_EVENTS_ABI)
        self._events_by_topic = {
            bytes(STAKED_TOPIC): self.contract.events.Staked(),
            bytes(UNSTAKED_TOPIC): self.contract.events.Unstaked(),
        }
        self._block_timestamps: Dict[int, int] = {}

    @classmethod
    def from_config(cls, config) -> "LegacyRpcEventSource":
        w3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": config.http_timeout}))
        logger.info(f"🌐 Using BASE RPC: {config.rpc_url}")
        return cls(w3, config.contract_address, batch_size=config.block_batch_size)

    def get_latest_block(self) -> int:
        try:
            return self.w3.eth.block_number
        except (Web3Exception, OSError, ValueError) as e:
            raise TransportError(f"Could not read latest block: {e}") from e

    def _get_logs(self, from_block: int, to_block: int) -> List[Any]:
        try:
            return self.w3.eth.get_logs({
                "address": self.contract_address,
                "fromBlock": from_block,
                "toBlock": to_block,
                "topics": [[Web3.to_hex(STAKED_TOPIC), Web3.to_hex(UNSTAKED_TOPIC)]],
            })
        except (Web3Exception, OSError, ValueError) as e:
            raise TransportError(f"eth_getLogs failed for blocks {from_block}-{to_block}: {e}") from e

    def _get_block_timestamp(self, block_number: int) -> int:
        if block_number not in self._block_timestamps:
            try:
                block = self.w3.eth.get_block(block_number)
            except (Web3Exception, OSError, ValueError) as e:
                raise TransportError(f"Could not read block {block_number}: {e}") from e
            self._block_timestamps[block_number] = int(block["timestamp"])
        return self._block_timestamps[block_number]

    def decode_log(self, log: Any) -> RawEvent:
        """Decode one staking log into a raw event row"""
        topics = log["topics"]
        event = self._events_by_topic.get(bytes(topics[0])) if topics else None
        if event is None:
            raise EventDecodingError(f"Unexpected log topic in block {log['blockNumber']}", field="topics")

        decoded = event.process_log(log)
        block_number = int(decoded["blockNumber"])
        return RawEvent(
            event_type=decoded["event"],
            block_number=block_number,
            block_timestamp=self._get_block_timestamp(block_number),
            parameters={name: str(value) for name, value in decoded["args"].items()},
            log_index=int(decoded["logIndex"]),
        )

    def fetch_events(self, from_block: int, to_block: Optional[int] = None) -> List[RawEvent]:
        """
        Scan blocks [from_block, to_block] for staking events

        Args:
            from_block: First block to scan
            to_block: Last block to scan, defaults to the latest block

        Raises:
            TransportError: any RPC call failed
        """
        if to_block is None:
            to_block = self.get_latest_block()
        if from_block > to_block:
            logger.info(f"⏸️ No new blocks to scan ({from_block} > {to_block})")
            return []

        events: List[RawEvent] = []
        batches = 0
        for start in range(from_block, to_block + 1, self.batch_size):
            end = min(start + self.batch_size - 1, to_block)
            logs = self._get_logs(start, end)
            batches += 1
            if logs:
                logger.debug(f"Blocks {start}-{end}: {len(logs)} logs")
            events.extend(self.decode_log(log) for log in logs)

        logger.info(f"📥 Fetched {len(events)} events from RPC ({batches} batches, blocks {from_block}-{to_block})")
        return events
