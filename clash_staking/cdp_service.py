"""
Clash Staking — CDP SQL API Service
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

Fetches decoded contract events from the CDP SQL API (base.events table).
One SQL query replaces the block-by-block RPC polling of the legacy path.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import requests
from web3 import Web3

from .cdp_auth import CdpTokenProvider
from .errors import ConfigurationError, TransportError
from .models import RawEvent

logger = logging.getLogger(__name__)

CDP_SQL_QUERY_PATH = "/platform/v2/data/query/run"

# Event signature hashes for the staking contract
STAKED_EVENT_SIGNATURE = "Staked(uint256,uint256,uint40,address,uint8)"
UNSTAKED_EVENT_SIGNATURE = "Unstaked(uint256,uint8,uint256,uint40)"

# Decoded parameter names per event signature, in ABI order
EVENT_PARAMETERS: Dict[str, List[str]] = {
    STAKED_EVENT_SIGNATURE: ["transactionId", "amount", "stakedAt", "sender", "lockPeriod"],
    UNSTAKED_EVENT_SIGNATURE: ["transactionId", "status", "score", "unstakedAt"],
}

STAKING_EVENT_SIGNATURES = [STAKED_EVENT_SIGNATURE, UNSTAKED_EVENT_SIGNATURE]


def event_name(signature: str) -> str:
    return signature.split("(", 1)[0]


def _column(parameter: str) -> str:
    # transactionId -> transaction_id
    return re.sub(r"(?<!^)(?=[A-Z])", "_", parameter).lower()


def build_events_query(contract_address: str, event_signatures: Sequence[str]) -> str:
    """
    Build one SQL query returning all events of the given signatures

    Every signature gets its own SELECT; columns a signature does not have
    are filled with '' so the parts can be combined with UNION ALL.
    """
    if not Web3.is_address(contract_address):
        raise ConfigurationError(f"Invalid contract address: {contract_address}")
    if not event_signatures:
        raise ConfigurationError("At least one event signature is required")

    columns: List[str] = []
    for signature in event_signatures:
        if signature not in EVENT_PARAMETERS:
            raise ConfigurationError(f"Unknown event signature: {signature}")
        for parameter in EVENT_PARAMETERS[signature]:
            if parameter not in columns:
                columns.append(parameter)

    address = contract_address.lower()
    selects = []
    for signature in event_signatures:
        parameters = EVENT_PARAMETERS[signature]
        fields = ",\n  ".join(
            f"parameters['{p}']::String AS {_column(p)}" if p in parameters else f"'' AS {_column(p)}"
            for p in columns
        )
        selects.append(f"""SELECT
  '{event_name(signature)}' AS event_type,
  block_number,
  block_timestamp,
  log_index,
  {fields}
FROM base.events
WHERE address = '{address}'
  AND event_signature = '{signature}'
  AND block_number > 0""")

    return "\nUNION ALL\n".join(selects) + "\nORDER BY block_number ASC, log_index ASC"


class CdpSqlClient:
    """Client for the CDP SQL API query endpoint"""

    def __init__(
        self,
        token_provider: CdpTokenProvider,
        host: str = "api.cdp.coinbase.com",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.token_provider = token_provider
        self.host = host
        self.timeout = timeout
        self.session = session or requests.Session()
        self.url = f"https://{host}{CDP_SQL_QUERY_PATH}"

    @classmethod
    def from_config(cls, config, session: Optional[requests.Session] = None) -> "CdpSqlClient":
        token_provider = CdpTokenProvider(
            key_id=config.cdp_api_key_id,
            key_secret=config.cdp_api_key_secret,
            request_method="POST",
            request_host=config.cdp_api_host,
            request_path=CDP_SQL_QUERY_PATH,
        )
        return cls(token_provider, host=config.cdp_api_host, timeout=config.http_timeout, session=session)

    def run_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute one SQL query

        Returns:
            Result rows

        Raises:
            TransportError: network failure, HTTP error or malformed response
        """
        headers = {
            "Authorization": f"Bearer {self.token_provider.get_token()}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(self.url, json={"sql": sql}, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"CDP API request timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"CDP API request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"CDP API error: {response.status_code} {response.reason}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"CDP API returned invalid JSON: {e}", status_code=response.status_code) from e

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, list):
            raise TransportError("CDP API response has no result list", status_code=response.status_code)
        return result

    def fetch_events(self, contract_address: str, event_signatures: Sequence[str] = STAKING_EVENT_SIGNATURES) -> List[RawEvent]:
        """Fetch all events of the given signatures emitted by a contract"""
        sql = build_events_query(contract_address, event_signatures)
        logger.debug(f"CDP SQL query:\n{sql}")

        rows = self.run_query(sql)
        logger.info(f"📥 Fetched {len(rows)} events from CDP SQL API")

        parameters_by_name = {event_name(s): EVENT_PARAMETERS[s] for s in event_signatures}
        events = []
        for row in rows:
            event_type = row.get("event_type")
            names = parameters_by_name.get(event_type, [])
            events.append(RawEvent(
                event_type=event_type,
                block_number=row.get("block_number"),
                block_timestamp=row.get("block_timestamp"),
                parameters={name: row.get(_column(name)) for name in names if _column(name) in row},
                log_index=row.get("log_index"),
            ))
        return events
