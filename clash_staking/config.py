"""
Clash Staking — Configuration
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

All settings come from the environment (and an optional .env file). They are
read once at process start into a StakingConfig that is passed to the sync
job; nothing below this module looks at os.environ.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from web3 import Web3

from .errors import ConfigurationError
from .logger import resolve_level

EVENT_SOURCE_CDP = "cdp"
EVENT_SOURCE_RPC = "rpc"
EVENT_SOURCES = (EVENT_SOURCE_CDP, EVENT_SOURCE_RPC)

DEFAULT_HISTORY_FOLDER = "data/staking"
DEFAULT_CDP_API_HOST = "api.cdp.coinbase.com"
DEFAULT_BASE_RPC_URL = "https://mainnet.base.org"
DEFAULT_BLOCK_BATCH_SIZE = 10000
DEFAULT_HTTP_TIMEOUT = 30


@dataclass(frozen=True)
class StakingConfig:
    contract_address: str
    staking_start_time: int = 0
    cdp_api_key_id: Optional[str] = None
    cdp_api_key_secret: Optional[str] = None
    log_level: str = "info"
    log_dir: Optional[str] = None
    event_source: str = EVENT_SOURCE_CDP
    history_folder: Path = Path(DEFAULT_HISTORY_FOLDER)
    cdp_api_host: str = DEFAULT_CDP_API_HOST
    rpc_url: str = DEFAULT_BASE_RPC_URL
    deploy_block: int = 0
    block_batch_size: int = DEFAULT_BLOCK_BATCH_SIZE
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        if not self.contract_address:
            raise ConfigurationError("BASE_CLASH_STAKING_ADDRESS must be set in environment")
        if not Web3.is_address(self.contract_address):
            raise ConfigurationError(f"Invalid staking contract address: {self.contract_address}")
        # Stored lowercase, the SQL API compares against lowercase addresses
        object.__setattr__(self, "contract_address", self.contract_address.lower())
        object.__setattr__(self, "history_folder", Path(self.history_folder))

        if self.event_source not in EVENT_SOURCES:
            raise ConfigurationError(
                f"STAKING_EVENT_SOURCE must be one of {', '.join(EVENT_SOURCES)}, got {self.event_source!r}"
            )
        if self.event_source == EVENT_SOURCE_CDP and not (self.cdp_api_key_id and self.cdp_api_key_secret):
            raise ConfigurationError("CDP_API_KEY_NAME and CDP_API_KEY_SECRET must be set")
        try:
            resolve_level(self.log_level)
        except ValueError:
            raise ConfigurationError(f"Unknown LOGGER_LEVEL: {self.log_level}") from None
        if self.block_batch_size <= 0:
            raise ConfigurationError("RPC_BLOCK_BATCH_SIZE must be positive")
        if self.http_timeout <= 0:
            raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, load_env_file: bool = True) -> "StakingConfig":
        """
        Build the configuration from environment variables

        Args:
            environ: Mapping to read instead of os.environ (tests)
            load_env_file: Load .env into os.environ first

        Raises:
            ConfigurationError: if a value is missing or malformed
        """
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = environ.get(name)
            if value is None or value.strip() == "":
                return default
            return value.strip()

        return cls(
            contract_address=get("BASE_CLASH_STAKING_ADDRESS", ""),
            staking_start_time=_parse_int(environ, "CLASH_STAKING_START_TIME", 0),
            cdp_api_key_id=get("CDP_API_KEY_NAME") or get("CDP_API_KEY_ID"),
            cdp_api_key_secret=get("CDP_API_KEY_SECRET"),
            log_level=get("LOGGER_LEVEL", "info"),
            log_dir=get("STAKING_LOG_DIR"),
            event_source=get("STAKING_EVENT_SOURCE", EVENT_SOURCE_CDP).lower(),
            history_folder=Path(get("STAKING_HISTORY_FOLDER", DEFAULT_HISTORY_FOLDER)),
            cdp_api_host=get("CDP_API_HOST", DEFAULT_CDP_API_HOST),
            rpc_url=get("BASE_RPC_URL", DEFAULT_BASE_RPC_URL),
            deploy_block=_parse_int(environ, "CLASH_STAKING_DEPLOY_BLOCK", 0),
            block_batch_size=_parse_int(environ, "RPC_BLOCK_BATCH_SIZE", DEFAULT_BLOCK_BATCH_SIZE),
            http_timeout=_parse_int(environ, "HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT),
        )


def _parse_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
