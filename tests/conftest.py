import pytest

from clash_staking.config import StakingConfig
from tests.factories import CONTRACT


@pytest.fixture
def history_folder(tmp_path):
    return tmp_path / "data" / "staking"


@pytest.fixture
def cdp_config(history_folder):
    return StakingConfig(
        contract_address=CONTRACT,
        staking_start_time=0,
        cdp_api_key_id="organizations/org/apiKeys/key",
        cdp_api_key_secret="secret",
        history_folder=history_folder,
    )


@pytest.fixture
def rpc_config(history_folder):
    return StakingConfig(
        contract_address=CONTRACT,
        event_source="rpc",
        history_folder=history_folder,
    )


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for name in (
        "BASE_CLASH_STAKING_ADDRESS", "CLASH_STAKING_START_TIME", "CDP_API_KEY_NAME", "CDP_API_KEY_ID",
        "CDP_API_KEY_SECRET", "LOGGER_LEVEL", "STAKING_EVENT_SOURCE", "STAKING_HISTORY_FOLDER",
        "STAKING_LOG_DIR", "BASE_RPC_URL", "CLASH_STAKING_DEPLOY_BLOCK", "RPC_BLOCK_BATCH_SIZE",
        "CDP_API_HOST", "HTTP_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
