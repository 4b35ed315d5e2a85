import pytest
import requests

from clash_staking.cdp_service import (
    STAKED_EVENT_SIGNATURE,
    STAKING_EVENT_SIGNATURES,
    UNSTAKED_EVENT_SIGNATURE,
    CdpSqlClient,
    build_events_query,
)
from clash_staking.errors import ConfigurationError, EventDecodingError, TransportError
from clash_staking.ingestion import normalize_events
from tests.factories import CONTRACT, FakeResponse, FakeSession, StaticTokenProvider


def make_client(*responses):
    session = FakeSession(responses)
    client = CdpSqlClient(StaticTokenProvider(), host="api.example.test", timeout=5, session=session)
    return client, session


def test_events_query():
    sql = build_events_query(CONTRACT, STAKING_EVENT_SIGNATURES)
    assert sql.count("SELECT") == 2
    assert "UNION ALL" in sql
    assert f"address = '{CONTRACT.lower()}'" in sql
    assert f"event_signature = '{STAKED_EVENT_SIGNATURE}'" in sql
    assert f"event_signature = '{UNSTAKED_EVENT_SIGNATURE}'" in sql
    assert "parameters['transactionId']::String AS transaction_id" in sql
    assert "'' AS unstaked_at" in sql
    assert sql.endswith("ORDER BY block_number ASC, log_index ASC")


def test_events_query_rejects_bad_input():
    with pytest.raises(ConfigurationError):
        build_events_query("0x1234'; DROP TABLE x; --", STAKING_EVENT_SIGNATURES)
    with pytest.raises(ConfigurationError):
        build_events_query(CONTRACT, ["Transfer(address,address,uint256)"])
    with pytest.raises(ConfigurationError):
        build_events_query(CONTRACT, [])


def test_run_query_sends_bearer_token():
    client, session = make_client(FakeResponse(payload={"result": [{"n": 1}]}))
    assert client.run_query("SELECT 1") == [{"n": 1}]

    request = session.requests[0]
    assert request["url"] == "https://api.example.test/platform/v2/data/query/run"
    assert request["json"] == {"sql": "SELECT 1"}
    assert request["headers"]["Authorization"] == "Bearer test-token"
    assert request["timeout"] == 5


def test_fetch_events_maps_rows():
    rows = [
        {
            "event_type": "Staked", "block_number": "100", "block_timestamp": "2024-01-01 00:00:00",
            "log_index": "2", "transaction_id": "1", "amount": "5000", "staked_at": "1704067200",
            "sender": "0xabc", "lock_period": "1", "status": "", "score": "", "unstaked_at": "",
        },
        {
            "event_type": "Unstaked", "block_number": "200", "block_timestamp": "2024-02-01 00:00:00",
            "log_index": "0", "transaction_id": "1", "amount": "", "staked_at": "",
            "sender": "", "lock_period": "", "status": "2", "score": "90", "unstaked_at": "1706745600",
        },
    ]
    client, _ = make_client(FakeResponse(payload={"result": rows}))
    events = client.fetch_events(CONTRACT)

    assert [e.event_type for e in events] == ["Staked", "Unstaked"]
    assert events[0].parameters == {
        "transactionId": "1", "amount": "5000", "stakedAt": "1704067200", "sender": "0xabc", "lockPeriod": "1",
    }
    assert events[1].parameters == {"transactionId": "1", "status": "2", "score": "90", "unstakedAt": "1706745600"}
    assert events[0].block_number == "100"
    assert events[0].log_index == "2"


def test_unexpected_event_type_is_reported_as_such():
    row = {
        "event_type": "Paused", "block_number": "300", "block_timestamp": "2024-03-01 00:00:00",
        "log_index": "0", "transaction_id": "", "amount": "", "staked_at": "",
        "sender": "", "lock_period": "", "status": "", "score": "", "unstaked_at": "",
    }
    client, _ = make_client(FakeResponse(payload={"result": [row]}))
    events = client.fetch_events(CONTRACT)

    with pytest.raises(EventDecodingError) as exc_info:
        normalize_events(events)
    assert exc_info.value.field == "event_type"
    assert "Unknown event type" in str(exc_info.value)


def test_http_error_is_transport_error():
    client, _ = make_client(FakeResponse(status_code=401, text="unauthorized", reason="Unauthorized"))
    with pytest.raises(TransportError) as exc_info:
        client.run_query("SELECT 1")
    assert exc_info.value.status_code == 401
    assert "401" in str(exc_info.value)


def test_network_error_is_transport_error():
    client, _ = make_client(requests.exceptions.ConnectionError("connection refused"))
    with pytest.raises(TransportError) as exc_info:
        client.run_query("SELECT 1")
    assert exc_info.value.status_code is None


def test_timeout_is_transport_error():
    client, _ = make_client(requests.exceptions.Timeout("read timed out"))
    with pytest.raises(TransportError):
        client.run_query("SELECT 1")


@pytest.mark.parametrize("response", [
    FakeResponse(payload=None, text="<html>"),
    FakeResponse(payload={"error": "bad query"}),
    FakeResponse(payload={"result": "nope"}),
])
def test_malformed_response_is_transport_error(response):
    client, _ = make_client(response)
    with pytest.raises(TransportError):
        client.run_query("SELECT 1")


def test_no_retry_after_failure():
    client, session = make_client(FakeResponse(status_code=503, text="busy", reason="Service Unavailable"))
    with pytest.raises(TransportError):
        client.fetch_events(CONTRACT)
    assert len(session.requests) == 1
