import json
import os

import pytest

from clash_staking import storage
from clash_staking.errors import EventDecodingError
from clash_staking.models import StakingEventHistory
from clash_staking.storage import (
    history_file_path,
    load_history,
    snapshot_file_path,
    stakers_file_path,
    write_documents,
)
from tests.factories import staked, unstaked


def test_file_names(tmp_path):
    assert history_file_path(tmp_path, "cdp").name == "clash-staking-history-cdp.json"
    assert stakers_file_path(tmp_path, "cdp").name == "clash-staking-stakers-cdp.json"
    assert snapshot_file_path(tmp_path, 1700000000, "rpc").name == "clash-staking-stakers-snapshot-1700000000-rpc.json"


def test_history_round_trip(tmp_path):
    history = StakingEventHistory.from_events([staked(1, amount=10**21), unstaked(1, unstaked_at=99)])
    path = history_file_path(tmp_path, "rpc")
    write_documents({path: history.to_dict()})

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["numberOfEvents"] == 2
    assert stored["lastBlock"] == 15
    assert stored["events"][0]["type"] == "Staked"
    assert stored["events"][0]["amount"] == 10**21

    loaded = load_history(path)
    assert loaded == history


def test_missing_history_is_empty(tmp_path):
    history = load_history(tmp_path / "nothing.json")
    assert history.events == []
    assert history.number_of_events == 0
    assert history.last_block == 0


def test_corrupt_history_is_an_error(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(EventDecodingError):
        load_history(path)

    path.write_text(json.dumps({"events": [{"type": "Staked", "blockNumber": 1}]}), encoding="utf-8")
    with pytest.raises(EventDecodingError):
        load_history(path)


def test_write_documents_replaces_files(tmp_path):
    first = tmp_path / "out" / "a.json"
    second = tmp_path / "out" / "b.json"
    first.parent.mkdir()
    first.write_text("old", encoding="utf-8")

    written = write_documents({first: {"x": 1}, second: [1, 2]})

    assert written == [first, second]
    assert json.loads(first.read_text(encoding="utf-8")) == {"x": 1}
    assert json.loads(second.read_text(encoding="utf-8")) == [1, 2]
    assert sorted(p.name for p in first.parent.iterdir()) == ["a.json", "b.json"]


def test_failed_group_write_keeps_previous_documents(tmp_path):
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"
    first.write_text("old-a", encoding="utf-8")
    second.write_text("old-b", encoding="utf-8")

    with pytest.raises(TypeError):
        write_documents({first: {"ok": True}, second: {"bad": object()}})

    assert first.read_text(encoding="utf-8") == "old-a"
    assert second.read_text(encoding="utf-8") == "old-b"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.json", "b.json"]


def test_failed_rename_removes_remaining_temp_files(tmp_path, monkeypatch):
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"
    first.write_text("old-a", encoding="utf-8")
    second.write_text("old-b", encoding="utf-8")

    real_replace = os.replace
    calls = []

    def flaky_replace(src, dst):
        calls.append(dst)
        if len(calls) == 2:
            raise OSError("disk full")
        real_replace(src, dst)

    monkeypatch.setattr(storage.os, "replace", flaky_replace)

    with pytest.raises(OSError):
        write_documents({first: {"new": 1}, second: {"new": 2}})

    assert json.loads(first.read_text(encoding="utf-8")) == {"new": 1}
    assert second.read_text(encoding="utf-8") == "old-b"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.json", "b.json"]


def test_interrupted_staging_removes_temp_files(tmp_path, monkeypatch):
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"
    first.write_text("old-a", encoding="utf-8")

    real_dump = storage.dump_document
    dumped = []

    def interrupted_dump(document):
        dumped.append(document)
        if len(dumped) == 2:
            raise KeyboardInterrupt
        return real_dump(document)

    monkeypatch.setattr(storage, "dump_document", interrupted_dump)

    with pytest.raises(KeyboardInterrupt):
        write_documents({first: {"new": 1}, second: {"new": 2}})

    assert first.read_text(encoding="utf-8") == "old-a"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.json"]
