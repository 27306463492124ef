import dataclasses
import json

import pytest

from ucaccess.core.errors import PersistenceError
from ucaccess.core.models import (
    AccessRequest,
    AuthMode,
    Configuration,
    RequestStatus,
    StorageKind,
)
from ucaccess.core.storage import ConfigStore, CorruptConfigPolicy, RequestStore, default_app_dir


def test_default_app_dir_honors_env(tmp_path, monkeypatch):
    monkeypatch.setenv("UCACCESS_HOME", str(tmp_path / "x"))
    assert default_app_dir() == tmp_path / "x"


def test_load_creates_directory_and_returns_defaults(tmp_path):
    store = ConfigStore(tmp_path / "app")
    config = store.load()

    assert (tmp_path / "app").is_dir()
    assert config == Configuration()
    assert config.auth_mode is AuthMode.MOCK
    assert store.load() is config


def test_save_writes_camel_case_json_and_replaces_singleton(tmp_path):
    store = ConfigStore(tmp_path)
    config = Configuration(auth_mode=AuthMode.WORKSPACE, host="h", client_id="c", client_secret="s")
    store.save(config)

    data = json.loads((tmp_path / "config.json").read_text())
    assert data["ucAuthType"] == "WORKSPACE"
    assert data["ucHost"] == "h"
    assert data["ucClientId"] == "c"
    assert store.load() is config
    assert ConfigStore(tmp_path).load() == config


def test_save_twice_is_byte_identical(tmp_path):
    store = ConfigStore(tmp_path)
    store.save(store.load())
    first = (tmp_path / "config.json").read_bytes()

    fresh = ConfigStore(tmp_path)
    fresh.save(fresh.load())
    assert (tmp_path / "config.json").read_bytes() == first


def test_corrupt_config_uses_defaults_by_default(tmp_path):
    (tmp_path / "config.json").write_text("{not json")
    assert ConfigStore(tmp_path).load() == Configuration()


def test_corrupt_config_raises_with_raise_policy(tmp_path):
    (tmp_path / "config.json").write_text("[1, 2]")
    store = ConfigStore(tmp_path, on_corrupt=CorruptConfigPolicy.RAISE)

    with pytest.raises(PersistenceError):
        store.load()


def test_legacy_git_storage_kind_is_read_as_version_controlled(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"type": "GIT", "ucAuthType": "bogus"}))
    config = ConfigStore(tmp_path).load()

    assert config.storage_kind is StorageKind.VERSION_CONTROLLED
    assert config.auth_mode is AuthMode.MOCK


def test_save_failure_raises_persistence_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    store = ConfigStore(blocker / "nested")

    with pytest.raises(PersistenceError):
        store.save(Configuration())


def _request(request_id: str, status=RequestStatus.PENDING) -> AccessRequest:
    return AccessRequest(
        id=request_id,
        user_id="user_alice",
        user_name="Alice Admin",
        object_id="tbl_budget",
        object_name="budget",
        object_type="TABLE",
        permissions=frozenset({"SELECT", "MODIFY"}),
        status=status,
        justification="quarterly report",
        timestamp=1700000000000,
    )


def test_fetch_all_is_empty_when_file_missing(tmp_path):
    assert RequestStore(tmp_path).fetch_all() == []


def test_fetch_all_is_empty_when_file_unreadable(tmp_path):
    (tmp_path / "requests.json").write_text("garbage")
    assert RequestStore(tmp_path).fetch_all() == []


def test_save_all_then_fetch_all_keeps_order_and_fields(tmp_path):
    store = RequestStore(tmp_path)
    requests = [_request("REQ-2"), _request("REQ-1", RequestStatus.APPROVED)]
    store.save_all(requests)

    assert store.fetch_all() == requests
    raw = json.loads((tmp_path / "requests.json").read_text())
    assert raw[0]["permissions"] == ["MODIFY", "SELECT"]
    assert raw[1]["status"] == "APPROVED"


def test_fetch_all_skips_malformed_entries(tmp_path):
    good = _request("REQ-1").to_dict()
    (tmp_path / "requests.json").write_text(json.dumps([{"status": "PENDING"}, good]))

    assert [r.id for r in RequestStore(tmp_path).fetch_all()] == ["REQ-1"]


def test_save_all_carries_undecodable_entries_over_unchanged(tmp_path):
    legacy = {"id": "REQ-0", "status": "approved", "objectId": "tbl_budget", "note": "kept"}
    (tmp_path / "requests.json").write_text(json.dumps([_request("REQ-1").to_dict(), legacy]))
    store = RequestStore(tmp_path)

    store.save_all([_request("REQ-2"), *store.fetch_all()])

    raw = json.loads((tmp_path / "requests.json").read_text())
    assert [row["id"] for row in raw] == ["REQ-2", "REQ-1", "REQ-0"]
    assert raw[-1] == legacy


def test_save_all_drops_undecodable_entry_replaced_by_same_id(tmp_path):
    (tmp_path / "requests.json").write_text(json.dumps([{"id": "REQ-1", "status": "??"}]))
    store = RequestStore(tmp_path)

    store.save_all([_request("REQ-1")])

    raw = json.loads((tmp_path / "requests.json").read_text())
    assert [row["status"] for row in raw] == ["PENDING"]


def test_loaded_configuration_cannot_be_changed_in_place(tmp_path):
    store = ConfigStore(tmp_path)
    config = store.load()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.host = "elsewhere.example"
    assert store.load().host is None
