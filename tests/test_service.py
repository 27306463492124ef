from dataclasses import replace
from types import SimpleNamespace

import pytest

from ucaccess.core.errors import AuthServiceError, ConfigurationError
from ucaccess.core.models import AuthMode, Configuration, Identity, RequestStatus, find_node
from ucaccess.core.service import AccessService

ALICE = Identity("user_alice", "Alice Admin")


def _remote_config() -> Configuration:
    return Configuration(
        auth_mode=AuthMode.WORKSPACE,
        host="adb-1.cloud.databricks.com",
        client_id="sp",
        client_secret="secret",
    )


def test_refresh_in_mock_mode_returns_fixed_tree(tmp_path, stub_session):
    session = stub_session()
    service = AccessService(tmp_path, session=session)

    result = service.refresh()

    assert result.error is None
    assert [c.name for c in result.catalogs] == ["main_catalog"]
    assert result.requests == []
    assert session.posts == [] and session.gets == []


def test_refresh_surfaces_token_401_and_empty_catalogs(tmp_path, stub_session, stub_response):
    session = stub_session(post=[stub_response(401, text='{"error":"invalid_client"}')])
    service = AccessService(tmp_path, session=session)
    service.save_config(_remote_config())

    result = service.refresh()

    assert isinstance(result.error, AuthServiceError)
    assert result.error.status_code == 401
    assert result.catalogs == []
    with pytest.raises(AuthServiceError):
        service.fetch_catalogs()


def test_refresh_reports_missing_host(tmp_path, stub_session):
    service = AccessService(tmp_path, session=stub_session())
    service.save_config(replace(_remote_config(), host=None))

    assert isinstance(service.refresh().error, ConfigurationError)


def test_save_config_clears_token_cache(tmp_path, stub_session, stub_response):
    session = stub_session(
        post=[stub_response(200, {"access_token": "tok"})],
        get=[stub_response(200, {"catalogs": [{"name": "main"}]})],
    )
    service = AccessService(tmp_path, session=session)
    service.save_config(_remote_config())

    service.fetch_catalogs()
    service.fetch_catalogs()
    assert len(session.posts) == 1

    service.save_config(service.load_config())
    service.fetch_catalogs()
    assert len(session.posts) == 2


def test_save_load_round_trip_is_idempotent(tmp_path):
    service = AccessService(tmp_path)
    service.save_config(service.load_config())
    first = service.config_store.path.read_bytes()
    service.save_config(service.load_config())

    assert service.config_store.path.read_bytes() == first


def test_request_lifecycle_through_service(tmp_path):
    service = AccessService(tmp_path)
    budget = find_node(service.fetch_catalogs(), "tbl_budget")

    (request,) = service.submit([budget], {"SELECT"}, "audit", ALICE)
    assert service.pending_count() == 1
    assert service.find_request(request.id) == request

    service.approve(request)
    assert service.pending_count() == 0
    assert service.list_requests()[0].status is RequestStatus.APPROVED


def test_import_profile_saves_credentials(tmp_path, monkeypatch):
    fake_cfg = SimpleNamespace(
        host="https://adb-9.cloud.databricks.com/?o=9",
        client_id="sp-from-profile",
        client_secret="secret-from-profile",
        account_id=None,
    )
    monkeypatch.setattr(
        "ucaccess.core.auth.Config", lambda profile=None: fake_cfg
    )
    service = AccessService(tmp_path)

    config = service.import_profile("dev")

    assert config.host == "https://adb-9.cloud.databricks.com"
    assert config.client_id == "sp-from-profile"
    assert AccessService(tmp_path).load_config() == config


def test_import_profile_wraps_resolution_errors(tmp_path, monkeypatch):
    def _broken(profile=None):
        raise ValueError("default auth: cannot configure default credentials")

    monkeypatch.setattr("ucaccess.core.auth.Config", _broken)

    with pytest.raises(ConfigurationError, match="could not be resolved"):
        AccessService(tmp_path).import_profile("dev")


def test_identities_in_mock_mode_do_not_touch_network(tmp_path, stub_session):
    session = stub_session()
    service = AccessService(tmp_path, session=session)

    assert [i.id for i in service.identities()] == ["user_alice", "user_bob", "group_finance"]
    assert session.posts == [] and session.gets == []


def test_identities_in_workspace_mode_come_from_scim(tmp_path, stub_session, stub_response):
    session = stub_session(
        post=[stub_response(200, {"access_token": "tok"})],
        get=[
            stub_response(200, {"Resources": [{"id": "u9", "userName": "dana@example.com"}]}),
            stub_response(200, {"Resources": []}),
        ],
    )
    service = AccessService(tmp_path, session=session)
    service.save_config(_remote_config())

    assert [(i.id, i.name) for i in service.identities()] == [("u9", "dana@example.com")]
    assert session.gets[0]["url"].endswith("/api/2.0/preview/scim/v2/Users")
