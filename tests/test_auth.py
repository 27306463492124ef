import threading
import time

import pytest
import requests

from ucaccess.core.auth import TokenCache, _sanitize_host, http_timeout, with_scheme
from ucaccess.core.errors import AuthServiceError, CredentialError
from ucaccess.core.models import AuthMode, Configuration


def _config(**kwargs) -> Configuration:
    base = dict(
        auth_mode=AuthMode.WORKSPACE,
        client_id="sp-id",
        client_secret="sp-secret",
        host="adb-123.azuredatabricks.net",
    )
    base.update(kwargs)
    return Configuration(**base)


def test_get_token_posts_client_credentials_form(stub_session, token_ok):
    session = stub_session(post=[token_ok])
    cache = TokenCache(session, timeout=3)

    assert cache.get_token(_config()) == "tok-1"

    call = session.posts[0]
    assert call["url"] == "https://adb-123.azuredatabricks.net/oidc/v1/token"
    assert call["data"] == {
        "grant_type": "client_credentials",
        "client_id": "sp-id",
        "client_secret": "sp-secret",
        "scope": "all-apis",
    }
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    assert call["timeout"] == 3


def test_get_token_hits_network_once_per_key(stub_session, token_ok):
    session = stub_session(post=[token_ok])
    cache = TokenCache(session)

    for _ in range(3):
        cache.get_token(_config())
    cache.get_token(_config(host="other.cloud.databricks.com"))
    cache.get_token(_config(client_id="other-sp"))

    assert len(session.posts) == 3
    assert len(cache) == 3


def test_clear_forces_a_fresh_exchange(stub_session, stub_response):
    session = stub_session(
        post=[
            stub_response(200, {"access_token": "first"}),
            stub_response(200, {"access_token": "second"}),
        ]
    )
    cache = TokenCache(session)

    assert cache.get_token(_config()) == "first"
    cache.clear()
    assert cache.get_token(_config()) == "second"
    assert len(session.posts) == 2


@pytest.mark.parametrize("host", [None, "", "adb-1.cloud.databricks.com", "https://x"])
@pytest.mark.parametrize(
    "client_id,client_secret", [("", "s"), ("id", ""), (None, "s"), ("id", "   ")]
)
def test_blank_credentials_raise_without_network(
    stub_session, token_ok, host, client_id, client_secret
):
    session = stub_session(post=[token_ok])
    cache = TokenCache(session)

    with pytest.raises(CredentialError):
        cache.get_token(_config(host=host, client_id=client_id, client_secret=client_secret))
    assert session.posts == []


def test_missing_host_uses_accounts_endpoint(stub_session, token_ok):
    session = stub_session(post=[token_ok])
    TokenCache(session).get_token(_config(host=None))

    assert session.posts[0]["url"] == "https://accounts.cloud.databricks.com/oidc/v1/token"


def test_non_200_raises_and_is_not_cached(stub_session, stub_response, token_ok):
    session = stub_session(
        post=[stub_response(401, text='{"error":"invalid_client"}'), token_ok]
    )
    cache = TokenCache(session)

    with pytest.raises(AuthServiceError) as excinfo:
        cache.get_token(_config())
    assert excinfo.value.status_code == 401
    assert "invalid_client" in excinfo.value.body
    assert len(cache) == 0

    assert cache.get_token(_config()) == "tok-1"


def test_transport_failure_raises_auth_service_error(stub_session):
    session = stub_session(post=[requests.exceptions.ConnectTimeout("timed out")])

    with pytest.raises(AuthServiceError, match="unreachable") as excinfo:
        TokenCache(session).get_token(_config())
    assert excinfo.value.status_code is None


def test_200_without_access_token_raises(stub_session, stub_response):
    session = stub_session(post=[stub_response(200, {"token_type": "Bearer"})])

    with pytest.raises(AuthServiceError, match="access_token"):
        TokenCache(session).get_token(_config())


def test_token_expires_from_expires_in(stub_session, stub_response):
    now = [1000.0]
    session = stub_session(
        post=[
            stub_response(200, {"access_token": "a", "expires_in": 3600}),
            stub_response(200, {"access_token": "b", "expires_in": 3600}),
        ]
    )
    cache = TokenCache(session, clock=lambda: now[0])

    assert cache.get_token(_config()) == "a"
    now[0] += 3000
    assert cache.get_token(_config()) == "a"
    now[0] += 600
    assert cache.get_token(_config()) == "b"
    assert len(session.posts) == 2


def test_host_normalization():
    assert _sanitize_host("https://adb-1.net/?o=123") == "https://adb-1.net"
    assert with_scheme("adb-1.net/") == "https://adb-1.net"
    assert with_scheme("http://localhost:8080") == "http://localhost:8080"


@pytest.mark.parametrize("raw,expected", [("2.5", 2.5), ("nope", 10.0), ("-1", 10.0)])
def test_http_timeout_env_override(monkeypatch, raw, expected):
    monkeypatch.setenv("UCACCESS_HTTP_TIMEOUT", raw)
    assert http_timeout() == expected


def test_concurrent_misses_on_one_key_share_one_exchange(stub_response):
    class SlowSession:
        def __init__(self):
            self.posts = []
            self._lock = threading.Lock()

        def post(self, url, **kwargs):
            with self._lock:
                self.posts.append(url)
            time.sleep(0.05)
            return stub_response(200, {"access_token": "tok-1"})

    session = SlowSession()
    cache = TokenCache(session)
    start = threading.Barrier(5)
    tokens = []

    def fetch():
        start.wait()
        tokens.append(cache.get_token(_config()))

    threads = [threading.Thread(target=fetch) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert tokens == ["tok-1"] * 5
    assert len(session.posts) == 1


def test_failed_exchange_lets_the_next_caller_retry(stub_session, stub_response, token_ok):
    session = stub_session(post=[stub_response(503, text="busy"), token_ok])
    cache = TokenCache(session)

    with pytest.raises(AuthServiceError):
        cache.get_token(_config())
    assert cache.get_token(_config()) == "tok-1"
    assert len(session.posts) == 2
