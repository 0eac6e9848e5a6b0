"""
Tests for the HTTP client: error mapping, session state and coalesced token refresh.
The transport is a mocked requests.Session, no server is involved.
"""
import json
import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from client.errors import ApiError, ErrorKind
from client.refresh import SingleFlight
from client.session import RatingsClient

BASE = "http://api.test/api"
PROFILE = {"id": 1, "name": "Regular Rating User Person", "email": "user@example.com", "address": None, "role": "user"}


def _response(status_code, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = b"" if body is None else json.dumps(body).encode()
    response.headers["Content-Type"] = "application/json"
    return response


def _error(status_code, code, message, errors=None):
    details = {"errors": errors} if errors else {}
    return _response(status_code, {"error": {"code": code, "message": message, "details": details, "path": "/x"}})


class FakeServer:
    """Answers like the API would for a token that can go stale."""

    def __init__(self, valid_token="fresh", refresh_delay=0.0, refresh_ok=True):
        self.valid_token = valid_token
        self.refresh_delay = refresh_delay
        self.refresh_ok = refresh_ok
        self.refresh_calls = 0
        self.lock = threading.Lock()

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        auth = (headers or {}).get("Authorization")
        if url.endswith("/users/refresh"):
            with self.lock:
                self.refresh_calls += 1
            time.sleep(self.refresh_delay)
            if not self.refresh_ok:
                return _error(401, "TokenExpired", "Token expired")
            return _response(200, {"token": self.valid_token, "token_type": "bearer"})
        if url.endswith("/users/login"):
            return _response(200, {"token": self.valid_token, "token_type": "bearer"})
        if auth != f"Bearer {self.valid_token}":
            return _error(401, "TokenExpired", "Token expired")
        if url.endswith("/users/profile"):
            return _response(200, PROFILE)
        return _response(200, [])


def _client(server, token=None):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = server.request
    return RatingsClient(BASE, token=token, session=session), session


class TestApiError:

    def test_parses_envelope_field_errors(self):
        error = ApiError.from_response(
            _error(400, "ValidationError", "Validation failed", [{"field": "name", "message": "Too short"}])
        )
        assert error.kind == ErrorKind.VALIDATION
        assert error.status == 400
        assert error.fields[0].field == "name"
        assert error.first_message() == "Too short"

    @pytest.mark.parametrize(
        "status_code,kind",
        [(401, ErrorKind.AUTHENTICATION), (403, ErrorKind.AUTHORIZATION), (404, ErrorKind.NOT_FOUND),
         (409, ErrorKind.CONFLICT), (504, ErrorKind.TIMEOUT), (502, ErrorKind.INTERNAL)],
    )
    def test_status_mapping(self, status_code, kind):
        assert ApiError.from_response(_error(status_code, "X", "msg")).kind == kind

    def test_non_json_body(self):
        response = requests.Response()
        response.status_code = 500
        response._content = b"<html>oops</html>"
        error = ApiError.from_response(response)
        assert error.kind == ErrorKind.INTERNAL
        assert error.message == "Something went wrong, please try again"

    def test_transport_failures(self):
        session = MagicMock(spec=requests.Session)
        client = RatingsClient(BASE, session=session)

        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(ApiError) as excinfo:
            client.list_stores()
        assert excinfo.value.kind == ErrorKind.TIMEOUT

        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ApiError) as excinfo:
            client.list_stores()
        assert excinfo.value.kind == ErrorKind.NETWORK


class TestSession:

    def test_login_stores_token_and_profile(self):
        client, session = _client(FakeServer())
        user = client.login("user@example.com", "Passw0rd!")

        assert user == PROFILE
        assert client.state.is_authenticated
        assert client.state.role == "user"
        _, kwargs = session.request.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer fresh"

    def test_logout_clears_state(self):
        client, _ = _client(FakeServer())
        client.login("user@example.com", "Passw0rd!")
        client.logout()
        assert not client.state.is_authenticated
        assert client.state.user is None

    def test_rate_store_refetches_store(self):
        client, session = _client(FakeServer(), token="fresh")
        client.rate_store(5, 4)
        calls = [(c.args[0], c.args[1]) for c in session.request.call_args_list]
        assert calls == [("POST", f"{BASE}/ratings"), ("GET", f"{BASE}/stores/5")]
        assert session.request.call_args_list[0].kwargs["json"] == {"storeId": 5, "score": 4}

    def test_login_failure_does_not_refresh(self):
        server = FakeServer()
        client, session = _client(server)
        session.request.side_effect = lambda *a, **k: _error(401, "AuthenticationError", "Invalid credentials")
        with pytest.raises(ApiError) as excinfo:
            client.login("user@example.com", "nope")
        assert excinfo.value.message == "Invalid credentials"
        assert session.request.call_count == 1


class TestRefresh:

    def test_stale_token_is_refreshed_and_retried_once(self):
        server = FakeServer()
        client, session = _client(server, token="stale")

        assert client.profile() == PROFILE
        assert server.refresh_calls == 1
        assert client.state.token == "fresh"
        assert session.request.call_count == 3

    def test_concurrent_401s_share_one_refresh(self):
        server = FakeServer(refresh_delay=0.2)
        client, _ = _client(server, token="stale")
        barrier = threading.Barrier(8)
        results, errors = [], []

        def worker():
            barrier.wait()
            try:
                results.append(client.profile())
            except ApiError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 8
        assert server.refresh_calls == 1
        assert client.state.token == "fresh"

    def test_failed_refresh_clears_session(self):
        server = FakeServer(refresh_ok=False)
        client, _ = _client(server, token="stale")
        client.state.user = dict(PROFILE)

        with pytest.raises(ApiError) as excinfo:
            client.list_stores()
        assert excinfo.value.kind == ErrorKind.AUTHENTICATION
        assert not client.state.is_authenticated
        assert client.state.user is None
        assert server.refresh_calls == 1

    def test_failed_refresh_fails_every_waiter(self):
        server = FakeServer(refresh_delay=0.2, refresh_ok=False)
        client, _ = _client(server, token="stale")
        barrier = threading.Barrier(4)
        kinds = []

        def worker():
            barrier.wait()
            try:
                client.list_stores()
            except ApiError as exc:
                kinds.append(exc.kind)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert kinds == [ErrorKind.AUTHENTICATION] * 4
        assert server.refresh_calls == 1


class TestSingleFlight:

    def test_sequential_calls_each_run(self):
        flight = SingleFlight()
        counter = iter(range(10))
        assert flight.do(lambda: next(counter)) == 0
        assert flight.do(lambda: next(counter)) == 1
        assert not flight.in_flight

    def test_error_is_shared_and_slot_cleared(self):
        flight = SingleFlight()

        def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            flight.do(fail)
        assert not flight.in_flight
        assert flight.do(lambda: "ok") == "ok"
