"""
Tests for Server Bootstrap

Tests the listener, the readiness poll and the startup sequence.
"""

import socket
import threading

import httpx
import pytest

from conftest import FakeGitLab, RecordingExit
from gateway import server
from gateway.config import Settings
from gateway.context import RequestContext
from gateway.errors import StartupError
from gateway.server import check_server, create_listener, local_host, main, start_server


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def make_settings(**overrides) -> Settings:
    values = {
        "gitlab_url": "https://gitlab.example.com",
        "gitlab_token": "glpat-test-token",
        "host": "127.0.0.1",
    }
    values.update(overrides)
    return Settings(**values)


class TestCreateListener:
    """Tests for create_listener."""

    def test_random_port(self):
        """Port 0 binds a free port."""
        sock = create_listener("127.0.0.1", 0)
        try:
            assert sock.getsockname()[1] > 0
        finally:
            sock.close()

    def test_port_in_use(self):
        """A port that is already taken is a startup error."""
        taken = create_listener("127.0.0.1", 0)
        try:
            with pytest.raises(StartupError):
                create_listener("127.0.0.1", taken.getsockname()[1])
        finally:
            taken.close()

    def test_wildcard_bind_is_polled_on_loopback(self):
        """A listener bound to every interface is reached through loopback."""
        sock = create_listener("0.0.0.0", 0)
        try:
            assert sock.getsockname()[0] == "0.0.0.0"
            assert local_host(sock.getsockname()[0]) == "127.0.0.1"
        finally:
            sock.close()


class TestLocalHost:
    """Tests for local_host."""

    @pytest.mark.parametrize("address,expected", [
        ("0.0.0.0", "127.0.0.1"),
        ("", "127.0.0.1"),
        ("::", "[::1]"),
        ("127.0.0.1", "127.0.0.1"),
        ("::1", "[::1]"),
        ("fe80::1", "[fe80::1]"),
    ])
    def test_address_mapping(self, address, expected):
        """Wildcards map to loopback and IPv6 hosts are bracketed."""
        assert local_host(address) == expected


class TestCheckServer:
    """Tests for the readiness poll."""

    def test_ready_on_first_answer(self):
        """A successful /ping ends the poll immediately."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="pong\n")

        check_server(8123, attempts=5, interval=0.0, transport=httpx.MockTransport(handler))

        assert len(requests) == 1
        assert str(requests[0].url) == "http://localhost:8123/ping"

    def test_retries_until_ready(self):
        """Connection failures are retried until the server answers."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, text="pong\n")

        check_server(8123, attempts=5, interval=0.0, transport=httpx.MockTransport(handler))

        assert len(attempts) == 3

    def test_gives_up_after_attempts(self):
        """A server that never answers is a startup error after the last attempt."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StartupError):
            check_server(8123, attempts=4, interval=0.0, transport=httpx.MockTransport(handler))

        assert len(attempts) == 4

    def test_error_status_is_not_ready(self):
        """A non-success answer does not count as ready."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        with pytest.raises(StartupError):
            check_server(8123, attempts=2, interval=0.0, transport=httpx.MockTransport(handler))

    def test_ipv6_url(self):
        """A bracketed IPv6 host yields a valid URL."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="pong\n")

        check_server(
            8123, attempts=1, interval=0.0,
            host=local_host("::"), transport=httpx.MockTransport(handler)
        )

        assert requests[0].url.host == "::1"
        assert requests[0].url.port == 8123

    def test_closed_port(self):
        """Polling a port nothing listens on fails."""
        with pytest.raises(StartupError):
            check_server(free_port(), attempts=3, interval=0.01, host="127.0.0.1")


class TestStartServer:
    """Tests for start_server."""

    def test_serves_until_shutdown_request(
        self,
        context: RequestContext,
        fake_gitlab: FakeGitLab,
        recording_exit: RecordingExit,
        restore_signal_handlers,
        capsys
    ):
        """The port is announced once ready and /shutdown ends with status 0."""
        port = free_port()
        settings = make_settings(port=port, readiness_attempts=100)
        responses = []

        def shut_down_when_ready() -> None:
            check_server(port, attempts=200, interval=0.05, host="127.0.0.1")
            responses.append(httpx.post(f"http://127.0.0.1:{port}/shutdown", json={}))

        helper = threading.Thread(target=shut_down_when_ready, daemon=True)
        helper.start()

        start_server(settings, context, fake_gitlab, exit_func=recording_exit)
        helper.join(timeout=5)

        assert recording_exit.statuses == [0]
        assert responses[0].json() == {"message": "Shutting down server...", "status": 200}
        assert f"Server started on port: {port}" in capsys.readouterr().out

    def test_wildcard_host_becomes_ready(
        self,
        context: RequestContext,
        fake_gitlab: FakeGitLab,
        recording_exit: RecordingExit,
        restore_signal_handlers,
        capsys
    ):
        """Binding every interface still passes the readiness poll."""
        port = free_port()
        settings = make_settings(host="0.0.0.0", port=port, readiness_attempts=100)

        def shut_down_when_ready() -> None:
            check_server(port, attempts=200, interval=0.05, host="127.0.0.1")
            httpx.post(f"http://127.0.0.1:{port}/shutdown", json={})

        helper = threading.Thread(target=shut_down_when_ready, daemon=True)
        helper.start()

        start_server(settings, context, fake_gitlab, exit_func=recording_exit)
        helper.join(timeout=5)

        assert recording_exit.statuses == [0]
        assert f"Server started on port: {port}" in capsys.readouterr().out

    def test_readiness_failure_does_not_announce(
        self,
        context: RequestContext,
        fake_gitlab: FakeGitLab,
        recording_exit: RecordingExit,
        restore_signal_handlers,
        monkeypatch,
        capsys
    ):
        """When readiness fails the port is never printed and nothing exits cleanly."""
        def never_ready(*args, **kwargs):
            raise StartupError("Server did not respond")

        monkeypatch.setattr(server, "check_server", never_ready)

        with pytest.raises(StartupError):
            start_server(make_settings(), context, fake_gitlab, exit_func=recording_exit)

        assert "Server started on port" not in capsys.readouterr().out
        assert recording_exit.statuses == []


class TestMain:
    """Tests for the process entry point."""

    def test_bad_options_exit_one(self, capsys):
        """Malformed plugin options end the process with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["{not json"])

        assert exc_info.value.code == 1
        assert "Failure initializing plugin" in capsys.readouterr().err

    def test_startup_error_exits_one(self, monkeypatch, context: RequestContext, fake_gitlab):
        """A fatal startup error ends the process with status 1."""
        def failing_start(*args, **kwargs):
            raise StartupError("Server did not respond on port 1234")

        monkeypatch.setattr(server, "setup_logging", lambda settings: None)
        monkeypatch.setattr(server, "bootstrap", lambda settings: (context, fake_gitlab))
        monkeypatch.setattr(server, "start_server", failing_start)

        with pytest.raises(SystemExit) as exc_info:
            main(['{"gitlab_url": "https://gitlab.example.com", "gitlab_token": "glpat-x"}'])

        assert exc_info.value.code == 1

    def test_options_reach_bootstrap(self, monkeypatch, context: RequestContext, fake_gitlab):
        """The JSON options are merged into the settings used for startup."""
        seen = {}

        def fake_bootstrap(settings: Settings):
            seen["settings"] = settings
            return context, fake_gitlab

        monkeypatch.setattr(server, "setup_logging", lambda settings: None)
        monkeypatch.setattr(server, "bootstrap", fake_bootstrap)
        monkeypatch.setattr(server, "start_server", lambda *args, **kwargs: None)

        main(['{"gitlab_url": "https://gitlab.example.com/", "gitlab_token": "glpat-x", "port": 8411}'])

        assert seen["settings"].gitlab_url == "https://gitlab.example.com"
        assert seen["settings"].port == 8411
