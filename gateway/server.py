"""
Server Bootstrap

Starts the gateway the way the editor expects it:

1. Load settings (environment plus the JSON options passed as argv[1])
2. Read the local git metadata and look up the GitLab project
3. Build the request context and the app
4. Bind a listener, serve it with uvicorn in a background thread
5. Poll /ping until the listener answers, then print the port
6. Block the main thread on the shutdown coordinator

Any failure before step 5 completes exits the process with status 1.
"""

import asyncio
import socket
import sys
import threading
from typing import Callable, List, Optional, Tuple

import httpx
import uvicorn
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from gateway.config import ConfigurationError, Settings, get_settings, load_settings
from gateway.context import RequestContext, load_emoji_map
from gateway.errors import StartupError
from gateway.logging_config import get_logger, setup_logging
from gateway.main import create_app
from gateway.router import PING_PATH
from gateway.services.capabilities import GitLabCapabilities
from gateway.services.git import GitError, extract_git_info
from gateway.services.gitlab_client import GitLabClient, GitLabError, resolve_project_id
from gateway.shutdown import ShutdownCoordinator

logger = get_logger(__name__)

# Addresses that bind every interface, and where to reach them locally
WILDCARD_HOSTS = {"": "127.0.0.1", "0.0.0.0": "127.0.0.1", "::": "::1"}


def local_host(address: str) -> str:
    """URL host that reaches a listener bound to address from this machine."""
    host = WILDCARD_HOSTS.get(address, address)
    return f"[{host}]" if ":" in host else host


def create_listener(host: str, port: int) -> socket.socket:
    """
    Bind the TCP listener the server will accept connections on.

    Args:
        host: Interface to bind
        port: Port to bind, 0 for a free one

    Returns:
        A bound, listening socket

    Raises:
        StartupError: If the address cannot be bound
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        return socket.create_server((host, port), family=family)
    except OSError as e:
        raise StartupError(f"Could not bind {host}:{port}: {e}") from e


class ServerListener:
    """
    Runs a uvicorn server on a pre-bound socket in a background thread.

    uvicorn only installs its own signal handlers on the main thread, so
    in this thread SIGINT/SIGTERM stay with the shutdown coordinator.
    """

    def __init__(
        self,
        server: uvicorn.Server,
        sock: socket.socket,
        on_exit: Callable[[str], object]
    ):
        self._server = server
        self._sock = sock
        self._on_exit = on_exit
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name="gateway-server", daemon=True)

    @property
    def host(self) -> str:
        return local_host(self._sock.getsockname()[0])

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        try:
            self._server.run(sockets=[self._sock])
        except (Exception, SystemExit) as e:
            self._error = e
        else:
            if not self._server.started:
                self._error = StartupError("Server stopped before it started serving")
        finally:
            # A server that stops on its own still has to take the process down
            self._on_exit("listener exited")

    def close(self) -> None:
        """Stop accepting connections; uvicorn drains in-flight requests."""
        self._server.should_exit = True

    def wait_closed(self) -> Optional[BaseException]:
        self._thread.join()
        return self._error


def check_server(
    port: int,
    attempts: int = 20,
    interval: float = 0.05,
    *,
    host: str = "localhost",
    transport: Optional[httpx.BaseTransport] = None
) -> None:
    """
    Wait until the server answers its liveness check.

    Args:
        port: Port the server listens on
        attempts: Number of polls before giving up
        interval: Seconds between polls
        host: URL host that reaches the listener (IPv6 in brackets)
        transport: Custom httpx transport (used by tests)

    Raises:
        StartupError: If /ping never answered successfully
    """
    url = f"http://{host}:{port}{PING_PATH}"

    with httpx.Client(timeout=1.0, transport=transport) as client:
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(attempts),
                wait=wait_fixed(interval),
                retry=retry_if_exception_type(httpx.HTTPError),
                reraise=True
            ):
                with attempt:
                    client.get(url).raise_for_status()
        except httpx.HTTPError as e:
            raise StartupError(
                f"Server did not respond on port {port} after {attempts} attempts: {e}"
            ) from e

    logger.debug("Server is ready", port=port)


def bootstrap(settings: Settings) -> Tuple[RequestContext, GitLabClient]:
    """
    Gather everything the router needs before it is built.

    Raises:
        GitError: If the working copy has no usable remote or branch
        GitLabError: If the project cannot be looked up
        ConfigurationError: If the context options are invalid
    """
    git_info = extract_git_info(settings.remote)
    gitlab = GitLabClient.from_settings(settings)
    project_id = asyncio.run(resolve_project_id(gitlab, git_info))

    context = RequestContext.build(
        project_id=project_id,
        git_info=git_info,
        emoji_map=load_emoji_map(settings.emoji_path),
        merge_id=settings.merge_request_id,
        target_branch=settings.chosen_target_branch
    )
    return context, gitlab


def start_server(
    settings: Settings,
    context: RequestContext,
    gitlab: GitLabCapabilities,
    exit_func: Callable[[int], None] = sys.exit
) -> None:
    """
    Serve the gateway until it is shut down.

    Blocks the calling (main) thread; the process exits through
    exit_func once the listener has closed.

    Raises:
        StartupError: If the listener cannot be bound or never becomes ready
    """
    coordinator = ShutdownCoordinator(exit_func=exit_func)
    app = create_app(context, gitlab, coordinator)

    sock = create_listener(settings.host, settings.port)
    config = uvicorn.Config(app, log_config=None, access_log=False, lifespan="on")
    listener = ServerListener(uvicorn.Server(config), sock, on_exit=coordinator.trigger)

    coordinator.install_signal_handlers()
    listener.start()

    try:
        check_server(
            listener.port,
            settings.readiness_attempts,
            settings.readiness_interval,
            host=listener.host
        )
    except StartupError:
        listener.close()
        listener.wait_closed()
        raise

    print(f"Server started on port: {listener.port}", flush=True)
    logger.info("Gateway started", host=settings.host, port=listener.port)

    coordinator.watch(listener)


def main(argv: Optional[List[str]] = None) -> None:
    """Process entry point; argv[0] may hold the editor's JSON options."""
    args = sys.argv[1:] if argv is None else argv

    try:
        settings = load_settings(args[0]) if args else get_settings()
    except ConfigurationError as e:
        # Logging is not configured yet
        print(f"Failure initializing plugin: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)

    try:
        context, gitlab = bootstrap(settings)
        start_server(settings, context, gitlab)
    except (ConfigurationError, GitError, GitLabError, StartupError) as e:
        logger.error(
            "Failure starting gateway",
            error=str(e),
            error_type=type(e).__name__
        )
        sys.exit(1)
