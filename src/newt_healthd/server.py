"""Server lifecycle: bind, TLS, signal handling and graceful drain.

The listening socket is bound before anything else so that a bad or busy
address fails fast. TLS material is checked next. Shutdown is driven by an
explicit event, set from SIGINT/SIGTERM handlers or ``request_shutdown()``;
once set, uvicorn stops accepting connections and gives in-flight requests
``SHUTDOWN_GRACE_PERIOD`` seconds before cancelling them.
"""

import asyncio
import contextlib
import logging
import signal
import socket
import ssl
import stat
import sys
from pathlib import Path
from typing import Any, Iterator

import uvicorn
from pydantic import ValidationError
from uvicorn.protocols.http.h11_impl import H11Protocol

from newt_healthd.core.config import Settings, get_settings
from newt_healthd.core.durations import format_duration
from newt_healthd.core.exceptions import (
    CertInvalidError,
    KeyInvalidError,
    ListenError,
    StartupError,
)
from newt_healthd.main import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

READ_HEADER_TIMEOUT = 3.0
IDLE_TIMEOUT = 30
SHUTDOWN_GRACE_PERIOD = 5


class HeaderTimeoutH11Protocol(H11Protocol):
    """h11 protocol that drops clients which are slow to send a request head.

    The timer starts when the connection opens, on the first byte of each
    later keep-alive request, and when a response completes with part of
    the next request already buffered. It is cancelled as soon as h11 has
    parsed a complete request head.
    """

    read_header_timeout = READ_HEADER_TIMEOUT

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._header_timer: asyncio.TimerHandle | None = None

    def connection_made(self, transport: asyncio.Transport) -> None:
        super().connection_made(transport)
        self._start_header_timer()

    def connection_lost(self, exc: Exception | None) -> None:
        self._cancel_header_timer()
        super().connection_lost(exc)

    def data_received(self, data: bytes) -> None:
        if not self._request_in_progress():
            self._start_header_timer()
        super().data_received(data)
        if self._request_in_progress():
            self._cancel_header_timer()

    def on_response_complete(self) -> None:
        super().on_response_complete()
        # a partial head pipelined behind the finished response is already buffered
        if not self._request_in_progress() and self.conn.trailing_data[0]:
            self._start_header_timer()

    def _request_in_progress(self) -> bool:
        return self.cycle is not None and not self.cycle.response_complete

    def _start_header_timer(self) -> None:
        if self._header_timer is None:
            self._header_timer = self.loop.call_later(
                self.read_header_timeout, self._on_header_timeout
            )

    def _cancel_header_timer(self) -> None:
        if self._header_timer is not None:
            self._header_timer.cancel()
            self._header_timer = None

    def _on_header_timeout(self) -> None:
        self._header_timer = None
        if self._request_in_progress() or self.transport.is_closing():
            return
        logger.debug("Closing connection: request head not received in time")
        self.transport.close()


class _ProbeServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to HealthServer."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        pass


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    An empty host means every interface. IPv6 hosts must be bracketed.

    Raises:
        ListenError: If the address is malformed
    """
    host, sep, port_text = addr.strip().rpartition(":")
    if not sep:
        raise ListenError(f"invalid listen address {addr!r}: missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ListenError(f"invalid listen address {addr!r}: too many colons")

    try:
        port = int(port_text)
    except ValueError:
        raise ListenError(f"invalid listen address {addr!r}: bad port") from None
    if not 0 <= port <= 65535:
        raise ListenError(f"invalid listen address {addr!r}: port out of range")

    return host, port


def bind_socket(host: str, port: int) -> socket.socket:
    """Create a listening TCP socket.

    Raises:
        ListenError: If the address cannot be bound
    """
    try:
        if not host:
            if socket.has_dualstack_ipv6():
                return socket.create_server(
                    ("", port), family=socket.AF_INET6, dualstack_ipv6=True
                )
            return socket.create_server(("", port))
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        return socket.create_server((host, port), family=family)
    except OSError as e:
        raise ListenError(f"listen failed: {e}") from e


def _require_regular_file(path: Path, error: type[StartupError], label: str) -> None:
    try:
        st = path.stat()
    except OSError as e:
        raise error(f"{label} file invalid: {e}") from e
    if not stat.S_ISREG(st.st_mode):
        raise error(f"{label} file invalid: {path} is not a regular file")


class HealthServer:
    """Owns the listener and the uvicorn server for one process lifetime."""

    def __init__(self, settings: Settings, app: Any | None = None):
        """Initialize health server.

        Args:
            settings: Resolved settings
            app: ASGI application, built from settings when omitted
        """
        self.settings = settings
        self.app = app if app is not None else create_app(settings)
        self._shutdown = asyncio.Event()
        self._socket: socket.socket | None = None
        self._server: _ProbeServer | None = None

    @property
    def started(self) -> bool:
        return self._server is not None and self._server.started

    @property
    def port(self) -> int | None:
        """Port actually bound, useful when configured as 0."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def request_shutdown(self) -> None:
        """Begin a graceful shutdown. Repeated calls have no further effect."""
        if not self._shutdown.is_set():
            logger.info(
                "Shutdown requested, draining for up to %ss", SHUTDOWN_GRACE_PERIOD
            )
        self._shutdown.set()

    def _validate_tls(self) -> None:
        cert_file = self.settings.tls_cert_file
        key_file = self.settings.tls_key_file
        if cert_file is None or key_file is None:
            return

        _require_regular_file(cert_file, CertInvalidError, "cert")
        _require_regular_file(key_file, KeyInvalidError, "key")

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            context.load_verify_locations(cafile=cert_file)
        except ssl.SSLError as e:
            raise CertInvalidError(f"cert file invalid: {cert_file}: {e}") from e
        try:
            context.load_cert_chain(cert_file, key_file, password=lambda: b"")
        except ssl.SSLError as e:
            raise KeyInvalidError(f"key file invalid: {key_file}: {e}") from e

    def _build_config(self, host: str, port: int) -> uvicorn.Config:
        self._validate_tls()

        tls = self.settings.tls_enabled
        config = uvicorn.Config(
            self.app,
            host=host or "0.0.0.0",
            port=port,
            http=HeaderTimeoutH11Protocol,
            lifespan="auto",
            log_config=None,
            log_level=logging.getLevelName(self.settings.log_level),
            access_log=False,
            proxy_headers=False,
            timeout_keep_alive=IDLE_TIMEOUT,
            timeout_graceful_shutdown=SHUTDOWN_GRACE_PERIOD,
            ssl_certfile=str(self.settings.tls_cert_file) if tls else None,
            ssl_keyfile=str(self.settings.tls_key_file) if tls else None,
        )
        try:
            config.load()
        except (ssl.SSLError, OSError) as e:
            raise CertInvalidError(f"cannot load TLS material: {e}") from e

        if config.ssl is not None:
            config.ssl.minimum_version = ssl.TLSVersion.TLSv1_2
        return config

    async def _watch_shutdown(self) -> None:
        await self._shutdown.wait()
        if self._server is not None:
            self._server.should_exit = True

    async def serve(self) -> None:
        """Bind, validate TLS and serve until shutdown is requested.

        Raises:
            StartupError: If the listener or TLS material is unusable
        """
        addr = self.settings.effective_listen_addr
        host, port = parse_listen_addr(addr)
        self._socket = bind_socket(host, port)

        try:
            config = self._build_config(host, port)
        except StartupError:
            self._socket.close()
            raise

        self._server = _ProbeServer(config)
        logger.info(
            "health server listening on %s (health file: %s, maxAge: %s, tls: %s, systemd: %s)",
            addr,
            self.settings.newt_health_file,
            format_duration(self.settings.max_age),
            self.settings.tls_enabled,
            self.settings.systemd_unit if self.settings.check_systemd else "disabled",
        )

        watcher = asyncio.create_task(self._watch_shutdown())
        try:
            await self._server.serve(sockets=[self._socket])
        finally:
            watcher.cancel()
            self._socket.close()


async def _serve_until_signalled(server: HealthServer) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, server.request_shutdown)
    await server.serve()


def run() -> None:
    """Console entry point."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        settings = get_settings()
    except ValidationError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)
    logging.getLogger().setLevel(settings.log_level)

    server = HealthServer(settings)
    try:
        asyncio.run(_serve_until_signalled(server))
    except StartupError as e:
        logger.critical("%s", e)
        sys.exit(1)

    logger.info("health server stopped")
