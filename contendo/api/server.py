"""Process lifecycle: socket binding, serving, signals and graceful shutdown.

``LifecycleManager`` owns one server instance and moves it through::

    stopped -> starting -> running -> shutting_down -> stopped
                   \\-> failed

The manager binds the listening socket itself, so bind errors surface as
``ServerStartupError`` before anything is served, and hands the socket to
uvicorn. Uvicorn's own signal capture is disabled: SIGTERM and SIGINT are
handled here, together with errors reported by the event loop, by threads
and by the serving task.

Whatever triggers it, a shutdown runs once. The first trigger creates the
shutdown task and every later trigger gets that same task back. Stopping
closes the listening socket first, then lets in-flight requests finish for
up to the drain timeout before the remaining connections are closed.
"""

import asyncio
import contextlib
import signal
import socket
import threading
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, NoReturn

import uvicorn
from fastapi import FastAPI
from loguru import logger

from contendo.api.main import create_app
from contendo.core.config import FatalErrorPolicy, Settings
from contendo.core.constants import EXIT_CODE_FAILURE, EXIT_CODE_SUCCESS
from contendo.core.exceptions import LifecycleError, ServerStartupError
from contendo.core.logging import uvicorn_log_config
from contendo.core.timeutils import format_uptime
from contendo.domains.container import ServiceContainer, build_container

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)
STARTUP_POLL_INTERVAL_SECONDS = 0.01
# Extra time on top of the drain timeout for lifespan shutdown and socket close
STOP_GRACE_SECONDS = 5.0


class ServerState(StrEnum):
    """States of the server instance."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    FAILED = "failed"


@dataclass(frozen=True)
class ShutdownCause:
    """What triggered a shutdown.

    Attributes:
        name: Signal name or failure kind, e.g. ``SIGTERM``.
        is_failure: Whether the process should exit with a failure code.
        error: The exception behind a failure, if any.
    """

    name: str
    is_failure: bool = False
    error: BaseException | None = None

    @classmethod
    def from_signal(cls, sig: signal.Signals) -> "ShutdownCause":
        return cls(name=sig.name)

    @classmethod
    def from_error(cls, name: str, error: BaseException | None) -> "ShutdownCause":
        return cls(name=name, is_failure=True, error=error)

    @property
    def exit_code(self) -> int:
        """Process exit code implied by the cause."""
        return EXIT_CODE_FAILURE if self.is_failure else EXIT_CODE_SUCCESS

    def __str__(self) -> str:
        return self.name


class _ManagedServer(uvicorn.Server):
    """Uvicorn server that leaves signal handling to the lifecycle manager."""

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None]:
        yield

    def install_signal_handlers(self) -> None:
        return


class LifecycleManager:
    """Start, stop and supervise the HTTP server of one process.

    The application, and with it the middleware pipeline, is built once
    when the manager is created.

    Args:
        settings: Application settings.
        container: Optional dependency container, built from settings if omitted.
    """

    def __init__(
        self, settings: Settings, container: ServiceContainer | None = None
    ) -> None:
        self.settings = settings
        self.container = container or build_container(settings)
        self.state = ServerState.STOPPED
        self.port: int | None = None
        self.started_at: datetime | None = None
        self.exit_code: int | None = None

        self._started_monotonic: float | None = None
        self._socket: socket.socket | None = None
        self._server: _ManagedServer | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._shutdown_task: asyncio.Task[int] | None = None
        self._terminated = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handlers_installed = False
        self._handlers_active = False
        self._teardown: list[Callable[[], None]] = []
        self._previous_excepthook = threading.excepthook

        self.app: FastAPI = create_app(settings, self.container, uptime=self.uptime)

    @property
    def drain_timeout(self) -> float:
        """Seconds in-flight requests get to finish during a stop."""
        return self.settings.shutdown_config.drain_timeout_seconds

    @property
    def accepting_connections(self) -> bool:
        """Whether the listening socket currently accepts connections."""
        if self._server is None:
            return False
        servers = getattr(self._server, "servers", [])
        return any(server.is_serving() for server in servers)

    @property
    def shutdown_requested(self) -> bool:
        """Whether a shutdown has been triggered."""
        return self._shutdown_task is not None

    def uptime(self) -> str:
        """Formatted time since the server started, ``0h 0m 0s`` before that."""
        if self._started_monotonic is None:
            return format_uptime(0)
        return format_uptime(time.monotonic() - self._started_monotonic)

    def _bind_socket(self) -> socket.socket:
        host, port = self.settings.api_host, self.settings.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    async def start(self) -> None:
        """Bind the socket and serve until stopped.

        Returns once the server accepts connections.

        Raises:
            LifecycleError: If the server is not stopped.
            ServerStartupError: If binding or application startup fails.
        """
        if self.state is not ServerState.STOPPED:
            raise LifecycleError(
                f"Cannot start server in state {self.state}",
                context={"state": str(self.state)},
            )

        self.state = ServerState.STARTING
        host, port = self.settings.api_host, self.settings.port

        try:
            sock = self._bind_socket()
        except OSError as e:
            self.state = ServerState.FAILED
            logger.error("Failed to bind {}:{}", host, port, error_message=str(e))
            raise ServerStartupError(
                f"Cannot bind {host}:{port}",
                context={"host": host, "port": port},
                cause=e,
            ) from e

        self._socket = sock
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_config=uvicorn_log_config(),
            lifespan="on",
            access_log=False,
            timeout_graceful_shutdown=self.drain_timeout,
        )
        server = _ManagedServer(config)
        self._server = server
        serve_task = asyncio.create_task(
            server.serve(sockets=[sock]), name="http-server"
        )
        self._serve_task = serve_task

        while not server.started:
            if serve_task.done():
                self._fail_startup(serve_task)
            await asyncio.sleep(STARTUP_POLL_INTERVAL_SECONDS)

        serve_task.add_done_callback(self._on_serve_task_done)
        self.started_at = datetime.now(UTC)
        self._started_monotonic = time.monotonic()
        self.state = ServerState.RUNNING

        logger.info(
            "Contendo Business Management Platform server started",
            port=self.port,
            environment=self.settings.environment,
        )

    def _fail_startup(self, serve_task: asyncio.Task[None]) -> NoReturn:
        self.state = ServerState.FAILED
        self._server = None
        self._serve_task = None
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()
        error = None if serve_task.cancelled() else serve_task.exception()
        raise ServerStartupError(
            "Server exited during startup",
            context={"port": self.port},
            cause=error if isinstance(error, Exception) else None,
        ) from error

    async def stop(self) -> None:
        """Stop accepting connections and drain in-flight requests.

        In-flight requests get up to the drain timeout to finish; the
        connections still open after that are closed. Calling ``stop``
        before ``start`` does nothing.

        Raises:
            LifecycleError: If the server task failed while stopping.
        """
        server, serve_task = self._server, self._serve_task
        if server is None or serve_task is None:
            logger.debug("Stop requested but server was never started")
            return

        if self.state is ServerState.RUNNING:
            self.state = ServerState.SHUTTING_DOWN

        server.should_exit = True
        done, _ = await asyncio.wait(
            {serve_task}, timeout=self.drain_timeout + STOP_GRACE_SECONDS
        )
        if not done:
            logger.warning(
                "Server did not stop within {} seconds, cancelling",
                self.drain_timeout + STOP_GRACE_SECONDS,
            )
            serve_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await serve_task

        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()
        self._server = None
        self._serve_task = None
        self.state = ServerState.STOPPED

        error = None if serve_task.cancelled() else serve_task.exception()
        if error is not None:
            raise LifecycleError(
                "Server task failed while stopping",
                cause=error if isinstance(error, Exception) else None,
            ) from error

        logger.info("Server stopped")

    def request_shutdown(self, cause: ShutdownCause) -> asyncio.Task[int]:
        """Trigger the graceful shutdown, or return the one already running.

        Safe to call from signal handlers and loop callbacks.

        Args:
            cause: What triggered the shutdown.

        Returns:
            asyncio.Task[int]: The shutdown task, resolving to the exit code.
        """
        if self._shutdown_task is not None:
            logger.debug("Shutdown already in progress, ignoring {}", cause)
            return self._shutdown_task

        self._shutdown_task = asyncio.get_running_loop().create_task(
            self._shutdown(cause), name="graceful-shutdown"
        )
        return self._shutdown_task

    async def graceful_shutdown(self, cause: ShutdownCause) -> int:
        """Shut down once and return the exit code.

        Concurrent and repeated calls all wait for the same shutdown.

        Args:
            cause: What triggered the shutdown.

        Returns:
            int: 0 for signal-triggered shutdowns, 1 for failures.
        """
        return await asyncio.shield(self.request_shutdown(cause))

    async def _shutdown(self, cause: ShutdownCause) -> int:
        logger.info("Graceful shutdown initiated: {}", cause)
        exit_code = cause.exit_code

        try:
            await self.stop()
        except Exception as e:
            logger.opt(exception=e).error("Error during graceful shutdown")
            exit_code = EXIT_CODE_FAILURE
        else:
            logger.info("Graceful shutdown completed")

        self.exit_code = exit_code
        self._teardown_process_handlers()
        self._terminated.set()
        return exit_code

    def install_process_handlers(self) -> None:
        """Take over signals and fatal error reporting for this process.

        Installs SIGTERM/SIGINT handlers on the running loop, the loop
        exception handler and ``threading.excepthook``. Everything is
        restored when the shutdown completes.

        Raises:
            LifecycleError: If the handlers were installed before.
        """
        if self._handlers_installed:
            raise LifecycleError("Process handlers are already installed")

        loop = asyncio.get_running_loop()
        self._loop = loop

        for sig in HANDLED_SIGNALS:
            loop.add_signal_handler(sig, self._on_signal, sig)
            self._teardown.append(lambda sig=sig: loop.remove_signal_handler(sig))

        previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_loop_exception)
        self._teardown.append(lambda: loop.set_exception_handler(previous_loop_handler))

        self._previous_excepthook = threading.excepthook
        threading.excepthook = self._on_thread_exception

        def restore_excepthook() -> None:
            threading.excepthook = self._previous_excepthook

        self._teardown.append(restore_excepthook)

        self._handlers_installed = True
        self._handlers_active = True
        logger.debug("Process handlers installed")

    def _teardown_process_handlers(self) -> None:
        self._handlers_active = False
        while self._teardown:
            self._teardown.pop()()

    def _on_signal(self, sig: signal.Signals) -> None:
        if not self._handlers_active:
            return
        logger.info("{} received", sig.name)
        self.request_shutdown(ShutdownCause.from_signal(sig))

    def _handle_fatal(
        self, name: str, error: BaseException, policy: FatalErrorPolicy
    ) -> None:
        logger.opt(exception=error).error(
            "{} - {}",
            name,
            "shutting down" if policy == "shutdown" else "continuing",
            policy=policy,
        )
        if policy == "shutdown":
            self.request_shutdown(ShutdownCause.from_error(name, error))

    def _on_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        error = context.get("exception")
        if error is None or not self._handlers_active:
            loop.default_exception_handler(context)
            return
        self._handle_fatal(
            "unhandledAsyncError",
            error,
            self.settings.shutdown_config.unhandled_async_error_policy,
        )

    def _on_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        loop = self._loop
        if (
            not self._handlers_active
            or loop is None
            or loop.is_closed()
            or args.exc_value is None
            or issubclass(args.exc_type, SystemExit)
        ):
            self._previous_excepthook(args)
            return
        loop.call_soon_threadsafe(
            self._handle_fatal,
            "uncaughtException",
            args.exc_value,
            self.settings.shutdown_config.uncaught_exception_policy,
        )

    def _on_serve_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or self.state is not ServerState.RUNNING:
            return
        error = task.exception()
        if not self._handlers_active:
            if error is not None:
                logger.opt(exception=error).error("Server task failed")
            return
        # Nothing serves requests any more, so this always shuts down
        if error is not None:
            logger.opt(exception=error).error("uncaughtException - shutting down")
        else:
            logger.error("Server exited unexpectedly - shutting down")
        self.request_shutdown(ShutdownCause.from_error("uncaughtException", error))

    async def run(self) -> int:
        """Serve until a shutdown completes.

        Returns:
            int: Process exit code, 1 when the server could not start.
        """
        self.install_process_handlers()
        try:
            await self.start()
        except ServerStartupError as e:
            if self._shutdown_task is not None:
                return await self._shutdown_task
            logger.opt(exception=e.cause).error("Failed to start server: {}", e.message)
            self._teardown_process_handlers()
            self.exit_code = EXIT_CODE_FAILURE
            return EXIT_CODE_FAILURE

        await self._terminated.wait()
        return self.exit_code if self.exit_code is not None else EXIT_CODE_SUCCESS
