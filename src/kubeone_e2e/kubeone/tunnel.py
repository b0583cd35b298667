"""kubeone proxy lifecycle.

`kubeone proxy` opens an SSH tunnel to the control plane (usually through a
bastion host) and exposes it as an HTTPS proxy on a local port. The process
runs in the background while the cluster is validated; it is stopped by
setting the cancellation event and awaited with TunnelSession.wait().
"""

from __future__ import annotations

import asyncio
import socket
import subprocess
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO

import httpx

from ..errors import TunnelExitError, TunnelStartError
from ..shared.logging import get_logger
from .binary import KubeoneBin

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_SETTLE_DELAY = 5.0  # kubeone proxy gives no readiness signal
DEFAULT_STOP_TIMEOUT = 10.0
WATCH_INTERVAL = 0.2


def free_port(host: str = DEFAULT_HOST) -> int:
    """Ask the kernel for an unused TCP port on `host`."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class TunnelSession:
    """A running kubeone proxy process.

    A watcher thread terminates the process once `cancel` is set. wait()
    blocks until the process has exited and may be called once.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        address: str,
        cancel: threading.Event,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
        log_stream: IO[str] | None = None,
    ):
        """Initialize the session and start the cancellation watcher.

        Args:
            process: Started kubeone proxy process
            address: Proxy URL (http://host:port)
            cancel: Event that signals the process to stop
            stop_timeout: Grace period after SIGTERM before SIGKILL
            log_stream: Open file receiving the proxy output, closed on wait
        """
        self.process = process
        self.address = address
        self.stop_timeout = stop_timeout
        self._cancel = cancel
        self._log_stream = log_stream
        self._waited = False
        self._watcher = threading.Thread(
            target=self._watch,
            name=f"kubeone-proxy-{process.pid}",
            daemon=True,
        )
        self._watcher.start()

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def waited(self) -> bool:
        return self._waited

    def is_alive(self) -> bool:
        """Whether the proxy process is still running."""
        return self.process.poll() is None

    def _watch(self) -> None:
        while not self._cancel.wait(WATCH_INTERVAL):
            if self.process.poll() is not None:
                return
        if self.process.poll() is None:
            logger.debug("terminating kubeone proxy", pid=self.pid)
            self.process.terminate()

    def wait(self) -> TunnelExitError | None:
        """Block until the proxy has exited.

        Returns:
            TunnelExitError for a non-zero exit status, None otherwise

        Raises:
            RuntimeError: If called more than once
        """
        if self._waited:
            raise RuntimeError("kubeone proxy was already awaited")
        self._waited = True

        try:
            if self._cancel.is_set():
                try:
                    returncode = self.process.wait(timeout=self.stop_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("kubeone proxy ignored SIGTERM, killing", pid=self.pid)
                    self.process.kill()
                    returncode = self.process.wait()
            else:
                returncode = self.process.wait()
            self._watcher.join()
        finally:
            if self._log_stream is not None:
                self._log_stream.close()

        if returncode != 0:
            return TunnelExitError(
                message=f"kubeone proxy exited with status {returncode}",
                data={"returncode": returncode, "address": self.address},
            )
        return None


def open_tunnel(
    kubeone: KubeoneBin,
    cancel: threading.Event,
    host: str = DEFAULT_HOST,
    port: int | None = None,
    log_path: Path | None = None,
    stop_timeout: float = DEFAULT_STOP_TIMEOUT,
) -> TunnelSession:
    """Start `kubeone proxy` in the background.

    Returns as soon as the process is started; the address is known up
    front because the listen port is chosen here.

    Args:
        kubeone: Descriptor of the cluster to tunnel to
        cancel: Event that stops the proxy when set
        host: Local listen host
        port: Local listen port (a free one is picked when None)
        log_path: File receiving the proxy output
        stop_timeout: Grace period after SIGTERM before SIGKILL

    Returns:
        TunnelSession for the running process

    Raises:
        TunnelStartError: If the process cannot be started
    """
    listen = f"{host}:{port or free_port(host)}"
    address = f"http://{listen}"

    log_stream = open(log_path, "w") if log_path else None
    try:
        process = subprocess.Popen(
            kubeone.proxy_command(listen),
            stdin=subprocess.DEVNULL,
            stdout=log_stream or subprocess.DEVNULL,
            stderr=subprocess.STDOUT if log_stream else subprocess.DEVNULL,
        )
    except OSError as e:
        if log_stream is not None:
            log_stream.close()
        raise TunnelStartError(
            message=f"Starting kubeone proxy failed: {e}",
            data={"address": address},
        ) from e

    logger.info("started kubeone proxy", pid=process.pid, address=address)
    return TunnelSession(process, address, cancel, stop_timeout=stop_timeout, log_stream=log_stream)


@dataclass
class ProbeResult:
    """Result of probing the proxy address."""

    reachable: bool
    status_code: int | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


class ProxyProbe:
    """Poll the proxy address until it answers HTTP."""

    def __init__(
        self,
        max_attempts: int = 30,
        interval_seconds: float = 1.0,
        timeout_seconds: float = 2.0,
    ):
        """Initialize proxy probe.

        Args:
            max_attempts: Maximum number of probe attempts.
            interval_seconds: Seconds between attempts.
            timeout_seconds: Timeout for each HTTP request.
        """
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds

    async def wait_for_listening(
        self,
        address: str,
        is_alive: Callable[[], bool] | None = None,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
    ) -> ProbeResult:
        """Probe until the proxy answers or attempts run out.

        Any HTTP response counts: the proxy only serves CONNECT, so a plain
        GET is answered with an error status once the port is bound.

        Args:
            address: Proxy URL
            is_alive: Optional check that the proxy process still runs
            on_attempt: Optional callback called with (attempt, max_attempts, error)

        Returns:
            ProbeResult with status information.
        """
        start = datetime.now()
        last_error: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            if is_alive is not None and not is_alive():
                return ProbeResult(
                    reachable=False,
                    attempts=attempt,
                    elapsed_seconds=(datetime.now() - start).total_seconds(),
                    error="kubeone proxy exited before it became reachable",
                )

            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    trust_env=False,
                ) as client:
                    response = await client.get(address)
                    return ProbeResult(
                        reachable=True,
                        status_code=response.status_code,
                        attempts=attempt,
                        elapsed_seconds=(datetime.now() - start).total_seconds(),
                    )
            except httpx.ConnectError:
                last_error = "Connection refused"
            except httpx.TimeoutException:
                last_error = "Request timeout"
            except httpx.HTTPError as e:
                last_error = str(e)

            if on_attempt:
                on_attempt(attempt, self.max_attempts, last_error)

            if attempt < self.max_attempts:
                await asyncio.sleep(self.interval_seconds)

        return ProbeResult(
            reachable=False,
            attempts=self.max_attempts,
            elapsed_seconds=(datetime.now() - start).total_seconds(),
            error=f"kubeone proxy did not become reachable. Last error: {last_error}",
        )

    def wait_for_listening_sync(
        self,
        address: str,
        is_alive: Callable[[], bool] | None = None,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
    ) -> ProbeResult:
        """Synchronous wrapper for wait_for_listening."""
        return asyncio.run(self.wait_for_listening(address, is_alive, on_attempt))


@contextmanager
def proxy_tunnel(
    kubeone: KubeoneBin,
    settle_delay: float = DEFAULT_SETTLE_DELAY,
    probe: ProxyProbe | None = None,
    log_path: Path | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[TunnelSession]:
    """Run kubeone proxy for the duration of a `with` block.

    Waits `settle_delay` after start, then (with a probe) until the address
    answers. On every exit path the cancellation event is set and the
    process is awaited exactly once; its exit error is logged, not raised.

    Raises:
        TunnelStartError: If the proxy cannot start or never answers
    """
    cancel = threading.Event()
    session = open_tunnel(kubeone, cancel, log_path=log_path)
    try:
        sleep(settle_delay)
        if probe is not None:
            result = probe.wait_for_listening_sync(session.address, is_alive=session.is_alive)
            if not result.reachable:
                raise TunnelStartError(
                    message=result.error or "kubeone proxy did not become reachable",
                    data={"address": session.address, "attempts": result.attempts},
                )
        elif not session.is_alive():
            raise TunnelStartError(
                message="kubeone proxy exited during startup",
                data={"address": session.address, "returncode": session.process.returncode},
            )

        logger.info("kubeone proxy is running", address=session.address)
        yield session
    finally:
        cancel.set()
        exit_error = session.wait()
        if exit_error is not None:
            logger.warning("wait kubeone proxy", error=str(exit_error))
