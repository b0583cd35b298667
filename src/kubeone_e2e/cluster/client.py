"""kubectl access to a cluster behind the kubeone proxy."""

from __future__ import annotations

import json
import math
import os
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from tenacity import Retrying, retry_if_exception, stop_after_attempt, stop_before_delay, wait_exponential

from ..errors import ClusterClientError, stderr_tail
from ..shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETRIES = 5
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_COMMAND_TIMEOUT = 300.0
DEFAULT_DELETE_TIMEOUT = 600.0
MIN_CALL_TIMEOUT = 1.0

# stderr fragments of errors caused by the tunnel rather than the request
TRANSIENT_MARKERS = (
    "connection refused",
    "connection reset",
    "eof",
    "proxyconnect",
    "tls handshake timeout",
    "i/o timeout",
)


def is_transient(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in TRANSIENT_MARKERS)


def _is_transient_error(error: BaseException) -> bool:
    return isinstance(error, ClusterClientError) and error.transient


def proxy_environ(proxy_url: str, base: dict[str, str] | None = None) -> dict[str, str]:
    """Environment routing HTTPS traffic through the kubeone proxy."""
    env = dict(os.environ if base is None else base)
    for key in ("NO_PROXY", "no_proxy"):
        env.pop(key, None)
    env["HTTPS_PROXY"] = proxy_url
    env["https_proxy"] = proxy_url
    return env


@dataclass
class NodeStatus:
    """Readiness of one node."""

    name: str
    ready: bool

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> NodeStatus:
        """Parse a Node object as returned by `kubectl get nodes -o json`."""
        name = obj.get("metadata", {}).get("name", "")
        conditions = obj.get("status", {}).get("conditions") or []
        ready = any(c.get("type") == "Ready" and c.get("status") == "True" for c in conditions)
        return cls(name=name, ready=ready)


class ClusterClient:
    """Run kubectl against the cluster through the proxy tunnel."""

    def __init__(
        self,
        kubeconfig: str | Path,
        proxy_url: str,
        kubectl: str = "kubectl",
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.kubeconfig = str(kubeconfig)
        self.proxy_url = proxy_url
        self.kubectl_binary = kubectl
        self.retries = retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.command_timeout = command_timeout
        self._sleep = sleep
        self.env = proxy_environ(proxy_url)

    def _kubectl_cmd(self, request_timeout: float) -> list[str]:
        """Build base kubectl command."""
        return [
            self.kubectl_binary,
            "--kubeconfig",
            self.kubeconfig,
            f"--request-timeout={max(int(math.ceil(request_timeout)), 1)}s",
        ]

    def _run_once(
        self,
        args: tuple[str, ...],
        input: str | None,
        timeout: float,
        request_timeout: float,
        attempt: int,
    ) -> str:
        cmd = self._kubectl_cmd(min(request_timeout, timeout)) + list(args)
        try:
            result = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                env=self.env,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise ClusterClientError(
                message=f"{self.kubectl_binary} not found. Is kubectl installed?"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ClusterClientError(
                message=f"kubectl {args[0] if args else ''} timed out after {timeout:g}s",
                data={"args": " ".join(args), "attempts": attempt, "timeout": timeout},
                transient=True,
            ) from e

        if result.returncode != 0:
            raise ClusterClientError(
                message=f"kubectl {args[0] if args else ''} failed",
                data={
                    "args": " ".join(args),
                    "returncode": result.returncode,
                    "attempts": attempt,
                    "stderr": stderr_tail(result.stderr),
                },
                transient=is_transient(result.stderr),
            )
        return result.stdout

    def kubectl(
        self,
        *args: str,
        input: str | None = None,
        timeout: float | None = None,
        request_timeout: float | None = None,
    ) -> str:
        """Run a kubectl command and return its stdout.

        Errors caused by the tunnel are retried with exponential backoff,
        at most `retries` times and never past `timeout`.

        Args:
            args: kubectl arguments
            input: Text passed on stdin
            timeout: Budget in seconds for the call, retries included
                (defaults to `command_timeout`)
            request_timeout: Per-request limit passed to kubectl
                (defaults to `request_timeout`)

        Raises:
            ClusterClientError: When kubectl fails for good or the budget runs out
        """
        budget = self.command_timeout if timeout is None else timeout
        per_request = self.request_timeout if request_timeout is None else request_timeout
        start = time.monotonic()

        def remaining() -> float:
            return max(budget - (time.monotonic() - start), MIN_CALL_TIMEOUT)

        retrying = Retrying(
            retry=retry_if_exception(_is_transient_error),
            stop=stop_after_attempt(self.retries + 1) | stop_before_delay(budget),
            wait=wait_exponential(multiplier=self.retry_delay),
            sleep=self._sleep,
            before_sleep=lambda state: logger.debug(
                "transient kubectl error, retrying",
                args=" ".join(args),
                attempt=state.attempt_number,
                delay=state.next_action.sleep,
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self._run_once(args, input, remaining(), per_request, attempt.retry_state.attempt_number)
        raise AssertionError("unreachable")

    def get_json(self, *args: str, timeout: float | None = None) -> dict[str, Any]:
        """Run `kubectl get ... -o json` and decode the output."""
        output = self.kubectl("get", *args, "-o", "json", timeout=timeout)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ClusterClientError(
                message=f"kubectl returned invalid JSON: {e}",
                data={"args": " ".join(args)},
            ) from e

    def apply_manifests(self, manifests: list[dict[str, Any]]) -> None:
        """Apply manifests passed on stdin."""
        documents = yaml.safe_dump_all(manifests, default_flow_style=False, sort_keys=False)
        self.kubectl("apply", "-f", "-", input=documents)

    def delete_namespace(self, namespace: str, wait: bool = True, timeout: float = DEFAULT_DELETE_TIMEOUT) -> None:
        self.kubectl(
            "delete",
            "namespace",
            namespace,
            "--ignore-not-found",
            f"--wait={'true' if wait else 'false'}",
            timeout=timeout,
            request_timeout=timeout,
        )

    def list_nodes(self, timeout: float | None = None) -> list[NodeStatus]:
        """Return the readiness of every node."""
        data = self.get_json("nodes", timeout=timeout)
        return [NodeStatus.from_object(item) for item in data.get("items", [])]
