"""Node readiness polling."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ..errors import ClusterClientError, ReadinessTimeoutError
from ..shared.logging import get_logger
from .client import MIN_CALL_TIMEOUT, ClusterClient, NodeStatus

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 1200.0
DEFAULT_INTERVAL = 10.0


@dataclass
class ReadinessResult:
    """Result of a successful readiness wait."""

    nodes: list[NodeStatus] = field(default_factory=list)
    attempts: int = 0
    elapsed_seconds: float = 0.0


def describe_nodes(nodes: list[NodeStatus]) -> str:
    if not nodes:
        return "no nodes"
    return ", ".join(f"{n.name}={'Ready' if n.ready else 'NotReady'}" for n in nodes)


class NodeReadinessWaiter:
    """Poll the cluster until all nodes report Ready.

    Each poll is limited to the budget that remains, so a kubectl call that
    never answers cannot hold the wait past its deadline.
    """

    def __init__(
        self,
        client: ClusterClient,
        expected_nodes: int | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the waiter.

        Args:
            client: Cluster client routed through the proxy
            expected_nodes: Node count to wait for, when known
            timeout: Total budget in seconds
            interval: Seconds between polls
            clock: Monotonic time source
            sleep: Sleep function
        """
        self.client = client
        self.expected_nodes = expected_nodes
        self.timeout = timeout
        self.interval = interval
        self._clock = clock
        self._sleep = sleep

    def _ready(self, nodes: list[NodeStatus]) -> bool:
        if not nodes or not all(n.ready for n in nodes):
            return False
        return self.expected_nodes is None or len(nodes) >= self.expected_nodes

    def wait(
        self,
        on_attempt: Callable[[int, list[NodeStatus], str | None], None] | None = None,
    ) -> ReadinessResult:
        """Block until the cluster is ready.

        Args:
            on_attempt: Optional callback called with (attempt, nodes, error)

        Returns:
            ReadinessResult for the successful poll

        Raises:
            ReadinessTimeoutError: Once the budget has elapsed
        """
        start = self._clock()
        deadline = start + self.timeout
        attempt = 0
        nodes: list[NodeStatus] = []
        last_error: str | None = None

        while True:
            attempt += 1
            try:
                nodes = self.client.list_nodes(timeout=max(deadline - self._clock(), MIN_CALL_TIMEOUT))
                last_error = None
            except ClusterClientError as e:
                nodes = []
                last_error = str(e)

            if on_attempt:
                on_attempt(attempt, nodes, last_error)

            if last_error is None and self._ready(nodes):
                elapsed = self._clock() - start
                logger.info("nodes ready", nodes=len(nodes), attempts=attempt, elapsed=round(elapsed, 1))
                return ReadinessResult(nodes=nodes, attempts=attempt, elapsed_seconds=elapsed)

            now = self._clock()
            if now >= deadline:
                raise ReadinessTimeoutError(
                    message=f"Nodes not ready after {self.timeout:g}s",
                    data={
                        "timeout": self.timeout,
                        "attempts": attempt,
                        "expected_nodes": self.expected_nodes,
                        "last_state": last_error or describe_nodes(nodes),
                    },
                )

            logger.debug("waiting for nodes", attempt=attempt, state=last_error or describe_nodes(nodes))
            self._sleep(min(self.interval, deadline - now))
