"""Unit tests for NodeReadinessWaiter."""

import time
from unittest.mock import MagicMock

import pytest

from kubeone_e2e.cluster import ClusterClient, NodeReadinessWaiter, NodeStatus
from kubeone_e2e.errors import ClusterClientError, ReadinessTimeoutError


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def _waiter(client, clock, **kwargs):
    return NodeReadinessWaiter(client, clock=clock, sleep=clock.sleep, **kwargs)


class TestNodeReadinessWaiter:
    """Tests for readiness polling."""

    def test_ready_immediately(self, clock):
        client = MagicMock()
        client.list_nodes.return_value = [NodeStatus("cp-0", True)]

        result = _waiter(client, clock, timeout=60, interval=10).wait()

        assert result.attempts == 1
        assert clock.sleeps == []

    def test_becomes_ready(self, clock):
        client = MagicMock()
        client.list_nodes.side_effect = [
            ClusterClientError(message="connection refused", transient=True),
            [NodeStatus("cp-0", True), NodeStatus("worker-0", False)],
            [NodeStatus("cp-0", True), NodeStatus("worker-0", True)],
        ]
        attempts = []

        result = _waiter(client, clock, timeout=60, interval=10).wait(
            on_attempt=lambda attempt, nodes, error: attempts.append((attempt, len(nodes), error is not None))
        )

        assert result.attempts == 3
        assert result.elapsed_seconds == 20
        assert attempts == [(1, 0, True), (2, 2, False), (3, 2, False)]

    def test_waits_for_expected_node_count(self, clock):
        client = MagicMock()
        client.list_nodes.side_effect = [
            [NodeStatus("cp-0", True)],
            [NodeStatus("cp-0", True), NodeStatus("worker-0", True)],
        ]

        result = _waiter(client, clock, expected_nodes=2, timeout=60, interval=5).wait()

        assert result.attempts == 2

    def test_never_ready_times_out_after_budget(self, clock):
        client = MagicMock()
        client.list_nodes.return_value = [NodeStatus("cp-0", False)]

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(client, clock, timeout=60, interval=25).wait()

        # Not before the budget, and the last sleep is capped at what is left
        assert clock.now == 60
        assert clock.sleeps == [25, 25, 10]
        assert exc_info.value.data["attempts"] == 4
        assert exc_info.value.data["last_state"] == "cp-0=NotReady"

    def test_empty_cluster_is_not_ready(self, clock):
        client = MagicMock()
        client.list_nodes.return_value = []

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(client, clock, timeout=10, interval=5).wait()

        assert exc_info.value.data["last_state"] == "no nodes"

    def test_last_error_is_reported(self, clock):
        client = MagicMock()
        client.list_nodes.side_effect = ClusterClientError(message="kubectl get failed")

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(client, clock, timeout=5, interval=5).wait()

        assert exc_info.value.data["last_state"] == "kubectl get failed"

    def test_polls_are_capped_by_remaining_budget(self, clock):
        client = MagicMock()
        client.list_nodes.return_value = [NodeStatus("cp-0", False)]

        with pytest.raises(ReadinessTimeoutError):
            _waiter(client, clock, timeout=25, interval=10).wait()

        timeouts = [c.kwargs["timeout"] for c in client.list_nodes.call_args_list]
        assert timeouts == [25, 15, 5, 1.0]

    def test_hung_kubectl_does_not_outlive_budget(self, hung_kubectl, tmp_path):
        client = ClusterClient(
            tmp_path / "kubeconfig",
            "http://127.0.0.1:1",
            kubectl=str(hung_kubectl),
            retry_delay=0.1,
        )
        waiter = NodeReadinessWaiter(client, timeout=2, interval=0.5)

        start = time.monotonic()
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            waiter.wait()

        assert time.monotonic() - start < 8
        assert "timed out" in exc_info.value.data["last_state"]
