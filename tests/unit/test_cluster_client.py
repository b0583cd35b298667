"""Unit tests for ClusterClient."""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
import yaml

from kubeone_e2e.cluster import ClusterClient, NodeStatus, proxy_environ
from kubeone_e2e.errors import ClusterClientError


def _completed(returncode=0, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


def _node(name, ready):
    return {
        "metadata": {"name": name},
        "status": {
            "conditions": [
                {"type": "MemoryPressure", "status": "False"},
                {"type": "Ready", "status": "True" if ready else "False"},
            ]
        },
    }


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def client(tmp_path, sleep):
    return ClusterClient(tmp_path / "kubeconfig", "http://127.0.0.1:8080", retries=3, retry_delay=1.0, sleep=sleep)


class TestProxyEnviron:
    """Tests for proxy_environ."""

    def test_routes_https_through_proxy(self):
        env = proxy_environ("http://127.0.0.1:8080", {"PATH": "/bin", "NO_PROXY": "*", "no_proxy": "*"})
        assert env == {
            "PATH": "/bin",
            "HTTPS_PROXY": "http://127.0.0.1:8080",
            "https_proxy": "http://127.0.0.1:8080",
        }


class TestClusterClient:
    """Tests for kubectl invocation and retries."""

    def test_kubectl_command_and_env(self, client, tmp_path):
        with patch("subprocess.run", return_value=_completed(stdout="ok")) as mock_run:
            assert client.kubectl("version") == "ok"

        args, kwargs = mock_run.call_args
        assert args[0] == [
            "kubectl",
            "--kubeconfig",
            str(tmp_path / "kubeconfig"),
            "--request-timeout=30s",
            "version",
        ]
        assert kwargs["env"]["HTTPS_PROXY"] == "http://127.0.0.1:8080"
        assert kwargs["timeout"] == pytest.approx(300, abs=1)

    def test_transient_error_is_retried(self, client, sleep):
        responses = [
            _completed(1, stderr="proxyconnect tcp: dial tcp 127.0.0.1:8080: connect: connection refused"),
            _completed(1, stderr="Unable to connect to the server: EOF"),
            _completed(stdout="ok"),
        ]
        with patch("subprocess.run", side_effect=responses) as mock_run:
            assert client.kubectl("get", "nodes") == "ok"

        assert mock_run.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_retries_are_bounded(self, client, sleep):
        with patch("subprocess.run", return_value=_completed(1, stderr="connection reset by peer")) as mock_run:
            with pytest.raises(ClusterClientError) as exc_info:
                client.kubectl("get", "nodes")

        assert mock_run.call_count == 4
        assert exc_info.value.transient is True
        assert exc_info.value.data["attempts"] == 4

    def test_permanent_error_is_not_retried(self, client, sleep):
        with patch("subprocess.run", return_value=_completed(1, stderr='nodes "x" is forbidden')) as mock_run:
            with pytest.raises(ClusterClientError) as exc_info:
                client.kubectl("get", "nodes", "x")

        assert mock_run.call_count == 1
        assert exc_info.value.transient is False
        sleep.assert_not_called()

    def test_retries_stop_before_budget(self, client, sleep):
        with patch("subprocess.run", return_value=_completed(1, stderr="connection refused")) as mock_run:
            with pytest.raises(ClusterClientError):
                client.kubectl("get", "nodes", timeout=1.5)

        assert mock_run.call_count == 2
        assert [c.args[0] for c in sleep.call_args_list] == [1.0]

    def test_timeout_is_transient(self, client, sleep):
        hung = subprocess.TimeoutExpired(cmd="kubectl", timeout=5)
        responses = [hung, _completed(stdout="ok")]
        with patch("subprocess.run", side_effect=responses) as mock_run:
            assert client.kubectl("get", "nodes", timeout=5) == "ok"

        first = mock_run.call_args_list[0]
        assert "--request-timeout=5s" in first.args[0]
        assert first.kwargs["timeout"] == pytest.approx(5, abs=0.5)
        sleep.assert_called_once_with(1.0)

    def test_timeout_after_retries(self, client):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="kubectl", timeout=5)):
            with pytest.raises(ClusterClientError, match="timed out") as exc_info:
                client.kubectl("get", "nodes")

        assert exc_info.value.transient is True
        assert exc_info.value.data["attempts"] == 4

    def test_kubectl_missing(self, client):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(ClusterClientError, match="kubectl not found"):
                client.kubectl("version")

    def test_get_json_invalid(self, client):
        with patch("subprocess.run", return_value=_completed(stdout="not json")):
            with pytest.raises(ClusterClientError, match="invalid JSON"):
                client.get_json("nodes")

    def test_list_nodes(self, client):
        output = json.dumps({"items": [_node("cp-0", True), _node("worker-0", False)]})
        with patch("subprocess.run", return_value=_completed(stdout=output)) as mock_run:
            nodes = client.list_nodes()

        assert nodes == [NodeStatus("cp-0", True), NodeStatus("worker-0", False)]
        assert mock_run.call_args[0][0][-4:] == ["get", "nodes", "-o", "json"]

    def test_apply_manifests_uses_stdin(self, client):
        manifests = [{"kind": "Namespace", "metadata": {"name": "a"}}, {"kind": "Pod"}]
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            client.apply_manifests(manifests)

        args, kwargs = mock_run.call_args
        assert args[0][-3:] == ["apply", "-f", "-"]
        assert list(yaml.safe_load_all(kwargs["input"])) == manifests

    def test_delete_namespace(self, client):
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            client.delete_namespace("e2e")
        cmd = mock_run.call_args[0][0]
        assert cmd[-5:] == ["delete", "namespace", "e2e", "--ignore-not-found", "--wait=true"]
        assert "--request-timeout=600s" in cmd


class TestNodeStatus:
    """Tests for NodeStatus parsing."""

    def test_missing_conditions(self):
        assert NodeStatus.from_object({"metadata": {"name": "n"}, "status": {}}) == NodeStatus("n", False)
