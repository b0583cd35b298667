"""Shared test fixtures for kubeone-e2e tests.

- isolated_config: keeps tests away from ~/.kubeone-e2e and KUBEONE_E2E_* variables
- fake_kubeone: executable standing in for `kubeone proxy`
- hung_kubectl: kubectl that never returns
- demo_infra / e2e_config: small, fast run settings
- captured_logs: structlog events of the current test
"""

import sys
from pathlib import Path

import pytest
from structlog.testing import capture_logs

from kubeone_e2e.config import ENV_VARS, E2EConfig
from kubeone_e2e.infra import Infra, Terraform
from kubeone_e2e.kubeone import KubeoneBin

# Serves HTTP on the --listen address until SIGTERM, then exits cleanly
FAKE_PROXY = """\
#!{python}
import signal
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer


class Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(405)
        self.end_headers()

    def log_message(self, *args):
        pass


def stop(signum, frame):
    sys.exit(0)


host, port = sys.argv[sys.argv.index("--listen") + 1].rsplit(":", 1)
signal.signal(signal.SIGTERM, stop)
HTTPServer((host, int(port)), Handler).serve_forever()
"""

# Exits right away, as kubeone does when SSH to the bastion fails
FAILING_PROXY = """\
#!{python}
import sys

sys.exit(3)
"""

# Never answers, as kubectl does behind a half-open tunnel
HUNG_KUBECTL = """\
#!{python}
import time

time.sleep(30)
"""


def _write_script(path: Path, template: str) -> Path:
    path.write_text(template.format(python=sys.executable))
    path.chmod(0o755)
    return path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the default config file into tmp_path and clear env overrides."""
    config_file = tmp_path / "home" / "config.yaml"
    monkeypatch.setattr("kubeone_e2e.config.CONFIG_FILE", config_file)
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    return config_file


@pytest.fixture
def fake_kubeone(tmp_path) -> Path:
    return _write_script(tmp_path / "kubeone", FAKE_PROXY)


@pytest.fixture
def failing_kubeone(tmp_path) -> Path:
    return _write_script(tmp_path / "kubeone-failing", FAILING_PROXY)


@pytest.fixture
def hung_kubectl(tmp_path) -> Path:
    return _write_script(tmp_path / "kubectl-hung", HUNG_KUBECTL)


@pytest.fixture
def kubeone_bin(fake_kubeone, tmp_path) -> KubeoneBin:
    return KubeoneBin(
        bin_path=str(fake_kubeone),
        tfjson=str(tmp_path / "tf.json"),
        manifest=str(tmp_path / "cluster.yaml"),
        version="1.27.5",
    )


@pytest.fixture
def demo_infra() -> Infra:
    return Infra(
        name="demo_infra",
        provider="aws",
        terraform=Terraform(path="terraform/demo"),
        environ={"PROVIDER": "aws"},
        labels={"preset-aws": "true"},
        expected_nodes=3,
    )


@pytest.fixture
def e2e_config(tmp_path) -> E2EConfig:
    return E2EConfig(
        source_dir=str(tmp_path / "src"),
        settle_delay=0.0,
        probe_attempts=50,
        probe_interval=0.1,
        node_ready_timeout=30.0,
        node_ready_interval=1.0,
    )


@pytest.fixture(autouse=True)
def captured_logs():
    """Collect structlog events instead of printing them."""
    with capture_logs() as logs:
        yield logs
