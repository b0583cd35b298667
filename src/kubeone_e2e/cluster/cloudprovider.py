"""Cloud provider capability checks.

Verifies that the cloud controller manager and CSI driver installed by
kubeone work: a PersistentVolumeClaim gets bound and mounted by a pod,
and (where the provider offers one) a LoadBalancer service is provisioned.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import CloudProviderTestError, ClusterClientError, E2EError
from ..shared.logging import get_logger
from .client import ClusterClient

logger = get_logger(__name__)

DEFAULT_NAMESPACE = "kubeone-e2e-cloudprovider"
DEFAULT_TIMEOUT = 600.0
DEFAULT_INTERVAL = 5.0
TEST_IMAGE = "registry.k8s.io/e2e-test-images/agnhost:2.40"


@dataclass(frozen=True)
class ProviderCapabilities:
    volumes: bool = False
    load_balancer: bool = False


PROVIDER_CAPABILITIES = {
    "aws": ProviderCapabilities(volumes=True, load_balancer=True),
    "azure": ProviderCapabilities(volumes=True, load_balancer=True),
    "digitalocean": ProviderCapabilities(volumes=True, load_balancer=True),
    "gce": ProviderCapabilities(volumes=True, load_balancer=True),
    "hetzner": ProviderCapabilities(volumes=True, load_balancer=True),
    "openstack": ProviderCapabilities(volumes=True, load_balancer=True),
    "vsphere": ProviderCapabilities(volumes=True),
}


class CloudProviderTests:
    """Create cloud-backed resources and wait until the provider serves them."""

    def __init__(
        self,
        client: ClusterClient,
        provider: str,
        timeout: float = DEFAULT_TIMEOUT,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        self.client = client
        self.provider = provider
        self.capabilities = PROVIDER_CAPABILITIES.get(provider, ProviderCapabilities())
        self.timeout = timeout
        self.interval = interval
        self.namespace = namespace
        self._clock = clock
        self._sleep = sleep

    @property
    def supported(self) -> bool:
        return self.capabilities.volumes or self.capabilities.load_balancer

    def run_with_cleanup(self) -> None:
        """Run the checks and always delete the test namespace.

        A cleanup failure is raised only when the checks themselves passed.

        Raises:
            CloudProviderTestError: If a resource never becomes ready
            ClusterClientError: If the cluster cannot be reached
        """
        if not self.supported:
            logger.info("cloud provider tests not supported, skipping", provider=self.provider)
            return

        logger.info("running cloud provider tests", provider=self.provider, namespace=self.namespace)
        succeeded = False
        try:
            self.run()
            succeeded = True
        finally:
            try:
                self.client.delete_namespace(self.namespace)
            except ClusterClientError as e:
                if succeeded:
                    raise
                logger.warning("cloud provider tests cleanup failed", error=str(e))

    def run(self) -> None:
        self.client.apply_manifests(self.build_manifests())
        if self.capabilities.volumes:
            self._wait_for("persistentvolumeclaim", "e2e-pvc", self._pvc_bound)
            self._wait_for("pod", "e2e-pod", self._pod_running)
        if self.capabilities.load_balancer:
            self._wait_for("service", "e2e-lb", self._lb_provisioned)
        logger.info("cloud provider tests passed", provider=self.provider)

    def build_manifests(self) -> list[dict[str, Any]]:
        manifests = self._build_namespace()
        if self.capabilities.volumes:
            manifests += self._build_volume()
        if self.capabilities.load_balancer:
            manifests += self._build_load_balancer()
        return manifests

    def _wait_for(self, kind: str, name: str, check: Callable[[dict[str, Any]], bool]) -> None:
        deadline = self._clock() + self.timeout
        last_error: str | None = None
        while True:
            try:
                obj = self.client.get_json(kind, name, "-n", self.namespace)
                if check(obj):
                    logger.debug("cloud provider resource ready", kind=kind, name=name)
                    return
                last_error = None
            except ClusterClientError as e:
                if not e.transient:
                    raise
                last_error = str(e)

            now = self._clock()
            if now >= deadline:
                raise CloudProviderTestError(
                    message=f"{kind}/{name} not ready after {self.timeout:g}s",
                    data={"provider": self.provider, "namespace": self.namespace, "error": last_error},
                )
            self._sleep(min(self.interval, deadline - now))

    @staticmethod
    def _pvc_bound(obj: dict[str, Any]) -> bool:
        return obj.get("status", {}).get("phase") == "Bound"

    @staticmethod
    def _pod_running(obj: dict[str, Any]) -> bool:
        return obj.get("status", {}).get("phase") == "Running"

    @staticmethod
    def _lb_provisioned(obj: dict[str, Any]) -> bool:
        ingress = obj.get("status", {}).get("loadBalancer", {}).get("ingress") or []
        return any(i.get("ip") or i.get("hostname") for i in ingress)

    def _build_namespace(self) -> list[dict[str, Any]]:
        return [
            {
                "apiVersion": "v1",
                "kind": "Namespace",
                "metadata": {"name": self.namespace},
            }
        ]

    def _build_volume(self) -> list[dict[str, Any]]:
        """Build a PVC and a pod mounting it."""
        pvc = {
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {"name": "e2e-pvc", "namespace": self.namespace},
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "resources": {"requests": {"storage": "1Gi"}},
            },
        }

        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": "e2e-pod", "namespace": self.namespace, "labels": {"app": "e2e"}},
            "spec": {
                "containers": [
                    {
                        "name": "web",
                        "image": TEST_IMAGE,
                        "args": ["netexec", "--http-port=8080"],
                        "ports": [{"containerPort": 8080}],
                        "volumeMounts": [{"name": "data", "mountPath": "/data"}],
                    }
                ],
                "volumes": [{"name": "data", "persistentVolumeClaim": {"claimName": "e2e-pvc"}}],
            },
        }

        return [pvc, pod]

    def _build_load_balancer(self) -> list[dict[str, Any]]:
        return [
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": {"name": "e2e-lb", "namespace": self.namespace},
                "spec": {
                    "type": "LoadBalancer",
                    "selector": {"app": "e2e"},
                    "ports": [{"port": 80, "targetPort": 8080}],
                },
            }
        ]


def run_cloud_provider_tests(client: ClusterClient, provider: str, **kwargs: Any) -> None:
    """Shorthand for CloudProviderTests(...).run_with_cleanup()."""
    try:
        CloudProviderTests(client, provider, **kwargs).run_with_cleanup()
    except CloudProviderTestError:
        raise
    except E2EError as e:
        raise CloudProviderTestError(message=f"Cloud provider tests failed: {e.message}", data=e.data) from e
