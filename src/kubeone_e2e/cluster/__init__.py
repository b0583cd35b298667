"""Cluster validation: node readiness, cloud provider checks, conformance."""

from .client import ClusterClient, NodeStatus, proxy_environ
from .cloudprovider import CloudProviderTests, ProviderCapabilities, run_cloud_provider_tests
from .conformance import ConformanceResult, SonobuoyMode, SonobuoyRunner, parse_mode
from .readiness import NodeReadinessWaiter, ReadinessResult

__all__ = [
    # Client
    "ClusterClient",
    "NodeStatus",
    "proxy_environ",
    # Readiness
    "NodeReadinessWaiter",
    "ReadinessResult",
    # Cloud provider
    "CloudProviderTests",
    "ProviderCapabilities",
    "run_cloud_provider_tests",
    # Conformance
    "SonobuoyRunner",
    "SonobuoyMode",
    "ConformanceResult",
    "parse_mode",
]
