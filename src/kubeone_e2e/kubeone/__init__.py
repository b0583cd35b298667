"""Wrappers around the kubeone binary.

This package provides:
- KubeoneBin command descriptors (apply, kubeconfig, proxy)
- Building from source and downloading released binaries
- The kubeone proxy lifecycle (open_tunnel, proxy_tunnel)
"""

from .binary import (
    KubeoneBin,
    build_kubeone,
    download_kubeone,
    release_url,
    write_kubeconfig,
)
from .tunnel import (
    ProbeResult,
    ProxyProbe,
    TunnelSession,
    free_port,
    open_tunnel,
    proxy_tunnel,
)

__all__ = [
    # Binary
    "KubeoneBin",
    "build_kubeone",
    "download_kubeone",
    "release_url",
    "write_kubeconfig",
    # Tunnel
    "TunnelSession",
    "open_tunnel",
    "proxy_tunnel",
    "free_port",
    "ProxyProbe",
    "ProbeResult",
]
