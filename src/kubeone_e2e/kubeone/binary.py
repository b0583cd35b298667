"""kubeone command descriptors, build and release download.

KubeoneBin is a stateless description of one kubeone invocation target
(binary, Terraform state, rendered manifest); a scenario creates one per
version it operates on.
"""

from __future__ import annotations

import io
import platform
import subprocess
import zipfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from ..errors import BuildError, OperationError, operation_failed, stderr_tail
from ..shared.logging import get_logger
from ..shared.paths import get_release_dir

logger = get_logger(__name__)

KUBEONE_RELEASE_URL = (
    "https://github.com/kubermatic/kubeone/releases/download/"
    "v{version}/kubeone_{version}_{os}_{arch}.zip"
)
DEFAULT_DOWNLOAD_TIMEOUT = 120.0

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


@dataclass(frozen=True)
class KubeoneBin:
    """Command descriptor for a kubeone binary bound to one cluster manifest."""

    bin_path: str
    tfjson: str
    manifest: str
    version: str = ""
    verbose: bool = False
    credentials: str = ""

    def command(self, *args: str) -> list[str]:
        """Build the argv for a kubeone sub-command."""
        cmd = [self.bin_path, *args, "--tfjson", self.tfjson, "--manifest", self.manifest]
        if self.verbose:
            cmd.append("--verbose")
        if self.credentials:
            cmd.extend(["--credentials", self.credentials])
        return cmd

    def proxy_command(self, listen: str) -> list[str]:
        """argv for `kubeone proxy` listening on host:port."""
        return self.command("proxy", "--listen", listen)

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = self.command(*args)
        logger.debug("running kubeone", command=" ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise OperationError(
                message=f"Cannot execute kubeone at {self.bin_path}: {e}",
                data={"operation": args[0], "version": self.version},
            ) from e

        if result.returncode != 0:
            raise operation_failed(args[0], self.version, result.returncode, result.stderr)
        return result

    def apply(self) -> None:
        """Run `kubeone apply` non-interactively.

        Raises:
            OperationError: On non-zero exit
        """
        result = self._run("apply", "--auto-approve")
        if result.stdout:
            logger.debug("kubeone apply output", version=self.version, output=stderr_tail(result.stdout))

    def kubeconfig(self) -> str:
        """Return the cluster's admin kubeconfig.

        Raises:
            OperationError: On non-zero exit
        """
        return self._run("kubeconfig").stdout


def write_kubeconfig(kubeone: KubeoneBin, directory: Path) -> Path:
    """Fetch the admin kubeconfig and store it with user-only permissions."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "kubeconfig"
    path.write_text(kubeone.kubeconfig())
    path.chmod(0o600)
    return path


def build_kubeone(source_dir: str | Path, make: str = "make") -> Path:
    """Build kubeone from a source checkout with `make build`.

    Args:
        source_dir: kubeone repository checkout
        make: make executable

    Returns:
        Path to the built binary (dist/kubeone)

    Raises:
        BuildError: If the build fails or produces no binary
    """
    source = Path(source_dir)
    logger.info("building kubeone", source_dir=str(source))
    try:
        result = subprocess.run(
            [make, "-C", str(source), "build"],
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise BuildError(message=f"{make} not found. Is make installed?") from e

    if result.returncode != 0:
        raise BuildError(
            message="make build failed",
            data={
                "source_dir": str(source),
                "returncode": result.returncode,
                "stderr": stderr_tail(result.stderr),
            },
        )

    binary = source / "dist" / "kubeone"
    if not binary.is_file():
        raise BuildError(
            message=f"make build did not produce {binary}",
            data={"source_dir": str(source)},
        )
    return binary


def release_url(version: str, system: str | None = None, machine: str | None = None) -> str:
    """URL of the kubeone release archive for this platform."""
    version = version.lstrip("v")
    os_name = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    arch = _ARCH_ALIASES.get(machine)
    if arch is None:
        raise BuildError(
            message=f"Unsupported architecture for kubeone releases: {machine}",
            data={"machine": machine},
        )
    return KUBEONE_RELEASE_URL.format(version=version, os=os_name, arch=arch)


def download_kubeone(
    version: str,
    cache_dir: Path | None = None,
    client: httpx.Client | None = None,
) -> Path:
    """Download a released kubeone binary, reusing the cached copy.

    Args:
        version: Release version (e.g., "1.4.6")
        cache_dir: Override for the releases cache directory
        client: Optional HTTP client (for tests)

    Returns:
        Path to the executable

    Raises:
        BuildError: If the download or extraction fails
    """
    release_dir = get_release_dir(version, cache_dir)
    binary = release_dir / "kubeone"
    if binary.is_file():
        logger.info("using cached kubeone release", version=version, path=str(binary))
        return binary

    url = release_url(version)
    logger.info("downloading kubeone release", version=version, url=url)

    owns_client = client is None
    http = client or httpx.Client(timeout=DEFAULT_DOWNLOAD_TIMEOUT, follow_redirects=True)
    buffer = io.BytesIO()
    try:
        with http.stream("GET", url) as response:
            if response.status_code != 200:
                raise BuildError(
                    message=f"Downloading kubeone {version} failed: HTTP {response.status_code}",
                    data={"url": url, "http_status": response.status_code},
                )
            for chunk in response.iter_bytes():
                buffer.write(chunk)
    except httpx.HTTPError as e:
        raise BuildError(
            message=f"Downloading kubeone {version} failed: {e}",
            data={"url": url},
        ) from e
    finally:
        if owns_client:
            http.close()

    try:
        with zipfile.ZipFile(buffer) as archive:
            if "kubeone" not in archive.namelist():
                raise BuildError(
                    message=f"kubeone {version} archive does not contain a kubeone binary",
                    data={"url": url},
                )
            content = archive.read("kubeone")
    except zipfile.BadZipFile as e:
        raise BuildError(
            message=f"kubeone {version} archive is corrupt: {e}",
            data={"url": url},
        ) from e

    release_dir.mkdir(parents=True, exist_ok=True)
    partial = release_dir / "kubeone.partial"
    partial.write_bytes(content)
    partial.chmod(0o755)
    partial.replace(binary)
    return binary
