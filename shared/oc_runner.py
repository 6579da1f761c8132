"""
Abstraction for running oc/kubectl against the cluster.

OcRunner is what the installer and cleanup talk to; LocalOcRunner runs the
CLI on this machine, optionally pinned to a kubeconfig. oc_get_json() is
the read helper both of them poll with.
"""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Optional

DEFAULT_CLI = "oc"


class OcRunner:
    """Cluster CLI used by install and cleanup."""

    def oc(
        self,
        *args: str,
        timeout: Optional[int] = None,
        stdin: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run the CLI with ``args``; ``stdin`` feeds ``apply -f -``.

        May raise subprocess.TimeoutExpired when ``timeout`` is exceeded.
        """
        raise NotImplementedError

    def apply_yaml(self, yaml_content: str, timeout: int = 120) -> None:
        """Apply a manifest stream. Raises RuntimeError when the CLI rejects it."""
        raise NotImplementedError


class LocalOcRunner(OcRunner):
    """Run oc (or kubectl) locally.

    Without a kubeconfig path the CLI uses its own resolution
    (``$KUBECONFIG``, then ``~/.kube/config``).
    """

    def __init__(
        self,
        kubeconfig_path: str | Path | None = None,
        cli: str = DEFAULT_CLI,
    ) -> None:
        self.cli = cli
        self.kubeconfig: Path | None = None
        if kubeconfig_path:
            self.kubeconfig = Path(kubeconfig_path).expanduser().resolve()
            if not self.kubeconfig.exists():
                raise RuntimeError(f"Kubeconfig not found: {self.kubeconfig}")

    def oc(
        self,
        *args: str,
        timeout: Optional[int] = None,
        stdin: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        env = dict(os.environ)
        if self.kubeconfig:
            env["KUBECONFIG"] = str(self.kubeconfig)
        return subprocess.run(
            [self.cli] + list(args),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=stdin,
        )

    def apply_yaml(self, yaml_content: str, timeout: int = 120) -> None:
        r = self.oc("apply", "-f", "-", timeout=timeout, stdin=yaml_content)
        if r.returncode != 0:
            raise RuntimeError(
                f"{self.cli} apply failed: {r.stderr or r.stdout or 'unknown error'}"
            )


def oc_get_json(oc: OcRunner, *args: str, timeout: int = 15) -> dict | None:
    """Return the parsed ``get ... -o json`` output, or None if the object could not be read.

    Failures, timeouts and unparsable output all yield None so polling loops
    can simply try again.
    """
    try:
        r = oc.oc("get", *args, "-o", "json", timeout=timeout)
    except subprocess.TimeoutExpired:
        return None
    if r.returncode != 0:
        return None
    try:
        return json.loads(r.stdout or "{}")
    except json.JSONDecodeError:
        return None
