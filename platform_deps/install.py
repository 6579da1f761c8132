"""
Install the selected operator dependencies via OLM (Subscription).

Rendering is repeated until it converges: custom resources can only be
applied after the operator that owns their CRD is running, so every pass
renders what is currently possible, applies it, waits for the operators'
CSVs, and renders again.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from platform_deps.constants import (
    DEFAULT_MAX_PASSES,
    DEFAULT_PASS_INTERVAL,
    OPERATOR_POLL_INTERVAL,
    OPERATOR_TIMEOUT,
)
from platform_deps.errors import DependencyError
from platform_deps.render import render_manifests, to_yaml
from platform_deps.resolver import DependencyResolver
from shared.oc_runner import oc_get_json

if TYPE_CHECKING:
    from platform_deps.config import PlatformConfig
    from shared.oc_runner import OcRunner


def crd_established(oc: OcRunner, crd_name: str) -> bool:
    """Return True when the CRD exists and reports Established=True.

    A probe that times out counts as not established; the next pass asks again.
    """
    crd = oc_get_json(oc, "crd", crd_name)
    conditions = ((crd or {}).get("status") or {}).get("conditions") or []
    return any(c.get("type") == "Established" and c.get("status") == "True" for c in conditions)


def _resolution_failure(subscription: dict) -> str | None:
    for c in (subscription.get("status") or {}).get("conditions") or []:
        if c.get("type") == "ResolutionFailed" and c.get("status") == "True":
            return c.get("message") or "Subscription resolution failed."
    return None


def wait_for_operator(
    oc: OcRunner,
    namespace: str,
    subscription_name: str,
    timeout: int = OPERATOR_TIMEOUT,
    poll_interval: int = OPERATOR_POLL_INTERVAL,
) -> str:
    """Wait until the Subscription's installed CSV reaches Succeeded.

    Returns the CSV name. Raises DependencyError when OLM cannot resolve the
    Subscription, when the CSV reports Failed, or on timeout.
    """
    deadline = time.monotonic() + timeout
    csv_name = ""
    phase = None
    while time.monotonic() < deadline:
        if not csv_name:
            sub = oc_get_json(oc, "subscription", subscription_name, "-n", namespace) or {}
            failure = _resolution_failure(sub)
            if failure:
                raise DependencyError(
                    f"Subscription {namespace}/{subscription_name} failed: {failure} "
                    "Check that the package exists in the catalog and channel."
                )
            csv_name = ((sub.get("status") or {}).get("installedCSV") or "").strip()
            if not csv_name:
                print(f"  Waiting for subscription {subscription_name} to resolve...")
        if csv_name:
            csv = oc_get_json(oc, "csv", csv_name, "-n", namespace) or {}
            status = csv.get("status") or {}
            phase = status.get("phase")
            if phase == "Succeeded":
                return csv_name
            if phase == "Failed":
                raise DependencyError(
                    f"CSV {csv_name} in {namespace} failed: {status.get('message') or 'no message'}"
                )
            if phase:
                print(f"  CSV {csv_name} phase: {phase} (waiting...)")
        time.sleep(poll_interval)
    if not csv_name:
        raise DependencyError(
            f"Timeout ({timeout}s) waiting for subscription {subscription_name} to install (no installedCSV)."
        )
    raise DependencyError(
        f"Timeout ({timeout}s) waiting for CSV {csv_name} to reach Succeeded "
        f"(current phase: {phase or 'not found'})."
    )


def install_dependencies(
    oc: OcRunner,
    config: PlatformConfig,
    max_passes: int = DEFAULT_MAX_PASSES,
    pass_interval: int = DEFAULT_PASS_INTERVAL,
    timeout_per_operator: int = OPERATOR_TIMEOUT,
) -> list[str]:
    """Install every dependency the resolver selects.

    1. Render manifests; custom resources whose CRD is missing are held back
    2. Apply the rendered manifests
    3. Wait for each new Subscription's CSV to reach Succeeded
    4. Repeat until nothing is held back or ``max_passes`` is reached

    Returns the names of the installed dependencies.
    """
    if max_passes < 1:
        raise ValueError(f"max_passes must be at least 1, got {max_passes}")

    print("\n" + "=" * 60)
    print("Platform Dependencies Installation (OLM)")
    print("=" * 60)

    resolver = DependencyResolver(config)
    selected = resolver.installed()
    if not selected:
        print("No dependencies selected for installation.")
        return []
    print(f"Selected dependencies: {', '.join(selected)}")

    waited: set[str] = set()
    for attempt in range(1, max_passes + 1):
        print(f"Render pass {attempt}/{max_passes}...")
        result = render_manifests(
            config,
            crd_exists=lambda crd: crd_established(oc, crd),
            resolver=resolver,
        )
        if result.documents:
            oc.apply_yaml(to_yaml(result.documents))
            print(f"  Applied {len(result.documents)} resource(s).")

        for name in result.installed:
            olm = config.dependencies[name].olm
            if name in waited or olm is None:
                continue
            print(f"Waiting for {name} operator in {olm.namespace}...")
            installed_csv = wait_for_operator(
                oc, olm.namespace, olm.subscription.name, timeout=timeout_per_operator
            )
            print(f"  {name} installed ({installed_csv}).")
            waited.add(name)

        if result.converged:
            print("\n" + "=" * 60)
            print("Platform dependencies installed successfully.")
            print("=" * 60)
            return result.installed

        for s in result.skipped:
            print(f"  {s.kind} {s.name} ({s.dependency}) waiting for CRD {s.crd}")
        if attempt < max_passes:
            time.sleep(pass_interval)

    pending = ", ".join(f"{s.kind}/{s.name} (CRD {s.crd})" for s in result.skipped)
    raise DependencyError(
        f"Custom resources still waiting for their CRDs after {max_passes} pass(es): {pending}"
    )
