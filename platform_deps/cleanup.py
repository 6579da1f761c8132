"""
Clean up installed operator dependencies using oc commands.

Reverse of install_dependencies(): dependents are removed before the
dependencies they require. For each operator:

1. its custom resources
2. finalizers on operand objects that would otherwise block CRD removal
3. operand deployments selected by label
4. the Subscription, its CSV and the namespace's OperatorGroups
5. CRDs selected by label, then CRDs by name
6. operand namespaces, then the operator namespace when we created it

Every step is best effort: 'not found' is ignored, other failures and
timeouts are printed as warnings and cleanup moves on.
"""

from __future__ import annotations

import json
import subprocess
from typing import TYPE_CHECKING

from platform_deps.resolver import DependencyResolver
from shared.oc_runner import oc_get_json

if TYPE_CHECKING:
    from platform_deps.config import Dependency, FinalizerPatch, PlatformConfig
    from shared.oc_runner import OcRunner

CLEAR_FINALIZERS = json.dumps({"metadata": {"finalizers": None}})


def oc_quiet(oc: OcRunner, *args: str, timeout: int = 60) -> bool:
    """Run an oc command; warn instead of failing. Returns True on success."""
    try:
        r = oc.oc(*args, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        print(f"  Warning: oc {' '.join(args)} timed out after {e.timeout}s")
        return False
    if r.returncode == 0:
        return True
    if "not found" not in (r.stderr or "").lower():
        print(f"  Warning: oc {' '.join(args)}: {r.stderr or r.stdout}")
    return False


def oc_delete_quiet(oc: OcRunner, *args: str) -> None:
    """Run ``oc delete`` and ignore 'not found' errors."""
    oc_quiet(oc, "delete", *args, "--ignore-not-found")


def clear_finalizers(oc: OcRunner, patch: FinalizerPatch) -> None:
    args = ["patch", patch.resource, patch.name, "--type=merge", "-p", CLEAR_FINALIZERS]
    if patch.namespace:
        args += ["-n", patch.namespace]
    oc_quiet(oc, *args, timeout=15)


def uninstall_operator(oc: OcRunner, namespace: str, subscription_name: str) -> None:
    """Delete the Subscription, the CSV it installed and the namespace's OperatorGroups."""
    sub = oc_get_json(oc, "subscription", subscription_name, "-n", namespace) or {}
    csv_name = ((sub.get("status") or {}).get("installedCSV") or "").strip()

    oc_delete_quiet(oc, "subscription", subscription_name, "-n", namespace)
    if csv_name:
        oc_delete_quiet(oc, "csv", csv_name, "-n", namespace)

    groups = oc_get_json(oc, "operatorgroup", "-n", namespace) or {}
    for item in groups.get("items") or []:
        name = (item.get("metadata") or {}).get("name")
        if name:
            oc_delete_quiet(oc, "operatorgroup", name, "-n", namespace)


def cleanup_dependency(oc: OcRunner, dependency: Dependency) -> None:
    print(f"Removing {dependency.name}...")
    olm = dependency.olm
    cleanup = dependency.cleanup

    for resource in reversed(dependency.custom_resources):
        args = [resource.crd, resource.name]
        if resource.namespace:
            args += ["-n", resource.namespace]
        oc_delete_quiet(oc, *args)

    for patch in cleanup.finalizers:
        clear_finalizers(oc, patch)

    for deployments in cleanup.deployments:
        namespace = deployments.namespace or (olm.namespace if olm else None)
        if namespace is None:
            print(f"  Warning: no namespace for deployments {deployments.selector}, skipping")
            continue
        oc_delete_quiet(oc, "deployment", "-n", namespace, "-l", deployments.selector)

    if olm is not None:
        uninstall_operator(oc, olm.namespace, olm.subscription.name)

    for selector in cleanup.crd_selectors:
        oc_delete_quiet(oc, "crd", "-l", selector)
    for crd in cleanup.crds:
        oc_delete_quiet(oc, "crd", crd)

    for namespace in cleanup.namespaces:
        oc_delete_quiet(oc, "namespace", namespace)
    if olm is not None and olm.create_namespace:
        oc_delete_quiet(oc, "namespace", olm.namespace)


def cleanup_dependencies(
    oc: OcRunner,
    config: PlatformConfig,
    include_all: bool = False,
) -> list[str]:
    """Remove dependencies in reverse install order.

    Args:
        oc: OcRunner instance.
        config: Platform configuration.
        include_all: Remove every declared dependency, not only the ones
            the resolver currently selects.

    Returns the names of the removed dependencies.
    """
    print("\n" + "=" * 60)
    print("Platform Dependencies Cleanup")
    print("=" * 60)

    resolver = DependencyResolver(config)
    names = resolver.install_order() if include_all else resolver.installed()
    removed = []
    for name in reversed(names):
        cleanup_dependency(oc, config.dependencies[name])
        removed.append(name)

    print("\n" + "=" * 60)
    print("Platform dependencies cleanup complete.")
    print("=" * 60)
    return removed
