"""
Verify that installed operator dependencies are ready.

For every dependency the resolver selects:
1. Its Subscription is assigned a CSV (``status.currentCSV``)
2. That CSV reaches the ``Succeeded`` phase
3. Every configured pod label selector matches at least one pod, in the
   operator namespace or the operand namespace the selector names
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from kubernetes.client.rest import ApiException

from platform_deps.constants import (
    OLM_GROUP,
    OLM_VERSION,
    VERIFY_POLL_INTERVAL,
    VERIFY_TIMEOUT,
)
from platform_deps.errors import VerificationError
from platform_deps.resolver import DependencyResolver

if TYPE_CHECKING:
    from kubernetes import client

    from platform_deps.config import Dependency, PlatformConfig

logger = logging.getLogger(__name__)


def _get_olm_object(
    custom_api: client.CustomObjectsApi,
    plural: str,
    namespace: str,
    name: str,
) -> dict | None:
    try:
        return custom_api.get_namespaced_custom_object(
            OLM_GROUP, OLM_VERSION, namespace, plural, name
        )
    except ApiException as exc:
        if exc.status == 404:
            return None
        raise


def wait_for_subscription_csv(
    custom_api: client.CustomObjectsApi,
    namespace: str,
    subscription_name: str,
    timeout: int = VERIFY_TIMEOUT,
    poll_interval: int = VERIFY_POLL_INTERVAL,
) -> str:
    """Wait for the Subscription to be assigned a CSV and return its name."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        sub = _get_olm_object(custom_api, "subscriptions", namespace, subscription_name)
        csv_name = ((sub or {}).get("status") or {}).get("currentCSV")
        if csv_name:
            logger.info("Subscription %s/%s -> CSV %s", namespace, subscription_name, csv_name)
            return csv_name
        time.sleep(poll_interval)
    raise VerificationError(
        f"Subscription {subscription_name} in {namespace} did not get a CSV after {timeout}s"
    )


def wait_for_csv_succeeded(
    custom_api: client.CustomObjectsApi,
    namespace: str,
    csv_name: str,
    timeout: int = VERIFY_TIMEOUT,
    poll_interval: int = VERIFY_POLL_INTERVAL,
) -> None:
    """Wait for a CSV to reach Succeeded; fail fast if it reports Failed."""
    deadline = time.monotonic() + timeout
    phase = None
    while time.monotonic() < deadline:
        csv = _get_olm_object(custom_api, "clusterserviceversions", namespace, csv_name)
        status = (csv or {}).get("status") or {}
        phase = status.get("phase")
        if phase == "Succeeded":
            return
        if phase == "Failed":
            raise VerificationError(
                f"CSV {csv_name} in {namespace} failed: {status.get('message') or 'no message'}"
            )
        if phase:
            logger.info("  CSV %s phase: %s (waiting...)", csv_name, phase)
        time.sleep(poll_interval)
    raise VerificationError(
        f"CSV {csv_name} did not reach Succeeded phase after {timeout}s "
        f"(current phase: {phase or 'not found'})"
    )


def wait_for_pods(
    core_api: client.CoreV1Api,
    namespace: str,
    label_selector: str,
    timeout: int = VERIFY_TIMEOUT,
    poll_interval: int = VERIFY_POLL_INTERVAL,
) -> int:
    """Wait until at least one pod matches the selector; return the match count."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        pods = core_api.list_namespaced_pod(namespace, label_selector=label_selector)
        if pods.items:
            return len(pods.items)
        time.sleep(poll_interval)
    raise VerificationError(
        f"No pods with label {label_selector} in namespace {namespace} after {timeout}s"
    )


def verify_dependency(
    dependency: Dependency,
    core_api: client.CoreV1Api,
    custom_api: client.CustomObjectsApi,
    timeout: int = VERIFY_TIMEOUT,
    poll_interval: int = VERIFY_POLL_INTERVAL,
) -> None:
    olm = dependency.olm
    if olm is None:
        print(f"  {dependency.name}: no OLM configuration, nothing to verify.")
        return
    print(f"Waiting for {dependency.name} to be ready...")
    csv_name = wait_for_subscription_csv(
        custom_api, olm.namespace, olm.subscription.name, timeout, poll_interval
    )
    wait_for_csv_succeeded(custom_api, olm.namespace, csv_name, timeout, poll_interval)
    print(f"  {dependency.name} CSV {csv_name} is ready")
    for pods in dependency.pod_selectors:
        namespace = pods.namespace_or(olm.namespace)
        count = wait_for_pods(core_api, namespace, pods.selector, timeout, poll_interval)
        print(f"  {dependency.name} pods ({pods.selector} in {namespace}) are running: {count}")


def verify_dependencies(
    config: PlatformConfig,
    core_api: client.CoreV1Api,
    custom_api: client.CustomObjectsApi,
    timeout: int = VERIFY_TIMEOUT,
    poll_interval: int = VERIFY_POLL_INTERVAL,
) -> list[str]:
    """Verify every selected dependency; return the verified names."""
    print("Verifying dependencies...")
    verified = []
    for name in DependencyResolver(config).installed():
        verify_dependency(config.dependencies[name], core_api, custom_api, timeout, poll_interval)
        verified.append(name)
    print("All dependencies are installed and ready.")
    return verified
