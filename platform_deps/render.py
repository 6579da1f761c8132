"""
Render OLM resources for the dependencies that must be installed.

Each selected dependency yields, in order: Namespace (when we own it),
OperatorGroup (unless disabled), Subscription, then its custom resources.
A custom resource is only emitted once the CRD it instantiates exists in
the cluster; until then it is reported as skipped so the caller can render
again after the operator has registered its CRDs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

from platform_deps.config import Dependency, PlatformConfig
from platform_deps.constants import OPERATOR_GROUP_API_VERSION, SUBSCRIPTION_API_VERSION
from platform_deps.resolver import DependencyResolver

CrdProbe = Callable[[str], bool]


@dataclass
class SkippedResource:
    dependency: str
    crd: str
    kind: str
    name: str


@dataclass
class RenderResult:
    """Rendered manifests plus the custom resources held back."""

    documents: list[dict[str, Any]] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)
    skipped: list[SkippedResource] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.skipped


def namespace_manifest(name: str) -> dict[str, Any]:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def operator_group_manifest(dependency: Dependency) -> dict[str, Any] | None:
    """OperatorGroup for the dependency's namespace, or None if it is not ours."""
    olm = dependency.olm
    if olm is None or olm.operator_group is None:
        return None
    group = olm.operator_group
    spec: dict[str, Any] = {}
    if not group.all_namespaces:
        spec["targetNamespaces"] = list(group.target_namespaces)
    return {
        "apiVersion": OPERATOR_GROUP_API_VERSION,
        "kind": "OperatorGroup",
        "metadata": {"name": group.name, "namespace": olm.namespace},
        "spec": spec,
    }


def subscription_manifest(dependency: Dependency) -> dict[str, Any] | None:
    olm = dependency.olm
    if olm is None:
        return None
    sub = olm.subscription
    spec: dict[str, Any] = {
        "channel": sub.channel,
        "installPlanApproval": sub.install_plan_approval,
        "name": sub.package,
        "source": sub.source,
        "sourceNamespace": sub.source_namespace,
    }
    if sub.starting_csv:
        spec["startingCSV"] = sub.starting_csv
    return {
        "apiVersion": SUBSCRIPTION_API_VERSION,
        "kind": "Subscription",
        "metadata": {"name": sub.name, "namespace": olm.namespace},
        "spec": spec,
    }


def dependency_manifests(
    dependency: Dependency,
    crd_exists: CrdProbe | None = None,
) -> tuple[list[dict[str, Any]], list[SkippedResource]]:
    """Manifests for one dependency and the custom resources left out."""
    documents: list[dict[str, Any]] = []
    skipped: list[SkippedResource] = []
    olm = dependency.olm
    if olm is not None:
        if olm.create_namespace:
            documents.append(namespace_manifest(olm.namespace))
        group = operator_group_manifest(dependency)
        if group:
            documents.append(group)
        documents.append(subscription_manifest(dependency))

    for resource in dependency.custom_resources:
        if crd_exists is not None and crd_exists(resource.crd):
            documents.append(resource.to_manifest())
        else:
            skipped.append(
                SkippedResource(
                    dependency=dependency.name,
                    crd=resource.crd,
                    kind=resource.kind,
                    name=resource.name,
                )
            )
    return documents, skipped


def render_manifests(
    config: PlatformConfig,
    crd_exists: CrdProbe | None = None,
    resolver: DependencyResolver | None = None,
) -> RenderResult:
    """Render every dependency the resolver selects, in install order.

    Args:
        config: Platform configuration.
        crd_exists: Probe for CRD existence. Without one no custom resource
            is rendered.
        resolver: Resolver to reuse; built from ``config`` when omitted.
    """
    resolver = resolver or DependencyResolver(config)
    result = RenderResult()
    for name in resolver.installed():
        documents, skipped = dependency_manifests(config.dependencies[name], crd_exists)
        result.installed.append(name)
        result.documents.extend(documents)
        result.skipped.extend(skipped)
    return result


def to_yaml(documents: list[dict[str, Any]]) -> str:
    """Serialize manifests as a multi-document YAML stream."""
    return yaml.safe_dump_all(documents, default_flow_style=False, sort_keys=False)
