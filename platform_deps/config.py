"""
Platform dependency configuration.

Configuration dataclasses and YAML config file loading. The file has the
shape of the Helm values the bundle was rendered from:

    components:   {<name>: {managementState, dependencies: {<dep>: bool}}}
    services:     {<name>: {managementState, dependencies: {<dep>: bool}}}
    dependencies: {<name>: {enabled, dependencies, olm, customResources, verify, cleanup}}

Structural violations raise ConfigSchemaError naming the offending key.
Optional fields that are simply absent decode to empty values.

The decoded tree is read-only: dataclasses are frozen, maps are
MappingProxyType views and lists are tuples, so a resolver may cache its
decisions for the lifetime of a PlatformConfig.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from platform_deps.constants import (
    ACTIVE_STATES,
    DEFAULT_CATALOG,
    DEFAULT_CATALOG_NAMESPACE,
    DEFAULT_INSTALL_PLAN_APPROVAL,
    ENABLED_AUTO,
    ENABLED_FALSE,
    ENABLED_TRUE,
    STATE_MANAGED,
    STATE_REMOVED,
    STATE_UNMANAGED,
)
from platform_deps.errors import ConfigSchemaError

logger = logging.getLogger(__name__)


def _empty_map() -> Mapping[str, Any]:
    return MappingProxyType({})


def freeze(value: Any) -> Any:
    """Return a read-only copy of a decoded YAML value."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Return a plain, mutable dict/list copy of a frozen value."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


class Enabled(str, Enum):
    """Tri-state install switch of a dependency."""

    TRUE = ENABLED_TRUE
    FALSE = ENABLED_FALSE
    AUTO = ENABLED_AUTO


class ManagementState(str, Enum):
    MANAGED = STATE_MANAGED
    UNMANAGED = STATE_UNMANAGED
    REMOVED = STATE_REMOVED


@dataclass(frozen=True)
class Requirer:
    """A component or service that may require dependencies."""

    name: str
    management_state: ManagementState = ManagementState.REMOVED
    dependencies: Mapping[str, bool] = field(default_factory=_empty_map)

    @property
    def active(self) -> bool:
        return self.management_state.value in ACTIVE_STATES

    def requires(self, dependency: str) -> bool:
        return self.dependencies.get(dependency, False)


@dataclass(frozen=True)
class Component(Requirer):
    """User-facing product feature."""


@dataclass(frozen=True)
class Service(Requirer):
    """Platform service; resolved exactly like a component."""


@dataclass(frozen=True)
class OperatorGroupConfig:
    name: str
    all_namespaces: bool = False
    target_namespaces: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubscriptionConfig:
    name: str
    package: str
    channel: str
    source: str = DEFAULT_CATALOG
    source_namespace: str = DEFAULT_CATALOG_NAMESPACE
    starting_csv: str | None = None
    install_plan_approval: str = DEFAULT_INSTALL_PLAN_APPROVAL


@dataclass(frozen=True)
class OlmConfig:
    """Where and how the operator is installed through OLM."""

    namespace: str
    subscription: SubscriptionConfig
    create_namespace: bool = True
    # None means the namespace already has an OperatorGroup
    operator_group: OperatorGroupConfig | None = None


@dataclass(frozen=True)
class CustomResource:
    """A CR applied once the CRD it is an instance of exists."""

    crd: str
    manifest: Mapping[str, Any]

    def to_manifest(self) -> dict[str, Any]:
        """Mutable copy of the manifest, ready for serialization."""
        return thaw(self.manifest)

    @property
    def kind(self) -> str:
        return self.manifest.get("kind", "")

    @property
    def name(self) -> str:
        return (self.manifest.get("metadata") or {}).get("name", "")

    @property
    def namespace(self) -> str | None:
        return (self.manifest.get("metadata") or {}).get("namespace")


@dataclass(frozen=True)
class LabelSelector:
    """Label selector, optionally pinned to a namespace other than the operator's."""

    selector: str
    namespace: str | None = None

    def namespace_or(self, default: str) -> str:
        return self.namespace or default


@dataclass(frozen=True)
class FinalizerPatch:
    """Object whose finalizers are cleared so its CRD can be deleted."""

    resource: str
    name: str
    namespace: str | None = None


@dataclass(frozen=True)
class CleanupConfig:
    """Leftovers removed after the operator itself is uninstalled."""

    finalizers: tuple[FinalizerPatch, ...] = ()
    deployments: tuple[LabelSelector, ...] = ()
    crd_selectors: tuple[str, ...] = ()
    crds: tuple[str, ...] = ()
    namespaces: tuple[str, ...] = ()


@dataclass(frozen=True)
class Dependency:
    """An installable operator."""

    name: str
    enabled: Enabled = Enabled.AUTO
    dependencies: Mapping[str, bool] = field(default_factory=_empty_map)
    olm: OlmConfig | None = None
    custom_resources: tuple[CustomResource, ...] = ()
    pod_selectors: tuple[LabelSelector, ...] = ()
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)

    def requires(self, dependency: str) -> bool:
        return self.dependencies.get(dependency, False)


@dataclass(frozen=True)
class PlatformConfig:
    """Complete configuration tree, read-only once decoded."""

    components: Mapping[str, Component] = field(default_factory=_empty_map)
    services: Mapping[str, Service] = field(default_factory=_empty_map)
    dependencies: Mapping[str, Dependency] = field(default_factory=_empty_map)


def _mapping(value: Any, path: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigSchemaError(path, f"expected a mapping, got {type(value).__name__}")
    for key in value:
        if not isinstance(key, str):
            raise ConfigSchemaError(path, f"keys must be strings, got {key!r}")
    return value


def _sequence(value: Any, path: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigSchemaError(path, f"expected a list, got {type(value).__name__}")
    return value


def _string(value: Any, path: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigSchemaError(path, f"expected a non-empty string, got {value!r}")
    return value


def _optional_string(value: Any, path: str) -> str | None:
    if value is None:
        return None
    return _string(value, path)


def _boolean(value: Any, path: str) -> bool:
    """Decode a YAML boolean, also accepting the strings "true"/"false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in (ENABLED_TRUE, ENABLED_FALSE):
        return value.lower() == ENABLED_TRUE
    raise ConfigSchemaError(path, f"expected true or false, got {value!r}")


def _requirement_map(value: Any, path: str) -> Mapping[str, bool]:
    """Decode a ``dependencies`` map. A listed key with no value means required."""
    result: dict[str, bool] = {}
    for name, required in _mapping(value, path).items():
        result[name] = True if required is None else _boolean(required, f"{path}.{name}")
    return MappingProxyType(result)


def parse_enabled(value: Any, path: str = "enabled") -> Enabled:
    if value is None:
        return Enabled.AUTO
    if isinstance(value, bool):
        return Enabled.TRUE if value else Enabled.FALSE
    if isinstance(value, str):
        try:
            return Enabled(value.lower())
        except ValueError:
            pass
    raise ConfigSchemaError(
        path, f"expected one of true, false, auto, got {value!r}"
    )


def parse_management_state(value: Any, path: str = "managementState") -> ManagementState:
    if value is None:
        return ManagementState.REMOVED
    try:
        return ManagementState(value)
    except ValueError:
        raise ConfigSchemaError(
            path,
            f"expected one of {', '.join(s.value for s in ManagementState)}, got {value!r}",
        ) from None


def _parse_requirer(cls: type[Requirer], name: str, raw: Any, path: str) -> Requirer:
    data = _mapping(raw, path)
    state_key = "managementState" if "managementState" in data else "state"
    return cls(
        name=name,
        management_state=parse_management_state(data.get(state_key), f"{path}.{state_key}"),
        dependencies=_requirement_map(data.get("dependencies"), f"{path}.dependencies"),
    )


def _parse_operator_group(value: Any, namespace: str, path: str) -> OperatorGroupConfig | None:
    if value is False:
        return None
    data = _mapping(value, path)
    all_namespaces = _boolean(data.get("allNamespaces", False), f"{path}.allNamespaces")
    targets = [
        _string(ns, f"{path}.targetNamespaces[{i}]")
        for i, ns in enumerate(_sequence(data.get("targetNamespaces"), f"{path}.targetNamespaces"))
    ]
    if not all_namespaces and not targets:
        targets = [namespace]
    return OperatorGroupConfig(
        name=_optional_string(data.get("name"), f"{path}.name") or namespace,
        all_namespaces=all_namespaces,
        target_namespaces=() if all_namespaces else tuple(targets),
    )


def _parse_subscription(value: Any, path: str) -> SubscriptionConfig:
    data = _mapping(value, path)
    if not data:
        raise ConfigSchemaError(path, "missing required subscription")
    name = _string(data.get("name"), f"{path}.name")
    return SubscriptionConfig(
        name=name,
        package=_optional_string(data.get("package"), f"{path}.package") or name,
        channel=_string(data.get("channel"), f"{path}.channel"),
        source=_optional_string(data.get("source"), f"{path}.source") or DEFAULT_CATALOG,
        source_namespace=(
            _optional_string(data.get("sourceNamespace"), f"{path}.sourceNamespace")
            or DEFAULT_CATALOG_NAMESPACE
        ),
        starting_csv=_optional_string(data.get("startingCSV"), f"{path}.startingCSV"),
        install_plan_approval=(
            _optional_string(data.get("installPlanApproval"), f"{path}.installPlanApproval")
            or DEFAULT_INSTALL_PLAN_APPROVAL
        ),
    )


def _parse_olm(value: Any, path: str) -> OlmConfig | None:
    if value is None:
        return None
    data = _mapping(value, path)
    namespace = _string(data.get("namespace"), f"{path}.namespace")
    return OlmConfig(
        namespace=namespace,
        subscription=_parse_subscription(data.get("subscription"), f"{path}.subscription"),
        create_namespace=_boolean(data.get("createNamespace", True), f"{path}.createNamespace"),
        operator_group=_parse_operator_group(
            data.get("operatorGroup"), namespace, f"{path}.operatorGroup"
        ),
    )


def _parse_custom_resources(value: Any, path: str) -> tuple[CustomResource, ...]:
    resources = []
    for i, raw in enumerate(_sequence(value, path)):
        item_path = f"{path}[{i}]"
        data = _mapping(raw, item_path)
        manifest = _mapping(data.get("manifest"), f"{item_path}.manifest")
        for key in ("apiVersion", "kind"):
            _string(manifest.get(key), f"{item_path}.manifest.{key}")
        metadata = _mapping(manifest.get("metadata"), f"{item_path}.manifest.metadata")
        _string(metadata.get("name"), f"{item_path}.manifest.metadata.name")
        resources.append(
            CustomResource(
                crd=_string(data.get("crd"), f"{item_path}.crd"), manifest=freeze(manifest)
            )
        )
    return tuple(resources)


def _string_list(value: Any, path: str) -> tuple[str, ...]:
    return tuple(_string(v, f"{path}[{i}]") for i, v in enumerate(_sequence(value, path)))


def _label_selectors(value: Any, path: str) -> tuple[LabelSelector, ...]:
    """Decode selectors given either as ``"k=v"`` or ``{selector, namespace}``."""
    selectors = []
    for i, raw in enumerate(_sequence(value, path)):
        item_path = f"{path}[{i}]"
        if isinstance(raw, str):
            selectors.append(LabelSelector(_string(raw, item_path)))
            continue
        data = _mapping(raw, item_path)
        selectors.append(
            LabelSelector(
                selector=_string(data.get("selector"), f"{item_path}.selector"),
                namespace=_optional_string(data.get("namespace"), f"{item_path}.namespace"),
            )
        )
    return tuple(selectors)


def _parse_cleanup(value: Any, path: str) -> CleanupConfig:
    data = _mapping(value, path)
    finalizers = []
    for i, raw in enumerate(_sequence(data.get("finalizers"), f"{path}.finalizers")):
        item_path = f"{path}.finalizers[{i}]"
        item = _mapping(raw, item_path)
        finalizers.append(
            FinalizerPatch(
                resource=_string(item.get("resource"), f"{item_path}.resource"),
                name=_string(item.get("name"), f"{item_path}.name"),
                namespace=_optional_string(item.get("namespace"), f"{item_path}.namespace"),
            )
        )
    return CleanupConfig(
        finalizers=tuple(finalizers),
        deployments=_label_selectors(data.get("deployments"), f"{path}.deployments"),
        crd_selectors=_string_list(data.get("crdSelectors"), f"{path}.crdSelectors"),
        crds=_string_list(data.get("crds"), f"{path}.crds"),
        namespaces=_string_list(data.get("namespaces"), f"{path}.namespaces"),
    )


def _parse_dependency(name: str, raw: Any, path: str) -> Dependency:
    data = _mapping(raw, path)
    verify = _mapping(data.get("verify"), f"{path}.verify")
    return Dependency(
        name=name,
        enabled=parse_enabled(data.get("enabled"), f"{path}.enabled"),
        dependencies=_requirement_map(data.get("dependencies"), f"{path}.dependencies"),
        olm=_parse_olm(data.get("olm"), f"{path}.olm"),
        custom_resources=_parse_custom_resources(
            data.get("customResources"), f"{path}.customResources"
        ),
        pod_selectors=_label_selectors(verify.get("podSelectors"), f"{path}.verify.podSelectors"),
        cleanup=_parse_cleanup(data.get("cleanup"), f"{path}.cleanup"),
    )


def load_config_file(config_path: str | Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the file contains invalid YAML
    """
    config_path = Path(config_path).expanduser()

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config = yaml.safe_load(f)

    return config or {}


def parse_config(raw_config: Any) -> PlatformConfig:
    """
    Parse raw configuration dictionary into PlatformConfig.

    Args:
        raw_config: Dictionary from YAML file

    Returns:
        PlatformConfig object with parsed values

    Raises:
        ConfigSchemaError: If a field has the wrong type or an unknown value
    """
    data = _mapping(raw_config, "<root>")
    components = {
        name: _parse_requirer(Component, name, raw, f"components.{name}")
        for name, raw in _mapping(data.get("components"), "components").items()
    }
    services = {
        name: _parse_requirer(Service, name, raw, f"services.{name}")
        for name, raw in _mapping(data.get("services"), "services").items()
    }
    dependencies = {
        name: _parse_dependency(name, raw, f"dependencies.{name}")
        for name, raw in _mapping(data.get("dependencies"), "dependencies").items()
    }
    logger.debug(
        "Parsed %d component(s), %d service(s), %d dependency(ies)",
        len(components), len(services), len(dependencies),
    )
    return PlatformConfig(
        components=MappingProxyType(components),
        services=MappingProxyType(services),
        dependencies=MappingProxyType(dependencies),
    )


def load_platform_config(config_path: str | Path) -> PlatformConfig:
    """
    Load platform configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        PlatformConfig object with loaded values
    """
    raw_config = load_config_file(config_path)
    return parse_config(raw_config)
