"""
Decide which operator dependencies must be installed.

Every dependency carries a tri-state ``enabled`` switch:

- ``true``: always installed
- ``false``: never installed, even when something requires it (the operator
  is expected to already exist in the cluster)
- ``auto``: installed only when an active component, an active service, or
  another dependency that will itself be installed requires it

Resolution is a pure read-only walk over an immutable PlatformConfig.
A DependencyResolver memoizes its decisions, so use one instance per
configuration and per thread; the module-level helpers build a fresh one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from platform_deps.config import Dependency, Enabled, PlatformConfig, Requirer
from platform_deps.constants import SOURCE_COMPONENT, SOURCE_DEPENDENCY, SOURCE_SERVICE
from platform_deps.errors import (
    CyclicDependencyError,
    UnknownDependencyError,
    UnknownReferenceWarning,
)

logger = logging.getLogger(__name__)


def find_cycle(config: PlatformConfig) -> list[str] | None:
    """Return the first dependency cycle as a path (``[a, b, a]``), or None.

    Only declared dependencies that are marked as required count as edges.
    """
    dependencies = config.dependencies
    done: set[str] = set()
    stack: list[str] = []

    def visit(name: str) -> list[str] | None:
        if name in done:
            return None
        if name in stack:
            return stack[stack.index(name):] + [name]
        stack.append(name)
        for required, needed in dependencies[name].dependencies.items():
            if needed and required in dependencies:
                cycle = visit(required)
                if cycle:
                    return cycle
        stack.pop()
        done.add(name)
        return None

    for name in dependencies:
        cycle = visit(name)
        if cycle:
            return cycle
    return None


def lint_config(config: PlatformConfig) -> list[UnknownReferenceWarning]:
    """Report references to undeclared dependencies.

    Raises:
        CyclicDependencyError: If the dependency graph has a cycle.
    """
    findings: list[UnknownReferenceWarning] = []
    sources: list[tuple[str, Mapping[str, bool]]] = []
    sources += [(f"{SOURCE_COMPONENT}/{c.name}", c.dependencies) for c in config.components.values()]
    sources += [(f"{SOURCE_SERVICE}/{s.name}", s.dependencies) for s in config.services.values()]
    sources += [(f"{SOURCE_DEPENDENCY}/{d.name}", d.dependencies) for d in config.dependencies.values()]
    for source, references in sources:
        for reference in references:
            if reference not in config.dependencies:
                finding = UnknownReferenceWarning(source, reference)
                logger.warning("%s", finding)
                findings.append(finding)

    cycle = find_cycle(config)
    if cycle:
        raise CyclicDependencyError(cycle)
    return findings


class DependencyResolver:
    """Install decisions for the dependencies of one PlatformConfig.

    The whole declared graph is checked for cycles on construction, whatever
    each dependency's ``enabled`` value. A loop through an ``enabled: false``
    dependency therefore rejects the configuration, even for decisions such
    as ``enabled: true`` that would never walk the loop. Break the cycle in
    the configuration rather than relying on an override to hide it.
    """

    def __init__(self, config: PlatformConfig) -> None:
        cycle = find_cycle(config)
        if cycle:
            raise CyclicDependencyError(cycle)
        self.config = config
        self._decisions: dict[str, bool] = {}
        self._in_progress: list[str] = []

    def _dependency(self, name: str) -> Dependency:
        try:
            return self.config.dependencies[name]
        except KeyError:
            raise UnknownDependencyError(name) from None

    def should_install(self, name: str) -> bool:
        """Return whether dependency ``name`` must be installed."""
        dependency = self._dependency(name)
        if name in self._decisions:
            return self._decisions[name]

        if dependency.enabled is Enabled.TRUE:
            decision = True
        elif dependency.enabled is Enabled.FALSE:
            decision = False
        else:
            if name in self._in_progress:
                raise CyclicDependencyError(
                    self._in_progress[self._in_progress.index(name):] + [name]
                )
            self._in_progress.append(name)
            try:
                decision = (
                    self.required_by_component(name)
                    or self.required_by_dependency(name)
                    or self.required_by_service(name)
                )
            finally:
                self._in_progress.pop()

        logger.debug("%s (enabled=%s) -> %s", name, dependency.enabled.value, decision)
        self._decisions[name] = decision
        return decision

    @staticmethod
    def _required_by_any(requirers: Mapping[str, Requirer], name: str) -> bool:
        return any(r.active and r.requires(name) for r in requirers.values())

    def required_by_component(self, name: str) -> bool:
        """True if any active component requires ``name``."""
        return self._required_by_any(self.config.components, name)

    def required_by_service(self, name: str) -> bool:
        """True if any active service requires ``name``."""
        return self._required_by_any(self.config.services, name)

    def required_by_dependency(self, name: str) -> bool:
        """True if another dependency that will be installed requires ``name``."""
        return bool(self._requiring_dependencies(name, first_only=True))

    def _requiring_dependencies(self, name: str, first_only: bool = False) -> list[str]:
        found = []
        for other in self.config.dependencies.values():
            if other.name == name or not other.requires(name):
                continue
            if other.enabled is Enabled.FALSE:
                continue
            if other.enabled is Enabled.TRUE or self.should_install(other.name):
                found.append(other.name)
                if first_only:
                    break
        return found

    def required_by(self, name: str) -> list[str]:
        """List every active requirer of ``name``, e.g. ``component/kserve``."""
        self._dependency(name)
        sources = [
            f"{SOURCE_COMPONENT}/{c.name}"
            for c in self.config.components.values()
            if c.active and c.requires(name)
        ]
        sources += [
            f"{SOURCE_SERVICE}/{s.name}"
            for s in self.config.services.values()
            if s.active and s.requires(name)
        ]
        sources += [f"{SOURCE_DEPENDENCY}/{d}" for d in self._requiring_dependencies(name)]
        return sources

    def resolve_all(self) -> dict[str, bool]:
        """Decisions for every declared dependency, in configuration order."""
        return {name: self.should_install(name) for name in self.config.dependencies}

    def install_order(self) -> list[str]:
        """Dependency names with requirements ahead of the dependencies needing them."""
        dependencies = self.config.dependencies
        order: list[str] = []
        seen: set[str] = set()

        def visit(name: str) -> None:
            if name in seen:
                return
            seen.add(name)
            for required, needed in dependencies[name].dependencies.items():
                if needed and required in dependencies:
                    visit(required)
            order.append(name)

        for name in dependencies:
            visit(name)
        return order

    def installed(self) -> list[str]:
        """Names of dependencies to install, in install order."""
        return [name for name in self.install_order() if self.should_install(name)]


def should_install(name: str, config: PlatformConfig) -> bool:
    """Return whether dependency ``name`` must be installed for ``config``."""
    return DependencyResolver(config).should_install(name)


def resolve_all(config: PlatformConfig) -> dict[str, bool]:
    return DependencyResolver(config).resolve_all()
