"""Exceptions for dependency resolution and operator installation."""

from __future__ import annotations


class DependencyError(RuntimeError):
    """Raised when dependency resolution or operator installation fails."""


class ConfigSchemaError(DependencyError):
    """Raised when the configuration has a wrong type or an unknown value."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class UnknownDependencyError(DependencyError):
    """Raised when a decision is requested for an undeclared dependency."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown dependency '{name}' (not declared under 'dependencies')")
        self.name = name


class CyclicDependencyError(DependencyError):
    """Raised when dependencies require each other in a loop."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Cyclic dependency detected: {' -> '.join(cycle)}")
        self.cycle = cycle


class VerificationError(DependencyError):
    """Raised when an installed operator does not become ready."""


class UnknownReferenceWarning(UserWarning):
    """A ``dependencies`` map references a name that is not declared.

    Non-fatal: the resolver treats the reference as not required.
    """

    def __init__(self, source: str, reference: str) -> None:
        super().__init__(
            f"{source} references unknown dependency '{reference}'"
        )
        self.source = source
        self.reference = reference
