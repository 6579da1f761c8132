"""
Operator dependencies of the AI platform for OpenShift (OLM).

Decides which operators (cert-manager, Kueue, KEDA, LeaderWorkerSet, JobSet,
RHCL, the observability stack, ...) the enabled components need, and can:
- Render their Namespace, OperatorGroup, Subscription and custom resources
- Install them, re-rendering until custom resource definitions converge
- Verify their CSVs and pods, and remove them again
"""

from platform_deps.config import PlatformConfig, load_platform_config, parse_config
from platform_deps.resolver import DependencyResolver, lint_config, resolve_all, should_install

__all__ = [
    "DependencyResolver",
    "PlatformConfig",
    "lint_config",
    "load_platform_config",
    "parse_config",
    "resolve_all",
    "should_install",
]
