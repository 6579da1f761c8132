"""
Constants for dependency resolution and OLM installation.
"""

# Tri-state values of dependencies.<name>.enabled
ENABLED_TRUE = "true"
ENABLED_FALSE = "false"
ENABLED_AUTO = "auto"

# managementState of components and services
STATE_MANAGED = "Managed"
STATE_UNMANAGED = "Unmanaged"
STATE_REMOVED = "Removed"
ACTIVE_STATES = frozenset({STATE_MANAGED, STATE_UNMANAGED})

# Prefixes used when reporting who requires a dependency
SOURCE_COMPONENT = "component"
SOURCE_SERVICE = "service"
SOURCE_DEPENDENCY = "dependency"

# OLM
OPERATOR_GROUP_API_VERSION = "operators.coreos.com/v1"
SUBSCRIPTION_API_VERSION = "operators.coreos.com/v1alpha1"
OLM_GROUP = "operators.coreos.com"
OLM_VERSION = "v1alpha1"
DEFAULT_CATALOG = "redhat-operators"
DEFAULT_CATALOG_NAMESPACE = "openshift-marketplace"
DEFAULT_INSTALL_PLAN_APPROVAL = "Automatic"

# Multi-pass install: CRs are rendered once their CRDs are established
DEFAULT_MAX_PASSES = 3
DEFAULT_PASS_INTERVAL = 30

# Timeouts (seconds)
OPERATOR_TIMEOUT = 600
OPERATOR_POLL_INTERVAL = 10
VERIFY_TIMEOUT = 300
VERIFY_POLL_INTERVAL = 5
