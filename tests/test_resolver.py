#!/usr/bin/env python

import unittest

from platform_deps.config import parse_config
from platform_deps.errors import (
    CyclicDependencyError,
    UnknownDependencyError,
    UnknownReferenceWarning,
)
from platform_deps.resolver import (
    DependencyResolver,
    find_cycle,
    lint_config,
    resolve_all,
    should_install,
)


def make_config(components=None, services=None, dependencies=None):
    return parse_config(
        {
            "components": components or {},
            "services": services or {},
            "dependencies": dependencies or {},
        }
    )


class TestTriStateOverrides(unittest.TestCase):
    """Explicit enabled values short-circuit the graph walk."""

    def test_enabled_true_installs_with_empty_graph(self):
        """Verify that enabled=true installs even when nothing requires it."""
        config = make_config(dependencies={"certManager": {"enabled": "true"}})
        self.assertTrue(should_install("certManager", config))

    def test_enabled_true_ignores_removed_requirers(self):
        """Verify that enabled=true wins over a graph where every requirer is inactive."""
        config = make_config(
            components={"kserve": {"managementState": "Removed", "dependencies": {"certManager": True}}},
            dependencies={"certManager": {"enabled": True}},
        )
        self.assertTrue(should_install("certManager", config))

    def test_enabled_false_wins_over_every_requirer(self):
        """Verify that enabled=false is never installed even when all components require it."""
        config = make_config(
            components={
                "kserve": {"managementState": "Managed", "dependencies": {"certManager": True}},
                "kueue": {"managementState": "Unmanaged", "dependencies": {"certManager": True}},
            },
            services={"monitoring": {"managementState": "Managed", "dependencies": {"certManager": True}}},
            dependencies={
                "certManager": {"enabled": "false"},
                "rhcl": {"enabled": "true", "dependencies": {"certManager": True}},
            },
        )
        self.assertFalse(should_install("certManager", config))

    def test_auto_without_requirers_is_not_installed(self):
        """Verify that auto with no active requirer resolves to false."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"jobSet": True}}},
            dependencies={"certManager": {"enabled": "auto"}, "jobSet": {"enabled": "auto"}},
        )
        self.assertFalse(should_install("certManager", config))


class TestComponentAndServiceReachability(unittest.TestCase):
    """Active components and services pull in auto dependencies."""

    def test_managed_component_requires_dependency(self):
        """Verify that a Managed component requiring X installs X."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"X": True}}},
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertTrue(should_install("X", config))

    def test_unmanaged_component_counts_as_active(self):
        """Verify that Unmanaged components are active."""
        config = make_config(
            components={"kserve": {"managementState": "Unmanaged", "dependencies": {"X": True}}},
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertTrue(should_install("X", config))

    def test_removed_component_does_not_count(self):
        """Verify that a Removed component does not require anything."""
        config = make_config(
            components={"kserve": {"managementState": "Removed", "dependencies": {"X": True}}},
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertFalse(should_install("X", config))

    def test_component_without_state_is_inactive(self):
        """Verify that a component with no managementState is treated as Removed."""
        config = make_config(
            components={"kserve": {"dependencies": {"X": True}}},
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertFalse(should_install("X", config))

    def test_component_explicitly_not_requiring(self):
        """Verify that dependencies[X]=false on an active component does not require X."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"X": False}}},
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertFalse(should_install("X", config))

    def test_any_single_component_suffices(self):
        """Verify that one requiring component is enough among several."""
        config = make_config(
            components={
                "a": {"managementState": "Managed", "dependencies": {"X": False}},
                "b": {"managementState": "Removed", "dependencies": {"X": True}},
                "c": {"managementState": "Managed", "dependencies": {"X": True}},
            },
            dependencies={"X": {"enabled": "auto"}},
        )
        self.assertTrue(should_install("X", config))

    def test_active_service_requires_dependency(self):
        """Verify that services pull in dependencies like components do."""
        config = make_config(
            services={"monitoring": {"managementState": "Managed", "dependencies": {"tempo": True}}},
            dependencies={"tempo": {"enabled": "auto"}},
        )
        self.assertTrue(should_install("tempo", config))

    def test_removed_service_does_not_count(self):
        """Verify that a Removed service does not require anything."""
        config = make_config(
            services={"monitoring": {"managementState": "Removed", "dependencies": {"tempo": True}}},
            dependencies={"tempo": {"enabled": "auto"}},
        )
        self.assertFalse(should_install("tempo", config))

    def test_service_state_alias(self):
        """Verify that 'state' is accepted in place of 'managementState'."""
        config = make_config(
            services={"monitoring": {"state": "Managed", "dependencies": {"tempo": True}}},
            dependencies={"tempo": {"enabled": "auto"}},
        )
        self.assertTrue(should_install("tempo", config))


class TestTransitiveRequirements(unittest.TestCase):
    """Dependencies that will be installed pull in what they require."""

    def test_forced_dependency_pulls_in_requirement(self):
        """Verify that rhcl=true with certManager=auto installs certManager."""
        config = make_config(
            dependencies={
                "rhcl": {"enabled": "true", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
            }
        )
        self.assertTrue(should_install("certManager", config))

    def test_disabled_dependency_does_not_propagate(self):
        """Verify that a requirement from an enabled=false dependency is ignored."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"rhcl": True}}},
            dependencies={
                "rhcl": {"enabled": "false", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
            },
        )
        self.assertFalse(should_install("certManager", config))

    def test_auto_dependency_required_by_component_propagates(self):
        """Verify that an auto dependency activated by a component pulls in its requirements."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"rhcl": True}}},
            dependencies={
                "rhcl": {"enabled": "auto", "dependencies": {"certManager": True, "leaderWorkerSet": True}},
                "certManager": {"enabled": "auto"},
                "leaderWorkerSet": {"enabled": "auto"},
            },
        )
        decisions = resolve_all(config)
        self.assertEqual(
            decisions, {"rhcl": True, "certManager": True, "leaderWorkerSet": True}
        )

    def test_auto_dependency_inactive_does_not_propagate(self):
        """Verify that an auto dependency nobody requires does not pull in its requirements."""
        config = make_config(
            dependencies={
                "rhcl": {"enabled": "auto", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
            }
        )
        self.assertFalse(should_install("certManager", config))

    def test_auto_dependency_activated_by_service_propagates(self):
        """Verify that activation through a service counts for transitive requirements."""
        config = make_config(
            services={"gateway": {"managementState": "Managed", "dependencies": {"rhcl": True}}},
            dependencies={
                "rhcl": {"enabled": "auto", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
            },
        )
        self.assertTrue(should_install("certManager", config))

    def test_multi_level_chain(self):
        """Verify that requirements propagate through several auto dependencies."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"a": True}}},
            dependencies={
                "a": {"enabled": "auto", "dependencies": {"b": True}},
                "b": {"enabled": "auto", "dependencies": {"c": True}},
                "c": {"enabled": "auto"},
            },
        )
        self.assertTrue(should_install("c", config))

    def test_dependency_requirement_set_to_false(self):
        """Verify that dependencies[X]=false on an installed dependency does not require X."""
        config = make_config(
            dependencies={
                "rhcl": {"enabled": "true", "dependencies": {"certManager": False}},
                "certManager": {"enabled": "auto"},
            }
        )
        self.assertFalse(should_install("certManager", config))


class TestScenarios(unittest.TestCase):
    """End-to-end decision sets."""

    def test_kserve_scenario(self):
        """Verify the kserve scenario: everything requested except the autoscaler."""
        config = make_config(
            components={
                "kserve": {
                    "managementState": "Managed",
                    "dependencies": {
                        "certManager": True,
                        "leaderWorkerSet": True,
                        "jobSet": True,
                        "rhcl": True,
                        "customMetricsAutoscaler": False,
                    },
                }
            },
            dependencies={
                "certManager": {"enabled": "auto"},
                "leaderWorkerSet": {"enabled": "auto"},
                "jobSet": {"enabled": "auto"},
                "rhcl": {"enabled": "auto"},
                "customMetricsAutoscaler": {"enabled": "auto"},
            },
        )
        self.assertEqual(
            resolve_all(config),
            {
                "certManager": True,
                "leaderWorkerSet": True,
                "jobSet": True,
                "rhcl": True,
                "customMetricsAutoscaler": False,
            },
        )

    def test_opt_out_overrides_component_requirement(self):
        """Verify that certManager=false stays off while kserve requires it."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"certManager": True}}},
            dependencies={"certManager": {"enabled": "false"}},
        )
        self.assertFalse(should_install("certManager", config))

    def test_repeated_calls_are_identical(self):
        """Verify that resolution is a pure function of the configuration."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"rhcl": True}}},
            dependencies={
                "rhcl": {"enabled": "auto", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
                "jobSet": {"enabled": "auto"},
            },
        )
        resolver = DependencyResolver(config)
        first = resolver.resolve_all()
        self.assertEqual(first, resolver.resolve_all())
        self.assertEqual(first, resolve_all(config))
        self.assertEqual(should_install("jobSet", config), should_install("jobSet", config))


class TestResolverErrors(unittest.TestCase):
    """Undeclared names and cycles are rejected."""

    def test_unknown_dependency_name(self):
        """Verify that asking about an undeclared dependency raises."""
        config = make_config(dependencies={"certManager": {"enabled": "auto"}})
        with self.assertRaises(UnknownDependencyError) as ctx:
            should_install("kueue", config)
        self.assertEqual(ctx.exception.name, "kueue")

    def test_two_node_cycle(self):
        """Verify that a <-> b is detected when the resolver is built."""
        config = make_config(
            dependencies={
                "a": {"enabled": "auto", "dependencies": {"b": True}},
                "b": {"enabled": "auto", "dependencies": {"a": True}},
            }
        )
        with self.assertRaises(CyclicDependencyError) as ctx:
            DependencyResolver(config)
        self.assertEqual(ctx.exception.cycle, ["a", "b", "a"])

    def test_self_cycle(self):
        """Verify that a dependency requiring itself is a cycle."""
        config = make_config(dependencies={"a": {"enabled": "true", "dependencies": {"a": True}}})
        with self.assertRaises(CyclicDependencyError):
            should_install("a", config)

    def test_disabled_edges_are_not_cycles(self):
        """Verify that requirements set to false do not form cycles."""
        config = make_config(
            dependencies={
                "a": {"enabled": "auto", "dependencies": {"b": True}},
                "b": {"enabled": "auto", "dependencies": {"a": False}},
            }
        )
        self.assertIsNone(find_cycle(config))
        self.assertFalse(should_install("a", config))

    def test_cycle_through_disabled_dependency_is_rejected(self):
        """Verify that an enabled=false member does not hide a cycle from unrelated decisions."""
        config = make_config(
            dependencies={
                "a": {"enabled": "false", "dependencies": {"b": True}},
                "b": {"enabled": "auto", "dependencies": {"a": True}},
                "c": {"enabled": "true"},
            }
        )
        with self.assertRaises(CyclicDependencyError) as ctx:
            should_install("c", config)
        self.assertEqual(ctx.exception.cycle, ["a", "b", "a"])

    def test_unknown_reference_is_not_required(self):
        """Verify that references to undeclared names are ignored during resolution."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"missing": True, "x": True}}},
            dependencies={"x": {"enabled": "auto", "dependencies": {"alsoMissing": True}}},
        )
        self.assertTrue(should_install("x", config))


class TestExplainAndOrder(unittest.TestCase):
    """Requirer reporting and install ordering."""

    def setUp(self):
        self.config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"rhcl": True, "certManager": True}}},
            services={"gateway": {"managementState": "Managed", "dependencies": {"certManager": True}}},
            dependencies={
                "rhcl": {"enabled": "auto", "dependencies": {"leaderWorkerSet": True, "certManager": True}},
                "leaderWorkerSet": {"enabled": "auto", "dependencies": {"certManager": True}},
                "certManager": {"enabled": "auto"},
                "jobSet": {"enabled": "auto"},
            },
        )

    def test_required_by_lists_all_sources(self):
        """Verify that required_by names components, services and dependencies."""
        resolver = DependencyResolver(self.config)
        self.assertEqual(
            resolver.required_by("certManager"),
            [
                "component/kserve",
                "service/gateway",
                "dependency/rhcl",
                "dependency/leaderWorkerSet",
            ],
        )
        self.assertEqual(resolver.required_by("jobSet"), [])

    def test_install_order_puts_requirements_first(self):
        """Verify that requirements precede the dependencies that need them."""
        order = DependencyResolver(self.config).install_order()
        self.assertEqual(order, ["certManager", "leaderWorkerSet", "rhcl", "jobSet"])

    def test_installed_follows_install_order(self):
        """Verify that installed() filters install_order() by decision."""
        self.assertEqual(
            DependencyResolver(self.config).installed(),
            ["certManager", "leaderWorkerSet", "rhcl"],
        )


class TestLintConfig(unittest.TestCase):
    """Configuration lint findings."""

    def test_reports_unknown_references(self):
        """Verify that every undeclared reference is reported with its source."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"missing": True}}},
            services={"monitoring": {"dependencies": {"tempo": True}}},
            dependencies={"rhcl": {"enabled": "auto", "dependencies": {"gone": True}}},
        )
        with self.assertLogs("platform_deps.resolver", level="WARNING"):
            findings = lint_config(config)
        self.assertTrue(all(isinstance(f, UnknownReferenceWarning) for f in findings))
        self.assertEqual(
            [(f.source, f.reference) for f in findings],
            [
                ("component/kserve", "missing"),
                ("service/monitoring", "tempo"),
                ("dependency/rhcl", "gone"),
            ],
        )

    def test_clean_config(self):
        """Verify that a consistent configuration has no findings."""
        config = make_config(
            components={"kserve": {"managementState": "Managed", "dependencies": {"rhcl": True}}},
            dependencies={"rhcl": {"enabled": "auto"}},
        )
        self.assertEqual(lint_config(config), [])

    def test_cycle_is_fatal(self):
        """Verify that lint raises on cycles."""
        config = make_config(
            dependencies={
                "a": {"dependencies": {"b": True}},
                "b": {"dependencies": {"c": True}},
                "c": {"dependencies": {"a": True}},
            }
        )
        with self.assertRaises(CyclicDependencyError) as ctx:
            lint_config(config)
        self.assertEqual(ctx.exception.cycle, ["a", "b", "c", "a"])


if __name__ == "__main__":
    unittest.main()
