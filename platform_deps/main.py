#!/usr/bin/env python3
"""
Resolve, render, install, verify and remove platform operator dependencies.

Each command is responsible for a single task and does NOT trigger the next one.

Usage:
  platform-deps --config values.yaml resolve [--explain]   # show install decisions
  platform-deps --config values.yaml lint [--strict]       # check references and cycles
  platform-deps --config values.yaml render [-o out.yaml]  # print OLM manifests
  platform-deps --config values.yaml install               # apply until CRDs converge
  platform-deps --config values.yaml verify                # wait for CSVs and pods
  platform-deps --config values.yaml cleanup [--all]       # remove installed operators
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

import yaml
from kubernetes.client.rest import ApiException

from platform_deps.config import load_platform_config
from platform_deps.constants import DEFAULT_MAX_PASSES, DEFAULT_PASS_INTERVAL, VERIFY_TIMEOUT
from platform_deps.errors import DependencyError
from platform_deps.resolver import DependencyResolver, lint_config

COMMANDS = ("resolve", "lint", "render", "install", "verify", "cleanup")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="platform-deps",
        description="Manage the operator dependencies of the AI platform.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config values.yaml resolve --explain
  %(prog)s --config values.yaml render --assume-crds -o manifests.yaml
  %(prog)s --config values.yaml install
""",
    )
    parser.add_argument(
        "-c", "--config",
        dest="config_file",
        required=True,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--kubeconfig",
        default=os.environ.get("KUBECONFIG"),
        help="Kubeconfig for cluster commands (default: $KUBECONFIG).",
    )
    parser.add_argument(
        "--cli",
        default="oc",
        choices=("oc", "kubectl"),
        help="Cluster CLI used by install and cleanup.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", help="Action to perform")

    resolve = subparsers.add_parser("resolve", help="Show which dependencies will be installed")
    resolve.add_argument("--explain", action="store_true", help="Show what requires each dependency")

    lint = subparsers.add_parser("lint", help="Check for unknown references and cycles")
    lint.add_argument("--strict", action="store_true", help="Fail on warnings")

    render = subparsers.add_parser("render", help="Render OLM manifests for selected dependencies")
    render.add_argument("-o", "--output", help="Write manifests to a file instead of stdout")
    probe = render.add_mutually_exclusive_group()
    probe.add_argument(
        "--assume-crds", action="store_true",
        help="Render custom resources without checking that their CRDs exist",
    )
    probe.add_argument(
        "--probe-cluster", action="store_true",
        help="Render custom resources whose CRDs are established in the cluster",
    )

    install = subparsers.add_parser("install", help="Install selected dependencies via OLM")
    install.add_argument("--max-passes", type=int, default=DEFAULT_MAX_PASSES)
    install.add_argument("--pass-interval", type=int, default=DEFAULT_PASS_INTERVAL)

    verify = subparsers.add_parser("verify", help="Verify installed dependencies are ready")
    verify.add_argument("--timeout", type=int, default=VERIFY_TIMEOUT)

    cleanup = subparsers.add_parser("cleanup", help="Remove installed dependencies")
    cleanup.add_argument(
        "--all", dest="include_all", action="store_true",
        help="Remove every declared dependency, not only the selected ones",
    )

    return parser.parse_args(argv)


def _oc_runner(args: argparse.Namespace):
    from shared.oc_runner import LocalOcRunner

    return LocalOcRunner(args.kubeconfig, cli=args.cli)


def cmd_resolve(config, explain: bool) -> int:
    resolver = DependencyResolver(config)
    width = max((len(name) for name in config.dependencies), default=10)
    for name in resolver.install_order():
        dependency = config.dependencies[name]
        decision = resolver.should_install(name)
        line = f"  {name:<{width}}  enabled={dependency.enabled.value:<5}  install={str(decision).lower()}"
        if explain and decision:
            sources = resolver.required_by(name)
            if sources:
                line += f"  required by: {', '.join(sources)}"
        print(line)
    return 0


def cmd_lint(config, strict: bool) -> int:
    findings = lint_config(config)
    for finding in findings:
        print(f"Warning: {finding}")
    if not findings:
        print("Configuration OK.")
    return 1 if strict and findings else 0


def cmd_render(args: argparse.Namespace, config) -> int:
    from platform_deps.install import crd_established
    from platform_deps.render import render_manifests, to_yaml

    crd_exists = None
    if args.assume_crds:
        crd_exists = lambda crd: True  # noqa: E731
    elif args.probe_cluster:
        oc = _oc_runner(args)
        crd_exists = lambda crd: crd_established(oc, crd)  # noqa: E731

    result = render_manifests(config, crd_exists=crd_exists)
    content = to_yaml(result.documents)
    if args.output:
        Path(args.output).write_text(content)
        print(f"Wrote {len(result.documents)} manifest(s) to {args.output}")
    else:
        sys.stdout.write(content)
    for s in result.skipped:
        print(f"Skipped {s.kind} {s.name} ({s.dependency}): CRD {s.crd} not available", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    command = args.command
    if not command:
        print(f"Error: no command specified. Use one of: {', '.join(COMMANDS)}", file=sys.stderr)
        return 1

    try:
        config = load_platform_config(args.config_file)

        if command == "resolve":
            return cmd_resolve(config, args.explain)

        elif command == "lint":
            return cmd_lint(config, args.strict)

        elif command == "render":
            return cmd_render(args, config)

        elif command == "install":
            from platform_deps.install import install_dependencies

            install_dependencies(
                _oc_runner(args),
                config,
                max_passes=args.max_passes,
                pass_interval=args.pass_interval,
            )

        elif command == "verify":
            from platform_deps.verify import verify_dependencies
            from shared.kube import api_clients

            core_api, custom_api = api_clients(args.kubeconfig)
            verify_dependencies(config, core_api, custom_api, timeout=args.timeout)

        elif command == "cleanup":
            from platform_deps.cleanup import cleanup_dependencies

            cleanup_dependencies(_oc_runner(args), config, include_all=args.include_all)

    except (
        FileNotFoundError,
        yaml.YAMLError,
        DependencyError,
        RuntimeError,
        ValueError,
        subprocess.TimeoutExpired,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ApiException as e:
        print(f"Error: Kubernetes API request failed ({e.status} {e.reason})", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
