"""Kubernetes Python client configuration."""

from __future__ import annotations

import logging
import os

from kubernetes import client, config

logger = logging.getLogger(__name__)


def load_kubeconfig(kubeconfig_path: str | None = None) -> None:
    """Load Kubernetes configuration for the python client.

    An explicit path (or ``KUBECONFIG``) wins even when running inside a
    cluster, so that the intended cluster is targeted rather than the one
    hosting the CI job. Otherwise in-cluster config is tried, then the
    default kubeconfig.

    Raises:
        RuntimeError: If no configuration can be loaded.
    """
    kubeconfig = kubeconfig_path or os.environ.get("KUBECONFIG")
    if kubeconfig:
        try:
            config.load_kube_config(config_file=kubeconfig)
            logger.debug("Loaded kubeconfig %s", kubeconfig)
            return
        except config.ConfigException as exc:
            raise RuntimeError(
                f"Kubeconfig ({kubeconfig}) could not be loaded: {exc}"
            ) from exc
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster config")
        return
    except config.ConfigException:
        pass
    try:
        config.load_kube_config()
    except config.ConfigException as exc:
        raise RuntimeError(
            "Cannot load Kubernetes config. "
            f"Set KUBECONFIG or run inside a cluster. Error: {exc}"
        ) from exc


def api_clients(kubeconfig_path: str | None = None) -> tuple[client.CoreV1Api, client.CustomObjectsApi]:
    """Return (CoreV1Api, CustomObjectsApi) for the configured cluster."""
    load_kubeconfig(kubeconfig_path)
    return client.CoreV1Api(), client.CustomObjectsApi()
