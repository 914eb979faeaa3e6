"""Credential loading through ``kubernetes.config``.

``load_kubeconfig`` merges a precedence list of kubeconfig files with the
client library's ``KubeConfigMerger`` and loads the selected context into a
``kubernetes.client.Configuration``. The first file to define a cluster,
user or context name, or a current-context, wins; relative file references
resolve against the file that defines them. ``load_in_cluster`` does the
same from the pod service account.

Every failure of the library loaders surfaces as ``ConfigurationError``.

Example:
    >>> configuration = new_configuration()
    >>> load_kubeconfig(["/home/me/.kube/config"], configuration, context="kind-vals")
    True
    >>> configuration.host
    'https://127.0.0.1:6443'
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import structlog
from kubernetes import client as k8s_client
from kubernetes.config import ConfigException, load_kube_config_from_dict
from kubernetes.config.incluster_config import InClusterConfigLoader
from kubernetes.config.kube_config import ConfigNode, KubeConfigMerger

from valsoperator_provider.errors import ConfigurationError

logger = structlog.get_logger(__name__)

OVERRIDE_CONTEXT = "valsoperator-override"


def new_configuration() -> k8s_client.Configuration:
    """Return a client ``Configuration`` with no server set."""
    return k8s_client.Configuration(host="")


def _override_context(
    merged: ConfigNode,
    *,
    context: str | None,
    cluster: str | None,
    auth_info: str | None,
) -> str:
    """Add a context combining the selected one with the cluster/user overrides."""
    name = context or merged.safe_get("current-context")
    entry: dict[str, Any] = {}
    if name:
        selected = merged["contexts"].get_with_name(name)
        entry = dict(selected["context"].value)
    if cluster:
        entry["cluster"] = cluster
    if auth_info:
        entry["user"] = auth_info
    merged.value["contexts"].append({"name": OVERRIDE_CONTEXT, "context": entry})
    return OVERRIDE_CONTEXT


def load_kubeconfig(
    paths: list[str],
    configuration: k8s_client.Configuration,
    *,
    explicit: bool = False,
    context: str | None = None,
    cluster: str | None = None,
    auth_info: str | None = None,
) -> bool:
    """Load the selected context of merged kubeconfig files into ``configuration``.

    Args:
        paths: Files in precedence order, ``~`` already expanded.
        configuration: Client configuration to populate.
        explicit: The single path was named explicitly; a missing file is an
            error instead of being skipped.
        context: Context to use instead of ``current-context``.
        cluster: Cluster entry overriding the context's cluster.
        auth_info: User entry overriding the context's user.

    Returns:
        False when none of ``paths`` exists, True once loaded.

    Raises:
        ConfigurationError: On a missing explicit file, a malformed file, an
            unknown context or cluster, or a cluster without a server. An
            unknown user is ignored.
    """
    existing = []
    for path in paths:
        if os.path.exists(path):
            existing.append(path)
        elif explicit:
            raise ConfigurationError("kubeconfig file does not exist", field=path)
        else:
            logger.debug("skipping missing kubeconfig", path=path)
    if not existing:
        return False

    try:
        merger = KubeConfigMerger(os.pathsep.join(existing))
        merged = merger.config
        # The first file naming a current-context wins, as kubectl merges.
        for document in merger.config_files.values():
            if document.get("current-context"):
                merged.value["current-context"] = document["current-context"]
                break
        active = context
        if cluster or auth_info:
            active = _override_context(
                merged, context=context, cluster=cluster, auth_info=auth_info
            )
        load_kube_config_from_dict(
            merged,
            context=active,
            client_configuration=configuration,
            persist_config=False,
        )
    except Exception as e:
        # The library reports malformed entries as TypeError/KeyError as well.
        raise ConfigurationError(f"invalid kubeconfig: {e}", field="kubeconfig") from e

    if not configuration.host:
        raise ConfigurationError("selected cluster has no server defined", field="kubeconfig")
    logger.debug(
        "loaded kubeconfig",
        paths=existing,
        context=context,
        cluster=cluster,
        auth_info=auth_info,
        host=configuration.host,
    )
    return True


def load_in_cluster(
    configuration: k8s_client.Configuration,
    *,
    environ: Mapping[str, str],
    token_path: str,
    ca_path: str,
) -> bool:
    """Load the pod service account into ``configuration``.

    Returns:
        False when not running inside a cluster, True once loaded.
    """
    loader = InClusterConfigLoader(
        token_filename=token_path,
        cert_filename=ca_path,
        environ=environ,
    )
    try:
        loader.load_and_set(configuration)
    except ConfigException as e:
        logger.debug("in-cluster configuration unavailable", reason=str(e))
        return False
    logger.debug("using in-cluster service account", host=configuration.host)
    return True


__all__ = ["OVERRIDE_CONTEXT", "load_in_cluster", "load_kubeconfig", "new_configuration"]
