"""Calls to external tools - cluster scripts, `gcloud` and `kubectl`."""

import json
import logging
import os
import pathlib as pl

from cluster_deployer.deployer import common
from cluster_deployer.utils import helpers
from cluster_deployer.utils import types as ttypes

LOGGER = logging.getLogger(__name__)


def build_env(
    *,
    project: str,
    zone: str,
    network: str,
    instance_prefix: str,
    num_nodes: int,
    kubeconfig: pl.Path,
    clusters_layout: ttypes.TopologyType,
) -> ttypes.EnvType:
    """Return environment for the cluster scripts, based on the current environment."""
    env = dict(os.environ)
    env.update(
        {
            "CLOUDSDK_CORE_PROJECT": project,
            "KUBE_GCE_ZONE": zone,
            "KUBE_GCE_NETWORK": network,
            "KUBE_GCE_INSTANCE_PREFIX": instance_prefix,
            "NUM_NODES": str(num_nodes),
            "KUBECONFIG": str(kubeconfig),
            "CLUSTERS_LAYOUT": json.dumps(clusters_layout, sort_keys=True),
        }
    )
    return env


def enable_compute_api(project: str) -> None:
    """Enable the compute API for the project.

    The API is not enabled in freshly created projects. Enabling already enabled API is a fast
    no-op.
    """
    try:
        helpers.run_command_inherit(
            [
                "gcloud",
                "services",
                "enable",
                "compute.googleapis.com",
                f"--project={project}",
            ]
        )
    except helpers.CommandError as exc:
        msg = f"Failed to enable compute API: {exc}"
        raise common.ComputeAPIError(msg) from exc


def run_kube_up(*, repo_root: pl.Path, env: ttypes.EnvType) -> None:
    script = repo_root.joinpath(*common.KUBE_UP_SCRIPT)
    LOGGER.debug(f"About to run script at: {script}")
    try:
        helpers.run_command_inherit([script], env=env)
    except helpers.CommandError as exc:
        msg = f"Error encountered during {script}: {exc}"
        raise common.BringUpError(msg) from exc


def run_kube_down(*, repo_root: pl.Path, env: ttypes.EnvType) -> None:
    script = repo_root.joinpath(*common.KUBE_DOWN_SCRIPT)
    LOGGER.debug(f"About to run script at: {script}")
    try:
        helpers.run_command_inherit([script], env=env)
    except helpers.CommandError as exc:
        msg = f"Error encountered during {script}: {exc}"
        raise common.TeardownError(msg) from exc


def is_up(*, kubectl_path: pl.Path, env: ttypes.EnvType) -> bool:
    """Check that the cluster has at least one node registered.

    Raises `helpers.CommandError` when the nodes cannot be listed.
    """
    stdout = helpers.run_command([kubectl_path, "get", "nodes", "-o=name"], env=env)
    nodes = [n for n in stdout.decode().splitlines() if n.strip()]
    LOGGER.debug(f"Cluster nodes: {nodes}")
    return bool(nodes)


def get_firewall_rule_name(instance_prefix: str, suffix: str) -> str:
    return f"{instance_prefix}-{suffix}"


def create_firewall_rule(
    *, project: str, network: str, instance_prefix: str, suffix: str, allow: str
) -> None:
    rule_name = get_firewall_rule_name(instance_prefix, suffix)
    try:
        helpers.run_command_inherit(
            [
                "gcloud",
                "compute",
                "firewall-rules",
                "create",
                rule_name,
                f"--project={project}",
                f"--network={network}",
                f"--allow={allow}",
                f"--target-tags={instance_prefix}-minion",
            ]
        )
    except helpers.CommandError as exc:
        msg = f"Failed to create firewall rule '{rule_name}': {exc}"
        raise common.NetworkRuleError(msg) from exc


def delete_firewall_rule(*, project: str, instance_prefix: str, suffix: str) -> bool:
    """Delete firewall rule, return `False` if it couldn't be deleted."""
    rule_name = get_firewall_rule_name(instance_prefix, suffix)
    try:
        helpers.run_command_inherit(
            [
                "gcloud",
                "compute",
                "firewall-rules",
                "delete",
                rule_name,
                f"--project={project}",
                "--quiet",
            ]
        )
    except helpers.CommandError as exc:
        LOGGER.warning(f"Failed to delete firewall rule '{rule_name}': {exc}")
        return False
    return True


def dump_cluster_logs(*, repo_root: pl.Path, logs_dir: pl.Path, env: ttypes.EnvType) -> None:
    """Collect cluster logs into `logs_dir`.

    Raises `helpers.CommandError` on failure.
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    script = repo_root.joinpath(*common.LOG_DUMP_SCRIPT)
    LOGGER.debug(f"About to dump cluster logs to '{logs_dir}'")
    helpers.run_command_inherit([script, logs_dir], env=env)
