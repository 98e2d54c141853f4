"""Deployer of test clusters on GCE.

The `Deployer` is the main interface. It holds the options it was created with and the state
resolved by initialization (repo root, leased projects, clusters layout). The actual cluster
creation is delegated to the `cluster/kube-up.sh` script.
"""

import contextlib
import dataclasses
import enum
import logging
import pathlib as pl
import threading
import typing as tp

from cluster_deployer.deployer import boskos
from cluster_deployer.deployer import common
from cluster_deployer.deployer import gce
from cluster_deployer.deployer import initializer
from cluster_deployer.deployer import lease_records
from cluster_deployer.deployer import topology
from cluster_deployer.utils import configuration
from cluster_deployer.utils import framework_log
from cluster_deployer.utils import helpers
from cluster_deployer.utils import types as ttypes

LOGGER = logging.getLogger(__name__)

DEFAULT_INSTANCE_PREFIX = "kubernetes"


class Operation(enum.StrEnum):
    UP = "up"
    DOWN = "down"
    UP_DOWN = "up+down"


@dataclasses.dataclass
class DeployerOptions:
    """Deployment configuration."""

    operation: Operation = Operation.UP
    # With multiple projects, names must be in `<name>-<projectIndex>` format
    clusters: list[str] = dataclasses.field(default_factory=list)
    # When empty, projects are leased from Boskos
    projects: list[str] = dataclasses.field(default_factory=list)
    boskos_projects_requested: int = configuration.BOSKOS_PROJECTS_REQUESTED
    boskos_location: str = configuration.BOSKOS_LOCATION
    boskos_acquire_timeout_seconds: int = configuration.BOSKOS_ACQUIRE_TIMEOUT_SECONDS
    num_nodes: int = configuration.NUM_NODES
    repo_root: pl.Path | None = None
    zone: str = configuration.GCE_ZONE
    network: str = configuration.GCE_NETWORK
    enable_compute_api: bool = False
    artifacts_dir: pl.Path = configuration.ARTIFACTS_DIR

    @property
    def should_up(self) -> bool:
        return self.operation in (Operation.UP, Operation.UP_DOWN)

    @property
    def should_down(self) -> bool:
        return self.operation in (Operation.DOWN, Operation.UP_DOWN)


class Deployer:
    """Set of methods for bringing test clusters up and down."""

    def __init__(
        self,
        options: DeployerOptions,
        *,
        boskos_factory: tp.Callable[[str], boskos.BoskosClient] = boskos.new_client,
    ) -> None:
        self.options = options
        self.boskos_factory = boskos_factory
        self.boskos: boskos.BoskosClient | None = None
        # Setting the event stops heartbeats of all leases
        self.heartbeat_close = threading.Event()

        # Resolved by initialization
        self.repo_root: pl.Path | None = None
        self.kubectl_path: pl.Path | None = None
        self.projects: list[str] = list(options.projects)
        self.clusters_layout: ttypes.TopologyType = {}

        self._init = initializer.Once(lambda: initializer.initialize(self))

    def init(self) -> None:
        """Initialize the deployer, the work is done only on the first call."""
        self._init()

    @property
    def gcp_project(self) -> str:
        if not self.projects:
            msg = "No GCP project available, deployer not initialized."
            raise RuntimeError(msg)
        return self.projects[0]

    @property
    def instance_prefix(self) -> str:
        project_clusters = self.clusters_layout.get(self.gcp_project)
        if project_clusters:
            return project_clusters[0]
        if not self.options.clusters:
            return DEFAULT_INSTANCE_PREFIX

        # No cluster assigned to the first project, use the first cluster name without the index
        cluster_name = self.options.clusters[0]
        if len(self.projects) > 1:
            cluster_name, __ = topology.split_cluster_name(cluster_name)
        return cluster_name

    @property
    def cluster_logs_dir(self) -> pl.Path:
        return self.options.artifacts_dir / common.CLUSTER_LOGS_DIRNAME

    def _get_repo_root(self) -> pl.Path:
        if not self.repo_root:
            msg = "Repo root not set, deployer not initialized."
            raise RuntimeError(msg)
        return self.repo_root

    def build_env(self) -> ttypes.EnvType:
        return gce.build_env(
            project=self.gcp_project,
            zone=self.options.zone,
            network=self.options.network,
            instance_prefix=self.instance_prefix,
            num_nodes=self.options.num_nodes,
            kubeconfig=self.options.artifacts_dir / "kubeconfig",
            clusters_layout=self.clusters_layout,
        )

    def is_up(self) -> bool:
        """Check if the cluster is up.

        Raises `helpers.CommandError` when the state of the cluster cannot be determined.
        """
        self.init()
        if not self.kubectl_path:
            msg = "Path to kubectl not set, deployer not initialized."
            raise RuntimeError(msg)
        return gce.is_up(kubectl_path=self.kubectl_path, env=self.build_env())

    def dump_cluster_logs(self) -> None:
        gce.dump_cluster_logs(
            repo_root=self._get_repo_root(), logs_dir=self.cluster_logs_dir, env=self.build_env()
        )

    @contextlib.contextmanager
    def _dump_logs_on_exit(self) -> tp.Iterator[None]:
        """Dump cluster logs on exit, without masking any error from the wrapped block."""
        try:
            yield
        finally:
            try:
                self.dump_cluster_logs()
            except Exception as exc:
                LOGGER.warning(f"Dumping cluster logs at the end of up() failed: {exc}")
                framework_log.framework_logger().warning(f"Dumping cluster logs failed: {exc}")

    def _check_health(self) -> None:
        """Log whether the cluster is up, never fail."""
        try:
            cluster_up = self.is_up()
        except (helpers.CommandError, RuntimeError) as exc:
            LOGGER.warning(f"Failed to check if cluster is up: {exc}")
            return

        if cluster_up:
            LOGGER.info("Cluster reported as up.")
        else:
            LOGGER.error("Cluster reported as down.")

    def up(self) -> None:
        """Bring the cluster up."""
        LOGGER.info("Deployer starting up().")

        try:
            self.init()
        except common.DeployerError as exc:
            msg = f"Up failed to init: {exc}"
            raise type(exc)(msg) from exc

        if self.options.enable_compute_api:
            LOGGER.debug(f"Enabling compute API for project '{self.gcp_project}'.")
            try:
                gce.enable_compute_api(self.gcp_project)
            except common.ComputeAPIError as exc:
                msg = f"Up couldn't enable compute API: {exc}"
                raise common.ComputeAPIError(msg) from exc

        with self._dump_logs_on_exit():
            try:
                gce.run_kube_up(repo_root=self._get_repo_root(), env=self.build_env())
            except common.BringUpError as exc:
                framework_log.framework_logger().error(f"Cluster bring-up failed: {exc}")
                raise

            self._check_health()

            for suffix, allow in (
                (common.NODEPORTS_RULE_SUFFIX, common.NODEPORTS_ALLOW),
                (common.HOSTPORTS_RULE_SUFFIX, common.HOSTPORTS_ALLOW),
            ):
                LOGGER.debug(f"About to create {suffix} firewall rule.")
                gce.create_firewall_rule(
                    project=self.gcp_project,
                    network=self.options.network,
                    instance_prefix=self.instance_prefix,
                    suffix=suffix,
                    allow=allow,
                )

    def _release_leases(self) -> list[str]:
        """Release leases held by this deployer or recorded by an earlier run."""
        artifacts_dir = self.options.artifacts_dir
        recorded = lease_records.load(artifacts_dir)
        held = self.boskos.acquired if self.boskos else []
        to_release = list(dict.fromkeys([*held, *recorded]))
        if not to_release:
            return []

        if self.boskos is None:
            self.boskos = self.boskos_factory(self.options.boskos_location)

        failed = []
        for name in to_release:
            try:
                self.boskos.release(name)
            except common.AcquisitionError:
                LOGGER.exception(f"Failed to release project '{name}'.")
                failed.append(name)
                continue
            lease_records.remove(artifacts_dir, name)
        return failed

    def down(self) -> None:
        """Tear the cluster down and give the leased projects back."""
        LOGGER.info("Deployer starting down().")

        try:
            self.init()
        except common.DeployerError as exc:
            msg = f"Down failed to init: {exc}"
            raise type(exc)(msg) from exc

        try:
            gce.run_kube_down(repo_root=self._get_repo_root(), env=self.build_env())
        finally:
            for suffix in (common.NODEPORTS_RULE_SUFFIX, common.HOSTPORTS_RULE_SUFFIX):
                gce.delete_firewall_rule(
                    project=self.gcp_project, instance_prefix=self.instance_prefix, suffix=suffix
                )

        self.heartbeat_close.set()
        failed = self._release_leases()
        if failed:
            msg = f"Failed to release projects: {', '.join(failed)}"
            raise common.TeardownError(msg)

    def close(self) -> None:
        """Stop heartbeats of all leases. The leases are not released."""
        self.heartbeat_close.set()
