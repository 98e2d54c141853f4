"""One-time initialization of the deployer.

Initialization can be requested from several places (before `up`, before `down`, from `is_up`),
but the work is done only once per deployer. All callers get the same outcome, including the
same exception if the initialization failed.

For `up` the initialization verifies flags, acquires projects from Boskos when none were
provided and distributes clusters across the projects. For `down` it verifies the flags needed
for tear-down only.
"""

import logging
import os
import pathlib as pl
import threading
import types
import typing as tp

from cluster_deployer.deployer import common
from cluster_deployer.deployer import lease_records
from cluster_deployer.deployer import topology
from cluster_deployer.utils import configuration
from cluster_deployer.utils import framework_log

if tp.TYPE_CHECKING:
    from cluster_deployer.deployer import deployer as dep

LOGGER = logging.getLogger(__name__)


class Once:
    """Run a function at most once and remember its outcome.

    Concurrent callers block until the first run finishes.
    """

    def __init__(self, func: tp.Callable[[], None]) -> None:
        self._func = func
        self._lock = threading.RLock()
        self._done = False
        self._running = False
        self._error: BaseException | None = None
        self._error_tb: types.TracebackType | None = None

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> None:
        with self._lock:
            if self._running:
                msg = "Initialization called from within itself"
                raise RuntimeError(msg)
            if not self._done:
                self._running = True
                try:
                    self._func()
                except BaseException as exc:
                    # Interrupts included, initialization is not finished for later callers either
                    self._error = exc
                    self._error_tb = exc.__traceback__
                finally:
                    self._running = False
                    self._done = True

        if self._error is not None:
            # The same exception object is raised every time, don't let its traceback grow
            raise self._error.with_traceback(self._error_tb)


def resolve_repo_root(repo_root: pl.Path | None) -> pl.Path:
    """Return the root of the checkout with the cluster scripts."""
    if repo_root:
        root = pl.Path(repo_root).expanduser().resolve()
        if not root.is_dir():
            msg = f"Repo root '{repo_root}' is not a directory"
            raise common.ValidationError(msg)
        return root

    if configuration.KUBE_ROOT:
        root = pl.Path(configuration.KUBE_ROOT).expanduser().resolve()
        if not root.is_dir():
            msg = f"KUBE_ROOT '{configuration.KUBE_ROOT}' is not a directory"
            raise common.ValidationError(msg)
        return root

    cwd = pl.Path(os.getcwd())
    if cwd.joinpath(*common.KUBE_UP_SCRIPT).exists():
        return cwd

    msg = "Repo root is not set and current directory doesn't contain the cluster scripts"
    raise common.ValidationError(msg)


def _set_repo_path_if_not_set(deployer: "dep.Deployer") -> None:
    if deployer.repo_root:
        return
    deployer.repo_root = resolve_repo_root(deployer.options.repo_root)
    deployer.kubectl_path = deployer.repo_root.joinpath(*common.KUBECTL_SCRIPT)


def verify_up_flags(deployer: "dep.Deployer") -> None:
    options = deployer.options
    if options.num_nodes < 1:
        msg = "Number of nodes must be at least 1"
        raise common.ValidationError(msg)

    # The project is not required, it will be acquired from Boskos if not set
    if not options.projects:
        if options.boskos_projects_requested < 1:
            msg = "Number of projects requested from Boskos must be at least 1"
            raise common.ValidationError(msg)
        if options.boskos_acquire_timeout_seconds <= 0:
            msg = "Boskos acquire timeout must be positive"
            raise common.ValidationError(msg)

    _set_repo_path_if_not_set(deployer)


def verify_down_flags(deployer: "dep.Deployer") -> None:
    _set_repo_path_if_not_set(deployer)

    if not deployer.projects:
        # Projects leased by an earlier `up` that are still recorded
        deployer.projects = lease_records.load(deployer.options.artifacts_dir)
    if not deployer.projects:
        msg = "Down requires at least one GCP project"
        raise common.ValidationError(msg)


def acquire_projects(deployer: "dep.Deployer") -> None:
    """Acquire the requested number of projects from Boskos, one at a time.

    Leases acquired before a failure are kept (and recorded), they are not released here.
    """
    options = deployer.options
    LOGGER.info(
        f"No GCP projects provided, acquiring {options.boskos_projects_requested} "
        "project/s from Boskos."
    )

    try:
        deployer.boskos = deployer.boskos_factory(options.boskos_location)
    except common.AcquisitionError as exc:
        msg = f"Failed to make Boskos client: {exc}"
        raise common.AcquisitionError(msg) from exc

    for __ in range(options.boskos_projects_requested):
        try:
            resource = deployer.boskos.acquire(
                common.GKE_PROJECT_RESOURCE_TYPE,
                timeout=options.boskos_acquire_timeout_seconds,
                heartbeat_close=deployer.heartbeat_close,
            )
        except common.AcquisitionError as exc:
            msg = f"Init failed to get project from Boskos: {exc}"
            raise common.AcquisitionError(msg) from exc

        deployer.projects.append(resource.name)
        try:
            lease_records.add(options.artifacts_dir, resource.name)
        except OSError as exc:
            msg = f"Failed to record lease of project '{resource.name}': {exc}"
            raise common.AcquisitionError(msg) from exc
        LOGGER.info(f"Got project '{resource.name}' from Boskos.")
        framework_log.framework_logger().info(f"Leased project '{resource.name}' from Boskos")


def _plan_clusters(deployer: "dep.Deployer") -> None:
    try:
        deployer.clusters_layout = topology.plan(deployer.options.clusters, deployer.projects)
    except common.FormatError as exc:
        msg = f"Aborting initialization due to invalid cluster name: {exc}"
        raise common.FormatError(msg) from exc
    LOGGER.debug(f"Clusters layout: {deployer.clusters_layout}")


def initialize(deployer: "dep.Deployer") -> None:
    """Do the real initialization work. Call only through the deployer's `init`."""
    options = deployer.options

    if options.should_up:
        try:
            verify_up_flags(deployer)
        except common.ValidationError as exc:
            msg = f"Init failed to verify flags for up: {exc}"
            raise common.ValidationError(msg) from exc

        if not deployer.projects:
            acquire_projects(deployer)

        _plan_clusters(deployer)

    if options.should_down:
        try:
            verify_down_flags(deployer)
        except common.ValidationError as exc:
            msg = f"Init failed to verify flags for down: {exc}"
            raise common.ValidationError(msg) from exc

        # Tear-down needs the same instance prefix that bring-up used
        if not options.should_up:
            _plan_clusters(deployer)
