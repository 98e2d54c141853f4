#!/usr/bin/env python3
"""Bring test clusters up or down on GCE.

Projects are leased from Boskos when no project is given.
"""

import argparse
import logging
import sys

from cluster_deployer.deployer import common
from cluster_deployer.deployer import deployer
from cluster_deployer.utils import configuration
from cluster_deployer.utils import framework_log
from cluster_deployer.utils import helpers
from cluster_deployer.utils import http_client

LOGGER = logging.getLogger(__name__)


def get_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Get command line arguments."""
    parser = argparse.ArgumentParser(description=(__doc__ or "").split("\n", maxsplit=1)[0])
    parser.add_argument(
        "--up",
        action="store_true",
        help="Bring the cluster up.",
    )
    parser.add_argument(
        "--down",
        action="store_true",
        help="Tear the cluster down (after bringing it up, when combined with `--up`).",
    )
    parser.add_argument(
        "-c",
        "--clusters",
        type=helpers.csv_arg,
        default=[],
        help="Comma separated cluster names, `<name>-<projectIndex>` when using multiple projects.",
    )
    parser.add_argument(
        "-p",
        "--projects",
        type=helpers.csv_arg,
        default=[],
        help="Comma separated GCP projects. Leased from Boskos when not set.",
    )
    parser.add_argument(
        "--boskos-location",
        default=configuration.BOSKOS_LOCATION,
        help=f"Boskos URL (default: {configuration.BOSKOS_LOCATION}).",
    )
    parser.add_argument(
        "--boskos-projects-requested",
        type=int,
        default=configuration.BOSKOS_PROJECTS_REQUESTED,
        help="Number of projects to lease from Boskos.",
    )
    parser.add_argument(
        "--boskos-acquire-timeout-seconds",
        type=int,
        default=configuration.BOSKOS_ACQUIRE_TIMEOUT_SECONDS,
        help="Timeout for leasing a single project.",
    )
    parser.add_argument(
        "-n",
        "--num-nodes",
        type=int,
        default=configuration.NUM_NODES,
        help="Number of nodes in the cluster.",
    )
    parser.add_argument(
        "-r",
        "--repo-root",
        type=helpers.check_dir_arg,
        default="",
        help="Path to the checkout with the `cluster/` scripts.",
    )
    parser.add_argument(
        "--zone",
        default=configuration.GCE_ZONE,
        help="GCE zone.",
    )
    parser.add_argument(
        "--network",
        default=configuration.GCE_NETWORK,
        help="GCE network.",
    )
    parser.add_argument(
        "--enable-compute-api",
        action="store_true",
        help="Enable the compute API in the project before bringing the cluster up.",
    )
    parser.add_argument(
        "-a",
        "--artifacts-dir",
        type=helpers.check_dir_arg,
        default="",
        help="Path to a directory for storing artifacts.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def get_operation(args: argparse.Namespace) -> deployer.Operation | None:
    if args.up and args.down:
        return deployer.Operation.UP_DOWN
    if args.up:
        return deployer.Operation.UP
    if args.down:
        return deployer.Operation.DOWN
    return None


def main(argv: list[str] | None = None) -> int:
    args = get_args(argv)
    logging.basicConfig(
        format="%(levelname)s:%(message)s", level=logging.DEBUG if args.verbose else logging.INFO
    )

    operation = get_operation(args)
    if operation is None:
        LOGGER.error("At least one of `--up` or `--down` is required.")
        return 1

    artifacts_dir = args.artifacts_dir or configuration.ARTIFACTS_DIR
    framework_log.set_log_dir(artifacts_dir)

    options = deployer.DeployerOptions(
        operation=operation,
        clusters=args.clusters,
        projects=args.projects,
        boskos_projects_requested=args.boskos_projects_requested,
        boskos_location=args.boskos_location,
        boskos_acquire_timeout_seconds=args.boskos_acquire_timeout_seconds,
        num_nodes=args.num_nodes,
        repo_root=args.repo_root,
        zone=args.zone,
        network=args.network,
        enable_compute_api=args.enable_compute_api,
        artifacts_dir=artifacts_dir,
    )
    cluster_deployer = deployer.Deployer(options)

    try:
        if options.should_up:
            cluster_deployer.up()
        if options.should_down:
            cluster_deployer.down()
    except common.DeployerError:
        LOGGER.exception("Deployment failed.")
        return 1
    finally:
        cluster_deployer.close()
        http_client.close_session()

    return 0


if __name__ == "__main__":
    sys.exit(main())
