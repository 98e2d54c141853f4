"""Distribution of clusters across leased projects.

With multiple projects, every cluster name carries the index of its project as a suffix,
e.g. `cluster-0`, `cluster-1`. With a single project the names are used as they are.
"""

import logging
import typing as tp

from cluster_deployer.deployer import common
from cluster_deployer.utils import types as ttypes

LOGGER = logging.getLogger(__name__)


def split_cluster_name(cluster_name: str) -> tuple[str, int]:
    """Split `<name>-<projectIndex>` into the name and the project index."""
    parts = cluster_name.split("-")
    if len(parts) != 2:
        msg = (
            "Cluster name does not follow expected format (name-projectIndex): "
            f"'{cluster_name}'"
        )
        raise common.FormatError(msg)

    name, index_str = parts
    # Only base-10 digits, `int()` would also accept signs and whitespace
    if not (index_str.isascii() and index_str.isdigit()):
        msg = (
            "Cluster name does not contain a valid project index "
            f"(name-projectIndex, e.g. cluster-0): '{cluster_name}'"
        )
        raise common.FormatError(msg)

    return name, int(index_str)


def plan(clusters: tp.Sequence[str], projects: tp.Sequence[str]) -> ttypes.TopologyType:
    """Map every project to the ordered list of clusters that should be created in it."""
    if not projects:
        msg = "Cannot plan cluster topology without any project"
        raise common.ValidationError(msg)

    # Backwards compatible single project layout, names are not parsed
    if len(projects) == 1:
        return {projects[0]: list(clusters)}

    # Validate all names first, so the error doesn't depend on the order of projects
    parsed = [(c, *split_cluster_name(c)) for c in clusters]

    layout: ttypes.TopologyType = {p: [] for p in projects}
    for cluster_name, name, index in parsed:
        if index >= len(projects):
            # Not assigned to any project
            LOGGER.warning(
                f"Cluster '{cluster_name}' refers to project index {index}, but only "
                f"{len(projects)} projects are available; the cluster is skipped."
            )
            continue
        layout[projects[index]].append(name)

    return layout
