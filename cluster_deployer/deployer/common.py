"""Constants and errors shared by the deployer modules."""

# Broker resource type of leased cloud projects
GKE_PROJECT_RESOURCE_TYPE = "gke-project"

LEASES_FILE = "boskos-leases.json"
LEASES_LOCK = ".boskos-leases.lock"
CLUSTER_LOGS_DIRNAME = "cluster-logs"

KUBE_UP_SCRIPT = ("cluster", "kube-up.sh")
KUBE_DOWN_SCRIPT = ("cluster", "kube-down.sh")
KUBECTL_SCRIPT = ("cluster", "kubectl.sh")
LOG_DUMP_SCRIPT = ("cluster", "log-dump", "log-dump.sh")

NODEPORTS_RULE_SUFFIX = "nodeports"
HOSTPORTS_RULE_SUFFIX = "hostports"
NODEPORTS_ALLOW = "tcp:30000-32767,udp:30000-32767"
HOSTPORTS_ALLOW = "tcp:4321"


class DeployerError(Exception):
    """Base class for all deployer errors."""


class ValidationError(DeployerError):
    """Bad or missing configuration."""


class AcquisitionError(DeployerError):
    """Resource broker unreachable, timed out or exhausted."""


class FormatError(DeployerError):
    """Cluster name doesn't follow the `<name>-<projectIndex>` convention."""


class ComputeAPIError(DeployerError):
    """Failed to enable the compute API for a project."""


class BringUpError(DeployerError):
    """The cluster bring-up script failed."""


class NetworkRuleError(DeployerError):
    """Failed to create a firewall rule."""


class TeardownError(DeployerError):
    """The cluster tear-down script failed."""
