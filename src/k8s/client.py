"""
Kubernetes client for RHMI installation custom resources.

Wraps the official `kubernetes` Python client. The module lives in
src/k8s/ (not src/kubernetes/) to avoid shadowing the installed
`kubernetes` package on sys.path.

Handles:
- Loading in-cluster config (pod) or kubeconfig (local dev)
- Listing RHMI CRs and turning them into RHMIInstallation value objects
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException

logger = structlog.get_logger()

GROUP = "integreatly.org"
VERSION = "v1alpha1"
PLURAL = "rhmis"


class PreflightStatus(str, Enum):
    SUCCESS = "success"
    FAIL = "fail"
    IN_PROGRESS = "in progress"


_PREFLIGHT_STATE_MAP = {
    "successful": PreflightStatus.SUCCESS,
    "success": PreflightStatus.SUCCESS,
    "failed": PreflightStatus.FAIL,
    "fail": PreflightStatus.FAIL,
}


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("invalid_timestamp", value=raw)
        return None


class RHMIInstallation:
    """Value object representing an RHMI custom resource instance."""

    def __init__(
        self,
        name: str,
        namespace: str,
        spec: Dict[str, Any],
        status: Optional[Dict[str, Any]] = None,
        creation_timestamp: Optional[datetime] = None,
    ):
        self.name = name
        self.namespace = namespace
        self.spec = spec
        self.status = status or {}
        self.creation_timestamp = creation_timestamp

    @classmethod
    def from_resource(cls, item: Dict[str, Any]) -> "RHMIInstallation":
        metadata = item.get("metadata", {})
        return cls(
            name=metadata["name"],
            namespace=metadata["namespace"],
            spec=item.get("spec", {}),
            status=item.get("status", {}),
            creation_timestamp=_parse_timestamp(metadata.get("creationTimestamp")),
        )

    # -- spec helpers -------------------------------------------------------

    @property
    def use_cluster_storage(self) -> str:
        # Declared as a string in the CRD, but hand-written CRs often use a YAML bool
        value = self.spec.get("useClusterStorage", "")
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @property
    def master_url(self) -> str:
        return self.spec.get("masterURL", "")

    @property
    def installation_type(self) -> str:
        return self.spec.get("type", "")

    @property
    def namespace_prefix(self) -> str:
        return self.spec.get("namespacePrefix", "")

    @property
    def operators_in_product_namespace(self) -> bool:
        return bool(self.spec.get("operatorsInProductNamespace", False))

    @property
    def routing_subdomain(self) -> str:
        return self.spec.get("routingSubdomain", "")

    @property
    def self_signed_certs(self) -> bool:
        return bool(self.spec.get("selfSignedCerts", False))

    # -- status helpers -----------------------------------------------------

    @property
    def stage(self) -> str:
        return self.status.get("stage", "")

    @property
    def version(self) -> str:
        return self.status.get("version", "")

    @property
    def to_version(self) -> str:
        return self.status.get("toVersion", "")

    @property
    def preflight_status(self) -> PreflightStatus:
        raw = self.status.get("preflightStatus", "")
        return _PREFLIGHT_STATE_MAP.get(raw, PreflightStatus.IN_PROGRESS)

    @property
    def quota(self) -> str:
        return self.status.get("quota", "")

    @property
    def to_quota(self) -> str:
        return self.status.get("toQuota", "")

    @property
    def first_install_timestamp(self) -> int:
        """Epoch seconds of the CR's creation, 0 when unknown."""
        if self.creation_timestamp is None:
            return 0
        ts = self.creation_timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return int(ts.timestamp())

    def __repr__(self) -> str:
        return f"RHMIInstallation(name={self.name!r}, namespace={self.namespace!r}, stage={self.stage!r})"


class KubernetesCRDClient:
    """Thin wrapper around the official Kubernetes Python client for RHMI CR access."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._api: Optional[client.CustomObjectsApi] = None

    def initialize(self):
        """Load in-cluster config, falling back to the local kubeconfig."""
        try:
            config.load_incluster_config()
            logger.info("kubernetes_config_loaded", source="in-cluster")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("kubernetes_config_loaded", source="kubeconfig")

        self._api = client.CustomObjectsApi()

    def list_installations(self) -> Optional[List[RHMIInstallation]]:
        """
        Return all RHMI objects in the configured namespace.

        An empty list means there is no installation (none created, or the
        CRD is not installed); None means the API could not be read.
        """
        try:
            result = self._api.list_namespaced_custom_object(
                group=GROUP, version=VERSION, namespace=self.namespace, plural=PLURAL
            )
            installations = [RHMIInstallation.from_resource(item) for item in result.get("items", [])]
            logger.debug("loaded_installations", count=len(installations), namespace=self.namespace)
            return installations

        except ApiException as exc:
            if exc.status == 404:
                logger.warning("crd_not_installed", group=GROUP, plural=PLURAL)
                return []
            logger.error("list_installations_failed", status=exc.status, error=str(exc))
            return None
