"""
The operator's metric families.

`init_metrics()` registers every family exactly once and hands back an
immutable bundle of handles; reconciliation code passes that bundle to the
publisher functions instead of reaching for module-level globals.
"""

from dataclasses import dataclass
from typing import Optional

from metrics.families import KeyedGauge, LatchingGauge, ScalarGauge
from metrics.registry import MetricFamilyRegistry
from version import __version__

VERSION_LABELS = ["stage", "version", "to_version"]
STATUS_LABELS = ["stage"]
PREFLIGHT_LABELS = ["status"]

INFO_LABELS = [
    "use_cluster_storage",
    "master_url",
    "installation_type",
    "operator_name",
    "namespace",
    "namespace_prefix",
    "operators_in_product_namespace",
    "routing_subdomain",
    "self_signed_certs",
]


@dataclass(frozen=True)
class OperatorMetrics:
    registry: MetricFamilyRegistry

    operator_version: ScalarGauge
    rhmi_status_available: ScalarGauge
    rhmi_info: LatchingGauge

    rhmi_version: LatchingGauge
    rhmi_status: LatchingGauge
    rhmi_preflight_status: LatchingGauge

    rhoam_version: LatchingGauge
    rhoam_status: LatchingGauge
    rhoam_preflight_status: LatchingGauge

    threescale_user_action: KeyedGauge
    quota: LatchingGauge


def init_metrics(
    registry: Optional[MetricFamilyRegistry] = None,
    operator_version: str = __version__,
) -> OperatorMetrics:
    """Register all operator families on `registry` (a new one by default)."""
    registry = registry if registry is not None else MetricFamilyRegistry()

    return OperatorMetrics(
        registry=registry,
        operator_version=registry.scalar(
            "integreatly_version_info",
            "Integreatly operator information",
            const_labels={"operator_version": operator_version, "version": operator_version},
        ),
        rhmi_status_available=registry.scalar(
            "rhmi_status_available",
            "RHMI status available",
        ),
        rhmi_info=registry.latching("rhmi_spec", "RHMI info variables", INFO_LABELS),
        rhmi_version=registry.latching("rhmi_version", "RHMI versions", VERSION_LABELS),
        rhmi_status=registry.latching(
            "rhmi_status", "RHMI status of an installation", STATUS_LABELS, required=["stage"],
        ),
        rhmi_preflight_status=registry.latching(
            "rhmi_preflight_status", "Preflight status of an RHMI installation", PREFLIGHT_LABELS,
        ),
        rhoam_version=registry.latching("rhoam_version", "RHOAM versions", VERSION_LABELS),
        rhoam_status=registry.latching(
            "rhoam_status", "RHOAM status of an installation", STATUS_LABELS, required=["stage"],
        ),
        rhoam_preflight_status=registry.latching(
            "rhoam_preflight_status", "Preflight status of an RHOAM installation", PREFLIGHT_LABELS,
        ),
        threescale_user_action=registry.keyed(
            "threescale_user_action", "Status of user CRUD action in 3scale", ["username", "action"],
        ),
        quota=registry.latching(
            "rhoam_quota", "Status of the current quota config", ["stage", "quota", "toQuota"],
        ),
    )
