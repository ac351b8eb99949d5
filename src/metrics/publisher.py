"""
Publisher API: pushes observed installation state into the metric families.

Each function maps one piece of observed state onto a single `replace` (or
`set`) per family, so a scrape never sees the family emptied between the
old state and the new one. Families that mirror the same concept under the
RHMI and RHOAM names are updated as independent sinks.
"""

from typing import Iterable

import structlog

from k8s.client import PreflightStatus, RHMIInstallation
from metrics.errors import SinkUpdateError
from metrics.families import LabelsInput, LatchingGauge
from metrics.operator import OperatorMetrics

logger = structlog.get_logger()

# -1 -> Fail
#  0 -> In Progress
#  1 -> Success
_PREFLIGHT_VALUES = {
    PreflightStatus.FAIL: -1,
    PreflightStatus.IN_PROGRESS: 0,
    PreflightStatus.SUCCESS: 1,
}


def _bool_label(value: bool) -> str:
    return "true" if value else "false"


def replace_all(sinks: Iterable[LatchingGauge], labels: LabelsInput, value: float) -> None:
    """
    Latch the same state into every sink.

    Each sink is its own replace unit: a failing sink does not stop the
    others and successful ones are kept. Failures are raised together once
    every sink has been attempted.
    """
    failures = []
    for sink in sinks:
        try:
            sink.replace(labels, value)
        except Exception as exc:
            logger.error("sink_update_failed", family=sink.name, error=str(exc))
            failures.append((sink.name, exc))
    if failures:
        raise SinkUpdateError(failures)


def set_operator_version(metrics: OperatorMetrics) -> None:
    metrics.operator_version.set(1)


def set_rhmi_info(metrics: OperatorMetrics, installation: RHMIInstallation) -> None:
    """Expose the installation CR's spec as labels on rhmi_spec."""
    metrics.rhmi_info.replace(
        [
            installation.use_cluster_storage,
            installation.master_url,
            installation.installation_type,
            installation.name,
            installation.namespace,
            installation.namespace_prefix,
            _bool_label(installation.operators_in_product_namespace),
            installation.routing_subdomain,
            _bool_label(installation.self_signed_certs),
        ],
        1,
    )


def set_rhmi_status(metrics: OperatorMetrics, installation: RHMIInstallation) -> None:
    """Expose the current stage; an installation without a stage exports no series."""
    replace_all([metrics.rhmi_status, metrics.rhoam_status], [installation.stage], 1)


def set_status_available(metrics: OperatorMetrics, available: bool) -> None:
    metrics.rhmi_status_available.set(1 if available else 0)


def set_rhmi_versions(
    metrics: OperatorMetrics, stage: str, version: str, to_version: str, first_install_timestamp: int
) -> None:
    """Expose the current version transition; the value records when it was first observed."""
    replace_all(
        [metrics.rhmi_version, metrics.rhoam_version],
        [stage, version, to_version],
        float(first_install_timestamp),
    )


def set_preflight_status(metrics: OperatorMetrics, status: PreflightStatus) -> None:
    status = PreflightStatus(status)
    replace_all(
        [metrics.rhoam_preflight_status, metrics.rhmi_preflight_status],
        [status.value],
        _PREFLIGHT_VALUES[status],
    )


def set_threescale_user_action(metrics: OperatorMetrics, http_status: int, username: str, action: str) -> None:
    metrics.threescale_user_action.set([username, action], http_status)


def reset_threescale_user_action(metrics: OperatorMetrics) -> None:
    metrics.threescale_user_action.reset_all()


def set_quota(metrics: OperatorMetrics, stage: str, quota: str, to_quota: str) -> None:
    metrics.quota.replace([stage, quota, to_quota], 1)


def clear_quota(metrics: OperatorMetrics) -> None:
    metrics.quota.clear()


def clear_installation_state(metrics: OperatorMetrics) -> None:
    """Drop every latched installation series once the installation is gone."""
    for family in (
        metrics.rhmi_info,
        metrics.rhmi_status,
        metrics.rhoam_status,
        metrics.rhmi_version,
        metrics.rhoam_version,
        metrics.rhmi_preflight_status,
        metrics.rhoam_preflight_status,
        metrics.quota,
    ):
        family.clear()
    metrics.rhmi_status_available.set(0)
