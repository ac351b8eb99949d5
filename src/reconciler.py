"""
RHMI State Exporter - Reconciliation Loop

Timer-driven loop that keeps the exported metrics in line with the RHMI
installation:
  1. Read the RHMI custom resource        (k8s.client)
  2. Push its spec and status as metrics  (metrics.publisher)

The installation is polled rather than watched: metrics only need to be
correct at scrape time, and a poll every interval re-latches every family
from scratch, so a missed event can never leave a stale series behind.
"""

import asyncio
import os
from typing import Optional

import structlog

from k8s.client import KubernetesCRDClient, RHMIInstallation
from metrics import publisher
from metrics.operator import OperatorMetrics

logger = structlog.get_logger()

STAGE_COMPLETE = "complete"


class Reconciler:
    """
    Publishes the state of the RHMI installation on every interval.

    Reads configuration from environment variables (injected by the
    deployment manifest).
    """

    def __init__(self, metrics: OperatorMetrics):
        self.namespace = os.getenv("NAMESPACE", "redhat-rhmi-operator")
        self.interval = int(os.getenv("DEFAULT_RECONCILIATION_INTERVAL", "30"))

        self.metrics = metrics
        self.k8s = KubernetesCRDClient(namespace=self.namespace)

    async def initialize(self) -> None:
        self.k8s.initialize()
        logger.info("reconciler_initialized", namespace=self.namespace, interval=self.interval)

    async def shutdown(self) -> None:
        logger.info("reconciler_stopped")

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self, shutdown_handler) -> None:
        logger.info("reconciliation_loop_started")

        while not shutdown_handler.shutdown_requested:
            try:
                await self.reconcile_once()
            except Exception as exc:
                logger.error("reconciliation_loop_error", error=str(exc), exc_info=True)

            await asyncio.sleep(self.interval)

        logger.info("reconciliation_loop_stopped")

    async def reconcile_once(self) -> Optional[RHMIInstallation]:
        installations = await asyncio.to_thread(self.k8s.list_installations)
        if installations is None:
            # API unreachable: keep exporting the last known state
            logger.warning("installation_state_unknown", namespace=self.namespace)
            return None

        if not installations:
            logger.warning("no_installation_found", namespace=self.namespace)
            publisher.clear_installation_state(self.metrics)
            return None

        if len(installations) > 1:
            logger.warning("multiple_installations_found", namespace=self.namespace,
                           count=len(installations), using=installations[0].name)

        installation = installations[0]
        self._publish(installation)
        return installation

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _publish(self, installation: RHMIInstallation) -> None:
        m = self.metrics

        publisher.set_rhmi_info(m, installation)
        publisher.set_rhmi_status(m, installation)
        publisher.set_status_available(m, installation.stage == STAGE_COMPLETE)
        publisher.set_rhmi_versions(
            m,
            installation.stage,
            installation.version,
            installation.to_version,
            installation.first_install_timestamp,
        )
        publisher.set_preflight_status(m, installation.preflight_status)

        if installation.quota:
            publisher.set_quota(m, installation.stage, installation.quota, installation.to_quota)
        else:
            publisher.clear_quota(m)

        logger.info("state_published", installation=installation.name, stage=installation.stage,
                    version=installation.version, to_version=installation.to_version,
                    preflight=installation.preflight_status.value)
