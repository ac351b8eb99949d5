"""
Unit tests for src/reconciler.py

Covers:
- reconcile_once  (mocks the K8s client, real metric families)
- run loop        (shutdown handling, error resilience)
"""

import threading

import pytest
from unittest.mock import MagicMock, patch

from k8s.client import RHMIInstallation
from reconciler import Reconciler


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

BASE_ENV = {
    "NAMESPACE": "test-ns",
    "DEFAULT_RECONCILIATION_INTERVAL": "5",
}


def _make_reconciler(env, monkeypatch, metrics):
    for k, v in env.items():
        monkeypatch.setenv(k, v)

    r = Reconciler(metrics)
    r.k8s = MagicMock()
    return r


async def _no_sleep(_seconds):
    return None


class _StopAfter:
    """Shutdown handler that stops after N iterations."""

    def __init__(self, n):
        self._n = n
        self._calls = 0

    @property
    def shutdown_requested(self):
        self._calls += 1
        return self._calls > self._n


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_reads_environment(monkeypatch, metrics):
    r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
    assert r.namespace == "test-ns"
    assert r.interval == 5


def test_defaults(monkeypatch, metrics):
    monkeypatch.delenv("NAMESPACE", raising=False)
    monkeypatch.delenv("DEFAULT_RECONCILIATION_INTERVAL", raising=False)
    r = Reconciler(metrics)
    assert r.namespace == "redhat-rhmi-operator"
    assert r.interval == 30


# ---------------------------------------------------------------------------
# reconcile_once
# ---------------------------------------------------------------------------

class TestReconcileOnce:

    @pytest.mark.asyncio
    async def test_publishes_installation_state(self, monkeypatch, metrics, installation, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [installation]

        published = await r.reconcile_once()

        assert published is installation
        assert series("rhmi_status") == {("complete",): 1.0}
        assert series("rhoam_status") == {("complete",): 1.0}
        assert series("rhmi_version") == {("complete", "1.0.0", ""): 1700000000.0}
        assert series("rhmi_preflight_status") == {("success",): 1.0}
        assert series("rhoam_quota") == {("complete", "200", ""): 1.0}
        assert len(series("rhmi_spec")) == 1
        assert metrics.rhmi_status_available.value() == 1.0

    @pytest.mark.asyncio
    async def test_state_changes_replace_previous_series(self, monkeypatch, metrics, rhmi_resource, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [RHMIInstallation.from_resource(rhmi_resource)]
        await r.reconcile_once()

        rhmi_resource["status"].update({"stage": "upgrading", "toVersion": "1.1.0", "preflightStatus": "failed"})
        r.k8s.list_installations.return_value = [RHMIInstallation.from_resource(rhmi_resource)]
        await r.reconcile_once()

        assert series("rhmi_status") == {("upgrading",): 1.0}
        assert series("rhmi_version") == {("upgrading", "1.0.0", "1.1.0"): 1700000000.0}
        assert series("rhoam_preflight_status") == {("fail",): -1.0}
        assert metrics.rhmi_status_available.value() == 0.0

    @pytest.mark.asyncio
    async def test_no_quota_leaves_quota_family_empty(self, monkeypatch, metrics, rhmi_resource, series):
        rhmi_resource["status"]["quota"] = ""
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [RHMIInstallation.from_resource(rhmi_resource)]

        await r.reconcile_once()

        assert series("rhoam_quota") == {}

    @pytest.mark.asyncio
    async def test_no_installation_publishes_nothing(self, monkeypatch, metrics, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = []

        assert await r.reconcile_once() is None
        assert series("rhmi_status") == {}
        assert series("rhmi_spec") == {}

    @pytest.mark.asyncio
    async def test_removed_quota_clears_quota_family(self, monkeypatch, metrics, rhmi_resource, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [RHMIInstallation.from_resource(rhmi_resource)]
        await r.reconcile_once()
        assert series("rhoam_quota") == {("complete", "200", ""): 1.0}

        rhmi_resource["status"].update({"quota": "", "stage": "products"})
        r.k8s.list_installations.return_value = [RHMIInstallation.from_resource(rhmi_resource)]
        await r.reconcile_once()

        assert series("rhoam_quota") == {}
        assert series("rhmi_status") == {("products",): 1.0}

    @pytest.mark.asyncio
    async def test_deleted_installation_clears_latched_state(self, monkeypatch, metrics, installation, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [installation]
        await r.reconcile_once()

        r.k8s.list_installations.return_value = []
        await r.reconcile_once()

        for family in ("rhmi_spec", "rhmi_status", "rhoam_status", "rhmi_version", "rhoam_version",
                       "rhmi_preflight_status", "rhoam_preflight_status", "rhoam_quota"):
            assert series(family) == {}, family
        assert metrics.rhmi_status_available.value() == 0.0

    @pytest.mark.asyncio
    async def test_api_error_keeps_last_known_state(self, monkeypatch, metrics, installation, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [installation]
        await r.reconcile_once()

        r.k8s.list_installations.return_value = None
        assert await r.reconcile_once() is None

        assert series("rhmi_status") == {("complete",): 1.0}
        assert series("rhoam_quota") == {("complete", "200", ""): 1.0}
        assert metrics.rhmi_status_available.value() == 1.0

    @pytest.mark.asyncio
    async def test_api_call_runs_off_the_event_loop_thread(self, monkeypatch, metrics, installation):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        callers = []

        def list_installations():
            callers.append(threading.get_ident())
            return [installation]

        r.k8s.list_installations.side_effect = list_installations

        await r.reconcile_once()

        assert callers and callers[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_multiple_installations_uses_first(self, monkeypatch, metrics, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        first = RHMIInstallation("first", "test-ns", {}, status={"stage": "bootstrap"})
        second = RHMIInstallation("second", "test-ns", {}, status={"stage": "complete"})
        r.k8s.list_installations.return_value = [first, second]

        assert await r.reconcile_once() is first
        assert series("rhmi_status") == {("bootstrap",): 1.0}


# ---------------------------------------------------------------------------
# run loop
# ---------------------------------------------------------------------------

class TestRunLoop:

    @pytest.mark.asyncio
    async def test_run_reconciles_each_iteration(self, monkeypatch, metrics, installation):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.return_value = [installation]

        slept = []

        async def fake_sleep(n):
            slept.append(n)

        with patch("reconciler.asyncio.sleep", new=fake_sleep):
            await r.run(_StopAfter(3))

        assert r.k8s.list_installations.call_count == 3
        assert slept == [5, 5, 5]

    @pytest.mark.asyncio
    async def test_run_continues_after_error(self, monkeypatch, metrics, installation, series):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        r.k8s.list_installations.side_effect = [Exception("api down"), [installation]]

        with patch("reconciler.asyncio.sleep", new=_no_sleep):
            await r.run(_StopAfter(2))

        assert series("rhmi_status") == {("complete",): 1.0}

    @pytest.mark.asyncio
    async def test_run_exits_immediately_when_shutdown_requested(self, monkeypatch, metrics):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)

        await r.run(_StopAfter(0))

        r.k8s.list_installations.assert_not_called()

    @pytest.mark.asyncio
    async def test_initialize_loads_kube_config(self, monkeypatch, metrics):
        r = _make_reconciler(BASE_ENV, monkeypatch, metrics)
        await r.initialize()
        r.k8s.initialize.assert_called_once()
