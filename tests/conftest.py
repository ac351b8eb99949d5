"""Shared fixtures for all test modules."""

from pathlib import Path
from typing import Any, Dict

import pytest
import sys

# Make src/ importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from k8s.client import RHMIInstallation  # noqa: E402
from metrics.operator import OperatorMetrics, init_metrics  # noqa: E402
from metrics.registry import MetricFamilyRegistry  # noqa: E402


@pytest.fixture
def registry() -> MetricFamilyRegistry:
    return MetricFamilyRegistry()


@pytest.fixture
def metrics(registry) -> OperatorMetrics:
    return init_metrics(registry, operator_version="1.2.3")


@pytest.fixture
def rhmi_resource() -> Dict[str, Any]:
    return {
        "apiVersion": "integreatly.org/v1alpha1",
        "kind": "RHMI",
        "metadata": {
            "name": "rhoam",
            "namespace": "redhat-rhmi-operator",
            "creationTimestamp": "2023-11-14T22:13:20Z",
        },
        "spec": {
            "useClusterStorage": "true",
            "masterURL": "https://api.example.com:6443",
            "type": "managed-api",
            "namespacePrefix": "redhat-rhmi-",
            "operatorsInProductNamespace": False,
            "routingSubdomain": "apps.example.com",
            "selfSignedCerts": True,
        },
        "status": {
            "stage": "complete",
            "version": "1.0.0",
            "toVersion": "",
            "preflightStatus": "successful",
            "quota": "200",
            "toQuota": "",
        },
    }


@pytest.fixture
def installation(rhmi_resource) -> RHMIInstallation:
    return RHMIInstallation.from_resource(rhmi_resource)


@pytest.fixture
def series(registry):
    """Return a helper giving the snapshot of one family as {labels: value}."""

    def _series(family: str) -> Dict[tuple, float]:
        return {s.labels: s.value for s in registry.snapshot() if s.family == family}

    return _series
