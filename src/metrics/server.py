"""Prometheus /metrics endpoint for the operator's registry."""

import structlog
from prometheus_client import start_http_server

from metrics.registry import MetricFamilyRegistry

logger = structlog.get_logger()


def start_metrics_server(registry: MetricFamilyRegistry, port: int = 9090, addr: str = "0.0.0.0"):
    """Start the Prometheus HTTP server on the given port, serving `registry`."""
    server, thread = start_http_server(port, addr=addr, registry=registry.collector_registry)
    logger.info("metrics_server_started", port=server.server_port, families=len(registry.names()))
    return server, thread
