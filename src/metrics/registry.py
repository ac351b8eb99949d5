"""
Process-wide table of the operator's gauge families.

Families are registered once during bootstrap and live as long as the
registry. The wrapped prometheus_client CollectorRegistry is what the
/metrics server renders; `snapshot()` gives tests and other in-process
readers the same data without going through the text format.
"""

import threading
from typing import Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple, TypeVar

import structlog
from prometheus_client import CollectorRegistry, generate_latest

from metrics.errors import DuplicateNameError, UnknownFamilyError
from metrics.families import GaugeFamily, KeyedGauge, LatchingGauge, ScalarGauge

logger = structlog.get_logger()

F = TypeVar("F", bound=GaugeFamily)


class Sample(NamedTuple):
    family: str
    labels: Tuple[str, ...]
    value: float


class MetricFamilyRegistry:
    """
    Owns the named gauge families and exposes them for scraping.

    Pass `prometheus_client.REGISTRY` to share the default registry (and its
    process/platform collectors); by default a private registry is used so
    only the operator's own families are exported.
    """

    def __init__(self, collector_registry: Optional[CollectorRegistry] = None):
        self._registry = collector_registry if collector_registry is not None else CollectorRegistry()
        self._families: Dict[str, GaugeFamily] = {}
        self._lock = threading.Lock()

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, family: F) -> F:
        """Add `family` and return it; raises DuplicateNameError on a name clash."""
        with self._lock:
            if family.name in self._families:
                raise DuplicateNameError(family.name)
            try:
                self._registry.register(family)
            except ValueError as exc:
                # Clash with a collector registered directly on the CollectorRegistry
                raise DuplicateNameError(family.name) from exc
            self._families[family.name] = family

        logger.debug("metric_family_registered", name=family.name,
                     kind=type(family).__name__, labels=list(family.labelnames))
        return family

    def latching(
        self, name: str, documentation: str, labelnames: Sequence[str], required: Sequence[str] = ()
    ) -> LatchingGauge:
        return self.register(LatchingGauge(name, documentation, labelnames, required=required))

    def keyed(self, name: str, documentation: str, labelnames: Sequence[str]) -> KeyedGauge:
        return self.register(KeyedGauge(name, documentation, labelnames))

    def scalar(
        self, name: str, documentation: str, const_labels: Optional[Mapping[str, str]] = None
    ) -> ScalarGauge:
        return self.register(ScalarGauge(name, documentation, const_labels=const_labels))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> GaugeFamily:
        try:
            return self._families[name]
        except KeyError:
            raise UnknownFamilyError(name) from None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._families)

    def __contains__(self, name: str) -> bool:
        return name in self._families

    # ------------------------------------------------------------------
    # Scrape path
    # ------------------------------------------------------------------

    def snapshot(self) -> Iterator[Sample]:
        """
        Yield every exported series as (family, labels, value).

        Lazy and restartable: each call walks the families afresh. Every
        family is copied under its own lock, so a family is observed either
        before or after a concurrent write, never halfway through one.
        """
        with self._lock:
            families = list(self._families.values())
        for family in families:
            for labels, value in family.samples():
                yield Sample(family.name, labels, value)

    def render(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self._registry)
