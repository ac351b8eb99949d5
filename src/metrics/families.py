"""
Gauge families backing the operator's state metrics.

prometheus_client's own Gauge can only reset a labelled family and then
re-create a child in two separate steps, which lets a scrape observe the
empty family in between. These collectors keep their series in a plain
dict guarded by one lock per family, so every write is a single step as
far as a concurrent scrape is concerned:

  LatchingGauge  at most one active label tuple (current stage, version…)
  KeyedGauge     independent label tuples (per-user actions)
  ScalarGauge    one unlabelled series, optionally with constant labels
"""

import threading
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from metrics.errors import LabelCardinalityError

LabelValues = Tuple[str, ...]
LabelsInput = Union[Sequence[str], Mapping[str, str]]


class GaugeFamily(Collector):
    """Common storage, locking and exposition for all gauge families."""

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Sequence[str] = (),
        const_labels: Optional[Mapping[str, str]] = None,
    ):
        self.name = name
        self.documentation = documentation
        self.labelnames: Tuple[str, ...] = tuple(labelnames)
        self.const_labels: Dict[str, str] = dict(const_labels or {})

        clash = set(self.labelnames) & set(self.const_labels)
        if clash or len(set(self.labelnames)) != len(self.labelnames):
            raise LabelCardinalityError(
                f"{name}: duplicate label names {sorted(clash) or list(self.labelnames)}"
            )

        self._lock = threading.Lock()
        self._series: Dict[LabelValues, float] = {}

    # -- label handling -----------------------------------------------------

    def _label_values(self, labels: LabelsInput) -> LabelValues:
        """Normalise positional or keyword label values to a tuple in dimension order."""
        if isinstance(labels, Mapping):
            if set(labels) != set(self.labelnames):
                raise LabelCardinalityError(
                    f"{self.name}: expected labels {list(self.labelnames)}, got {sorted(labels)}"
                )
            return tuple(str(labels[n]) for n in self.labelnames)

        if isinstance(labels, str):
            # A bare string is almost always a forgotten 1-tuple
            labels = (labels,)
        values = tuple(str(v) for v in labels)
        if len(values) != len(self.labelnames):
            raise LabelCardinalityError(
                f"{self.name}: expected {len(self.labelnames)} label values, got {len(values)}"
            )
        return values

    # -- reads --------------------------------------------------------------

    def samples(self) -> List[Tuple[LabelValues, float]]:
        """Return a consistent copy of the family's series."""
        with self._lock:
            return list(self._series.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._series)

    def get(self, labels: LabelsInput) -> Optional[float]:
        key = self._label_values(labels)
        with self._lock:
            return self._series.get(key)

    # -- prometheus_client Collector protocol ------------------------------

    def _family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            self.name,
            self.documentation,
            labels=[*self.const_labels, *self.labelnames],
        )

    def describe(self) -> Iterator[GaugeMetricFamily]:
        yield self._family()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        family = self._family()
        const_values = list(self.const_labels.values())
        for values, value in self.samples():
            family.add_metric([*const_values, *values], value)
        yield family

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, labelnames={list(self.labelnames)!r})"


class LatchingGauge(GaugeFamily):
    """
    A family that exposes at most one label tuple at a time.

    `required` names dimensions whose empty value means "no state yet": a
    replace carrying an empty value for any of them clears the family
    instead of exporting a series with an empty label.
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Sequence[str],
        required: Sequence[str] = (),
    ):
        super().__init__(name, documentation, labelnames)
        unknown = set(required) - set(self.labelnames)
        if unknown:
            raise LabelCardinalityError(f"{name}: required labels {sorted(unknown)} are not dimensions")
        self._required = tuple(self.labelnames.index(n) for n in required)

    def replace(self, labels: LabelsInput, value: float) -> None:
        """Make `labels -> value` the family's only series, in one step."""
        key = self._label_values(labels)
        if any(key[i] == "" for i in self._required):
            table: Dict[LabelValues, float] = {}
        else:
            table = {key: float(value)}
        with self._lock:
            self._series = table

    def clear(self) -> None:
        with self._lock:
            self._series = {}

    def current(self) -> Optional[Tuple[LabelValues, float]]:
        """Return the active (labels, value) pair, or None when the family is empty."""
        with self._lock:
            return next(iter(self._series.items()), None)


class KeyedGauge(GaugeFamily):
    """A family whose label tuples are independent facts, kept until reset."""

    def set(self, labels: LabelsInput, value: float) -> None:
        key = self._label_values(labels)
        with self._lock:
            self._series[key] = float(value)

    def remove(self, labels: LabelsInput) -> None:
        key = self._label_values(labels)
        with self._lock:
            self._series.pop(key, None)

    def reset_all(self) -> None:
        with self._lock:
            self._series = {}


class ScalarGauge(GaugeFamily):
    """A single unlabelled series, starting at 0 like a plain prometheus Gauge."""

    def __init__(self, name: str, documentation: str, const_labels: Optional[Mapping[str, str]] = None):
        super().__init__(name, documentation, (), const_labels)
        self._series = {(): 0.0}

    def set(self, value: float) -> None:
        with self._lock:
            self._series = {(): float(value)}

    def value(self) -> float:
        with self._lock:
            return self._series[()]
