"""
Exceptions raised by the metrics layer.

Every one of these signals a programming or bootstrap mistake (a family
registered twice, a publish call with the wrong labels), never a transient
runtime condition, so callers are expected to let them propagate.
"""

from typing import List, Tuple


class MetricsError(Exception):
    """Base class for all metrics errors."""


class DuplicateNameError(MetricsError):
    """A metric family with this name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"metric family {name!r} is already registered")
        self.name = name


class UnknownFamilyError(MetricsError, KeyError):
    """No metric family with this name has been registered."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"metric family {self.name!r} is not registered"


class LabelCardinalityError(MetricsError, ValueError):
    """Label values do not match the dimensions declared by the family."""


class SinkUpdateError(MetricsError):
    """
    One or more sinks of a paired update failed.

    The sinks that succeeded keep their new state; `failures` lists
    (family name, exception) for the ones that did not.
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]):
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"failed to update metric families: {names}")
        self.failures = failures
