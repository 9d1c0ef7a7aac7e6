"""
Source-level markers.

These names exist so that annotated source imports and type-checks
before it is expanded. They do nothing at runtime.

    from valueobs.markers import Ignoring, Observing, observable_value

    @observable_value
    class Model:
        count: int = 0
        already: Observing[str] = ""
        ignored: Ignoring[int] = 2
"""

from typing import Generic, TypeVar


T = TypeVar("T")


class Observing(Generic[T]):
    """Request accessor synthesis for a member explicitly."""


class Ignoring(Generic[T]):
    """Exclude a member from observation."""


def observable_value(cls):
    """Record-level directive. Returns the class unchanged until expanded."""
    return cls


__all__ = ["Ignoring", "Observing", "observable_value"]
