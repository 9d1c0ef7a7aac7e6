"""
Runtime support imported by generated code.

Provides:
    - ObservableValue: the capability every generated record conforms to
    - ObservationRegistrar: per-instance sink for access / will-set / did-set
    - observe(): attach a callback to an observable value
    - initial_value() / instance_slot(): per-instance starting values

The registrar fans each event out, synchronously,
to the callbacks registered on that one instance. Scheduling, batching and
dependency tracking are left to whoever consumes the events.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List


logger = logging.getLogger(__name__)


class ObservableValue(ABC):
    """
    A value that carries an identity and reports its own mutations.

    Generated records are registered as virtual subclasses, so
    `isinstance(value, ObservableValue)` is the capability check used by
    generated accessors.

    Two observable values with the same `_id` are the same logical value:
    replacing one with the other is not a change.
    """

    _id: uuid.UUID

    @abstractmethod
    def copy(self):
        """
        Detached duplicate with a fresh identity and registrar.

            detached = model.copy()
            detached.count = 3    # observers of `model` are not notified
        """


class EventKind(Enum):
    ACCESS = "access"
    WILL_SET = "will_set"
    DID_SET = "did_set"


@dataclass(frozen=True)
class ObservationEvent:
    """One signal emitted by a registrar."""

    kind: EventKind
    subject: Any
    key_path: str


Observer = Callable[[ObservationEvent], None]


class ObservationRegistrar:
    """
    Per-instance event sink.

    Callbacks run in registration order over a snapshot of the callback
    list, so a callback may read observed members, or register and cancel
    callbacks, while an event is being delivered.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._observers: List[Observer] = []

    def __repr__(self) -> str:
        return f"ObservationRegistrar(observers={len(self._observers)})"

    def observe(self, callback: Observer) -> Callable[[], None]:
        """
        Register `callback` for every event of this registrar.

        Returns:
            A function that cancels the registration
        """
        with self._lock:
            self._observers.append(callback)
        return lambda: self.cancel(callback)

    def cancel(self, callback: Observer) -> None:
        with self._lock:
            if callback in self._observers:
                self._observers.remove(callback)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def access(self, subject: Any, key_path: str) -> None:
        self._emit(ObservationEvent(EventKind.ACCESS, subject, key_path))

    def will_set(self, subject: Any, key_path: str) -> None:
        self._emit(ObservationEvent(EventKind.WILL_SET, subject, key_path))

    def did_set(self, subject: Any, key_path: str) -> None:
        self._emit(ObservationEvent(EventKind.DID_SET, subject, key_path))

    @contextmanager
    def with_mutation(self, subject: Any, key_path: str) -> Iterator[None]:
        """
        Bracket a mutation with will-set / did-set.

        did-set fires on every exit from the block, including exceptions
        and early returns.
        """
        self.will_set(subject, key_path)
        try:
            yield
        finally:
            self.did_set(subject, key_path)

    def __deepcopy__(self, memo) -> "ObservationRegistrar":
        # Callbacks belong to the original instance
        return ObservationRegistrar()

    def _emit(self, event: ObservationEvent) -> None:
        with self._lock:
            observers = list(self._observers)
        if not observers:
            return
        logger.debug("%s %s -> %d observer(s)", event.kind.value, event.key_path, len(observers))
        for observer in observers:
            observer(event)


def is_observable(value: Any) -> bool:
    return isinstance(value, ObservableValue)


def initial_value(default: Any) -> Any:
    """
    Per-instance starting value from a class-level default.

    Observable values get a detached copy with its own identity; anything
    else is deep-copied, so mutable defaults are never shared between
    instances.
    """
    if is_observable(default):
        return default.copy()
    return copy.deepcopy(default)


def instance_slot(instance: Any, slot: str) -> Any:
    """
    Read `slot` from the instance, creating it from the class default first.

    Used by accessors of classes that have no construction hook.
    """
    if slot not in instance.__dict__:
        instance.__dict__[slot] = initial_value(getattr(type(instance), slot))
    return instance.__dict__[slot]


def observe(value: ObservableValue, callback: Observer) -> Callable[[], None]:
    """
    Register `callback` on the registrar of an observable value.

    Raises:
        TypeError: If `value` does not conform to ObservableValue
    """
    if not is_observable(value):
        raise TypeError(f"{type(value).__name__} is not an ObservableValue")
    return value._observation_registrar.observe(callback)


__all__ = [
    "EventKind",
    "ObservableValue",
    "ObservationEvent",
    "ObservationRegistrar",
    "initial_value",
    "instance_slot",
    "is_observable",
    "observe",
]
