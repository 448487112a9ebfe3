"""Bounded pool of open output resources (generated report handles).

Each finished batch task leaves one open resource behind. The pool keeps
them in arrival order and, once more than ``capacity`` are retained, asks
its eviction policy which ones to release. Resources left in the pool at
the end of a batch stay open for inspection.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputResource(Protocol):
    """Anything the pool can release. ``close()`` must be idempotent."""

    @property
    def name(self) -> str: ...

    def close(self) -> None: ...


class EvictionPolicy(ABC):
    """Chooses which retained resources to release when the pool is over capacity."""

    @abstractmethod
    def select(self, retained: Sequence[OutputResource], capacity: int) -> list[OutputResource]:
        """Return the resources to evict; ``retained`` is in arrival order."""


class FifoEviction(EvictionPolicy):
    """Release the oldest resources first."""

    def select(self, retained: Sequence[OutputResource], capacity: int) -> list[OutputResource]:
        overflow = len(retained) - capacity
        return list(retained[:overflow]) if overflow > 0 else []


class BoundedResourcePool:
    """Arrival-ordered resource list with a retention cap."""

    def __init__(self, capacity: int, policy: EvictionPolicy | None = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.policy = policy or FifoEviction()
        self._lock = threading.RLock()
        self._retained: list[OutputResource] = []
        self.evicted_count = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._retained)

    @property
    def retained(self) -> list[OutputResource]:
        with self._lock:
            return list(self._retained)

    def add(self, resource: OutputResource) -> list[OutputResource]:
        """Retain *resource*, evicting per policy; returns the evicted resources."""
        with self._lock:
            self._retained.append(resource)
            victims = self.policy.select(self._retained, self.capacity)
            for victim in victims:
                self._retained.remove(victim)
            self.evicted_count += len(victims)

        for victim in victims:
            try:
                victim.close()
            except Exception as exc:
                logger.warning("Failed to release output resource %s: %s", victim.name, exc)
            else:
                logger.debug("Evicted output resource %s", victim.name)
        return victims

    def clear(self, *, close: bool = False) -> None:
        """Forget every retained resource, optionally closing them."""
        with self._lock:
            resources, self._retained = self._retained, []
        if close:
            for resource in resources:
                resource.close()
