"""Capability snapshot providers.

A capability snapshot is a ``flag name -> bool`` mapping describing
which optional integrations are currently available. Providers replace
the snapshot wholesale and notify subscribers when it changes.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

CapabilitySnapshot = Mapping[str, bool]
SnapshotListener = Callable[[CapabilitySnapshot], None]


@runtime_checkable
class CapabilitySnapshotProvider(Protocol):
    """Source of the current capability snapshot."""

    def snapshot(self) -> CapabilitySnapshot:
        """Return the current snapshot."""
        ...

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener* for snapshot changes. Returns an unsubscribe callable."""
        ...


class StaticCapabilityProvider:
    """Provider holding an explicitly assigned snapshot."""

    def __init__(self, flags: Mapping[str, bool] | None = None) -> None:
        self._snapshot: dict[str, bool] = dict(flags or {})
        self._listeners: list[SnapshotListener] = []

    def snapshot(self) -> CapabilitySnapshot:
        return dict(self._snapshot)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, flags: Mapping[str, bool]) -> bool:
        """Replace the snapshot. Returns True and notifies if it changed."""
        new = dict(flags)
        if new == self._snapshot:
            return False
        self._snapshot = new
        logger.debug("Capability snapshot changed: %s", new)
        for listener in list(self._listeners):
            listener(self.snapshot())
        return True


class EnvCapabilityProvider(StaticCapabilityProvider):
    """Derives flags from environment variable presence.

    A flag is true when the variable of the same name holds a non-empty
    value. ``overrides`` are applied on top of the environment.
    """

    def __init__(
        self,
        flags: list[str],
        *,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, bool] | None = None,
    ) -> None:
        self._flags = list(flags)
        self._environ = environ if environ is not None else os.environ
        self._overrides = dict(overrides or {})
        super().__init__(self._read())

    def _read(self) -> dict[str, bool]:
        snapshot = {name: bool(self._environ.get(name)) for name in self._flags}
        snapshot.update(self._overrides)
        return snapshot

    def refresh(self) -> bool:
        """Re-read the environment. Returns True if the snapshot changed."""
        return self.update(self._read())
