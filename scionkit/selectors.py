"""Path selectors for the SSH client: round-robin and random choice among paths."""

from __future__ import annotations

import random
import threading
from typing import Any, Generic, Sequence, TypeVar

PathT = TypeVar("PathT")

AVAILABLE_PATH_SELECTORS = ("default", "round-robin", "random")


class SelectorError(ValueError):
    """Raised for an unknown path selection option."""


class _PathListSelector(Generic[PathT]):
    """Shared state for selectors that choose among a list of paths."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: list[PathT] = []
        self._reported_down: set[Any] = set()

    @property
    def reported_down(self) -> frozenset:
        """Fingerprints reported down since the paths were last set."""
        with self._lock:
            return frozenset(self._reported_down)

    def initialize(self, local: Any, remote: Any, paths: Sequence[PathT]) -> None:
        """Start with ``paths``."""
        self.refresh(paths)

    def refresh(self, paths: Sequence[PathT]) -> None:
        """Replace the paths."""
        with self._lock:
            self._set_paths(paths)

    def _set_paths(self, paths: Sequence[PathT]) -> None:
        self._paths = list(paths)
        self._reported_down.clear()

    def path_down(self, fingerprint: Any, interface: Any) -> None:
        """Note that a path went down; traffic is still sent over it."""
        with self._lock:
            self._reported_down.add(fingerprint)

    def close(self) -> None:
        """Forget all paths; ``path`` returns None afterwards."""
        with self._lock:
            self._set_paths(())


class RoundRobinSelector(_PathListSelector[PathT]):
    """Hands out the known paths in turn."""

    def __init__(self) -> None:
        super().__init__()
        self._current = 0

    def path(self) -> PathT | None:
        """Return the next path, or None when there are none."""
        with self._lock:
            if not self._paths:
                return None
            chosen = self._paths[self._current]
            self._current = (self._current + 1) % len(self._paths)
            return chosen

    def initialize(self, local: Any, remote: Any, paths: Sequence[PathT]) -> None:
        """Start over with ``paths``."""
        self.refresh(paths)

    def refresh(self, paths: Sequence[PathT]) -> None:
        """Replace the paths and start again at the first one."""
        with self._lock:
            self._set_paths(paths)

    def _set_paths(self, paths: Sequence[PathT]) -> None:
        super()._set_paths(paths)
        self._current = 0

    def path_down(self, fingerprint: Any, interface: Any) -> None:
        """Note that a path went down; traffic is still sent over it."""
        super().path_down(fingerprint, interface)

    def close(self) -> None:
        """Forget all paths; ``path`` returns None afterwards."""
        super().close()


class RandomSelector(_PathListSelector[PathT]):
    """Picks one of the known paths uniformly at random each time."""

    def __init__(self, rng: random.Random | None = None) -> None:
        super().__init__()
        self._rng = rng or random.Random()

    def path(self) -> PathT | None:
        """Return a random path, or None when there are none."""
        with self._lock:
            if not self._paths:
                return None
            return self._rng.choice(self._paths)

    def initialize(self, local: Any, remote: Any, paths: Sequence[PathT]) -> None:
        """Start with ``paths``."""
        self.refresh(paths)

    def refresh(self, paths: Sequence[PathT]) -> None:
        """Replace the paths."""
        with self._lock:
            self._set_paths(paths)

    def path_down(self, fingerprint: Any, interface: Any) -> None:
        """Note that a path went down; traffic is still sent over it."""
        super().path_down(fingerprint, interface)

    def close(self) -> None:
        """Forget all paths; ``path`` returns None afterwards."""
        super().close()


def selector_by_name(name: str) -> RoundRobinSelector | RandomSelector | None:
    """Return the selector for ``name``; ``default`` gives None (the library default)."""
    if name == "default":
        return None
    if name == "round-robin":
        return RoundRobinSelector()
    if name == "random":
        return RandomSelector()
    raise SelectorError("unknown path selection option")