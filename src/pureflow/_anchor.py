"""Data anchor: plain Python structures that hold all engine state.

Every registry of an Engine lives on one Anchor instance. The behavior
modules (graph, formula, dispatch) are thin views over it, so two engines
never share a cache, a formula or a reducer chain.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable

from pyrsistent import pmap

STATE = "state"

# Sentinel for "no cache entry"; None is a legitimate cached value.
UNSET = object()


class Anchor:
    __slots__ = (
        "caches",
        "dirty",
        "formulas",
        "upstreams",
        "downstreams",
        "reducers",
        "fetchers",
        "performers",
        "_id_counter",
    )

    def __init__(self, initial_state: Any = None) -> None:
        # Value store: id -> last computed/assigned value
        self.caches: dict[str, Any] = {STATE: pmap() if initial_state is None else initial_state}
        # Ids whose cached value is stale but still serves as the "did it change" baseline
        self.dirty: set[str] = set()

        # Dependency graph
        self.formulas: dict[str, Callable[..., Any]] = {}
        self.upstreams: dict[str, tuple[str, ...]] = {}
        self.downstreams: dict[str, list[str]] = {}  # id -> dependents, insertion order

        # Dispatch registries
        self.reducers: dict[str, tuple] = {}  # action id -> compiled chain of Stages
        self.fetchers: dict[str, Callable[..., Any]] = {}
        self.performers: dict[str, Callable[..., Any]] = {}

        self._id_counter = itertools.count(1)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}:{next(self._id_counter)}"
