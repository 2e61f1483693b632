"""Engine: one owned instance of the value store, graph and dispatcher.

Usage:
    engine = Engine(initial_state={"count": 0})
    engine.define_extractor("count", "count")
    engine.define_reducer(
        "increment",
        lambda snapshots, action: {"state": snapshots["state"].set("count", snapshots["state"]["count"] + 1)},
    )
    engine.dispatch_sync(("increment",))
    engine.read("count")  # 1
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from pyrsistent import freeze, pmap

from pureflow._anchor import STATE, Anchor
from pureflow.dispatch import Dispatcher
from pureflow.errors import UnknownFetcherError
from pureflow.formula import Evaluator
from pureflow.graph import DependencyGraph
from pureflow.interceptor import Interceptor, fetcher_interceptor
from pureflow.performer import PerformerRegistry
from pureflow.scheduler import AsyncioScheduler, Scheduler

Fetcher = Callable[..., Any]


class Engine(DependencyGraph, Evaluator, Dispatcher, PerformerRegistry):
    """Reactive formulas plus interceptor-based action dispatch.

    Each base class works on the shared ``_anchor``; the engine only owns
    construction, configuration and fetchers.
    """

    deref = Evaluator.read

    def __init__(
        self,
        *,
        initial_state: Any = None,
        scheduler: Optional[Scheduler] = None,
        strict_actions: bool = False,
        strict_effects: bool = False,
    ) -> None:
        self._anchor = Anchor(None if initial_state is None else freeze(initial_state))
        self.scheduler: Scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.strict_actions = strict_actions
        self.strict_effects = strict_effects
        self._install_presets()

    def set_scheduler(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler

    @property
    def state(self) -> Any:
        return self._anchor.caches[STATE]

    def define_fetcher(self, fetcher_id: str, fn: Fetcher) -> None:
        self._anchor.fetchers[fetcher_id] = fn

    def fetcher_fn(self, fetcher_id: str) -> Optional[Fetcher]:
        return self._anchor.fetchers.get(fetcher_id)

    def fetcher(self, fetcher_id: str, *params: Any) -> Interceptor:
        """Interceptor storing fetcher(snapshots, *params) under snapshots[fetcher_id]."""
        return fetcher_interceptor(self, fetcher_id, params)

    def fetch(self, fetcher_id: str, *params: Any) -> Any:
        """Call a fetcher directly, against a snapshot of the current state."""
        fn = self.fetcher_fn(fetcher_id)
        if fn is None:
            raise UnknownFetcherError(f"No fetcher registered for {fetcher_id!r}")
        return fn(pmap({STATE: self.read(STATE)}), *params)

    def __repr__(self) -> str:
        return (
            f"Engine(formulas={len(self._anchor.formulas)}, "
            f"reducers={len(self._anchor.reducers)}, performers={len(self._anchor.performers)})"
        )
