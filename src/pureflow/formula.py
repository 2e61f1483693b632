"""Formulas: memoized derived values with change-driven recomputation.

First reads are lazy: read() computes a formula (and any uncached upstream)
on demand and caches the result. Updates are eager but pruned: reset()
recomputes the downstreams of a changed id, and propagation stops at the
first formula whose output is equal to its cached value.

A formula with two changed upstreams may be recomputed once per upstream
reset() that reaches it. Each run pulls the latest upstream values, so the
cached value converges.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from pyrsistent import freeze, get_in

from pureflow._anchor import STATE, UNSET, Anchor
from pureflow.equality import values_equal
from pureflow.graph import DependencyGraph

T = TypeVar("T")


class Evaluator:
    """Reads and propagation over ``self._anchor``; expects define_formula()
    and delete_formula() from DependencyGraph on the same instance."""

    _anchor: Anchor

    def read(self, formula_id: str) -> Any:
        """Return the cached value of formula_id, computing it if absent."""
        caches = self._anchor.caches
        value = caches.get(formula_id, UNSET)
        if value is UNSET or formula_id in self._anchor.dirty:
            value = self.compute(formula_id)
            caches[formula_id] = value
            self._anchor.dirty.discard(formula_id)
        return value

    def compute(self, formula_id: str) -> Any:
        """Run the formula, bypassing its own cache. Upstreams come from read()."""
        fn = self._anchor.formulas.get(formula_id)
        if fn is None:
            return None
        params = [self.read(upstream) for upstream in self._anchor.upstreams.get(formula_id, ())]
        return fn(*params)

    def reset(self, formula_id: str, value: Any) -> None:
        """Assign value to formula_id and propagate to downstreams if it changed."""
        a = self._anchor
        caches = a.caches
        unchanged = values_equal(caches.get(formula_id, UNSET), value)
        a.dirty.discard(formula_id)
        if unchanged:
            return
        caches[formula_id] = value
        # Copy: a performer or subscriber may (re)define formulas mid-propagation.
        for downstream in list(a.downstreams.get(formula_id, ())):
            if downstream in a.formulas:
                self.reset(downstream, self.compute(downstream))

    def reset_root_state(self, new_state: Any) -> None:
        self.reset(STATE, freeze(new_state))

    def define_extractor(self, formula_id: str, *path: Any) -> None:
        """Register a formula reading the root state at path (None if missing)."""
        keys = list(path)
        self.define_formula(formula_id, (STATE,), lambda state: get_in(keys, state))

    def define_transformer(self, formula_id: str, upstreams: Iterable[str], fn: Callable[..., T]) -> None:
        self.define_formula(formula_id, upstreams, fn)

    def subscribe(
        self,
        ids: Iterable[str],
        callback: Callable[..., None],
        *,
        fire_immediately: bool = False,
    ) -> Subscription:
        """Call callback(*values) whenever any of ids changes.

        The callback receives the current value of every id, in order.
        Returns a Subscription (call .dispose() to stop).
        """
        ids = tuple(ids)
        sub_id = self._anchor.new_id("subscription")

        def _notify(*values: Any) -> None:
            callback(*values)

        # Pull current values first: an id with no cache entry would look
        # "changed" on the next unrelated propagation.
        current = [self.read(i) for i in ids]
        if fire_immediately:
            callback(*current)
        self.define_formula(sub_id, ids, _notify)
        # Seed the cache so the first propagation is compared against a value,
        # not against "absent".
        self._anchor.caches[sub_id] = None
        return Subscription(sub_id, self)


class Subscription:
    """Disposable handle for a subscribe() registration."""

    __slots__ = ("_id", "_owner", "_disposed")

    def __init__(self, sub_id: str, owner: DependencyGraph) -> None:
        self._id = sub_id
        self._owner = owner
        self._disposed = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._owner.delete_formula(self._id)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Subscription({self._id}, {state})"
