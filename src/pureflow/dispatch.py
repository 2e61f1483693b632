"""Dispatcher: routes actions through their registered interceptor chains.

dispatch_sync() runs a chain to completion before returning. dispatch_later()
and dispatch() hand the call to the engine's scheduler, so a caller never
observes the state changes of its own deferred dispatch synchronously.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pyrsistent import pmap

from pureflow._anchor import STATE, Anchor
from pureflow.errors import MissingHandlerError
from pureflow.interceptor import (
    Context,
    Interceptor,
    Reducer,
    build_chain,
    do_fx,
    inject_state,
    reducer_interceptor,
    run_chain,
)

logger = logging.getLogger("pureflow.dispatch")

Action = Union[tuple, list, str]


class DispatchMode(str, enum.Enum):
    SYNC = "sync"
    LATER = "later"
    ASYNC = "async"


class DispatchOutcome(enum.Enum):
    HANDLED = "handled"
    MISSING_HANDLER = "missing-handler"


def normalize_action(action: Action) -> tuple:
    if isinstance(action, str):
        return (action,)
    action = tuple(action)
    if not action:
        raise ValueError("An action needs at least an action id")
    return action


class Dispatcher:
    """Reducer chains over ``self._anchor``. The instance must also provide
    read(), reset(), performer(), fetcher_fn(), scheduler and the strict flags
    (Engine does)."""

    _anchor: Anchor

    def define_reducer(
        self,
        action_id: str,
        interceptors: Union[Iterable[Interceptor], Reducer],
        reducer: Optional[Reducer] = None,
    ) -> None:
        """Compile and store the chain for action_id.

        Usage:
            define_reducer("increment", reducer)
            define_reducer("load", [engine.fetcher("user", 42)], reducer)
        """
        if reducer is None:
            if not callable(interceptors):
                raise TypeError("define_reducer() needs a reducer function")
            interceptors, reducer = (), interceptors
        # Afters run reversed, so do-fx listed second runs last.
        chain = build_chain(
            [
                inject_state(self),
                do_fx(self),
                *interceptors,
                reducer_interceptor(action_id, reducer),
            ]
        )
        if action_id in self._anchor.reducers:
            logger.debug("Replacing reducer for %r", action_id)
        self._anchor.reducers[action_id] = chain

    def define_state_reducer(self, action_id: str, fn: Callable[[Any, tuple], Any]) -> None:
        """Register a reducer that only maps (state, action) to the next state."""
        self.define_reducer(action_id, lambda snapshots, action: {STATE: fn(snapshots.get(STATE), action)})

    def is_registered(self, action_id: str) -> bool:
        return action_id in self._anchor.reducers

    def action_ids(self) -> list[str]:
        return list(self._anchor.reducers)

    def chain_of(self, action_id: str) -> tuple:
        return self._anchor.reducers.get(action_id, ())

    def dispatch_sync(self, action: Action) -> DispatchOutcome:
        action = normalize_action(action)
        chain = self._anchor.reducers.get(action[0])
        if chain is None:
            if self.strict_actions:
                raise MissingHandlerError(f"No handler for action {action!r}")
            logger.warning("No handler for action %r", action)
            return DispatchOutcome.MISSING_HANDLER
        run_chain(chain, Context(snapshots=pmap(), effects=pmap(), action=action))
        return DispatchOutcome.HANDLED

    def dispatch_later(self, action: Action, ms: float) -> None:
        if ms < 0:
            raise ValueError(f"Delay must be >= 0, got {ms}")
        action = normalize_action(action)
        logger.debug("Scheduling %r in %sms", action, ms)
        self.scheduler.call_later(ms / 1000.0, lambda: self.dispatch_sync(action))

    def dispatch(self, action: Action) -> None:
        self.dispatch_later(action, 0)

    def submit(self, action: Action, mode: Union[DispatchMode, str] = DispatchMode.ASYNC, ms: float = 0) -> Optional[DispatchOutcome]:
        """Dispatch in the given mode. Only SYNC returns an outcome."""
        mode = DispatchMode(mode)
        if mode is DispatchMode.SYNC:
            return self.dispatch_sync(action)
        if mode is DispatchMode.LATER:
            self.dispatch_later(action, ms)
        else:
            self.dispatch(action)
        return None

    def dispatchers(self, declarations: Mapping[str, Union[str, Mapping[str, Any]]]) -> dict[str, Callable[..., Any]]:
        """Build named dispatch callables from declarations.

        Usage:
            handlers = engine.dispatchers({
                "on_click": "increment",
                "on_tick": {"id": "tick", "mode": "later", "ms": 10},
            })
            handlers["on_click"](2)   # dispatch(("increment", 2))
        """
        result = {}
        for name, decl in declarations.items():
            if isinstance(decl, str):
                decl = {"id": decl}
            result[name] = self._bind(decl["id"], DispatchMode(decl.get("mode", DispatchMode.ASYNC)), decl.get("ms", 0))
        return result

    def _bind(self, action_id: str, mode: DispatchMode, ms: float) -> Callable[..., Any]:
        def _dispatcher(*params: Any) -> Optional[DispatchOutcome]:
            return self.submit((action_id, *params), mode, ms)

        _dispatcher.__name__ = f"dispatch_{action_id}"
        return _dispatcher
