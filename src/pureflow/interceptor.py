"""Interceptors and the chain builder.

An action's chain is fixed when its reducer is registered:

    inject-state.before, I1.before, ..., In.before, <reducer>.before,
    In.after, ..., I1.after, do-fx.after

Every stage takes a Context and returns a (new) Context. Before stages
gather read-only inputs under ``snapshots``; the reducer writes
``effects``; after stages react to effects, and do-fx applies them last.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, NamedTuple, Optional

from pyrsistent import PMap, PRecord, field, freeze, pmap

from pureflow._anchor import STATE
from pureflow.errors import InvalidEffectsError, UnknownEffectError, UnknownFetcherError

if TYPE_CHECKING:
    from pureflow.engine import Engine

logger = logging.getLogger("pureflow.interceptor")

INJECT_STATE = "inject-state"
DO_FX = "do-fx"

Reducer = Callable[[PMap, tuple], Optional[Mapping[str, Any]]]


class Context(PRecord):
    """Per-dispatch record threaded through a chain."""

    snapshots = field(type=PMap, initial=pmap())
    effects = field(type=PMap, initial=pmap())
    action = field(type=tuple, initial=())

    def with_snapshot(self, key: str, value: Any) -> Context:
        return self.set(snapshots=self.snapshots.set(key, value))


StageFn = Callable[[Context], Context]


@dataclass(frozen=True)
class Interceptor:
    """A reusable chain stage. Either function may be omitted."""

    id: str
    before: Optional[StageFn] = None
    after: Optional[StageFn] = None


class Stage(NamedTuple):
    interceptor_id: str
    phase: str  # "before" | "after"
    fn: StageFn


def build_chain(interceptors: Iterable[Interceptor]) -> tuple[Stage, ...]:
    """All before functions in order, then all after functions in reverse."""
    interceptors = list(interceptors)
    befores = [Stage(i.id, "before", i.before) for i in interceptors if i.before is not None]
    afters = [Stage(i.id, "after", i.after) for i in reversed(interceptors) if i.after is not None]
    return tuple(befores + afters)


def run_chain(chain: Iterable[Stage], context: Context) -> Context:
    for stage in chain:
        context = stage.fn(context)
    return context


def inject_state(engine: Engine) -> Interceptor:
    def before(context: Context) -> Context:
        return context.with_snapshot(STATE, engine.read(STATE))

    return Interceptor(INJECT_STATE, before=before)


def reducer_interceptor(action_id: str, reducer: Reducer) -> Interceptor:
    """Wrap a reducer as the terminal before stage."""

    def before(context: Context) -> Context:
        effects = reducer(context.snapshots, context.action)
        if effects is None:
            return context
        if not isinstance(effects, Mapping):
            raise InvalidEffectsError(
                f"Reducer for {action_id!r} returned {type(effects).__name__}, expected a mapping of effects"
            )
        return context.set(effects=context.effects.update(effects))

    return Interceptor(action_id, before=before)


def do_fx(engine: Engine) -> Interceptor:
    """Apply effects: replace state first, then run fx entries in order."""

    def after(context: Context) -> Context:
        effects = context.effects
        state = effects.get(STATE)
        if state is not None:
            engine.reset(STATE, freeze(state))

        for entry in effects.get("fx") or ():
            if isinstance(entry, str):
                entry = (entry,)
            kind, *params = entry
            performer = engine.performer(kind)
            if performer is None:
                if engine.strict_effects:
                    raise UnknownEffectError(f"No performer for effect {kind!r}")
                logger.debug("Skipping effect %r: no performer registered", kind)
                continue
            performer(*params)

        return context

    return Interceptor(DO_FX, after=after)


def fetcher_interceptor(engine: Engine, fetcher_id: str, params: tuple) -> Interceptor:
    """Stage that stores fetcher(snapshots, *params) at snapshots[fetcher_id]."""

    def before(context: Context) -> Context:
        fn = engine.fetcher_fn(fetcher_id)
        if fn is None:
            raise UnknownFetcherError(f"No fetcher registered for {fetcher_id!r}")
        return context.with_snapshot(fetcher_id, fn(context.snapshots, *params))

    return Interceptor(fetcher_id, before=before)
