"""Tests for the dispatcher: timing modes, missing handlers, end-to-end flow."""

import asyncio
import logging

import pytest
from pyrsistent import freeze

from pureflow import DispatchMode, DispatchOutcome, Engine, ManualScheduler, MissingHandlerError


def counter_engine(**kwargs):
    e = Engine(initial_state={"count": 0}, **kwargs)
    e.define_extractor("count", "count")
    e.define_reducer(
        "increment",
        lambda snapshots, action: {"state": snapshots["state"].set("count", snapshots["state"].get("count") + 1)},
    )
    return e


class TestDispatchSync:
    def test_end_to_end(self):
        e = counter_engine()
        assert e.dispatch_sync(["increment"]) is DispatchOutcome.HANDLED
        assert e.read("count") == 1

    def test_action_params(self):
        e = Engine(initial_state={"count": 0})
        e.define_state_reducer("add", lambda state, action: state.set("count", state["count"] + action[1]))
        e.dispatch_sync(("add", 5))
        e.dispatch_sync(["add", 2])
        assert e.read("state") == freeze({"count": 7})

    def test_string_shorthand(self):
        e = counter_engine()
        e.dispatch_sync("increment")
        assert e.read("count") == 1

    def test_empty_action(self):
        e = counter_engine()
        with pytest.raises(ValueError):
            e.dispatch_sync(())

    def test_reducer_sees_action(self):
        e = Engine()
        seen = []
        e.define_reducer("go", lambda snapshots, action: seen.append(action))
        e.dispatch_sync(["go", 1, "two"])
        assert seen == [("go", 1, "two")]

    def test_fresh_context_per_dispatch(self):
        e = Engine()
        e.define_fetcher("n", lambda snapshots, n: n)
        seen = []
        e.define_reducer("go", [e.fetcher("n", 1)], lambda snapshots, action: seen.append(sorted(snapshots)))
        e.define_reducer("other", lambda snapshots, action: seen.append(sorted(snapshots)))
        e.dispatch_sync(("go",))
        e.dispatch_sync(("other",))
        assert seen == [["n", "state"], ["state"]]

    def test_notifies_subscribers(self):
        e = counter_engine()
        log = []
        e.subscribe(["count"], log.append)
        e.dispatch_sync(("increment",))
        e.dispatch_sync(("increment",))
        assert log == [1, 2]

    def test_redefine_reducer(self):
        e = Engine(initial_state={"v": 0})
        e.define_state_reducer("set", lambda state, action: state.set("v", 1))
        e.define_state_reducer("set", lambda state, action: state.set("v", 2))
        e.dispatch_sync(("set",))
        assert e.read("state")["v"] == 2
        assert e.action_ids() == ["set"]


class TestMissingHandler:
    def test_warns_and_continues(self, caplog):
        e = Engine()
        with caplog.at_level(logging.WARNING, logger="pureflow.dispatch"):
            outcome = e.dispatch_sync(("nope", 1))
        assert outcome is DispatchOutcome.MISSING_HANDLER
        assert "No handler for action" in caplog.text
        assert "nope" in caplog.text

    def test_strict(self):
        e = Engine(strict_actions=True)
        with pytest.raises(MissingHandlerError):
            e.dispatch_sync(("nope",))

    def test_is_registered(self):
        e = counter_engine()
        assert e.is_registered("increment")
        assert not e.is_registered("nope")


class TestDeferred:
    def test_dispatch_does_not_run_synchronously(self):
        clock = ManualScheduler()
        e = counter_engine(scheduler=clock)
        e.dispatch(("increment",))
        assert e.read("count") == 0
        assert clock.pending_count() == 1
        clock.run_pending()
        assert e.read("count") == 1

    def test_dispatch_later_waits(self):
        clock = ManualScheduler()
        e = counter_engine(scheduler=clock)
        e.dispatch_later(("increment",), 50)
        clock.advance(49)
        assert e.read("count") == 0
        clock.advance(1)
        assert e.read("count") == 1

    def test_negative_delay(self):
        e = counter_engine(scheduler=ManualScheduler())
        with pytest.raises(ValueError):
            e.dispatch_later(("increment",), -1)

    def test_missing_handler_deferred(self, caplog):
        clock = ManualScheduler()
        e = Engine(scheduler=clock)
        e.dispatch(("nope",))
        with caplog.at_level(logging.WARNING, logger="pureflow.dispatch"):
            clock.run_pending()
        assert "No handler for action" in caplog.text

    def test_asyncio_default(self):
        async def main():
            e = counter_engine()
            e.dispatch(("increment",))
            assert e.read("count") == 0
            e.dispatch_later(("increment",), 10)
            await asyncio.sleep(0.05)
            return e.read("count")

        assert asyncio.run(main()) == 2

    def test_asyncio_without_loop(self):
        e = counter_engine()
        with pytest.raises(RuntimeError, match="running asyncio loop"):
            e.dispatch(("increment",))

    def test_set_scheduler(self):
        e = counter_engine()
        clock = ManualScheduler()
        e.set_scheduler(clock)
        e.dispatch(("increment",))
        clock.run_pending()
        assert e.read("count") == 1


class TestSubmit:
    def test_modes(self):
        clock = ManualScheduler()
        e = counter_engine(scheduler=clock)
        assert e.submit(("increment",), DispatchMode.SYNC) is DispatchOutcome.HANDLED
        assert e.read("count") == 1
        assert e.submit(("increment",), "later", 20) is None
        assert e.submit(("increment",)) is None
        clock.run_pending()
        assert e.read("count") == 2
        clock.advance(20)
        assert e.read("count") == 3

    def test_unknown_mode(self):
        e = counter_engine()
        with pytest.raises(ValueError):
            e.submit(("increment",), "eventually")


class TestDispatchers:
    def test_builds_callables(self):
        clock = ManualScheduler()
        e = Engine(initial_state={"count": 0}, scheduler=clock)
        e.define_extractor("count", "count")
        e.define_state_reducer("add", lambda state, action: state.set("count", state["count"] + action[1]))
        handlers = e.dispatchers(
            {
                "on_click": "add",
                "on_key": {"id": "add", "mode": "sync"},
                "on_tick": {"id": "add", "mode": "later", "ms": 10},
            }
        )
        handlers["on_key"](1)
        assert e.read("count") == 1
        handlers["on_click"](10)
        assert e.read("count") == 1
        clock.run_pending()
        assert e.read("count") == 11
        handlers["on_tick"](100)
        clock.advance(10)
        assert e.read("count") == 111


class TestEngine:
    def test_presets_installed(self):
        e = Engine(scheduler=ManualScheduler())
        assert {"dispatch", "dispatch-later", "dispatch-sync"} <= set(e.performer_kinds())

    def test_deref_is_read(self):
        e = Engine(initial_state={"n": 1})
        e.define_extractor("n", "n")
        assert e.deref("n") == e.read("n") == 1

    def test_repr_counts(self):
        e = Engine(scheduler=ManualScheduler())
        e.define_extractor("n", "n")
        e.define_state_reducer("noop", lambda state, action: state)
        assert repr(e) == "Engine(formulas=1, reducers=1, performers=3)"
