"""Dependency graph: formulas, their upstreams, and the inverse downstream links.

Redefining a formula is remove-then-add, so no stale downstream link from a
previous registration survives. Registration checks that the new edges keep
the graph acyclic and never computes anything.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from pureflow._anchor import STATE, Anchor
from pureflow.errors import CycleError, ReservedIdError

logger = logging.getLogger("pureflow.graph")


class DependencyGraph:
    """Formula registration over ``self._anchor``."""

    _anchor: Anchor

    def define_formula(self, formula_id: str, upstreams: Iterable[str], fn: Callable) -> None:
        """Register (or replace) the formula at formula_id.

        Raises ReservedIdError for the root state id and CycleError when an
        upstream already depends on formula_id. On error the graph is
        left as it was.
        """
        if formula_id == STATE:
            raise ReservedIdError(f"{STATE!r} is reserved for the root state")
        upstreams = tuple(upstreams)
        self._check_acyclic(formula_id, upstreams)

        if formula_id in self._anchor.formulas:
            self._unlink(formula_id)

        a = self._anchor
        a.formulas[formula_id] = fn
        a.upstreams[formula_id] = upstreams
        for upstream in upstreams:
            a.downstreams.setdefault(upstream, []).append(formula_id)

        self._mark_dirty(formula_id)
        logger.debug("Defined formula %r over %r", formula_id, upstreams)

    def delete_formula(self, formula_id: str) -> None:
        """Remove the formula. Its own downstreams keep a dangling dependency."""
        if formula_id not in self._anchor.formulas:
            return
        self._unlink(formula_id)
        self._anchor.caches.pop(formula_id, None)
        self._anchor.dirty.discard(formula_id)
        logger.debug("Deleted formula %r", formula_id)

    def has_formula(self, formula_id: str) -> bool:
        return formula_id in self._anchor.formulas

    def formula_ids(self) -> list[str]:
        return list(self._anchor.formulas)

    def upstreams_of(self, formula_id: str) -> tuple[str, ...]:
        return self._anchor.upstreams.get(formula_id, ())

    def downstreams_of(self, formula_id: str) -> tuple[str, ...]:
        return tuple(self._anchor.downstreams.get(formula_id, ()))

    def _unlink(self, formula_id: str) -> None:
        a = self._anchor
        del a.formulas[formula_id]
        for upstream in a.upstreams.pop(formula_id, ()):
            links = a.downstreams.get(upstream)
            if not links:
                continue
            # An id may list the same upstream twice; drop every link.
            links[:] = [d for d in links if d != formula_id]
            if not links:
                del a.downstreams[upstream]

    def _check_acyclic(self, formula_id: str, upstreams: tuple[str, ...]) -> None:
        # Walk the upstream map from each new upstream; reaching formula_id
        # means formula_id would feed itself.
        a = self._anchor
        for start in upstreams:
            stack = [(start, [formula_id, start])]
            seen = set()
            while stack:
                node, path = stack.pop()
                if node == formula_id:
                    raise CycleError(formula_id, path)
                if node in seen:
                    continue
                seen.add(node)
                for parent in a.upstreams.get(node, ()):
                    stack.append((parent, path + [parent]))

    def _mark_dirty(self, formula_id: str) -> None:
        """Flag formula_id and everything downstream for recompute on next read.

        Cached values stay in place as the baseline that reset() compares
        against, so a redefinition alone never looks like a change.
        """
        a = self._anchor
        stack = [formula_id]
        seen = set()
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            a.dirty.add(node)
            stack.extend(a.downstreams.get(node, ()))
