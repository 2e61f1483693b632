"""Effect performers: named handlers for the fx entries a reducer declares.

The preset kinds re-enter the dispatcher, which lets a reducer chain further
actions without holding a reference to the engine:

    {"fx": [("dispatch", ("saved", 1)), ("dispatch-later", ("poll",), 500)]}
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pureflow._anchor import Anchor

logger = logging.getLogger("pureflow.performer")

Performer = Callable[..., Any]


class PerformerRegistry:
    """Performers over ``self._anchor``; presets need the Dispatcher methods."""

    _anchor: Anchor

    def define_performer(self, kind: str, fn: Performer) -> None:
        if kind in self._anchor.performers:
            logger.debug("Replacing performer %r", kind)
        self._anchor.performers[kind] = fn

    def performer(self, kind: str) -> Optional[Performer]:
        return self._anchor.performers.get(kind)

    def performer_kinds(self) -> list[str]:
        return list(self._anchor.performers)

    def _install_presets(self) -> None:
        self.define_performer("dispatch", self.dispatch)
        self.define_performer("dispatch-later", self.dispatch_later)
        self.define_performer("dispatch-sync", self.dispatch_sync)
