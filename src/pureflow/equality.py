"""Value equality used for change detection.

reset() only propagates when a new value differs from the cached one. The
comparison is structural and type-aware: collections compare by content,
and scalars must share a type, so ``0`` and ``False`` or ``1`` and ``1.0``
count as a change.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence, Set
from typing import Any


def values_equal(old: Any, new: Any) -> bool:
    if old is new:
        return True
    if type(old) is not type(new):
        return False
    if isinstance(old, Mapping):
        if len(old) != len(new):
            return False
        for key, value in old.items():
            if key not in new or not values_equal(value, new[key]):
                return False
        return True
    if isinstance(old, Sequence) and not isinstance(old, (str, bytes)):
        return len(old) == len(new) and all(values_equal(a, b) for a, b in zip(old, new))
    if isinstance(old, Set):
        return old == new
    try:
        return bool(old == new)
    except (TypeError, ValueError):
        # Values without a usable truthy __eq__ (e.g. array-likes) are
        # treated as changed.
        return False
