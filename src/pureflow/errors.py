"""Exceptions raised by pureflow.

Formula and reducer exceptions are never wrapped: they reach the caller of
read()/dispatch_sync() unchanged. The classes here cover misuse of the
engine itself.
"""


class PureflowError(Exception):
    """Base class for all engine errors."""


class CycleError(PureflowError, ValueError):
    """A formula would (transitively) depend on itself."""

    def __init__(self, formula_id: str, path: list[str]) -> None:
        self.formula_id = formula_id
        self.path = path
        super().__init__(f"Formula {formula_id!r} would create a cycle: {' -> '.join(path)}")


class ReservedIdError(PureflowError, ValueError):
    """The id is reserved for the root state."""


class MissingHandlerError(PureflowError, LookupError):
    """No reducer is registered for the dispatched action id."""


class UnknownEffectError(PureflowError, LookupError):
    """An fx entry names a performer kind with no registration."""


class UnknownFetcherError(PureflowError, LookupError):
    """A fetcher stage names a fetcher id with no registration."""


class InvalidEffectsError(PureflowError, TypeError):
    """A reducer returned something other than a mapping of effects."""
