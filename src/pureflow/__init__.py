"""pureflow: memoized formula graph plus interceptor-based action dispatch."""

from importlib.metadata import version as _version

__version__ = _version("pureflow")

from pureflow._anchor import STATE
from pureflow.engine import Engine
from pureflow.dispatch import DispatchMode, DispatchOutcome
from pureflow.formula import Subscription
from pureflow.interceptor import Context, Interceptor, Stage
from pureflow.scheduler import AsyncioScheduler, ManualScheduler
from pureflow.equality import values_equal
from pureflow.errors import (
    PureflowError,
    CycleError,
    ReservedIdError,
    MissingHandlerError,
    UnknownEffectError,
    UnknownFetcherError,
    InvalidEffectsError,
)

__all__ = [
    "STATE",
    "Engine",
    "DispatchMode",
    "DispatchOutcome",
    "Subscription",
    "Context",
    "Interceptor",
    "Stage",
    "AsyncioScheduler",
    "ManualScheduler",
    "values_equal",
    "PureflowError",
    "CycleError",
    "ReservedIdError",
    "MissingHandlerError",
    "UnknownEffectError",
    "UnknownFetcherError",
    "InvalidEffectsError",
]
