"""
Exception hierarchy and result types shared across the orchestration core.

Fatal problems (broken journey state) are raised as exceptions and abort a cycle.
Provider problems are reported as ``Failure`` values so fallback chains can move
on to the next strategy without nested try/except blocks.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Optional, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WanderpostError(Exception):
    """Base class for all errors raised by this package"""


class JourneyStateError(WanderpostError):
    """Persisted journey state violates an invariant (fatal for the current cycle)"""


class ProviderError(WanderpostError):
    """An external provider failed, timed out or returned an unusable response"""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class PublicationError(WanderpostError):
    """The publication gateway rejected the document or was unreachable"""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    reason: str
    source: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Failure]

Strategy = Tuple[str, Callable[[], Awaitable[Optional[T]]]]


async def attempt(name: str, call: Callable[[], Awaitable[Optional[T]]]) -> Result:
    """Run one strategy and fold exceptions and empty values into a Failure"""
    try:
        value = await call()
    except Exception as e:
        logger.warning(f"Strategy {name} failed: {e}")
        return Failure(reason=str(e) or type(e).__name__, source=name)
    if value is None:
        return Failure(reason="no result", source=name)
    return Ok(value)


async def first_success(strategies: Iterable[Strategy]) -> Result:
    """Try strategies in order and return the first Ok, or the last Failure"""
    outcome: Result = Failure(reason="no strategies configured")
    for name, call in strategies:
        outcome = await attempt(name, call)
        if outcome.ok:
            return outcome
    return outcome
