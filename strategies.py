"""
Ordered fallback chains.

A field is resolved by running its strategies left to right and keeping the
first Found result. Every strategy has the same signature
(ParsedPage -> Attempt), so a chain's priority order is plain data that tests
can pin.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar, Union

from parser import ParsedPage

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Malformed:
    """The source existed but could not be parsed. Same as NotFound for the chain."""

    reason: str


Attempt = Union[Found, NotFound, Malformed]

# Errors a strategy may hit while parsing page content; they only fail that strategy.
PARSE_ERRORS = (ValueError, TypeError, KeyError, IndexError, AttributeError)


@dataclass(frozen=True)
class Strategy:
    name: str
    fn: Callable[[ParsedPage], Attempt]

    def __call__(self, page: ParsedPage) -> Attempt:
        try:
            return self.fn(page)
        except PARSE_ERRORS as e:
            return Malformed(f"{e.__class__.__name__}: {e}")


@dataclass
class ExtractedField(Generic[T]):
    """Resolved value plus provenance (the strategy that produced it)."""

    value: T | None = None
    source: str = NOT_FOUND
    # (strategy name, "found" | "not_found" | "malformed: <reason>") in the order tried
    attempts: list[tuple[str, str]] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.source != NOT_FOUND


def found_if(value: Any) -> Attempt:
    """Found for a non-empty value, NotFound otherwise."""
    if value is None or value == "" or value == []:
        return NotFound()
    return Found(value)


def run_chain(field_name: str, strategies: list[Strategy], page: ParsedPage) -> ExtractedField:
    attempts: list[tuple[str, str]] = []
    for strategy in strategies:
        outcome = strategy(page)
        if isinstance(outcome, Found):
            attempts.append((strategy.name, "found"))
            logger.info(f"  {field_name}: found via {strategy.name}")
            return ExtractedField(value=outcome.value, source=strategy.name, attempts=attempts)
        if isinstance(outcome, Malformed):
            logger.debug(f"  {field_name}: {strategy.name} malformed ({outcome.reason})")
            attempts.append((strategy.name, f"malformed: {outcome.reason}"))
        else:
            attempts.append((strategy.name, NOT_FOUND))

    logger.info(f"  {field_name}: not found, using default")
    return ExtractedField(attempts=attempts)
