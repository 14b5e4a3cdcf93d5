"""
Query Predicate Language.

Compiles operator query text such as

    after 2024-01-01, before yesterday

into a time predicate. Clauses are joined by commas and combined with AND:

    after <date>, since <date>        exclusive lower bound
    before <date>, preceding <date>   exclusive upper bound

Dates are free text resolved against the current instant by a pluggable date
parser (dateparser by default). The language is fail-closed: an empty query or
any clause that fails to parse yields a predicate that matches nothing.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from zoneinfo import ZoneInfo

import dateparser

from config import get_config
from logging_config import get_logger

logger = get_logger(__name__)

DateParser = Callable[[str, datetime], "datetime | None"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ClauseKind(Enum):
    AFTER = "after"
    BEFORE = "before"


KEYWORDS: dict[str, ClauseKind] = {
    "after": ClauseKind.AFTER,
    "since": ClauseKind.AFTER,
    "before": ClauseKind.BEFORE,
    "preceding": ClauseKind.BEFORE,
}


class QueryParseError(ValueError):
    """Raised by compile_query when a clause cannot be parsed."""


@dataclass(frozen=True)
class Clause:
    kind: ClauseKind
    instant: datetime

    def matches(self, timestamp: datetime) -> bool:
        if self.kind is ClauseKind.AFTER:
            return timestamp > self.instant
        return timestamp < self.instant


@dataclass(frozen=True)
class Predicate:
    """Conjunction of clauses. With no clauses it matches nothing."""

    clauses: tuple[Clause, ...] = ()

    @property
    def matches_nothing(self) -> bool:
        return not self.clauses

    def __call__(self, timestamp: datetime) -> bool:
        if not self.clauses:
            return False
        return all(clause.matches(timestamp) for clause in self.clauses)


MATCH_NOTHING = Predicate()


def format_timestamp(timestamp: datetime) -> str:
    """Renders a timestamp in UTC in a form the query language accepts back."""
    return timestamp.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def make_date_parser(date_order: str = "MDY", timezone: str = "UTC") -> DateParser:
    """
    Builds a dateparser-backed date parser with a fixed dialect.

    Args:
        date_order: Order for ambiguous numeric dates ("MDY" is the US dialect).
        timezone: Timezone in which dates without an explicit zone are read.

    Returns:
        Callable (text, now) -> aware UTC datetime, or None if unparseable.
    """
    zone = ZoneInfo(timezone)

    def parse_relative_date(text: str, now: datetime) -> datetime | None:
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        # dateparser expects a naive relative base expressed in TIMEZONE.
        relative_base = now.astimezone(zone).replace(tzinfo=None)
        parsed = dateparser.parse(
            text,
            languages=["en"],
            settings={
                "DATE_ORDER": date_order,
                "TIMEZONE": timezone,
                "TO_TIMEZONE": "UTC",
                "RETURN_AS_TIMEZONE_AWARE": True,
                "RELATIVE_BASE": relative_base,
            },
        )
        if parsed is None:
            return None
        return parsed.astimezone(UTC)

    return parse_relative_date


def default_date_parser() -> DateParser:
    cfg = get_config()
    return make_date_parser(
        date_order=cfg.get("DATE_ORDER", "MDY"),
        timezone=cfg.get("DATE_TIMEZONE", "UTC"),
    )


def _parse_clause(segment: str, now: datetime, date_parser: DateParser) -> Clause:
    keyword, _, remainder = segment.strip().partition(" ")
    if not keyword:
        raise QueryParseError("empty clause")
    kind = KEYWORDS.get(keyword.lower())
    if kind is None:
        raise QueryParseError(f"unknown keyword {keyword!r}")
    expression = remainder.strip()
    if not expression:
        raise QueryParseError(f"missing date after {keyword!r}")
    try:
        instant = date_parser(expression, now)
    except (ValueError, OverflowError) as e:
        raise QueryParseError(f"cannot parse date {expression!r}") from e
    if instant is None:
        raise QueryParseError(f"cannot parse date {expression!r}")
    return Clause(kind, instant)


def compile_query(
    query: str, now: datetime | None = None, date_parser: DateParser | None = None
) -> Predicate:
    """
    Compiles query text into a Predicate.

    Raises:
        QueryParseError: If the query is empty or any clause is invalid.
    """
    if not query or not query.strip():
        raise QueryParseError("empty query")
    now = now or datetime.now(UTC)
    date_parser = date_parser or default_date_parser()
    clauses = tuple(_parse_clause(segment, now, date_parser) for segment in query.split(","))
    return Predicate(clauses)


def parse_query(
    query: str, now: datetime | None = None, date_parser: DateParser | None = None
) -> Predicate:
    """Fail-closed wrapper around compile_query: errors yield MATCH_NOTHING."""
    try:
        return compile_query(query, now=now, date_parser=date_parser)
    except QueryParseError as e:
        logger.debug(f"Query {query!r} rejected: {e}")
        return MATCH_NOTHING
