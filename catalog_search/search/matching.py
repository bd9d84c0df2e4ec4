"""Declarative match predicate and tiered relevance rule.

Both are plain data built from a normalized query so any backend that can do
literal prefix/substring matching can evaluate them: the in-memory store walks
the conditions directly, the SQL store compiles them to LIKE/CASE expressions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Tuple

# Field names refer to SearchableRecord attributes.
NAME_FIELD = "name_normalized"
SLUG_FIELD = "slug"
DESCRIPTION_FIELD = "description"


def fold_case(value: str) -> str:
    """Case folding shared by every backend for case-insensitive conditions."""
    return value.lower()


class MatchMode(str, Enum):
    prefix = "prefix"
    contains = "contains"


@dataclass(frozen=True)
class FieldCondition:
    field: str
    mode: MatchMode
    term: str
    case_sensitive: bool = True

    @cached_property
    def pattern(self) -> re.Pattern:
        term = self.term if self.case_sensitive else fold_case(self.term)
        escaped = re.escape(term)
        if self.mode is MatchMode.prefix:
            escaped = f"^{escaped}"
        return re.compile(escaped)

    def matches(self, record: Any) -> bool:
        value = getattr(record, self.field, None)
        if not isinstance(value, str):
            return False
        if not self.case_sensitive:
            value = fold_case(value)
        return self.pattern.search(value) is not None


@dataclass(frozen=True)
class MatchPredicate:
    """visible == True AND any(conditions)."""

    conditions: Tuple[FieldCondition, ...]
    visible: bool = True

    def matches(self, record: Any) -> bool:
        if bool(getattr(record, "visible", False)) is not self.visible:
            return False
        return any(cond.matches(record) for cond in self.conditions)


@dataclass(frozen=True)
class RelevanceTier:
    condition: FieldCondition
    score: int


@dataclass(frozen=True)
class ScoringRule:
    """First satisfied tier wins; tiers are never summed."""

    tiers: Tuple[RelevanceTier, ...]
    default: int = 0

    def score(self, record: Any) -> int:
        for tier in self.tiers:
            if tier.condition.matches(record):
                return tier.score
        return self.default


def _search_conditions(normalized_q: str) -> Tuple[FieldCondition, ...]:
    # Order is the tier order; the predicate uses the same set.
    return (
        FieldCondition(NAME_FIELD, MatchMode.prefix, normalized_q),
        FieldCondition(SLUG_FIELD, MatchMode.prefix, normalized_q, case_sensitive=False),
        FieldCondition(NAME_FIELD, MatchMode.contains, normalized_q),
        FieldCondition(SLUG_FIELD, MatchMode.contains, normalized_q, case_sensitive=False),
        FieldCondition(
            DESCRIPTION_FIELD, MatchMode.contains, normalized_q, case_sensitive=False
        ),
    )


TIER_SCORES: Tuple[int, ...] = (300, 260, 200, 170, 120)


def build_match_query(normalized_q: str) -> MatchPredicate:
    return MatchPredicate(conditions=_search_conditions(normalized_q))


def build_relevance_expression(normalized_q: str) -> ScoringRule:
    conditions = _search_conditions(normalized_q)
    return ScoringRule(
        tiers=tuple(
            RelevanceTier(condition=cond, score=score)
            for cond, score in zip(conditions, TIER_SCORES)
        )
    )
