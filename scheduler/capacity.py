"""
Capacity Rule Resolution.

Answers two questions for a preceptor:
1. Which capacity rule applies for this (clerkship, requirement type)?
   Most specific rule wins, falling back to a built-in default.
2. Does the preceptor still have room on this date (daily, yearly, block)?
"""

import logging
from datetime import date as date_type
from enum import Enum
from typing import List, Dict, Optional, Tuple
from dataclasses import dataclass

from models import Preceptor, PreceptorCapacityRule, RequirementType
from .state import AssignmentLedger

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_DAY = 2
DEFAULT_MAX_PER_YEAR = 20


class CapacityRuleSource(str, Enum):
    CLERKSHIP_SPECIFIC = "clerkship-specific"
    REQUIREMENT_TYPE_SPECIFIC = "requirement-type-specific"
    GENERAL = "general"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedCapacityRule:
    """The limits that apply after walking the rule hierarchy."""
    max_per_day: int
    max_per_year: int
    source: CapacityRuleSource
    max_per_block: Optional[int] = None
    max_blocks_per_year: Optional[int] = None


@dataclass
class CapacityCheckResult:
    """Outcome of a capacity query. Failure details are only set when has_capacity is False."""
    has_capacity: bool
    reason: Optional[str] = None
    current_count: Optional[int] = None
    max_allowed: Optional[int] = None
    check_type: Optional[str] = None  # "daily", "yearly" or "block"


def _from_rule(rule: PreceptorCapacityRule, source: CapacityRuleSource) -> ResolvedCapacityRule:
    return ResolvedCapacityRule(
        max_per_day=rule.max_students_per_day,
        max_per_year=rule.max_students_per_year,
        max_per_block=rule.max_students_per_block,
        max_blocks_per_year=rule.max_blocks_per_year,
        source=source,
    )


class CapacityResolver:
    """
    Resolves and checks preceptor capacity against a ledger.
    Resolutions are cached for the resolver's lifetime, so build one per run.
    """

    def __init__(
        self,
        rules: List[PreceptorCapacityRule],
        preceptors: List[Preceptor],
        ledger: Optional[AssignmentLedger] = None
    ):
        self.rules_by_preceptor: Dict[str, List[PreceptorCapacityRule]] = {}
        for rule in rules:
            self.rules_by_preceptor.setdefault(rule.preceptor_id, []).append(rule)

        self.preceptors = {p.id: p for p in preceptors}
        self.ledger = ledger
        self._cache: Dict[Tuple[str, Optional[str], Optional[str]], ResolvedCapacityRule] = {}

    def resolve(
        self,
        preceptor_id: str,
        clerkship_id: Optional[str] = None,
        requirement_type: Optional[RequirementType] = None
    ) -> ResolvedCapacityRule:
        """
        First match wins:
        1. clerkship + requirement type
        2. clerkship only
        3. requirement type only
        4. general (neither set)
        5. default (2/day, preceptor.max_students or 20/year)
        """
        type_value = requirement_type.value if isinstance(requirement_type, RequirementType) else requirement_type
        key = (preceptor_id, clerkship_id, type_value)
        if key in self._cache:
            return self._cache[key]

        resolved = self._resolve_uncached(preceptor_id, clerkship_id, type_value)
        logger.debug(f"Capacity for {key}: {resolved.source.value} ({resolved.max_per_day}/day, {resolved.max_per_year}/year)")
        self._cache[key] = resolved
        return resolved

    def _resolve_uncached(
        self,
        preceptor_id: str,
        clerkship_id: Optional[str],
        type_value: Optional[str]
    ) -> ResolvedCapacityRule:
        rules = self.rules_by_preceptor.get(preceptor_id, [])

        def rule_type(rule: PreceptorCapacityRule) -> Optional[str]:
            return rule.requirement_type.value if rule.requirement_type else None

        if clerkship_id and type_value:
            for rule in rules:
                if rule.clerkship_id == clerkship_id and rule_type(rule) == type_value:
                    return _from_rule(rule, CapacityRuleSource.CLERKSHIP_SPECIFIC)

        if clerkship_id:
            for rule in rules:
                if rule.clerkship_id == clerkship_id and rule.requirement_type is None:
                    return _from_rule(rule, CapacityRuleSource.CLERKSHIP_SPECIFIC)

        if type_value:
            for rule in rules:
                if rule.clerkship_id is None and rule_type(rule) == type_value:
                    return _from_rule(rule, CapacityRuleSource.REQUIREMENT_TYPE_SPECIFIC)

        for rule in rules:
            if rule.clerkship_id is None and rule.requirement_type is None:
                return _from_rule(rule, CapacityRuleSource.GENERAL)

        preceptor = self.preceptors.get(preceptor_id)
        max_per_year = preceptor.max_students if preceptor and preceptor.max_students else DEFAULT_MAX_PER_YEAR
        return ResolvedCapacityRule(
            max_per_day=DEFAULT_MAX_PER_DAY,
            max_per_year=max_per_year,
            source=CapacityRuleSource.DEFAULT,
        )

    def check_capacity(
        self,
        preceptor_id: str,
        date: date_type,
        clerkship_id: Optional[str] = None,
        requirement_type: Optional[RequirementType] = None,
        block_number: Optional[int] = None,
        academic_year: Optional[int] = None,
        ledger: Optional[AssignmentLedger] = None
    ) -> CapacityCheckResult:
        """
        Daily, then yearly, then block limits. Stops at the first failure.
        Counts come from `ledger`, or the resolver's own ledger when omitted.
        """
        ledger = ledger if ledger is not None else self.ledger
        if ledger is None:
            ledger = AssignmentLedger()

        rule = self.resolve(preceptor_id, clerkship_id, requirement_type)

        # 1. Daily
        daily = ledger.preceptor_count_on(preceptor_id, date)
        if daily >= rule.max_per_day:
            return CapacityCheckResult(
                has_capacity=False,
                reason=f"Preceptor has reached daily capacity ({daily}/{rule.max_per_day})",
                current_count=daily,
                max_allowed=rule.max_per_day,
                check_type="daily",
            )

        # 2. Yearly
        year = academic_year if academic_year is not None else date.year
        yearly = ledger.preceptor_count_in_year(preceptor_id, year)
        if yearly >= rule.max_per_year:
            return CapacityCheckResult(
                has_capacity=False,
                reason=f"Preceptor has reached yearly capacity ({yearly}/{rule.max_per_year})",
                current_count=yearly,
                max_allowed=rule.max_per_year,
                check_type="yearly",
            )

        # 3. Block (only when fully configured)
        if block_number is not None and rule.max_per_block and rule.max_blocks_per_year:
            blocks = ledger.preceptor_blocks_in_year(preceptor_id, year)
            if len(blocks) >= rule.max_blocks_per_year:
                return CapacityCheckResult(
                    has_capacity=False,
                    reason=f"Preceptor at yearly block limit ({len(blocks)}/{rule.max_blocks_per_year} blocks)",
                    current_count=len(blocks),
                    max_allowed=rule.max_blocks_per_year,
                    check_type="block",
                )

        return CapacityCheckResult(has_capacity=True)
