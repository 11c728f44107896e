"""
Fallback Gap Filling.

Runs after the primary assignment pass. Takes the requirements that pass left
short and tries to close them with fallback preceptors, largest gap first:
1. Resolve tiered candidates (team -> health system -> cross-system)
2. Walk each candidate's available dates in order
3. Take every date the student is free and the preceptor has capacity
Single greedy sweep, no backtracking.
"""

import logging
from datetime import date as date_type
from typing import List, Dict, Mapping, Iterable, Set
from collections import defaultdict
from dataclasses import dataclass, field

from models import Assignment, UnmetRequirement, ResolvedRequirementConfiguration, DateRange
from .capacity import CapacityResolver
from .exceptions import ConfigurationError
from .fallback import FallbackPreceptorResolver, FallbackCandidate
from .state import AssignmentLedger, SchedulingContext

logger = logging.getLogger(__name__)


@dataclass
class RequirementFulfillment:
    """How far one requirement got. assigned_days includes days from before the pass."""
    student_id: str
    clerkship_id: str
    required_days: int
    assigned_days: int
    added_days: int

    @property
    def key(self) -> str:
        return f"{self.student_id}-{self.clerkship_id}"


@dataclass
class GapFillerResult:
    assignments: List[Assignment] = field(default_factory=list)
    fulfilled_requirements: List[RequirementFulfillment] = field(default_factory=list)
    partial_fulfillments: List[RequirementFulfillment] = field(default_factory=list)
    still_unmet: List[UnmetRequirement] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "assignments": len(self.assignments),
            "fulfilled": len(self.fulfilled_requirements),
            "partial": len(self.partial_fulfillments),
            "still_unmet": len(self.still_unmet),
        }


def validate_config_map(configs: Mapping[str, ResolvedRequirementConfiguration]) -> None:
    """Raise ConfigurationError for a map that is not clerkship_id -> configuration."""
    if not isinstance(configs, Mapping):
        raise ConfigurationError(f"Configuration map must be a mapping, got {type(configs).__name__}")
    for clerkship_id, config in configs.items():
        if not isinstance(config, ResolvedRequirementConfiguration):
            raise ConfigurationError(
                f"Configuration for {clerkship_id} must be a ResolvedRequirementConfiguration, "
                f"got {type(config).__name__}"
            )
        if config.clerkship_id != clerkship_id:
            raise ConfigurationError(
                f"Configuration keyed as {clerkship_id} belongs to clerkship {config.clerkship_id}"
            )


class FallbackGapFiller:
    """
    Repairs unmet requirements using fallback preceptors.
    Reads availability and blackout dates from the context; never writes to it.
    """

    def __init__(
        self,
        context: SchedulingContext,
        capacity_resolver: CapacityResolver,
        preceptor_resolver: FallbackPreceptorResolver
    ):
        self.context = context
        self.capacity_resolver = capacity_resolver
        self.preceptor_resolver = preceptor_resolver

    def fill_gaps(
        self,
        unmet_requirements: Iterable[UnmetRequirement],
        existing_assignments: Iterable[Assignment],
        configs: Mapping[str, ResolvedRequirementConfiguration],
        date_range: DateRange
    ) -> GapFillerResult:
        validate_config_map(configs)
        result = GapFillerResult()

        requirements = sorted(unmet_requirements, key=lambda r: r.remaining_days, reverse=True)
        if not requirements:
            return result

        # Capacity and double-booking are counted against everything committed so far
        ledger = AssignmentLedger(existing_assignments)
        tried: Dict[str, Set[str]] = defaultdict(set)

        for requirement in requirements:
            config = configs.get(requirement.clerkship_id)
            if config is None or not config.allow_fallbacks:
                logger.debug(f"{requirement.key}: fallbacks unavailable (config={'missing' if config is None else 'disabled'})")
                result.still_unmet.append(requirement)
                continue

            created = self._fill_requirement(requirement, config, ledger, date_range, tried[requirement.key])
            result.assignments.extend(created)

            added = len(created)
            if added == 0:
                result.still_unmet.append(requirement)
                continue

            outcome = RequirementFulfillment(
                student_id=requirement.student_id,
                clerkship_id=requirement.clerkship_id,
                required_days=requirement.required_days,
                assigned_days=requirement.assigned_days + added,
                added_days=added,
            )
            if added >= requirement.remaining_days:
                result.fulfilled_requirements.append(outcome)
            else:
                result.partial_fulfillments.append(outcome)

        logger.info(f"Gap filling complete: {result.summary()}")
        if result.still_unmet:
            logger.warning(f"{len(result.still_unmet)} requirement(s) still unmet after gap filling")
        return result

    def _fill_requirement(
        self,
        requirement: UnmetRequirement,
        config: ResolvedRequirementConfiguration,
        ledger: AssignmentLedger,
        date_range: DateRange,
        tried: Set[str]
    ) -> List[Assignment]:
        primary_team_id = requirement.primary_team_id
        primary_health_system_id = requirement.primary_health_system_id

        # No primary pass for this student: treat the clerkship's first team as primary
        if primary_team_id is None:
            teams = self.preceptor_resolver.get_teams_for_clerkship(requirement.clerkship_id)
            if teams:
                primary_team_id = teams[0][0]
                logger.debug(f"{requirement.key}: no primary team, defaulting to {primary_team_id}")

        if primary_health_system_id is None and primary_team_id:
            primary_health_system_id = self.preceptor_resolver.get_team_health_system(primary_team_id)

        candidates = self.preceptor_resolver.get_ordered_fallback_preceptors(
            requirement.clerkship_id,
            primary_team_id,
            primary_health_system_id,
            config.fallback_allow_cross_system,
            excluded_ids=tried,
        )

        created: List[Assignment] = []
        remaining = requirement.remaining_days

        for candidate in candidates:
            if remaining <= 0:
                break
            tried.add(candidate.preceptor_id)

            for day in self._candidate_dates(candidate, requirement, config, ledger, date_range):
                if remaining <= 0:
                    break
                assignment = Assignment(
                    student_id=requirement.student_id,
                    preceptor_id=candidate.preceptor_id,
                    clerkship_id=requirement.clerkship_id,
                    date=day,
                    tier=candidate.tier,
                    fallback_team_id=candidate.team_id,
                    original_team_id=candidate.team_id,
                )
                ledger.add(assignment)
                created.append(assignment)
                remaining -= 1

            logger.debug(f"{requirement.key}: after {candidate.preceptor_id} (tier {candidate.tier}) {remaining} day(s) remain")

        return created

    def _candidate_dates(
        self,
        candidate: FallbackCandidate,
        requirement: UnmetRequirement,
        config: ResolvedRequirementConfiguration,
        ledger: AssignmentLedger,
        date_range: DateRange
    ) -> Iterable[date_type]:
        """
        Available dates in range, ascending, that the student does not hold,
        are not blacked out and fit the preceptor's daily and yearly capacity.
        Evaluated lazily so each check sees assignments made earlier in the walk.
        """
        for day in self.context.available_dates(candidate.preceptor_id):
            if day not in date_range:
                continue
            if day in self.context.blackout_dates:
                continue
            if ledger.student_has_date(requirement.student_id, day):
                continue
            check = self.capacity_resolver.check_capacity(
                candidate.preceptor_id,
                day,
                clerkship_id=requirement.clerkship_id,
                requirement_type=config.requirement_type,
                ledger=ledger,
            )
            if not check.has_capacity:
                logger.debug(f"Skipping {candidate.preceptor_id} on {day}: {check.reason}")
                continue
            yield day
