"""
The Clerkship Scheduling Engine.

This module wires the core components into one run:
1. Constraint Validation - every proposed assignment passes the ConstraintSet
   before it is committed (fail-fast, priority ordered).
2. Requirement Tracking - remaining days per student and clerkship.
3. Resilience Loop (Fallback Gap Filling) - requirements the primary pass left
   short are repaired from team, health system and cross-system fallbacks.
The primary assignment strategies themselves live outside this package; their
output is fed in through ingest_primary_assignments.
"""

import logging
from typing import List, Dict, Any, Optional, Iterable, Mapping, Tuple
from dataclasses import dataclass, field

from models import (
    Assignment,
    UnmetRequirement,
    PreceptorCapacityRule,
    ResolvedRequirementConfiguration,
    EngineOptions,
    DateRange,
)
from .capacity import CapacityResolver
from .constraints import ConstraintSet, build_constraint_set
from .exceptions import UnknownEntityError
from .fallback import FallbackPreceptorResolver
from .gap_filler import FallbackGapFiller, GapFillerResult, validate_config_map
from .requirements import check_unmet_requirements
from .state import SchedulingContext
from .violations import ViolationTracker

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    """Everything a run produced, ready for reporting."""
    assignments: List[Assignment]
    success: bool
    unmet_requirements: List[UnmetRequirement] = field(default_factory=list)
    violation_stats: List[Dict[str, Any]] = field(default_factory=list)
    gap_fill: Optional[GapFillerResult] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        gap_fill = None
        if self.gap_fill is not None:
            gap_fill = {
                **self.gap_fill.summary(),
                "fulfilled_requirements": [f.key for f in self.gap_fill.fulfilled_requirements],
                "partial_fulfillments": [vars(p) for p in self.gap_fill.partial_fulfillments],
            }
        return {
            "success": self.success,
            "summary": self.summary,
            "assignments": [a.model_dump(mode='json') for a in self.assignments],
            "unmet_requirements": [u.model_dump(mode='json') for u in self.unmet_requirements],
            "violations": self.violation_stats,
            "gap_fill": gap_fill,
        }


class ClerkshipScheduler:
    """
    Main scheduling engine.
    Owns the run's CapacityResolver, ViolationTracker and ConstraintSet;
    the context it is given is mutated as assignments are committed.
    """

    def __init__(
        self,
        context: SchedulingContext,
        capacity_rules: List[PreceptorCapacityRule],
        configs: Mapping[str, ResolvedRequirementConfiguration],
        options: Optional[EngineOptions] = None,
        constraint_set: Optional[ConstraintSet] = None
    ):
        validate_config_map(configs)

        self.context = context
        self.configs = dict(configs)
        self.options = options if options is not None else EngineOptions()

        # Initialize Helpers
        self.capacity = CapacityResolver(capacity_rules, context.preceptors, context.ledger)
        self.tracker = ViolationTracker()
        self.constraints = (
            constraint_set if constraint_set is not None
            else build_constraint_set(context, self.configs, self.capacity)
        )
        self.fallbacks = FallbackPreceptorResolver.from_context(context)
        self.gap_filler = FallbackGapFiller(context, self.capacity, self.fallbacks)

    def _ensure_known(self, assignment: Assignment) -> None:
        if self.context.get_student(assignment.student_id) is None:
            raise UnknownEntityError("student", assignment.student_id)
        if self.context.get_preceptor(assignment.preceptor_id) is None:
            raise UnknownEntityError("preceptor", assignment.preceptor_id)
        if self.context.get_clerkship(assignment.clerkship_id) is None:
            raise UnknownEntityError("clerkship", assignment.clerkship_id)

    def propose(self, assignment: Assignment) -> bool:
        """Validate an assignment and commit it when every constraint passes."""
        self._ensure_known(assignment)

        is_valid = self.constraints.validate(
            assignment,
            self.context,
            self.tracker,
            bypassed=self.options.bypassed_constraints,
            stop_on_first=self.options.stop_on_first_violation,
        )
        if is_valid:
            self.context.add_assignment(assignment)
        return is_valid

    def ingest_primary_assignments(
        self,
        assignments: Iterable[Assignment]
    ) -> Tuple[List[Assignment], List[Assignment]]:
        """Run a primary pass's output through the constraints. Returns (accepted, rejected)."""
        accepted, rejected = [], []
        for assignment in assignments:
            (accepted if self.propose(assignment) else rejected).append(assignment)

        if rejected:
            logger.warning(f"{len(rejected)} primary assignment(s) rejected by constraints")
        logger.info(f"Primary pass ingested: {len(accepted)} accepted, {len(rejected)} rejected")
        return accepted, rejected

    def _primary_team_for(self, student_id: str, clerkship_id: str) -> Optional[str]:
        """Team of the preceptor who took the student's first day in the clerkship."""
        existing = self.context.ledger.for_student_clerkship(student_id, clerkship_id)
        if not existing:
            return None
        first_preceptor = existing[0].preceptor_id
        for team in self.context.teams or ():
            if team.clerkship_id != clerkship_id:
                continue
            if any(m.preceptor_id == first_preceptor for m in team.members):
                return team.id
        return None

    def collect_unmet_requirements(self, reason: str = "Insufficient assignments") -> List[UnmetRequirement]:
        """
        Unmet requirements enriched with the configured requirement type and the
        team / health system the student started the clerkship with.
        """
        enriched = []
        for requirement in check_unmet_requirements(self.context):
            config = self.configs.get(requirement.clerkship_id)
            team_id = self._primary_team_for(requirement.student_id, requirement.clerkship_id)

            health_system_id = None
            if team_id:
                health_system_id = self.fallbacks.get_team_health_system(team_id)
            if health_system_id is None:
                existing = self.context.ledger.for_student_clerkship(requirement.student_id, requirement.clerkship_id)
                if existing:
                    health_system_id = self.context.preceptor_health_system(existing[0].preceptor_id)

            update = {
                "reason": reason,
                "primary_team_id": team_id,
                "primary_health_system_id": health_system_id,
            }
            if config is not None:
                update["requirement_type"] = config.requirement_type
            enriched.append(requirement.model_copy(update=update))
        return enriched

    def fill_gaps(self) -> GapFillerResult:
        """Run gap filling over the current ledger and commit what it finds."""
        unmet = self.collect_unmet_requirements()
        date_range = DateRange(start_date=self.context.start_date, end_date=self.context.end_date)

        result = self.gap_filler.fill_gaps(unmet, self.context.assignments, self.configs, date_range)
        for assignment in result.assignments:
            self.context.add_assignment(assignment)
        return result

    def run(self, primary_assignments: Iterable[Assignment] = ()) -> ScheduleResult:
        """
        Execute the scheduling pipeline.
        """
        logger.info("Starting Clerkship Scheduler...")

        # 1. Commit the primary pass (constraint checked)
        self.ingest_primary_assignments(primary_assignments)

        # 2. Resilience: repair what the primary pass left short
        gap_fill = None
        if self.options.enable_fallbacks:
            gap_fill = self.fill_gaps()

        # 3. Report
        unmet = self.collect_unmet_requirements()
        for requirement in unmet:
            logger.warning(
                f"Unmet: {requirement.student_name or requirement.student_id} needs "
                f"{requirement.remaining_days} more day(s) of {requirement.clerkship_name or requirement.clerkship_id}"
            )

        return ScheduleResult(
            assignments=list(self.context.assignments),
            success=not unmet,
            unmet_requirements=unmet,
            violation_stats=[s.to_dict() for s in self.tracker.get_top_violations()],
            gap_fill=gap_fill,
            summary=self.get_statistics(),
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Ledger statistics plus violation and requirement totals."""
        stats = self.context.ledger.get_statistics()
        stats["total_violations"] = self.tracker.total_violations
        stats["students_with_unmet_requirements"] = len({
            student_id
            for student_id, remaining in self.context.student_requirements.items()
            if any(v > 0 for v in remaining.values())
        })
        return stats
