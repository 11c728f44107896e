"""
Hard Constraint Validation Logic.

This module answers the binary question: "Can Student S see Preceptor P for
Clerkship C on Date D?"
Each rule is a Constraint; the ConstraintSet evaluates them in priority order
(cheap, fail-fast checks first) without knowing which concrete rules it holds.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Iterable, Optional, Set

from models import (
    Assignment,
    HealthSystemRule,
    RequirementType,
    AssignmentStrategy,
    ResolvedRequirementConfiguration,
    SiteCapacityRule,
)
from .capacity import CapacityResolver
from .state import SchedulingContext
from .violations import ViolationTracker

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 99


class Constraint(ABC):
    """
    A named, priority-tagged predicate over a proposed assignment.
    On failure it records a violation and returns False; it never raises.
    """
    name: str = "Constraint"
    priority: int = DEFAULT_PRIORITY
    bypassable: bool = False

    @abstractmethod
    def validate(self, assignment: Assignment, context: SchedulingContext, tracker: ViolationTracker) -> bool:
        ...

    @abstractmethod
    def get_violation_message(self, assignment: Assignment, context: SchedulingContext) -> str:
        ...

    def _fail(
        self,
        assignment: Assignment,
        context: SchedulingContext,
        tracker: ViolationTracker,
        reason: Optional[str] = None,
        **metadata
    ) -> bool:
        tracker.record_violation(
            self.name,
            assignment,
            reason or self.get_violation_message(assignment, context),
            metadata,
        )
        return False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name} priority={self.priority}>"


class ConstraintSet:
    """Constraints kept sorted by priority (stable for ties)."""

    def __init__(self, constraints: Optional[Iterable[Constraint]] = None):
        self._constraints: List[Constraint] = []
        for constraint in constraints or ():
            self.add(constraint)

    def add(self, constraint: Constraint) -> None:
        self._constraints.append(constraint)
        self._constraints.sort(key=lambda c: c.priority)

    @property
    def constraints(self) -> List[Constraint]:
        return list(self._constraints)

    def names(self) -> List[str]:
        return [c.name for c in self._constraints]

    def __len__(self) -> int:
        return len(self._constraints)

    def validate(
        self,
        assignment: Assignment,
        context: SchedulingContext,
        tracker: ViolationTracker,
        bypassed: Iterable[str] = (),
        stop_on_first: bool = True
    ) -> bool:
        """
        True when every non-bypassed constraint passes.
        Only constraints flagged bypassable can be skipped by name.
        """
        bypassed = set(bypassed)
        is_valid = True

        for constraint in self._constraints:
            if constraint.bypassable and constraint.name in bypassed:
                continue
            if not constraint.validate(assignment, context, tracker):
                is_valid = False
                if stop_on_first:
                    break

        return is_valid


# --- Base Constraints (always on) ---

class BlackoutDateConstraint(Constraint):
    name = "BlackoutDate"
    priority = 1

    def validate(self, assignment, context, tracker):
        if assignment.date in context.blackout_dates:
            return self._fail(assignment, context, tracker, date=assignment.date)
        return True

    def get_violation_message(self, assignment, context):
        return f"Cannot assign on blackout date {assignment.date}"


class NoDoubleBookingConstraint(Constraint):
    name = "NoDoubleBooking"
    priority = 1

    def validate(self, assignment, context, tracker):
        if context.ledger.student_has_date(assignment.student_id, assignment.date):
            return self._fail(assignment, context, tracker, date=assignment.date)
        return True

    def get_violation_message(self, assignment, context):
        student = context.get_student(assignment.student_id)
        name = student.name if student else assignment.student_id
        return f"Student {name} is already assigned on {assignment.date}"


class PreceptorAvailabilityConstraint(Constraint):
    name = "PreceptorAvailability"
    priority = 1
    bypassable = True

    def validate(self, assignment, context, tracker):
        if context.is_preceptor_available(assignment.preceptor_id, assignment.date):
            return True
        total = len(context.preceptor_availability.get(assignment.preceptor_id, {}))
        return self._fail(assignment, context, tracker, total_available_dates=total)

    def get_violation_message(self, assignment, context):
        preceptor = context.get_preceptor(assignment.preceptor_id)
        name = preceptor.name if preceptor else assignment.preceptor_id
        return f"Preceptor {name} is not available on {assignment.date}"


class PreceptorCapacityConstraint(Constraint):
    name = "PreceptorCapacity"
    priority = 2
    bypassable = True

    def __init__(self, resolver: CapacityResolver):
        self.resolver = resolver

    def validate(self, assignment, context, tracker):
        clerkship = context.get_clerkship(assignment.clerkship_id)
        result = self.resolver.check_capacity(
            assignment.preceptor_id,
            assignment.date,
            clerkship_id=assignment.clerkship_id,
            requirement_type=clerkship.clerkship_type if clerkship else None,
            block_number=assignment.block_number,
            ledger=context.ledger,
        )
        if result.has_capacity:
            return True
        preceptor = context.get_preceptor(assignment.preceptor_id)
        name = preceptor.name if preceptor else assignment.preceptor_id
        return self._fail(
            assignment, context, tracker,
            reason=f"Preceptor {name} has no capacity on {assignment.date}: {result.reason}",
            check_type=result.check_type,
            current_count=result.current_count,
            max_allowed=result.max_allowed,
        )

    def get_violation_message(self, assignment, context):
        preceptor = context.get_preceptor(assignment.preceptor_id)
        name = preceptor.name if preceptor else assignment.preceptor_id
        return f"Preceptor {name} has no capacity on {assignment.date}"


# --- Data-dependent Constraints (only when the context carries the data) ---

class ValidSiteForClerkshipConstraint(Constraint):
    """The site the preceptor works at that day must be authorised for the clerkship."""
    name = "ValidSiteForClerkship"
    priority = 2

    def validate(self, assignment, context, tracker):
        site_id = context.preceptor_site_on(assignment.preceptor_id, assignment.date)
        if not site_id:
            # PreceptorAvailability reports this
            return True

        if context.preceptor_site_clerkships is not None:
            key = (assignment.preceptor_id, site_id, assignment.clerkship_id)
            is_valid = key in context.preceptor_site_clerkships
        elif context.clerkship_sites is not None:
            is_valid = site_id in context.clerkship_sites.get(assignment.clerkship_id, set())
        else:
            return True

        if not is_valid:
            return self._fail(assignment, context, tracker, site_id=site_id)
        return True

    def get_violation_message(self, assignment, context):
        site_id = context.preceptor_site_on(assignment.preceptor_id, assignment.date)
        site = context.site_map.get(site_id) if site_id else None
        clerkship = context.get_clerkship(assignment.clerkship_id)
        return (
            f"Site {site.name if site else site_id} is not approved for "
            f"{clerkship.name if clerkship else assignment.clerkship_id}"
        )


class SiteAvailabilityConstraint(Constraint):
    name = "SiteAvailability"
    priority = 2

    def _site_for(self, assignment, context) -> Optional[str]:
        site_id = context.preceptor_site_on(assignment.preceptor_id, assignment.date)
        if site_id:
            return site_id
        preceptor = context.get_preceptor(assignment.preceptor_id)
        return preceptor.site_id if preceptor else None

    def validate(self, assignment, context, tracker):
        if context.site_availability is None:
            return True
        site_id = self._site_for(assignment, context)
        if not site_id:
            return True
        # Unlisted dates count as open
        if context.site_availability.get(site_id, {}).get(assignment.date, True):
            return True
        return self._fail(assignment, context, tracker, site_id=site_id)

    def get_violation_message(self, assignment, context):
        site_id = self._site_for(assignment, context)
        site = context.site_map.get(site_id) if site_id else None
        return f"Site {site.name if site else site_id or 'Unknown'} is not available on {assignment.date}"


class StudentOnboardingConstraint(Constraint):
    """Student must have completed onboarding at the preceptor's health system."""
    name = "StudentOnboarding"
    priority = 2

    def validate(self, assignment, context, tracker):
        if context.student_onboarding is None:
            return True
        health_system_id = context.preceptor_health_system(assignment.preceptor_id)
        if not health_system_id:
            return True
        if health_system_id in context.student_onboarding.get(assignment.student_id, set()):
            return True
        return self._fail(assignment, context, tracker, health_system_id=health_system_id)

    def get_violation_message(self, assignment, context):
        student = context.get_student(assignment.student_id)
        health_system_id = context.preceptor_health_system(assignment.preceptor_id)
        return (
            f"Student {student.name if student else assignment.student_id} has not completed "
            f"onboarding at {context.health_system_name(health_system_id)}"
        )


class SiteCapacityConstraint(Constraint):
    """Site daily limit (assignments) and yearly limit (unique students)."""
    name = "SiteCapacity"
    priority = 4
    bypassable = True

    def _applicable_rule(self, site_id: str, assignment, context) -> Optional[SiteCapacityRule]:
        rules = [r for r in context.site_capacity_rules or () if r.site_id == site_id]
        if not rules:
            return None
        clerkship = context.get_clerkship(assignment.clerkship_id)
        requirement_type = clerkship.clerkship_type if clerkship else None

        for rule in rules:
            if rule.clerkship_id == assignment.clerkship_id:
                return rule
        for rule in rules:
            if rule.clerkship_id is None and rule.requirement_type is not None and rule.requirement_type == requirement_type:
                return rule
        for rule in rules:
            if rule.clerkship_id is None and rule.requirement_type is None:
                return rule
        return None

    def validate(self, assignment, context, tracker):
        if context.site_capacity_rules is None:
            return True
        site_id = context.preceptor_site_on(assignment.preceptor_id, assignment.date)
        if not site_id:
            return True
        rule = self._applicable_rule(site_id, assignment, context)
        if rule is None:
            return True

        # Daily: assignments whose preceptor was at this site that day
        on_date = [
            a for a in context.ledger.by_date.get(assignment.date, ())
            if context.preceptor_site_on(a.preceptor_id, a.date) == site_id
        ]
        if len(on_date) >= rule.max_students_per_day:
            return self._fail(
                assignment, context, tracker,
                reason=self._message(site_id, context, f"daily capacity ({rule.max_students_per_day} students) on {assignment.date}"),
                site_id=site_id, check_type="daily",
            )

        # Yearly: unique students seen at this site, counting this one
        students = {
            a.student_id for a in context.ledger
            if a.date.year == assignment.date.year
            and context.preceptor_site_on(a.preceptor_id, a.date) == site_id
        }
        students.add(assignment.student_id)
        if len(students) > rule.max_students_per_year:
            return self._fail(
                assignment, context, tracker,
                reason=self._message(site_id, context, f"yearly capacity ({rule.max_students_per_year} unique students)"),
                site_id=site_id, check_type="yearly",
            )

        return True

    def _message(self, site_id, context, detail: str) -> str:
        site = context.site_map.get(site_id) if site_id else None
        return f"Site {site.name if site else site_id} has reached {detail}"

    def get_violation_message(self, assignment, context):
        site_id = context.preceptor_site_on(assignment.preceptor_id, assignment.date)
        return self._message(site_id, context, f"capacity on {assignment.date}")


# --- Per-clerkship Constraints ---

class PreceptorClerkshipAssociationConstraint(Constraint):
    """
    Preceptor must be linked to the rotation: to the elective for elective
    requirements, to the clerkship otherwise. No association data, no check.
    """
    name = "PreceptorClerkshipAssociation"
    priority = 2

    def __init__(self, clerkship_id: str, requirement_type: RequirementType):
        self.clerkship_id = clerkship_id
        self.requirement_type = requirement_type

    def _associations(self, context) -> Optional[Dict[str, Set[str]]]:
        if self.requirement_type == RequirementType.ELECTIVE:
            return context.preceptor_electives
        return context.preceptor_clerkships

    def validate(self, assignment, context, tracker):
        if assignment.clerkship_id != self.clerkship_id:
            return True
        associations = self._associations(context)
        if associations is None:
            return True
        if self.clerkship_id in associations.get(assignment.preceptor_id, set()):
            return True
        return self._fail(
            assignment, context, tracker,
            requirement_type=self.requirement_type.value,
            date=assignment.date,
        )

    def get_violation_message(self, assignment, context):
        preceptor = context.get_preceptor(assignment.preceptor_id)
        student = context.get_student(assignment.student_id)
        clerkship = context.get_clerkship(assignment.clerkship_id)
        rotation = "elective" if self.requirement_type == RequirementType.ELECTIVE else "clerkship"
        return (
            f"Preceptor {preceptor.name if preceptor else assignment.preceptor_id} is not associated with "
            f"{rotation} {clerkship.name if clerkship else self.clerkship_id}. "
            f"Cannot assign student {student.name if student else assignment.student_id}."
        )


class HealthSystemContinuityConstraint(Constraint):
    """All of a student's days in the clerkship stay in the health system of the first one."""
    name = "HealthSystemContinuity"
    priority = 3

    def __init__(self, clerkship_id: str):
        self.clerkship_id = clerkship_id

    def _first_system(self, assignment, context) -> Optional[str]:
        existing = context.ledger.for_student_clerkship(assignment.student_id, self.clerkship_id)
        if not existing:
            return None
        return context.preceptor_health_system(existing[0].preceptor_id)

    def validate(self, assignment, context, tracker):
        if assignment.clerkship_id != self.clerkship_id:
            return True
        current = context.preceptor_health_system(assignment.preceptor_id)
        first = self._first_system(assignment, context)
        if not current or not first or current == first:
            return True
        return self._fail(assignment, context, tracker, current_health_system=current, first_health_system=first)

    def get_violation_message(self, assignment, context):
        current = context.preceptor_health_system(assignment.preceptor_id)
        first = self._first_system(assignment, context)
        return f"Health system {current} breaks continuity with {first} for clerkship {self.clerkship_id}"


class SamePreceptorTeamConstraint(Constraint):
    """A student's preceptors in the clerkship must share a team with the first one."""
    name = "SamePreceptorTeam"
    priority = 3

    def __init__(self, clerkship_id: str):
        self.clerkship_id = clerkship_id

    def validate(self, assignment, context, tracker):
        if assignment.clerkship_id != self.clerkship_id or context.preceptor_teams is None:
            return True
        teams = context.preceptor_teams.get(assignment.preceptor_id)
        if not teams:
            return True
        existing = context.ledger.for_student_clerkship(assignment.student_id, self.clerkship_id)
        if not existing:
            return True
        first_teams = context.preceptor_teams.get(existing[0].preceptor_id)
        if not first_teams or teams & first_teams:
            return True
        return self._fail(assignment, context, tracker, first_preceptor_id=existing[0].preceptor_id)

    def get_violation_message(self, assignment, context):
        preceptor = context.get_preceptor(assignment.preceptor_id)
        name = preceptor.name if preceptor else assignment.preceptor_id
        return f"Preceptor {name} is not on the student's team for clerkship {self.clerkship_id}"


TEAM_STRATEGIES = (AssignmentStrategy.TEAM_CONTINUITY, AssignmentStrategy.CONTINUOUS_TEAM)


def build_constraint_set(
    context: SchedulingContext,
    configs: Dict[str, ResolvedRequirementConfiguration],
    capacity_resolver: CapacityResolver
) -> ConstraintSet:
    """
    Base constraints always; data-dependent ones when the context has the data;
    association and continuity constraints per clerkship configuration.
    """
    constraint_set = ConstraintSet([
        BlackoutDateConstraint(),
        NoDoubleBookingConstraint(),
        PreceptorAvailabilityConstraint(),
        PreceptorCapacityConstraint(capacity_resolver),
    ])

    if context.preceptor_site_clerkships is not None or context.clerkship_sites is not None:
        constraint_set.add(ValidSiteForClerkshipConstraint())
    if context.site_availability is not None:
        constraint_set.add(SiteAvailabilityConstraint())
    if context.student_onboarding is not None:
        constraint_set.add(StudentOnboardingConstraint())
    if context.site_capacity_rules is not None:
        constraint_set.add(SiteCapacityConstraint())

    has_associations = context.preceptor_clerkships is not None or context.preceptor_electives is not None

    for clerkship_id, config in configs.items():
        if has_associations:
            constraint_set.add(PreceptorClerkshipAssociationConstraint(clerkship_id, config.requirement_type))
        if config.health_system_rule == HealthSystemRule.ENFORCE_SAME_SYSTEM:
            constraint_set.add(HealthSystemContinuityConstraint(clerkship_id))
        if config.allow_teams and config.assignment_strategy in TEAM_STRATEGIES and context.preceptor_teams is not None:
            constraint_set.add(SamePreceptorTeamConstraint(clerkship_id))

    logger.debug(f"Constraint set: {constraint_set.names()}")
    return constraint_set
