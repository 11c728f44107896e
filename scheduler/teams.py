"""
Team Formation Validation.

Checks a proposed preceptor team against its formation rules before it is
saved: size, health system / site homogeneity, unique priorities, capacity
for the dates its members are proposed for, and collective availability.
Problems come back as ValidationError records; nothing here raises.
"""

import logging
from datetime import date as date_type
from typing import List, Dict, Optional, Iterable
from dataclasses import dataclass, field

from models import Preceptor, TeamMember, TeamConfig, RequirementType
from .capacity import CapacityResolver
from .state import SchedulingContext

logger = logging.getLogger(__name__)

DEFAULT_MIN_MEMBERS = 2
DEFAULT_MAX_MEMBERS = 3


@dataclass
class ValidationError:
    """A single team problem. Not an exception."""
    field: str  # e.g. "teamSize", "members", "priorities"
    message: str
    severity: str = "error"  # "error" or "warning"


@dataclass
class TeamValidationResult:
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationError] = field(default_factory=list)
    requires_approval: bool = False


class TeamValidator:
    """
    Validates teams against preceptor records, recorded availability and
    capacity. Build one per run, sharing that run's CapacityResolver.
    """

    def __init__(
        self,
        preceptors: List[Preceptor],
        capacity_resolver: CapacityResolver,
        availability: Optional[Dict[str, Dict[date_type, str]]] = None
    ):
        self.preceptors = {p.id: p for p in preceptors}
        self.capacity_resolver = capacity_resolver
        self.availability = availability or {}

    @classmethod
    def from_context(cls, context: SchedulingContext, capacity_resolver: CapacityResolver) -> "TeamValidator":
        return cls(context.preceptors, capacity_resolver, context.preceptor_availability)

    def validate_team(
        self,
        members: List[TeamMember],
        config: TeamConfig,
        clerkship_id: Optional[str] = None,
        requirement_type: Optional[RequirementType] = None,
        specialty: Optional[str] = None,
        total_dates: Optional[Iterable[date_type]] = None
    ) -> TeamValidationResult:
        """
        Collects every error. Only missing preceptors stop validation early,
        since the later checks need the preceptor records.
        """
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []

        errors.extend(self._validate_team_size(members, config))

        existence_errors = self._validate_members_exist(members)
        if existence_errors:
            errors.extend(existence_errors)
            return TeamValidationResult(
                is_valid=False,
                errors=errors,
                warnings=warnings,
                requires_approval=config.requires_admin_approval,
            )

        if config.require_same_health_system:
            errors.extend(self._validate_health_system_consistency(members))

        if config.require_same_site:
            errors.extend(self._validate_site_consistency(members))

        if config.require_same_specialty or specialty:
            errors.extend(self._validate_specialty_consistency(members, specialty))

        errors.extend(self._validate_unique_priorities(members))
        errors.extend(self._validate_unique_preceptors(members))
        errors.extend(self._validate_primary_member(members))
        errors.extend(self._validate_capacity(members, clerkship_id, requirement_type))

        if total_dates:
            errors.extend(self._validate_availability(members, total_dates))

        if not errors:
            for member in members:
                if member.is_fallback_only:
                    warnings.append(ValidationError(
                        field="members",
                        message=f"Preceptor {member.preceptor_id} is fallback-only and will not take primary assignments",
                        severity="warning",
                    ))

        if errors:
            logger.debug(f"Team rejected with {len(errors)} error(s): {[e.field for e in errors]}")

        return TeamValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            requires_approval=config.requires_admin_approval,
        )

    def _validate_team_size(self, members: List[TeamMember], config: TeamConfig) -> List[ValidationError]:
        errors = []
        min_members = config.min_members or DEFAULT_MIN_MEMBERS
        max_members = config.max_members or DEFAULT_MAX_MEMBERS

        if len(members) < min_members:
            errors.append(ValidationError(
                field="teamSize",
                message=f"Team must have at least {min_members} members (has {len(members)})",
            ))
        if len(members) > max_members:
            errors.append(ValidationError(
                field="teamSize",
                message=f"Team cannot exceed {max_members} members (has {len(members)})",
            ))
        return errors

    def _validate_members_exist(self, members: List[TeamMember]) -> List[ValidationError]:
        return [
            ValidationError(field="members", message=f"Preceptor {m.preceptor_id} not found")
            for m in members
            if m.preceptor_id not in self.preceptors
        ]

    def _validate_health_system_consistency(self, members: List[TeamMember]) -> List[ValidationError]:
        systems = {self.preceptors[m.preceptor_id].health_system_id for m in members}
        if len(systems) > 1 or None in systems:
            return [ValidationError(
                field="healthSystem",
                message="All team members must belong to the same health system",
            )]
        return []

    def _validate_site_consistency(self, members: List[TeamMember]) -> List[ValidationError]:
        sites = {self.preceptors[m.preceptor_id].site_id for m in members}
        if len(sites) > 1 or None in sites:
            return [ValidationError(field="site", message="All team members must be at the same site")]
        return []

    def _validate_specialty_consistency(
        self,
        members: List[TeamMember],
        specialty: Optional[str]
    ) -> List[ValidationError]:
        # Preceptors carry no specialty; nothing to compare yet.
        return []

    def _validate_unique_priorities(self, members: List[TeamMember]) -> List[ValidationError]:
        priorities = [m.priority for m in members]
        if len(priorities) != len(set(priorities)):
            return [ValidationError(field="priorities", message="Team member priorities must be unique")]
        return []

    def _validate_unique_preceptors(self, members: List[TeamMember]) -> List[ValidationError]:
        ids = [m.preceptor_id for m in members]
        if len(ids) != len(set(ids)):
            return [ValidationError(field="members", message="A preceptor can only appear once per team")]
        return []

    def _validate_primary_member(self, members: List[TeamMember]) -> List[ValidationError]:
        if members and all(m.is_fallback_only for m in members):
            return [ValidationError(
                field="members",
                message="Team needs at least one member who is not fallback-only",
            )]
        return []

    def _validate_capacity(
        self,
        members: List[TeamMember],
        clerkship_id: Optional[str],
        requirement_type: Optional[RequirementType]
    ) -> List[ValidationError]:
        errors = []
        for member in members:
            for day in member.assigned_dates:
                check = self.capacity_resolver.check_capacity(
                    member.preceptor_id,
                    day,
                    clerkship_id=clerkship_id,
                    requirement_type=requirement_type,
                )
                if not check.has_capacity:
                    errors.append(ValidationError(
                        field="capacity",
                        message=f"Preceptor {member.preceptor_id} lacks capacity on {day}: {check.reason}",
                    ))
        return errors

    def _validate_availability(
        self,
        members: List[TeamMember],
        total_dates: Iterable[date_type]
    ) -> List[ValidationError]:
        errors = []
        for day in total_dates:
            covered = any(day in self.availability.get(m.preceptor_id, {}) for m in members)
            if not covered:
                errors.append(ValidationError(
                    field="availability",
                    message=f"No team member available on {day}",
                ))
        return errors
