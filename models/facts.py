"""
Input bundles for the Clerkship Scheduler.

SchedulingFacts is everything one run needs, in the shape a JSON export
(or a test fixture) provides it. OptionalSchedulingData groups the
association tables that only some deployments populate.
"""

from typing import List, Dict, Optional
from pydantic import BaseModel, Field, model_validator
from datetime import date as date_type

from .requirement import Student, Clerkship
from .resource import (
    Preceptor,
    HealthSystem,
    Site,
    Team,
    AvailabilityRecord,
    PreceptorCapacityRule,
    SiteCapacityRule,
    StudentOnboardingRecord,
    PreceptorSiteClerkship,
    ClerkshipSite,
    PreceptorElective,
    SiteAvailabilityRecord,
)
from .schedule import Assignment
from .config import ResolvedRequirementConfiguration


class OptionalSchedulingData(BaseModel):
    """
    Association data folded into the context only when present.
    None means the table was not loaded; an empty list is a loaded table with no rows.
    """
    health_systems: Optional[List[HealthSystem]] = None
    sites: Optional[List[Site]] = None
    teams: Optional[List[Team]] = None

    preceptor_site_clerkships: Optional[List[PreceptorSiteClerkship]] = None
    clerkship_sites: Optional[List[ClerkshipSite]] = None
    preceptor_electives: Optional[List[PreceptorElective]] = Field(
        default=None,
        description="Preceptor links to elective clerkships, keyed by the elective's clerkship id"
    )

    site_availability: Optional[List[SiteAvailabilityRecord]] = None
    site_capacity_rules: Optional[List[SiteCapacityRule]] = None
    student_onboarding: Optional[List[StudentOnboardingRecord]] = None


class SchedulingFacts(BaseModel):
    """
    Raw facts for one scheduling run.
    """

    # --- Demand ---
    students: List[Student] = Field(default_factory=list)
    clerkships: List[Clerkship] = Field(default_factory=list)

    # --- Supply ---
    preceptors: List[Preceptor] = Field(default_factory=list)
    availability: List[AvailabilityRecord] = Field(default_factory=list)
    capacity_rules: List[PreceptorCapacityRule] = Field(default_factory=list)

    # --- Calendar ---
    start_date: date_type
    end_date: date_type
    blackout_dates: List[date_type] = Field(default_factory=list)

    # --- Configuration ---
    configs: List[ResolvedRequirementConfiguration] = Field(
        default_factory=list,
        description="One resolved configuration per clerkship"
    )

    optional: OptionalSchedulingData = Field(default_factory=OptionalSchedulingData)

    # Output of an external primary pass, if one was run
    primary_assignments: List[Assignment] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End Date cannot be before Start Date")
        return self

    def config_map(self) -> Dict[str, ResolvedRequirementConfiguration]:
        """Configurations keyed by clerkship id (last one wins)."""
        return {cfg.clerkship_id: cfg for cfg in self.configs}
