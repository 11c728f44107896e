"""
Configuration models for the Clerkship Scheduler.

Everything the engine is told (rather than everything it is given):
per-clerkship requirement settings, team formation rules, and run options.
"""

from enum import Enum
from typing import List
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .requirement import RequirementType, AssignmentStrategy, HealthSystemRule


class ConfigurationSource(str, Enum):
    """Where a resolved configuration came from."""
    GLOBAL_DEFAULTS = "global_defaults"
    PARTIAL_OVERRIDE = "partial_override"
    FULL_OVERRIDE = "full_override"


class ResolvedRequirementConfiguration(BaseModel):
    """
    Fully merged settings (global defaults + clerkship overrides) for one
    (clerkship, requirement type). Nothing left to resolve at run time.
    """

    # --- Identity ---
    clerkship_id: str
    requirement_type: RequirementType = Field(default=RequirementType.OUTPATIENT)
    required_days: int = Field(ge=0)

    # --- Strategy ---
    assignment_strategy: AssignmentStrategy = Field(default=AssignmentStrategy.TEAM_CONTINUITY)
    health_system_rule: HealthSystemRule = Field(default=HealthSystemRule.PREFER_SAME_SYSTEM)
    max_students_per_day: int = Field(default=2, ge=1)
    max_students_per_year: int = Field(default=20, ge=1)

    # --- Teams & Fallbacks ---
    allow_teams: bool = Field(default=True)
    allow_fallbacks: bool = Field(default=True)
    fallback_requires_approval: bool = Field(default=False)
    fallback_allow_cross_system: bool = Field(default=False)

    source: ConfigurationSource = Field(default=ConfigurationSource.GLOBAL_DEFAULTS)

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "clerkship_id": "clk_im",
            "requirement_type": "outpatient",
            "required_days": 5,
            "assignment_strategy": "continuous_single",
            "health_system_rule": "prefer_same_system",
            "max_students_per_day": 2,
            "max_students_per_year": 20,
            "allow_teams": True,
            "allow_fallbacks": True,
            "fallback_requires_approval": False,
            "fallback_allow_cross_system": False,
            "source": "global_defaults"
        }
    })


class TeamConfig(BaseModel):
    """Formation rules a team is validated against."""
    require_same_health_system: bool = Field(default=False)
    require_same_site: bool = Field(default=False)
    require_same_specialty: bool = Field(default=False)
    requires_admin_approval: bool = Field(default=False)

    min_members: int = Field(default=2, ge=1)
    max_members: int = Field(default=3, ge=1)

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.min_members > self.max_members:
            raise ValueError("min_members cannot exceed max_members")
        return self


class EngineOptions(BaseModel):
    """Switches for one scheduling run."""
    enable_fallbacks: bool = Field(default=True, description="Run the gap filling pass")
    bypassed_constraints: List[str] = Field(
        default_factory=list,
        description="Names of bypassable constraints to skip"
    )
    stop_on_first_violation: bool = Field(
        default=True,
        description="Stop evaluating constraints at the first failure"
    )
