"""
Requirement data models for the Clerkship Scheduler.

This module defines the 'Demand' side of the scheduler:
1. Students (who need rotation days)
2. Clerkships (what they need, and how many days)
3. Unmet Requirements (what is still missing after a pass)
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator


class RequirementType(str, Enum):
    """The three kinds of clinical requirement a clerkship can carry."""
    OUTPATIENT = "outpatient"
    INPATIENT = "inpatient"
    ELECTIVE = "elective"


class AssignmentStrategy(str, Enum):
    """How the (external) primary pass spreads a requirement over preceptors."""
    TEAM_CONTINUITY = "team_continuity"
    CONTINUOUS_SINGLE = "continuous_single"
    CONTINUOUS_TEAM = "continuous_team"
    BLOCK_BASED = "block_based"
    DAILY_ROTATION = "daily_rotation"


class HealthSystemRule(str, Enum):
    """How strictly a student should stay inside one health system."""
    ENFORCE_SAME_SYSTEM = "enforce_same_system"   # hard constraint
    PREFER_SAME_SYSTEM = "prefer_same_system"     # soft, may switch
    NO_PREFERENCE = "no_preference"


class Student(BaseModel):
    """A student who must complete every clerkship in the run."""
    id: str = Field(description="Unique identifier")
    name: str = Field(min_length=1, description="Display name")
    email: Optional[str] = Field(default=None, description="Contact address")


class Clerkship(BaseModel):
    """
    A required rotation with a fixed number of days.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(min_length=1, description="e.g. 'Internal Medicine'")
    clerkship_type: RequirementType = Field(
        default=RequirementType.OUTPATIENT,
        description="Requirement type used for capacity rule resolution"
    )
    required_days: int = Field(ge=0, description="Days each student must complete")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "clk_im",
            "name": "Internal Medicine",
            "clerkship_type": "outpatient",
            "required_days": 20
        }
    })


class UnmetRequirement(BaseModel):
    """
    A (student, clerkship) pair that a pass could not complete.
    Passed by value into the gap filler and never mutated.
    """

    # --- Identity ---
    student_id: str
    clerkship_id: str
    requirement_type: RequirementType = Field(default=RequirementType.OUTPATIENT)

    # --- Bookkeeping ---
    required_days: int = Field(ge=0)
    assigned_days: int = Field(ge=0)
    remaining_days: int = Field(ge=0)
    reason: str = Field(default="", description="Why the primary pass stopped short")

    # --- Continuity hints for fallback resolution ---
    primary_team_id: Optional[str] = Field(default=None, description="Team the primary pass attempted")
    primary_health_system_id: Optional[str] = Field(default=None, description="Health system of that team")

    # --- Reporting ---
    student_name: Optional[str] = None
    clerkship_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_day_counts(self):
        if self.assigned_days + self.remaining_days > self.required_days:
            raise ValueError("assigned_days + remaining_days cannot exceed required_days")
        return self

    @property
    def key(self) -> str:
        return f"{self.student_id}-{self.clerkship_id}"
