"""
Resource data models for the Clerkship Scheduler.

This module defines the 'Supply' side of the scheduler:
1. Preceptors (who supervise, where, and how many students)
2. Institutions (Health Systems and Sites)
3. Teams (prioritised groups of preceptors per clerkship)
4. Raw availability, capacity and association rows as loaded by persistence
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type

from .requirement import RequirementType


class HealthSystem(BaseModel):
    """An institution that owns one or more sites."""
    id: str
    name: str = Field(min_length=1)


class Site(BaseModel):
    """A physical location where preceptors see students."""
    id: str
    name: str = Field(min_length=1)
    health_system_id: Optional[str] = Field(default=None)


class Preceptor(BaseModel):
    """
    Supervising professional. Capacity comes from capacity rules;
    max_students only seeds the yearly default.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(min_length=1, description="e.g. 'Dr. Jones'")
    email: Optional[str] = Field(default=None)

    health_system_id: Optional[str] = Field(default=None, description="Owning health system")
    site_id: Optional[str] = Field(default=None, description="Home site (team site rules use this)")

    max_students: Optional[int] = Field(
        default=None,
        ge=1,
        description="Yearly default when no capacity rule applies"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "prc_jones",
            "name": "Dr. Jones",
            "health_system_id": "hs_north",
            "site_id": "site_north_main",
            "max_students": 20
        }
    })


class AvailabilityRecord(BaseModel):
    """One row of preceptor availability: a preceptor at one site on one date."""
    preceptor_id: str
    date: date_type
    site_id: Optional[str] = Field(default=None, description="Rows without a site are ignored")
    is_available: bool = Field(default=True)


class PreceptorCapacityRule(BaseModel):
    """
    Capacity limits for a preceptor. Narrowed by clerkship and/or requirement type;
    leaving both unset makes it the preceptor's general rule.
    """
    preceptor_id: str
    clerkship_id: Optional[str] = Field(default=None)
    requirement_type: Optional[RequirementType] = Field(default=None)

    max_students_per_day: int = Field(ge=1)
    max_students_per_year: int = Field(ge=1)
    max_students_per_block: Optional[int] = Field(default=None, ge=1)
    max_blocks_per_year: Optional[int] = Field(default=None, ge=1)


class SiteCapacityRule(BaseModel):
    """Limits on how many students a site takes, optionally narrowed like preceptor rules."""
    site_id: str
    clerkship_id: Optional[str] = Field(default=None)
    requirement_type: Optional[RequirementType] = Field(default=None)

    max_students_per_day: int = Field(ge=1)
    max_students_per_year: int = Field(ge=1)
    max_students_per_block: Optional[int] = Field(default=None, ge=1)
    max_blocks_per_year: Optional[int] = Field(default=None, ge=1)


class TeamMember(BaseModel):
    """A preceptor's seat on a team. Lower priority number = leads the team."""
    preceptor_id: str
    priority: int = Field(ge=0, description="Unique within the team; 1 = lead")
    role: Optional[str] = Field(default=None, description="e.g. 'lead', 'member'")
    is_fallback_only: bool = Field(
        default=False,
        description="Only used when the primary members cannot take the student"
    )
    assigned_dates: List[date_type] = Field(
        default_factory=list,
        description="Dates proposed for this member (team validation only)"
    )


class Team(BaseModel):
    """
    A prioritised group of preceptors for one clerkship.
    First fallback tier and the unit of continuity for a student.
    """
    id: str
    clerkship_id: str
    name: Optional[str] = Field(default=None)
    members: List[TeamMember] = Field(default_factory=list)

    @property
    def ordered_members(self) -> List[TeamMember]:
        """Members by priority (stable for equal priorities)."""
        return sorted(self.members, key=lambda m: m.priority)


class StudentOnboardingRecord(BaseModel):
    """Whether a student has completed onboarding at a health system."""
    student_id: str
    health_system_id: str
    is_completed: bool = Field(default=True)


class PreceptorSiteClerkship(BaseModel):
    """Three-way association: preceptor may teach clerkship at site."""
    preceptor_id: str
    site_id: str
    clerkship_id: str


class ClerkshipSite(BaseModel):
    """A site where a clerkship is offered."""
    clerkship_id: str
    site_id: str


class PreceptorElective(BaseModel):
    """A preceptor linked to an elective requirement."""
    preceptor_id: str
    elective_id: str


class SiteAvailabilityRecord(BaseModel):
    """Site open/closed override for a single date."""
    site_id: str
    date: date_type
    is_available: bool = Field(default=True)

