"""
Data models package for the Clerkship Scheduler.

This package exports the core pillars of the data architecture:
1. Demand (Student, Clerkship, UnmetRequirement)
2. Supply (Preceptor, Team, Availability, Capacity Rules)
3. Output (Assignment, DateRange)
4. Configuration & Input Bundles
"""

from .requirement import (
    RequirementType,
    AssignmentStrategy,
    HealthSystemRule,
    Student,
    Clerkship,
    UnmetRequirement
)

from .resource import (
    HealthSystem,
    Site,
    Preceptor,
    AvailabilityRecord,
    PreceptorCapacityRule,
    SiteCapacityRule,
    TeamMember,
    Team,
    StudentOnboardingRecord,
    PreceptorSiteClerkship,
    ClerkshipSite,
    PreceptorElective,
    SiteAvailabilityRecord
)

from .schedule import (
    Assignment,
    DateRange,
    PRIMARY_TIER
)

from .config import (
    ConfigurationSource,
    ResolvedRequirementConfiguration,
    TeamConfig,
    EngineOptions
)

from .facts import (
    OptionalSchedulingData,
    SchedulingFacts
)

__all__ = [
    # --- Demand Models ---
    "RequirementType",
    "AssignmentStrategy",
    "HealthSystemRule",
    "Student",
    "Clerkship",
    "UnmetRequirement",

    # --- Resource & Constraint Models ---
    "HealthSystem",
    "Site",
    "Preceptor",
    "AvailabilityRecord",
    "PreceptorCapacityRule",
    "SiteCapacityRule",
    "TeamMember",
    "Team",
    "StudentOnboardingRecord",
    "PreceptorSiteClerkship",
    "ClerkshipSite",
    "PreceptorElective",
    "SiteAvailabilityRecord",

    # --- Output Models ---
    "Assignment",
    "DateRange",
    "PRIMARY_TIER",

    # --- Configuration ---
    "ConfigurationSource",
    "ResolvedRequirementConfiguration",
    "TeamConfig",
    "EngineOptions",
    "OptionalSchedulingData",
    "SchedulingFacts",
]
