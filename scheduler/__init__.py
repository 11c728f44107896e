"""
Scheduling core for the Clerkship Scheduler.

1. Context (SchedulingContext, build_scheduling_context)
2. Rules (CapacityResolver, ConstraintSet, TeamValidator)
3. Resilience (FallbackPreceptorResolver, FallbackGapFiller)
4. Orchestration (ClerkshipScheduler)
"""

from .exceptions import SchedulerError, ConfigurationError, UnknownEntityError
from .state import AssignmentLedger, SchedulingContext
from .context_builder import build_scheduling_context, build_context_from_facts
from .capacity import CapacityResolver, CapacityCheckResult, ResolvedCapacityRule
from .violations import ViolationTracker
from .constraints import Constraint, ConstraintSet, build_constraint_set
from .teams import TeamValidator, TeamValidationResult, ValidationError
from .fallback import FallbackPreceptorResolver, FallbackCandidate
from .gap_filler import FallbackGapFiller, GapFillerResult, RequirementFulfillment
from .engine import ClerkshipScheduler, ScheduleResult

__all__ = [
    "SchedulerError",
    "ConfigurationError",
    "UnknownEntityError",
    "AssignmentLedger",
    "SchedulingContext",
    "build_scheduling_context",
    "build_context_from_facts",
    "CapacityResolver",
    "CapacityCheckResult",
    "ResolvedCapacityRule",
    "ViolationTracker",
    "Constraint",
    "ConstraintSet",
    "build_constraint_set",
    "TeamValidator",
    "TeamValidationResult",
    "ValidationError",
    "FallbackPreceptorResolver",
    "FallbackCandidate",
    "FallbackGapFiller",
    "GapFillerResult",
    "RequirementFulfillment",
    "ClerkshipScheduler",
    "ScheduleResult",
]
