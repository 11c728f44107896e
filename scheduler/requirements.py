"""
Requirement Tracking.

Keeps the per-student 'days remaining' counters in step with the ledger
and answers which students and clerkships still need days.
"""

import logging
from typing import List, Dict, Optional, TYPE_CHECKING

from models import Assignment, Student, Clerkship, UnmetRequirement

if TYPE_CHECKING:
    from .state import SchedulingContext

logger = logging.getLogger(__name__)


def initialize_student_requirements(
    students: List[Student],
    clerkships: List[Clerkship]
) -> Dict[str, Dict[str, int]]:
    """student_id -> clerkship_id -> required days for every pair."""
    return {
        student.id: {clerkship.id: clerkship.required_days for clerkship in clerkships}
        for student in students
    }


def record_assignment(context: "SchedulingContext", assignment: Assignment) -> None:
    """Decrement the student's remaining days for the clerkship, never below zero."""
    remaining = context.student_requirements.get(assignment.student_id)
    if remaining is None or assignment.clerkship_id not in remaining:
        logger.debug(
            f"No requirement counter for {assignment.student_id}/{assignment.clerkship_id}; "
            "assignment recorded without decrement"
        )
        return
    remaining[assignment.clerkship_id] = max(0, remaining[assignment.clerkship_id] - 1)


def get_most_needed_clerkship(student_id: str, context: "SchedulingContext") -> Optional[str]:
    """
    The clerkship with the largest remaining count for the student.
    Ties go to the first clerkship in context order; None when nothing remains.
    """
    remaining = context.student_requirements.get(student_id)
    if not remaining:
        return None

    best_id = None
    best_value = 0
    for clerkship in context.clerkships:
        value = remaining.get(clerkship.id, 0)
        if value > best_value:
            best_id = clerkship.id
            best_value = value
    return best_id


def get_students_needing_assignments(context: "SchedulingContext") -> List[Student]:
    """Students with at least one clerkship still short of days, in student order."""
    return [
        student for student in context.students
        if any(v > 0 for v in context.student_requirements.get(student.id, {}).values())
    ]


def check_unmet_requirements(context: "SchedulingContext") -> List[UnmetRequirement]:
    """One UnmetRequirement per (student, clerkship) with days remaining."""
    unmet = []
    for student in context.students:
        remaining = context.student_requirements.get(student.id, {})
        for clerkship in context.clerkships:
            days_left = remaining.get(clerkship.id, 0)
            if days_left <= 0:
                continue
            unmet.append(UnmetRequirement(
                student_id=student.id,
                clerkship_id=clerkship.id,
                requirement_type=clerkship.clerkship_type,
                required_days=clerkship.required_days,
                assigned_days=clerkship.required_days - days_left,
                remaining_days=days_left,
                reason="Insufficient assignments",
                student_name=student.name,
                clerkship_name=clerkship.name,
            ))
    return unmet
