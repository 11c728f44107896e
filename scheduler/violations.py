"""
Constraint Violation Tracking.

Every rejected assignment leaves a record here, so a run can explain
afterwards which rules blocked it most and for whom.
"""

from datetime import date as date_type, datetime
from typing import List, Dict, Any, Optional, Set
from dataclasses import dataclass, field

from models import Assignment


@dataclass
class ConstraintViolation:
    """Detailed reason for rejection."""
    constraint_name: str  # e.g. "PreceptorCapacity", "BlackoutDate"
    assignment: Assignment
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ViolationStats:
    """Aggregate of all violations of one constraint."""
    constraint_name: str
    count: int = 0
    violations: List[ConstraintViolation] = field(default_factory=list)
    affected_students: Set[str] = field(default_factory=set)
    affected_dates: Set[date_type] = field(default_factory=set)
    affected_preceptors: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constraint_name": self.constraint_name,
            "count": self.count,
            "affected_students": sorted(self.affected_students),
            "affected_dates": [d.isoformat() for d in sorted(self.affected_dates)],
            "affected_preceptors": sorted(self.affected_preceptors),
        }


class ViolationTracker:
    """Collects violations for one run. Clear it before reusing across runs."""

    def __init__(self):
        self.violations: List[ConstraintViolation] = []

    def record_violation(
        self,
        constraint_name: str,
        assignment: Assignment,
        reason: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        self.violations.append(ConstraintViolation(
            constraint_name=constraint_name,
            assignment=assignment,
            reason=reason,
            metadata=metadata or {},
        ))

    def get_stats_by_constraint(self) -> Dict[str, ViolationStats]:
        """constraint name -> stats, in order of first violation."""
        stats_map: Dict[str, ViolationStats] = {}
        for violation in self.violations:
            stats = stats_map.get(violation.constraint_name)
            if stats is None:
                stats = stats_map[violation.constraint_name] = ViolationStats(violation.constraint_name)
            stats.count += 1
            stats.violations.append(violation)
            stats.affected_students.add(violation.assignment.student_id)
            stats.affected_dates.add(violation.assignment.date)
            stats.affected_preceptors.add(violation.assignment.preceptor_id)
        return stats_map

    def get_top_violations(self, n: int = 10) -> List[ViolationStats]:
        stats = list(self.get_stats_by_constraint().values())
        stats.sort(key=lambda s: s.count, reverse=True)
        return stats[:n]

    @property
    def total_violations(self) -> int:
        return len(self.violations)

    def export_violations(self) -> List[ConstraintViolation]:
        return list(self.violations)

    def clear(self) -> None:
        self.violations.clear()
