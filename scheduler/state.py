"""
Scheduler State Management.

This module acts as the 'Memory' of the system:
1. AssignmentLedger - committed assignments plus the indices capacity and
   constraint checks query (by date, by student, by preceptor).
2. SchedulingContext - the read-model for one run: entities, calendar,
   availability, remaining requirement days and optional association data.
"""

from datetime import date as date_type
from typing import List, Dict, Any, Optional, Set, Tuple, Iterable
from collections import defaultdict

from models import (
    Assignment,
    Student,
    Preceptor,
    Clerkship,
    HealthSystem,
    Site,
    Team,
    SiteCapacityRule,
)
from .requirements import record_assignment


class AssignmentLedger:
    """
    Append-only store of committed assignments.
    Each index holds references into the same list.
    """

    def __init__(self, assignments: Optional[Iterable[Assignment]] = None):
        self.assignments: List[Assignment] = []

        # Indices (for O(1) constraint checking)
        self.by_date: Dict[date_type, List[Assignment]] = defaultdict(list)
        self.by_student: Dict[str, List[Assignment]] = defaultdict(list)
        self.by_preceptor: Dict[str, List[Assignment]] = defaultdict(list)

        for assignment in assignments or ():
            self.add(assignment)

    def __len__(self) -> int:
        return len(self.assignments)

    def __iter__(self):
        return iter(self.assignments)

    def add(self, assignment: Assignment) -> None:
        """Commit an assignment and update every index."""
        self.assignments.append(assignment)
        self.by_date[assignment.date].append(assignment)
        self.by_student[assignment.student_id].append(assignment)
        self.by_preceptor[assignment.preceptor_id].append(assignment)

    # --- Query Methods (Used by capacity and constraint checks) ---

    def student_has_date(self, student_id: str, day: date_type) -> bool:
        return any(a.date == day for a in self.by_student.get(student_id, ()))

    def preceptor_count_on(self, preceptor_id: str, day: date_type) -> int:
        return sum(1 for a in self.by_date.get(day, ()) if a.preceptor_id == preceptor_id)

    def preceptor_count_in_year(self, preceptor_id: str, year: int) -> int:
        return sum(1 for a in self.by_preceptor.get(preceptor_id, ()) if a.date.year == year)

    def preceptor_blocks_in_year(self, preceptor_id: str, year: int) -> Set[int]:
        """Distinct block numbers the preceptor has assignments in during the year."""
        return {
            a.block_number
            for a in self.by_preceptor.get(preceptor_id, ())
            if a.date.year == year and a.block_number is not None
        }

    def for_student_clerkship(self, student_id: str, clerkship_id: str) -> List[Assignment]:
        """The student's assignments in one clerkship, earliest first."""
        found = [a for a in self.by_student.get(student_id, ()) if a.clerkship_id == clerkship_id]
        return sorted(found, key=lambda a: a.date)

    # --- Reporting Methods ---

    def get_statistics(self) -> Dict[str, Any]:
        """Per-tier counts, per-preceptor usage and the busiest day."""
        if not self.assignments:
            return {
                "total_assignments": 0,
                "primary_assignments": 0,
                "fallback_assignments": 0,
                "tier_breakdown": {},
                "preceptor_usage_count": {},
                "busiest_day": None,
                "date_range": None,
            }

        tier_counts = defaultdict(int)
        for a in self.assignments:
            tier_counts[a.tier] += 1

        busiest_date, busiest_list = max(self.by_date.items(), key=lambda x: len(x[1]))
        dates = list(self.by_date.keys())
        fallback = sum(count for tier, count in tier_counts.items() if tier > 0)

        return {
            "total_assignments": len(self.assignments),
            "primary_assignments": tier_counts.get(0, 0),
            "fallback_assignments": fallback,
            "tier_breakdown": {f"T{t}": tier_counts[t] for t in sorted(tier_counts)},
            "preceptor_usage_count": {k: len(v) for k, v in self.by_preceptor.items()},
            "busiest_day": (busiest_date, len(busiest_list)),
            "date_range": (min(dates), max(dates)),
        }

    def clear(self) -> None:
        """Reset state (useful for testing or re-running phases)."""
        self.assignments.clear()
        self.by_date.clear()
        self.by_student.clear()
        self.by_preceptor.clear()


class SchedulingContext:
    """
    Everything a single run reads, plus the ledger it writes to.
    Built by build_scheduling_context; must not outlive one run.
    """

    def __init__(
        self,
        students: List[Student],
        preceptors: List[Preceptor],
        clerkships: List[Clerkship],
        blackout_dates: Set[date_type],
        preceptor_availability: Dict[str, Dict[date_type, str]],
        student_requirements: Dict[str, Dict[str, int]],
        start_date: date_type,
        end_date: date_type,
        health_systems: Optional[List[HealthSystem]] = None,
        sites: Optional[List[Site]] = None,
        teams: Optional[List[Team]] = None,
        preceptor_teams: Optional[Dict[str, Set[str]]] = None,
        preceptor_site_clerkships: Optional[Set[Tuple[str, str, str]]] = None,
        preceptor_clerkships: Optional[Dict[str, Set[str]]] = None,
        clerkship_sites: Optional[Dict[str, Set[str]]] = None,
        preceptor_electives: Optional[Dict[str, Set[str]]] = None,
        site_availability: Optional[Dict[str, Dict[date_type, bool]]] = None,
        site_capacity_rules: Optional[List[SiteCapacityRule]] = None,
        student_onboarding: Optional[Dict[str, Set[str]]] = None,
    ):
        self.students = students
        self.preceptors = preceptors
        self.clerkships = clerkships
        self.blackout_dates = blackout_dates
        self.preceptor_availability = preceptor_availability
        self.student_requirements = student_requirements
        self.start_date = start_date
        self.end_date = end_date

        # Optional associations (None = data not loaded)
        self.health_systems = health_systems
        self.sites = sites
        self.teams = teams
        self.preceptor_teams = preceptor_teams
        self.preceptor_site_clerkships = preceptor_site_clerkships
        self.preceptor_clerkships = preceptor_clerkships
        self.clerkship_sites = clerkship_sites
        self.preceptor_electives = preceptor_electives
        self.site_availability = site_availability
        self.site_capacity_rules = site_capacity_rules
        self.student_onboarding = student_onboarding

        self.ledger = AssignmentLedger()

        # Lookups
        self.student_map = {s.id: s for s in students}
        self.preceptor_map = {p.id: p for p in preceptors}
        self.clerkship_map = {c.id: c for c in clerkships}
        self.team_map = {t.id: t for t in teams or ()}
        self.site_map = {s.id: s for s in sites or ()}
        self.health_system_map = {hs.id: hs for hs in health_systems or ()}

    # --- Entity Lookups ---

    def get_student(self, student_id: str) -> Optional[Student]:
        return self.student_map.get(student_id)

    def get_preceptor(self, preceptor_id: str) -> Optional[Preceptor]:
        return self.preceptor_map.get(preceptor_id)

    def get_clerkship(self, clerkship_id: str) -> Optional[Clerkship]:
        return self.clerkship_map.get(clerkship_id)

    def get_team(self, team_id: str) -> Optional[Team]:
        return self.team_map.get(team_id)

    # --- Availability ---

    def preceptor_site_on(self, preceptor_id: str, day: date_type) -> Optional[str]:
        """Site the preceptor works at on the date, None if unavailable."""
        return self.preceptor_availability.get(preceptor_id, {}).get(day)

    def is_preceptor_available(self, preceptor_id: str, day: date_type) -> bool:
        return self.preceptor_site_on(preceptor_id, day) is not None

    def available_dates(self, preceptor_id: str) -> List[date_type]:
        """Recorded availability dates for the preceptor, ascending."""
        return sorted(self.preceptor_availability.get(preceptor_id, {}))

    def site_health_system(self, site_id: Optional[str]) -> Optional[str]:
        site = self.site_map.get(site_id) if site_id else None
        return site.health_system_id if site else None

    def preceptor_health_system(self, preceptor_id: str) -> Optional[str]:
        preceptor = self.get_preceptor(preceptor_id)
        return preceptor.health_system_id if preceptor else None

    def health_system_name(self, health_system_id: Optional[str]) -> Optional[str]:
        """Display name when health systems are loaded, else the raw id."""
        health_system = self.health_system_map.get(health_system_id) if health_system_id else None
        return health_system.name if health_system else health_system_id

    # --- Mutation ---

    def add_assignment(self, assignment: Assignment) -> None:
        """Append to the ledger and decrement the remaining-days counter."""
        self.ledger.add(assignment)
        record_assignment(self, assignment)

    @property
    def assignments(self) -> List[Assignment]:
        return self.ledger.assignments

    @property
    def assignments_by_date(self) -> Dict[date_type, List[Assignment]]:
        return self.ledger.by_date

    @property
    def assignments_by_student(self) -> Dict[str, List[Assignment]]:
        return self.ledger.by_student

    @property
    def assignments_by_preceptor(self) -> Dict[str, List[Assignment]]:
        return self.ledger.by_preceptor
