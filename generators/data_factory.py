"""
Scenario factory for the Clerkship Scheduler.
Builds complete SchedulingFacts bundles for tests, demos and local runs.
STRATEGY: hand-written named scenarios for known edge cases, plus a seeded
cohort generator for volume.
"""

import logging
import random
from datetime import date, timedelta
from typing import List, Dict, Callable, Optional

from models import (
    Student,
    Clerkship,
    Preceptor,
    HealthSystem,
    Site,
    Team,
    TeamMember,
    AvailabilityRecord,
    PreceptorCapacityRule,
    StudentOnboardingRecord,
    PreceptorSiteClerkship,
    Assignment,
    DateRange,
    RequirementType,
    HealthSystemRule,
    ResolvedRequirementConfiguration,
    OptionalSchedulingData,
    SchedulingFacts,
)

logger = logging.getLogger(__name__)

DECEMBER_START = date(2025, 12, 1)
DECEMBER_END = date(2025, 12, 31)


def weekdays_in_range(start: date, end: date) -> List[date]:
    """Monday to Friday dates from start to end inclusive."""
    return [d for d in DateRange(start_date=start, end_date=end).days() if d.weekday() < 5]


def availability_for(preceptor_id: str, site_id: str, days: List[date]) -> List[AvailabilityRecord]:
    return [AvailabilityRecord(preceptor_id=preceptor_id, date=d, site_id=site_id) for d in days]


class ScenarioFactory:
    """
    Every method returns a fresh SchedulingFacts. Nothing is shared between calls,
    so tests can mutate what they get.
    """

    def __init__(self, seed: int = 7):
        self.seed = seed

    def scenario_names(self) -> List[str]:
        return sorted(self._registry())

    def build(self, name: str) -> SchedulingFacts:
        builders = self._registry()
        if name not in builders:
            raise KeyError(f"Unknown scenario '{name}'. Choose from: {', '.join(sorted(builders))}")
        facts = builders[name]()
        logger.info(
            f"Scenario '{name}': {len(facts.students)} students, {len(facts.preceptors)} preceptors, "
            f"{len(facts.clerkships)} clerkships"
        )
        return facts

    def _registry(self) -> Dict[str, Callable[[], SchedulingFacts]]:
        return {
            "shared_team": self.shared_team_scenario,
            "capacity_limited": self.capacity_limited_scenario,
            "multi_team": self.multi_team_scenario,
            "cohort": self.generate_cohort,
        }

    def shared_team_scenario(
        self,
        available_days: int = 5,
        required_days: int = 5,
        max_per_day: int = 1
    ) -> SchedulingFacts:
        """
        One clerkship, one team of two preceptors in one health system.
        p1 (priority 1) is available for the first `available_days` weekdays of
        December 2025; p2 (priority 2) only when available_days is 5.
        """
        days = weekdays_in_range(DECEMBER_START, DECEMBER_END)[:available_days]

        preceptors = [
            Preceptor(id="p1", name="Dr. Avery", health_system_id="hs", site_id="site1"),
            Preceptor(id="p2", name="Dr. Brooks", health_system_id="hs", site_id="site1"),
        ]
        availability = availability_for("p1", "site1", days)
        if available_days >= 5:
            availability += availability_for("p2", "site1", days)

        team = Team(id="team", clerkship_id="c1", name="Family Medicine Team", members=[
            TeamMember(preceptor_id="p1", priority=1, role="lead"),
            TeamMember(preceptor_id="p2", priority=2),
        ])

        return SchedulingFacts(
            students=[Student(id="s1", name="Sam Student")],
            clerkships=[Clerkship(id="c1", name="Family Medicine", required_days=required_days)],
            preceptors=preceptors,
            availability=availability,
            capacity_rules=[
                PreceptorCapacityRule(preceptor_id=p.id, max_students_per_day=max_per_day, max_students_per_year=20)
                for p in preceptors
            ],
            start_date=DECEMBER_START,
            end_date=DECEMBER_END,
            configs=[ResolvedRequirementConfiguration(clerkship_id="c1", required_days=required_days)],
            optional=OptionalSchedulingData(
                health_systems=[HealthSystem(id="hs", name="Main Health")],
                sites=[Site(id="site1", name="Main Clinic", health_system_id="hs")],
                teams=[team],
            ),
        )

    def capacity_limited_scenario(self) -> SchedulingFacts:
        """
        Two students on the same team, one preceptor with daily capacity 1 over
        five days. s2 is further behind, so it gets first claim on the days.
        """
        days = weekdays_in_range(DECEMBER_START, DECEMBER_END)[:5]
        preceptor = Preceptor(id="p1", name="Dr. Avery", health_system_id="hs", site_id="site1")
        team = Team(id="team", clerkship_id="c1", members=[
            TeamMember(preceptor_id="p1", priority=1),
        ])

        # s1 already has three of its five days
        primary = [
            Assignment(student_id="s1", preceptor_id="p1", clerkship_id="c1", date=d)
            for d in (date(2025, 11, 24), date(2025, 11, 25), date(2025, 11, 26))
        ]

        return SchedulingFacts(
            students=[Student(id="s1", name="Sam Student"), Student(id="s2", name="Riley Student")],
            clerkships=[Clerkship(id="c1", name="Family Medicine", required_days=5)],
            preceptors=[preceptor],
            availability=availability_for("p1", "site1", [date(2025, 11, 24), date(2025, 11, 25), date(2025, 11, 26)] + days),
            capacity_rules=[PreceptorCapacityRule(preceptor_id="p1", max_students_per_day=1, max_students_per_year=20)],
            start_date=date(2025, 11, 24),
            end_date=DECEMBER_END,
            configs=[ResolvedRequirementConfiguration(clerkship_id="c1", required_days=5)],
            optional=OptionalSchedulingData(teams=[team]),
            primary_assignments=primary,
        )

    def multi_team_scenario(self) -> SchedulingFacts:
        """
        Two health systems, three teams for one clerkship. The primary team is
        unavailable, so gap filling has to reach tier 2 (north) and tier 3 (south).
        """
        days = weekdays_in_range(DECEMBER_START, DECEMBER_END)
        preceptors = [
            Preceptor(id="n1", name="Dr. North Lead", health_system_id="north", site_id="north_main"),
            Preceptor(id="n2", name="Dr. North Second", health_system_id="north", site_id="north_main"),
            Preceptor(id="n3", name="Dr. North Annex", health_system_id="north", site_id="north_annex"),
            Preceptor(id="s1", name="Dr. South Lead", health_system_id="south", site_id="south_main"),
        ]
        teams = [
            Team(id="north_a", clerkship_id="im", members=[
                TeamMember(preceptor_id="n1", priority=1),
                TeamMember(preceptor_id="n2", priority=2),
            ]),
            Team(id="north_b", clerkship_id="im", members=[
                TeamMember(preceptor_id="n3", priority=1),
            ]),
            Team(id="south_a", clerkship_id="im", members=[
                TeamMember(preceptor_id="s1", priority=1),
            ]),
        ]

        availability = (
            availability_for("n1", "north_main", days[:2])
            + availability_for("n3", "north_annex", days[2:5])
            + availability_for("s1", "south_main", days[5:15])
        )

        return SchedulingFacts(
            students=[Student(id="stu_a", name="Alex"), Student(id="stu_b", name="Blake")],
            clerkships=[Clerkship(id="im", name="Internal Medicine", clerkship_type=RequirementType.INPATIENT, required_days=6)],
            preceptors=preceptors,
            availability=availability,
            capacity_rules=[
                PreceptorCapacityRule(preceptor_id="n1", max_students_per_day=1, max_students_per_year=20),
                PreceptorCapacityRule(preceptor_id="n3", max_students_per_day=2, max_students_per_year=20),
                PreceptorCapacityRule(
                    preceptor_id="s1", requirement_type=RequirementType.INPATIENT,
                    max_students_per_day=1, max_students_per_year=10,
                ),
            ],
            start_date=DECEMBER_START,
            end_date=DECEMBER_END,
            blackout_dates=[date(2025, 12, 25)],
            configs=[ResolvedRequirementConfiguration(
                clerkship_id="im",
                requirement_type=RequirementType.INPATIENT,
                required_days=6,
                health_system_rule=HealthSystemRule.PREFER_SAME_SYSTEM,
                fallback_allow_cross_system=True,
            )],
            optional=OptionalSchedulingData(
                health_systems=[HealthSystem(id="north", name="North Health"), HealthSystem(id="south", name="South Health")],
                sites=[
                    Site(id="north_main", name="North Main", health_system_id="north"),
                    Site(id="north_annex", name="North Annex", health_system_id="north"),
                    Site(id="south_main", name="South Main", health_system_id="south"),
                ],
                teams=teams,
                student_onboarding=[
                    StudentOnboardingRecord(student_id=s, health_system_id=hs)
                    for s in ("stu_a", "stu_b") for hs in ("north", "south")
                ],
                preceptor_site_clerkships=[
                    PreceptorSiteClerkship(preceptor_id=p.id, site_id=p.site_id, clerkship_id="im")
                    for p in preceptors
                ],
            ),
            primary_assignments=[
                Assignment(student_id="stu_a", preceptor_id="n1", clerkship_id="im", date=days[0]),
                Assignment(student_id="stu_b", preceptor_id="n1", clerkship_id="im", date=days[1]),
            ],
        )

    def generate_cohort(
        self,
        student_count: int = 12,
        preceptor_count: int = 6,
        start_date: Optional[date] = None,
        weeks: int = 8
    ) -> SchedulingFacts:
        """
        Seeded random cohort: three clerkships, two health systems, one team
        per clerkship per health system, scattered weekday availability.
        """
        rng = random.Random(self.seed)
        start = start_date or date(2026, 1, 5)
        end = start + timedelta(weeks=weeks) - timedelta(days=1)
        days = weekdays_in_range(start, end)

        systems = ["hs_east", "hs_west"]
        clerkships = [
            Clerkship(id="fm", name="Family Medicine", required_days=10),
            Clerkship(id="im", name="Internal Medicine", clerkship_type=RequirementType.INPATIENT, required_days=8),
            Clerkship(id="peds", name="Pediatrics", required_days=6),
        ]
        students = [Student(id=f"stu_{i:02d}", name=f"Student {i:02d}") for i in range(student_count)]

        preceptors, availability, rules = [], [], []
        for i in range(preceptor_count):
            hs = systems[i % len(systems)]
            site = f"{hs}_site"
            pid = f"prc_{i:02d}"
            preceptors.append(Preceptor(id=pid, name=f"Dr. {i:02d}", health_system_id=hs, site_id=site))
            picked = sorted(rng.sample(days, k=min(len(days), rng.randint(len(days) // 3, len(days) // 2))))
            availability.extend(availability_for(pid, site, picked))
            rules.append(PreceptorCapacityRule(
                preceptor_id=pid,
                max_students_per_day=rng.randint(1, 2),
                max_students_per_year=rng.randint(15, 30),
            ))

        teams = []
        for clerkship in clerkships:
            for hs in systems:
                members = [p for p in preceptors if p.health_system_id == hs]
                teams.append(Team(
                    id=f"{clerkship.id}_{hs}",
                    clerkship_id=clerkship.id,
                    members=[TeamMember(preceptor_id=p.id, priority=n + 1) for n, p in enumerate(members)],
                ))

        configs = [
            ResolvedRequirementConfiguration(
                clerkship_id=c.id,
                requirement_type=c.clerkship_type,
                required_days=c.required_days,
                fallback_allow_cross_system=(c.id != "peds"),
            )
            for c in clerkships
        ]

        return SchedulingFacts(
            students=students,
            clerkships=clerkships,
            preceptors=preceptors,
            availability=availability,
            capacity_rules=rules,
            start_date=start,
            end_date=end,
            configs=configs,
            optional=OptionalSchedulingData(
                health_systems=[HealthSystem(id=hs, name=hs.replace("_", " ").title()) for hs in systems],
                teams=teams,
            ),
        )
