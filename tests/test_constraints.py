"""Tests for constraint evaluation order, bypassing and the concrete constraints."""

import pytest

from models import (
    HealthSystemRule,
    PreceptorElective,
    RequirementType,
    SiteAvailabilityRecord,
    SiteCapacityRule,
    StudentOnboardingRecord,
    PreceptorSiteClerkship,
)
from scheduler import (
    CapacityResolver,
    Constraint,
    ConstraintSet,
    ViolationTracker,
    build_constraint_set,
    build_context_from_facts,
)
from scheduler.constraints import PreceptorClerkshipAssociationConstraint

from .conftest import d, make_assignment


class RecordingConstraint(Constraint):
    """Test double that logs when it runs and returns a fixed answer."""

    def __init__(self, name, priority, passes=True, bypassable=False, log=None):
        self.name = name
        self.priority = priority
        self.passes = passes
        self.bypassable = bypassable
        self.log = log if log is not None else []

    def validate(self, assignment, context, tracker):
        self.log.append(self.name)
        if self.passes:
            return True
        return self._fail(assignment, context, tracker)

    def get_violation_message(self, assignment, context):
        return f"{self.name} failed"


def constraint_set_for(facts, context):
    resolver = CapacityResolver(facts.capacity_rules, context.preceptors, context.ledger)
    return build_constraint_set(context, facts.config_map(), resolver)


def failed_names(tracker):
    return [v.constraint_name for v in tracker.export_violations()]


class TestConstraintSet:
    def test_evaluates_in_priority_order_stable_for_ties(self, shared_team_context):
        log = []
        constraint_set = ConstraintSet([
            RecordingConstraint("late", 5, log=log),
            RecordingConstraint("first_tie", 1, log=log),
            RecordingConstraint("middle", 3, log=log),
            RecordingConstraint("second_tie", 1, log=log),
        ])
        constraint_set.validate(make_assignment("s1", "p1", d(1)), shared_team_context, ViolationTracker())
        assert log == ["first_tie", "second_tie", "middle", "late"]

    def test_default_priority(self):
        class Bare(Constraint):
            def validate(self, assignment, context, tracker):
                return True

            def get_violation_message(self, assignment, context):
                return ""

        assert Bare().priority == 99
        assert Bare().bypassable is False

    def test_stop_on_first_failure(self, shared_team_context):
        tracker = ViolationTracker()
        constraint_set = ConstraintSet([
            RecordingConstraint("a", 1, passes=False),
            RecordingConstraint("b", 2, passes=False),
        ])
        assert not constraint_set.validate(make_assignment("s1", "p1", d(1)), shared_team_context, tracker)
        assert failed_names(tracker) == ["a"]

    def test_collect_all_failures(self, shared_team_context):
        tracker = ViolationTracker()
        constraint_set = ConstraintSet([
            RecordingConstraint("a", 1, passes=False),
            RecordingConstraint("b", 2, passes=False),
        ])
        assert not constraint_set.validate(
            make_assignment("s1", "p1", d(1)), shared_team_context, tracker, stop_on_first=False
        )
        assert failed_names(tracker) == ["a", "b"]

    def test_only_bypassable_constraints_can_be_skipped(self, shared_team_context):
        constraint_set = ConstraintSet([
            RecordingConstraint("soft", 1, passes=False, bypassable=True),
            RecordingConstraint("hard", 2, passes=False),
        ])
        tracker = ViolationTracker()
        assignment = make_assignment("s1", "p1", d(1))

        assert not constraint_set.validate(assignment, shared_team_context, tracker, bypassed=["soft", "hard"])
        assert failed_names(tracker) == ["hard"]


class TestBaseConstraints:
    def test_blackout_date(self, shared_team_facts):
        shared_team_facts.blackout_dates = [d(2)]
        context = build_context_from_facts(shared_team_facts)
        tracker = ViolationTracker()

        assert not constraint_set_for(shared_team_facts, context).validate(make_assignment("s1", "p1", d(2)), context, tracker)
        assert failed_names(tracker) == ["BlackoutDate"]

    def test_no_double_booking(self, shared_team_facts, shared_team_context):
        shared_team_context.add_assignment(make_assignment("s1", "p1", d(1)))
        tracker = ViolationTracker()

        constraint_set = constraint_set_for(shared_team_facts, shared_team_context)
        assert not constraint_set.validate(make_assignment("s1", "p2", d(1)), shared_team_context, tracker)
        assert failed_names(tracker) == ["NoDoubleBooking"]

    def test_preceptor_availability_and_bypass(self, shared_team_facts, shared_team_context):
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(shared_team_facts, shared_team_context)
        off_day = make_assignment("s1", "p1", d(8))

        assert not constraint_set.validate(off_day, shared_team_context, tracker)
        assert failed_names(tracker) == ["PreceptorAvailability"]
        assert tracker.export_violations()[0].metadata["total_available_dates"] == 5
        assert constraint_set.validate(off_day, shared_team_context, tracker, bypassed=["PreceptorAvailability"])

    def test_preceptor_capacity_and_bypass(self, shared_team_facts, shared_team_context):
        shared_team_context.add_assignment(make_assignment("s1", "p1", d(1)))
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(shared_team_facts, shared_team_context)
        second_student = make_assignment("s2", "p1", d(1))

        assert not constraint_set.validate(second_student, shared_team_context, tracker)
        violation = tracker.export_violations()[0]
        assert violation.constraint_name == "PreceptorCapacity"
        assert violation.metadata["check_type"] == "daily"
        assert "daily capacity" in violation.reason
        assert constraint_set.validate(second_student, shared_team_context, tracker, bypassed=["PreceptorCapacity"])

    def test_multiple_failures_recorded_when_not_stopping(self, shared_team_facts):
        shared_team_facts.blackout_dates = [d(8)]
        context = build_context_from_facts(shared_team_facts)
        tracker = ViolationTracker()

        constraint_set_for(shared_team_facts, context).validate(
            make_assignment("s1", "p1", d(8)), context, tracker, stop_on_first=False
        )
        assert failed_names(tracker) == ["BlackoutDate", "PreceptorAvailability"]


class TestBuildConstraintSet:
    def test_base_constraints_only_without_optional_data(self, shared_team_facts):
        shared_team_facts.optional.teams = None
        context = build_context_from_facts(shared_team_facts)
        names = constraint_set_for(shared_team_facts, context).names()
        assert names == ["BlackoutDate", "NoDoubleBooking", "PreceptorAvailability", "PreceptorCapacity"]

    def test_team_continuity_added_when_teams_present(self, shared_team_facts, shared_team_context):
        names = constraint_set_for(shared_team_facts, shared_team_context).names()
        assert "SamePreceptorTeam" in names
        assert "HealthSystemContinuity" not in names

    def test_enforce_same_system_adds_health_system_continuity(self, shared_team_facts, shared_team_context):
        shared_team_facts.configs = [
            c.model_copy(update={"health_system_rule": HealthSystemRule.ENFORCE_SAME_SYSTEM})
            for c in shared_team_facts.configs
        ]
        names = constraint_set_for(shared_team_facts, shared_team_context).names()
        assert "HealthSystemContinuity" in names

    def test_data_dependent_constraints(self, multi_team_facts):
        multi_team_facts.optional.site_availability = [
            SiteAvailabilityRecord(site_id="south_main", date=d(8), is_available=False)
        ]
        multi_team_facts.optional.site_capacity_rules = [
            SiteCapacityRule(site_id="north_annex", max_students_per_day=1, max_students_per_year=20)
        ]
        context = build_context_from_facts(multi_team_facts)
        names = constraint_set_for(multi_team_facts, context).names()

        for expected in ("ValidSiteForClerkship", "SiteAvailability", "StudentOnboarding", "SiteCapacity"):
            assert expected in names
        assert names[-1] == "SiteCapacity"

    def test_association_constraint_per_clerkship_when_loaded(self, multi_team_facts, multi_team_context):
        names = constraint_set_for(multi_team_facts, multi_team_context).names()
        assert names.count("PreceptorClerkshipAssociation") == 1

    def test_empty_team_table_still_counts_as_loaded(self, shared_team_facts):
        shared_team_facts.optional.teams = []
        context = build_context_from_facts(shared_team_facts)
        assert "SamePreceptorTeam" in constraint_set_for(shared_team_facts, context).names()


class TestContinuityConstraints:
    def test_health_system_continuity(self, multi_team_facts):
        multi_team_facts.configs = [
            c.model_copy(update={"health_system_rule": HealthSystemRule.ENFORCE_SAME_SYSTEM})
            for c in multi_team_facts.configs
        ]
        context = build_context_from_facts(multi_team_facts)
        context.add_assignment(make_assignment("stu_a", "n1", d(1), clerkship_id="im"))
        tracker = ViolationTracker()

        constraint_set = constraint_set_for(multi_team_facts, context)
        assert not constraint_set.validate(make_assignment("stu_a", "s1", d(8), clerkship_id="im"), context, tracker)
        assert failed_names(tracker) == ["HealthSystemContinuity"]

    def test_same_preceptor_team(self, multi_team_facts, multi_team_context):
        multi_team_context.add_assignment(make_assignment("stu_a", "n1", d(1), clerkship_id="im"))
        tracker = ViolationTracker()

        constraint_set = constraint_set_for(multi_team_facts, multi_team_context)
        assert not constraint_set.validate(
            make_assignment("stu_a", "n3", d(3), clerkship_id="im"), multi_team_context, tracker
        )
        assert failed_names(tracker) == ["SamePreceptorTeam"]

    def test_first_assignment_sets_no_continuity_requirement(self, multi_team_facts, multi_team_context):
        constraint_set = constraint_set_for(multi_team_facts, multi_team_context)
        assert constraint_set.validate(
            make_assignment("stu_a", "s1", d(8), clerkship_id="im"), multi_team_context, ViolationTracker()
        )


class TestAssociationConstraints:
    def test_student_onboarding(self, multi_team_facts):
        multi_team_facts.optional.student_onboarding = [
            StudentOnboardingRecord(student_id="stu_a", health_system_id="north"),
            StudentOnboardingRecord(student_id="stu_a", health_system_id="south", is_completed=False),
        ]
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)

        assert not constraint_set.validate(make_assignment("stu_a", "s1", d(8), clerkship_id="im"), context, tracker)
        assert failed_names(tracker) == ["StudentOnboarding"]
        assert constraint_set.validate(make_assignment("stu_a", "n1", d(1), clerkship_id="im"), context, tracker)

    @pytest.mark.parametrize("rows", [
        [],
        [StudentOnboardingRecord(student_id="stu_b", health_system_id="north", is_completed=False)],
    ])
    def test_onboarding_table_without_completions_rejects_everyone(self, multi_team_facts, rows):
        multi_team_facts.optional.student_onboarding = rows
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)

        assert "StudentOnboarding" in constraint_set.names()
        assert not constraint_set.validate(make_assignment("stu_a", "n1", d(1), clerkship_id="im"), context, tracker)
        assert failed_names(tracker) == ["StudentOnboarding"]

    def test_onboarding_message_names_the_health_system(self, multi_team_facts):
        multi_team_facts.optional.student_onboarding = []
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set_for(multi_team_facts, context).validate(
            make_assignment("stu_a", "n1", d(1), clerkship_id="im"), context, tracker
        )
        assert tracker.export_violations()[0].reason == "Student Alex has not completed onboarding at North Health"

    def test_onboarding_message_without_health_systems_uses_id(self, multi_team_facts):
        multi_team_facts.optional.student_onboarding = []
        multi_team_facts.optional.health_systems = None
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set_for(multi_team_facts, context).validate(
            make_assignment("stu_a", "n1", d(1), clerkship_id="im"), context, tracker
        )
        assert tracker.export_violations()[0].reason.endswith("onboarding at north")

    def test_elective_requires_preceptor_elective_link(self, shared_team_facts):
        shared_team_facts.configs = [
            c.model_copy(update={"requirement_type": RequirementType.ELECTIVE})
            for c in shared_team_facts.configs
        ]
        shared_team_facts.optional.preceptor_electives = [PreceptorElective(preceptor_id="p1", elective_id="c1")]
        context = build_context_from_facts(shared_team_facts)
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(shared_team_facts, context)

        assert not constraint_set.validate(make_assignment("s1", "p2", d(1)), context, tracker)
        assert failed_names(tracker) == ["PreceptorClerkshipAssociation"]
        violation = tracker.export_violations()[0]
        assert "not associated with elective Family Medicine" in violation.reason
        assert violation.metadata["requirement_type"] == "elective"
        assert constraint_set.validate(make_assignment("s1", "p1", d(1)), context, tracker)

    def test_empty_elective_table_rejects_every_preceptor(self, shared_team_facts):
        shared_team_facts.configs = [
            c.model_copy(update={"requirement_type": RequirementType.ELECTIVE})
            for c in shared_team_facts.configs
        ]
        shared_team_facts.optional.preceptor_electives = []
        context = build_context_from_facts(shared_team_facts)
        tracker = ViolationTracker()

        assert not constraint_set_for(shared_team_facts, context).validate(make_assignment("s1", "p1", d(1)), context, tracker)
        assert failed_names(tracker) == ["PreceptorClerkshipAssociation"]

    def test_clerkship_association_from_site_links(self, multi_team_facts):
        multi_team_facts.optional.preceptor_site_clerkships = [
            PreceptorSiteClerkship(preceptor_id="n1", site_id="north_main", clerkship_id="im"),
        ]
        context = build_context_from_facts(multi_team_facts)
        constraint = PreceptorClerkshipAssociationConstraint("im", RequirementType.INPATIENT)
        tracker = ViolationTracker()

        assert constraint.validate(make_assignment("stu_a", "n1", d(8), clerkship_id="im"), context, tracker)
        assert not constraint.validate(make_assignment("stu_a", "n3", d(3), clerkship_id="im"), context, tracker)
        assert "not associated with clerkship Internal Medicine" in tracker.export_violations()[0].reason
        # Other clerkships are not this constraint's concern
        assert constraint.validate(make_assignment("stu_a", "n3", d(3), clerkship_id="fm"), context, tracker)

    def test_association_skipped_without_data(self, shared_team_context):
        constraint = PreceptorClerkshipAssociationConstraint("c1", RequirementType.ELECTIVE)
        assert constraint.validate(make_assignment("s1", "p2", d(1)), shared_team_context, ViolationTracker())

    def test_valid_site_for_clerkship(self, multi_team_facts):
        multi_team_facts.optional.preceptor_site_clerkships = [
            PreceptorSiteClerkship(preceptor_id="n1", site_id="north_main", clerkship_id="im"),
        ]
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)

        assert not constraint_set.validate(make_assignment("stu_a", "s1", d(8), clerkship_id="im"), context, tracker)
        assert failed_names(tracker) == ["ValidSiteForClerkship"]
        assert constraint_set.validate(make_assignment("stu_a", "n1", d(1), clerkship_id="im"), context, tracker)

    def test_site_availability(self, multi_team_facts):
        multi_team_facts.optional.site_availability = [
            SiteAvailabilityRecord(site_id="south_main", date=d(8), is_available=False)
        ]
        context = build_context_from_facts(multi_team_facts)
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)

        assert not constraint_set.validate(make_assignment("stu_a", "s1", d(8), clerkship_id="im"), context, tracker)
        assert failed_names(tracker) == ["SiteAvailability"]
        assert constraint_set.validate(make_assignment("stu_a", "s1", d(9), clerkship_id="im"), context, tracker)

    def test_site_daily_capacity_and_bypass(self, multi_team_facts):
        multi_team_facts.optional.site_capacity_rules = [
            SiteCapacityRule(site_id="north_annex", max_students_per_day=1, max_students_per_year=20)
        ]
        context = build_context_from_facts(multi_team_facts)
        context.add_assignment(make_assignment("stu_a", "n3", d(3), clerkship_id="im"))
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)
        second = make_assignment("stu_b", "n3", d(3), clerkship_id="im")

        assert not constraint_set.validate(second, context, tracker)
        violation = tracker.export_violations()[0]
        assert violation.constraint_name == "SiteCapacity"
        assert violation.metadata["check_type"] == "daily"
        assert constraint_set.validate(second, context, tracker, bypassed=["SiteCapacity"])

    def test_site_yearly_capacity_counts_unique_students(self, multi_team_facts):
        multi_team_facts.optional.site_capacity_rules = [
            SiteCapacityRule(site_id="north_annex", max_students_per_day=5, max_students_per_year=1)
        ]
        context = build_context_from_facts(multi_team_facts)
        context.add_assignment(make_assignment("stu_a", "n3", d(3), clerkship_id="im"))
        tracker = ViolationTracker()
        constraint_set = constraint_set_for(multi_team_facts, context)

        # Same student again is fine, a second student is not
        assert constraint_set.validate(make_assignment("stu_a", "n3", d(4), clerkship_id="im"), context, tracker)
        assert not constraint_set.validate(make_assignment("stu_b", "n3", d(4), clerkship_id="im"), context, tracker)
        assert tracker.export_violations()[0].metadata["check_type"] == "yearly"


class TestViolationTracker:
    def test_stats_and_top_violations(self):
        tracker = ViolationTracker()
        tracker.record_violation("A", make_assignment("s1", "p1", d(1)), "no")
        tracker.record_violation("B", make_assignment("s1", "p2", d(2)), "no")
        tracker.record_violation("B", make_assignment("s2", "p2", d(2)), "no", {"k": 1})

        stats = tracker.get_stats_by_constraint()
        assert stats["B"].count == 2
        assert stats["B"].affected_students == {"s1", "s2"}
        assert stats["B"].affected_dates == {d(2)}
        assert stats["B"].affected_preceptors == {"p2"}
        assert [s.constraint_name for s in tracker.get_top_violations()] == ["B", "A"]
        assert [s.constraint_name for s in tracker.get_top_violations(1)] == ["B"]
        assert tracker.total_violations == 3

    def test_export_is_a_copy_and_clear_resets(self):
        tracker = ViolationTracker()
        tracker.record_violation("A", make_assignment("s1", "p1", d(1)), "no")
        exported = tracker.export_violations()
        exported.clear()
        assert tracker.total_violations == 1

        tracker.clear()
        assert tracker.total_violations == 0
        assert tracker.get_stats_by_constraint() == {}
