"""Tests for tiered fallback preceptor resolution."""

import pytest

from models import Preceptor, Team, TeamMember
from scheduler import FallbackPreceptorResolver, build_context_from_facts
from scheduler.fallback import TIER_CROSS_SYSTEM, TIER_SAME_HEALTH_SYSTEM, TIER_SAME_TEAM


def tiers(candidates):
    return [(c.preceptor_id, c.tier) for c in candidates]


@pytest.fixture
def resolver(multi_team_context):
    return FallbackPreceptorResolver.from_context(multi_team_context)


class TestOrderedFallbackPreceptors:
    def test_all_three_tiers(self, resolver):
        candidates = resolver.get_ordered_fallback_preceptors("im", "north_a", "north", allow_cross_system=True)
        assert tiers(candidates) == [
            ("n1", TIER_SAME_TEAM),
            ("n2", TIER_SAME_TEAM),
            ("n3", TIER_SAME_HEALTH_SYSTEM),
            ("s1", TIER_CROSS_SYSTEM),
        ]
        assert [c.team_id for c in candidates] == ["north_a", "north_a", "north_b", "south_a"]

    def test_tiers_never_decrease(self, resolver):
        candidates = resolver.get_ordered_fallback_preceptors("im", "north_b", "north", allow_cross_system=True)
        assert [c.tier for c in candidates] == sorted(c.tier for c in candidates)

    def test_cross_system_off(self, resolver):
        candidates = resolver.get_ordered_fallback_preceptors("im", "north_a", "north", allow_cross_system=False)
        assert tiers(candidates) == [("n1", 1), ("n2", 1), ("n3", 2)]

    def test_no_primary_team(self, resolver):
        candidates = resolver.get_ordered_fallback_preceptors("im", None, "north", allow_cross_system=False)
        assert tiers(candidates) == [("n1", 2), ("n2", 2), ("n3", 2)]

    def test_no_primary_team_or_system(self, resolver):
        assert resolver.get_ordered_fallback_preceptors("im", None, None, allow_cross_system=False) == []
        candidates = resolver.get_ordered_fallback_preceptors("im", None, None, allow_cross_system=True)
        assert tiers(candidates) == [("n1", 3), ("n2", 3), ("n3", 3), ("s1", 3)]

    def test_excluded_preceptors_skipped(self, resolver):
        candidates = resolver.get_ordered_fallback_preceptors(
            "im", "north_a", "north", allow_cross_system=True, excluded_ids={"n1", "s1"}
        )
        assert tiers(candidates) == [("n2", 1), ("n3", 2)]

    def test_unknown_clerkship(self, resolver):
        assert resolver.get_ordered_fallback_preceptors("surgery", "north_a", "north", True) == []

    def test_preceptor_listed_once_at_first_tier(self):
        preceptors = [
            Preceptor(id="a", name="Dr. A", health_system_id="hs"),
            Preceptor(id="b", name="Dr. B", health_system_id="hs"),
        ]
        teams = [
            Team(id="t1", clerkship_id="c1", members=[TeamMember(preceptor_id="a", priority=1)]),
            Team(id="t2", clerkship_id="c1", members=[
                TeamMember(preceptor_id="a", priority=1),
                TeamMember(preceptor_id="b", priority=2),
            ]),
        ]
        resolver = FallbackPreceptorResolver(teams, preceptors)
        candidates = resolver.get_ordered_fallback_preceptors("c1", "t1", "hs", allow_cross_system=True)
        assert tiers(candidates) == [("a", 1), ("b", 2)]

    def test_members_ordered_by_priority(self):
        preceptors = [Preceptor(id=pid, name=f"Dr. {pid}") for pid in ("x", "y", "z")]
        team = Team(id="t", clerkship_id="c1", members=[
            TeamMember(preceptor_id="z", priority=3),
            TeamMember(preceptor_id="x", priority=1),
            TeamMember(preceptor_id="y", priority=2),
        ])
        candidates = FallbackPreceptorResolver([team], preceptors).get_ordered_fallback_preceptors("c1", "t", None, False)
        assert [c.preceptor_id for c in candidates] == ["x", "y", "z"]
        assert [c.priority for c in candidates] == [1, 2, 3]

    def test_candidate_carries_preceptor_details(self, resolver):
        first = resolver.get_ordered_fallback_preceptors("im", "south_a", "south", False)[0]
        assert first.preceptor_id == "s1"
        assert first.health_system_id == "south"
        assert first.preceptor_name == "Dr. South Lead"


class TestTeamLookups:
    def test_team_health_system_from_lead_member(self, resolver):
        assert resolver.get_team_health_system("north_a") == "north"
        assert resolver.get_team_health_system("south_a") == "south"

    def test_team_health_system_unknown_or_empty(self):
        resolver = FallbackPreceptorResolver([Team(id="empty", clerkship_id="c1")], [])
        assert resolver.get_team_health_system("empty") is None
        assert resolver.get_team_health_system("missing") is None

    def test_lead_is_lowest_priority_number(self):
        preceptors = [
            Preceptor(id="a", name="Dr. A", health_system_id="east"),
            Preceptor(id="b", name="Dr. B", health_system_id="west"),
        ]
        team = Team(id="t", clerkship_id="c1", members=[
            TeamMember(preceptor_id="a", priority=2),
            TeamMember(preceptor_id="b", priority=1),
        ])
        assert FallbackPreceptorResolver([team], preceptors).get_team_health_system("t") == "west"

    def test_teams_for_clerkship(self, resolver):
        assert resolver.get_teams_for_clerkship("im") == [
            ("north_a", None, "north"),
            ("north_b", None, "north"),
            ("south_a", None, "south"),
        ]
        assert resolver.get_teams_for_clerkship("surgery") == []

    def test_context_without_teams(self, shared_team_facts):
        shared_team_facts.optional.teams = []
        resolver = FallbackPreceptorResolver.from_context(build_context_from_facts(shared_team_facts))
        assert resolver.get_teams_for_clerkship("c1") == []
        assert resolver.get_ordered_fallback_preceptors("c1", "team", "hs", True) == []
