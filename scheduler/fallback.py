"""
Fallback Preceptor Resolution.

When a student's primary preceptor cannot take them, who is next?
Candidates come in three tiers, each one a weaker form of continuity:
1. Same team (same relationship)
2. Other teams in the same health system (same institution)
3. Any other team for the clerkship (cross-system, opt-in)
"""

import logging
from typing import List, Optional, Iterable, Tuple, Set
from dataclasses import dataclass

from models import Preceptor, Team
from .state import SchedulingContext

logger = logging.getLogger(__name__)

TIER_SAME_TEAM = 1
TIER_SAME_HEALTH_SYSTEM = 2
TIER_CROSS_SYSTEM = 3


@dataclass(frozen=True)
class FallbackCandidate:
    preceptor_id: str
    team_id: str
    tier: int
    priority: int  # within its team
    health_system_id: Optional[str] = None
    preceptor_name: Optional[str] = None


class FallbackPreceptorResolver:
    """Orders fallback candidates for a clerkship from its teams."""

    def __init__(self, teams: List[Team], preceptors: List[Preceptor]):
        self.teams = list(teams)
        self.preceptors = {p.id: p for p in preceptors}

    @classmethod
    def from_context(cls, context: SchedulingContext) -> "FallbackPreceptorResolver":
        return cls(context.teams or [], context.preceptors)

    def _health_system_of(self, preceptor_id: str) -> Optional[str]:
        preceptor = self.preceptors.get(preceptor_id)
        return preceptor.health_system_id if preceptor else None

    def _team_health_system(self, team: Team) -> Optional[str]:
        ordered = team.ordered_members
        if not ordered:
            return None
        return self._health_system_of(ordered[0].preceptor_id)

    def get_team_health_system(self, team_id: str) -> Optional[str]:
        """Health system of the team's highest-priority member; None without members."""
        for team in self.teams:
            if team.id == team_id:
                return self._team_health_system(team)
        return None

    def get_teams_for_clerkship(self, clerkship_id: str) -> List[Tuple[str, Optional[str], Optional[str]]]:
        """(team_id, name, derived health system) for each team, in input order."""
        return [
            (team.id, team.name, self._team_health_system(team))
            for team in self.teams
            if team.clerkship_id == clerkship_id
        ]

    def get_ordered_fallback_preceptors(
        self,
        clerkship_id: str,
        primary_team_id: Optional[str],
        primary_health_system_id: Optional[str],
        allow_cross_system: bool,
        excluded_ids: Iterable[str] = ()
    ) -> List[FallbackCandidate]:
        """
        Tier 1, then tier 2, then (optionally) tier 3 candidates.
        A preceptor appears once, at the first tier it qualifies for.
        """
        teams = [t for t in self.teams if t.clerkship_id == clerkship_id]
        if not teams:
            return []

        excluded = set(excluded_ids)
        seen: Set[str] = set()
        result: List[FallbackCandidate] = []

        def take(team: Team, tier: int) -> None:
            for member in team.ordered_members:
                if member.preceptor_id in excluded or member.preceptor_id in seen:
                    continue
                seen.add(member.preceptor_id)
                preceptor = self.preceptors.get(member.preceptor_id)
                result.append(FallbackCandidate(
                    preceptor_id=member.preceptor_id,
                    team_id=team.id,
                    tier=tier,
                    priority=member.priority,
                    health_system_id=preceptor.health_system_id if preceptor else None,
                    preceptor_name=preceptor.name if preceptor else None,
                ))

        # Tier 1: the primary team
        if primary_team_id:
            for team in teams:
                if team.id == primary_team_id:
                    take(team, TIER_SAME_TEAM)

        # Tier 2: other teams led from the same health system
        if primary_health_system_id:
            for team in teams:
                if team.id == primary_team_id:
                    continue
                if self._team_health_system(team) == primary_health_system_id:
                    take(team, TIER_SAME_HEALTH_SYSTEM)

        # Tier 3: everyone else
        if allow_cross_system:
            for team in teams:
                take(team, TIER_CROSS_SYSTEM)

        logger.debug(
            f"Fallback candidates for {clerkship_id} (team={primary_team_id}, hs={primary_health_system_id}): "
            f"{[(c.preceptor_id, c.tier) for c in result]}"
        )
        return result
