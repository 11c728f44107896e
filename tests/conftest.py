"""Shared fixtures and builders for the scheduler test suite."""

from datetime import date
from typing import Optional

import pytest

from generators.data_factory import ScenarioFactory
from models import Assignment, SchedulingFacts, UnmetRequirement
from scheduler import (
    CapacityResolver,
    FallbackGapFiller,
    FallbackPreceptorResolver,
    SchedulingContext,
    build_context_from_facts,
)

DEC = 12


def d(day: int, month: int = DEC, year: int = 2025) -> date:
    return date(year, month, day)


def make_assignment(student_id: str, preceptor_id: str, day: date, clerkship_id: str = "c1", **kwargs) -> Assignment:
    return Assignment(student_id=student_id, preceptor_id=preceptor_id, clerkship_id=clerkship_id, date=day, **kwargs)


def make_unmet(
    student_id: str = "s1",
    clerkship_id: str = "c1",
    required: int = 5,
    assigned: int = 0,
    primary_team_id: Optional[str] = "team",
    **kwargs
) -> UnmetRequirement:
    return UnmetRequirement(
        student_id=student_id,
        clerkship_id=clerkship_id,
        required_days=required,
        assigned_days=assigned,
        remaining_days=required - assigned,
        reason="Insufficient assignments",
        primary_team_id=primary_team_id,
        **kwargs
    )


def make_gap_filler(facts: SchedulingFacts, context: Optional[SchedulingContext] = None) -> FallbackGapFiller:
    context = context or build_context_from_facts(facts)
    capacity = CapacityResolver(facts.capacity_rules, facts.preceptors)
    return FallbackGapFiller(context, capacity, FallbackPreceptorResolver.from_context(context))


@pytest.fixture
def factory() -> ScenarioFactory:
    return ScenarioFactory()


@pytest.fixture
def shared_team_facts(factory) -> SchedulingFacts:
    return factory.shared_team_scenario()


@pytest.fixture
def shared_team_context(shared_team_facts) -> SchedulingContext:
    return build_context_from_facts(shared_team_facts)


@pytest.fixture
def multi_team_facts(factory) -> SchedulingFacts:
    return factory.multi_team_scenario()


@pytest.fixture
def multi_team_context(multi_team_facts) -> SchedulingContext:
    return build_context_from_facts(multi_team_facts)
