"""
Scheduling Context Construction.

Turns the raw fact lists a persistence layer (or a fixture) produces into
the indexed SchedulingContext one run works against. Pure: no I/O.
"""

import logging
from datetime import date as date_type
from typing import List, Dict, Optional, Set
from collections import defaultdict

from models import (
    Student,
    Preceptor,
    Clerkship,
    AvailabilityRecord,
    OptionalSchedulingData,
    SchedulingFacts,
)
from .requirements import initialize_student_requirements
from .state import SchedulingContext

logger = logging.getLogger(__name__)


def build_availability_map(
    preceptors: List[Preceptor],
    records: List[AvailabilityRecord]
) -> Dict[str, Dict[date_type, str]]:
    """
    preceptor_id -> date -> site_id. Every known preceptor gets an inner map,
    even with no availability. Unavailable rows and rows without a site are dropped.
    """
    availability: Dict[str, Dict[date_type, str]] = {p.id: {} for p in preceptors}

    for record in records:
        if not record.is_available or not record.site_id:
            continue

        inner = availability.get(record.preceptor_id)
        if inner is None:
            logger.warning(f"Availability for unknown preceptor {record.preceptor_id} ignored")
            continue

        existing = inner.get(record.date)
        if existing is not None and existing != record.site_id:
            logger.warning(
                f"Preceptor {record.preceptor_id} has conflicting sites on {record.date}: "
                f"keeping {existing}, ignoring {record.site_id}"
            )
            continue
        inner[record.date] = record.site_id

    return availability


def _fold_optional(optional: OptionalSchedulingData) -> Dict[str, object]:
    """
    Index each optional table, leaving it None when it was not supplied.
    A supplied but empty table still folds to an empty index.
    """
    folded: Dict[str, object] = {}

    if optional.health_systems is not None:
        folded["health_systems"] = list(optional.health_systems)
    if optional.sites is not None:
        folded["sites"] = list(optional.sites)

    if optional.teams is not None:
        folded["teams"] = list(optional.teams)
        preceptor_teams: Dict[str, Set[str]] = defaultdict(set)
        for team in optional.teams:
            for member in team.members:
                preceptor_teams[member.preceptor_id].add(team.id)
        folded["preceptor_teams"] = dict(preceptor_teams)

    if optional.preceptor_site_clerkships is not None:
        folded["preceptor_site_clerkships"] = {
            (row.preceptor_id, row.site_id, row.clerkship_id)
            for row in optional.preceptor_site_clerkships
        }
        preceptor_clerkships: Dict[str, Set[str]] = defaultdict(set)
        for row in optional.preceptor_site_clerkships:
            preceptor_clerkships[row.preceptor_id].add(row.clerkship_id)
        folded["preceptor_clerkships"] = dict(preceptor_clerkships)

    if optional.clerkship_sites is not None:
        clerkship_sites: Dict[str, Set[str]] = defaultdict(set)
        for row in optional.clerkship_sites:
            clerkship_sites[row.clerkship_id].add(row.site_id)
        folded["clerkship_sites"] = dict(clerkship_sites)

    if optional.preceptor_electives is not None:
        electives: Dict[str, Set[str]] = defaultdict(set)
        for row in optional.preceptor_electives:
            electives[row.preceptor_id].add(row.elective_id)
        folded["preceptor_electives"] = dict(electives)

    if optional.site_availability is not None:
        site_availability: Dict[str, Dict[date_type, bool]] = defaultdict(dict)
        for row in optional.site_availability:
            site_availability[row.site_id][row.date] = row.is_available
        folded["site_availability"] = dict(site_availability)

    if optional.site_capacity_rules is not None:
        folded["site_capacity_rules"] = list(optional.site_capacity_rules)

    if optional.student_onboarding is not None:
        onboarding: Dict[str, Set[str]] = defaultdict(set)
        for row in optional.student_onboarding:
            if row.is_completed:
                onboarding[row.student_id].add(row.health_system_id)
        folded["student_onboarding"] = dict(onboarding)

    return folded


def build_scheduling_context(
    students: List[Student],
    preceptors: List[Preceptor],
    clerkships: List[Clerkship],
    blackout_dates: List[date_type],
    availability_records: List[AvailabilityRecord],
    start_date: date_type,
    end_date: date_type,
    optional_data: Optional[OptionalSchedulingData] = None,
) -> SchedulingContext:
    """Assemble a fresh SchedulingContext with an empty ledger."""
    availability = build_availability_map(preceptors, availability_records)
    requirements = initialize_student_requirements(students, clerkships)
    folded = _fold_optional(optional_data) if optional_data is not None else {}

    context = SchedulingContext(
        students=list(students),
        preceptors=list(preceptors),
        clerkships=list(clerkships),
        blackout_dates=set(blackout_dates),
        preceptor_availability=availability,
        student_requirements=requirements,
        start_date=start_date,
        end_date=end_date,
        **folded,
    )

    slot_count = sum(len(days) for days in availability.values())
    logger.info(
        f"Context built: {len(students)} students, {len(preceptors)} preceptors, "
        f"{len(clerkships)} clerkships, {slot_count} available preceptor-days"
    )
    return context


def build_context_from_facts(facts: SchedulingFacts) -> SchedulingContext:
    """Convenience wrapper for a whole SchedulingFacts bundle."""
    return build_scheduling_context(
        students=facts.students,
        preceptors=facts.preceptors,
        clerkships=facts.clerkships,
        blackout_dates=facts.blackout_dates,
        availability_records=facts.availability,
        start_date=facts.start_date,
        end_date=facts.end_date,
        optional_data=facts.optional,
    )
