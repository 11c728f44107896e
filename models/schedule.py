"""
Schedule data models for the Clerkship Scheduler.

This module defines the 'Output' of the scheduling engine:
Specific days where a student has been committed to a preceptor.
"""

from typing import Iterator, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import date as date_type, timedelta

PRIMARY_TIER = 0


class Assignment(BaseModel):
    """
    One student with one preceptor for one clerkship on one date.
    Includes fields to track which fallback tier (if any) produced it.
    """

    # --- Core Scheduling Data ---
    student_id: str = Field(description="Assigned student")
    preceptor_id: str = Field(description="Supervising preceptor")
    clerkship_id: str = Field(description="Clerkship the day counts towards")
    date: date_type = Field(description="Calendar date")

    # --- Resilience Tracking ---
    tier: int = Field(
        default=PRIMARY_TIER,
        ge=0,
        le=3,
        description="0 = primary pass, 1 = same team, 2 = same health system, 3 = cross-system"
    )
    fallback_team_id: Optional[str] = Field(
        default=None,
        description="Team the fallback preceptor was drawn from"
    )
    original_team_id: Optional[str] = Field(
        default=None,
        description="Team the assignment is attributed to for continuity reporting"
    )

    # --- Block Strategies ---
    block_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Block index when produced by a block-based strategy"
    )

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "student_id": "stu_alice",
            "preceptor_id": "prc_jones",
            "clerkship_id": "clk_im",
            "date": "2025-12-01",
            "tier": 1,
            "fallback_team_id": "team_im_north",
            "original_team_id": "team_im_north"
        }
    })

    @property
    def is_fallback(self) -> bool:
        return self.tier > PRIMARY_TIER


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""
    start_date: date_type
    end_date: date_type

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End Date cannot be before Start Date")
        return self

    def __contains__(self, day: date_type) -> bool:
        return self.start_date <= day <= self.end_date

    def days(self) -> Iterator[date_type]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)
