"""Scenario builders for tests and demo runs."""

from .data_factory import ScenarioFactory, weekdays_in_range

__all__ = ["ScenarioFactory", "weekdays_in_range"]
