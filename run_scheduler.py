"""
Main Execution Script for the Clerkship Scheduler.
Loads a facts bundle (JSON export or named demo scenario), runs the engine
and writes a JSON report.
"""

import argparse
import json
import logging
import sys
from typing import Optional, List

from pydantic import ValidationError

from generators.data_factory import ScenarioFactory
from models import SchedulingFacts, EngineOptions
from scheduler import ClerkshipScheduler, ScheduleResult, SchedulerError, build_context_from_facts

logger = logging.getLogger("Main")

# --- CONFIGURATION ---
DEFAULT_SCENARIO = "multi_team"
DEFAULT_OUTPUT = "schedule_report.json"
# ---------------------


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def load_facts(filename: str) -> SchedulingFacts:
    """Read a JSON facts bundle and re-hydrate the pydantic models."""
    with open(filename, 'r') as f:
        data = json.load(f)
    facts = SchedulingFacts.model_validate(data)
    logger.info(f"Loaded facts from {filename}: {len(facts.students)} students, {len(facts.preceptors)} preceptors")
    return facts


def export_report(result: ScheduleResult, filename: str) -> None:
    """Serializes the run result into JSON for downstream tooling."""
    with open(filename, 'w') as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    logger.info(f"Report exported to {filename}")


def run(facts: SchedulingFacts, options: EngineOptions) -> ScheduleResult:
    context = build_context_from_facts(facts)
    scheduler = ClerkshipScheduler(
        context,
        capacity_rules=facts.capacity_rules,
        configs=facts.config_map(),
        options=options,
    )
    return scheduler.run(facts.primary_assignments)


def print_summary(result: ScheduleResult) -> None:
    stats = result.summary

    print("\n" + "=" * 50)
    print("FINAL EXECUTION REPORT")
    print("=" * 50)
    print(f"Total Assignments:     {stats['total_assignments']}")
    print(f"  - Primary:           {stats['primary_assignments']}")
    print(f"  - Fallback:          {stats['fallback_assignments']}")
    print(f"Tier Breakdown:        {stats['tier_breakdown']}")
    print(f"Constraint Violations: {stats['total_violations']}")

    if result.unmet_requirements:
        print("\nUNMET REQUIREMENTS")
        for req in result.unmet_requirements:
            print(f"  {req.student_name or req.student_id} / {req.clerkship_name or req.clerkship_id}: "
                  f"{req.assigned_days}/{req.required_days} days")

    if result.violation_stats:
        print("\nTOP VIOLATIONS")
        for v in result.violation_stats:
            print(f"  {v['constraint_name']}: {v['count']}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the clerkship scheduler on a facts bundle or demo scenario.")
    parser.add_argument("--facts", help="JSON file with a SchedulingFacts bundle")
    parser.add_argument(
        "--scenario",
        default=DEFAULT_SCENARIO,
        choices=ScenarioFactory().scenario_names(),
        help="Built-in scenario used when --facts is not given"
    )
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help="Where to write the JSON report")
    parser.add_argument("--no-fallbacks", action="store_true", help="Skip the gap filling pass")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        facts = load_facts(args.facts) if args.facts else ScenarioFactory().build(args.scenario)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Could not load facts: {e}")
        return 2

    options = EngineOptions(enable_fallbacks=not args.no_fallbacks)
    try:
        result = run(facts, options)
    except SchedulerError as e:
        logger.error(f"Scheduling failed: {e}")
        return 1

    print_summary(result)
    export_report(result, args.output)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
