from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict

from oncall_rota.engine.optimizer import generate_schedule
from oncall_rota.errors import RotaError
from oncall_rota.io.csv_loader import load_preferences, load_requirements, load_roster, save_schedule
from oncall_rota.models.validated import load_config
from oncall_rota.utils.logging_setup import setup_logging

_LEVELS = {0: "WARNING", 1: "INFO", 2: "DEBUG"}


def _summary(result) -> Dict[str, Any]:
    summary = result.schedule.summary()
    summary["unfilled_slots"] = [e.message for e in result.unfilled]
    return summary


def _generate(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    roster = load_roster(args.roster)
    requirements = load_requirements(args.requirements)
    preferences = load_preferences(args.preferences) if args.preferences else []

    result = generate_schedule(roster, requirements, preferences, config=config, schedule_id=args.schedule_id)
    if args.out:
        save_schedule(result.schedule, args.out)

    if args.json_out:
        payload = {"summary": _summary(result), "schedule": result.schedule.to_dict()}
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print("Summary:")
        for k, v in _summary(result).items():
            print(f" - {k}: {v}")
        print(f"Assignments: {len(result.schedule.assignments)} rows")
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="oncall-rota", description="On-call rota generator")
    p.add_argument("-v", "--verbose", action="count", default=0)
    p.add_argument("--log-file", default=None, help="Also log to this file (rotating)")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="Generate a schedule from CSV inputs")
    g.add_argument("--roster", required=True, help="Roster CSV (id, name, seniority, qualifications, ...)")
    g.add_argument("--requirements", required=True, help="Requirements CSV (date, shift_type, count)")
    g.add_argument("--preferences", default=None, help="Preferences CSV (user_id, level, date, ...)")
    g.add_argument("--config", default=None, help="Engine configuration JSON")
    g.add_argument("--schedule-id", default=None)
    g.add_argument("--out", default=None, help="Write assignments to this CSV")
    g.add_argument("--json", dest="json_out", action="store_true", help="JSON output")
    g.set_defaults(handler=_generate)

    args = p.parse_args(argv)
    # Keep stdout clean for JSON output
    console_level = "ERROR" if getattr(args, "json_out", False) else _LEVELS.get(args.verbose, "DEBUG")
    setup_logging(level="DEBUG", log_file=args.log_file, console_level=console_level)

    try:
        return args.handler(args)
    except (RotaError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
