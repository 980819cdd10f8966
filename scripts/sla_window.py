#!/usr/bin/env python3
"""
Show the SLA window for a job type: earliest due, minimum selectable due,
and the backward-computed start date.

Usage:
    python3 scripts/sla_window.py --job-type banner
    python3 scripts/sla_window.py --job-type banner --priority urgent
    python3 scripts/sla_window.py --job-type banner --today 2026-04-10 --due 2026-04-24
    python3 scripts/sla_window.py --job-type banner --config path/to/set.yaml --json
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 60


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value: object, indent: int = 2) -> None:
    print(f"{' ' * indent}{name}: {value}")


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show the SLA due-date window for a job type.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/sla_window.py --job-type banner\n"
            "  python3 scripts/sla_window.py --job-type banner --priority urgent\n"
        ),
    )
    parser.add_argument(
        "--job-type", required=True,
        help="Job type code from the configuration set",
    )
    parser.add_argument(
        "--priority", choices=("normal", "urgent"), default="normal",
        help="Priority class (default: normal)",
    )
    parser.add_argument(
        "--today", type=date.fromisoformat, default=None,
        help="Creation date as YYYY-MM-DD (default: today, UTC)",
    )
    parser.add_argument(
        "--due", type=date.fromisoformat, default=None,
        help="Chosen due date as YYYY-MM-DD (default: minimum selectable)",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Configuration set YAML (default: bundled default.yaml)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Output JSON instead of formatted text",
    )

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    # Suppress library logging
    logging.disable(logging.CRITICAL)

    from jobflow_config import get_active_config
    from jobflow_config.bridges import holiday_set, job_type_for
    from jobflow_engines.sla import resolve_due_dates
    from jobflow_kernel.domain.clock import SystemClock
    from jobflow_kernel.domain.job import Priority
    from jobflow_kernel.exceptions import JobflowError

    try:
        config = get_active_config(args.config)
        job_type = job_type_for(config, args.job_type)
        plan = resolve_due_dates(
            today=args.today or SystemClock().today(),
            job_type=job_type,
            priority=Priority(args.priority),
            holidays=holiday_set(config),
            requested_due=args.due,
        )
    except (JobflowError, FileNotFoundError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        logging.disable(logging.NOTSET)

    window = plan.window
    if args.json:
        print(json.dumps(
            {
                "config_id": config.config_id,
                "job_type": job_type.code,
                "sla_working_days": window.sla_working_days,
                "priority": window.priority.value,
                "today": _iso(window.today),
                "earliest_due": _iso(window.earliest_due),
                "min_selectable_due": _iso(window.min_selectable_due),
                "due_date": _iso(plan.due_date),
                "start_date": _iso(plan.start_date),
            },
            indent=2,
        ))
        return 0

    banner(f"SLA WINDOW: {job_type.name} ({job_type.code})")
    field("Config", f"{config.config_id} v{config.version}")
    field("SLA (working days)", window.sla_working_days)
    field("Priority", window.priority.value)
    field("Today", _iso(window.today))
    field("Earliest due", _iso(window.earliest_due) or "(urgent: SLA bypassed)")
    field("Min selectable due", _iso(window.min_selectable_due))
    field("Due date", _iso(plan.due_date))
    field("Start date", _iso(plan.start_date))
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
