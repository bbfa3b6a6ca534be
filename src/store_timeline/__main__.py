from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys

import yaml

from .anchors import resolve_anchors
from .catalog import default_catalog, load_catalog
from .plan_records import dump_plan, load_plan
from .scheduling import (
    TimelineError,
    compute_phase_spans,
    generate_timeline,
    reschedule_on_anchor_change,
    reschedule_on_task_edit,
)
from .timeline_models import AnchorName, ReschedulePolicy

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="store_timeline",
        description="Store-opening timeline scheduler",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate a dated plan from anchor dates")
    generate.add_argument("--open-date", type=_parse_date, required=True, help="Target open date (YYYY-MM-DD)")
    generate.add_argument("--contract-signed", type=_parse_date, help="Contract signed date; derived when omitted")
    generate.add_argument("--construction-start", type=_parse_date, help="Construction start date; derived when omitted")
    generate.add_argument("--catalog", help="Template catalog YAML; the bundled default when omitted")
    generate.add_argument("--out", help="Output plan YAML path; stdout when omitted")

    shift = commands.add_parser("shift-anchor", help="Move an anchor date and shift the tasks bound to it")
    shift.add_argument("plan", help="Path to plan YAML")
    shift.add_argument("--anchor", choices=[name.value for name in AnchorName], default=AnchorName.OPEN_DATE.value)
    shift.add_argument("--new-date", type=_parse_date, required=True, help="New anchor date (YYYY-MM-DD)")
    shift.add_argument("--old-date", type=_parse_date, help="Previous anchor date; read from the plan when omitted")
    shift.add_argument("--out", help="Output plan YAML path; overwrite the input plan when omitted")

    edit = commands.add_parser("edit-task", help="Move one task and cascade the change per policy")
    edit.add_argument("plan", help="Path to plan YAML")
    edit.add_argument("--task", required=True, help="Task id, e.g. tpl-012")
    edit.add_argument("--new-start", type=_parse_date, required=True, help="New start date (YYYY-MM-DD)")
    edit.add_argument(
        "--policy",
        choices=[policy.value for policy in ReschedulePolicy],
        default=ReschedulePolicy.THIS_ONLY.value,
    )
    edit.add_argument("--out", help="Output plan YAML path; overwrite the input plan when omitted")

    summary = commands.add_parser("summary", help="Print per-phase date ranges of a plan")
    summary.add_argument("plan", help="Path to plan YAML")
    return parser


def _generate(args: argparse.Namespace) -> int:
    partial = {AnchorName.OPEN_DATE: args.open_date}
    if args.contract_signed is not None:
        partial[AnchorName.CONTRACT_SIGNED] = args.contract_signed
    if args.construction_start is not None:
        partial[AnchorName.CONSTRUCTION_START] = args.construction_start

    anchors = resolve_anchors(partial)
    catalog = load_catalog(args.catalog) if args.catalog else default_catalog()
    tasks = generate_timeline(anchors, catalog)

    text = dump_plan(tasks, args.out, anchors=anchors)
    if args.out is None:
        sys.stdout.write(text)
    else:
        logger.info("Wrote %d tasks to %s", len(tasks), args.out)
    return 0


def _shift_anchor(args: argparse.Namespace) -> int:
    anchors, tasks = load_plan(args.plan)
    anchor = AnchorName(args.anchor)
    old_date = args.old_date or anchors.get(anchor)
    if old_date is None:
        print(f"Error: plan has no stored {anchor.value}; pass --old-date", file=sys.stderr)
        return 2

    tasks = reschedule_on_anchor_change(tasks, old_date, args.new_date, anchor)
    anchors[anchor] = args.new_date
    out = args.out or args.plan
    dump_plan(tasks, out, anchors=anchors)
    logger.info("Moved %s from %s to %s; wrote %s", anchor.value, old_date, args.new_date, out)
    return 0


def _edit_task(args: argparse.Namespace) -> int:
    anchors, tasks = load_plan(args.plan)
    tasks = reschedule_on_task_edit(tasks, args.task, args.new_start, ReschedulePolicy(args.policy))
    out = args.out or args.plan
    dump_plan(tasks, out, anchors=anchors)
    logger.info("Moved task %s to %s (%s); wrote %s", args.task, args.new_start, args.policy, out)
    return 0


def _summary(args: argparse.Namespace) -> int:
    _, tasks = load_plan(args.plan)
    for span in compute_phase_spans(tasks).values():
        print(
            f"{span.phase:<20} {span.start.isoformat()} -> {span.finish.isoformat()}"
            f"  tasks={span.task_count} milestones={span.milestone_count}"
        )
    return 0


_COMMANDS = {
    "generate": _generate,
    "shift-anchor": _shift_anchor,
    "edit-task": _edit_task,
    "summary": _summary,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return _COMMANDS[args.command](args)
    except (yaml.YAMLError, TimelineError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: file not found: {exc.filename}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
