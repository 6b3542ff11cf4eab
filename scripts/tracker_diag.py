"""Cohort tracker diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import yaml
from pydantic import ValidationError

from cohort_tracker.catalog import CatalogLoadError, CatalogLoader
from cohort_tracker.config import TrackerSettings
from cohort_tracker.models import Requirement, User, check_chain
from cohort_tracker.scoring import (
    build_scoreboard,
    format_duration,
    format_percent_complete,
    sort_requirements,
    timeline_slice,
)


def load_requirements(settings: TrackerSettings) -> list[Requirement]:
    try:
        return list(CatalogLoader(settings.catalog_paths).load_all().values())
    except CatalogLoadError as exc:
        print(f"Catalog unavailable: {exc}")
        raise SystemExit(1)


def load_users(path: Path) -> list[User]:
    try:
        document = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or []
        return [User.model_validate(item) for item in document]
    except (OSError, yaml.YAMLError, ValidationError, TypeError) as exc:
        print(f"Users unavailable: {exc}")
        raise SystemExit(1)


def cmd_catalog(args: argparse.Namespace) -> None:
    requirements = sort_requirements(load_requirements(TrackerSettings()))
    if args.cohort:
        requirements = [r for r in requirements if r.applies_to(args.cohort)]
    if args.json:
        print(json.dumps([r.model_dump(mode="json", by_alias=True) for r in requirements], indent=2))
    else:
        for requirement in requirements:
            print(
                f"{requirement.id} [{requirement.category}] {requirement.name} "
                f"({requirement.scoreboard_display.value})"
            )


def cmd_scoreboard(args: argparse.Namespace) -> None:
    requirements = load_requirements(TrackerSettings())
    users = [user for user in load_users(args.users) if user.dojo_cohort == args.cohort]
    board = build_scoreboard(users, args.cohort, requirements)
    payload = {
        "cohort": board.cohort,
        "columns": [column.field for column in board.columns],
        "groups": {group.group_id: group.children for group in board.groups},
        "rows": [
            {
                "username": row.username,
                "cohort_score": row.cohort_score,
                "percent_complete": format_percent_complete(row.percent_complete),
                "rating_change": row.rating_change,
                "scores": row.scores,
            }
            for row in board.rows
        ],
    }
    print(json.dumps(payload, indent=2))


def cmd_timeline(args: argparse.Namespace) -> None:
    users = {user.username: user for user in load_users(args.users)}
    user = users.get(args.username)
    if user is None:
        print(f"User '{args.username}' not found")
        raise SystemExit(1)

    entries = timeline_slice(user, args.requirement, args.cohort)
    broken = set(check_chain(entries))
    for index, entry in enumerate(entries):
        marker = " BROKEN" if index in broken else ""
        print(
            f"{entry.created_at.isoformat()} {entry.previous_count} -> {entry.new_count} "
            f"({format_duration(entry.minutes_spent)}){marker}"
        )
    if broken:
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cohort tracker diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_catalog = sub.add_parser("catalog", help="List the requirement catalog in display order")
    p_catalog.add_argument("--json", action="store_true", help="Output JSON")
    p_catalog.add_argument("--cohort", help="Only requirements applying to this cohort")
    p_catalog.set_defaults(func=cmd_catalog)

    p_scoreboard = sub.add_parser("scoreboard", help="Compute a cohort scoreboard offline")
    p_scoreboard.add_argument("--cohort", required=True)
    p_scoreboard.add_argument("--users", type=Path, required=True, help="YAML list of users")
    p_scoreboard.set_defaults(func=cmd_scoreboard)

    p_timeline = sub.add_parser("timeline", help="Print and check one timeline slice")
    p_timeline.add_argument("--users", type=Path, required=True, help="YAML list of users")
    p_timeline.add_argument("--username", required=True)
    p_timeline.add_argument("--requirement", required=True)
    p_timeline.add_argument("--cohort", required=True)
    p_timeline.set_defaults(func=cmd_timeline)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
