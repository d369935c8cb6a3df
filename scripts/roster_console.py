#!/usr/bin/env python3
"""
Roster console - list and manage personnel, accounting and DCP package rosters
from the command line through the same controller the UI uses.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api.client import HttpRosterSource
from src.core import config
from src.core.controller import RosterController
from src.core.notify import AutoConfirm, ConsolePrompt, LoggingNotifier
from src.core.query import split_page
from src.rosters import AREAS, get_area
from util.logging import logger

COLUMNS = {
    "personnel": ["id", "last_name", "first_name", "employee_id", "position", "is_active"],
    "accounting": ["id", "username", "first_name", "last_name", "phone", "is_active"],
    "packages": ["id", "batch_name", "quantity", "delivery_status", "installation_status", "delivery_date"],
}


def build_controller(args) -> RosterController:
    capabilities = get_area(args.area)
    source = HttpRosterSource(args.area, base_url=args.base_url, token=args.token)
    confirm = AutoConfirm(True) if getattr(args, "yes", False) else ConsolePrompt()
    return RosterController(capabilities, source, confirm, LoggingNotifier(),
                            page_size=args.page_size, current_user_id=args.me)


def print_page(controller: RosterController) -> None:
    view = controller.view
    columns = COLUMNS[controller.area]
    print(" | ".join(columns))
    print("-" * (len(columns) * 14))
    for record in view.page:
        print(" | ".join(str(record.get(column, "")) for column in columns))

    first, last = split_page(view)
    pages = " ".join(f"[{p}]" if p == view.current_page else str(p) for p in controller.pages())
    print(f"\nShowing {first}-{last} of {view.total_filtered} | page {view.current_page}/{view.total_pages}: {pages}")
    stats = controller.stats()
    print("Totals: " + ", ".join(f"{key}={value}" for key, value in stats.items()))


async def run(args) -> int:
    controller = build_controller(args)
    if not await controller.load():
        return 1

    if args.command == "list":
        controller.set_search(args.search or "")
        controller.set_filter("status", args.status)
        for field_name in args.sort or []:
            controller.sort_by(field_name)
        controller.set_page(args.page)
        print_page(controller)
        return 0

    record_id = int(args.id) if str(args.id).isdigit() else args.id
    try:
        if args.command == "activate":
            ok = await controller.activate(record_id)
        elif args.command == "deactivate":
            ok = await controller.deactivate(record_id, args.reason)
        else:
            ok = await controller.delete(record_id)
    except (KeyError, ValueError) as e:
        # Unknown id, or an action the area does not support
        logger.error(str(e))
        return 1
    return 0 if ok else 1


def main():
    parser = argparse.ArgumentParser(
        description="List and manage rosters of the school property console",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s personnel list --search santos --status active
  %(prog)s accounting list --sort created_at --page 2
  %(prog)s personnel deactivate 12 --reason "Left the organization" --yes

Environment variables:
- API_BASE_URL (default http://localhost:8000/api)
- API_TOKEN (bearer token)
        """
    )
    parser.add_argument("area", choices=sorted(AREAS), help="Roster to work on")
    parser.add_argument("--base-url", help="Override API_BASE_URL")
    parser.add_argument("--token", help="Override API_TOKEN")
    parser.add_argument("--page-size", type=int, default=None, choices=config.get_page_size_options(),
                        help="Rows per page")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.VERSION}")
    parser.add_argument("--me", help="Your own account id (cannot be deactivated or deleted)")

    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="Show one page of the roster")
    list_cmd.add_argument("--search", "-q", help="Case-insensitive search term")
    list_cmd.add_argument("--status", default="all", help="Status filter (active, inactive, delivered, ...)")
    list_cmd.add_argument("--sort", action="append", help="Sort field; repeat to toggle direction")
    list_cmd.add_argument("--page", type=int, default=1, help="Page number")

    for name in ("activate", "delete"):
        cmd = commands.add_parser(name, help=f"{name.capitalize()} one record")
        cmd.add_argument("id", help="Record id")
        cmd.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    deactivate_cmd = commands.add_parser("deactivate", help="Deactivate one record")
    deactivate_cmd.add_argument("id", help="Record id")
    deactivate_cmd.add_argument("--reason", required=True, help="Reason for deactivation")
    deactivate_cmd.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    args = parser.parse_args()
    if args.verbose or config.debug_enabled():
        logger.logger.setLevel(logging.DEBUG)
    if args.me is not None and str(args.me).isdigit():
        args.me = int(args.me)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
