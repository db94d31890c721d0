"""CLI entry point for issuetree."""

import argparse
from pathlib import Path

from . import __version__
from .config import Settings
from .logging import setup_logging


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be zero or positive")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="issuetree",
        description="Manage GitHub issue hierarchies and their project fields",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--transport",
        choices=["gh", "http"],
        default=None,
        help="Send requests through the gh CLI (default) or directly over HTTPS",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    move = commands.add_parser("move", help="Set project fields on issues and their sub-issues")
    move.add_argument("issues", nargs="+", metavar="issue", help="Issues as owner/repo#N or node ID")
    move.add_argument(
        "--project",
        default=None,
        metavar="OWNER/NUMBER",
        help="Target project (default: ISSUETREE_PROJECT_OWNER/ISSUETREE_PROJECT_NUMBER)",
    )
    move.add_argument("--status", default=None, help="New Status value")
    move.add_argument("--priority", default=None, help="New Priority value")
    move.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set any project field (repeatable)",
    )
    move.add_argument(
        "--clear",
        action="append",
        default=[],
        metavar="NAME",
        help="Clear a project field (repeatable)",
    )
    move.add_argument("-r", "--recursive", action="store_true", help="Cascade to sub-issues")
    move.add_argument(
        "--depth",
        type=_non_negative,
        default=None,
        help="Levels of sub-issues to cascade to (default: ISSUETREE_MAX_DEPTH)",
    )
    move.add_argument("--dry-run", action="store_true", help="Show changes without applying them")

    fields = commands.add_parser("fields", help="List project fields and options")
    fields.add_argument("--project", default=None, metavar="OWNER/NUMBER", help="Project to inspect")

    sub = commands.add_parser("sub", help="Work with sub-issues")
    sub_commands = sub.add_subparsers(dest="sub_command", required=True)

    sub_list = sub_commands.add_parser("list", help="Show the sub-issue tree")
    sub_list.add_argument("issue", help="Issue as owner/repo#N or node ID")
    sub_list.add_argument("--depth", type=_non_negative, default=None, help="Levels to show")

    sub_add = sub_commands.add_parser("add", help="Add a sub-issue")
    sub_add.add_argument("parent", help="Parent issue")
    sub_add.add_argument("child", help="Issue to link under the parent")

    sub_remove = sub_commands.add_parser("remove", help="Remove a sub-issue")
    sub_remove.add_argument("parent", help="Parent issue")
    sub_remove.add_argument("child", help="Issue to unlink")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # CLI flags override ISSUETREE_* environment values
    settings_kwargs: dict = {}
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file
    if args.transport:
        settings_kwargs["transport"] = args.transport

    settings = Settings(**settings_kwargs)
    setup_logging(settings.verbose, settings.log_file)

    if args.command == "move":
        from .cli.move import parse_field_assignments, run_move

        try:
            updates = parse_field_assignments(args.field, args.clear, args.status, args.priority)
        except ValueError as e:
            from .cli.output import error

            error(str(e))
            raise SystemExit(2) from None

        exit_code = run_move(
            settings,
            args.issues,
            args.project,
            updates,
            recursive=args.recursive,
            depth=args.depth,
            dry_run=args.dry_run,
        )
    elif args.command == "fields":
        from .cli.fields import run_fields

        exit_code = run_fields(settings, args.project)
    else:
        from .cli.subissues import run_sub_add, run_sub_list, run_sub_remove

        if args.sub_command == "list":
            exit_code = run_sub_list(settings, args.issue, args.depth)
        elif args.sub_command == "add":
            exit_code = run_sub_add(settings, args.parent, args.child)
        else:
            exit_code = run_sub_remove(settings, args.parent, args.child)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
