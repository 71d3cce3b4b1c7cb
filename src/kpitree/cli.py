"""
kpitree.cli - Command-line interface.

Main entry point for the kpitree CLI tool.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from kpitree import __version__
from kpitree.commands import check, convert, init_cmd, links, move, serve, show
from kpitree.workspace.presets import PresetType


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    """Input forest: a .json/.xmind file or a built-in preset."""
    parser.add_argument(
        "input",
        nargs="?",
        type=Path,
        help="Input file (.json or .xmind)",
        metavar="FILE",
    )
    parser.add_argument(
        "--preset",
        choices=[p.value for p in PresetType],
        help="Use a built-in dataset instead of a file",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kpitree",
        description="KPI tree editing, conversion and checking tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kpitree show --preset financial        # Outline a built-in dataset
  kpitree show tree.json --search fuel   # Show matches and their ancestors
  kpitree convert tree.json tree.xmind   # Convert between formats
  kpitree links tree.xmind               # List cross-links
  kpitree move tree.json fuel-cost capex # Move a subtree (validated)
  kpitree check tree.json                # Audit a forest for problems
  kpitree serve                          # Start the REST API server

Configuration:
  kpitree init                           # Create .kpitree.toml in current directory

For detailed command help: kpitree <command> --help
        """,
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"kpitree {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Create a .kpitree.toml configuration file",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing configuration file",
    )

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Print a forest as an indented outline",
    )
    _add_source_arguments(show_parser)
    show_parser.add_argument(
        "--depth",
        type=int,
        default=0,
        help="Only show nodes down to this depth (0 = everything)",
    )
    show_parser.add_argument(
        "--search",
        help="Only show nodes matching TERM and their ancestors",
        metavar="TERM",
    )
    show_parser.add_argument(
        "--esg-only",
        action="store_true",
        help="Only show subtrees carrying ESG tags or emission scopes",
    )
    show_parser.add_argument(
        "--ids",
        action="store_true",
        help="Show node ids and inferred categories",
    )

    # convert command
    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert a forest between JSON and XMind",
    )
    _add_source_arguments(convert_parser)
    convert_parser.add_argument(
        "output",
        type=Path,
        help="Output file (.json or .xmind)",
        metavar="OUTPUT",
    )

    # links command
    links_parser = subparsers.add_parser(
        "links",
        help="List the cross-links of a forest",
    )
    _add_source_arguments(links_parser)

    # move command
    move_parser = subparsers.add_parser(
        "move",
        help="Move a subtree under a new parent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Use "root" as TARGET to move a node to the top level.
The input file is rewritten unless --output or --dry-run is given.
""",
    )
    move_parser.add_argument("input", type=Path, help="Input file", metavar="FILE")
    move_parser.add_argument("node_id", help="Node to move", metavar="NODE")
    move_parser.add_argument("target_id", help="New parent id, or 'root'", metavar="TARGET")
    move_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Write the result here instead of the input file",
        metavar="PATH",
    )
    move_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only validate the move",
    )

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Audit a forest for duplicate ids, broken links and misplaced nodes",
    )
    _add_source_arguments(check_parser)
    check_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output findings as JSON",
    )
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero on warnings too",
    )

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the REST API server (requires the server extra)",
    )
    serve_parser.add_argument(
        "--state",
        type=Path,
        help="Workspace state file (default from config)",
        metavar="PATH",
    )
    serve_parser.add_argument(
        "--host",
        help="Host to bind (default from config)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        help="Port to bind (default from config)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install kpitree[completion]
    # Then activate: eval "$(register-python-argcomplete kpitree)"
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "init":
            return init_cmd.run(args)
        elif args.command == "show":
            return show.run(args)
        elif args.command == "convert":
            return convert.run(args)
        elif args.command == "links":
            return links.run(args)
        elif args.command == "move":
            return move.run(args)
        elif args.command == "check":
            return check.run(args)
        elif args.command == "serve":
            return serve.run(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
