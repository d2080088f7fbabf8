#!/usr/bin/env python3

import argparse
from collections.abc import Callable, Sequence


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_legacy_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that still call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Receipt scanning and bill splitting CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  scan <image>               Scan a receipt image via the extraction service
  parse-text <file>          Parse OCR text offline with the regex parser
  settle <split.json>        Print who owes what for an allocated split
  serve [--host] [--port]    Start the receipt HTTP server

Environment:
  GEMINI_API_KEY / VISION_API_KEY   extraction credentials
  RECEIPTSPLIT_CONFIG               path to receiptsplit.toml
  RECEIPTSPLIT_LOG_LEVEL            DEBUG, INFO, WARNING or ERROR
""",
    )
    parser.add_argument("--config", default=None, help="Path to receiptsplit.toml (default: $RECEIPTSPLIT_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a receipt image")
    scan_parser.add_argument("image", help="Path to receipt image")
    scan_parser.add_argument("--mime-type", default="image/jpeg", help="Image MIME type (default: image/jpeg)")
    scan_parser.add_argument("--json", action="store_true", help="Print the receipt record as JSON")

    # parse-text command
    parse_parser = subparsers.add_parser("parse-text", help="Parse OCR text with the regex parser")
    parse_parser.add_argument("file", help="Path to a text file of OCR output")
    parse_parser.add_argument("--currency", default="USD", help="Display currency (default: USD)")
    parse_parser.add_argument("--json", action="store_true", help="Print the receipt record as JSON")

    # settle command
    settle_parser = subparsers.add_parser("settle", help="Compute settlements for an allocated split")
    settle_parser.add_argument("split", help="Path to split JSON {groupName, people, payerId, receipt}")
    settle_parser.add_argument("--currency", default=None, help="Display currency (default: from settings)")
    settle_parser.add_argument("--json", action="store_true", help="Print summary and settlements as JSON")
    settle_parser.add_argument("--owe", action="store_true", help="Print a reminder line for each person who owes")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start receipt HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "scan":
        from receiptsplit.cli.receipt import cmd_scan

        return _run_legacy_command(cmd_scan, args)
    elif args.command == "parse-text":
        from receiptsplit.cli.receipt import cmd_parse_text

        return _run_legacy_command(cmd_parse_text, args)
    elif args.command == "settle":
        from receiptsplit.cli.receipt import cmd_settle

        return _run_legacy_command(cmd_settle, args)
    elif args.command == "serve":
        from receiptsplit.cli.receipt import cmd_serve

        return _run_legacy_command(cmd_serve, args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
